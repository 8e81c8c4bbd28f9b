"""Request/response schemas for the book catalog."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BookCreate(BaseModel):
    """New catalog entry. available_copies defaults to total_copies."""

    title: str = Field(..., min_length=1, max_length=512)
    description: str = Field(default="", max_length=10000)
    author: str = Field(..., min_length=1, max_length=255)
    genre: str = Field(..., min_length=1, max_length=128)
    isbn: str = Field(..., min_length=10, max_length=32)
    total_copies: int = Field(default=1, ge=0)
    available_copies: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_copies(self) -> "BookCreate":
        if self.available_copies is None:
            self.available_copies = self.total_copies
        if self.available_copies > self.total_copies:
            raise ValueError("available_copies cannot exceed total_copies")
        return self


class BookUpdate(BaseModel):
    """Partial update; the copy invariant is re-checked against stored values."""

    title: str | None = Field(default=None, min_length=1, max_length=512)
    description: str | None = Field(default=None, max_length=10000)
    author: str | None = Field(default=None, min_length=1, max_length=255)
    genre: str | None = Field(default=None, min_length=1, max_length=128)
    isbn: str | None = Field(default=None, min_length=10, max_length=32)
    total_copies: int | None = Field(default=None, ge=0)
    available_copies: int | None = Field(default=None, ge=0)


class BookRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    author: str
    genre: str
    isbn: str
    total_copies: int
    available_copies: int


class BooksListResponse(BaseModel):
    books: list[BookRead]
