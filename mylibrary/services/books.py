"""Book catalog CRUD. Keeps 0 <= available_copies <= total_copies on every write."""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mylibrary.models import Book
from mylibrary.schemas.book import BookCreate, BookUpdate


class BookNotFoundError(Exception):
    def __init__(self, message: str = "Book not found") -> None:
        self.message = message
        super().__init__(message)


class DuplicateIsbnError(Exception):
    def __init__(self, message: str = "A book with this ISBN already exists.") -> None:
        self.message = message
        super().__init__(message)


class InvalidCopyCountError(Exception):
    def __init__(
        self, message: str = "available_copies must be between 0 and total_copies."
    ) -> None:
        self.message = message
        super().__init__(message)


def _normalize_isbn(isbn: str) -> str:
    return isbn.replace("-", "").replace(" ", "").upper()


class BookStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def list_all(self) -> list[Book]:
        return self.session.query(Book).order_by(Book.id).all()

    def get(self, book_id: int) -> Book:
        book = self.session.get(Book, book_id)
        if book is None:
            raise BookNotFoundError()
        return book

    def create(self, data: BookCreate) -> Book:
        book = Book(**data.model_dump())
        book.isbn = _normalize_isbn(book.isbn)
        _check_copies(book.total_copies, book.available_copies)
        self.session.add(book)
        self._commit()
        self.session.refresh(book)
        return book

    def update(self, book_id: int, changes: BookUpdate) -> Book:
        book = self.get(book_id)
        fields = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}
        total = fields.get("total_copies", book.total_copies)
        available = fields.get("available_copies", book.available_copies)
        _check_copies(total, available)
        if "isbn" in fields:
            fields["isbn"] = _normalize_isbn(fields["isbn"])
        for name, value in fields.items():
            setattr(book, name, value)
        self._commit()
        self.session.refresh(book)
        return book

    def delete(self, book_id: int) -> None:
        book = self.get(book_id)
        self.session.delete(book)
        self.session.commit()

    def _commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateIsbnError() from e


def _check_copies(total: int, available: int) -> None:
    if total < 0 or available < 0 or available > total:
        raise InvalidCopyCountError()
