"""ORM model for catalog books."""

from sqlalchemy import CheckConstraint, Column, Integer, String, Text

from mylibrary.models.base import Base


class Book(Base):
    """Catalog entry; available_copies is kept within [0, total_copies]."""

    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("total_copies >= 0", name="ck_books_total_copies_non_negative"),
        CheckConstraint(
            "available_copies >= 0 AND available_copies <= total_copies",
            name="ck_books_available_copies_in_range",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=False, default="")
    author = Column(String(255), nullable=False)
    genre = Column(String(128), nullable=False)
    isbn = Column(String(32), nullable=False, unique=True, index=True)
    total_copies = Column(Integer, nullable=False, default=1)
    available_copies = Column(Integer, nullable=False, default=1)
