"""SQLAlchemy ORM models."""

from mylibrary.models.base import Base
from mylibrary.models.book import Book
from mylibrary.models.user import Address, User

__all__ = ["Address", "Base", "Book", "User"]
