"""ORM models for library members (auth, profile and address)."""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    String,
    func,
)
from sqlalchemy.orm import relationship

from mylibrary.models.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    User account for JWT authentication and role-based access control.

    role: 'admin' or 'user'
    password holds the argon2 hash; refresh_token_hash the SHA-256 digest of
    the refresh token issued at the last login or refresh.
    """

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(320), nullable=False, unique=True, index=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    role = Column(String(32), nullable=False, default="user")
    password = Column(String(255), nullable=False)
    phone_number = Column(String(32), nullable=True)
    email_is_verified = Column(Boolean, nullable=False, default=False)
    refresh_token_hash = Column(String(64), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    address = relationship(
        "Address",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="joined",
    )

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class Address(Base):
    """Postal address owned by exactly one user."""

    __tablename__ = "addresses"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    apartment_number = Column(String(32), nullable=False)
    street = Column(String(255), nullable=False)
    city = Column(String(255), nullable=False)
    state = Column(String(255), nullable=True)
    country = Column(String(255), nullable=False)
    postal_code = Column(String(32), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    user = relationship("User", back_populates="address")
