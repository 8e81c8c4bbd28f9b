"""Pydantic request/response schemas."""

from mylibrary.schemas.auth import (
    AddressFields,
    AddressRead,
    CurrentUser,
    EmailVerificationRequest,
    LoginRequest,
    MessageResponse,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserRead,
    UserRole,
)
from mylibrary.schemas.book import BookCreate, BookRead, BooksListResponse, BookUpdate
from mylibrary.schemas.health import HealthResponse

__all__ = [
    "AddressFields",
    "AddressRead",
    "BookCreate",
    "BookRead",
    "BookUpdate",
    "BooksListResponse",
    "CurrentUser",
    "EmailVerificationRequest",
    "HealthResponse",
    "LoginRequest",
    "MessageResponse",
    "ProfileUpdate",
    "RefreshRequest",
    "RegisterRequest",
    "TokenPair",
    "UserRead",
    "UserRole",
]
