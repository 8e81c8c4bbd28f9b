"""Request/response schemas for auth and profile endpoints."""

from datetime import datetime
from enum import Enum
from typing import Annotated

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
)

from mylibrary.core.security import (
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    USERNAME_MIN_LEN,
)


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


def _normalize_email(v: str) -> str:
    return v.strip().lower()


NormalizedEmail = Annotated[EmailStr, AfterValidator(_normalize_email)]


def _strip_username(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("username must not be blank")
    return v


# Stripped after the length check, so whitespace-only names are rejected
Username = Annotated[
    str,
    StringConstraints(min_length=USERNAME_MIN_LEN, max_length=USERNAME_MAX_LEN),
    AfterValidator(_strip_username),
]


class RegisterRequest(BaseModel):
    """New account: email, username and password."""

    email: NormalizedEmail = Field(..., description="Account email (unique)")
    username: Username = Field(..., description="Display name (unique)")
    password: str = Field(
        ...,
        min_length=PASSWORD_MIN_LEN,
        max_length=PASSWORD_MAX_LEN,
        description="Password",
    )


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: NormalizedEmail = Field(..., description="Account email")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")


class EmailVerificationRequest(BaseModel):
    """Ask for a (new) verification email."""

    email: NormalizedEmail


class RefreshRequest(BaseModel):
    """Refresh token in the body, for clients that do not use cookies."""

    refresh_token: str | None = None


class TokenPair(BaseModel):
    """Access and refresh tokens issued together at login or refresh."""

    access_token: str
    refresh_token: str
    user_id: str


class MessageResponse(BaseModel):
    message: str


class AddressFields(BaseModel):
    """Address columns; all optional so PATCH can merge."""

    apartment_number: str | None = Field(default=None, max_length=32)
    street: str | None = Field(default=None, max_length=255)
    city: str | None = Field(default=None, max_length=255)
    state: str | None = Field(default=None, max_length=255)
    country: str | None = Field(default=None, max_length=255)
    postal_code: str | None = Field(default=None, max_length=32)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class AddressRead(AddressFields):
    model_config = ConfigDict(from_attributes=True)

    apartment_number: str
    street: str
    city: str
    country: str


class ProfileUpdate(BaseModel):
    """Fields a user may change on their own profile."""

    username: Username | None = None
    phone_number: str | None = Field(default=None, max_length=32)
    address: AddressFields | None = None


class UserRead(BaseModel):
    """User as returned to callers (never includes the password)."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    username: str
    role: UserRole
    phone_number: str | None = None
    email_is_verified: bool
    address: AddressRead | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CurrentUser(BaseModel):
    """Authenticated user (id, username, role) for dependency injection."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    role: UserRole
