"""Password hashing and JWT issuance/verification for authentication."""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

# Min/max lengths for username and password validation.
USERNAME_MIN_LEN = 1
USERNAME_MAX_LEN = 255
PASSWORD_MIN_LEN = 5
PASSWORD_MAX_LEN = 128

# Token purposes, carried in the "type" claim.
ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"
EMAIL_VERIFICATION_TOKEN = "email_verification"

# Claims added by TokenIssuer.issue and stripped again by verify.
_REGISTERED_CLAIMS = ("exp", "iat", "jti")

# argon2id with library defaults (memory-hard; 64 MiB, 3 iterations).
_hasher = PasswordHasher()


class ConfigurationError(Exception):
    """Raised when a required setting (e.g. the JWT signing secret) is missing."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TokenInvalidError(Exception):
    """Raised when a token fails validation (signature, format, purpose)."""

    def __init__(self, message: str = "Invalid token") -> None:
        self.message = message
        super().__init__(message)


class TokenExpiredError(TokenInvalidError):
    """Raised when a token is well-formed and signed but past its expiry."""

    def __init__(self, message: str = "Token has expired") -> None:
        super().__init__(message)


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    return _hasher.hash(plain_password)


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    try:
        return _hasher.verify(hashed, plain_password)
    except (VerificationError, InvalidHashError, TypeError):
        return False


class TokenIssuer:
    """
    Creates and validates signed, time-limited JWTs.

    The signing secret is passed in explicitly; an empty secret is a
    ConfigurationError so a misconfigured process never signs tokens.
    """

    def __init__(self, secret: str | None, algorithm: str = "HS256") -> None:
        if not secret or not secret.strip():
            raise ConfigurationError("JWT_SECRET is not set; refusing to issue tokens.")
        self._secret = secret
        self._algorithm = algorithm

    def issue(self, claims: dict[str, Any], ttl: timedelta) -> str:
        """Sign claims with exp = now + ttl. Each token gets a unique jti."""
        now = datetime.now(UTC)
        payload: dict[str, Any] = dict(claims)
        payload.update(
            {
                "exp": now + ttl,
                "iat": now,
                "jti": uuid.uuid4().hex,
            }
        )
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> dict[str, Any]:
        """
        Decode and validate a token; return the claims passed to issue().
        Raises TokenExpiredError past expiry, TokenInvalidError otherwise.
        """
        if not token or not isinstance(token, str):
            raise TokenInvalidError()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except jwt.PyJWTError as e:
            raise TokenInvalidError() from e
        return {k: v for k, v in payload.items() if k not in _REGISTERED_CLAIMS}

    def verify_purpose(self, token: str, purpose: str) -> dict[str, Any]:
        """verify() plus a check that the token was issued for `purpose`."""
        claims = self.verify(token)
        if claims.get("type") != purpose:
            raise TokenInvalidError()
        return claims
