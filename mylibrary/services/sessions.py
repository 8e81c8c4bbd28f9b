"""
Account and session lifecycle: register, email verification, login, refresh, logout.

Nothing is kept between calls. Durable state lives in the UserStore (including
the digest of the current refresh token) and in the signed tokens themselves.
"""

import hashlib
import hmac
from datetime import timedelta
from functools import lru_cache

from mylibrary.core.security import (
    ACCESS_TOKEN,
    EMAIL_VERIFICATION_TOKEN,
    REFRESH_TOKEN,
    TokenInvalidError,
    TokenIssuer,
    hash_password,
    verify_password,
)
from mylibrary.schemas.auth import ProfileUpdate, TokenPair, UserRead
from mylibrary.services.mailer import (
    VERIFICATION_SUBJECT,
    Mailer,
    build_verification_link,
    render_verification_email,
)
from mylibrary.services.users import UserNotFoundError, UserStore


class InvalidCredentialsError(Exception):
    """Unknown email or wrong password. Deliberately does not say which."""

    def __init__(self, message: str = "Invalid email or password.") -> None:
        self.message = message
        super().__init__(message)


class EmailNotVerifiedError(InvalidCredentialsError):
    """Correct credentials, but the account email has not been verified yet."""

    def __init__(self, message: str = "Email address has not been verified.") -> None:
        super().__init__(message)


def refresh_token_digest(token: str) -> str:
    """SHA-256 hex digest stored in place of the raw refresh token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Verified against on unknown emails so both login failures cost the same.
    return hash_password("not-a-real-password")


class SessionManager:
    def __init__(
        self,
        store: UserStore,
        issuer: TokenIssuer,
        mailer: Mailer,
        *,
        access_ttl: timedelta,
        refresh_ttl: timedelta,
        verification_ttl: timedelta,
        api_url: str,
        verify_email_path: str,
        require_verified_email: bool = False,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.mailer = mailer
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.verification_ttl = verification_ttl
        self.api_url = api_url
        self.verify_email_path = verify_email_path
        self.require_verified_email = require_verified_email

    def register(self, email: str, username: str, password: str) -> UserRead:
        """Create an account. Raises DuplicateEmailError / DuplicateUsernameError."""
        user = self.store.create(
            email=email,
            username=username,
            password_hash=hash_password(password),
        )
        return UserRead.model_validate(user)

    def request_email_verification(self, email: str) -> str:
        """
        Issue a verification token for `email` and mail the link to it.
        Raises UserNotFoundError, or DeliveryError if the email cannot be sent.
        Returns the issued token.
        """
        user = self.store.find_by_email(email)
        if user is None:
            raise UserNotFoundError()
        token = self.issuer.issue(
            {"email": user.email, "type": EMAIL_VERIFICATION_TOKEN},
            self.verification_ttl,
        )
        link = build_verification_link(self.api_url, self.verify_email_path, token)
        self.mailer.send(user.email, VERIFICATION_SUBJECT, render_verification_email(link))
        return token

    def verify_email(self, token: str) -> UserRead:
        """Mark the token's account as verified. Re-verifying is harmless."""
        claims = self.issuer.verify_purpose(token, EMAIL_VERIFICATION_TOKEN)
        email = claims.get("email")
        user = self.store.find_by_email(email) if isinstance(email, str) else None
        if user is None:
            raise TokenInvalidError()
        user = self.store.update_by_id(user.id, email_is_verified=True)
        return UserRead.model_validate(user)

    def login(self, email: str, password: str) -> TokenPair:
        user = self.store.find_by_email(email)
        if user is None:
            verify_password(password, _dummy_hash())
            raise InvalidCredentialsError()
        if not verify_password(password, user.password):
            raise InvalidCredentialsError()
        if self.require_verified_email and not user.email_is_verified:
            raise EmailNotVerifiedError()
        return self._issue_pair(user.id, user.role)

    def refresh(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair. The token must match the one
        stored at the last login/refresh, so logged-out or already rotated
        tokens are rejected even while their signature is still valid.
        """
        claims = self.issuer.verify_purpose(refresh_token, REFRESH_TOKEN)
        user_id = claims.get("sub")
        user = self.store.find_by_id(user_id) if isinstance(user_id, str) else None
        if user is None or user.refresh_token_hash is None:
            raise TokenInvalidError()
        if not hmac.compare_digest(
            user.refresh_token_hash, refresh_token_digest(refresh_token)
        ):
            raise TokenInvalidError()
        return self._issue_pair(user.id, user.role)

    def logout(self, user_id: str) -> None:
        """Forget the stored refresh token. Unknown users are a no-op."""
        if self.store.find_by_id(user_id) is None:
            return
        self.store.update_by_id(user_id, refresh_token_hash=None)

    def get_profile(self, user_id: str) -> UserRead:
        return UserRead.model_validate(self.store.get_by_id(user_id))

    def update_profile(self, user_id: str, changes: ProfileUpdate) -> UserRead:
        """Apply username/phone changes and merge the address in one commit."""
        fields = changes.model_dump(exclude_unset=True, exclude={"address"})
        if fields.get("username") is None:
            fields.pop("username", None)
        address_fields = (
            changes.address.model_dump(exclude_unset=True)
            if changes.address is not None
            else None
        )
        user = self.store.update_with_address(user_id, fields, address_fields)
        return UserRead.model_validate(user)

    def _issue_pair(self, user_id: str, role: str) -> TokenPair:
        access_token = self.issuer.issue(
            {"sub": user_id, "role": role, "type": ACCESS_TOKEN},
            self.access_ttl,
        )
        refresh_token = self.issuer.issue(
            {"sub": user_id, "type": REFRESH_TOKEN},
            self.refresh_ttl,
        )
        self.store.update_by_id(
            user_id, refresh_token_hash=refresh_token_digest(refresh_token)
        )
        return TokenPair(
            access_token=access_token, refresh_token=refresh_token, user_id=user_id
        )
