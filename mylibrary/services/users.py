"""User persistence: lookups by unique key, create and update with uniqueness checks."""

from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mylibrary.models import Address, User

# Columns update_by_id may touch; anything else is a programming error.
UPDATABLE_FIELDS = frozenset(
    {
        "username",
        "phone_number",
        "role",
        "password",
        "email_is_verified",
        "refresh_token_hash",
    }
)

REQUIRED_ADDRESS_FIELDS = ("apartment_number", "street", "city", "country")


class UserNotFoundError(Exception):
    """Raised when no user matches the requested id or email."""

    def __init__(self, message: str = "User not found") -> None:
        self.message = message
        super().__init__(message)


class DuplicateAccountError(Exception):
    """Raised when a create or update would violate a uniqueness constraint."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DuplicateEmailError(DuplicateAccountError):
    def __init__(
        self, message: str = "The email address is already associated with an account."
    ) -> None:
        super().__init__(message)


class DuplicateUsernameError(DuplicateAccountError):
    def __init__(self, message: str = "The username is already taken.") -> None:
        super().__init__(message)


class UserStore:
    """
    Credential store over a SQLAlchemy session.

    Every mutating call commits on success and rolls back on failure, so a
    failed create leaves no partial row behind.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_email(self, email: str) -> User | None:
        return (
            self.session.query(User)
            .filter(User.email == email.strip().lower())
            .first()
        )

    def find_by_username(self, username: str) -> User | None:
        return self.session.query(User).filter(User.username == username).first()

    def find_by_id(self, user_id: str) -> User | None:
        return self.session.get(User, user_id)

    def get_by_id(self, user_id: str) -> User:
        """find_by_id, raising UserNotFoundError when absent."""
        user = self.find_by_id(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    def create(
        self,
        email: str,
        username: str,
        password_hash: str,
        role: str = "user",
    ) -> User:
        email = email.strip().lower()
        if self.find_by_email(email) is not None:
            raise DuplicateEmailError()
        if self.find_by_username(username) is not None:
            raise DuplicateUsernameError()
        user = User(
            email=email,
            username=username,
            password=password_hash,
            role=role,
        )
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent insert; the unique index decided.
            self.session.rollback()
            if self.find_by_email(email) is not None:
                raise DuplicateEmailError() from e
            raise DuplicateUsernameError() from e
        self.session.refresh(user)
        return user

    def update_by_id(self, user_id: str, **fields: Any) -> User:
        """Set the given columns on one user. Raises UserNotFoundError if absent."""
        return self.update_with_address(user_id, fields)

    def upsert_address(self, user_id: str, fields: dict[str, Any]) -> User:
        """Create the user's address or merge the given fields into it."""
        return self.update_with_address(user_id, {}, fields)

    def update_with_address(
        self,
        user_id: str,
        fields: dict[str, Any],
        address_fields: dict[str, Any] | None = None,
    ) -> User:
        """
        Update user columns and create/merge the address in one commit.
        Everything is validated before the row is touched, so a rejected
        address leaves the other changes unsaved too.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        user = self.get_by_id(user_id)
        new_username = fields.get("username")
        username_changed = new_username is not None and new_username != user.username
        if username_changed and self.find_by_username(new_username) is not None:
            raise DuplicateUsernameError()
        if address_fields:
            _check_address(user.address is None, address_fields)

        for name, value in fields.items():
            setattr(user, name, value)
        if address_fields:
            if user.address is None:
                user.address = Address(**address_fields)
            else:
                for name, value in address_fields.items():
                    setattr(user.address, name, value)
        return self._commit(user, username_changed)

    def _commit(self, user: User, username_changed: bool) -> User:
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            if username_changed:
                raise DuplicateUsernameError() from e
            raise
        self.session.refresh(user)
        return user


def _check_address(is_new: bool, fields: dict[str, Any]) -> None:
    """New addresses need every required column; merges may not null one out."""
    if is_new:
        missing = [name for name in REQUIRED_ADDRESS_FIELDS if not fields.get(name)]
        if missing:
            raise ValueError(f"New address requires: {', '.join(missing)}")
        return
    cleared = [
        name for name in REQUIRED_ADDRESS_FIELDS if name in fields and not fields[name]
    ]
    if cleared:
        raise ValueError(f"Address fields cannot be empty: {', '.join(cleared)}")
