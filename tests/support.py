"""Shared helpers for tests: database reset, a recording mailer, a wired SessionManager."""

from datetime import timedelta

from sqlalchemy.orm import Session

from mylibrary.core.database import engine
from mylibrary.core.security import TokenIssuer
from mylibrary.models import Base
from mylibrary.services.mailer import DeliveryError
from mylibrary.services.sessions import SessionManager
from mylibrary.services.users import UserStore

TEST_SECRET = "test-secret-not-for-production"


def reset_database() -> None:
    """Drop and recreate every table on the in-memory engine."""
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)


class RecordingMailer:
    """Mailer that keeps sent messages in memory, or fails every send."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str, str]] = []

    def send(self, to: str, subject: str, html_body: str) -> None:
        if self.fail:
            raise DeliveryError()
        self.sent.append((to, subject, html_body))


def make_manager(
    session: Session,
    mailer: RecordingMailer | None = None,
    require_verified_email: bool = False,
) -> SessionManager:
    return SessionManager(
        UserStore(session),
        TokenIssuer(TEST_SECRET),
        mailer if mailer is not None else RecordingMailer(),
        access_ttl=timedelta(hours=24),
        refresh_ttl=timedelta(days=7),
        verification_ttl=timedelta(hours=1),
        api_url="http://testserver",
        verify_email_path="/api/v1/auth/verify-email",
        require_verified_email=require_verified_email,
    )
