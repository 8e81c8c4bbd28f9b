"""Outgoing email: SMTP delivery and the account verification message."""

from __future__ import annotations

import html
import logging
import smtplib
from email.message import EmailMessage
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlencode

if TYPE_CHECKING:
    from mylibrary.core.config import Settings

logger = logging.getLogger(__name__)

VERIFICATION_SUBJECT = "Email Verification"


class DeliveryError(Exception):
    """Raised when an email could not be handed to the mail server."""

    def __init__(self, message: str = "Error sending email") -> None:
        self.message = message
        super().__init__(message)


class Mailer(Protocol):
    def send(self, to: str, subject: str, html_body: str) -> None:
        """Deliver one HTML email. Raises DeliveryError on failure."""
        ...


class SmtpMailer:
    """Mailer over smtplib; one connection per message."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> SmtpMailer:
        password = (
            settings.SMTP_PASSWORD.get_secret_value()
            if settings.SMTP_PASSWORD is not None
            else None
        )
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            sender=settings.SMTP_FROM,
            username=settings.SMTP_USERNAME,
            password=password,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.SMTP_TIMEOUT_SEC,
        )

    def send(self, to: str, subject: str, html_body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(html_body, subtype="html")
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError() from e
        logger.debug("Email handed to %s:%s", self.host, self.port)


def build_verification_link(base_url: str, path: str, token: str) -> str:
    """Absolute URL of the verify-email endpoint with the token as query param."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}?{urlencode({'token': token})}"


def render_email(content: str) -> str:
    """Wrap HTML content in the shared email body."""
    return (
        '<body style="font-family: Arial, sans-serif; text-align: center;">'
        f"{content}"
        "</body>"
    )


def render_verification_email(link: str) -> str:
    href = html.escape(link, quote=True)
    return render_email(
        "<h1>Welcome to MyLibrary!</h1>"
        "<p>Please click the button below to verify your email address</p>"
        f'<a href="{href}" style="background-color: #007bff; color: white; '
        'padding: 10px 20px; border-radius: 5px; text-decoration: none;">'
        "Verify Email"
        "</a>"
    )
