"""FastAPI dependencies that build services from settings and the request's DB session."""

import logging
from datetime import timedelta
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from mylibrary.core.config import get_settings
from mylibrary.core.database import get_db
from mylibrary.core.security import ConfigurationError, TokenIssuer
from mylibrary.services.books import BookStore
from mylibrary.services.mailer import Mailer, SmtpMailer
from mylibrary.services.sessions import SessionManager
from mylibrary.services.users import UserStore

logger = logging.getLogger(__name__)

VERIFY_EMAIL_ROUTE = "/auth/verify-email"


@lru_cache
def _build_token_issuer() -> TokenIssuer:
    settings = get_settings()
    secret = settings.JWT_SECRET.get_secret_value() if settings.JWT_SECRET else None
    return TokenIssuer(secret, algorithm=settings.JWT_ALGORITHM)


def get_token_issuer() -> TokenIssuer:
    """Process-wide issuer; 503 while no signing secret is configured."""
    try:
        return _build_token_issuer()
    except ConfigurationError as e:
        logger.error("Token issuer unavailable", extra={"reason": e.message})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication is not configured.",
        ) from e


def get_mailer() -> Mailer:
    return SmtpMailer.from_settings(get_settings())


def get_user_store(db: Annotated[Session, Depends(get_db)]) -> UserStore:
    return UserStore(db)


def get_book_store(db: Annotated[Session, Depends(get_db)]) -> BookStore:
    return BookStore(db)


def get_session_manager(
    store: Annotated[UserStore, Depends(get_user_store)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    mailer: Annotated[Mailer, Depends(get_mailer)],
) -> SessionManager:
    settings = get_settings()
    return SessionManager(
        store,
        issuer,
        mailer,
        access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        refresh_ttl=timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
        verification_ttl=timedelta(minutes=settings.EMAIL_VERIFICATION_EXPIRE_MINUTES),
        api_url=settings.API_URL,
        verify_email_path=f"{settings.API_V1_PREFIX}{VERIFY_EMAIL_ROUTE}",
        require_verified_email=settings.REQUIRE_VERIFIED_EMAIL,
    )
