"""Auth endpoints (register, email verification, login, refresh, logout, profile) and auth dependencies."""

import logging
from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, HTTPException, Query, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from mylibrary.api.deps import get_session_manager, get_token_issuer, get_user_store
from mylibrary.core.config import get_settings
from mylibrary.core.security import (
    ACCESS_TOKEN,
    TokenExpiredError,
    TokenInvalidError,
    TokenIssuer,
)
from mylibrary.schemas.auth import (
    CurrentUser,
    EmailVerificationRequest,
    LoginRequest,
    MessageResponse,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserRead,
)
from mylibrary.services.mailer import DeliveryError
from mylibrary.services.sessions import (
    EmailNotVerifiedError,
    InvalidCredentialsError,
    SessionManager,
)
from mylibrary.services.users import (
    DuplicateAccountError,
    UserNotFoundError,
    UserStore,
)

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

VERIFICATION_REQUESTED_MESSAGE = (
    "If an account exists for this email, a verification link has been sent."
)


def _cookie_options() -> dict:
    is_prod = get_settings().APP_ENV == "prod"
    return {
        "httponly": True,
        "secure": is_prod,
        "samesite": "none" if is_prod else "lax",
        "path": "/",
    }


def _set_auth_cookies(response: Response, tokens: TokenPair) -> None:
    settings = get_settings()
    options = _cookie_options()
    response.set_cookie(
        ACCESS_COOKIE,
        tokens.access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        **options,
    )
    response.set_cookie(
        REFRESH_COOKIE,
        tokens.refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_MINUTES * 60,
        **options,
    )


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    store: Annotated[UserStore, Depends(get_user_store)],
    access_cookie: Annotated[str | None, Cookie(alias=ACCESS_COOKIE)] = None,
) -> CurrentUser:
    """
    Dependency: require a valid access token, from the Authorization header or
    the accessToken cookie, and return the current user. Raises 401 otherwise.
    """
    token = credentials.credentials if credentials is not None else access_cookie
    if not token:
        raise _unauthorized("Not authenticated")
    try:
        claims = issuer.verify_purpose(token, ACCESS_TOKEN)
    except TokenInvalidError:
        raise _unauthorized("Invalid or expired token")
    sub = claims.get("sub")
    user = store.find_by_id(sub) if isinstance(sub, str) else None
    if user is None:
        raise _unauthorized("Invalid token payload")
    return CurrentUser.model_validate(user)


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require authenticated user with role 'admin'. Raises 403 for non-admin."""
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> UserRead:
    """Create an account. Email verification is a separate, explicit step."""
    try:
        user = manager.register(body.email, body.username, body.password)
    except DuplicateAccountError as e:
        logger.info("Registration rejected", extra={"reason": e.message})
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    logger.info("User registered", extra={"user_id": user.id})
    return user


@router.post(
    "/verify-email/request",
    response_model=MessageResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
def request_email_verification(
    body: EmailVerificationRequest,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> MessageResponse:
    """
    Send a verification link. Answers the same way whether or not the email
    belongs to an account.
    """
    try:
        manager.request_email_verification(body.email)
    except UserNotFoundError:
        logger.info("Verification requested for unknown email")
    except DeliveryError as e:
        logger.exception("Verification email delivery failed")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message) from e
    return MessageResponse(message=VERIFICATION_REQUESTED_MESSAGE)


@router.get("/verify-email", response_model=MessageResponse)
def verify_email(
    token: Annotated[str, Query(min_length=1)],
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> MessageResponse:
    """Target of the link in the verification email."""
    try:
        user = manager.verify_email(token)
    except TokenExpiredError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except TokenInvalidError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    logger.info("Email verified", extra={"user_id": user.id})
    return MessageResponse(message="Email verified successfully")


@router.post("/login", response_model=MessageResponse)
def login(
    body: LoginRequest,
    response: Response,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> MessageResponse:
    """
    Authenticate with email and password. The access and refresh tokens are
    set as httpOnly cookies (accessToken, refreshToken).
    """
    try:
        tokens = manager.login(body.email, body.password)
    except EmailNotVerifiedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message) from e
    except InvalidCredentialsError as e:
        logger.info("Login failed")
        raise _unauthorized(e.message) from e
    _set_auth_cookies(response, tokens)
    logger.info("Login successful", extra={"user_id": tokens.user_id})
    return MessageResponse(message="Login successful")


@router.post("/refresh-tokens", response_model=MessageResponse)
def refresh_tokens(
    response: Response,
    manager: Annotated[SessionManager, Depends(get_session_manager)],
    body: RefreshRequest | None = None,
    refresh_cookie: Annotated[str | None, Cookie(alias=REFRESH_COOKIE)] = None,
) -> MessageResponse:
    """Rotate the token pair using the refresh token (cookie or JSON body)."""
    token = (body.refresh_token if body is not None else None) or refresh_cookie
    if not token:
        raise _unauthorized("Refresh token is required")
    try:
        tokens = manager.refresh(token)
    except TokenInvalidError as e:
        logger.info("Refresh rejected", extra={"reason": e.message})
        raise _unauthorized(e.message) from e
    _set_auth_cookies(response, tokens)
    return MessageResponse(message="Tokens refreshed")


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> MessageResponse:
    """Invalidate the stored refresh token and clear the auth cookies."""
    manager.logout(current_user.id)
    options = _cookie_options()
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, **options)
    logger.info("Logout", extra={"user_id": current_user.id})
    return MessageResponse(message="Logout successful")


@router.get("/profile", response_model=UserRead)
def profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> UserRead:
    try:
        return manager.get_profile(current_user.id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e


@router.patch("/update-profile", response_model=UserRead)
def update_profile(
    body: ProfileUpdate,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> UserRead:
    """Change username, phone number and address of the current user."""
    try:
        return manager.update_profile(current_user.id, body)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except DuplicateAccountError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
        ) from e
