"""Signup, login and password-reset endpoints, plus auth dependencies (get_current_user, require_admin)."""

from functools import lru_cache
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import get_auth_config, get_settings
from app.core.database import get_db
from app.core.security import TokenIssuer
from app.schemas.auth import (
    AccountOut,
    CurrentUser,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
)
from app.services.auth_service import AuthService
from app.services.credential_store import CredentialStore
from app.services.errors import AuthenticationError, PermissionDeniedError, SignatureError
from app.services.notifications import NotificationDispatcher

router = APIRouter()
security = HTTPBearer(auto_error=False)


@lru_cache
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(get_auth_config())


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher.from_settings(get_settings())


def get_auth_service(
    db: Annotated[Session, Depends(get_db)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
    dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
) -> AuthService:
    return AuthService(db, get_auth_config(), issuer, dispatcher)


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup(
    body: SignupRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> SignupResponse:
    """Register an account. The first account ever created becomes the System Administrator."""
    result = service.signup(
        username=body.username,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role_id=body.role_id,
    )
    return SignupResponse(message=result.message, user_id=result.user_id)


@router.post("/login", response_model=LoginResponse)
def login(
    body: LoginRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> LoginResponse:
    """
    Authenticate and return a JWT session token with its expiry (epoch ms).
    Include the token in the Authorization header as: Bearer <token>
    """
    result = service.login(body.identifier, body.password)
    return LoginResponse(
        token=result.token,
        expires_at=result.expires_at,
        user=AccountOut.from_account(result.user),
    )


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    body: ForgotPasswordRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Email a reset link if the address is registered; the response is the same either way."""
    return MessageResponse(message=service.request_password_reset(body.email))


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    body: ResetPasswordRequest,
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Redeem a reset token from an emailed link and set a new password."""
    return MessageResponse(message=service.complete_password_reset(body.token, body.new_password))


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
    issuer: Annotated[TokenIssuer, Depends(get_token_issuer)],
) -> CurrentUser:
    """Dependency: require valid Bearer JWT and return the current user. Raises 401 if missing or invalid."""
    if not get_settings().AUTH_ENABLED:
        return CurrentUser(id=0, username="dev-admin", role_id=0, is_admin=True)
    if credentials is None:
        raise AuthenticationError("Not authenticated.")
    payload = issuer.verify(credentials.credentials)
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise SignatureError("Invalid token payload.") from e

    store = CredentialStore(db)
    user = store.get_by_id(user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Invalid or expired token.")
    admin_role_id = store.find_role_id(get_auth_config().admin_role_name)
    return CurrentUser(
        id=user.id,
        username=user.username,
        email=user.email,
        role_id=user.role_id,
        is_admin=admin_role_id is not None and user.role_id == admin_role_id,
    )


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require authenticated user with the administrator role. Raises 403 otherwise."""
    if not current_user.is_admin:
        raise PermissionDeniedError()
    return current_user


@router.get("/me", response_model=CurrentUser)
def me(current_user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
    return current_user
