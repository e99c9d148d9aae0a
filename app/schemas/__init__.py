"""Pydantic request/response schemas."""

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
from app.schemas.users import UserUpdateRequest, UsersListResponse

__all__ = [
    "AccountOut",
    "CurrentUser",
    "ForgotPasswordRequest",
    "LoginRequest",
    "LoginResponse",
    "MessageResponse",
    "ResetPasswordRequest",
    "SignupRequest",
    "SignupResponse",
    "UserUpdateRequest",
    "UsersListResponse",
]
