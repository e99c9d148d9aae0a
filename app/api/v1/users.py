"""Administrative user management: list, partial update, send reset link."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.v1.auth import get_auth_service, require_admin
from app.core.database import get_db
from app.schemas.auth import AccountOut, CurrentUser, MessageResponse
from app.schemas.users import UserUpdateRequest, UsersListResponse
from app.services.auth_service import AuthService
from app.services.user_admin import AccountUpdate, list_users, update_user

router = APIRouter()


@router.get("", response_model=UsersListResponse)
def get_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> UsersListResponse:
    """List all users ordered by full name (admin only)."""
    return UsersListResponse(users=[AccountOut.from_account(u) for u in list_users(db)])


@router.patch("/{user_id}", response_model=AccountOut)
def patch_user(
    user_id: int,
    body: UserUpdateRequest,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> AccountOut:
    """Update only the provided fields of one user (admin only)."""
    update = AccountUpdate.from_fields(body.model_dump(exclude_unset=True))
    return AccountOut.from_account(update_user(db, user_id, update))


@router.post("/{user_id}/send-reset-link", response_model=MessageResponse)
def send_reset_link(
    user_id: int,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    service: Annotated[AuthService, Depends(get_auth_service)],
) -> MessageResponse:
    """Issue a password-reset token for the user and email them the link (admin only)."""
    return MessageResponse(message=service.issue_password_reset(user_id=user_id))
