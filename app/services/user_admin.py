"""Administrative account listing and partial updates."""

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import transaction
from app.core.security import (
    PASSWORD_MAX_LEN,
    RESET_PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    hash_password,
)
from app.models import ACCOUNT_STATUSES, User
from app.services.credential_store import CredentialStore
from app.services.errors import ConflictError, NotFoundError, StoreError, ValidationError

logger = logging.getLogger(__name__)


def _non_empty(field: str, max_len: int | None = None) -> Callable[[Any], str]:
    def setter(value: Any) -> str:
        text = str(value).strip()
        if not text:
            raise ValidationError(f"{field} cannot be empty.")
        if max_len is not None and len(text) > max_len:
            raise ValidationError(f"{field} must be at most {max_len} characters long.")
        return text

    return setter


def _role_id(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError("Role ID must be an integer.") from e


def _status(value: Any) -> str:
    if value not in ACCOUNT_STATUSES:
        raise ValidationError(f"Status must be one of: {', '.join(ACCOUNT_STATUSES)}.")
    return value


def _password_hash(value: Any) -> str:
    if not isinstance(value, str) or len(value) < RESET_PASSWORD_MIN_LEN:
        raise ValidationError(
            f"Password must be at least {RESET_PASSWORD_MIN_LEN} characters long."
        )
    if len(value) > PASSWORD_MAX_LEN:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_LEN} characters long.")
    return hash_password(value)


# field name -> (column, setter). Nothing outside this table can be updated.
UPDATABLE_FIELDS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "username": ("username", _non_empty("Username", USERNAME_MAX_LEN)),
    "email": ("email", _non_empty("Email")),
    "full_name": ("full_name", _non_empty("Full name")),
    "role_id": ("role_id", _role_id),
    "status": ("status", _status),
    "password": ("password_hash", _password_hash),
}


class AccountUpdate:
    """Collects column changes for one account from a fixed set of optional fields."""

    def __init__(self) -> None:
        self._changes: dict[str, Any] = {}

    @classmethod
    def from_fields(cls, fields: dict[str, Any]) -> "AccountUpdate":
        update = cls()
        for name, value in fields.items():
            if value is not None:
                update.set(name, value)
        return update

    def set(self, field: str, value: Any) -> "AccountUpdate":
        if field not in UPDATABLE_FIELDS:
            raise ValidationError(f"Field '{field}' cannot be updated.")
        column, setter = UPDATABLE_FIELDS[field]
        self._changes[column] = setter(value)
        return self

    @property
    def changes(self) -> dict[str, Any]:
        return dict(self._changes)

    def __bool__(self) -> bool:
        return bool(self._changes)


def list_users(session: Session) -> list[User]:
    try:
        users = CredentialStore(session).list_accounts()
    except SQLAlchemyError as e:
        logger.exception("Store error while listing users")
        raise StoreError("Failed to fetch users from database.") from e
    return users


def update_user(session: Session, user_id: int, update: AccountUpdate) -> User:
    """
    Apply `update` to one account.

    Store errors are reported with their detail: this path is admin-only.
    """
    if not update:
        raise ValidationError("No fields provided for update.")
    store = CredentialStore(session)
    changes = update.changes
    try:
        with transaction(session):
            user = store.get_by_id(user_id)
            if user is None:
                raise NotFoundError()
            if "role_id" in changes and not store.role_exists(changes["role_id"]):
                raise ValidationError("Unknown role ID.")
            store.update_fields(user, changes)
        session.refresh(user)
    except IntegrityError as e:
        logger.warning("User update rejected by constraint", extra={"user_id": user_id})
        raise ConflictError(f"Update conflicts with an existing user: {e.orig}") from e
    except SQLAlchemyError as e:
        logger.exception("Store error during user update", extra={"user_id": user_id})
        raise StoreError(f"Database error during user update: {e}") from e

    logger.info(
        "User updated",
        extra={"user_id": user_id, "fields": sorted(c for c in changes if c != "password_hash")},
    )
    return user
