"""Credential store gateway: parameterized reads/writes on the users and roles tables.

Owns no auth logic. Callers decide the transaction boundary (see
app.core.database.transaction); nothing here commits.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from app.models import BOOTSTRAP_ADMIN_ROW_ID, BootstrapAdmin, Role, User

# Arbitrary, stable key for the "first administrator" advisory lock.
BOOTSTRAP_ADMIN_LOCK_KEY = 741_001


class CredentialStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def lock_bootstrap(self) -> None:
        """
        Serialize concurrent signups on PostgreSQL until the current transaction ends.

        Only narrows the window there; claim_bootstrap is what guarantees a
        single administrator on every database.
        """
        bind = self.session.get_bind()
        if bind.dialect.name == "postgresql":
            self.session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": BOOTSTRAP_ADMIN_LOCK_KEY},
            )

    def claim_bootstrap(self, user_id: int) -> None:
        """
        Insert the single bootstrap_admin row for user_id and flush.

        Raises IntegrityError if another transaction already claimed it.
        """
        self.session.add(BootstrapAdmin(id=BOOTSTRAP_ADMIN_ROW_ID, user_id=user_id))
        self.session.flush()

    def count_accounts(self) -> int:
        return self.session.scalar(select(func.count()).select_from(User)) or 0

    def find_role_id(self, role_name: str) -> int | None:
        return self.session.scalar(select(Role.id).where(Role.name == role_name))

    def role_exists(self, role_id: int) -> bool:
        return self.session.get(Role, role_id) is not None

    def get_by_id(self, user_id: int) -> User | None:
        return self.session.get(User, user_id)

    def get_by_email(self, email: str) -> User | None:
        return self.session.scalars(select(User).where(User.email == email)).first()

    def get_by_username(self, username: str) -> User | None:
        return self.session.scalars(select(User).where(User.username == username)).first()

    def get_by_identifier(self, field: str, value: str) -> User | None:
        """Look an account up by the deployment's login column ("username" or "email")."""
        if field == "username":
            return self.get_by_username(value)
        if field == "email":
            return self.get_by_email(value)
        raise ValueError(f"Unsupported login identifier: {field}")

    def insert_account(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        full_name: str,
        role_id: int,
    ) -> User:
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            role_id=role_id,
        )
        self.session.add(user)
        self.session.flush()
        return user

    def set_reset_token(self, user: User, token: str, expires_at: datetime) -> None:
        """Store a reset token, replacing any earlier one."""
        user.reset_password_token = token
        user.reset_password_expires = expires_at
        self.session.flush()

    def find_by_live_reset_token(self, token: str, now: datetime) -> User | None:
        """Return the account holding `token`, only if it expires strictly after `now`."""
        return self.session.scalars(
            select(User).where(
                User.reset_password_token == token,
                User.reset_password_expires > now,
            )
        ).first()

    def replace_password(self, user: User, password_hash: str) -> None:
        """Set a new hash and consume the reset token in the same UPDATE."""
        user.password_hash = password_hash
        user.reset_password_token = None
        user.reset_password_expires = None
        self.session.flush()

    def list_accounts(self) -> list[User]:
        return list(self.session.scalars(select(User).order_by(User.full_name, User.id)))

    def update_fields(self, user: User, changes: dict[str, Any]) -> User:
        for column, value in changes.items():
            setattr(user, column, value)
        self.session.flush()
        return user
