"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.bootstrap import BOOTSTRAP_ADMIN_ROW_ID, BootstrapAdmin
from app.models.role import Role
from app.models.user import ACCOUNT_STATUSES, STATUS_ACTIVE, STATUS_INACTIVE, User

__all__ = [
    "ACCOUNT_STATUSES",
    "BOOTSTRAP_ADMIN_ROW_ID",
    "Base",
    "BootstrapAdmin",
    "Role",
    "STATUS_ACTIVE",
    "STATUS_INACTIVE",
    "User",
]
