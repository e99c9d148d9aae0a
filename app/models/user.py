"""ORM model for application accounts (credentials, role and status)."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, func

from app.models.base import Base

STATUS_ACTIVE = "Active"
STATUS_INACTIVE = "Inactive"
ACCOUNT_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE)


class User(Base):
    """
    User account for signup/login, role-based access and password reset.

    reset_password_token / reset_password_expires hold at most one live
    reset token; a new issuance overwrites them and a successful reset
    clears both.
    """

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("status IN ('Active', 'Inactive')", name="status"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=True, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(511), nullable=False, default="")
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    status = Column(String(16), nullable=False, default=STATUS_ACTIVE)
    reset_password_token = Column(String(128), nullable=True, index=True)
    reset_password_expires = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE
