"""Single-row marker recording which account was elevated to first administrator."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer

from app.models.base import Base

BOOTSTRAP_ADMIN_ROW_ID = 1


class BootstrapAdmin(Base):
    """
    Inserted in the same transaction as the first account. The fixed primary
    key means a second concurrent first signup fails its insert on any
    database, instead of also becoming administrator.
    """

    __tablename__ = "bootstrap_admin"
    __table_args__ = (CheckConstraint(f"id = {BOOTSTRAP_ADMIN_ROW_ID}", name="single_row"),)

    id = Column(Integer, primary_key=True, autoincrement=False, default=BOOTSTRAP_ADMIN_ROW_ID)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
