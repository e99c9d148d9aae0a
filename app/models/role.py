"""ORM model for roles referenced by accounts."""

from sqlalchemy import Column, Integer, String

from app.models.base import Base


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
