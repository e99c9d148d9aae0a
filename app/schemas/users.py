"""Schemas for administrative user management."""

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.auth import AccountOut


class UsersListResponse(BaseModel):
    users: list[AccountOut]


class UserUpdateRequest(BaseModel):
    """Partial update; only provided fields are applied."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    username: str | None = None
    email: str | None = None
    full_name: str | None = Field(default=None, alias="fullName")
    role_id: int | None = Field(default=None, alias="roleId")
    status: str | None = None
    password: str | None = None
