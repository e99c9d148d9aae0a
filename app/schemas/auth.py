"""Request/response schemas for auth endpoints. Wire names are camelCase."""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SignupRequest(CamelModel):
    """New account details. Presence and length are checked by the service (400, not 422)."""

    username: str | None = None
    email: str | None = None
    password: str | None = None
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    role_id: int | None = Field(default=None, alias="roleId")


class SignupResponse(CamelModel):
    message: str
    user_id: int = Field(..., alias="userId")


class LoginRequest(CamelModel):
    """Credentials for login; identifier is a username or email depending on deployment."""

    identifier: str | None = Field(
        default=None,
        validation_alias=AliasChoices("identifier", "email", "username"),
        description="Username or email",
    )
    password: str | None = None


class AccountOut(CamelModel):
    """Client-facing identity (no password hash)."""

    id: int
    username: str
    full_name: str = Field(..., alias="fullName")
    email: str | None = None
    role_id: int = Field(..., alias="roleId")
    status: str

    @classmethod
    def from_account(cls, account: Any) -> "AccountOut":
        """Build from an ORM User or an AccountView."""
        return cls(
            id=account.id,
            username=account.username,
            full_name=account.full_name,
            email=account.email,
            role_id=account.role_id,
            status=account.status,
        )


class LoginResponse(CamelModel):
    """Signed session token plus its absolute expiry in epoch milliseconds."""

    message: str = "Login successful."
    token: str = Field(..., description="JWT session token")
    expires_at: int = Field(..., alias="expiresAt", description="Expiry, epoch milliseconds")
    user: AccountOut


class ForgotPasswordRequest(CamelModel):
    email: str | None = None


class ResetPasswordRequest(CamelModel):
    token: str | None = None
    new_password: str | None = Field(default=None, alias="newPassword")


class MessageResponse(BaseModel):
    message: str


class CurrentUser(CamelModel):
    """Authenticated caller, resolved from the bearer token."""

    id: int
    username: str
    email: str | None = None
    role_id: int = Field(..., alias="roleId")
    is_admin: bool = Field(default=False, alias="isAdmin")
