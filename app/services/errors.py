"""Error taxonomy for the credential lifecycle, each mapped to an HTTP status."""

from fastapi import status


class AuthServiceError(Exception):
    """
    Base class for auth/user-admin failures surfaced to clients.

    `message` is the single-sentence, user-facing text returned as
    {"error": message}; server-side detail belongs in the logs, not here.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Server error. Please try again later."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AuthServiceError):
    """Malformed or missing input; the client can fix it (400)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request."


class ConflictError(AuthServiceError):
    """A unique field (email, username) is already taken (409)."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "User with that email already exists."


class AuthenticationError(AuthServiceError):
    """Bad credentials or token. Never says which part was wrong (401)."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials."


class SignatureError(AuthenticationError):
    """Session token failed signature or structure checks."""

    default_message = "Invalid token."


class ExpiredError(AuthenticationError):
    """Session token is past its exp claim."""

    default_message = "Token has expired."


class AccountDisabledError(AuthServiceError):
    """Account exists but its status is Inactive (403)."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "This account is inactive. Contact an administrator."


class PermissionDeniedError(AuthServiceError):
    """Authenticated, but the role may not perform this action (403)."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Admin access required."


class NotFoundError(AuthServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found."


class InvalidOrExpiredError(AuthServiceError):
    """Reset token is wrong or expired; the two cases are deliberately merged (400)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Password reset link is invalid or has expired."


class DeliveryError(AuthServiceError):
    """Outbound email could not be delivered (500)."""

    default_message = "Email service failed. The reset link could not be delivered."


class StoreError(AuthServiceError):
    """Unexpected persistence failure (500)."""

    default_message = "Server error. Please try again later."
