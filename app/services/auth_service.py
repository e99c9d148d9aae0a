"""Signup, login and password-reset orchestration.

Each public method runs against one request-scoped Session. Writes happen
inside app.core.database.transaction, so every failure path rolls back
before the error reaches the caller.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import AuthConfig
from app.core.database import transaction
from app.core.security import (
    PASSWORD_MAX_LEN,
    RESET_PASSWORD_MIN_LEN,
    SIGNUP_PASSWORD_MIN_LEN,
    USERNAME_MAX_LEN,
    Clock,
    TokenIssuer,
    generate_reset_token,
    hash_password,
    reset_token_expiry,
    utc_now,
    verify_password,
)
from app.models import User
from app.services.credential_store import CredentialStore
from app.services.errors import (
    AccountDisabledError,
    AuthenticationError,
    AuthServiceError,
    ConflictError,
    DeliveryError,
    InvalidOrExpiredError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from app.services.notifications import NotificationDispatcher, build_reset_url, redact_email

logger = logging.getLogger(__name__)

BOOTSTRAP_ADMIN_MESSAGE = "Initial System Administrator account created successfully."
REGISTERED_MESSAGE = "User registered successfully."
SIGNUP_MISSING_FIELDS_MESSAGE = (
    "Please provide all required details (username, email, password, full name, and a role ID)."
)
SIGNUP_PASSWORD_MESSAGE = f"Password must be at least {SIGNUP_PASSWORD_MIN_LEN} characters long."
PASSWORD_TOO_LONG_MESSAGE = f"Password must be at most {PASSWORD_MAX_LEN} characters long."
USERNAME_TOO_LONG_MESSAGE = f"Username must be at most {USERNAME_MAX_LEN} characters long."
EMAIL_TAKEN_MESSAGE = "User with that email already exists."
USERNAME_TAKEN_MESSAGE = "User with that username already exists."
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials."
RESET_INPUT_MESSAGE = "Reset token and new password are required."
RESET_PASSWORD_MESSAGE = f"Password must be at least {RESET_PASSWORD_MIN_LEN} characters long."
RESET_DONE_MESSAGE = "Password has been reset successfully."
NO_EMAIL_MESSAGE = "User has no email address configured."
FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a reset link has been sent."


class _BootstrapClaimed(Exception):
    """Another transaction created the first administrator before this one committed."""


@dataclass(frozen=True)
class AccountView:
    """Client-facing projection of an account. Never carries the password hash."""

    id: int
    username: str
    full_name: str
    email: str | None
    role_id: int
    status: str

    @classmethod
    def from_user(cls, user: User) -> "AccountView":
        return cls(
            id=user.id,
            username=user.username,
            full_name=user.full_name,
            email=user.email,
            role_id=user.role_id,
            status=user.status,
        )


@dataclass(frozen=True)
class SignupResult:
    user_id: int
    bootstrap_admin: bool
    message: str


@dataclass(frozen=True)
class LoginResult:
    token: str
    expires_at: int
    user: AccountView


class AuthService:
    def __init__(
        self,
        session: Session,
        config: AuthConfig,
        issuer: TokenIssuer,
        dispatcher: NotificationDispatcher,
        clock: Clock = utc_now,
    ) -> None:
        self.session = session
        self.store = CredentialStore(session)
        self.config = config
        self.issuer = issuer
        self.dispatcher = dispatcher
        self.clock = clock

    def signup(
        self,
        *,
        username: str | None,
        email: str | None,
        password: str | None,
        first_name: str | None,
        last_name: str | None,
        role_id: int | None,
    ) -> SignupResult:
        """
        Create an account. The very first account is elevated to the
        administrator role regardless of the requested role.

        Two concurrent first signups cannot both be elevated: the loser of the
        bootstrap_admin claim is rolled back and registered again as a regular
        account with its requested role.
        """
        username = (username or "").strip()
        email = (email or "").strip()
        first_name = (first_name or "").strip()
        last_name = (last_name or "").strip()
        if not (username and email and password and first_name and last_name and role_id):
            raise ValidationError(SIGNUP_MISSING_FIELDS_MESSAGE)
        if len(username) > USERNAME_MAX_LEN:
            raise ValidationError(USERNAME_TOO_LONG_MESSAGE)
        if len(password) < SIGNUP_PASSWORD_MIN_LEN:
            raise ValidationError(SIGNUP_PASSWORD_MESSAGE)
        if len(password) > PASSWORD_MAX_LEN:
            raise ValidationError(PASSWORD_TOO_LONG_MESSAGE)

        fields = {
            "username": username,
            "email": email,
            "password_hash": hash_password(password),
            "full_name": f"{first_name} {last_name}",
        }
        try:
            user_id, resolved_role_id, bootstrap_admin = self._create_account(
                fields, role_id, allow_bootstrap=True
            )
        except _BootstrapClaimed:
            logger.info("First administrator already claimed; registering as a regular account")
            user_id, resolved_role_id, bootstrap_admin = self._create_account(
                fields, role_id, allow_bootstrap=False
            )

        if bootstrap_admin:
            logger.warning(
                "Bootstrap administrator created",
                extra={"user_id": user_id, "role_id": resolved_role_id},
            )
        else:
            logger.info("User registered", extra={"user_id": user_id, "role_id": resolved_role_id})
        return SignupResult(
            user_id=user_id,
            bootstrap_admin=bootstrap_admin,
            message=BOOTSTRAP_ADMIN_MESSAGE if bootstrap_admin else REGISTERED_MESSAGE,
        )

    def _create_account(
        self, fields: dict[str, str], role_id: int, *, allow_bootstrap: bool
    ) -> tuple[int, int, bool]:
        """Run one signup transaction. Returns (user_id, role_id, bootstrap_admin)."""
        try:
            with transaction(self.session):
                resolved_role_id = role_id
                bootstrap_admin = False
                if allow_bootstrap:
                    self.store.lock_bootstrap()
                    if self.store.count_accounts() == 0:
                        admin_role_id = self.store.find_role_id(self.config.admin_role_name)
                        if admin_role_id is not None:
                            resolved_role_id = admin_role_id
                            bootstrap_admin = True

                if self.store.get_by_email(fields["email"]) is not None:
                    raise ConflictError(EMAIL_TAKEN_MESSAGE)
                if self.store.get_by_username(fields["username"]) is not None:
                    raise ConflictError(USERNAME_TAKEN_MESSAGE)
                if not self.store.role_exists(resolved_role_id):
                    raise ValidationError("Unknown role ID.")

                user = self.store.insert_account(role_id=resolved_role_id, **fields)
                if bootstrap_admin:
                    try:
                        self.store.claim_bootstrap(user.id)
                    except IntegrityError as e:
                        raise _BootstrapClaimed() from e
                user_id = user.id
        except IntegrityError as e:
            # A concurrent signup took the email or username between check and insert.
            logger.warning("Signup rejected by unique constraint: %s", e.orig)
            raise ConflictError("User with that email or username already exists.") from e
        except SQLAlchemyError as e:
            logger.exception("Store error during signup")
            raise StoreError("Server error during registration.") from e
        return user_id, resolved_role_id, bootstrap_admin

    def login(self, identifier: str | None, password: str | None) -> LoginResult:
        """
        Authenticate and mint a session token.

        Unknown account and wrong password raise the same AuthenticationError.
        An Inactive account raises AccountDisabledError before the password
        is checked.
        """
        identifier = (identifier or "").strip()
        if not identifier or not password:
            raise ValidationError(f"{self.config.login_identifier.capitalize()} and password are required.")

        try:
            user = self.store.get_by_identifier(self.config.login_identifier, identifier)
            if user is None:
                logger.info("Login failed", extra={"reason": "unknown_account"})
                raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)
            if not user.is_active:
                logger.info("Login refused", extra={"user_id": user.id, "reason": "inactive"})
                raise AccountDisabledError()
            if not verify_password(password, user.password_hash):
                logger.info("Login failed", extra={"user_id": user.id, "reason": "bad_password"})
                raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)
            view = AccountView.from_user(user)
        except SQLAlchemyError as e:
            logger.exception("Store error during login")
            raise StoreError("Server error during login.") from e
        finally:
            # Read-only; end the implicit transaction either way.
            self.session.rollback()

        issued = self.issuer.issue(view)
        logger.info("Login succeeded", extra={"user_id": view.id})
        return LoginResult(token=issued.token, expires_at=issued.expires_at_ms, user=view)

    def issue_password_reset(self, *, user_id: int | None = None, email: str | None = None) -> str:
        """
        Persist a fresh reset token for the account, then email the link.

        Persist-then-notify: if delivery fails the token stays stored and
        valid, so resending is always safe. Returns the confirmation message.
        """
        if user_id is None and not email:
            raise ValidationError("A user ID or email address is required.")

        try:
            with transaction(self.session):
                user = (
                    self.store.get_by_id(user_id)
                    if user_id is not None
                    else self.store.get_by_email(email.strip())
                )
                if user is None:
                    raise NotFoundError()
                if not user.email:
                    raise ValidationError(NO_EMAIL_MESSAGE)
                token = generate_reset_token()
                expires_at = reset_token_expiry(
                    self.clock(), hours=self.config.reset_token_validity_hours
                )
                self.store.set_reset_token(user, token, expires_at)
                target_id = user.id
                target_email = user.email
        except SQLAlchemyError as e:
            logger.exception("Store error during password reset initiation")
            raise StoreError("Failed to initiate password reset due to a server error.") from e

        logger.info("Password reset token issued", extra={"user_id": target_id})
        reset_url = build_reset_url(self.config.reset_link_base_url, token)
        try:
            self.dispatcher.send_password_reset(target_email, reset_url)
        except DeliveryError:
            logger.exception(
                "Password reset link delivery failed; token remains valid",
                extra={"user_id": target_id, "to": redact_email(target_email)},
            )
            raise
        return f"Password reset link sent to {target_email}"

    def request_password_reset(self, email: str | None) -> str:
        """
        Self-service "forgot password". Always returns the same message so the
        response never reveals whether the email is registered.
        """
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required.")
        try:
            self.issue_password_reset(email=email)
        except (NotFoundError, ValidationError, DeliveryError) as e:
            logger.info(
                "Forgot-password request not fulfilled",
                extra={"to": redact_email(email), "reason": type(e).__name__},
            )
        return FORGOT_PASSWORD_MESSAGE

    def complete_password_reset(self, token: str | None, new_password: str | None) -> str:
        """
        Redeem a reset token. Wrong and expired tokens are indistinguishable
        to the caller; a redeemed token is cleared so it works exactly once.
        """
        token = (token or "").strip()
        if not token or not new_password:
            raise ValidationError(RESET_INPUT_MESSAGE)
        if len(new_password) < RESET_PASSWORD_MIN_LEN:
            raise ValidationError(RESET_PASSWORD_MESSAGE)
        if len(new_password) > PASSWORD_MAX_LEN:
            raise ValidationError(PASSWORD_TOO_LONG_MESSAGE)

        try:
            with transaction(self.session):
                user = self.store.find_by_live_reset_token(token, self.clock())
                if user is None:
                    raise InvalidOrExpiredError()
                self.store.replace_password(user, hash_password(new_password))
                user_id = user.id
        except AuthServiceError:
            logger.info("Password reset rejected", extra={"reason": "invalid_or_expired"})
            raise
        except SQLAlchemyError as e:
            logger.exception("Store error during password reset")
            raise StoreError("Server error during password reset.") from e

        logger.info("Password reset completed", extra={"user_id": user_id})
        return RESET_DONE_MESSAGE
