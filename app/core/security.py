"""Password hashing, JWT session tokens and password-reset tokens."""

import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

import bcrypt
import jwt

from app.core.config import AuthConfig
from app.services.errors import ExpiredError, SignatureError

# Bcrypt cost (rounds); matches the cost existing hashes were created with.
BCRYPT_ROUNDS = 10

# Min/max lengths for input validation.
USERNAME_MAX_LEN = 255
SIGNUP_PASSWORD_MIN_LEN = 6
RESET_PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

# 32 random bytes, hex encoded -> 64 characters.
RESET_TOKEN_BYTES = 32

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str | None) -> bool:
    """Verify a plain password against a stored hash."""
    if not hashed:
        return False
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


class TokenSubject(Protocol):
    """What the issuer needs from an account."""

    id: int
    role_id: int
    email: str | None


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at_ms: int


class TokenIssuer:
    """
    Creates and verifies signed, time-bound session tokens.

    Tokens are stateless: validity is signature plus exp, nothing is stored
    server-side and nothing can be revoked before natural expiry.
    """

    def __init__(self, config: AuthConfig, clock: Clock = utc_now) -> None:
        self._config = config
        self._clock = clock

    @property
    def validity(self) -> timedelta:
        return timedelta(minutes=self._config.token_validity_minutes)

    def issue(self, account: TokenSubject) -> IssuedToken:
        """Sign a token for `account`; expires_at_ms comes from the token's own exp claim."""
        now = self._clock()
        payload: dict[str, Any] = {
            "sub": str(account.id),
            "role": account.role_id,
            "email": account.email,
            "iat": now,
            "exp": now + self.validity,
        }
        token = jwt.encode(
            payload,
            self._config.jwt_secret.get_secret_value(),
            algorithm=self._config.jwt_algorithm,
        )
        # The client must never compute expiry itself; read back what was signed.
        claims = jwt.decode(token, options={"verify_signature": False})
        return IssuedToken(token=token, expires_at_ms=int(claims["exp"]) * 1000)

    def verify(self, token: str) -> dict[str, Any]:
        """
        Decode and validate a session token; return its payload.
        Raises ExpiredError past exp, SignatureError for anything else.
        """
        try:
            return jwt.decode(
                token,
                self._config.jwt_secret.get_secret_value(),
                algorithms=[self._config.jwt_algorithm],
                options={"require": ["sub", "exp", "iat"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise ExpiredError() from e
        except jwt.PyJWTError as e:
            raise SignatureError() from e


def generate_reset_token() -> str:
    """Return a fresh, unguessable single-use reset token (64 hex chars)."""
    return secrets.token_hex(RESET_TOKEN_BYTES)


def reset_token_expiry(now: datetime, hours: int = 24) -> datetime:
    return now + timedelta(hours=hours)
