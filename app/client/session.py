"""Client-side session handling: persisted token/expiry/identity and automatic logout at expiry.

The server never tracks issued tokens, so expiry is enforced here as well:
the guard logs out locally when the token's absolute expiry is reached,
independent of any server response.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

# At or below this much remaining lifetime, a session is treated as already expired.
EXPIRY_GRACE_MS = 1000


def now_ms() -> int:
    return int(time.time() * 1000)


class Cancellable(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Cancellable]


def threading_timer(delay_sec: float, callback: Callable[[], None]) -> Cancellable:
    timer = threading.Timer(delay_sec, callback)
    timer.daemon = True
    return timer


@dataclass(frozen=True)
class StoredSession:
    token: str
    expires_at: int
    user: dict[str, Any]


class SessionStore:
    """
    Persists {token, expiresAt, user} as one JSON document.

    Writing and clearing replace the whole file, so the three values are
    never observed partially.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> StoredSession | None:
        """Return the stored session, or None if absent or malformed."""
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError):
            logger.warning("Discarding unreadable session file %s", self.path)
            return None
        try:
            token = raw["token"]
            expires_at = int(raw["expiresAt"])
            user = raw["user"]
        except (KeyError, TypeError, ValueError):
            return None
        if not token or not isinstance(user, dict):
            return None
        return StoredSession(token=token, expires_at=expires_at, user=user)

    def save(self, session: StoredSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(
            json.dumps(
                {"token": session.token, "expiresAt": session.expires_at, "user": session.user}
            ),
            encoding="utf-8",
        )
        tmp.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class SessionGuard:
    """
    Two states: unauthenticated (session is None) and authenticated.

    At most one expiry timer is ever armed; it is always cancelled before a
    new one is scheduled, and on logout/unmount. Expiry is absolute from
    login and is never extended by activity.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        clock: Callable[[], int] = now_ms,
        timer_factory: TimerFactory = threading_timer,
        on_logout: Callable[[], None] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._timer_factory = timer_factory
        self._on_logout = on_logout
        self._lock = threading.RLock()
        self._timer: Cancellable | None = None
        self._session: StoredSession | None = None
        self._generation = 0

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def user(self) -> dict[str, Any] | None:
        return self._session.user if self._session else None

    @property
    def token(self) -> str | None:
        return self._session.token if self._session else None

    @property
    def expires_at(self) -> int | None:
        return self._session.expires_at if self._session else None

    def mount(self) -> bool:
        """
        Restore state from storage synchronously (no network), then arm the timer.
        Returns True if a live session was restored.
        """
        with self._lock:
            self._cancel_timer()
            stored = self._store.load()
            if stored is None or stored.expires_at - self._clock() <= EXPIRY_GRACE_MS:
                self._store.clear()
                self._session = None
                return False
            self._session = stored
            self._arm_timer()
            return True

    def unmount(self) -> None:
        with self._lock:
            self._cancel_timer()

    def login_succeeded(self, token: str, expires_at: int, user: dict[str, Any]) -> None:
        with self._lock:
            session = StoredSession(token=token, expires_at=int(expires_at), user=user)
            self._store.save(session)
            self._session = session
            self._cancel_timer()
            if session.expires_at - self._clock() <= EXPIRY_GRACE_MS:
                self._logout_locked(reason="expired")
                return
            self._arm_timer()

    def logout(self) -> None:
        with self._lock:
            self._logout_locked(reason="explicit")

    def _logout_locked(self, *, reason: str) -> None:
        self._cancel_timer()
        self._store.clear()
        was_authenticated = self._session is not None
        self._session = None
        if was_authenticated:
            logger.info("Session ended", extra={"reason": reason})
            if self._on_logout is not None:
                self._on_logout()

    def _arm_timer(self) -> None:
        assert self._session is not None
        delay_ms = max(self._session.expires_at - self._clock(), 0)
        generation = self._generation
        timer = self._timer_factory(delay_ms / 1000.0, lambda: self._expire(generation))
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        # Bumping the generation makes an already-fired callback a no-op.
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            self._logout_locked(reason="expired")


class AuthClient:
    """Talks to the auth endpoints and feeds results into a SessionGuard."""

    def __init__(
        self,
        base_url: str,
        guard: SessionGuard,
        *,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.guard = guard
        self._http = httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> AuthClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def login(self, identifier: str, password: str) -> dict[str, Any]:
        """POST /auth/login; on success the guard becomes authenticated. Raises httpx.HTTPStatusError otherwise."""
        response = self._http.post("/auth/login", json={"identifier": identifier, "password": password})
        response.raise_for_status()
        data = response.json()
        self.guard.login_succeeded(data["token"], data["expiresAt"], data["user"])
        return data["user"]

    def logout(self) -> None:
        self.guard.logout()

    def reset_password(self, token: str, new_password: str) -> str:
        response = self._http.post(
            "/auth/reset-password", json={"token": token, "newPassword": new_password}
        )
        response.raise_for_status()
        return response.json()["message"]

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Authenticated GET; the bearer token comes from the guard."""
        headers = dict(kwargs.pop("headers", None) or {})
        if self.guard.token:
            headers["Authorization"] = f"Bearer {self.guard.token}"
        return self._http.get(path, headers=headers, **kwargs)
