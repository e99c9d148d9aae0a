"""Client-side session handling for the auth API."""

from app.client.session import AuthClient, SessionGuard, SessionStore, StoredSession

__all__ = ["AuthClient", "SessionGuard", "SessionStore", "StoredSession"]
