"""Core app configuration and database."""

from app.core.config import AuthConfig, get_auth_config, get_settings, settings
from app.core.database import get_db, transaction

__all__ = ["AuthConfig", "get_auth_config", "get_settings", "settings", "get_db", "transaction"]
