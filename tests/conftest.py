"""Point settings at an in-memory database before any app module is imported."""

import os

os.environ["APP_ENV"] = "dev"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_ENABLED"] = "true"
os.environ.pop("EMAIL_HOST", None)
