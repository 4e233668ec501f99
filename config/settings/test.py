"""
Test settings – in-memory SQLite so the suite runs without PostgreSQL.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

from .base import *  # noqa: E402, F401, F403

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# Small budget so the node guard is reachable from tests.
ORG_UNITS_MAX_TREE_NODES = 50

LOGGING["root"]["level"] = "WARNING"  # noqa: F405
