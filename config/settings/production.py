"""
Production settings – security-hardened overrides over base settings.
All sensitive values come from environment variables.
"""
from decouple import Csv, config

from .base import *  # noqa: F401, F403

DEBUG = False

ALLOWED_HOSTS = config("ALLOWED_HOSTS", cast=Csv())
CSRF_TRUSTED_ORIGINS = config("CSRF_TRUSTED_ORIGINS", default="", cast=Csv())

# ---------------------------------------------------------------------------
# HTTPS / security hardening
# ---------------------------------------------------------------------------
SECURE_SSL_REDIRECT = config("SECURE_SSL_REDIRECT", default=True, cast=bool)
SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_CONTENT_TYPE_NOSNIFF = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
X_FRAME_OPTIONS = "DENY"

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------
DATABASES["default"]["OPTIONS"]["sslmode"] = config(  # noqa: F405
    "POSTGRES_SSLMODE", default="require"
)

# ---------------------------------------------------------------------------
# Logging: the org unit engine stays at INFO, never DEBUG
# ---------------------------------------------------------------------------
LOGGING["root"]["level"] = config("LOG_LEVEL", default="INFO")  # noqa: F405
LOGGING["loggers"]["apps"]["level"] = "INFO"  # noqa: F405
