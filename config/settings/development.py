"""
Development settings – local PostgreSQL, browsable API and verbose logs.
"""
from decouple import config

from .base import *  # noqa: F401, F403

DEBUG = config("DEBUG", default=True, cast=bool)

if DEBUG:
    ALLOWED_HOSTS = ["*"]

SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

# Short-lived connections make schema resets painless.
DATABASES["default"]["CONN_MAX_AGE"] = 0  # noqa: F405

LOGGING["root"]["level"] = "DEBUG"  # noqa: F405

# Hierarchy queries issued by the store, one log line per statement.
if config("LOG_SQL", default=False, cast=bool):
    LOGGING["loggers"]["django.db.backends"] = {  # noqa: F405
        "handlers": ["console"],
        "level": "DEBUG",
        "propagate": False,
    }

REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] = [  # noqa: F405
    "rest_framework.renderers.JSONRenderer",
    "rest_framework.renderers.BrowsableAPIRenderer",
]
