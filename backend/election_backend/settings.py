"""
Django settings for the election backend.
"""
import os
from pathlib import Path
from datetime import timedelta

from celery.schedules import schedule

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("SECRET_KEY", "changeme-local-development-signing-key")
DEBUG = os.environ.get("DEBUG", "1") == "1"
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "rest_framework",
    "django_celery_beat",
    "core",
    "api",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
]

ROOT_URLCONF = "election_backend.urls"

WSGI_APPLICATION = "election_backend.wsgi.application"

# Database: DATABASE_URL in production, a local SQLite file otherwise
import dj_database_url
DATABASES = {
    "default": dj_database_url.config(
        default=os.environ.get("DATABASE_URL", f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
        conn_max_age=int(os.environ.get("DB_CONN_MAX_AGE", "0")),
    )
}
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "UTC"

# REST Framework + JWT
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": "100/day",
    },
    "DEFAULT_RENDERER_CLASSES": ("rest_framework.renderers.JSONRenderer",),
    "EXCEPTION_HANDLER": "api.exceptions.election_exception_handler",
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=60),
}

# Election core
ELECTIONS = {
    "READ_RETRY_ATTEMPTS": int(os.environ.get("ELECTIONS_READ_RETRY_ATTEMPTS", "3")),
    "READ_RETRY_BASE_DELAY": float(os.environ.get("ELECTIONS_READ_RETRY_BASE_DELAY", "0.05")),
    "WRITE_RETRY_ATTEMPTS": int(os.environ.get("ELECTIONS_WRITE_RETRY_ATTEMPTS", "3")),
    "RECONCILE_INTERVAL_MINUTES": int(os.environ.get("ELECTIONS_RECONCILE_INTERVAL_MINUTES", "30")),
}

# Celery
CELERY_BROKER_URL = os.environ.get("REDIS_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = CELERY_BROKER_URL
CELERY_BEAT_SCHEDULER = "django_celery_beat.schedulers:DatabaseScheduler"
CELERY_BEAT_SCHEDULE = {
    "reconcile-election-phases": {
        "task": "core.reconcile_election_phases",
        "schedule": schedule(timedelta(minutes=ELECTIONS["RECONCILE_INTERVAL_MINUTES"])),
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "core": {"handlers": ["console"], "level": os.environ.get("ELECTIONS_LOG_LEVEL", "INFO")},
        "api": {"handlers": ["console"], "level": os.environ.get("ELECTIONS_LOG_LEVEL", "INFO")},
    },
}
