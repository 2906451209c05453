"""
Django settings for the rider dispatch backend.

Secrets and deployment switches come from the environment (a .env file is honoured):
DJANGO_SECRET_KEY, DJANGO_DEBUG, DJANGO_DB_PATH, DJANGO_ALLOWED_HOSTS.
Engine tunables are DISPATCH_* variables, read by riders.policy.DispatchPolicy.from_env().
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv()

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "riders_api",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "dispatch_backend.urls"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.getenv("DJANGO_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "dispatch": {"handlers": ["console"], "level": os.getenv("DISPATCH_LOG_LEVEL", "INFO")},
        "riders": {"handlers": ["console"], "level": os.getenv("DISPATCH_LOG_LEVEL", "INFO")},
        "geo": {"handlers": ["console"], "level": os.getenv("DISPATCH_LOG_LEVEL", "INFO")},
        "riders_api": {"handlers": ["console"], "level": os.getenv("DISPATCH_LOG_LEVEL", "INFO")},
    },
}
