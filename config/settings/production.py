# ruff: noqa: E501
import copy
import logging

import sentry_sdk
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from .base import *  # noqa: F403
from .base import CELERY_BROKER_URL
from .base import DATABASES
from .base import LOGGING as BASE_LOGGING
from .base import SPECTACULAR_SETTINGS
from .base import env

# GENERAL
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#secret-key
SECRET_KEY = env("DJANGO_SECRET_KEY")
# https://docs.djangoproject.com/en/dev/ref/settings/#allowed-hosts
ALLOWED_HOSTS = env.list("DJANGO_ALLOWED_HOSTS")

# DATABASES
# ------------------------------------------------------------------------------
DATABASES["default"]["CONN_MAX_AGE"] = env.int("CONN_MAX_AGE", default=60)
DATABASES["default"]["CONN_HEALTH_CHECKS"] = True

# CACHES
# ------------------------------------------------------------------------------
# Same Redis instance as the Celery broker unless REDIS_CACHE_URL says otherwise.
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.redis.RedisCache",
        "LOCATION": env("REDIS_CACHE_URL", default=CELERY_BROKER_URL),
        "KEY_PREFIX": "retainly",
    },
}

# SECURITY
# ------------------------------------------------------------------------------
# The engine is API-only behind a TLS-terminating proxy.
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = env.bool("DJANGO_SECURE_SSL_REDIRECT", default=True)
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_HSTS_SECONDS = env.int("DJANGO_SECURE_HSTS_SECONDS", default=60)
SECURE_HSTS_INCLUDE_SUBDOMAINS = env.bool("DJANGO_SECURE_HSTS_INCLUDE_SUBDOMAINS", default=True)
SECURE_HSTS_PRELOAD = env.bool("DJANGO_SECURE_HSTS_PRELOAD", default=True)
SECURE_CONTENT_TYPE_NOSNIFF = True

# ADMIN
# ------------------------------------------------------------------------------
ADMIN_URL = env("DJANGO_ADMIN_URL")

# Celery
# ------------------------------------------------------------------------------
# One sweep at a time per worker process, acknowledged after the command returns.
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_SOFT_TIME_LIMIT = env.int("CELERY_TASK_SOFT_TIME_LIMIT", default=600)
CELERY_TASK_TIME_LIMIT = env.int("CELERY_TASK_TIME_LIMIT", default=900)
CELERY_BROKER_CONNECTION_RETRY_ON_STARTUP = True

# LOGGING
# ------------------------------------------------------------------------------
# Same loggers as base, written as JSON so the `extra` fields on sweep log
# records (processed, expired, failed, ...) are searchable.
LOGGING = copy.deepcopy(BASE_LOGGING)
LOGGING["formatters"]["json"] = {
    "()": "pythonjsonlogger.json.JsonFormatter",
    "format": "%(asctime)s %(levelname)s %(name)s %(funcName)s %(message)s",
    "rename_fields": {"levelname": "severity"},
}
LOGGING["handlers"]["console"]["formatter"] = "json"
for noisy in ("django.db.backends", "django.request", "django.security.DisallowedHost", "sentry_sdk"):
    LOGGING["loggers"][noisy] = {
        "level": "ERROR",
        "handlers": ["console"],
        "propagate": False,
    }

# Sentry
# ------------------------------------------------------------------------------
SENTRY_DSN = env("SENTRY_DSN")
SENTRY_LOG_LEVEL = env.int("DJANGO_SENTRY_LOG_LEVEL", logging.INFO)


def drop_engine_client_errors(event, hint):
    """
    Engine errors are answered with a 4xx and say nothing about the code.

    Unknown offers, expired offers and duplicate plan names are caller
    mistakes, so they stay out of Sentry.
    """
    from retainly.core.exceptions import RetainlyError

    exc_info = hint.get("exc_info")
    if exc_info and isinstance(exc_info[1], RetainlyError):
        return None
    return event


sentry_sdk.init(
    dsn=SENTRY_DSN,
    integrations=[
        LoggingIntegration(level=SENTRY_LOG_LEVEL, event_level=logging.ERROR),
        DjangoIntegration(),
        CeleryIntegration(monitor_beat_tasks=True),
    ],
    before_send=drop_engine_client_errors,
    environment=env("SENTRY_ENVIRONMENT", default="production"),
    release=env("RETAINLY_RELEASE", default=None),
    traces_sample_rate=env.float("SENTRY_TRACES_SAMPLE_RATE", default=0.0),
)

# django-rest-framework
# ------------------------------------------------------------------------------
SPECTACULAR_SETTINGS["SERVERS"] = [
    {
        "url": env("SITE_URL", default="https://api.retainly.example"),
        "description": "Production server",
    },
]
