from .base import *  # noqa: F403
from .base import LOGGING
from .base import env

# GENERAL
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#debug
DEBUG = True
# https://docs.djangoproject.com/en/dev/ref/settings/#secret-key
SECRET_KEY = env(
    "DJANGO_SECRET_KEY",
    default="Hb2uP7wQ0xZr5mVc9LkT3nJf8sYd1GaE6oRiWqUe4KpXvBtNlCzMhSyDjFgA",
)
# https://docs.djangoproject.com/en/dev/ref/settings/#allowed-hosts
ALLOWED_HOSTS = ["localhost", "0.0.0.0", "127.0.0.1"]  # noqa: S104

# CACHES
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#caches
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "",
    },
}

# EMAIL
# ------------------------------------------------------------------------------
# Console backend prints emails to terminal (no mail server needed)
EMAIL_BACKEND = "django.core.mail.backends.console.EmailBackend"

# Celery
# ------------------------------------------------------------------------------
# Without a broker, run sweeps inline so `manage.py shell` calls behave.
CELERY_TASK_ALWAYS_EAGER = env.bool("CELERY_TASK_ALWAYS_EAGER", default=True)
CELERY_TASK_EAGER_PROPAGATES = True

# Logging
# ------------------------------------------------------------------------------
# Make local development chatty so sweep diagnostics show up immediately.
LOGGING["root"]["level"] = "DEBUG"
LOGGING["loggers"]["retainly"] = {
    "handlers": ["console"],
    "level": "DEBUG",
    "propagate": False,
}
