"""
Settings for the pytest suite.

Engine tunables are pinned so a developer's environment cannot change what
the tests expect (offer TTL, reactivation period, sweep batch size).
"""

from .base import *  # noqa: F403
from .base import DATABASES
from .base import LOGGING
from .base import env

# GENERAL
# ------------------------------------------------------------------------------
SECRET_KEY = env(
    "DJANGO_SECRET_KEY",
    default="kq3N0dVJ6rYb0yQm8Tt2nC4xWfPz7LsHa1GeUiRoKv5BjX9cDwMgEhZlApSu",
)
ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]
DATABASES["default"]["CONN_MAX_AGE"] = 0  # type: ignore[index]

# PASSWORDS
# ------------------------------------------------------------------------------
PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# Celery
# ------------------------------------------------------------------------------
# Sweep tasks run inline, no broker needed.
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"

# LOGGING
# ------------------------------------------------------------------------------
# Let pytest's caplog see engine log records.
LOGGING["loggers"]["retainly"]["propagate"] = True  # type: ignore[index]

# Retainly
# ------------------------------------------------------------------------------
RETAINLY_RETENTION_OFFER_TTL_HOURS = 24
RETAINLY_WINBACK_REACTIVATION_MONTHS = 1
RETAINLY_DEFAULT_CURRENCY = "USD"
RETAINLY_SWEEP_BATCH_SIZE = 500
