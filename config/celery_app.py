"""
Celery application for the Retainly sweeps.

The worker runs the periodic engine sweeps (loyalty upgrades, price-lock
expiry, retention offer expiry) defined in retainly.core.tasks. Nothing is
stored in a result backend; every sweep writes its outcome to the database.

Beat reads its schedule from django-celery-beat, populated by
``manage.py sync_schedules --backend=celery``.

    celery -A config worker -Q sweeps --loglevel=info --concurrency=1
    celery -A config beat --loglevel=info
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.local")

app = Celery("retainly")

# All CELERY_* Django settings configure the app.
app.config_from_object("django.conf:settings", namespace="CELERY")

app.conf.task_routes = {"retainly.*": {"queue": "sweeps"}}

app.autodiscover_tasks(["retainly.core"])
