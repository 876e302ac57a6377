"""
Celery tasks for the periodic engine sweeps.

Each task is a thin wrapper that looks its sweep up in the registry and runs
the matching management command with the configured batch size, so a sweep
behaves the same from Beat as from ``manage.py``. Sweeps are idempotent: a
retry after a partial run converges on the same end state.

Schedules live in retainly.core.tasks.registry and reach Beat through
``manage.py sync_schedules --backend=celery``.
"""

import logging
from datetime import UTC
from datetime import datetime
from io import StringIO

from celery import shared_task
from django.conf import settings
from django.core.management import call_command
from django.db import OperationalError

from retainly.core.tasks.registry import get_task_by_id

logger = logging.getLogger(__name__)

# Transient failures; anything else is a bug and surfaces immediately.
RETRYABLE_EXCEPTIONS = (
    OperationalError,
    ConnectionError,
    TimeoutError,
)

SWEEP_TASK_OPTIONS = {
    "bind": True,
    "autoretry_for": RETRYABLE_EXCEPTIONS,
    "max_retries": 3,
    "retry_backoff": 60,
    "retry_backoff_max": 600,
    "acks_late": True,
}


def run_sweep(task_id: str, celery_task_id: str | None = None) -> dict:
    """
    Run the management command registered under ``task_id``.

    Returns a summary dict with the command output. Exceptions propagate so
    Celery's ``autoretry_for`` can handle the transient ones.
    """
    definition = get_task_by_id(task_id)
    if definition is None:
        raise ValueError(f"No scheduled task registered as {task_id!r}")

    logger.info("Starting sweep %s (task_id=%s)", definition.id, celery_task_id)

    out = StringIO()
    err = StringIO()
    call_command(
        definition.command,
        f"--batch-size={settings.RETAINLY_SWEEP_BATCH_SIZE}",
        stdout=out,
        stderr=err,
    )

    result = {
        "status": "completed",
        "command": definition.command,
        "output": out.getvalue().strip(),
        "timestamp": datetime.now(tz=UTC).isoformat(),
    }
    errors = err.getvalue().strip()
    if errors:
        result["errors"] = errors
        logger.warning("Sweep %s reported failures: %s", definition.id, errors)

    logger.info("Sweep %s completed: %s", definition.id, result["output"])
    return result


@shared_task(name="retainly.process_loyalty_upgrades", **SWEEP_TASK_OPTIONS)
def process_loyalty_upgrades(self) -> dict:
    """Move active subscriptions up to the loyalty tier their cycle count earns."""
    return run_sweep("process-loyalty-upgrades", self.request.id)


@shared_task(name="retainly.expire_price_locks", **SWEEP_TASK_OPTIONS)
def expire_price_locks(self) -> dict:
    """Clear price locks whose locked-until date has passed."""
    return run_sweep("expire-price-locks", self.request.id)


@shared_task(name="retainly.expire_retention_offers", **SWEEP_TASK_OPTIONS)
def expire_retention_offers(self) -> dict:
    """Flip presented retention offers past their expiry to EXPIRED."""
    return run_sweep("expire-retention-offers", self.request.id)
