"""
Scheduled Task Registry - Single source of truth for periodic sweeps.

Each engine sweep is defined once here with everything needed to register
it with Celery Beat:
    - Task identifier and human-readable name
    - Celery task path
    - Management command the task wraps
    - Schedule (cron expression and/or interval)
    - Description and enabled status

Usage:

    from retainly.core.tasks.registry import SCHEDULED_TASKS

    for task in SCHEDULED_TASKS:
        print(f"{task.name}: {task.schedule_cron}")

The registry is consumed by:
    - sync_schedules command (creates Celery Beat PeriodicTask records)
    - retainly.core.tasks.scheduled_tasks (command names and arguments)
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ScheduledTaskDefinition:
    """
    Definition of a scheduled task.

    This dataclass contains all information needed to register the task
    with Celery Beat and to run it by hand.
    """

    # Identity
    id: str  # Unique identifier, e.g., "expire-price-locks"
    name: str  # Human-readable name for display

    # Celery configuration
    celery_task: str  # Full task name, e.g., "retainly.expire_price_locks"

    # Management command the task wraps
    command: str

    # Schedule - supports both cron and interval
    schedule_cron: str  # Cron expression, e.g., "0 * * * *"
    schedule_interval_minutes: int | None = None  # Alternative: interval in minutes

    # Metadata
    description: str = ""
    enabled: bool = True


# =============================================================================
# SCHEDULED TASK DEFINITIONS
# =============================================================================
# Add new sweeps here; sync_schedules registers them with Celery Beat.

SCHEDULED_TASKS: tuple[ScheduledTaskDefinition, ...] = (
    # -------------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------------
    ScheduledTaskDefinition(
        id="process-loyalty-upgrades",
        name="Process Loyalty Upgrades",
        celery_task="retainly.process_loyalty_upgrades",
        command="process_loyalty_upgrades",
        schedule_cron="0 3 * * *",  # Daily at 3:00 AM
        description="Move active subscriptions up to the loyalty tier their cycle count earns",
    ),
    ScheduledTaskDefinition(
        id="expire-price-locks",
        name="Expire Price Locks",
        celery_task="retainly.expire_price_locks",
        command="expire_price_locks",
        schedule_cron="0 * * * *",  # Hourly at :00
        description="Clear price locks whose locked-until date has passed",
    ),
    # -------------------------------------------------------------------------
    # Retention
    # -------------------------------------------------------------------------
    ScheduledTaskDefinition(
        id="expire-retention-offers",
        name="Expire Retention Offers",
        celery_task="retainly.expire_retention_offers",
        command="expire_retention_offers",
        schedule_cron="*/15 * * * *",  # Every 15 minutes
        schedule_interval_minutes=15,
        description="Flip presented retention offers past their expiry to EXPIRED",
    ),
)


def get_task_by_id(task_id: str) -> ScheduledTaskDefinition | None:
    """
    Get a task definition by its ID.

    Args:
        task_id: The task identifier (e.g., "expire-price-locks")

    Returns:
        The task definition, or None if not found
    """
    for task in SCHEDULED_TASKS:
        if task.id == task_id:
            return task
    return None


def get_enabled_tasks() -> list[ScheduledTaskDefinition]:
    """Get all enabled task definitions."""
    return [task for task in SCHEDULED_TASKS if task.enabled]
