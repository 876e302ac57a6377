"""
Tests for the sync_schedules management command.

These tests cover:
- Listing tasks as text and JSON
- Syncing to Celery Beat creates PeriodicTask rows, then updates them
- Dry run writes nothing
- Pruning disables retainly tasks that left the registry
"""

import json
from io import StringIO

import pytest
from django.core.management import call_command
from django_celery_beat.models import IntervalSchedule
from django_celery_beat.models import PeriodicTask

from retainly.core.tasks.registry import SCHEDULED_TASKS


def run(*args):
    out = StringIO()
    err = StringIO()
    call_command("sync_schedules", *args, stdout=out, stderr=err)
    return out.getvalue(), err.getvalue()


class TestListTasks:
    def test_text(self):
        output, _ = run("--list")

        assert f"({len(SCHEDULED_TASKS)} total)" in output
        assert "Expire Retention Offers (expire-retention-offers)" in output

    def test_json(self):
        output, _ = run("--list", "--format=json")

        data = json.loads(output)
        assert [row["id"] for row in data] == [task.id for task in SCHEDULED_TASKS]


@pytest.mark.django_db
class TestSyncCeleryBeat:
    def test_creates_then_updates(self):
        first, _ = run("--backend=celery")
        second, _ = run("--backend=celery")

        assert f"Done! Created: {len(SCHEDULED_TASKS)}, Updated: 0" in first
        assert f"Done! Created: 0, Updated: {len(SCHEDULED_TASKS)}" in second
        assert PeriodicTask.objects.count() == len(SCHEDULED_TASKS)

    def test_interval_and_crontab_schedules(self):
        run("--backend=celery")

        offers = PeriodicTask.objects.get(name="Expire Retention Offers")
        locks = PeriodicTask.objects.get(name="Expire Price Locks")
        assert offers.interval.every == 15
        assert offers.crontab is None
        assert locks.crontab.minute == "0"
        assert locks.interval is None

    def test_dry_run(self):
        output, _ = run("--backend=celery", "--dry-run")

        assert "DRY RUN" in output
        assert PeriodicTask.objects.count() == 0

    def test_requires_backend(self):
        _, errors = run()

        assert "Please specify --backend=celery" in errors

    def test_prune_disables_stale_engine_tasks(self):
        every_hour, _ = IntervalSchedule.objects.get_or_create(
            every=60,
            period=IntervalSchedule.MINUTES,
        )
        stale = PeriodicTask.objects.create(
            name="Send Renewal Reminders",
            task="retainly.send_renewal_reminders",
            interval=every_hour,
        )
        foreign = PeriodicTask.objects.create(
            name="Rotate Reports",
            task="reports.rotate",
            interval=every_hour,
        )

        output, _ = run("--backend=celery", "--prune")

        stale.refresh_from_db()
        foreign.refresh_from_db()
        assert "Disabled: 1" in output
        assert stale.enabled is False
        assert foreign.enabled is True
