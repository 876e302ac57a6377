"""
Register the engine sweeps with Celery Beat.

Reads retainly.core.tasks.registry and writes one django-celery-beat
PeriodicTask per sweep. Sweeps with an interval get an IntervalSchedule;
the rest get a CrontabSchedule parsed from their cron expression.

Usage:
    python manage.py sync_schedules --backend=celery
    python manage.py sync_schedules --backend=celery --dry-run
    python manage.py sync_schedules --backend=celery --prune
    python manage.py sync_schedules --list [--format=json]
"""

import json
import logging
from dataclasses import asdict

from django.core.management.base import BaseCommand
from django.core.management.base import CommandError
from django.db import transaction
from django_celery_beat.models import CrontabSchedule
from django_celery_beat.models import IntervalSchedule
from django_celery_beat.models import PeriodicTask
from django_celery_beat.models import PeriodicTasks

from retainly.core.tasks.registry import SCHEDULED_TASKS
from retainly.core.tasks.registry import ScheduledTaskDefinition

logger = logging.getLogger(__name__)

CELERY_TASK_PREFIX = "retainly."
CRON_FIELDS = ("minute", "hour", "day_of_month", "month_of_year", "day_of_week")


def parse_cron(cron_expr: str) -> dict[str, str]:
    """Split a 5-field cron expression into CrontabSchedule keyword arguments."""
    parts = cron_expr.split()
    if len(parts) != len(CRON_FIELDS):
        raise CommandError(f"Invalid cron expression: {cron_expr}")
    return dict(zip(CRON_FIELDS, parts, strict=True))


def describe_schedule(task: ScheduledTaskDefinition) -> str:
    if task.schedule_interval_minutes:
        return f"every {task.schedule_interval_minutes} min"
    return f"cron {task.schedule_cron}"


class Command(BaseCommand):
    help = "Sync the engine sweeps from the task registry to Celery Beat"

    def add_arguments(self, parser):
        parser.add_argument(
            "--backend",
            choices=["celery"],
            help="Scheduler to write the sweeps to",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Print the schedules without writing them",
        )
        parser.add_argument(
            "--prune",
            action="store_true",
            help="Disable retainly.* periodic tasks that are no longer in the registry",
        )
        parser.add_argument(
            "--list",
            action="store_true",
            dest="list_tasks",
            help="List the registered sweeps and exit",
        )
        parser.add_argument(
            "--format",
            choices=["text", "json"],
            default="text",
            help="Output format for --list (default: text)",
        )

    def handle(self, *args, **options):
        if options["list_tasks"]:
            self._list_tasks(options["format"])
            return

        if not options.get("backend"):
            self.stderr.write(self.style.ERROR("Please specify --backend=celery or use --list"))
            return

        if options["dry_run"]:
            self._show_plan()
            return

        self._sync_celery_beat(prune=options["prune"])

    def _list_tasks(self, output_format: str):
        if output_format == "json":
            self.stdout.write(json.dumps([asdict(task) for task in SCHEDULED_TASKS], indent=2))
            return

        self.stdout.write(
            self.style.SUCCESS(f"Registered sweeps ({len(SCHEDULED_TASKS)} total)"),
        )
        for task in SCHEDULED_TASKS:
            marker = "+" if task.enabled else "-"
            self.stdout.write(f"\n{marker} {task.name} ({task.id})")
            self.stdout.write(f"    schedule: {describe_schedule(task)}")
            self.stdout.write(f"    task:     {task.celery_task}")
            self.stdout.write(f"    command:  manage.py {task.command}")
            if task.description:
                self.stdout.write(f"    {task.description}")

    def _show_plan(self):
        self.stdout.write(self.style.WARNING("DRY RUN - Celery Beat is left unchanged"))
        for task in SCHEDULED_TASKS:
            state = "enabled" if task.enabled else "disabled"
            self.stdout.write(
                f"  {task.name}: {task.celery_task}, {describe_schedule(task)}, {state}",
            )
        self.stdout.write(
            self.style.WARNING(f"Would create or update {len(SCHEDULED_TASKS)} periodic tasks"),
        )

    @transaction.atomic
    def _sync_celery_beat(self, *, prune: bool):
        intervals: dict[int, IntervalSchedule] = {}
        crontabs: dict[str, CrontabSchedule] = {}
        created_count = 0
        updated_count = 0

        for task in SCHEDULED_TASKS:
            defaults = {
                "task": task.celery_task,
                "enabled": task.enabled,
                "description": task.description,
                "interval": None,
                "crontab": None,
            }
            if task.schedule_interval_minutes:
                minutes = task.schedule_interval_minutes
                if minutes not in intervals:
                    intervals[minutes], _ = IntervalSchedule.objects.get_or_create(
                        every=minutes,
                        period=IntervalSchedule.MINUTES,
                    )
                defaults["interval"] = intervals[minutes]
            else:
                if task.schedule_cron not in crontabs:
                    crontabs[task.schedule_cron], _ = CrontabSchedule.objects.get_or_create(
                        **parse_cron(task.schedule_cron),
                    )
                defaults["crontab"] = crontabs[task.schedule_cron]

            _, created = PeriodicTask.objects.update_or_create(
                name=task.name,
                defaults=defaults,
            )
            if created:
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f"  created {task.name}"))
            else:
                updated_count += 1
                self.stdout.write(f"  updated {task.name}")

        pruned_count = self._prune_stale() if prune else 0

        logger.info(
            "Synced scheduled tasks to Celery Beat",
            extra={
                "created": created_count,
                "updated": updated_count,
                "pruned": pruned_count,
            },
        )
        summary = f"Done! Created: {created_count}, Updated: {updated_count}"
        if prune:
            summary += f", Disabled: {pruned_count}"
        self.stdout.write(self.style.SUCCESS(summary))

    def _prune_stale(self) -> int:
        registered = {task.celery_task for task in SCHEDULED_TASKS}
        stale = PeriodicTask.objects.filter(
            task__startswith=CELERY_TASK_PREFIX,
            enabled=True,
        ).exclude(task__in=registered)
        for periodic_task in stale:
            self.stdout.write(self.style.WARNING(f"  disabled {periodic_task.name}"))
        disabled = stale.update(enabled=False)
        if disabled:
            PeriodicTasks.update_changed()
        return disabled
