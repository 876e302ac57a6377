"""
Management command to clear price locks that have run their course.

A lock with ``price_locked_until`` in the past is removed so the subscriber
is billed the current ``plan_amount`` again. Indefinite locks (no end date)
are never touched.

Usage:
    python manage.py expire_price_locks
    python manage.py expire_price_locks --dry-run

Scheduled hourly by the ``expire-price-locks`` task.
"""

from django.conf import settings
from django.core.management.base import BaseCommand

from retainly.pricing.services import PricingService


class Command(BaseCommand):
    help = "Clear subscription price locks whose lock period has ended."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report expired locks without clearing them",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=settings.RETAINLY_SWEEP_BATCH_SIZE,
            help=(
                "Maximum number of locks to clear per invocation "
                f"(default: {settings.RETAINLY_SWEEP_BATCH_SIZE})"
            ),
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        result = PricingService().process_expired_price_locks(
            batch_size=options["batch_size"],
            dry_run=dry_run,
        )

        if result.processed == 0:
            self.stdout.write(self.style.SUCCESS("No expired price locks."))
            return

        if dry_run:
            self.stdout.write(
                self.style.WARNING(f"[DRY RUN] Would clear {result.count} price lock(s)."),
            )
            return

        self.stdout.write(self.style.SUCCESS(f"Cleared {result.count} price lock(s)."))
        if result.failed:
            self.stderr.write(
                self.style.ERROR(f"{len(result.failed)} lock(s) failed; see logs."),
            )
