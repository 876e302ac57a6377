"""
Management command to expire retention offers past their expiry.

Offers are also expired lazily when read or accepted; this sweep catches
the ones nobody looks at again, so stats and exports see the right status.

Usage:
    python manage.py expire_retention_offers
    python manage.py expire_retention_offers --dry-run --batch-size=100

Scheduled every 15 minutes by the ``expire-retention-offers`` task.
"""

from django.conf import settings
from django.core.management.base import BaseCommand

from retainly.retention.services import RetentionService

# Maximum number of offer IDs to display in output
MAX_DISPLAY_IDS = 10


class Command(BaseCommand):
    help = "Mark presented retention offers past their expiry as EXPIRED."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show which offers would expire without changing them",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=settings.RETAINLY_SWEEP_BATCH_SIZE,
            help=(
                "Maximum number of offers to expire per invocation "
                f"(default: {settings.RETAINLY_SWEEP_BATCH_SIZE})"
            ),
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        result = RetentionService().expire_overdue_offers(
            batch_size=options["batch_size"],
            dry_run=dry_run,
        )

        if result.processed == 0:
            self.stdout.write(self.style.SUCCESS("No overdue retention offers."))
            return

        ids = ", ".join(str(pk) for pk in result.expired[:MAX_DISPLAY_IDS])
        if len(result.expired) > MAX_DISPLAY_IDS:
            ids += f" (and {len(result.expired) - MAX_DISPLAY_IDS} more)"

        if dry_run:
            self.stdout.write(
                self.style.WARNING(f"[DRY RUN] Would expire {result.count} offer(s): {ids}"),
            )
            return

        self.stdout.write(self.style.SUCCESS(f"Expired {result.count} offer(s): {ids}"))
        if result.failed:
            self.stderr.write(
                self.style.ERROR(f"{len(result.failed)} offer(s) failed; see logs."),
            )
