"""
Management command to raise loyalty tiers after rebills.

Scans ACTIVE subscriptions on loyalty-enabled plans and moves each one up to
the highest tier its rebill count has earned. Tiers never go down here; use
the loyalty/apply endpoint to force a recompute.

Usage:
    python manage.py process_loyalty_upgrades
    python manage.py process_loyalty_upgrades --company-id 42
    python manage.py process_loyalty_upgrades --dry-run --batch-size 100

Scheduled daily by the ``process-loyalty-upgrades`` task (see
retainly.core.tasks.registry).
"""

from django.conf import settings
from django.core.management.base import BaseCommand

from retainly.pricing.services import PricingService

# Max IDs to display in output before truncating
MAX_DISPLAY_IDS = 10


class Command(BaseCommand):
    help = "Upgrade loyalty tiers for active subscriptions on loyalty-enabled plans."

    def add_arguments(self, parser):
        parser.add_argument(
            "--company-id",
            type=int,
            default=None,
            help="Only process subscriptions of this company",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report upgrades without writing them",
        )
        parser.add_argument(
            "--batch-size",
            type=int,
            default=settings.RETAINLY_SWEEP_BATCH_SIZE,
            help=(
                "Maximum number of subscriptions to process per invocation "
                f"(default: {settings.RETAINLY_SWEEP_BATCH_SIZE})"
            ),
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        result = PricingService().process_loyalty_upgrades(
            company_id=options["company_id"],
            batch_size=options["batch_size"],
            dry_run=dry_run,
        )

        if dry_run:
            self.stdout.write(
                self.style.WARNING(
                    f"[DRY RUN] Would upgrade {result.count} of "
                    f"{result.processed} subscription(s).",
                ),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f"Upgraded {result.count} of {result.processed} subscription(s).",
                ),
            )

        if result.changed:
            ids = ", ".join(str(pk) for pk in result.changed[:MAX_DISPLAY_IDS])
            self.stdout.write(f"  IDs: {ids}")
            if len(result.changed) > MAX_DISPLAY_IDS:
                extra = len(result.changed) - MAX_DISPLAY_IDS
                self.stdout.write(f"  ... and {extra} more")

        if result.failed:
            self.stderr.write(
                self.style.ERROR(
                    f"{len(result.failed)} subscription(s) failed; see logs.",
                ),
            )
