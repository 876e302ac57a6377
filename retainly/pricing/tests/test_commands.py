"""
Tests for the pricing sweep management commands.
"""

from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from retainly.plans.tests.factories import ActivePlanFactory
from retainly.subscriptions.tests.factories import SubscriptionFactory

TIERS = [{"after_rebills": 3, "discount_pct": 5}]


@pytest.mark.django_db
class TestProcessLoyaltyUpgradesCommand:
    def test_upgrades_and_reports(self):
        subscription = SubscriptionFactory(
            subscription_plan=ActivePlanFactory(loyalty_enabled=True, loyalty_tiers=TIERS),
            cycle_count=3,
        )
        out = StringIO()

        call_command("process_loyalty_upgrades", stdout=out)

        subscription.refresh_from_db()
        assert subscription.loyalty_tier == 0
        assert "Upgraded 1 of 1 subscription(s)." in out.getvalue()

    def test_dry_run(self):
        subscription = SubscriptionFactory(
            subscription_plan=ActivePlanFactory(loyalty_enabled=True, loyalty_tiers=TIERS),
            cycle_count=3,
        )
        out = StringIO()

        call_command("process_loyalty_upgrades", "--dry-run", stdout=out)

        subscription.refresh_from_db()
        assert subscription.loyalty_tier is None
        assert "[DRY RUN] Would upgrade 1" in out.getvalue()


@pytest.mark.django_db
class TestExpirePriceLocksCommand:
    def test_nothing_to_do(self):
        out = StringIO()

        call_command("expire_price_locks", stdout=out)

        assert "No expired price locks." in out.getvalue()

    def test_clears_expired_lock(self):
        subscription = SubscriptionFactory(
            price_locked=True,
            price_locked_amount=Decimal("30.00"),
            price_locked_until=timezone.now() - timedelta(minutes=5),
        )
        out = StringIO()

        call_command("expire_price_locks", stdout=out)

        subscription.refresh_from_db()
        assert subscription.price_locked is False
        assert "Cleared 1 price lock(s)." in out.getvalue()
