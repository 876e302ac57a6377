"""
Tests for the expire_retention_offers management command.
"""

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from retainly.retention.constants import RetentionOfferStatus
from retainly.retention.tests.factories import RetentionOfferFactory


def overdue_offer():
    presented = timezone.now() - timedelta(days=2)
    return RetentionOfferFactory(
        presented_at=presented,
        expires_at=presented + timedelta(hours=24),
    )


@pytest.mark.django_db
class TestExpireRetentionOffersCommand:
    def test_nothing_to_do(self):
        RetentionOfferFactory()
        out = StringIO()

        call_command("expire_retention_offers", stdout=out)

        assert "No overdue retention offers." in out.getvalue()

    def test_expires_overdue_offers(self):
        offer = overdue_offer()
        out = StringIO()

        call_command("expire_retention_offers", stdout=out)

        offer.refresh_from_db()
        assert offer.status == RetentionOfferStatus.EXPIRED
        assert f"Expired 1 offer(s): {offer.pk}" in out.getvalue()

    def test_dry_run(self):
        offer = overdue_offer()
        out = StringIO()

        call_command("expire_retention_offers", "--dry-run", stdout=out)

        offer.refresh_from_db()
        assert offer.status == RetentionOfferStatus.PRESENTED
        assert "[DRY RUN] Would expire 1 offer(s)" in out.getvalue()

    def test_batch_size_limits_work(self):
        offers = [overdue_offer() for _ in range(3)]
        out = StringIO()

        call_command("expire_retention_offers", "--batch-size=2", stdout=out)

        statuses = []
        for offer in offers:
            offer.refresh_from_db()
            statuses.append(offer.status)
        assert statuses.count(RetentionOfferStatus.EXPIRED) == 2
        assert "Expired 2 offer(s)" in out.getvalue()
