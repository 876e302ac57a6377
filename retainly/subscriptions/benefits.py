"""
Pending benefits read contract.

Retention and win-back offers leave their benefits on the subscription as
metadata stamps (``retentionDiscount`` and ``freePeriods``). The billing
cycle reads them through ``get_pending_benefits`` rather than parsing the
metadata itself, and ``consume_free_period`` is the only write it makes.

Stamp shapes:

    "retentionDiscount": {"percentage": 20, "appliedAt": "...", "reason": "retention_offer"}
    "freePeriods": {"remaining": 1, "appliedAt": "...", "reason": "winback_offer"}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import transaction

from retainly.core.exceptions import BadRequestError
from retainly.subscriptions.constants import METADATA_FREE_PERIODS
from retainly.subscriptions.constants import METADATA_RETENTION_DISCOUNT

if TYPE_CHECKING:
    from datetime import datetime

    from retainly.subscriptions.models import Subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingBenefits:
    """Benefits the next billing cycle should apply."""

    discount_pct: Decimal | None = None
    discount_reason: str | None = None
    free_periods_remaining: int = 0
    free_periods_reason: str | None = None

    @property
    def has_benefits(self) -> bool:
        return bool(self.discount_pct) or self.free_periods_remaining > 0


def json_number(value) -> int | float:
    """Return ``value`` as a JSON-safe number, keeping whole values integral."""
    number = Decimal(str(value))
    if number == number.to_integral_value():
        return int(number)
    return float(number)


def stamp_retention_discount(
    metadata: dict,
    percentage,
    *,
    applied_at: datetime,
    reason: str,
) -> dict:
    """Return a copy of ``metadata`` carrying a retention discount stamp."""
    return {
        **metadata,
        METADATA_RETENTION_DISCOUNT: {
            "percentage": json_number(percentage),
            "appliedAt": applied_at.isoformat(),
            "reason": reason,
        },
    }


def stamp_free_periods(
    metadata: dict,
    periods: int,
    *,
    applied_at: datetime,
    reason: str,
) -> dict:
    """Return a copy of ``metadata`` carrying a free periods stamp."""
    return {
        **metadata,
        METADATA_FREE_PERIODS: {
            "remaining": int(periods),
            "appliedAt": applied_at.isoformat(),
            "reason": reason,
        },
    }


def get_pending_benefits(subscription: Subscription) -> PendingBenefits:
    metadata = subscription.metadata or {}
    discount = metadata.get(METADATA_RETENTION_DISCOUNT) or {}
    free_periods = metadata.get(METADATA_FREE_PERIODS) or {}

    percentage = discount.get("percentage")
    return PendingBenefits(
        discount_pct=Decimal(str(percentage)) if percentage is not None else None,
        discount_reason=discount.get("reason"),
        free_periods_remaining=max(int(free_periods.get("remaining") or 0), 0),
        free_periods_reason=free_periods.get("reason"),
    )


@transaction.atomic
def consume_free_period(subscription: Subscription) -> int:
    """
    Use up one free period and return how many remain.

    Raises BadRequestError when the subscription has none left.
    """
    from retainly.subscriptions.models import Subscription

    locked = Subscription.objects.select_for_update().get(pk=subscription.pk)
    metadata = dict(locked.metadata or {})
    stamp = dict(metadata.get(METADATA_FREE_PERIODS) or {})
    remaining = int(stamp.get("remaining") or 0)
    if remaining <= 0:
        raise BadRequestError("Subscription has no free periods remaining")

    stamp["remaining"] = remaining - 1
    metadata[METADATA_FREE_PERIODS] = stamp
    locked.metadata = metadata
    locked.save(update_fields=["metadata", "modified"])

    subscription.metadata = metadata
    logger.info(
        "Consumed free period for subscription %s (%s remaining)",
        locked.pk,
        stamp["remaining"],
    )
    return stamp["remaining"]
