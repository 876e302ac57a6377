"""
Pricing engine.

Computes what a subscriber owes each cycle and manages the pricing state
stored on the subscription:

- Loyalty tiers: discount earned by rebill count, configured on the plan.
- Price locks: freeze ``plan_amount`` for N cycles or indefinitely.
- Early renewal: start a new period now, crediting unused days.
- Effective price: base (locked or current) minus loyalty discount.

The engine reads plan configuration but never writes to plans.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from decimal import ROUND_HALF_UP
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction
from django.db.models import Avg
from django.db.models import Sum
from django.utils import timezone

from retainly.core.events import EventSink
from retainly.core.events import SignalEventSink
from retainly.core.exceptions import BadRequestError
from retainly.core.exceptions import NotFoundError
from retainly.pricing.loyalty import NO_TIER
from retainly.pricing.loyalty import LoyaltyTierInfo
from retainly.pricing.loyalty import resolve_loyalty_tier
from retainly.subscriptions.benefits import json_number
from retainly.subscriptions.constants import METADATA_LAST_EARLY_RENEWAL
from retainly.subscriptions.constants import SubscriptionStatus
from retainly.subscriptions.intervals import add_cycles
from retainly.subscriptions.models import Subscription

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
SECONDS_PER_DAY = Decimal("86400")

# Fields cleared when a price lock ends
PRICE_LOCK_CLEARED = {
    "price_locked": False,
    "price_locked_amount": None,
    "price_lock_cycles": None,
    "price_locked_until": None,
}


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class PriceBreakdownLine:
    label: str
    amount: Decimal
    type: str  # "base" | "discount" | "adjustment"


@dataclass
class EffectivePrice:
    base_price: Decimal
    loyalty_discount: Decimal
    loyalty_tier: int | None
    coupon_discount: Decimal
    final_price: Decimal
    currency: str
    breakdown: list[PriceBreakdownLine] = field(default_factory=list)


@dataclass
class EarlyRenewalResult:
    subscription: Subscription
    prorated_credit: Decimal
    new_period_start: datetime
    new_period_end: datetime


@dataclass
class SweepResult:
    """Outcome of a batch sweep. ``changed`` lists the subscriptions written."""

    processed: int = 0
    changed: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.changed)


@dataclass
class PricingStats:
    subscriptions_with_loyalty: int
    subscriptions_with_price_lock: int
    total_loyalty_discounts: Decimal
    avg_loyalty_tier: Decimal


class PricingService:
    def __init__(self, events: EventSink | None = None):
        self.events = events or SignalEventSink()

    # ------------------------------------------------------------------
    # Loyalty
    # ------------------------------------------------------------------

    def calculate_loyalty_tier(self, subscription_id: int) -> LoyaltyTierInfo:
        subscription = self._get(subscription_id)
        return self._loyalty_info(subscription)

    @transaction.atomic
    def apply_loyalty_pricing(self, subscription_id: int) -> Subscription:
        """
        Recompute and store the loyalty tier, whatever the stored value.

        Unlike the upgrade sweep this can lower a tier, for example after a
        plan's tiers were edited.
        """
        subscription = self._get(subscription_id, for_update=True)
        info = self._loyalty_info(subscription)

        subscription.loyalty_tier = info.tier
        subscription.loyalty_discount_pct = info.discount_pct
        subscription.loyalty_locked_at = timezone.now() if info.tier is not None else None
        subscription.save(
            update_fields=[
                "loyalty_tier",
                "loyalty_discount_pct",
                "loyalty_locked_at",
                "modified",
            ],
        )

        logger.info(
            "Applied loyalty pricing to subscription %s (tier=%s, discount=%s%%)",
            subscription.pk,
            info.tier,
            info.discount_pct,
        )
        if info.tier is not None:
            self.events.emit(
                "subscription.loyalty.tier_updated",
                {
                    "subscription_id": subscription.pk,
                    "tier": info.tier,
                    "discount_pct": json_number(info.discount_pct),
                },
            )
        return subscription

    def process_loyalty_upgrades(
        self,
        company_id: int | None = None,
        batch_size: int | None = None,
        *,
        dry_run: bool = False,
    ) -> SweepResult:
        """
        Raise loyalty tiers for ACTIVE subscriptions on loyalty-enabled plans.

        A tier is only ever raised. Each subscription is re-read under a row
        lock and written on its own, so one failure does not stop the sweep
        and re-running with unchanged rebill counts writes nothing.
        """
        candidates = Subscription.objects.filter(
            status=SubscriptionStatus.ACTIVE,
            subscription_plan__loyalty_enabled=True,
            subscription_plan__loyalty_tiers__isnull=False,
            subscription_plan__deleted_at__isnull=True,
        ).order_by("pk")
        if company_id is not None:
            candidates = candidates.filter(company_id=company_id)
        if batch_size:
            candidates = candidates[:batch_size]

        result = SweepResult()
        for subscription_id in candidates.values_list("pk", flat=True):
            result.processed += 1
            try:
                if self._upgrade_loyalty(subscription_id, dry_run=dry_run):
                    result.changed.append(subscription_id)
            except Exception:
                logger.exception(
                    "Loyalty upgrade failed for subscription %s",
                    subscription_id,
                )
                result.failed.append(subscription_id)

        logger.info(
            "Loyalty upgrade sweep finished",
            extra={
                "processed": result.processed,
                "upgraded": result.count,
                "failed": len(result.failed),
                "dry_run": dry_run,
            },
        )
        return result

    def _upgrade_loyalty(self, subscription_id: int, *, dry_run: bool) -> bool:
        with transaction.atomic():
            subscription = (
                Subscription.objects.select_for_update(of=("self",))
                .select_related("subscription_plan")
                .get(pk=subscription_id)
            )
            if subscription.status != SubscriptionStatus.ACTIVE:
                return False

            info = self._loyalty_info(subscription)
            previous = subscription.loyalty_tier
            if info.tier is None or (previous is not None and info.tier <= previous):
                return False
            if dry_run:
                return True

            subscription.loyalty_tier = info.tier
            subscription.loyalty_discount_pct = info.discount_pct
            subscription.loyalty_locked_at = timezone.now()
            subscription.save(
                update_fields=[
                    "loyalty_tier",
                    "loyalty_discount_pct",
                    "loyalty_locked_at",
                    "modified",
                ],
            )
            self.events.emit(
                "subscription.loyalty.upgraded",
                {
                    "subscription_id": subscription.pk,
                    "previous_tier": previous,
                    "new_tier": info.tier,
                    "discount_pct": json_number(info.discount_pct),
                },
            )
        return True

    def _loyalty_info(self, subscription: Subscription) -> LoyaltyTierInfo:
        plan = subscription.subscription_plan
        if plan is None or not plan.loyalty_enabled or not plan.loyalty_tiers:
            return NO_TIER
        return resolve_loyalty_tier(plan.loyalty_tiers, subscription.cycle_count)

    # ------------------------------------------------------------------
    # Price lock
    # ------------------------------------------------------------------

    @transaction.atomic
    def lock_price(self, subscription_id: int, cycles: int | None = None) -> Subscription:
        """
        Freeze the current ``plan_amount``.

        With ``cycles`` the lock ends that many billing periods from now.
        Without it the lock never expires.
        """
        subscription = self._get(subscription_id, for_update=True)
        plan = subscription.subscription_plan
        if plan is not None and not plan.price_lock_enabled:
            raise BadRequestError("Price locking is not enabled for this plan")
        if cycles is not None and cycles < 1:
            raise BadRequestError("cycles must be a positive integer")

        locked_until = None
        if cycles:
            locked_until = add_cycles(timezone.now(), subscription.interval, cycles)

        subscription.price_locked = True
        subscription.price_locked_amount = subscription.plan_amount
        subscription.price_lock_cycles = cycles
        subscription.price_locked_until = locked_until
        subscription.save(
            update_fields=[*PRICE_LOCK_CLEARED, "modified"],
        )

        logger.info(
            "Locked price for subscription %s at %s",
            subscription.pk,
            subscription.price_locked_amount,
        )
        self.events.emit(
            "subscription.price.locked",
            {
                "subscription_id": subscription.pk,
                "locked_amount": str(subscription.price_locked_amount),
                "cycles": cycles,
                "until": locked_until.isoformat() if locked_until else None,
            },
        )
        return subscription

    @transaction.atomic
    def unlock_price(self, subscription_id: int) -> Subscription:
        subscription = self._get(subscription_id, for_update=True)
        if not subscription.price_locked:
            raise BadRequestError("Subscription does not have a price lock")

        for name, value in PRICE_LOCK_CLEARED.items():
            setattr(subscription, name, value)
        subscription.save(update_fields=[*PRICE_LOCK_CLEARED, "modified"])

        logger.info("Unlocked price for subscription %s", subscription.pk)
        self.events.emit("subscription.price.unlocked", {"subscription_id": subscription.pk})
        return subscription

    def process_expired_price_locks(
        self,
        batch_size: int | None = None,
        *,
        dry_run: bool = False,
    ) -> SweepResult:
        """
        Clear price locks whose ``price_locked_until`` has passed.

        Each clear is a single conditional update, so a lock renewed between
        the scan and the write is left alone.
        """
        now = timezone.now()
        expired = Subscription.objects.filter(
            price_locked=True,
            price_locked_until__lte=now,
        ).order_by("price_locked_until")
        if batch_size:
            expired = expired[:batch_size]

        result = SweepResult()
        for subscription_id in expired.values_list("pk", flat=True):
            result.processed += 1
            if dry_run:
                result.changed.append(subscription_id)
                continue
            try:
                updated = Subscription.objects.filter(
                    pk=subscription_id,
                    price_locked=True,
                    price_locked_until__lte=now,
                ).update(**PRICE_LOCK_CLEARED, modified=timezone.now())
            except Exception:
                logger.exception(
                    "Price lock expiry failed for subscription %s",
                    subscription_id,
                )
                result.failed.append(subscription_id)
                continue
            if updated:
                result.changed.append(subscription_id)
                self.events.emit(
                    "subscription.price.lock_expired",
                    {"subscription_id": subscription_id},
                )

        if result.changed:
            logger.info(
                "Expired %s price locks",
                result.count,
                extra={"dry_run": dry_run, "failed": len(result.failed)},
            )
        return result

    # ------------------------------------------------------------------
    # Early renewal
    # ------------------------------------------------------------------

    @transaction.atomic
    def process_early_renewal(
        self,
        subscription_id: int,
        prorate: bool | None = None,
    ) -> EarlyRenewalResult:
        """
        Start a new billing period now.

        When prorating, the unused part of the current period is credited:
        ``plan_amount / total_days * remaining_days``.
        """
        subscription = self._get(subscription_id, for_update=True)
        if subscription.status != SubscriptionStatus.ACTIVE:
            raise BadRequestError("Only active subscriptions can do early renewal")

        plan = subscription.subscription_plan
        if plan is not None and not plan.early_renewal_enabled:
            raise BadRequestError("Early renewal is not enabled for this plan")

        if prorate is None:
            prorate = plan.early_renewal_prorate if plan is not None else True

        now = timezone.now()
        credit = Decimal("0")
        previous_end = subscription.current_period_end
        if prorate and previous_end and subscription.current_period_start:
            total = _days(previous_end - subscription.current_period_start)
            remaining = _days(previous_end - now)
            if total > 0 and remaining > 0:
                credit = subscription.plan_amount / total * remaining
        credit = quantize_money(credit)

        new_end = add_cycles(now, subscription.interval, 1)
        subscription.current_period_start = now
        subscription.current_period_end = new_end
        subscription.next_billing_date = new_end
        subscription.cycle_count += 1
        subscription.metadata = {
            **(subscription.metadata or {}),
            METADATA_LAST_EARLY_RENEWAL: {
                "at": now.isoformat(),
                "proratedCredit": json_number(credit),
                "previousPeriodEnd": previous_end.isoformat() if previous_end else None,
            },
        }
        subscription.save(
            update_fields=[
                "current_period_start",
                "current_period_end",
                "next_billing_date",
                "cycle_count",
                "metadata",
                "modified",
            ],
        )

        logger.info(
            "Processed early renewal for subscription %s (credit=%s)",
            subscription.pk,
            credit,
        )
        self.events.emit(
            "subscription.early_renewal",
            {
                "subscription_id": subscription.pk,
                "prorated_credit": str(credit),
                "new_period_start": now.isoformat(),
                "new_period_end": new_end.isoformat(),
            },
        )
        return EarlyRenewalResult(
            subscription=subscription,
            prorated_credit=credit,
            new_period_start=now,
            new_period_end=new_end,
        )

    # ------------------------------------------------------------------
    # Effective price
    # ------------------------------------------------------------------

    def calculate_effective_price(self, subscription_id: int) -> EffectivePrice:
        subscription = self._get(subscription_id)

        if subscription.price_locked and subscription.price_locked_amount is not None:
            base = subscription.price_locked_amount
        else:
            base = subscription.plan_amount
        breakdown = [PriceBreakdownLine(label="Base Price", amount=base, type="base")]

        loyalty = Decimal("0")
        loyalty_pct = subscription.loyalty_discount_pct or Decimal("0")
        if loyalty_pct > 0:
            loyalty = base * loyalty_pct / 100
            breakdown.append(
                PriceBreakdownLine(
                    label=f"Loyalty Discount ({json_number(loyalty_pct)}%)",
                    amount=-quantize_money(loyalty),
                    type="discount",
                ),
            )

        # Coupons are validated elsewhere; nothing is deducted here.
        coupon = Decimal("0")

        final = quantize_money(max(Decimal("0"), base - loyalty - coupon))
        plan = subscription.subscription_plan
        return EffectivePrice(
            base_price=base,
            loyalty_discount=quantize_money(loyalty),
            loyalty_tier=subscription.loyalty_tier,
            coupon_discount=coupon,
            final_price=final,
            currency=plan.currency if plan else settings.RETAINLY_DEFAULT_CURRENCY,
            breakdown=breakdown,
        )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_pricing_stats(self, company_id: int | None = None) -> PricingStats:
        subscriptions = Subscription.objects.all()
        if company_id is not None:
            subscriptions = subscriptions.filter(company_id=company_id)

        with_loyalty = subscriptions.filter(loyalty_tier__isnull=False)
        totals = with_loyalty.aggregate(
            total=Sum("loyalty_discount_pct"),
            average=Avg("loyalty_tier"),
        )
        return PricingStats(
            subscriptions_with_loyalty=with_loyalty.count(),
            subscriptions_with_price_lock=subscriptions.filter(price_locked=True).count(),
            total_loyalty_discounts=totals["total"] or Decimal("0"),
            avg_loyalty_tier=quantize_money(Decimal(str(totals["average"] or 0))),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get(self, subscription_id: int, *, for_update: bool = False) -> Subscription:
        queryset = Subscription.objects.select_related("subscription_plan")
        if for_update:
            queryset = queryset.select_for_update(of=("self",))
        subscription = queryset.filter(pk=subscription_id).first()
        if subscription is None:
            raise NotFoundError(f"Subscription {subscription_id} not found")
        return subscription


def _days(delta) -> Decimal:
    return Decimal(str(delta.total_seconds())) / SECONDS_PER_DAY
