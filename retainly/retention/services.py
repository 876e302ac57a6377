"""
Cancellation flow and retention offers.

When a subscriber asks to cancel, ``initiate_cancellation`` records why and
presents save offers chosen from the reason and the company's cancellation
flow config:

    TOO_EXPENSIVE, FINANCIAL_REASONS  -> DISCOUNT and/or DOWNSELL
    TEMPORARY_PAUSE, NOT_USING        -> PAUSE
    PRODUCT_ISSUES                    -> FREE_PERIOD (one period)
    anything else                     -> PAUSE, if pausing is enabled

The subscription is never cancelled here. The caller may always proceed to
cancellation; accepting an offer applies its benefit instead.

Offer expiry is checked on every read and accept, and a periodic sweep
(``expire_retention_offers``) flips the stragglers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from retainly.core.events import EventSink
from retainly.core.events import SignalEventSink
from retainly.core.exceptions import BadRequestError
from retainly.core.exceptions import NotFoundError
from retainly.plans.constants import PlanStatus
from retainly.plans.models import SubscriptionPlan
from retainly.retention.constants import CANCELLATION_FLOW_DEFAULTS
from retainly.retention.constants import PAUSE_REASONS
from retainly.retention.constants import PRICE_SENSITIVE_REASONS
from retainly.retention.constants import PRODUCT_ISSUES_FREE_PERIODS
from retainly.retention.constants import RETENTION_OFFER_REASON
from retainly.retention.constants import CancellationReason
from retainly.retention.constants import RetentionOfferStatus
from retainly.retention.constants import RetentionOfferType
from retainly.retention.constants import WinBackCampaignStatus
from retainly.retention.models import CancellationFlowConfig
from retainly.retention.models import RetentionOffer
from retainly.retention.models import WinBackCampaign
from retainly.subscriptions.benefits import stamp_free_periods
from retainly.subscriptions.benefits import stamp_retention_discount
from retainly.subscriptions.constants import METADATA_CANCELLATION_FEEDBACK
from retainly.subscriptions.constants import METADATA_CANCELLATION_REASON
from retainly.subscriptions.constants import SubscriptionStatus
from retainly.subscriptions.models import Subscription

logger = logging.getLogger(__name__)

# Fallbacks when an offer row is missing its payload
DEFAULT_DISCOUNT_PCT = Decimal("20")
DEFAULT_PAUSE_DAYS = 30
DEFAULT_FREE_PERIODS = 1

FLOW_CONFIG_FIELDS = (*CANCELLATION_FLOW_DEFAULTS, "custom_messages")


@dataclass
class CancellationFlowResult:
    subscription: Subscription
    reason: str | None
    offers: list[RetentionOffer]
    can_proceed_to_cancellation: bool = True


@dataclass
class OfferSweepResult:
    processed: int = 0
    expired: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.expired)


@dataclass
class OfferTypeStats:
    presented: int = 0
    accepted: int = 0

    @property
    def acceptance_rate(self) -> float:
        return self.accepted / self.presented if self.presented else 0.0


@dataclass
class WinBackStats:
    total_campaigns: int = 0
    active_campaigns: int = 0
    total_sent: int = 0
    total_accepted: int = 0

    @property
    def win_back_rate(self) -> float:
        return self.total_accepted / self.total_sent if self.total_sent else 0.0


@dataclass
class RetentionStats:
    total_cancellation_attempts: int
    saved_by_cancellation_flow: int
    offers_by_type: dict[str, OfferTypeStats]
    cancellations_by_reason: dict[str, int]
    win_back: WinBackStats

    @property
    def save_rate(self) -> float:
        if not self.total_cancellation_attempts:
            return 0.0
        return self.saved_by_cancellation_flow / self.total_cancellation_attempts


def expire_offer(offer_id: int, now, events: EventSink) -> bool:
    """
    Flip one overdue PRESENTED offer to EXPIRED.

    A single conditional update, so an offer accepted or declined in the
    meantime is left alone. Returns True when the row changed.
    """
    updated = RetentionOffer.objects.overdue(now).filter(pk=offer_id).update(
        status=RetentionOfferStatus.EXPIRED,
        modified=now,
    )
    if not updated:
        return False

    offer = RetentionOffer.objects.get(pk=offer_id)
    logger.info("Retention offer %s expired", offer.pk)
    events.emit(
        "subscription.retention.offer_expired",
        {
            "subscription_id": offer.subscription_id,
            "offer_id": offer.pk,
            "offer_type": offer.type,
            "campaign_id": offer.campaign_id,
        },
    )
    return True


class RetentionService:
    def __init__(self, events: EventSink | None = None):
        self.events = events or SignalEventSink()

    # ------------------------------------------------------------------
    # Cancellation flow
    # ------------------------------------------------------------------

    @transaction.atomic
    def initiate_cancellation(
        self,
        subscription_id: int,
        reason: str | None = None,
        feedback: str | None = None,
    ) -> CancellationFlowResult:
        if reason is not None and reason not in CancellationReason.values:
            raise BadRequestError(f"Unknown cancellation reason: {reason}")

        subscription = (
            Subscription.objects.select_for_update(of=("self",))
            .select_related("subscription_plan")
            .filter(pk=subscription_id)
            .first()
        )
        if subscription is None:
            raise NotFoundError(f"Subscription {subscription_id} not found")
        if subscription.status != SubscriptionStatus.ACTIVE:
            raise BadRequestError("Only active subscriptions can be cancelled")

        # Win-back targeting reads the reason back from metadata later on.
        metadata = dict(subscription.metadata or {})
        if reason:
            metadata[METADATA_CANCELLATION_REASON] = reason
        if feedback:
            metadata[METADATA_CANCELLATION_FEEDBACK] = feedback
        if metadata != (subscription.metadata or {}):
            subscription.metadata = metadata
            subscription.save(update_fields=["metadata", "modified"])

        config = self.get_cancellation_flow_config(subscription.company_id)
        offers = self._generate_offers(subscription, reason, config)

        logger.info(
            "Cancellation initiated for subscription %s (reason=%s, offers=%s)",
            subscription.pk,
            reason,
            len(offers),
        )
        self.events.emit(
            "subscription.cancellation.initiated",
            {
                "subscription_id": subscription.pk,
                "company_id": subscription.company_id,
                "reason": reason,
                "feedback": feedback,
                "offers_presented": len(offers),
            },
        )
        return CancellationFlowResult(
            subscription=subscription,
            reason=reason,
            offers=offers,
        )

    def _generate_offers(
        self,
        subscription: Subscription,
        reason: str | None,
        config: CancellationFlowConfig,
    ) -> list[RetentionOffer]:
        if not config.show_retention_offers:
            return []

        now = timezone.now()
        base = {
            "subscription": subscription,
            "company_id": subscription.company_id,
            "status": RetentionOfferStatus.PRESENTED,
            "cancellation_reason": reason or "",
            "presented_at": now,
            "expires_at": now + timedelta(hours=settings.RETAINLY_RETENTION_OFFER_TTL_HOURS),
        }
        pending: list[RetentionOffer] = []

        if reason in PRICE_SENSITIVE_REASONS:
            if config.show_discount_option:
                pending.append(
                    RetentionOffer(
                        type=RetentionOfferType.DISCOUNT,
                        discount_pct=(
                            DEFAULT_DISCOUNT_PCT if config.discount_pct is None else config.discount_pct
                        ),
                        **base,
                    ),
                )
            if config.show_downsell_option:
                cheaper = self.find_cheaper_plan(subscription)
                if cheaper is not None:
                    pending.append(
                        RetentionOffer(
                            type=RetentionOfferType.DOWNSELL,
                            downsell_plan=cheaper,
                            **base,
                        ),
                    )

        if reason in PAUSE_REASONS and config.show_pause_option:
            pending.append(
                RetentionOffer(
                    type=RetentionOfferType.PAUSE,
                    pause_days=(
                        DEFAULT_PAUSE_DAYS if config.pause_max_days is None else config.pause_max_days
                    ),
                    **base,
                ),
            )

        if reason == CancellationReason.PRODUCT_ISSUES:
            pending.append(
                RetentionOffer(
                    type=RetentionOfferType.FREE_PERIOD,
                    free_periods=PRODUCT_ISSUES_FREE_PERIODS,
                    **base,
                ),
            )

        if not pending and config.show_pause_option:
            pending.append(
                RetentionOffer(
                    type=RetentionOfferType.PAUSE,
                    pause_days=(
                        DEFAULT_PAUSE_DAYS if config.pause_max_days is None else config.pause_max_days
                    ),
                    **base,
                ),
            )

        for offer in pending:
            offer.save()
        return pending

    def find_cheaper_plan(self, subscription: Subscription) -> SubscriptionPlan | None:
        """
        Pick the downsell target for a subscription.

        The most expensive active plan of the same company that is strictly
        cheaper per month than the current one.
        """
        plan = subscription.subscription_plan
        if plan is None:
            return None

        return (
            SubscriptionPlan.objects.filter(
                company_id=subscription.company_id,
                status=PlanStatus.ACTIVE,
                base_price_monthly__lt=plan.base_price_monthly,
            )
            .exclude(pk=plan.pk)
            .order_by("-base_price_monthly", "pk")
            .first()
        )

    # ------------------------------------------------------------------
    # Offer responses
    # ------------------------------------------------------------------

    def accept_offer(self, offer_id: int, subscription_id: int) -> Subscription:
        """
        Accept a PRESENTED offer and apply its benefit to the subscription.

        An offer past its expiry is marked EXPIRED before the error is
        raised, so a retry reports the status instead.
        """
        offer = self._get_offer(offer_id)
        if offer.subscription_id != subscription_id:
            raise BadRequestError("Offer does not belong to this subscription")
        self._check_acceptable(offer)

        return self._apply_offer(offer.pk)

    @transaction.atomic
    def _apply_offer(self, offer_id: int) -> Subscription:
        offer = RetentionOffer.objects.select_for_update().get(pk=offer_id)
        if offer.status != RetentionOfferStatus.PRESENTED:
            raise BadRequestError(f"Offer is {offer.status}, cannot be accepted")

        subscription = Subscription.objects.select_for_update().get(pk=offer.subscription_id)
        now = timezone.now()

        if offer.type == RetentionOfferType.DISCOUNT:
            subscription.metadata = stamp_retention_discount(
                subscription.metadata or {},
                DEFAULT_DISCOUNT_PCT if offer.discount_pct is None else offer.discount_pct,
                applied_at=now,
                reason=RETENTION_OFFER_REASON,
            )
            update_fields = ["metadata"]
        elif offer.type == RetentionOfferType.DOWNSELL:
            if offer.downsell_plan_id is None:
                raise BadRequestError("No downsell plan specified")
            plan = SubscriptionPlan.objects.filter(pk=offer.downsell_plan_id).first()
            if plan is None:
                raise NotFoundError(f"Plan {offer.downsell_plan_id} not found")
            subscription.subscription_plan = plan
            subscription.plan_amount = plan.base_price_monthly
            update_fields = ["subscription_plan", "plan_amount"]
        elif offer.type == RetentionOfferType.PAUSE:
            subscription.status = SubscriptionStatus.PAUSED
            subscription.paused_at = now
            subscription.pause_resume_at = now + timedelta(
                days=offer.pause_days or DEFAULT_PAUSE_DAYS,
            )
            update_fields = ["status", "paused_at", "pause_resume_at"]
        elif offer.type == RetentionOfferType.FREE_PERIOD:
            subscription.metadata = stamp_free_periods(
                subscription.metadata or {},
                offer.free_periods or DEFAULT_FREE_PERIODS,
                applied_at=now,
                reason=RETENTION_OFFER_REASON,
            )
            update_fields = ["metadata"]
        else:
            raise BadRequestError(f"Unsupported offer type: {offer.type}")

        subscription.save(update_fields=[*update_fields, "modified"])

        offer.status = RetentionOfferStatus.ACCEPTED
        offer.responded_at = now
        offer.save(update_fields=["status", "responded_at", "modified"])

        logger.info(
            "Retention offer %s (%s) accepted for subscription %s",
            offer.pk,
            offer.type,
            subscription.pk,
        )
        self.events.emit(
            "subscription.retention.offer_accepted",
            {
                "subscription_id": subscription.pk,
                "offer_id": offer.pk,
                "offer_type": offer.type,
                "cancellation_reason": offer.cancellation_reason or None,
            },
        )
        return subscription

    @transaction.atomic
    def decline_offer(
        self,
        offer_id: int,
        subscription_id: int | None = None,
    ) -> RetentionOffer:
        offer = self._get_offer(offer_id, for_update=True)
        if subscription_id is not None and offer.subscription_id != subscription_id:
            raise BadRequestError("Offer does not belong to this subscription")
        if offer.status != RetentionOfferStatus.PRESENTED:
            raise BadRequestError(f"Offer is {offer.status}, cannot be declined")

        offer.status = RetentionOfferStatus.DECLINED
        offer.responded_at = timezone.now()
        offer.save(update_fields=["status", "responded_at", "modified"])

        logger.info("Retention offer %s declined", offer.pk)
        self.events.emit(
            "subscription.retention.offer_declined",
            {
                "subscription_id": offer.subscription_id,
                "offer_id": offer.pk,
                "offer_type": offer.type,
                "cancellation_reason": offer.cancellation_reason or None,
            },
        )
        return offer

    def get_pending_offers(self, subscription_id: int) -> list[RetentionOffer]:
        """PRESENTED offers that can still be accepted. Overdue ones are expired."""
        if not Subscription.objects.filter(pk=subscription_id).exists():
            raise NotFoundError(f"Subscription {subscription_id} not found")

        now = timezone.now()
        overdue = RetentionOffer.objects.overdue(now).filter(subscription_id=subscription_id)
        for offer_id in overdue.values_list("pk", flat=True):
            expire_offer(offer_id, now, self.events)

        return list(
            RetentionOffer.objects.presented()
            .filter(subscription_id=subscription_id)
            .select_related("downsell_plan"),
        )

    def expire_overdue_offers(
        self,
        batch_size: int | None = None,
        *,
        dry_run: bool = False,
    ) -> OfferSweepResult:
        now = timezone.now()
        overdue = RetentionOffer.objects.overdue(now).order_by("expires_at", "pk")
        if batch_size:
            overdue = overdue[:batch_size]

        result = OfferSweepResult()
        for offer_id in overdue.values_list("pk", flat=True):
            result.processed += 1
            if dry_run:
                result.expired.append(offer_id)
                continue
            try:
                if expire_offer(offer_id, now, self.events):
                    result.expired.append(offer_id)
            except Exception:
                logger.exception("Expiring retention offer %s failed", offer_id)
                result.failed.append(offer_id)

        if result.processed:
            logger.info(
                "Retention offer expiry sweep finished",
                extra={
                    "processed": result.processed,
                    "expired": result.count,
                    "failed": len(result.failed),
                    "dry_run": dry_run,
                },
            )
        return result

    def _check_acceptable(self, offer: RetentionOffer) -> None:
        if offer.status != RetentionOfferStatus.PRESENTED:
            raise BadRequestError(f"Offer is {offer.status}, cannot be accepted")
        now = timezone.now()
        if offer.is_expired_at(now):
            expire_offer(offer.pk, now, self.events)
            raise BadRequestError("Offer has expired")

    def _get_offer(self, offer_id: int, *, for_update: bool = False) -> RetentionOffer:
        queryset = RetentionOffer.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        offer = queryset.filter(pk=offer_id).first()
        if offer is None:
            raise NotFoundError(f"Offer {offer_id} not found")
        return offer

    # ------------------------------------------------------------------
    # Flow configuration
    # ------------------------------------------------------------------

    def get_cancellation_flow_config(self, company_id: int) -> CancellationFlowConfig:
        """Stored config for the company, or an unsaved one holding the defaults."""
        config = CancellationFlowConfig.objects.filter(company_id=company_id).first()
        if config is None:
            config = CancellationFlowConfig(company_id=company_id, custom_messages={})
        return config

    @transaction.atomic
    def configure_cancellation_flow(
        self,
        company_id: int,
        changes: dict,
    ) -> CancellationFlowConfig:
        """
        Update the company's flow config with the supplied fields.

        Fields that are absent or None keep their stored value, or the
        default when nothing is stored yet.
        """
        from retainly.users.models import Company

        unknown = sorted(set(changes) - set(FLOW_CONFIG_FIELDS))
        if unknown:
            raise BadRequestError(f"Fields cannot be updated: {', '.join(unknown)}")

        reasons = (changes.get("custom_messages") or {}).keys()
        invalid = sorted(set(reasons) - set(CancellationReason.values))
        if invalid:
            raise BadRequestError(f"Unknown cancellation reason: {', '.join(invalid)}")

        if not Company.objects.filter(pk=company_id).exists():
            raise NotFoundError(f"Company {company_id} not found")

        config, _ = CancellationFlowConfig.objects.select_for_update().get_or_create(
            company_id=company_id,
        )
        for name, value in changes.items():
            if value is not None:
                setattr(config, name, value)
        config.save()

        logger.info("Cancellation flow configured for company %s", company_id)
        return config

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_retention_stats(self, company_id: int) -> RetentionStats:
        # Cancellation-flow offers only; win-back offers are counted on campaigns.
        offers = RetentionOffer.objects.filter(company_id=company_id, campaign__isnull=True)

        offers_by_type = {value: OfferTypeStats() for value in RetentionOfferType.values}
        presented_total = 0
        accepted_total = 0
        rows = (
            offers.exclude(status=RetentionOfferStatus.PENDING)
            .order_by()
            .values("type", "status")
            .annotate(count=Count("id"))
        )
        for row in rows:
            stats = offers_by_type[row["type"]]
            stats.presented += row["count"]
            presented_total += row["count"]
            if row["status"] == RetentionOfferStatus.ACCEPTED:
                stats.accepted += row["count"]
                accepted_total += row["count"]

        by_reason = {value: 0 for value in CancellationReason.values}
        for row in (
            offers.exclude(cancellation_reason="")
            .order_by()
            .values("cancellation_reason")
            .annotate(count=Count("id"))
        ):
            by_reason[row["cancellation_reason"]] = row["count"]

        win_back = WinBackStats()
        for campaign in WinBackCampaign.objects.filter(company_id=company_id):
            win_back.total_campaigns += 1
            if campaign.status == WinBackCampaignStatus.ACTIVE:
                win_back.active_campaigns += 1
            win_back.total_sent += campaign.sent_count
            win_back.total_accepted += campaign.accepted_count

        return RetentionStats(
            total_cancellation_attempts=presented_total,
            saved_by_cancellation_flow=accepted_total,
            offers_by_type=offers_by_type,
            cancellations_by_reason=by_reason,
            win_back=win_back,
        )
