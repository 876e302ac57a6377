"""
Win-back campaigns.

A campaign targets subscriptions that were already cancelled and sends each
of them one offer. Accepting a win-back offer reactivates the subscription
and stamps the offer's benefits for the next billing cycle.

    campaign = WinBackService().create_win_back_campaign(company.pk, {...})
    activation = service.activate_win_back_campaign(campaign.pk)
    for subscription in activation.eligible:
        service.send_win_back_offer(campaign.pk, subscription.pk)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from retainly.core.events import EventSink
from retainly.core.events import SignalEventSink
from retainly.core.exceptions import BadRequestError
from retainly.core.exceptions import NotFoundError
from retainly.retention.constants import WINBACK_OFFER_REASON
from retainly.retention.constants import CancellationReason
from retainly.retention.constants import RetentionOfferStatus
from retainly.retention.constants import RetentionOfferType
from retainly.retention.constants import WinBackCampaignStatus
from retainly.retention.models import RetentionOffer
from retainly.retention.models import WinBackCampaign
from retainly.retention.services import expire_offer
from retainly.subscriptions.benefits import json_number
from retainly.subscriptions.benefits import stamp_free_periods
from retainly.subscriptions.benefits import stamp_retention_discount
from retainly.subscriptions.constants import METADATA_CANCELLATION_REASON
from retainly.subscriptions.constants import METADATA_REACTIVATED_AT
from retainly.subscriptions.constants import METADATA_WINBACK_OFFER
from retainly.subscriptions.constants import BillingInterval
from retainly.subscriptions.constants import SubscriptionStatus
from retainly.subscriptions.intervals import add_cycles
from retainly.subscriptions.models import Subscription

logger = logging.getLogger(__name__)

CAMPAIGN_FIELDS = (
    "name",
    "target_reasons",
    "min_days_since_cancellation",
    "max_days_since_cancellation",
    "target_plan_ids",
    "offer_type",
    "discount_pct",
    "free_periods",
    "pause_days",
    "offer_valid_days",
    "starts_at",
    "ends_at",
)


@dataclass
class CampaignActivation:
    campaign: WinBackCampaign
    eligible: list[Subscription]


class WinBackService:
    def __init__(self, events: EventSink | None = None):
        self.events = events or SignalEventSink()

    def create_win_back_campaign(self, company_id: int, data: dict) -> WinBackCampaign:
        from retainly.users.models import Company

        unknown = sorted(set(data) - set(CAMPAIGN_FIELDS))
        if unknown:
            raise BadRequestError(f"Unknown campaign fields: {', '.join(unknown)}")
        if not data.get("name"):
            raise BadRequestError("name is required")
        if data.get("offer_type") not in RetentionOfferType.values:
            raise BadRequestError(f"Unknown offer type: {data.get('offer_type')}")

        invalid = sorted(set(data.get("target_reasons") or []) - set(CancellationReason.values))
        if invalid:
            raise BadRequestError(f"Unknown cancellation reason: {', '.join(invalid)}")

        campaign = WinBackCampaign(company_id=company_id, status=WinBackCampaignStatus.DRAFT)
        for name, value in data.items():
            if value is not None:
                setattr(campaign, name, value)

        if campaign.min_days_since_cancellation > campaign.max_days_since_cancellation:
            raise BadRequestError(
                "min_days_since_cancellation cannot exceed max_days_since_cancellation",
            )
        if campaign.starts_at and campaign.ends_at and campaign.ends_at <= campaign.starts_at:
            raise BadRequestError("ends_at must be after starts_at")
        if not Company.objects.filter(pk=company_id).exists():
            raise NotFoundError(f"Company {company_id} not found")

        campaign.save()

        logger.info("Win-back campaign created: %s - %s", campaign.pk, campaign.name)
        self.events.emit(
            "subscription.winback.campaign_created",
            {
                "campaign_id": campaign.pk,
                "company_id": campaign.company_id,
                "name": campaign.name,
            },
        )
        return campaign

    @transaction.atomic
    def activate_win_back_campaign(self, campaign_id: int) -> CampaignActivation:
        """
        Mark a campaign ACTIVE and report who it would reach.

        No offers are sent; call ``send_win_back_offer`` for that.
        """
        campaign = self._get_campaign(campaign_id, for_update=True)
        if campaign.status == WinBackCampaignStatus.ACTIVE:
            raise BadRequestError("Campaign is already active")
        if campaign.status not in (WinBackCampaignStatus.DRAFT, WinBackCampaignStatus.PAUSED):
            raise BadRequestError(f"Campaign is {campaign.status}, cannot be activated")

        campaign.status = WinBackCampaignStatus.ACTIVE
        campaign.save(update_fields=["status", "modified"])
        eligible = self.find_win_back_eligible(campaign)

        logger.info(
            "Win-back campaign %s activated, %s eligible",
            campaign.pk,
            len(eligible),
        )
        self.events.emit(
            "subscription.winback.campaign_activated",
            {"campaign_id": campaign.pk, "eligible_count": len(eligible)},
        )
        return CampaignActivation(campaign=campaign, eligible=eligible)

    def find_win_back_eligible(self, campaign: WinBackCampaign) -> list[Subscription]:
        """
        Cancelled subscriptions of the campaign's company inside its window.

        ``canceled_at`` must lie in ``[now - max_days, now - min_days]``, both
        ends included. When the campaign targets reasons, subscriptions
        without a recorded cancellation reason are left out.
        """
        now = timezone.now()
        subscriptions = Subscription.objects.filter(
            company_id=campaign.company_id,
            status=SubscriptionStatus.CANCELED,
            canceled_at__gte=now - timedelta(days=campaign.max_days_since_cancellation),
            canceled_at__lte=now - timedelta(days=campaign.min_days_since_cancellation),
        ).order_by("canceled_at", "pk")
        if campaign.target_plan_ids:
            subscriptions = subscriptions.filter(subscription_plan_id__in=campaign.target_plan_ids)

        if not campaign.target_reasons:
            return list(subscriptions)

        targets = set(campaign.target_reasons)
        return [
            subscription
            for subscription in subscriptions
            if (subscription.metadata or {}).get(METADATA_CANCELLATION_REASON) in targets
        ]

    @transaction.atomic
    def send_win_back_offer(self, campaign_id: int, subscription_id: int) -> RetentionOffer:
        campaign = self._get_campaign(campaign_id, for_update=True)
        now = timezone.now()
        if not campaign.is_running_at(now):
            raise BadRequestError("Campaign is not running")

        subscription = Subscription.objects.filter(pk=subscription_id).first()
        if subscription is None:
            raise NotFoundError(f"Subscription {subscription_id} not found")
        if subscription.company_id != campaign.company_id:
            raise BadRequestError("Subscription does not belong to the campaign's company")
        if subscription.status != SubscriptionStatus.CANCELED:
            raise BadRequestError("Subscription is not cancelled")

        reason = (subscription.metadata or {}).get(METADATA_CANCELLATION_REASON)
        offer = RetentionOffer.objects.create(
            subscription=subscription,
            company_id=subscription.company_id,
            campaign=campaign,
            type=campaign.offer_type,
            status=RetentionOfferStatus.PRESENTED,
            cancellation_reason=reason if reason in CancellationReason.values else "",
            discount_pct=campaign.discount_pct,
            free_periods=campaign.free_periods,
            pause_days=campaign.pause_days,
            presented_at=now,
            expires_at=now + timedelta(days=campaign.offer_valid_days),
        )
        WinBackCampaign.objects.filter(pk=campaign.pk).update(sent_count=F("sent_count") + 1)

        logger.info(
            "Win-back offer sent: campaign %s, subscription %s",
            campaign.pk,
            subscription.pk,
        )
        self.events.emit(
            "subscription.winback.offer_sent",
            {
                "campaign_id": campaign.pk,
                "subscription_id": subscription.pk,
                "customer_email": subscription.customer_email,
                "offer_id": offer.pk,
            },
        )
        return offer

    def accept_win_back_offer(self, offer_id: int) -> Subscription:
        """
        Reactivate a cancelled subscription from a win-back offer.

        The subscription restarts with its next bill one reactivation period
        away (``RETAINLY_WINBACK_REACTIVATION_MONTHS``). Discount and free
        periods on the offer are stamped for the billing cycle to apply.
        """
        offer = RetentionOffer.objects.filter(pk=offer_id).first()
        if offer is None:
            raise NotFoundError(f"Offer {offer_id} not found")
        if offer.campaign_id is None:
            raise BadRequestError("Offer is not a win-back offer")
        if offer.status != RetentionOfferStatus.PRESENTED:
            raise BadRequestError(f"Offer is {offer.status}, cannot be accepted")

        now = timezone.now()
        if offer.is_expired_at(now):
            expire_offer(offer.pk, now, self.events)
            raise BadRequestError("Offer has expired")

        return self._reactivate(offer.pk)

    @transaction.atomic
    def _reactivate(self, offer_id: int) -> Subscription:
        offer = RetentionOffer.objects.select_for_update().get(pk=offer_id)
        if offer.status != RetentionOfferStatus.PRESENTED:
            raise BadRequestError(f"Offer is {offer.status}, cannot be accepted")

        subscription = Subscription.objects.select_for_update().filter(
            pk=offer.subscription_id,
        ).first()
        if subscription is None:
            raise NotFoundError(f"Subscription {offer.subscription_id} not found")
        if subscription.status != SubscriptionStatus.CANCELED:
            raise BadRequestError("Subscription is not cancelled")

        now = timezone.now()
        metadata = {
            **(subscription.metadata or {}),
            METADATA_WINBACK_OFFER: {
                "offerId": offer.pk,
                "acceptedAt": now.isoformat(),
                "discountPct": (
                    json_number(offer.discount_pct) if offer.discount_pct is not None else None
                ),
                "freePeriods": offer.free_periods,
            },
            METADATA_REACTIVATED_AT: now.isoformat(),
        }
        if offer.discount_pct:
            metadata = stamp_retention_discount(
                metadata,
                offer.discount_pct,
                applied_at=now,
                reason=WINBACK_OFFER_REASON,
            )
        if offer.free_periods:
            metadata = stamp_free_periods(
                metadata,
                offer.free_periods,
                applied_at=now,
                reason=WINBACK_OFFER_REASON,
            )

        subscription.status = SubscriptionStatus.ACTIVE
        subscription.canceled_at = None
        subscription.cancel_reason = ""
        subscription.next_billing_date = add_cycles(
            now,
            BillingInterval.MONTHLY,
            settings.RETAINLY_WINBACK_REACTIVATION_MONTHS,
        )
        subscription.metadata = metadata
        subscription.save(
            update_fields=[
                "status",
                "canceled_at",
                "cancel_reason",
                "next_billing_date",
                "metadata",
                "modified",
            ],
        )

        offer.status = RetentionOfferStatus.ACCEPTED
        offer.responded_at = now
        offer.save(update_fields=["status", "responded_at", "modified"])
        WinBackCampaign.objects.filter(pk=offer.campaign_id).update(
            accepted_count=F("accepted_count") + 1,
        )

        logger.info(
            "Win-back offer %s accepted, subscription %s reactivated",
            offer.pk,
            subscription.pk,
        )
        self.events.emit(
            "subscription.winback.offer_accepted",
            {
                "subscription_id": subscription.pk,
                "offer_id": offer.pk,
                "campaign_id": offer.campaign_id,
            },
        )
        return subscription

    def get_win_back_campaigns(self, company_id: int):
        return WinBackCampaign.objects.filter(company_id=company_id)

    def get_active_win_back_campaigns(self, company_id: int):
        return self.get_win_back_campaigns(company_id).filter(
            status=WinBackCampaignStatus.ACTIVE,
        )

    def get_campaign(self, campaign_id: int) -> WinBackCampaign:
        return self._get_campaign(campaign_id)

    def _get_campaign(self, campaign_id: int, *, for_update: bool = False) -> WinBackCampaign:
        queryset = WinBackCampaign.objects.all()
        if for_update:
            queryset = queryset.select_for_update()
        campaign = queryset.filter(pk=campaign_id).first()
        if campaign is None:
            raise NotFoundError(f"Campaign {campaign_id} not found")
        return campaign
