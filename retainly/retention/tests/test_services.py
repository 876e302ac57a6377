"""
Tests for the cancellation flow and retention offers.

These tests cover:
- Offer generation by cancellation reason and flow config
- Downsell target selection
- Accepting each offer type, and the expiry and ownership checks
- Declining and pending-offer reads with lazy expiry
- The overdue offer sweep
- Flow configuration with layered defaults
- Retention statistics
"""

from datetime import UTC
from datetime import datetime
from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest

from retainly.core.events import RecordingEventSink
from retainly.core.exceptions import BadRequestError
from retainly.core.exceptions import NotFoundError
from retainly.plans.tests.factories import ActivePlanFactory
from retainly.plans.tests.factories import SubscriptionPlanFactory
from retainly.retention.constants import CancellationReason
from retainly.retention.constants import RetentionOfferStatus
from retainly.retention.constants import RetentionOfferType
from retainly.retention.constants import WinBackCampaignStatus
from retainly.retention.models import RetentionOffer
from retainly.retention.services import RetentionService
from retainly.retention.tests.factories import CancellationFlowConfigFactory
from retainly.retention.tests.factories import RetentionOfferFactory
from retainly.retention.tests.factories import WinBackCampaignFactory
from retainly.retention.tests.factories import WinBackOfferFactory
from retainly.subscriptions.constants import SubscriptionStatus
from retainly.subscriptions.tests.factories import SubscriptionFactory
from retainly.users.tests.factories import CompanyFactory

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def service(events):
    return RetentionService(events=events)


def subscription_on_plan(price="50.00", **kwargs):
    plan = ActivePlanFactory(base_price_monthly=Decimal(price))
    return SubscriptionFactory(
        company=plan.company,
        subscription_plan=plan,
        plan_amount=Decimal(price),
        **kwargs,
    )


@pytest.mark.django_db
class TestInitiateCancellation:
    def test_price_reason_gets_discount_and_downsell(self, service, events):
        subscription = subscription_on_plan()
        company = subscription.company
        ActivePlanFactory(company=company, base_price_monthly=Decimal("20.00"))
        best = ActivePlanFactory(company=company, base_price_monthly=Decimal("30.00"))
        SubscriptionPlanFactory(company=company, base_price_monthly=Decimal("40.00"))
        ActivePlanFactory(base_price_monthly=Decimal("45.00"))

        result = service.initiate_cancellation(
            subscription.pk,
            CancellationReason.TOO_EXPENSIVE,
            "Costs too much",
        )

        assert [offer.type for offer in result.offers] == [
            RetentionOfferType.DISCOUNT,
            RetentionOfferType.DOWNSELL,
        ]
        assert result.offers[0].discount_pct == Decimal("20")
        assert result.offers[1].downsell_plan_id == best.pk
        assert result.can_proceed_to_cancellation is True
        assert events.names() == ["subscription.cancellation.initiated"]

    def test_reason_and_feedback_recorded_without_cancelling(self, service):
        subscription = subscription_on_plan()

        service.initiate_cancellation(
            subscription.pk,
            CancellationReason.NOT_USING,
            "Too much coffee",
        )

        subscription.refresh_from_db()
        assert subscription.status == SubscriptionStatus.ACTIVE
        assert subscription.metadata["cancellationReason"] == "NOT_USING"
        assert subscription.metadata["cancellationFeedback"] == "Too much coffee"

    def test_offers_expire_after_ttl(self, service, settings):
        settings.RETAINLY_RETENTION_OFFER_TTL_HOURS = 24
        subscription = subscription_on_plan()

        with mock.patch("django.utils.timezone.now", return_value=NOW):
            result = service.initiate_cancellation(
                subscription.pk,
                CancellationReason.PRODUCT_ISSUES,
            )

        offer = result.offers[0]
        assert offer.status == RetentionOfferStatus.PRESENTED
        assert offer.presented_at == NOW
        assert offer.expires_at == NOW + timedelta(hours=24)

    def test_no_cheaper_plan_means_discount_only(self, service):
        subscription = subscription_on_plan(price="10.00")

        result = service.initiate_cancellation(
            subscription.pk,
            CancellationReason.FINANCIAL_REASONS,
        )

        assert [offer.type for offer in result.offers] == [RetentionOfferType.DISCOUNT]

    def test_downsell_never_targets_a_pricier_or_foreign_plan(self, service):
        subscription = subscription_on_plan()
        plan = subscription.subscription_plan
        cheaper = ActivePlanFactory(company=plan.company, base_price_monthly=Decimal("40.00"))
        plan.downsell_plan = ActivePlanFactory(base_price_monthly=Decimal("90.00"))
        plan.save()

        result = service.initiate_cancellation(
            subscription.pk,
            CancellationReason.TOO_EXPENSIVE,
        )

        assert [offer.type for offer in result.offers] == [
            RetentionOfferType.DISCOUNT,
            RetentionOfferType.DOWNSELL,
        ]
        assert result.offers[1].downsell_plan_id == cheaper.pk

    def test_config_discount_and_pause_length(self, service):
        subscription = subscription_on_plan()
        CancellationFlowConfigFactory(
            company=subscription.company,
            discount_pct=Decimal("35"),
            pause_max_days=14,
        )

        discount = service.initiate_cancellation(
            subscription.pk,
            CancellationReason.TOO_EXPENSIVE,
        ).offers[0]
        pause = service.initiate_cancellation(
            subscription.pk,
            CancellationReason.TEMPORARY_PAUSE,
        ).offers[0]

        assert discount.discount_pct == Decimal("35")
        assert pause.type == RetentionOfferType.PAUSE
        assert pause.pause_days == 14

    def test_zero_config_discount_is_kept(self, service):
        subscription = subscription_on_plan()
        CancellationFlowConfigFactory(
            company=subscription.company,
            discount_pct=Decimal("0"),
        )

        discount = service.initiate_cancellation(
            subscription.pk,
            CancellationReason.TOO_EXPENSIVE,
        ).offers[0]

        assert discount.type == RetentionOfferType.DISCOUNT
        assert discount.discount_pct == Decimal("0")

    def test_product_issues_get_one_free_period(self, service):
        subscription = subscription_on_plan()

        result = service.initiate_cancellation(
            subscription.pk,
            CancellationReason.PRODUCT_ISSUES,
        )

        assert [offer.type for offer in result.offers] == [RetentionOfferType.FREE_PERIOD]
        assert result.offers[0].free_periods == 1

    def test_other_reasons_fall_back_to_pause(self, service):
        subscription = subscription_on_plan()

        result = service.initiate_cancellation(
            subscription.pk,
            CancellationReason.SWITCHING_COMPETITOR,
        )

        assert [offer.type for offer in result.offers] == [RetentionOfferType.PAUSE]
        assert result.offers[0].pause_days == 30

    def test_disabled_options_fall_back_to_pause(self, service):
        subscription = subscription_on_plan(price="10.00")
        CancellationFlowConfigFactory(
            company=subscription.company,
            show_discount_option=False,
        )

        result = service.initiate_cancellation(
            subscription.pk,
            CancellationReason.TOO_EXPENSIVE,
        )

        assert [offer.type for offer in result.offers] == [RetentionOfferType.PAUSE]

    def test_no_offers_when_pause_disabled(self, service):
        subscription = subscription_on_plan()
        CancellationFlowConfigFactory(
            company=subscription.company,
            show_pause_option=False,
        )

        result = service.initiate_cancellation(subscription.pk, CancellationReason.OTHER)

        assert result.offers == []
        assert result.can_proceed_to_cancellation is True

    def test_retention_offers_switched_off(self, service):
        subscription = subscription_on_plan()
        CancellationFlowConfigFactory(
            company=subscription.company,
            show_retention_offers=False,
        )

        result = service.initiate_cancellation(
            subscription.pk,
            CancellationReason.PRODUCT_ISSUES,
        )

        assert result.offers == []

    def test_requires_active_subscription(self, service):
        subscription = SubscriptionFactory(status=SubscriptionStatus.PAUSED)

        with pytest.raises(BadRequestError, match="Only active subscriptions"):
            service.initiate_cancellation(subscription.pk, CancellationReason.OTHER)

    def test_unknown_subscription(self, service):
        with pytest.raises(NotFoundError):
            service.initiate_cancellation(999999, CancellationReason.OTHER)


@pytest.mark.django_db
class TestAcceptOffer:
    def test_discount_stamps_metadata(self, service, events):
        offer = RetentionOfferFactory(discount_pct=Decimal("20"))

        with mock.patch("django.utils.timezone.now", return_value=NOW):
            subscription = service.accept_offer(offer.pk, offer.subscription_id)

        assert subscription.metadata["retentionDiscount"] == {
            "percentage": 20,
            "appliedAt": NOW.isoformat(),
            "reason": "retention_offer",
        }
        offer.refresh_from_db()
        assert offer.status == RetentionOfferStatus.ACCEPTED
        assert offer.responded_at == NOW
        assert events.names() == ["subscription.retention.offer_accepted"]

    def test_downsell_swaps_plan(self, service):
        subscription = subscription_on_plan()
        cheaper = ActivePlanFactory(
            company=subscription.company,
            base_price_monthly=Decimal("25.00"),
        )
        offer = RetentionOfferFactory(
            subscription=subscription,
            type=RetentionOfferType.DOWNSELL,
            discount_pct=None,
            downsell_plan=cheaper,
        )

        service.accept_offer(offer.pk, subscription.pk)

        subscription.refresh_from_db()
        assert subscription.subscription_plan_id == cheaper.pk
        assert subscription.plan_amount == Decimal("25.00")

    def test_pause_suspends_subscription(self, service):
        offer = RetentionOfferFactory(
            type=RetentionOfferType.PAUSE,
            discount_pct=None,
            pause_days=14,
        )

        with mock.patch("django.utils.timezone.now", return_value=NOW):
            service.accept_offer(offer.pk, offer.subscription_id)

        subscription = offer.subscription
        subscription.refresh_from_db()
        assert subscription.status == SubscriptionStatus.PAUSED
        assert subscription.paused_at == NOW
        assert subscription.pause_resume_at == NOW + timedelta(days=14)

    def test_free_period_stamps_metadata(self, service):
        offer = RetentionOfferFactory(
            type=RetentionOfferType.FREE_PERIOD,
            discount_pct=None,
            free_periods=1,
        )

        subscription = service.accept_offer(offer.pk, offer.subscription_id)

        assert subscription.metadata["freePeriods"]["remaining"] == 1
        assert subscription.metadata["freePeriods"]["reason"] == "retention_offer"

    def test_existing_metadata_is_kept(self, service):
        offer = RetentionOfferFactory(subscription__metadata={"giftNote": "hi"})

        subscription = service.accept_offer(offer.pk, offer.subscription_id)

        assert subscription.metadata["giftNote"] == "hi"

    def test_offer_must_belong_to_subscription(self, service):
        offer = RetentionOfferFactory()
        other = SubscriptionFactory()

        with pytest.raises(BadRequestError, match="does not belong"):
            service.accept_offer(offer.pk, other.pk)

    def test_expired_offer_is_flipped_then_rejected(self, service, events):
        offer = RetentionOfferFactory(
            presented_at=NOW - timedelta(days=2),
            expires_at=NOW - timedelta(days=1),
        )

        with mock.patch("django.utils.timezone.now", return_value=NOW):
            with pytest.raises(BadRequestError, match="Offer has expired"):
                service.accept_offer(offer.pk, offer.subscription_id)

            offer.refresh_from_db()
            assert offer.status == RetentionOfferStatus.EXPIRED

            with pytest.raises(BadRequestError, match="Offer is EXPIRED"):
                service.accept_offer(offer.pk, offer.subscription_id)

        assert events.names() == ["subscription.retention.offer_expired"]
        subscription = offer.subscription
        subscription.refresh_from_db()
        assert "retentionDiscount" not in subscription.metadata

    def test_accepted_offer_cannot_be_accepted_again(self, service):
        offer = RetentionOfferFactory()
        service.accept_offer(offer.pk, offer.subscription_id)

        with pytest.raises(BadRequestError, match="Offer is ACCEPTED"):
            service.accept_offer(offer.pk, offer.subscription_id)

    def test_unsupported_type_leaves_offer_presented(self, service):
        offer = RetentionOfferFactory(type=RetentionOfferType.BONUS_PRODUCT)

        with pytest.raises(BadRequestError, match="Unsupported offer type"):
            service.accept_offer(offer.pk, offer.subscription_id)

        offer.refresh_from_db()
        assert offer.status == RetentionOfferStatus.PRESENTED

    def test_unknown_offer(self, service):
        subscription = SubscriptionFactory()

        with pytest.raises(NotFoundError):
            service.accept_offer(999999, subscription.pk)


@pytest.mark.django_db
class TestDeclineAndPending:
    def test_decline(self, service, events):
        offer = RetentionOfferFactory()

        declined = service.decline_offer(offer.pk, offer.subscription_id)

        assert declined.status == RetentionOfferStatus.DECLINED
        assert declined.responded_at is not None
        subscription = offer.subscription
        subscription.refresh_from_db()
        assert subscription.metadata == {}
        assert events.names() == ["subscription.retention.offer_declined"]

    def test_terminal_offer_cannot_be_declined(self, service):
        offer = RetentionOfferFactory(status=RetentionOfferStatus.ACCEPTED)

        with pytest.raises(BadRequestError, match="cannot be declined"):
            service.decline_offer(offer.pk)

    def test_pending_offers_expire_overdue_ones(self, service):
        subscription = SubscriptionFactory()
        fresh = RetentionOfferFactory(
            subscription=subscription,
            presented_at=NOW,
            expires_at=NOW + timedelta(hours=1),
        )
        stale = RetentionOfferFactory(
            subscription=subscription,
            presented_at=NOW - timedelta(days=2),
            expires_at=NOW - timedelta(hours=1),
        )
        RetentionOfferFactory(subscription=subscription, status=RetentionOfferStatus.DECLINED)

        with mock.patch("django.utils.timezone.now", return_value=NOW):
            pending = service.get_pending_offers(subscription.pk)

        assert [offer.pk for offer in pending] == [fresh.pk]
        stale.refresh_from_db()
        assert stale.status == RetentionOfferStatus.EXPIRED


@pytest.mark.django_db
class TestExpireOverdueOffers:
    def test_sweep_expires_only_overdue_presented_offers(self, service):
        past = NOW - timedelta(hours=1)
        overdue = [
            RetentionOfferFactory(presented_at=NOW - timedelta(days=1), expires_at=past),
            RetentionOfferFactory(presented_at=NOW - timedelta(days=1), expires_at=past),
        ]
        RetentionOfferFactory(presented_at=NOW, expires_at=NOW + timedelta(hours=1))
        RetentionOfferFactory(
            status=RetentionOfferStatus.ACCEPTED,
            presented_at=NOW - timedelta(days=1),
            expires_at=past,
        )

        with mock.patch("django.utils.timezone.now", return_value=NOW):
            first = service.expire_overdue_offers()
            second = service.expire_overdue_offers()

        assert sorted(first.expired) == sorted(offer.pk for offer in overdue)
        assert second.count == 0
        assert RetentionOffer.objects.filter(status=RetentionOfferStatus.EXPIRED).count() == 2

    def test_dry_run_changes_nothing(self, service):
        offer = RetentionOfferFactory(
            presented_at=NOW - timedelta(days=1),
            expires_at=NOW - timedelta(hours=1),
        )

        with mock.patch("django.utils.timezone.now", return_value=NOW):
            result = service.expire_overdue_offers(dry_run=True)

        offer.refresh_from_db()
        assert result.count == 1
        assert offer.status == RetentionOfferStatus.PRESENTED


@pytest.mark.django_db
class TestFlowConfig:
    def test_defaults_without_stored_config(self, service):
        company = CompanyFactory()

        config = service.get_cancellation_flow_config(company.pk)

        assert config.pk is None
        assert config.show_reason_selector is True
        assert config.pause_max_days == 30
        assert config.discount_pct == 20
        assert config.discount_duration_cycles == 3
        assert config.custom_messages == {}

    def test_configure_layers_over_stored_values(self, service):
        company = CompanyFactory()
        service.configure_cancellation_flow(company.pk, {"pause_max_days": 10})

        config = service.configure_cancellation_flow(
            company.pk,
            {
                "discount_pct": Decimal("15"),
                "show_downsell_option": False,
                "pause_max_days": None,
            },
        )

        config.refresh_from_db()
        assert config.pause_max_days == 10
        assert config.discount_pct == Decimal("15")
        assert config.show_downsell_option is False
        assert config.show_pause_option is True

    def test_custom_messages_keyed_by_reason(self, service):
        company = CompanyFactory()

        config = service.configure_cancellation_flow(
            company.pk,
            {"custom_messages": {"TOO_EXPENSIVE": "How about 20% off?"}},
        )

        assert config.custom_messages["TOO_EXPENSIVE"] == "How about 20% off?"

    def test_unknown_reason_in_messages(self, service):
        company = CompanyFactory()

        with pytest.raises(BadRequestError, match="Unknown cancellation reason"):
            service.configure_cancellation_flow(
                company.pk,
                {"custom_messages": {"BORED": "Stay!"}},
            )

    def test_unknown_company(self, service):
        with pytest.raises(NotFoundError):
            service.configure_cancellation_flow(999999, {"pause_max_days": 5})


@pytest.mark.django_db
class TestRetentionStats:
    def test_stats(self, service):
        company = CompanyFactory()
        subscription = SubscriptionFactory(company=company)
        RetentionOfferFactory(subscription=subscription, status=RetentionOfferStatus.ACCEPTED)
        RetentionOfferFactory(subscription=subscription)
        RetentionOfferFactory(
            subscription=subscription,
            type=RetentionOfferType.PAUSE,
            status=RetentionOfferStatus.DECLINED,
            cancellation_reason=CancellationReason.NOT_USING,
        )
        RetentionOfferFactory(subscription=subscription, status=RetentionOfferStatus.PENDING)
        WinBackOfferFactory(subscription__company=company)
        WinBackCampaignFactory(
            company=company,
            status=WinBackCampaignStatus.ACTIVE,
            sent_count=4,
            accepted_count=1,
        )
        RetentionOfferFactory(status=RetentionOfferStatus.ACCEPTED)

        stats = service.get_retention_stats(company.pk)

        assert stats.total_cancellation_attempts == 3
        assert stats.saved_by_cancellation_flow == 1
        assert stats.save_rate == pytest.approx(1 / 3)
        discount = stats.offers_by_type[RetentionOfferType.DISCOUNT]
        assert (discount.presented, discount.accepted) == (2, 1)
        assert discount.acceptance_rate == 0.5
        assert stats.offers_by_type[RetentionOfferType.FREE_PERIOD].acceptance_rate == 0.0
        assert stats.cancellations_by_reason[CancellationReason.TOO_EXPENSIVE] == 3
        assert stats.cancellations_by_reason[CancellationReason.NOT_USING] == 1
        assert stats.win_back.total_campaigns == 2
        assert stats.win_back.active_campaigns == 2
        assert stats.win_back.total_sent == 4
        assert stats.win_back.win_back_rate == 0.25

    def test_empty_company(self, service):
        stats = service.get_retention_stats(CompanyFactory().pk)

        assert stats.save_rate == 0.0
        assert stats.win_back.win_back_rate == 0.0
