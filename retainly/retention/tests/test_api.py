"""
Tests for the retention and win-back API.

These tests cover:
- Initiating cancellation and responding to offers
- Expired offers surface as 400 and stay expired
- Flow config read and partial update
- Retention stats
- Win-back campaign create, filter, activate, send, eligible and accept
- Outsiders get 403
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone
from rest_framework import status

from retainly.retention.constants import CancellationReason
from retainly.retention.constants import RetentionOfferStatus
from retainly.retention.constants import RetentionOfferType
from retainly.retention.constants import WinBackCampaignStatus
from retainly.retention.tests.factories import ActiveWinBackCampaignFactory
from retainly.retention.tests.factories import CanceledSubscriptionFactory
from retainly.retention.tests.factories import RetentionOfferFactory
from retainly.retention.tests.factories import WinBackCampaignFactory
from retainly.retention.tests.factories import WinBackOfferFactory
from retainly.subscriptions.constants import SubscriptionStatus
from retainly.subscriptions.tests.factories import SubscriptionFactory

BASE_URL = "/api/v1/subscriptions/retention/"
CAMPAIGNS_URL = f"{BASE_URL}winback/campaigns/"


@pytest.fixture
def member_client(api_client, member):
    api_client.force_authenticate(user=member)
    return api_client


@pytest.fixture
def subscription(company):
    return SubscriptionFactory(company=company)


@pytest.mark.django_db
class TestCancellationFlowEndpoints:
    def test_initiate_cancellation(self, member_client, subscription):
        resp = member_client.post(
            f"{BASE_URL}initiate-cancellation/",
            {
                "subscription_id": subscription.pk,
                "reason": CancellationReason.NOT_USING,
                "feedback": "Backlog of bags",
            },
            format="json",
        )

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data["can_proceed_to_cancellation"] is True
        assert [offer["type"] for offer in resp.data["offers"]] == [
            RetentionOfferType.PAUSE,
        ]
        assert resp.data["offers"][0]["status"] == RetentionOfferStatus.PRESENTED

    def test_initiate_on_paused_subscription(self, member_client, company):
        paused = SubscriptionFactory(company=company, status=SubscriptionStatus.PAUSED)

        resp = member_client.post(
            f"{BASE_URL}initiate-cancellation/",
            {"subscription_id": paused.pk, "reason": CancellationReason.OTHER},
            format="json",
        )

        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert resp.data["detail"] == "Only active subscriptions can be cancelled"

    def test_invalid_reason(self, member_client, subscription):
        resp = member_client.post(
            f"{BASE_URL}initiate-cancellation/",
            {"subscription_id": subscription.pk, "reason": "BORED"},
            format="json",
        )

        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert "reason" in resp.data

    def test_foreign_subscription_is_forbidden(self, member_client):
        other = SubscriptionFactory()

        resp = member_client.post(
            f"{BASE_URL}initiate-cancellation/",
            {"subscription_id": other.pk, "reason": CancellationReason.OTHER},
            format="json",
        )

        assert resp.status_code == status.HTTP_403_FORBIDDEN

    def test_accept_offer(self, member_client, subscription):
        offer = RetentionOfferFactory(subscription=subscription)

        resp = member_client.post(
            f"{BASE_URL}offers/accept/",
            {"offer_id": offer.pk, "subscription_id": subscription.pk},
            format="json",
        )

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data["metadata"]["retentionDiscount"]["percentage"] == 20

    def test_accept_expired_offer(self, member_client, subscription):
        presented = timezone.now() - timedelta(days=2)
        offer = RetentionOfferFactory(
            subscription=subscription,
            presented_at=presented,
            expires_at=presented + timedelta(hours=24),
        )
        payload = {"offer_id": offer.pk, "subscription_id": subscription.pk}

        first = member_client.post(f"{BASE_URL}offers/accept/", payload, format="json")
        second = member_client.post(f"{BASE_URL}offers/accept/", payload, format="json")

        assert first.status_code == status.HTTP_400_BAD_REQUEST
        assert first.data["detail"] == "Offer has expired"
        assert second.data["detail"] == "Offer is EXPIRED, cannot be accepted"
        offer.refresh_from_db()
        assert offer.status == RetentionOfferStatus.EXPIRED

    def test_accept_missing_offer(self, member_client, subscription):
        resp = member_client.post(
            f"{BASE_URL}offers/accept/",
            {"offer_id": 999999, "subscription_id": subscription.pk},
            format="json",
        )

        assert resp.status_code == status.HTTP_404_NOT_FOUND

    def test_decline_offer(self, member_client, subscription):
        offer = RetentionOfferFactory(subscription=subscription)

        resp = member_client.post(
            f"{BASE_URL}offers/decline/",
            {"offer_id": offer.pk, "subscription_id": subscription.pk},
            format="json",
        )

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data["status"] == RetentionOfferStatus.DECLINED

    def test_pending_offers(self, member_client, subscription):
        offer = RetentionOfferFactory(subscription=subscription)
        RetentionOfferFactory(
            subscription=subscription,
            status=RetentionOfferStatus.DECLINED,
        )

        resp = member_client.get(f"{BASE_URL}offers/{subscription.pk}/")

        assert resp.status_code == status.HTTP_200_OK
        assert [row["id"] for row in resp.data] == [offer.pk]


@pytest.mark.django_db
class TestConfigAndStatsEndpoints:
    def test_config_defaults(self, member_client, company):
        resp = member_client.get(f"{BASE_URL}config/", {"company_id": company.pk})

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data["company_id"] == company.pk
        assert resp.data["pause_max_days"] == 30
        assert resp.data["show_reason_selector"] is True

    def test_config_patch(self, member_client, company):
        resp = member_client.patch(
            f"{BASE_URL}config/?company_id={company.pk}",
            {
                "discount_pct": "25.00",
                "custom_messages": {"TOO_EXPENSIVE": "Stay for less"},
            },
            format="json",
        )
        read = member_client.get(f"{BASE_URL}config/", {"company_id": company.pk})

        assert resp.status_code == status.HTTP_200_OK
        assert read.data["discount_pct"] == "25.00"
        assert read.data["pause_max_days"] == 30
        assert read.data["custom_messages"] == {"TOO_EXPENSIVE": "Stay for less"}

    def test_config_rejects_out_of_range_discount(self, member_client, company):
        resp = member_client.patch(
            f"{BASE_URL}config/?company_id={company.pk}",
            {"discount_pct": "120"},
            format="json",
        )

        assert resp.status_code == status.HTTP_400_BAD_REQUEST

    def test_config_requires_company(self, member_client):
        resp = member_client.get(f"{BASE_URL}config/")

        assert resp.status_code == status.HTTP_400_BAD_REQUEST

    def test_stats(self, member_client, subscription):
        RetentionOfferFactory(
            subscription=subscription,
            status=RetentionOfferStatus.ACCEPTED,
        )
        RetentionOfferFactory(subscription=subscription)

        resp = member_client.get(
            f"{BASE_URL}stats/",
            {"company_id": subscription.company_id},
        )

        assert resp.status_code == status.HTTP_200_OK
        assert resp.data["total_cancellation_attempts"] == 2
        assert resp.data["save_rate"] == 0.5
        assert resp.data["offers_by_type"]["DISCOUNT"]["accepted"] == 1
        assert resp.data["win_back"]["win_back_rate"] == 0.0

    def test_stats_for_foreign_company(self, member_client):
        other = SubscriptionFactory()

        resp = member_client.get(f"{BASE_URL}stats/", {"company_id": other.company_id})

        assert resp.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.django_db
class TestWinBackEndpoints:
    def test_create_campaign(self, member_client, company):
        resp = member_client.post(
            CAMPAIGNS_URL,
            {
                "company_id": company.pk,
                "name": "Spring win-back",
                "offer_type": RetentionOfferType.DISCOUNT,
                "discount_pct": "30.00",
                "target_reasons": [CancellationReason.TOO_EXPENSIVE],
                "min_days_since_cancellation": 7,
                "max_days_since_cancellation": 60,
            },
            format="json",
        )

        assert resp.status_code == status.HTTP_201_CREATED
        assert resp.data["status"] == WinBackCampaignStatus.DRAFT
        assert resp.data["company"] == company.pk

    def test_create_rejects_inverted_window(self, member_client, company):
        resp = member_client.post(
            CAMPAIGNS_URL,
            {
                "company_id": company.pk,
                "name": "Backwards",
                "offer_type": RetentionOfferType.DISCOUNT,
                "min_days_since_cancellation": 30,
                "max_days_since_cancellation": 7,
            },
            format="json",
        )

        assert resp.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_filters_by_status(self, member_client, company):
        active = ActiveWinBackCampaignFactory(company=company)
        WinBackCampaignFactory(company=company)
        ActiveWinBackCampaignFactory()

        everything = member_client.get(CAMPAIGNS_URL, {"company_id": company.pk})
        only_active = member_client.get(
            CAMPAIGNS_URL,
            {"company_id": company.pk, "status": WinBackCampaignStatus.ACTIVE},
        )

        assert len(everything.data) == 2
        assert [row["id"] for row in only_active.data] == [active.pk]

    def test_activate_send_and_accept(self, member_client, company):
        campaign = WinBackCampaignFactory(company=company)
        subscription = CanceledSubscriptionFactory(company=company)

        activate = member_client.post(f"{CAMPAIGNS_URL}{campaign.pk}/activate/")
        eligible = member_client.get(f"{CAMPAIGNS_URL}{campaign.pk}/eligible/")
        send = member_client.post(
            f"{CAMPAIGNS_URL}{campaign.pk}/send/",
            {"subscription_id": subscription.pk},
            format="json",
        )
        accept = member_client.post(
            f"{BASE_URL}winback/offers/{send.data['id']}/accept/",
        )

        assert activate.status_code == status.HTTP_200_OK
        assert activate.data["eligible_count"] == 1
        assert [row["id"] for row in eligible.data] == [subscription.pk]
        assert send.status_code == status.HTTP_201_CREATED
        assert accept.status_code == status.HTTP_200_OK
        assert accept.data["status"] == SubscriptionStatus.ACTIVE
        campaign.refresh_from_db()
        assert (campaign.sent_count, campaign.accepted_count) == (1, 1)

    def test_activate_twice(self, member_client, company):
        campaign = ActiveWinBackCampaignFactory(company=company)

        resp = member_client.post(f"{CAMPAIGNS_URL}{campaign.pk}/activate/")

        assert resp.status_code == status.HTTP_400_BAD_REQUEST

    def test_missing_campaign(self, member_client):
        resp = member_client.post(f"{CAMPAIGNS_URL}999999/activate/")

        assert resp.status_code == status.HTTP_404_NOT_FOUND

    def test_foreign_campaign_is_forbidden(self, member_client):
        campaign = WinBackCampaignFactory()

        resp = member_client.get(f"{CAMPAIGNS_URL}{campaign.pk}/")

        assert resp.status_code == status.HTTP_403_FORBIDDEN

    def test_foreign_win_back_offer_is_forbidden(self, member_client):
        offer = WinBackOfferFactory(discount_pct=Decimal("10"))

        resp = member_client.post(f"{BASE_URL}winback/offers/{offer.pk}/accept/")

        assert resp.status_code == status.HTTP_403_FORBIDDEN
