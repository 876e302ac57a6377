"""
REST endpoints for the cancellation flow and win-back campaigns.

    POST /api/v1/subscriptions/retention/initiate-cancellation/
    POST /api/v1/subscriptions/retention/offers/accept/
    POST /api/v1/subscriptions/retention/offers/decline/
    GET  /api/v1/subscriptions/retention/offers/<subscription_id>/
    GET  /api/v1/subscriptions/retention/config/?company_id=<id>
    PATCH /api/v1/subscriptions/retention/config/?company_id=<id>
    GET  /api/v1/subscriptions/retention/stats/?company_id=<id>
    POST /api/v1/subscriptions/retention/winback/offers/<offer_id>/accept/

    GET  /api/v1/subscriptions/retention/winback/campaigns/?company_id=<id>
    POST /api/v1/subscriptions/retention/winback/campaigns/
    GET  /api/v1/subscriptions/retention/winback/campaigns/<id>/
    POST /api/v1/subscriptions/retention/winback/campaigns/<id>/activate/
    POST /api/v1/subscriptions/retention/winback/campaigns/<id>/send/
    GET  /api/v1/subscriptions/retention/winback/campaigns/<id>/eligible/
"""

from __future__ import annotations

from http import HTTPStatus

import django_filters
from django.shortcuts import get_object_or_404
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from retainly.core.api.company_scoped import CompanyScopedMixin
from retainly.retention.constants import RetentionOfferType
from retainly.retention.constants import WinBackCampaignStatus
from retainly.retention.models import RetentionOffer
from retainly.retention.models import WinBackCampaign
from retainly.retention.serializers import CancellationFlowConfigSerializer
from retainly.retention.serializers import EligibleSubscriptionSerializer
from retainly.retention.serializers import InitiateCancellationSerializer
from retainly.retention.serializers import OfferResponseSerializer
from retainly.retention.serializers import RetentionOfferSerializer
from retainly.retention.serializers import RetentionStatsSerializer
from retainly.retention.serializers import SendWinBackOfferSerializer
from retainly.retention.serializers import WinBackCampaignCreateSerializer
from retainly.retention.serializers import WinBackCampaignSerializer
from retainly.retention.services import RetentionService
from retainly.retention.winback import WinBackService
from retainly.subscriptions.serializers import SubscriptionSerializer


class RetentionViewSet(CompanyScopedMixin, viewsets.ViewSet):
    """Cancellation flow, offer responses, flow config and stats."""

    service_class = RetentionService
    winback_service_class = WinBackService

    def get_service(self) -> RetentionService:
        return self.service_class()

    def get_winback_service(self) -> WinBackService:
        return self.winback_service_class()

    @action(
        detail=False,
        methods=["post"],
        url_path="initiate-cancellation",
        url_name="initiate-cancellation",
    )
    def initiate_cancellation(self, request):
        serializer = InitiateCancellationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        subscription = self.get_subscription_for_user(data["subscription_id"])

        result = self.get_service().initiate_cancellation(
            subscription.pk,
            reason=data.get("reason"),
            feedback=data.get("feedback"),
        )
        return Response(
            {
                "subscription_id": result.subscription.pk,
                "reason": result.reason,
                "offers": RetentionOfferSerializer(result.offers, many=True).data,
                "can_proceed_to_cancellation": result.can_proceed_to_cancellation,
            },
        )

    @action(
        detail=False,
        methods=["post"],
        url_path="offers/accept",
        url_name="offers-accept",
    )
    def accept_offer(self, request):
        serializer = OfferResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subscription = self.get_subscription_for_user(
            serializer.validated_data["subscription_id"],
        )

        updated = self.get_service().accept_offer(
            serializer.validated_data["offer_id"],
            subscription.pk,
        )
        return Response(SubscriptionSerializer(updated).data)

    @action(
        detail=False,
        methods=["post"],
        url_path="offers/decline",
        url_name="offers-decline",
    )
    def decline_offer(self, request):
        serializer = OfferResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        subscription = self.get_subscription_for_user(
            serializer.validated_data["subscription_id"],
        )

        offer = self.get_service().decline_offer(
            serializer.validated_data["offer_id"],
            subscription.pk,
        )
        return Response(RetentionOfferSerializer(offer).data)

    @action(
        detail=False,
        methods=["get"],
        url_path=r"offers/(?P<subscription_id>\d+)",
        url_name="offers-pending",
    )
    def pending_offers(self, request, subscription_id=None):
        subscription = self.get_subscription_for_user(subscription_id)
        offers = self.get_service().get_pending_offers(subscription.pk)
        return Response(RetentionOfferSerializer(offers, many=True).data)

    @action(detail=False, methods=["get", "patch"])
    def config(self, request):
        company_id = self.get_company_id()
        self.require_company_access(company_id)

        if request.method == "GET":
            config = self.get_service().get_cancellation_flow_config(company_id)
            return Response(CancellationFlowConfigSerializer(config).data)

        serializer = CancellationFlowConfigSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        config = self.get_service().configure_cancellation_flow(
            company_id,
            dict(serializer.validated_data),
        )
        return Response(CancellationFlowConfigSerializer(config).data)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        company_id = self.get_company_id()
        self.require_company_access(company_id)
        stats = self.get_service().get_retention_stats(company_id)
        return Response(RetentionStatsSerializer(stats).data)

    @action(
        detail=False,
        methods=["post"],
        url_path=r"winback/offers/(?P<offer_id>\d+)/accept",
        url_name="winback-offer-accept",
    )
    def accept_win_back_offer(self, request, offer_id=None):
        offer = get_object_or_404(RetentionOffer, pk=offer_id)
        self.require_company_access(offer.company_id)

        subscription = self.get_winback_service().accept_win_back_offer(offer.pk)
        return Response(SubscriptionSerializer(subscription).data)


class WinBackCampaignFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=WinBackCampaignStatus.choices)
    offer_type = django_filters.ChoiceFilter(choices=RetentionOfferType.choices)

    class Meta:
        model = WinBackCampaign
        fields = ["status", "offer_type"]


class WinBackCampaignViewSet(CompanyScopedMixin, viewsets.GenericViewSet):
    """
    Win-back campaigns for a company.

    Listing needs ``company_id`` and accepts ``status`` and ``offer_type``
    filters.
    """

    queryset = WinBackCampaign.objects.none()
    serializer_class = WinBackCampaignSerializer
    filterset_class = WinBackCampaignFilter
    lookup_value_regex = r"\d+"
    service_class = WinBackService

    def get_service(self) -> WinBackService:
        return self.service_class()

    def get_campaign_for_user(self, pk) -> WinBackCampaign:
        campaign = self.get_service().get_campaign(int(pk))
        self.require_company_access(campaign.company_id)
        return campaign

    def list(self, request):
        company_id = self.get_company_id()
        self.require_company_access(company_id)

        campaigns = self.filter_queryset(
            self.get_service().get_win_back_campaigns(company_id),
        )
        return Response(WinBackCampaignSerializer(campaigns, many=True).data)

    def retrieve(self, request, pk=None):
        campaign = self.get_campaign_for_user(pk)
        return Response(WinBackCampaignSerializer(campaign).data)

    def create(self, request):
        serializer = WinBackCampaignCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        company_id = data.pop("company_id")
        self.require_company_access(company_id)

        campaign = self.get_service().create_win_back_campaign(company_id, data)
        return Response(
            WinBackCampaignSerializer(campaign).data,
            status=HTTPStatus.CREATED,
        )

    @action(detail=True, methods=["post"])
    def activate(self, request, pk=None):
        self.get_campaign_for_user(pk)
        activation = self.get_service().activate_win_back_campaign(int(pk))
        return Response(
            {
                "campaign": WinBackCampaignSerializer(activation.campaign).data,
                "eligible_count": len(activation.eligible),
            },
        )

    @action(detail=True, methods=["post"])
    def send(self, request, pk=None):
        self.get_campaign_for_user(pk)
        serializer = SendWinBackOfferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        offer = self.get_service().send_win_back_offer(
            int(pk),
            serializer.validated_data["subscription_id"],
        )
        return Response(
            RetentionOfferSerializer(offer).data,
            status=HTTPStatus.CREATED,
        )

    @action(detail=True, methods=["get"])
    def eligible(self, request, pk=None):
        campaign = self.get_campaign_for_user(pk)
        subscriptions = self.get_service().find_win_back_eligible(campaign)
        return Response(EligibleSubscriptionSerializer(subscriptions, many=True).data)
