"""
REST endpoints for subscription pricing.

    GET  /api/v1/subscriptions/pricing/<id>/loyalty/
    POST /api/v1/subscriptions/pricing/<id>/loyalty/apply/
    POST /api/v1/subscriptions/pricing/<id>/lock/
    POST /api/v1/subscriptions/pricing/<id>/unlock/
    POST /api/v1/subscriptions/pricing/<id>/early-renewal/
    GET  /api/v1/subscriptions/pricing/<id>/effective-price/
    GET  /api/v1/subscriptions/pricing/stats/?company_id=<id>

``<id>`` is a subscription id. The caller needs access to the
subscription's company.
"""

from __future__ import annotations

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from retainly.core.api.company_scoped import CompanyScopedMixin
from retainly.pricing.serializers import EarlyRenewalSerializer
from retainly.pricing.serializers import EffectivePriceSerializer
from retainly.pricing.serializers import LockPriceSerializer
from retainly.pricing.serializers import LoyaltyTierSerializer
from retainly.pricing.serializers import PricingStatsSerializer
from retainly.pricing.services import PricingService
from retainly.subscriptions.serializers import SubscriptionSerializer


class PricingViewSet(CompanyScopedMixin, viewsets.ViewSet):
    """Loyalty tiers, price locks, early renewal and effective price."""

    lookup_value_regex = r"\d+"
    service_class = PricingService

    def get_service(self) -> PricingService:
        return self.service_class()

    @action(detail=True, methods=["get"])
    def loyalty(self, request, pk=None):
        subscription = self.get_subscription_for_user(pk)
        info = self.get_service().calculate_loyalty_tier(subscription.pk)
        return Response(LoyaltyTierSerializer(info).data)

    @action(
        detail=True,
        methods=["post"],
        url_path="loyalty/apply",
        url_name="loyalty-apply",
    )
    def apply_loyalty(self, request, pk=None):
        subscription = self.get_subscription_for_user(pk)
        updated = self.get_service().apply_loyalty_pricing(subscription.pk)
        return Response(SubscriptionSerializer(updated).data)

    @action(detail=True, methods=["post"])
    def lock(self, request, pk=None):
        subscription = self.get_subscription_for_user(pk)
        serializer = LockPriceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        updated = self.get_service().lock_price(
            subscription.pk,
            cycles=serializer.validated_data.get("cycles"),
        )
        return Response(SubscriptionSerializer(updated).data)

    @action(detail=True, methods=["post"])
    def unlock(self, request, pk=None):
        subscription = self.get_subscription_for_user(pk)
        updated = self.get_service().unlock_price(subscription.pk)
        return Response(SubscriptionSerializer(updated).data)

    @action(
        detail=True,
        methods=["post"],
        url_path="early-renewal",
        url_name="early-renewal",
    )
    def early_renewal(self, request, pk=None):
        subscription = self.get_subscription_for_user(pk)
        serializer = EarlyRenewalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_service().process_early_renewal(
            subscription.pk,
            prorate=serializer.validated_data.get("prorate"),
        )
        return Response(
            {
                "subscription": SubscriptionSerializer(result.subscription).data,
                "prorated_credit": str(result.prorated_credit),
                "new_period_start": result.new_period_start.isoformat(),
                "new_period_end": result.new_period_end.isoformat(),
            },
        )

    @action(
        detail=True,
        methods=["get"],
        url_path="effective-price",
        url_name="effective-price",
    )
    def effective_price(self, request, pk=None):
        subscription = self.get_subscription_for_user(pk)
        price = self.get_service().calculate_effective_price(subscription.pk)
        return Response(EffectivePriceSerializer(price).data)

    @action(detail=False, methods=["get"])
    def stats(self, request):
        company_id = self.get_company_id()
        self.require_company_access(company_id)
        stats = self.get_service().get_pricing_stats(company_id=company_id)
        return Response(PricingStatsSerializer(stats).data)
