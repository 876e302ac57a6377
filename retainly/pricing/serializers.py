from rest_framework import serializers


class LoyaltyTierSerializer(serializers.Serializer):
    tier = serializers.IntegerField(allow_null=True)
    discount_pct = serializers.DecimalField(max_digits=5, decimal_places=2)
    next_tier_at = serializers.IntegerField(allow_null=True)
    next_tier_discount = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        allow_null=True,
    )


class LockPriceSerializer(serializers.Serializer):
    cycles = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class EarlyRenewalSerializer(serializers.Serializer):
    prorate = serializers.BooleanField(required=False, allow_null=True, default=None)


class PriceBreakdownLineSerializer(serializers.Serializer):
    label = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    type = serializers.CharField()


class EffectivePriceSerializer(serializers.Serializer):
    base_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    loyalty_discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    loyalty_tier = serializers.IntegerField(allow_null=True)
    coupon_discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    final_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    breakdown = PriceBreakdownLineSerializer(many=True)


class PricingStatsSerializer(serializers.Serializer):
    subscriptions_with_loyalty = serializers.IntegerField()
    subscriptions_with_price_lock = serializers.IntegerField()
    total_loyalty_discounts = serializers.DecimalField(max_digits=14, decimal_places=2)
    avg_loyalty_tier = serializers.DecimalField(max_digits=6, decimal_places=2)
