from rest_framework import serializers

from retainly.subscriptions.models import Subscription


class SubscriptionSerializer(serializers.ModelSerializer):
    """Read-only view of a subscription after an engine operation."""

    class Meta:
        model = Subscription
        fields = [
            "id",
            "company",
            "customer_email",
            "product",
            "subscription_plan",
            "status",
            "interval",
            "plan_amount",
            "quantity",
            "cycle_count",
            "loyalty_tier",
            "loyalty_discount_pct",
            "loyalty_locked_at",
            "price_locked",
            "price_locked_amount",
            "price_lock_cycles",
            "price_locked_until",
            "current_period_start",
            "current_period_end",
            "next_billing_date",
            "paused_at",
            "pause_resume_at",
            "canceled_at",
            "cancel_reason",
            "metadata",
            "created",
            "modified",
        ]
        read_only_fields = fields
