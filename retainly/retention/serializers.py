from rest_framework import serializers

from retainly.plans.serializers import PlanSummarySerializer
from retainly.retention.constants import CancellationReason
from retainly.retention.constants import RetentionOfferType
from retainly.retention.models import CancellationFlowConfig
from retainly.retention.models import RetentionOffer
from retainly.retention.models import WinBackCampaign
from retainly.subscriptions.constants import METADATA_CANCELLATION_REASON


class RetentionOfferSerializer(serializers.ModelSerializer):
    downsell_plan = PlanSummarySerializer(read_only=True)

    class Meta:
        model = RetentionOffer
        fields = [
            "id",
            "subscription",
            "campaign",
            "type",
            "status",
            "cancellation_reason",
            "discount_pct",
            "downsell_plan",
            "pause_days",
            "free_periods",
            "bonus_description",
            "presented_at",
            "expires_at",
            "responded_at",
            "created",
        ]
        read_only_fields = fields


class InitiateCancellationSerializer(serializers.Serializer):
    subscription_id = serializers.IntegerField()
    reason = serializers.ChoiceField(
        choices=CancellationReason.choices,
        required=False,
        allow_null=True,
    )
    feedback = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        max_length=2000,
    )


class OfferResponseSerializer(serializers.Serializer):
    offer_id = serializers.IntegerField()
    subscription_id = serializers.IntegerField()


class CancellationFlowConfigSerializer(serializers.ModelSerializer):
    company_id = serializers.IntegerField(read_only=True)
    pause_max_days = serializers.IntegerField(min_value=1, max_value=365, required=False)
    discount_pct = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=0,
        max_value=100,
        required=False,
    )
    discount_duration_cycles = serializers.IntegerField(min_value=1, required=False)
    custom_messages = serializers.DictField(child=serializers.CharField(), required=False)

    class Meta:
        model = CancellationFlowConfig
        fields = [
            "company_id",
            "show_reason_selector",
            "show_retention_offers",
            "show_pause_option",
            "show_downsell_option",
            "show_discount_option",
            "pause_max_days",
            "discount_pct",
            "discount_duration_cycles",
            "custom_messages",
        ]

    def validate_custom_messages(self, value):
        unknown = sorted(set(value) - set(CancellationReason.values))
        if unknown:
            raise serializers.ValidationError(
                f"Unknown cancellation reason: {', '.join(unknown)}",
            )
        return value


class OfferTypeStatsSerializer(serializers.Serializer):
    presented = serializers.IntegerField()
    accepted = serializers.IntegerField()
    acceptance_rate = serializers.FloatField()


class WinBackStatsSerializer(serializers.Serializer):
    total_campaigns = serializers.IntegerField()
    active_campaigns = serializers.IntegerField()
    total_sent = serializers.IntegerField()
    total_accepted = serializers.IntegerField()
    win_back_rate = serializers.FloatField()


class RetentionStatsSerializer(serializers.Serializer):
    total_cancellation_attempts = serializers.IntegerField()
    saved_by_cancellation_flow = serializers.IntegerField()
    save_rate = serializers.FloatField()
    offers_by_type = serializers.DictField(child=OfferTypeStatsSerializer())
    cancellations_by_reason = serializers.DictField(child=serializers.IntegerField())
    win_back = WinBackStatsSerializer()


class WinBackCampaignSerializer(serializers.ModelSerializer):
    class Meta:
        model = WinBackCampaign
        fields = [
            "id",
            "company",
            "name",
            "status",
            "target_reasons",
            "min_days_since_cancellation",
            "max_days_since_cancellation",
            "target_plan_ids",
            "offer_type",
            "discount_pct",
            "free_periods",
            "pause_days",
            "offer_valid_days",
            "sent_count",
            "accepted_count",
            "starts_at",
            "ends_at",
            "created",
            "modified",
        ]
        read_only_fields = fields


class WinBackCampaignCreateSerializer(serializers.Serializer):
    company_id = serializers.IntegerField()
    name = serializers.CharField(max_length=200)
    target_reasons = serializers.ListField(
        child=serializers.ChoiceField(choices=CancellationReason.choices),
        required=False,
        default=list,
    )
    min_days_since_cancellation = serializers.IntegerField(min_value=0, default=0)
    max_days_since_cancellation = serializers.IntegerField(min_value=0, default=90)
    target_plan_ids = serializers.ListField(
        child=serializers.IntegerField(),
        required=False,
        default=list,
    )
    offer_type = serializers.ChoiceField(choices=RetentionOfferType.choices)
    discount_pct = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=0,
        max_value=100,
        required=False,
        allow_null=True,
    )
    free_periods = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    pause_days = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    offer_valid_days = serializers.IntegerField(min_value=1, default=7)
    starts_at = serializers.DateTimeField(required=False, allow_null=True)
    ends_at = serializers.DateTimeField(required=False, allow_null=True)

    def validate(self, attrs):
        if attrs["min_days_since_cancellation"] > attrs["max_days_since_cancellation"]:
            raise serializers.ValidationError(
                {
                    "min_days_since_cancellation": [
                        "Cannot exceed max_days_since_cancellation.",
                    ],
                },
            )
        return attrs


class SendWinBackOfferSerializer(serializers.Serializer):
    subscription_id = serializers.IntegerField()


class EligibleSubscriptionSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    customer_email = serializers.EmailField()
    subscription_plan = serializers.PrimaryKeyRelatedField(read_only=True)
    plan_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    canceled_at = serializers.DateTimeField()
    cancellation_reason = serializers.SerializerMethodField()

    def get_cancellation_reason(self, obj):
        return (obj.metadata or {}).get(METADATA_CANCELLATION_REASON)
