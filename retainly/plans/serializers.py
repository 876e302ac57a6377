from decimal import Decimal

from rest_framework import serializers

from retainly.plans.constants import DEFAULT_PLAN_LIST_LIMIT
from retainly.plans.constants import PlanScope
from retainly.plans.constants import PlanStatus
from retainly.plans.models import ProductSubscriptionPlan
from retainly.plans.models import SubscriptionPlan
from retainly.plans.services import PLAN_CONFIG_FIELDS

MAX_PLAN_LIST_LIMIT = 200

PERCENT_BOUNDS = {"min_value": Decimal("0"), "max_value": Decimal("100")}
PRICE_BOUNDS = {"min_value": Decimal("0")}


class PlanSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = SubscriptionPlan
        fields = ["id", "name", "display_name", "base_price_monthly", "status"]
        read_only_fields = fields


class SubscriptionPlanSerializer(serializers.ModelSerializer):
    """Full plan representation returned by every plan endpoint."""

    downsell_plan = PlanSummarySerializer(read_only=True)
    product_plans_count = serializers.SerializerMethodField()

    class Meta:
        model = SubscriptionPlan
        exclude = ["created_by", "updated_by", "deleted_by"]
        read_only_fields = [
            field.name for field in SubscriptionPlan._meta.concrete_fields  # noqa: SLF001
        ]

    def get_product_plans_count(self, obj) -> int:
        annotated = getattr(obj, "product_plans_count", None)
        if annotated is not None:
            return annotated
        return obj.product_plans.count()


class SubscriptionPlanWriteSerializer(serializers.ModelSerializer):
    """
    Validates plan configuration input.

    Used with ``partial=True`` for PATCH so ``validated_data`` holds only the
    fields the caller sent. Structural rules (scope ownership, name
    uniqueness, loyalty tier ordering) are enforced by PlanService.
    """

    downsell_plan_id = serializers.IntegerField(required=False, allow_null=True)
    loyalty_tiers = serializers.JSONField(required=False, allow_null=True)

    class Meta:
        model = SubscriptionPlan
        fields = list(PLAN_CONFIG_FIELDS)
        extra_kwargs = {
            "display_name": {"required": False},
            "base_price_monthly": PRICE_BOUNDS,
            "base_price_annual": PRICE_BOUNDS,
            "annual_discount_pct": PERCENT_BOUNDS,
            "winback_discount_pct": PERCENT_BOUNDS,
        }


class SubscriptionPlanCreateSerializer(SubscriptionPlanWriteSerializer):
    scope = serializers.ChoiceField(choices=PlanScope.choices)
    organization_id = serializers.IntegerField(required=False, allow_null=True)
    client_id = serializers.IntegerField(required=False, allow_null=True)
    company_id = serializers.IntegerField(required=False, allow_null=True)

    class Meta(SubscriptionPlanWriteSerializer.Meta):
        fields = [
            "scope",
            "organization_id",
            "client_id",
            "company_id",
            *PLAN_CONFIG_FIELDS,
        ]


class PlanListQuerySerializer(serializers.Serializer):
    scope = serializers.ChoiceField(choices=PlanScope.choices, required=False)
    organization_id = serializers.IntegerField(required=False)
    client_id = serializers.IntegerField(required=False)
    company_id = serializers.IntegerField(required=False)
    status = serializers.ChoiceField(choices=PlanStatus.choices, required=False)
    is_public = serializers.BooleanField(required=False, allow_null=True, default=None)
    search = serializers.CharField(required=False, allow_blank=True)
    include_archived = serializers.BooleanField(required=False, default=False)
    limit = serializers.IntegerField(
        required=False,
        min_value=1,
        max_value=MAX_PLAN_LIST_LIMIT,
        default=DEFAULT_PLAN_LIST_LIMIT,
    )
    offset = serializers.IntegerField(required=False, min_value=0, default=0)


class PlanStatsQuerySerializer(serializers.Serializer):
    scope = serializers.ChoiceField(choices=PlanScope.choices, required=False)
    scope_id = serializers.IntegerField(required=False)


class DuplicatePlanSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100)


class ProductPlanSerializer(serializers.ModelSerializer):
    plan = PlanSummarySerializer(read_only=True)
    effective_price_monthly = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        read_only=True,
    )
    effective_price_annual = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        read_only=True,
        allow_null=True,
    )
    effective_trial_days = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = ProductSubscriptionPlan
        fields = [
            "id",
            "product_id",
            "plan",
            "override_price_monthly",
            "override_price_annual",
            "override_trial_days",
            "is_default",
            "sort_order",
            "effective_price_monthly",
            "effective_price_annual",
            "effective_trial_days",
        ]
        read_only_fields = fields


class ProductPlanUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductSubscriptionPlan
        fields = [
            "override_price_monthly",
            "override_price_annual",
            "override_trial_days",
            "is_default",
            "sort_order",
        ]
        extra_kwargs = {
            "override_price_monthly": PRICE_BOUNDS,
            "override_price_annual": PRICE_BOUNDS,
        }


class AttachProductPlanSerializer(ProductPlanUpdateSerializer):
    product_id = serializers.IntegerField()
    plan_id = serializers.IntegerField()

    class Meta(ProductPlanUpdateSerializer.Meta):
        fields = ["product_id", "plan_id", *ProductPlanUpdateSerializer.Meta.fields]
