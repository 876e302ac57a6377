"""
Subscription plan templates.

Key design decisions:
- A plan is owned at exactly one scope (organization, client or company);
  the owner id matching ``scope`` is set and the other two are null.
- Plan names are unique per owner among non-deleted plans. Enforced by the
  registry service at write time, not by a DB constraint, because deleted
  plans keep their names.
- Deletion is soft. ``objects`` hides deleted plans, ``all_objects`` does not.
- Pricing and retention read plan configuration but never write to plans.

Relationship: Product ──N:M── SubscriptionPlan (ProductSubscriptionPlan)
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from model_utils.models import TimeStampedModel

from retainly.plans.constants import BackorderAction
from retainly.plans.constants import BillingTrigger
from retainly.plans.constants import BundleType
from retainly.plans.constants import GiftDuration
from retainly.plans.constants import PartialShipmentAction
from retainly.plans.constants import PlanScope
from retainly.plans.constants import PlanStatus
from retainly.plans.constants import ShippingCostAction
from retainly.plans.constants import TrialReturnAction
from retainly.subscriptions.constants import BillingInterval


def default_available_intervals() -> list[str]:
    return [BillingInterval.MONTHLY.value]


class SubscriptionPlanQuerySet(models.QuerySet):
    def active(self):
        return self.filter(status=PlanStatus.ACTIVE)

    def in_scope(self, scope: str, owner_id: int):
        """Plans owned by ``owner_id`` at ``scope``."""
        return self.filter(scope=scope, **{SCOPE_OWNER_FIELDS[scope]: owner_id})


class SubscriptionPlanManager(models.Manager.from_queryset(SubscriptionPlanQuerySet)):
    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class SubscriptionPlanAllManager(models.Manager.from_queryset(SubscriptionPlanQuerySet)):
    pass


# Owner foreign key column for each scope
SCOPE_OWNER_FIELDS = {
    PlanScope.ORGANIZATION: "organization_id",
    PlanScope.CLIENT: "client_id",
    PlanScope.COMPANY: "company_id",
}


class SubscriptionPlan(TimeStampedModel):
    """
    A reusable billing plan template.

    Created as DRAFT, made ACTIVE only by publishing, and retired by
    archiving. Only ACTIVE plans are offered to companies or attached to
    products.
    """

    objects = SubscriptionPlanManager()
    all_objects = SubscriptionPlanAllManager()

    # Ownership
    scope = models.CharField(max_length=20, choices=PlanScope.choices)
    organization = models.ForeignKey(
        "users.Organization",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="subscription_plans",
    )
    client = models.ForeignKey(
        "users.Client",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="subscription_plans",
    )
    company = models.ForeignKey(
        "users.Company",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="subscription_plans",
    )

    # Identification
    name = models.CharField(
        max_length=100,
        help_text="Internal name, unique within the owning scope.",
    )
    display_name = models.CharField(
        max_length=200,
        help_text="Customer-facing name.",
    )
    description = models.TextField(blank=True, default="")
    short_description = models.CharField(max_length=500, blank=True, default="")

    # Pricing
    base_price_monthly = models.DecimalField(max_digits=12, decimal_places=2)
    base_price_annual = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    annual_discount_pct = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
    )
    currency = models.CharField(max_length=3, default="USD")

    # Billing
    available_intervals = models.JSONField(default=default_available_intervals)
    default_interval = models.CharField(
        max_length=20,
        choices=BillingInterval.choices,
        default=BillingInterval.MONTHLY,
    )

    # Trial
    trial_enabled = models.BooleanField(default=False)
    trial_days = models.PositiveIntegerField(null=True, blank=True)
    trial_includes_shipment = models.BooleanField(default=False)
    trial_start_trigger = models.CharField(
        max_length=20,
        choices=BillingTrigger.choices,
        default=BillingTrigger.ON_PURCHASE,
    )
    trial_conversion_trigger = models.CharField(
        max_length=20,
        choices=BillingTrigger.choices,
        default=BillingTrigger.ON_PURCHASE,
    )
    trial_wait_for_delivery = models.BooleanField(default=False)
    trial_extend_days_post_delivery = models.PositiveIntegerField(null=True, blank=True)
    trial_no_tracking_fallback_days = models.PositiveIntegerField(null=True, blank=True)
    trial_return_action = models.CharField(
        max_length=20,
        choices=TrialReturnAction.choices,
        default=TrialReturnAction.PAUSE_ALERT,
    )
    trial_return_extend_days = models.PositiveIntegerField(null=True, blank=True)

    # Recurring
    recurring_enabled = models.BooleanField(default=True)
    recurring_interval_days = models.PositiveIntegerField(null=True, blank=True)
    recurring_includes_shipment = models.BooleanField(default=False)
    recurring_trigger = models.CharField(
        max_length=20,
        choices=BillingTrigger.choices,
        default=BillingTrigger.ON_PURCHASE,
    )
    recurring_wait_for_delivery = models.BooleanField(default=False)
    recurring_extend_days_post_delivery = models.PositiveIntegerField(
        null=True,
        blank=True,
    )

    # Shipment-aware billing
    partial_shipment_action = models.CharField(
        max_length=20,
        choices=PartialShipmentAction.choices,
        default=PartialShipmentAction.PROCEED,
    )
    backorder_action = models.CharField(
        max_length=20,
        choices=BackorderAction.choices,
        default=BackorderAction.DELAY_CHARGE,
    )
    shipping_cost_action = models.CharField(
        max_length=20,
        choices=ShippingCostAction.choices,
        default=ShippingCostAction.ABSORB_COST,
    )
    grace_period_days = models.PositiveIntegerField(null=True, blank=True)

    # Pause & skip
    pause_enabled = models.BooleanField(default=True)
    pause_max_duration = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Longest allowed pause in days. Null = unlimited.",
    )
    skip_enabled = models.BooleanField(default=True)
    skip_max_per_year = models.PositiveIntegerField(null=True, blank=True)

    # Quantity
    included_quantity = models.PositiveIntegerField(default=1)
    max_quantity = models.PositiveIntegerField(null=True, blank=True)
    quantity_change_prorate = models.BooleanField(default=True)

    # Loyalty
    loyalty_enabled = models.BooleanField(default=False)
    loyalty_tiers = models.JSONField(
        null=True,
        blank=True,
        help_text=(
            'Ordered list of {"after_rebills": int, "discount_pct": number}, '
            "strictly ascending by after_rebills."
        ),
    )
    loyalty_stackable = models.BooleanField(default=False)

    # Price lock & early renewal
    price_lock_enabled = models.BooleanField(default=False)
    price_lock_cycles = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Default lock length in cycles. Null = lock indefinitely.",
    )
    early_renewal_enabled = models.BooleanField(default=False)
    early_renewal_prorate = models.BooleanField(default=True)

    # Retention
    downsell_plan = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="downsell_sources",
        help_text="Cheaper plan offered to subscribers who want to cancel.",
    )
    winback_enabled = models.BooleanField(default=False)
    winback_discount_pct = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
    )
    winback_trial_days = models.PositiveIntegerField(null=True, blank=True)

    # Gifting
    gifting_enabled = models.BooleanField(default=False)
    gift_duration_default = models.CharField(
        max_length=20,
        choices=GiftDuration.choices,
        default=GiftDuration.ONGOING,
    )
    gift_fixed_cycles = models.PositiveIntegerField(null=True, blank=True)

    # Bundle
    bundle_type = models.CharField(
        max_length=20,
        choices=BundleType.choices,
        blank=True,
        null=True,
    )
    bundle_min_products = models.PositiveIntegerField(null=True, blank=True)
    bundle_max_products = models.PositiveIntegerField(null=True, blank=True)

    # Notifications
    notify_renewal_enabled = models.BooleanField(default=True)
    notify_renewal_days_before = models.PositiveIntegerField(
        null=True,
        blank=True,
        default=3,
    )

    # Display
    sort_order = models.IntegerField(default=0)
    is_public = models.BooleanField(default=True)
    is_featured = models.BooleanField(default=False)
    badge_text = models.CharField(max_length=50, blank=True, default="")
    features = models.JSONField(default=list, blank=True)

    metadata = models.JSONField(default=dict, blank=True)

    # Lifecycle
    status = models.CharField(
        max_length=20,
        choices=PlanStatus.choices,
        default=PlanStatus.DRAFT,
        db_index=True,
    )
    published_at = models.DateTimeField(null=True, blank=True)
    archived_at = models.DateTimeField(null=True, blank=True)

    # Audit
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )

    class Meta:
        ordering = ["sort_order", "name"]
        indexes = [
            models.Index(fields=["scope", "status"], name="plan_scope_status_idx"),
            models.Index(fields=["company", "status"], name="plan_company_status_idx"),
        ]

    def __str__(self) -> str:
        return self.display_name or self.name

    @property
    def owner_id(self) -> int | None:
        return getattr(self, SCOPE_OWNER_FIELDS[self.scope])

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class ProductSubscriptionPlan(TimeStampedModel):
    """
    A plan offered on a product, with optional per-product overrides.

    At most one assignment per product is the default. The assignment
    service unsets the others whenever one is marked default.
    """

    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.CASCADE,
        related_name="plan_assignments",
    )
    plan = models.ForeignKey(
        SubscriptionPlan,
        on_delete=models.CASCADE,
        related_name="product_plans",
    )
    override_price_monthly = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Replaces the plan's monthly price for this product.",
    )
    override_price_annual = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    override_trial_days = models.PositiveIntegerField(null=True, blank=True)
    is_default = models.BooleanField(default=False)
    sort_order = models.IntegerField(default=0)

    class Meta:
        ordering = ["-is_default", "sort_order"]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "plan"],
                name="uniq_product_plan",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.product} / {self.plan}"

    @property
    def effective_price_monthly(self) -> Decimal:
        if self.override_price_monthly is not None:
            return self.override_price_monthly
        return self.plan.base_price_monthly

    @property
    def effective_price_annual(self) -> Decimal | None:
        if self.override_price_annual is not None:
            return self.override_price_annual
        return self.plan.base_price_annual

    @property
    def effective_trial_days(self) -> int | None:
        if self.override_trial_days is not None:
            return self.override_trial_days
        return self.plan.trial_days
