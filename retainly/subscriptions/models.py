"""
Customer subscriptions.

The engine treats a subscription as an external entity: pricing and
retention read it and mutate a known set of fields, and charge execution
happens elsewhere. ``metadata`` is an append-only ledger of applied offers
and discounts. Nothing in the engine removes a key it did not write.

Relationship: Company ──1:N── Subscription ──N:1── SubscriptionPlan
"""

from django.db import models
from model_utils.models import TimeStampedModel

from retainly.subscriptions.constants import BillingInterval
from retainly.subscriptions.constants import SubscriptionStatus


class Subscription(TimeStampedModel):
    company = models.ForeignKey(
        "users.Company",
        on_delete=models.CASCADE,
        related_name="subscriptions",
    )
    customer_email = models.EmailField(blank=True)
    product = models.ForeignKey(
        "catalog.Product",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="subscriptions",
    )
    subscription_plan = models.ForeignKey(
        "plans.SubscriptionPlan",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="subscriptions",
        help_text="Plan template this subscription was sold on.",
    )

    status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.ACTIVE,
        db_index=True,
    )
    interval = models.CharField(
        max_length=20,
        choices=BillingInterval.choices,
        default=BillingInterval.MONTHLY,
    )
    plan_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=0,
        help_text="Amount charged per cycle before discounts.",
    )
    quantity = models.PositiveIntegerField(default=1)
    cycle_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of successful rebills. Drives loyalty tiers.",
    )

    # Loyalty
    loyalty_tier = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        help_text="Index into the plan's loyalty tiers. Null = no tier earned.",
    )
    loyalty_discount_pct = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=0,
    )
    loyalty_locked_at = models.DateTimeField(null=True, blank=True)

    # Price lock
    price_locked = models.BooleanField(default=False)
    price_locked_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    price_lock_cycles = models.PositiveIntegerField(null=True, blank=True)
    price_locked_until = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Null while locked means the lock never expires.",
    )

    # Billing period
    current_period_start = models.DateTimeField(null=True, blank=True)
    current_period_end = models.DateTimeField(null=True, blank=True)
    next_billing_date = models.DateTimeField(null=True, blank=True)

    # Pause / cancel
    paused_at = models.DateTimeField(null=True, blank=True)
    pause_resume_at = models.DateTimeField(null=True, blank=True)
    canceled_at = models.DateTimeField(null=True, blank=True, db_index=True)
    cancel_reason = models.TextField(blank=True, default="")

    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        ordering = ["-created"]
        indexes = [
            models.Index(fields=["company", "status"], name="subs_company_status_idx"),
            models.Index(
                fields=["price_locked", "price_locked_until"],
                name="subs_price_lock_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Subscription {self.pk} ({self.get_status_display()})"
