"""
Retention models.

A RetentionOffer is a save offer shown to a subscriber, either during the
cancellation flow or as part of a win-back campaign sent after they
cancelled. Accepting an offer mutates the subscription; the offer row keeps
the record of what was offered and how the subscriber responded.

Relationships:
    Subscription ──1:N── RetentionOffer ──N:1── WinBackCampaign (optional)
    Company ──1:1── CancellationFlowConfig
"""

from django.db import models
from model_utils.models import TimeStampedModel

from retainly.retention.constants import CANCELLATION_FLOW_DEFAULTS
from retainly.retention.constants import CancellationReason
from retainly.retention.constants import RetentionOfferStatus
from retainly.retention.constants import RetentionOfferType
from retainly.retention.constants import WinBackCampaignStatus


class RetentionOfferQuerySet(models.QuerySet):
    def presented(self):
        return self.filter(status=RetentionOfferStatus.PRESENTED)

    def overdue(self, now):
        return self.presented().filter(expires_at__isnull=False, expires_at__lt=now)


class RetentionOffer(TimeStampedModel):
    subscription = models.ForeignKey(
        "subscriptions.Subscription",
        on_delete=models.CASCADE,
        related_name="retention_offers",
    )
    company = models.ForeignKey(
        "users.Company",
        on_delete=models.CASCADE,
        related_name="retention_offers",
        help_text="Copied from the subscription so stats can filter by company.",
    )
    campaign = models.ForeignKey(
        "retention.WinBackCampaign",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="offers",
        help_text="Set for win-back offers.",
    )

    type = models.CharField(max_length=20, choices=RetentionOfferType.choices)
    status = models.CharField(
        max_length=20,
        choices=RetentionOfferStatus.choices,
        default=RetentionOfferStatus.PRESENTED,
        db_index=True,
    )
    cancellation_reason = models.CharField(
        max_length=30,
        choices=CancellationReason.choices,
        blank=True,
        default="",
    )

    # Type-specific payload
    discount_pct = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    downsell_plan = models.ForeignKey(
        "plans.SubscriptionPlan",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    pause_days = models.PositiveIntegerField(null=True, blank=True)
    free_periods = models.PositiveIntegerField(null=True, blank=True)
    bonus_description = models.CharField(max_length=255, blank=True, default="")

    presented_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    responded_at = models.DateTimeField(null=True, blank=True)

    objects = RetentionOfferQuerySet.as_manager()

    class Meta:
        ordering = ["created", "pk"]
        indexes = [
            models.Index(
                fields=["subscription", "status"],
                name="offer_subscription_status_idx",
            ),
            models.Index(fields=["company", "status"], name="offer_company_status_idx"),
            models.Index(fields=["status", "expires_at"], name="offer_expiry_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()} offer {self.pk} ({self.get_status_display()})"

    def is_expired_at(self, now) -> bool:
        return self.expires_at is not None and now > self.expires_at


class WinBackCampaign(TimeStampedModel):
    """
    Targets cancelled subscriptions with one type of offer.

    Eligibility: the company's CANCELED subscriptions cancelled between
    ``max_days_since_cancellation`` and ``min_days_since_cancellation`` days
    ago, optionally narrowed by plan and by the cancellation reason recorded
    in subscription metadata.
    """

    company = models.ForeignKey(
        "users.Company",
        on_delete=models.CASCADE,
        related_name="winback_campaigns",
    )
    name = models.CharField(max_length=200)
    status = models.CharField(
        max_length=20,
        choices=WinBackCampaignStatus.choices,
        default=WinBackCampaignStatus.DRAFT,
        db_index=True,
    )

    # Targeting
    target_reasons = models.JSONField(
        default=list,
        blank=True,
        help_text="Cancellation reasons to target. Empty targets every reason.",
    )
    min_days_since_cancellation = models.PositiveIntegerField(default=0)
    max_days_since_cancellation = models.PositiveIntegerField(default=90)
    target_plan_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Subscription plan ids to target. Empty targets every plan.",
    )

    # Offer
    offer_type = models.CharField(max_length=20, choices=RetentionOfferType.choices)
    discount_pct = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    free_periods = models.PositiveIntegerField(null=True, blank=True)
    pause_days = models.PositiveIntegerField(null=True, blank=True)
    offer_valid_days = models.PositiveIntegerField(default=7)

    # Counters
    sent_count = models.PositiveIntegerField(default=0)
    accepted_count = models.PositiveIntegerField(default=0)

    starts_at = models.DateTimeField(null=True, blank=True)
    ends_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created", "-pk"]
        indexes = [
            models.Index(fields=["company", "status"], name="winback_company_status_idx"),
        ]

    def __str__(self) -> str:
        return self.name

    def is_running_at(self, now) -> bool:
        if self.status != WinBackCampaignStatus.ACTIVE:
            return False
        if self.starts_at and now < self.starts_at:
            return False
        return not (self.ends_at and now > self.ends_at)


class CancellationFlowConfig(TimeStampedModel):
    """
    Per-company settings for the cancellation flow.

    Companies without a row use ``CANCELLATION_FLOW_DEFAULTS``.
    """

    company = models.OneToOneField(
        "users.Company",
        on_delete=models.CASCADE,
        related_name="cancellation_flow_config",
    )
    show_reason_selector = models.BooleanField(
        default=CANCELLATION_FLOW_DEFAULTS["show_reason_selector"],
    )
    show_retention_offers = models.BooleanField(
        default=CANCELLATION_FLOW_DEFAULTS["show_retention_offers"],
    )
    show_pause_option = models.BooleanField(
        default=CANCELLATION_FLOW_DEFAULTS["show_pause_option"],
    )
    show_downsell_option = models.BooleanField(
        default=CANCELLATION_FLOW_DEFAULTS["show_downsell_option"],
    )
    show_discount_option = models.BooleanField(
        default=CANCELLATION_FLOW_DEFAULTS["show_discount_option"],
    )
    pause_max_days = models.PositiveIntegerField(
        default=CANCELLATION_FLOW_DEFAULTS["pause_max_days"],
        help_text="Days a pause offer suspends the subscription for.",
    )
    discount_pct = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=CANCELLATION_FLOW_DEFAULTS["discount_pct"],
    )
    discount_duration_cycles = models.PositiveIntegerField(
        default=CANCELLATION_FLOW_DEFAULTS["discount_duration_cycles"],
    )
    custom_messages = models.JSONField(
        default=dict,
        blank=True,
        help_text="Message shown per cancellation reason, keyed by reason.",
    )

    class Meta:
        verbose_name = "cancellation flow config"

    def __str__(self) -> str:
        return f"Cancellation flow for company {self.company_id}"
