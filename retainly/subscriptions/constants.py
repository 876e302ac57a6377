"""
Subscription constants.

These enums define the subscription lifecycle states and the billing
intervals that period arithmetic understands.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class SubscriptionStatus(models.TextChoices):
    """
    Subscription lifecycle states.

    Typical flow:
        TRIALING → ACTIVE (on first charge)
        ACTIVE → PAUSED (pause offer accepted) → ACTIVE (on resume)
        ACTIVE → PAST_DUE (payment failed)
        ACTIVE → CANCELED → ACTIVE (win-back offer accepted)
    """

    TRIALING = "TRIALING", _("Trial")
    ACTIVE = "ACTIVE", _("Active")
    PAUSED = "PAUSED", _("Paused")
    PAST_DUE = "PAST_DUE", _("Past Due")
    CANCELED = "CANCELED", _("Canceled")
    EXPIRED = "EXPIRED", _("Expired")


class BillingInterval(models.TextChoices):
    DAILY = "DAILY", _("Daily")
    WEEKLY = "WEEKLY", _("Weekly")
    BIWEEKLY = "BIWEEKLY", _("Every two weeks")
    MONTHLY = "MONTHLY", _("Monthly")
    QUARTERLY = "QUARTERLY", _("Quarterly")
    YEARLY = "YEARLY", _("Yearly")


# Metadata keys stamped by retention offers and read by the billing cycle.
METADATA_RETENTION_DISCOUNT = "retentionDiscount"
METADATA_FREE_PERIODS = "freePeriods"
METADATA_CANCELLATION_REASON = "cancellationReason"
METADATA_CANCELLATION_FEEDBACK = "cancellationFeedback"
METADATA_WINBACK_OFFER = "winBackOffer"
METADATA_REACTIVATED_AT = "reactivatedAt"
METADATA_LAST_EARLY_RENEWAL = "lastEarlyRenewal"
