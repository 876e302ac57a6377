"""
Retention constants.

Offers are created PRESENTED and end in exactly one terminal state:

    PRESENTED → ACCEPTED (accepted before expires_at)
    PRESENTED → DECLINED
    PRESENTED → EXPIRED (accept after expiry, read after expiry, or sweep)

PENDING exists for offers built but not yet shown; the engine never
creates one.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class RetentionOfferType(models.TextChoices):
    DOWNSELL = "DOWNSELL", _("Downsell")
    DISCOUNT = "DISCOUNT", _("Discount")
    PAUSE = "PAUSE", _("Pause")
    FREE_PERIOD = "FREE_PERIOD", _("Free period")
    BONUS_PRODUCT = "BONUS_PRODUCT", _("Bonus product")
    FREQUENCY_CHANGE = "FREQUENCY_CHANGE", _("Frequency change")


class RetentionOfferStatus(models.TextChoices):
    PENDING = "PENDING", _("Pending")
    PRESENTED = "PRESENTED", _("Presented")
    ACCEPTED = "ACCEPTED", _("Accepted")
    DECLINED = "DECLINED", _("Declined")
    EXPIRED = "EXPIRED", _("Expired")


class CancellationReason(models.TextChoices):
    TOO_EXPENSIVE = "TOO_EXPENSIVE", _("Too expensive")
    NOT_USING = "NOT_USING", _("Not using it")
    SWITCHING_COMPETITOR = "SWITCHING_COMPETITOR", _("Switching to a competitor")
    PRODUCT_ISSUES = "PRODUCT_ISSUES", _("Product issues")
    SERVICE_ISSUES = "SERVICE_ISSUES", _("Service issues")
    TEMPORARY_PAUSE = "TEMPORARY_PAUSE", _("Need a temporary pause")
    FINANCIAL_REASONS = "FINANCIAL_REASONS", _("Financial reasons")
    NO_LONGER_NEEDED = "NO_LONGER_NEEDED", _("No longer needed")
    OTHER = "OTHER", _("Other")


class WinBackCampaignStatus(models.TextChoices):
    """
    Campaign lifecycle.

        DRAFT → ACTIVE (activate)

    PAUSED, COMPLETED and EXPIRED are set by operators from the admin.
    """

    DRAFT = "DRAFT", _("Draft")
    ACTIVE = "ACTIVE", _("Active")
    PAUSED = "PAUSED", _("Paused")
    COMPLETED = "COMPLETED", _("Completed")
    EXPIRED = "EXPIRED", _("Expired")


# Reasons that get a price-based save offer (discount or downsell)
PRICE_SENSITIVE_REASONS = frozenset(
    {CancellationReason.TOO_EXPENSIVE, CancellationReason.FINANCIAL_REASONS},
)
# Reasons that get a pause offer
PAUSE_REASONS = frozenset(
    {CancellationReason.TEMPORARY_PAUSE, CancellationReason.NOT_USING},
)

# Free periods offered for PRODUCT_ISSUES
PRODUCT_ISSUES_FREE_PERIODS = 1

# Offer reasons stamped into subscription metadata
RETENTION_OFFER_REASON = "retention_offer"
WINBACK_OFFER_REASON = "winback_offer"

# Cancellation flow defaults, used for companies with no stored config
# and for fields left unset on a stored one.
CANCELLATION_FLOW_DEFAULTS = {
    "show_reason_selector": True,
    "show_retention_offers": True,
    "show_pause_option": True,
    "show_downsell_option": True,
    "show_discount_option": True,
    "pause_max_days": 30,
    "discount_pct": 20,
    "discount_duration_cycles": 3,
}
