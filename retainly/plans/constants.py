"""
Plan constants.

Scope says which level of the tenancy hierarchy owns a plan. Status drives
the DRAFT → ACTIVE → ARCHIVED lifecycle. The remaining enums configure how
trials, recurring charges and shipments interact with billing.
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class PlanScope(models.TextChoices):
    """
    Owning level of a plan. Exactly one matching owner id is set.

    Ordered from widest to narrowest; resolution for a company returns
    plans in this order.
    """

    ORGANIZATION = "ORGANIZATION", _("Organization")
    CLIENT = "CLIENT", _("Client")
    COMPANY = "COMPANY", _("Company")


class PlanStatus(models.TextChoices):
    """
    Plan lifecycle states.

        DRAFT → ACTIVE (publish)
        DRAFT/ACTIVE → ARCHIVED (archive, terminal)
    """

    DRAFT = "DRAFT", _("Draft")
    ACTIVE = "ACTIVE", _("Active")
    ARCHIVED = "ARCHIVED", _("Archived")


class BillingTrigger(models.TextChoices):
    """When a trial starts or converts, or when a recurring charge fires."""

    ON_PURCHASE = "ON_PURCHASE", _("On purchase")
    ON_SHIPMENT = "ON_SHIPMENT", _("On shipment")
    ON_DELIVERY = "ON_DELIVERY", _("On delivery")
    MANUAL = "MANUAL", _("Manual")


class TrialReturnAction(models.TextChoices):
    EXTEND_TRIAL = "EXTEND_TRIAL", _("Extend trial")
    CANCEL = "CANCEL", _("Cancel")
    CONVERT_ANYWAY = "CONVERT_ANYWAY", _("Convert anyway")
    PAUSE_ALERT = "PAUSE_ALERT", _("Pause and alert")


class PartialShipmentAction(models.TextChoices):
    PROCEED = "PROCEED", _("Proceed")
    WAIT_FULL = "WAIT_FULL", _("Wait for full shipment")
    PRORATE = "PRORATE", _("Prorate")


class BackorderAction(models.TextChoices):
    DELAY_CHARGE = "DELAY_CHARGE", _("Delay charge")
    CHARGE_ANYWAY = "CHARGE_ANYWAY", _("Charge anyway")
    SKIP_ITEM = "SKIP_ITEM", _("Skip item")
    PAUSE_SUBSCRIPTION = "PAUSE_SUBSCRIPTION", _("Pause subscription")


class ShippingCostAction(models.TextChoices):
    ABSORB_COST = "ABSORB_COST", _("Absorb cost")
    CHARGE_CUSTOMER = "CHARGE_CUSTOMER", _("Charge customer")
    SPLIT_COST = "SPLIT_COST", _("Split cost")


class GiftDuration(models.TextChoices):
    ONGOING = "ONGOING", _("Ongoing")
    FIXED = "FIXED", _("Fixed number of cycles")
    UNTIL_CANCELLED = "UNTIL_CANCELLED", _("Until cancelled")


class BundleType(models.TextChoices):
    FIXED = "FIXED", _("Fixed")
    FLEXIBLE = "FLEXIBLE", _("Flexible")
    BUILD_YOUR_OWN = "BUILD_YOUR_OWN", _("Build your own")


# Default page size for plan listings
DEFAULT_PLAN_LIST_LIMIT = 50

# Suffix appended to the display name of a duplicated plan
DUPLICATE_DISPLAY_SUFFIX = " (Copy)"
