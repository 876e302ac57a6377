from django.contrib import admin

from retainly.retention.models import CancellationFlowConfig
from retainly.retention.models import RetentionOffer
from retainly.retention.models import WinBackCampaign


@admin.register(RetentionOffer)
class RetentionOfferAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "subscription",
        "type",
        "status",
        "cancellation_reason",
        "campaign",
        "expires_at",
        "responded_at",
    ]
    list_filter = ["type", "status", "cancellation_reason"]
    raw_id_fields = ["subscription", "company", "campaign", "downsell_plan"]
    readonly_fields = ["created", "modified", "presented_at", "responded_at"]
    date_hierarchy = "created"


@admin.register(WinBackCampaign)
class WinBackCampaignAdmin(admin.ModelAdmin):
    """
    Operators pause, complete or expire campaigns from here. Counters are
    maintained by the engine.
    """

    list_display = [
        "id",
        "name",
        "company",
        "status",
        "offer_type",
        "sent_count",
        "accepted_count",
        "starts_at",
        "ends_at",
    ]
    list_filter = ["status", "offer_type"]
    search_fields = ["name"]
    raw_id_fields = ["company"]
    readonly_fields = ["sent_count", "accepted_count", "created", "modified"]


@admin.register(CancellationFlowConfig)
class CancellationFlowConfigAdmin(admin.ModelAdmin):
    list_display = [
        "company",
        "show_retention_offers",
        "show_discount_option",
        "show_downsell_option",
        "show_pause_option",
        "discount_pct",
        "pause_max_days",
    ]
    raw_id_fields = ["company"]
