from django.contrib import admin

from retainly.plans.models import ProductSubscriptionPlan
from retainly.plans.models import SubscriptionPlan


class ProductSubscriptionPlanInline(admin.TabularInline):
    model = ProductSubscriptionPlan
    extra = 0
    raw_id_fields = ["product"]
    fields = [
        "product",
        "override_price_monthly",
        "override_price_annual",
        "override_trial_days",
        "is_default",
        "sort_order",
    ]


@admin.register(SubscriptionPlan)
class SubscriptionPlanAdmin(admin.ModelAdmin):
    """
    Plans are edited through the API so the registry rules apply. The
    admin is for support staff looking things up.
    """

    list_display = [
        "id",
        "name",
        "scope",
        "status",
        "base_price_monthly",
        "currency",
        "loyalty_enabled",
        "price_lock_enabled",
        "deleted_at",
    ]
    list_filter = ["scope", "status", "loyalty_enabled", "price_lock_enabled"]
    search_fields = ["name", "display_name", "description"]
    readonly_fields = [
        "status",
        "published_at",
        "archived_at",
        "deleted_at",
        "deleted_by",
        "created_by",
        "updated_by",
        "created",
        "modified",
    ]
    raw_id_fields = ["organization", "client", "company", "downsell_plan"]
    inlines = [ProductSubscriptionPlanInline]

    fieldsets = (
        (None, {"fields": ("name", "display_name", "description", "short_description")}),
        ("Ownership", {"fields": ("scope", "organization", "client", "company")}),
        (
            "Pricing",
            {
                "fields": (
                    "base_price_monthly",
                    "base_price_annual",
                    "annual_discount_pct",
                    "currency",
                    "available_intervals",
                    "default_interval",
                ),
            },
        ),
        (
            "Loyalty & Price Lock",
            {
                "fields": (
                    "loyalty_enabled",
                    "loyalty_tiers",
                    "loyalty_stackable",
                    "price_lock_enabled",
                    "price_lock_cycles",
                    "early_renewal_enabled",
                    "early_renewal_prorate",
                ),
            },
        ),
        (
            "Retention",
            {
                "fields": (
                    "downsell_plan",
                    "winback_enabled",
                    "winback_discount_pct",
                    "winback_trial_days",
                ),
            },
        ),
        (
            "Lifecycle",
            {
                "fields": (
                    "status",
                    "published_at",
                    "archived_at",
                    "deleted_at",
                    "deleted_by",
                    "created_by",
                    "updated_by",
                ),
            },
        ),
        ("Timestamps", {"fields": ("created", "modified"), "classes": ("collapse",)}),
    )

    def get_queryset(self, request):
        return SubscriptionPlan.all_objects.all()
