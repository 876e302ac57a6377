from django.contrib import admin

from retainly.subscriptions.models import Subscription


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "company",
        "subscription_plan",
        "status",
        "interval",
        "plan_amount",
        "cycle_count",
        "loyalty_tier",
        "price_locked",
    ]
    list_filter = ["status", "interval", "price_locked"]
    search_fields = ["customer_email", "company__name"]
    readonly_fields = ["created", "modified", "loyalty_locked_at"]
    raw_id_fields = ["company", "product", "subscription_plan"]

    fieldsets = (
        (None, {"fields": ("company", "customer_email", "product", "subscription_plan")}),
        (
            "Billing",
            {
                "fields": (
                    "status",
                    "interval",
                    "plan_amount",
                    "quantity",
                    "cycle_count",
                    "current_period_start",
                    "current_period_end",
                    "next_billing_date",
                ),
            },
        ),
        (
            "Loyalty",
            {"fields": ("loyalty_tier", "loyalty_discount_pct", "loyalty_locked_at")},
        ),
        (
            "Price Lock",
            {
                "fields": (
                    "price_locked",
                    "price_locked_amount",
                    "price_lock_cycles",
                    "price_locked_until",
                ),
            },
        ),
        (
            "Pause / Cancel",
            {"fields": ("paused_at", "pause_resume_at", "canceled_at", "cancel_reason")},
        ),
        ("Ledger", {"fields": ("metadata",)}),
        ("Timestamps", {"fields": ("created", "modified"), "classes": ("collapse",)}),
    )
