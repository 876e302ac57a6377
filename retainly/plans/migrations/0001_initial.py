import django.db.models.deletion
import django.utils.timezone
import model_utils.fields
from django.conf import settings
from django.db import migrations
from django.db import models

import retainly.plans.models

INTERVAL_CHOICES = [
    ("DAILY", "Daily"),
    ("WEEKLY", "Weekly"),
    ("BIWEEKLY", "Every two weeks"),
    ("MONTHLY", "Monthly"),
    ("QUARTERLY", "Quarterly"),
    ("YEARLY", "Yearly"),
]
TRIGGER_CHOICES = [
    ("ON_PURCHASE", "On purchase"),
    ("ON_SHIPMENT", "On shipment"),
    ("ON_DELIVERY", "On delivery"),
    ("MANUAL", "Manual"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("users", "0001_initial"),
        ("catalog", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="SubscriptionPlan",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("scope", models.CharField(choices=[("ORGANIZATION", "Organization"), ("CLIENT", "Client"), ("COMPANY", "Company")], max_length=20)),
                ("name", models.CharField(help_text="Internal name, unique within the owning scope.", max_length=100)),
                ("display_name", models.CharField(help_text="Customer-facing name.", max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("short_description", models.CharField(blank=True, default="", max_length=500)),
                ("base_price_monthly", models.DecimalField(decimal_places=2, max_digits=12)),
                ("base_price_annual", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("annual_discount_pct", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("currency", models.CharField(default="USD", max_length=3)),
                ("available_intervals", models.JSONField(default=retainly.plans.models.default_available_intervals)),
                ("default_interval", models.CharField(choices=INTERVAL_CHOICES, default="MONTHLY", max_length=20)),
                ("trial_enabled", models.BooleanField(default=False)),
                ("trial_days", models.PositiveIntegerField(blank=True, null=True)),
                ("trial_includes_shipment", models.BooleanField(default=False)),
                ("trial_start_trigger", models.CharField(choices=TRIGGER_CHOICES, default="ON_PURCHASE", max_length=20)),
                ("trial_conversion_trigger", models.CharField(choices=TRIGGER_CHOICES, default="ON_PURCHASE", max_length=20)),
                ("trial_wait_for_delivery", models.BooleanField(default=False)),
                ("trial_extend_days_post_delivery", models.PositiveIntegerField(blank=True, null=True)),
                ("trial_no_tracking_fallback_days", models.PositiveIntegerField(blank=True, null=True)),
                ("trial_return_action", models.CharField(choices=[("EXTEND_TRIAL", "Extend trial"), ("CANCEL", "Cancel"), ("CONVERT_ANYWAY", "Convert anyway"), ("PAUSE_ALERT", "Pause and alert")], default="PAUSE_ALERT", max_length=20)),
                ("trial_return_extend_days", models.PositiveIntegerField(blank=True, null=True)),
                ("recurring_enabled", models.BooleanField(default=True)),
                ("recurring_interval_days", models.PositiveIntegerField(blank=True, null=True)),
                ("recurring_includes_shipment", models.BooleanField(default=False)),
                ("recurring_trigger", models.CharField(choices=TRIGGER_CHOICES, default="ON_PURCHASE", max_length=20)),
                ("recurring_wait_for_delivery", models.BooleanField(default=False)),
                ("recurring_extend_days_post_delivery", models.PositiveIntegerField(blank=True, null=True)),
                ("partial_shipment_action", models.CharField(choices=[("PROCEED", "Proceed"), ("WAIT_FULL", "Wait for full shipment"), ("PRORATE", "Prorate")], default="PROCEED", max_length=20)),
                ("backorder_action", models.CharField(choices=[("DELAY_CHARGE", "Delay charge"), ("CHARGE_ANYWAY", "Charge anyway"), ("SKIP_ITEM", "Skip item"), ("PAUSE_SUBSCRIPTION", "Pause subscription")], default="DELAY_CHARGE", max_length=20)),
                ("shipping_cost_action", models.CharField(choices=[("ABSORB_COST", "Absorb cost"), ("CHARGE_CUSTOMER", "Charge customer"), ("SPLIT_COST", "Split cost")], default="ABSORB_COST", max_length=20)),
                ("grace_period_days", models.PositiveIntegerField(blank=True, null=True)),
                ("pause_enabled", models.BooleanField(default=True)),
                ("pause_max_duration", models.PositiveIntegerField(blank=True, help_text="Longest allowed pause in days. Null = unlimited.", null=True)),
                ("skip_enabled", models.BooleanField(default=True)),
                ("skip_max_per_year", models.PositiveIntegerField(blank=True, null=True)),
                ("included_quantity", models.PositiveIntegerField(default=1)),
                ("max_quantity", models.PositiveIntegerField(blank=True, null=True)),
                ("quantity_change_prorate", models.BooleanField(default=True)),
                ("loyalty_enabled", models.BooleanField(default=False)),
                ("loyalty_tiers", models.JSONField(blank=True, help_text='Ordered list of {"after_rebills": int, "discount_pct": number}, strictly ascending by after_rebills.', null=True)),
                ("loyalty_stackable", models.BooleanField(default=False)),
                ("price_lock_enabled", models.BooleanField(default=False)),
                ("price_lock_cycles", models.PositiveIntegerField(blank=True, help_text="Default lock length in cycles. Null = lock indefinitely.", null=True)),
                ("early_renewal_enabled", models.BooleanField(default=False)),
                ("early_renewal_prorate", models.BooleanField(default=True)),
                ("winback_enabled", models.BooleanField(default=False)),
                ("winback_discount_pct", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("winback_trial_days", models.PositiveIntegerField(blank=True, null=True)),
                ("gifting_enabled", models.BooleanField(default=False)),
                ("gift_duration_default", models.CharField(choices=[("ONGOING", "Ongoing"), ("FIXED", "Fixed number of cycles"), ("UNTIL_CANCELLED", "Until cancelled")], default="ONGOING", max_length=20)),
                ("gift_fixed_cycles", models.PositiveIntegerField(blank=True, null=True)),
                ("bundle_type", models.CharField(blank=True, choices=[("FIXED", "Fixed"), ("FLEXIBLE", "Flexible"), ("BUILD_YOUR_OWN", "Build your own")], max_length=20, null=True)),
                ("bundle_min_products", models.PositiveIntegerField(blank=True, null=True)),
                ("bundle_max_products", models.PositiveIntegerField(blank=True, null=True)),
                ("notify_renewal_enabled", models.BooleanField(default=True)),
                ("notify_renewal_days_before", models.PositiveIntegerField(blank=True, default=3, null=True)),
                ("sort_order", models.IntegerField(default=0)),
                ("is_public", models.BooleanField(default=True)),
                ("is_featured", models.BooleanField(default=False)),
                ("badge_text", models.CharField(blank=True, default="", max_length=50)),
                ("features", models.JSONField(blank=True, default=list)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("status", models.CharField(choices=[("DRAFT", "Draft"), ("ACTIVE", "Active"), ("ARCHIVED", "Archived")], db_index=True, default="DRAFT", max_length=20)),
                ("published_at", models.DateTimeField(blank=True, null=True)),
                ("archived_at", models.DateTimeField(blank=True, null=True)),
                ("deleted_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("client", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="subscription_plans", to="users.client")),
                ("company", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="subscription_plans", to="users.company")),
                ("organization", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name="subscription_plans", to="users.organization")),
                ("downsell_plan", models.ForeignKey(blank=True, help_text="Cheaper plan offered to subscribers who want to cancel.", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="downsell_sources", to="plans.subscriptionplan")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("updated_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
                ("deleted_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["sort_order", "name"],
                "indexes": [
                    models.Index(fields=["scope", "status"], name="plan_scope_status_idx"),
                    models.Index(fields=["company", "status"], name="plan_company_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="ProductSubscriptionPlan",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("override_price_monthly", models.DecimalField(blank=True, decimal_places=2, help_text="Replaces the plan's monthly price for this product.", max_digits=12, null=True)),
                ("override_price_annual", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("override_trial_days", models.PositiveIntegerField(blank=True, null=True)),
                ("is_default", models.BooleanField(default=False)),
                ("sort_order", models.IntegerField(default=0)),
                ("plan", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="product_plans", to="plans.subscriptionplan")),
                ("product", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="plan_assignments", to="catalog.product")),
            ],
            options={
                "ordering": ["-is_default", "sort_order"],
                "constraints": [
                    models.UniqueConstraint(fields=("product", "plan"), name="uniq_product_plan"),
                ],
            },
        ),
    ]
