import django.db.models.deletion
import django.utils.timezone
import model_utils.fields
from django.db import migrations
from django.db import models

OFFER_TYPE_CHOICES = [
    ("DOWNSELL", "Downsell"),
    ("DISCOUNT", "Discount"),
    ("PAUSE", "Pause"),
    ("FREE_PERIOD", "Free period"),
    ("BONUS_PRODUCT", "Bonus product"),
    ("FREQUENCY_CHANGE", "Frequency change"),
]
OFFER_STATUS_CHOICES = [
    ("PENDING", "Pending"),
    ("PRESENTED", "Presented"),
    ("ACCEPTED", "Accepted"),
    ("DECLINED", "Declined"),
    ("EXPIRED", "Expired"),
]
REASON_CHOICES = [
    ("TOO_EXPENSIVE", "Too expensive"),
    ("NOT_USING", "Not using it"),
    ("SWITCHING_COMPETITOR", "Switching to a competitor"),
    ("PRODUCT_ISSUES", "Product issues"),
    ("SERVICE_ISSUES", "Service issues"),
    ("TEMPORARY_PAUSE", "Need a temporary pause"),
    ("FINANCIAL_REASONS", "Financial reasons"),
    ("NO_LONGER_NEEDED", "No longer needed"),
    ("OTHER", "Other"),
]
CAMPAIGN_STATUS_CHOICES = [
    ("DRAFT", "Draft"),
    ("ACTIVE", "Active"),
    ("PAUSED", "Paused"),
    ("COMPLETED", "Completed"),
    ("EXPIRED", "Expired"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("users", "0001_initial"),
        ("plans", "0001_initial"),
        ("subscriptions", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="WinBackCampaign",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("name", models.CharField(max_length=200)),
                ("status", models.CharField(choices=CAMPAIGN_STATUS_CHOICES, db_index=True, default="DRAFT", max_length=20)),
                ("target_reasons", models.JSONField(blank=True, default=list, help_text="Cancellation reasons to target. Empty targets every reason.")),
                ("min_days_since_cancellation", models.PositiveIntegerField(default=0)),
                ("max_days_since_cancellation", models.PositiveIntegerField(default=90)),
                ("target_plan_ids", models.JSONField(blank=True, default=list, help_text="Subscription plan ids to target. Empty targets every plan.")),
                ("offer_type", models.CharField(choices=OFFER_TYPE_CHOICES, max_length=20)),
                ("discount_pct", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("free_periods", models.PositiveIntegerField(blank=True, null=True)),
                ("pause_days", models.PositiveIntegerField(blank=True, null=True)),
                ("offer_valid_days", models.PositiveIntegerField(default=7)),
                ("sent_count", models.PositiveIntegerField(default=0)),
                ("accepted_count", models.PositiveIntegerField(default=0)),
                ("starts_at", models.DateTimeField(blank=True, null=True)),
                ("ends_at", models.DateTimeField(blank=True, null=True)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="winback_campaigns", to="users.company")),
            ],
            options={
                "ordering": ["-created", "-pk"],
                "indexes": [
                    models.Index(fields=["company", "status"], name="winback_company_status_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="RetentionOffer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("type", models.CharField(choices=OFFER_TYPE_CHOICES, max_length=20)),
                ("status", models.CharField(choices=OFFER_STATUS_CHOICES, db_index=True, default="PRESENTED", max_length=20)),
                ("cancellation_reason", models.CharField(blank=True, choices=REASON_CHOICES, default="", max_length=30)),
                ("discount_pct", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("pause_days", models.PositiveIntegerField(blank=True, null=True)),
                ("free_periods", models.PositiveIntegerField(blank=True, null=True)),
                ("bonus_description", models.CharField(blank=True, default="", max_length=255)),
                ("presented_at", models.DateTimeField(blank=True, null=True)),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                ("responded_at", models.DateTimeField(blank=True, null=True)),
                ("campaign", models.ForeignKey(blank=True, help_text="Set for win-back offers.", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="offers", to="retention.winbackcampaign")),
                ("company", models.ForeignKey(help_text="Copied from the subscription so stats can filter by company.", on_delete=django.db.models.deletion.CASCADE, related_name="retention_offers", to="users.company")),
                ("downsell_plan", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="+", to="plans.subscriptionplan")),
                ("subscription", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="retention_offers", to="subscriptions.subscription")),
            ],
            options={
                "ordering": ["created", "pk"],
                "indexes": [
                    models.Index(fields=["subscription", "status"], name="offer_subscription_status_idx"),
                    models.Index(fields=["company", "status"], name="offer_company_status_idx"),
                    models.Index(fields=["status", "expires_at"], name="offer_expiry_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CancellationFlowConfig",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("show_reason_selector", models.BooleanField(default=True)),
                ("show_retention_offers", models.BooleanField(default=True)),
                ("show_pause_option", models.BooleanField(default=True)),
                ("show_downsell_option", models.BooleanField(default=True)),
                ("show_discount_option", models.BooleanField(default=True)),
                ("pause_max_days", models.PositiveIntegerField(default=30, help_text="Days a pause offer suspends the subscription for.")),
                ("discount_pct", models.DecimalField(decimal_places=2, default=20, max_digits=5)),
                ("discount_duration_cycles", models.PositiveIntegerField(default=3)),
                ("custom_messages", models.JSONField(blank=True, default=dict, help_text="Message shown per cancellation reason, keyed by reason.")),
                ("company", models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name="cancellation_flow_config", to="users.company")),
            ],
            options={
                "verbose_name": "cancellation flow config",
            },
        ),
    ]
