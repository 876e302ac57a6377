import django.db.models.deletion
import django.utils.timezone
import model_utils.fields
from django.db import migrations
from django.db import models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("users", "0001_initial"),
        ("catalog", "0001_initial"),
        ("plans", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Subscription",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created", model_utils.fields.AutoCreatedField(default=django.utils.timezone.now, editable=False, verbose_name="created")),
                ("modified", model_utils.fields.AutoLastModifiedField(default=django.utils.timezone.now, editable=False, verbose_name="modified")),
                ("customer_email", models.EmailField(blank=True, max_length=254)),
                ("status", models.CharField(choices=[("TRIALING", "Trial"), ("ACTIVE", "Active"), ("PAUSED", "Paused"), ("PAST_DUE", "Past Due"), ("CANCELED", "Canceled"), ("EXPIRED", "Expired")], db_index=True, default="ACTIVE", max_length=20)),
                ("interval", models.CharField(choices=[("DAILY", "Daily"), ("WEEKLY", "Weekly"), ("BIWEEKLY", "Every two weeks"), ("MONTHLY", "Monthly"), ("QUARTERLY", "Quarterly"), ("YEARLY", "Yearly")], default="MONTHLY", max_length=20)),
                ("plan_amount", models.DecimalField(decimal_places=2, default=0, help_text="Amount charged per cycle before discounts.", max_digits=12)),
                ("quantity", models.PositiveIntegerField(default=1)),
                ("cycle_count", models.PositiveIntegerField(default=0, help_text="Number of successful rebills. Drives loyalty tiers.")),
                ("loyalty_tier", models.PositiveSmallIntegerField(blank=True, help_text="Index into the plan's loyalty tiers. Null = no tier earned.", null=True)),
                ("loyalty_discount_pct", models.DecimalField(decimal_places=2, default=0, max_digits=5)),
                ("loyalty_locked_at", models.DateTimeField(blank=True, null=True)),
                ("price_locked", models.BooleanField(default=False)),
                ("price_locked_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("price_lock_cycles", models.PositiveIntegerField(blank=True, null=True)),
                ("price_locked_until", models.DateTimeField(blank=True, help_text="Null while locked means the lock never expires.", null=True)),
                ("current_period_start", models.DateTimeField(blank=True, null=True)),
                ("current_period_end", models.DateTimeField(blank=True, null=True)),
                ("next_billing_date", models.DateTimeField(blank=True, null=True)),
                ("paused_at", models.DateTimeField(blank=True, null=True)),
                ("pause_resume_at", models.DateTimeField(blank=True, null=True)),
                ("canceled_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("cancel_reason", models.TextField(blank=True, default="")),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("company", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="subscriptions", to="users.company")),
                ("product", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="subscriptions", to="catalog.product")),
                ("subscription_plan", models.ForeignKey(blank=True, help_text="Plan template this subscription was sold on.", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="subscriptions", to="plans.subscriptionplan")),
            ],
            options={
                "ordering": ["-created"],
                "indexes": [
                    models.Index(fields=["company", "status"], name="subs_company_status_idx"),
                    models.Index(fields=["price_locked", "price_locked_until"], name="subs_price_lock_idx"),
                ],
            },
        ),
    ]
