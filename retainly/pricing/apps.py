from django.apps import AppConfig


class PricingConfig(AppConfig):
    """
    Effective price computation: loyalty tiers, price locks and early
    renewal. Owns no tables; it reads plans and writes subscriptions.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "retainly.pricing"
