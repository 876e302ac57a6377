from django.apps import AppConfig


class SubscriptionsConfig(AppConfig):
    """
    The customer subscription entity the engine reads and mutates.

    Charge execution lives outside this project. It reads plan amounts and
    pending benefits from here.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "retainly.subscriptions"
