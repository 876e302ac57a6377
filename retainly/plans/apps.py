from django.apps import AppConfig


class PlansConfig(AppConfig):
    """
    Reusable subscription plan templates and their attachment to products.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "retainly.plans"
