from django.apps import AppConfig


class RetentionConfig(AppConfig):
    """
    Cancellation flow, retention offers and win-back campaigns.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "retainly.retention"
