from django.apps import AppConfig


class CoreConfig(AppConfig):
    """
    Shared engine plumbing: domain errors, the outbound event sink,
    company access resolution and the scheduled task registry.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "retainly.core"
