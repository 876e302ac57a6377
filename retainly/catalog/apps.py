from django.apps import AppConfig


class CatalogConfig(AppConfig):
    """Product catalog that subscription plans are attached to."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "retainly.catalog"
