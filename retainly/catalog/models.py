from django.db import models
from model_utils.models import TimeStampedModel


class Product(TimeStampedModel):
    """A sellable product in a company's catalog."""

    company = models.ForeignKey(
        "users.Company",
        on_delete=models.CASCADE,
        related_name="products",
    )
    name = models.CharField(max_length=255)
    sku = models.CharField(max_length=100, blank=True)
    price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=0,
        help_text="One-off price. Subscription pricing comes from attached plans.",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name
