"""
Users and the tenancy hierarchy.

Organization ──1:N── Client ──1:N── Company ──N:M── User (CompanyMembership)

Plans can be owned at any of the three levels. Everything else the engine
stores (subscriptions, offers, campaigns, flow configuration) belongs to a
company.
"""

from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import CharField
from django.utils.translation import gettext_lazy as _
from model_utils.models import TimeStampedModel


class User(AbstractUser):
    """
    Default custom user model for Retainly.
    """

    # First and last name do not cover name patterns around the globe
    name = CharField(_("Name of User"), blank=True, max_length=255)
    first_name = None  # type: ignore[assignment]
    last_name = None  # type: ignore[assignment]

    companies = models.ManyToManyField(
        "users.Company",
        through="users.CompanyMembership",
        related_name="users",
        blank=True,
    )

    def __str__(self) -> str:
        return self.username


class Organization(TimeStampedModel):
    """Top of the tenancy hierarchy. Owns clients."""

    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Client(TimeStampedModel):
    """A client of an organization. Owns companies."""

    organization = models.ForeignKey(
        Organization,
        on_delete=models.CASCADE,
        related_name="clients",
    )
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization", "slug"],
                name="uniq_client_slug_per_org",
            ),
        ]

    def __str__(self) -> str:
        return self.name


class Company(TimeStampedModel):
    """A storefront. Subscriptions, offers and campaigns hang off a company."""

    client = models.ForeignKey(
        Client,
        on_delete=models.CASCADE,
        related_name="companies",
    )
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "companies"
        constraints = [
            models.UniqueConstraint(
                fields=["client", "slug"],
                name="uniq_company_slug_per_client",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def organization_id(self) -> int:
        return self.client.organization_id


class CompanyMembership(TimeStampedModel):
    """Grants a user access to one company."""

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="company_memberships",
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["user", "company"],
                name="uniq_company_membership",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user} @ {self.company}"
