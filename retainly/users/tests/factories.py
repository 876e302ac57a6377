from collections.abc import Sequence
from typing import Any

import factory
from factory import Faker
from factory import post_generation
from factory.django import DjangoModelFactory

from retainly.users.models import Client
from retainly.users.models import Company
from retainly.users.models import CompanyMembership
from retainly.users.models import Organization
from retainly.users.models import User


class OrganizationFactory(DjangoModelFactory):
    class Meta:
        model = Organization

    name = factory.Sequence(lambda n: f"Test Organization {n}")
    slug = factory.Sequence(lambda n: f"test-org-{n}")


class ClientFactory(DjangoModelFactory):
    class Meta:
        model = Client

    organization = factory.SubFactory(OrganizationFactory)
    name = factory.Sequence(lambda n: f"Test Client {n}")
    slug = factory.Sequence(lambda n: f"test-client-{n}")


class CompanyFactory(DjangoModelFactory):
    class Meta:
        model = Company

    client = factory.SubFactory(ClientFactory)
    name = factory.Sequence(lambda n: f"Test Company {n}")
    slug = factory.Sequence(lambda n: f"test-company-{n}")


class UserFactory(DjangoModelFactory[User]):
    class Meta:
        model = User
        django_get_or_create = ["username"]
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"user-{n}")
    email = Faker("email")
    name = Faker("name")
    is_active = True

    @post_generation
    def password(self, create: bool, extracted: Sequence[Any], **kwargs):  # noqa: FBT001
        self.set_password(extracted or "not-a-real-password-123")
        if create:
            self.save(update_fields=["password"])

    @post_generation
    def companies(self, create: bool, extracted: Sequence[Any], **kwargs):  # noqa: FBT001
        if not create or not extracted:
            # Simple build, or no companies requested.
            return

        for company in extracted:
            CompanyMembership.objects.get_or_create(user=self, company=company)


class CompanyMembershipFactory(DjangoModelFactory):
    class Meta:
        model = CompanyMembership

    user = factory.SubFactory(UserFactory)
    company = factory.SubFactory(CompanyFactory)
    is_active = True
