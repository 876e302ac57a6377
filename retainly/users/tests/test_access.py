"""
Tests for company access resolution.

These tests cover:
- Superusers reach every company
- Active membership grants access to exactly that company
- Inactive memberships and sibling companies grant nothing
- Anonymous users and missing company ids are refused
"""

import pytest
from django.contrib.auth.models import AnonymousUser

from retainly.core.access import CompanyAccessResolver
from retainly.users.tests.factories import CompanyFactory
from retainly.users.tests.factories import CompanyMembershipFactory
from retainly.users.tests.factories import UserFactory


@pytest.mark.django_db
class TestCompanyAccessResolver:
    @pytest.fixture
    def resolver(self):
        return CompanyAccessResolver()

    def test_superuser_can_access_any_company(self, resolver):
        user = UserFactory(is_superuser=True)
        company = CompanyFactory()

        assert resolver.can_access_company(user, company.id) is True

    def test_member_can_access_own_company(self, resolver):
        membership = CompanyMembershipFactory()

        assert resolver.can_access_company(
            membership.user,
            membership.company_id,
        ) is True

    def test_sibling_company_is_not_accessible(self, resolver):
        membership = CompanyMembershipFactory()
        sibling = CompanyFactory(client=membership.company.client)

        assert resolver.can_access_company(membership.user, sibling.id) is False

    def test_inactive_membership_is_refused(self, resolver):
        membership = CompanyMembershipFactory(is_active=False)

        assert resolver.can_access_company(
            membership.user,
            membership.company_id,
        ) is False

    def test_anonymous_user_is_refused(self, resolver):
        company = CompanyFactory()

        assert resolver.can_access_company(AnonymousUser(), company.id) is False

    def test_missing_company_id_is_refused(self, resolver):
        user = UserFactory()

        assert resolver.can_access_company(user, None) is False

    def test_companies_kwarg_creates_memberships(self, resolver):
        company = CompanyFactory()
        user = UserFactory(companies=[company])

        assert resolver.can_access_company(user, company.id) is True
