import pytest
from rest_framework.test import APIClient

from retainly.users.models import User
from retainly.users.tests.factories import CompanyFactory
from retainly.users.tests.factories import UserFactory


@pytest.fixture
def user(db) -> User:
    return UserFactory()


@pytest.fixture
def staff_user(db) -> User:
    return UserFactory(is_staff=True)


@pytest.fixture
def company(db):
    return CompanyFactory()


@pytest.fixture
def member(db, company) -> User:
    """A user with an active membership in ``company``."""
    return UserFactory(companies=[company])


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()
