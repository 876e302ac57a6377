from datetime import timedelta
from decimal import Decimal

import factory
from django.utils import timezone
from factory.django import DjangoModelFactory

from retainly.subscriptions.constants import BillingInterval
from retainly.subscriptions.constants import SubscriptionStatus
from retainly.subscriptions.models import Subscription
from retainly.users.tests.factories import CompanyFactory


class SubscriptionFactory(DjangoModelFactory):
    class Meta:
        model = Subscription

    company = factory.SubFactory(CompanyFactory)
    customer_email = factory.Sequence(lambda n: f"customer{n}@example.com")
    status = SubscriptionStatus.ACTIVE
    interval = BillingInterval.MONTHLY
    plan_amount = Decimal("30.00")
    cycle_count = 0
    current_period_start = factory.LazyFunction(timezone.now)
    current_period_end = factory.LazyAttribute(
        lambda o: o.current_period_start + timedelta(days=30),
    )
    metadata = factory.LazyFunction(dict)
