"""
Plan resolution: which plans can a company sell?

A company sees the union of ACTIVE, non-deleted plans owned by its
organization, its client and itself, widest scope first.
"""

from __future__ import annotations

from django.db.models import Case
from django.db.models import IntegerField
from django.db.models import Q
from django.db.models import QuerySet
from django.db.models import Value
from django.db.models import When

from retainly.core.exceptions import NotFoundError
from retainly.plans.constants import PlanScope
from retainly.plans.models import SubscriptionPlan

SCOPE_RANK = Case(
    *(
        When(scope=scope, then=Value(rank))
        for rank, scope in enumerate(PlanScope.values)
    ),
    output_field=IntegerField(),
)


def plans_available_for_company(company_id: int) -> QuerySet[SubscriptionPlan]:
    from retainly.users.models import Company

    company = Company.objects.select_related("client").filter(pk=company_id).first()
    if company is None:
        raise NotFoundError(f"Company {company_id} not found")

    visible = (
        Q(scope=PlanScope.ORGANIZATION, organization_id=company.client.organization_id)
        | Q(scope=PlanScope.CLIENT, client_id=company.client_id)
        | Q(scope=PlanScope.COMPANY, company_id=company.pk)
    )
    return (
        SubscriptionPlan.objects.active()
        .filter(visible)
        .annotate(scope_rank=SCOPE_RANK)
        .order_by("scope_rank", "sort_order", "name")
    )
