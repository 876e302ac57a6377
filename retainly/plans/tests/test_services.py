"""
Tests for the plan registry service.

These tests cover:
- Scope ownership validation on create
- Per-scope name uniqueness (soft-deleted plans release their name)
- Partial updates: absent fields untouched, explicit null clears
- Loyalty tier validation
- Publish / archive lifecycle rules
- Duplication
- Soft delete guarded by product assignments
- Listing, filtering and stats
"""

from decimal import Decimal

import pytest

from retainly.core.events import RecordingEventSink
from retainly.core.exceptions import BadRequestError
from retainly.core.exceptions import ConflictError
from retainly.core.exceptions import NotFoundError
from retainly.plans.constants import PlanScope
from retainly.plans.constants import PlanStatus
from retainly.plans.models import SubscriptionPlan
from retainly.plans.services import PlanFilters
from retainly.plans.services import PlanService
from retainly.plans.tests.factories import ActivePlanFactory
from retainly.plans.tests.factories import ProductSubscriptionPlanFactory
from retainly.plans.tests.factories import SubscriptionPlanFactory
from retainly.users.tests.factories import ClientFactory
from retainly.users.tests.factories import CompanyFactory


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def service(events):
    return PlanService(events=events)


def company_plan_data(company, **overrides):
    data = {
        "scope": PlanScope.COMPANY,
        "company_id": company.pk,
        "name": "Gold",
        "base_price_monthly": "49.00",
    }
    data.update(overrides)
    return data


@pytest.mark.django_db
class TestCreate:
    def test_creates_draft_plan(self, service, events):
        company = CompanyFactory()

        plan = service.create(company_plan_data(company))

        assert plan.status == PlanStatus.DRAFT
        assert plan.company_id == company.pk
        assert plan.organization_id is None
        assert plan.display_name == "Gold"
        assert plan.base_price_monthly == Decimal("49.00")
        assert plan.currency == "USD"
        assert events.names() == ["subscription-plan.created"]

    def test_missing_owner_is_rejected(self, service):
        with pytest.raises(BadRequestError, match="company_id is required"):
            service.create(
                {"scope": PlanScope.COMPANY, "name": "Gold", "base_price_monthly": "1"},
            )

    def test_extra_owner_is_rejected(self, service):
        company = CompanyFactory()

        with pytest.raises(BadRequestError, match="Only company_id"):
            service.create(
                company_plan_data(company, client_id=company.client_id),
            )

    def test_client_scope_plan(self, service):
        client = ClientFactory()

        plan = service.create(
            {
                "scope": PlanScope.CLIENT,
                "client_id": client.pk,
                "name": "Client Gold",
                "base_price_monthly": "10.00",
            },
        )

        assert plan.owner_id == client.pk

    def test_duplicate_name_in_same_company_is_rejected(self, service):
        company = CompanyFactory()
        service.create(company_plan_data(company))

        with pytest.raises(ConflictError, match='"Gold" already exists'):
            service.create(company_plan_data(company))

    def test_same_name_allowed_in_another_company(self, service):
        first = CompanyFactory()
        second = CompanyFactory()
        service.create(company_plan_data(first))

        plan = service.create(company_plan_data(second))

        assert plan.company_id == second.pk

    def test_deleted_plan_releases_its_name(self, service):
        company = CompanyFactory()
        plan = service.create(company_plan_data(company))
        service.delete(plan.pk)

        replacement = service.create(company_plan_data(company))

        assert replacement.pk != plan.pk

    def test_loyalty_tiers_must_ascend(self, service):
        company = CompanyFactory()
        tiers = [
            {"after_rebills": 6, "discount_pct": 10},
            {"after_rebills": 3, "discount_pct": 5},
        ]

        with pytest.raises(BadRequestError, match="strictly ascending"):
            service.create(company_plan_data(company, loyalty_tiers=tiers))

    def test_loyalty_discount_out_of_bounds(self, service):
        company = CompanyFactory()
        tiers = [{"after_rebills": 3, "discount_pct": 150}]

        with pytest.raises(BadRequestError, match="between 0 and 100"):
            service.create(company_plan_data(company, loyalty_tiers=tiers))

    def test_invalid_choice_is_rejected(self, service):
        company = CompanyFactory()

        with pytest.raises(BadRequestError, match="default_interval"):
            service.create(company_plan_data(company, default_interval="HOURLY"))


@pytest.mark.django_db
class TestUpdate:
    def test_only_supplied_fields_change(self, service):
        plan = SubscriptionPlanFactory(
            description="Original",
            base_price_monthly=Decimal("30.00"),
        )

        updated = service.update(plan.pk, {"base_price_monthly": "35.50"})

        assert updated.base_price_monthly == Decimal("35.50")
        assert updated.description == "Original"

    def test_explicit_null_clears_nullable_field(self, service):
        plan = SubscriptionPlanFactory(trial_days=14)

        updated = service.update(plan.pk, {"trial_days": None})

        assert updated.trial_days is None

    def test_null_on_required_field_is_rejected(self, service):
        plan = SubscriptionPlanFactory()

        with pytest.raises(BadRequestError, match="cannot be null"):
            service.update(plan.pk, {"base_price_monthly": None})

    def test_status_is_not_updatable(self, service):
        plan = SubscriptionPlanFactory()

        with pytest.raises(BadRequestError, match="status"):
            service.update(plan.pk, {"status": PlanStatus.ACTIVE})

    def test_rename_checks_uniqueness(self, service):
        plan = SubscriptionPlanFactory(name="Silver")
        SubscriptionPlanFactory(name="Gold", company=plan.company)

        with pytest.raises(ConflictError):
            service.update(plan.pk, {"name": "Gold"})

    def test_keeping_same_name_is_allowed(self, service):
        plan = SubscriptionPlanFactory(name="Silver")

        updated = service.update(plan.pk, {"name": "Silver", "sort_order": 4})

        assert updated.sort_order == 4

    def test_plan_cannot_be_its_own_downsell(self, service):
        plan = SubscriptionPlanFactory()

        with pytest.raises(BadRequestError, match="own downsell"):
            service.update(plan.pk, {"downsell_plan_id": plan.pk})

    def test_downsell_plan_is_set(self, service):
        plan = SubscriptionPlanFactory()
        cheaper = SubscriptionPlanFactory(company=plan.company)

        updated = service.update(plan.pk, {"downsell_plan_id": cheaper.pk})

        assert updated.downsell_plan_id == cheaper.pk

    def test_missing_plan(self, service):
        with pytest.raises(NotFoundError):
            service.update(999999, {"name": "Nope"})


@pytest.mark.django_db
class TestLifecycle:
    def test_publish_draft(self, service, events):
        plan = SubscriptionPlanFactory()

        published = service.publish(plan.pk)

        assert published.status == PlanStatus.ACTIVE
        assert published.published_at is not None
        assert "subscription-plan.published" in events.names()

    def test_publish_requires_draft(self, service):
        plan = ActivePlanFactory()

        with pytest.raises(BadRequestError, match="Only draft plans"):
            service.publish(plan.pk)

    def test_archive_active_plan(self, service):
        plan = ActivePlanFactory()

        archived = service.archive(plan.pk)

        assert archived.status == PlanStatus.ARCHIVED
        assert archived.archived_at is not None

    def test_archive_twice_conflicts(self, service):
        plan = ActivePlanFactory()
        service.archive(plan.pk)

        with pytest.raises(ConflictError, match="already archived"):
            service.archive(plan.pk)

    def test_archived_plan_cannot_be_published(self, service):
        plan = SubscriptionPlanFactory(status=PlanStatus.ARCHIVED)

        with pytest.raises(BadRequestError):
            service.publish(plan.pk)


@pytest.mark.django_db
class TestDuplicate:
    def test_copy_is_draft_with_suffix(self, service, events):
        source = ActivePlanFactory(
            display_name="Gold Box",
            loyalty_enabled=True,
            loyalty_tiers=[{"after_rebills": 3, "discount_pct": 5}],
        )

        copy = service.duplicate(source.pk, "Gold v2")

        assert copy.pk != source.pk
        assert copy.name == "Gold v2"
        assert copy.display_name == "Gold Box (Copy)"
        assert copy.status == PlanStatus.DRAFT
        assert copy.published_at is None
        assert copy.company_id == source.company_id
        assert copy.loyalty_tiers == source.loyalty_tiers
        payload = events.payloads("subscription-plan.duplicated")[0]
        assert payload["source_plan_id"] == source.pk

    def test_copy_name_must_be_free(self, service):
        source = SubscriptionPlanFactory(name="Gold")

        with pytest.raises(ConflictError):
            service.duplicate(source.pk, "Gold")


@pytest.mark.django_db
class TestDelete:
    def test_delete_blocked_by_assignments(self, service):
        assignment = ProductSubscriptionPlanFactory()

        with pytest.raises(ConflictError, match="attached to 1 products"):
            service.delete(assignment.plan_id)

        assert SubscriptionPlan.objects.filter(pk=assignment.plan_id).exists()

    def test_soft_delete(self, service, events):
        plan = SubscriptionPlanFactory()

        service.delete(plan.pk)

        assert not SubscriptionPlan.objects.filter(pk=plan.pk).exists()
        assert SubscriptionPlan.all_objects.get(pk=plan.pk).deleted_at is not None
        assert events.names() == ["subscription-plan.deleted"]

    def test_deleted_plan_is_not_found(self, service):
        plan = SubscriptionPlanFactory()
        service.delete(plan.pk)

        with pytest.raises(NotFoundError):
            service.get_plan(plan.pk)


@pytest.mark.django_db
class TestListAndStats:
    def test_list_excludes_archived_by_default(self, service):
        company = CompanyFactory()
        SubscriptionPlanFactory(company=company, name="a")
        SubscriptionPlanFactory(company=company, name="b", status=PlanStatus.ARCHIVED)

        page = service.list_plans(PlanFilters(company_id=company.pk))

        assert [plan.name for plan in page.items] == ["a"]
        assert page.total == 1

    def test_list_include_archived_and_search(self, service):
        company = CompanyFactory()
        SubscriptionPlanFactory(company=company, name="coffee-monthly")
        SubscriptionPlanFactory(
            company=company,
            name="coffee-archived",
            status=PlanStatus.ARCHIVED,
        )
        SubscriptionPlanFactory(company=company, name="tea")

        page = service.list_plans(
            PlanFilters(company_id=company.pk, search="COFFEE", include_archived=True),
        )

        assert {plan.name for plan in page.items} == {
            "coffee-monthly",
            "coffee-archived",
        }

    def test_list_pagination(self, service):
        company = CompanyFactory()
        for index in range(5):
            SubscriptionPlanFactory(company=company, sort_order=index)

        page = service.list_plans(PlanFilters(company_id=company.pk, limit=2, offset=2))

        assert page.total == 5
        assert [plan.sort_order for plan in page.items] == [2, 3]

    def test_get_plan_reports_assignment_count(self, service):
        assignment = ProductSubscriptionPlanFactory()

        plan = service.get_plan(assignment.plan_id)

        assert plan.product_plans_count == 1

    def test_stats(self, service):
        company = CompanyFactory()
        SubscriptionPlanFactory(company=company)
        active = ActivePlanFactory(company=company)
        SubscriptionPlanFactory(company=company, status=PlanStatus.ARCHIVED)
        ProductSubscriptionPlanFactory(plan=active, product__company=company)

        stats = service.get_stats(PlanScope.COMPANY, company.pk)

        assert stats.total == 3
        assert stats.active == 1
        assert stats.draft == 1
        assert stats.archived == 1
        assert stats.by_scope[PlanScope.COMPANY] == 3
        assert stats.by_scope[PlanScope.ORGANIZATION] == 0
        assert stats.total_product_assignments == 1
