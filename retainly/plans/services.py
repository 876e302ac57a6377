"""
Plan registry: create, edit and retire subscription plan templates.

Key rules:
- Exactly one owner id is set and it matches ``scope``. Checked on create;
  ownership never changes afterwards.
- Names are unique per owner among non-deleted plans.
- Updates write only the fields the caller supplied. An explicit None
  clears a nullable field. ``status`` is not updatable; lifecycle changes
  go through publish() and archive().
- Delete is soft and refused while any product still offers the plan.

Usage:
    service = PlanService()
    plan = service.create({"scope": "COMPANY", "company_id": 7, ...})
    service.publish(plan.pk)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from typing import TYPE_CHECKING
from typing import Any

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db import transaction
from django.db.models import Count
from django.db.models import Q
from django.utils import timezone

from retainly.core.events import EventSink
from retainly.core.events import SignalEventSink
from retainly.core.exceptions import BadRequestError
from retainly.core.exceptions import ConflictError
from retainly.core.exceptions import NotFoundError
from retainly.plans.constants import DEFAULT_PLAN_LIST_LIMIT
from retainly.plans.constants import DUPLICATE_DISPLAY_SUFFIX
from retainly.plans.constants import PlanScope
from retainly.plans.constants import PlanStatus
from retainly.plans.models import SCOPE_OWNER_FIELDS
from retainly.plans.models import ProductSubscriptionPlan
from retainly.plans.models import SubscriptionPlan
from retainly.plans.resolution import plans_available_for_company

if TYPE_CHECKING:
    from retainly.users.models import User

logger = logging.getLogger(__name__)

# Fields a caller may set on create and update. Ownership, status and
# audit columns are managed by the service.
PLAN_CONFIG_FIELDS = (
    "name",
    "display_name",
    "description",
    "short_description",
    "base_price_monthly",
    "base_price_annual",
    "annual_discount_pct",
    "currency",
    "available_intervals",
    "default_interval",
    "trial_enabled",
    "trial_days",
    "trial_includes_shipment",
    "trial_start_trigger",
    "trial_conversion_trigger",
    "trial_wait_for_delivery",
    "trial_extend_days_post_delivery",
    "trial_no_tracking_fallback_days",
    "trial_return_action",
    "trial_return_extend_days",
    "recurring_enabled",
    "recurring_interval_days",
    "recurring_includes_shipment",
    "recurring_trigger",
    "recurring_wait_for_delivery",
    "recurring_extend_days_post_delivery",
    "partial_shipment_action",
    "backorder_action",
    "shipping_cost_action",
    "grace_period_days",
    "pause_enabled",
    "pause_max_duration",
    "skip_enabled",
    "skip_max_per_year",
    "included_quantity",
    "max_quantity",
    "quantity_change_prorate",
    "loyalty_enabled",
    "loyalty_tiers",
    "loyalty_stackable",
    "price_lock_enabled",
    "price_lock_cycles",
    "early_renewal_enabled",
    "early_renewal_prorate",
    "downsell_plan_id",
    "winback_enabled",
    "winback_discount_pct",
    "winback_trial_days",
    "gifting_enabled",
    "gift_duration_default",
    "gift_fixed_cycles",
    "bundle_type",
    "bundle_min_products",
    "bundle_max_products",
    "notify_renewal_enabled",
    "notify_renewal_days_before",
    "sort_order",
    "is_public",
    "is_featured",
    "badge_text",
    "features",
    "metadata",
)

# Never copied by duplicate()
DUPLICATE_SKIP_FIELDS = frozenset(
    {
        "id",
        "created",
        "modified",
        "status",
        "published_at",
        "archived_at",
        "deleted_at",
        "deleted_by",
        "created_by",
        "updated_by",
    },
)


class PlanRegistryError(BadRequestError):
    """Raised when plan input is structurally invalid."""


@dataclass
class PlanFilters:
    """Filters for list_plans(). Unset fields do not filter."""

    scope: str | None = None
    organization_id: int | None = None
    client_id: int | None = None
    company_id: int | None = None
    status: str | None = None
    is_public: bool | None = None
    search: str | None = None
    include_archived: bool = False
    limit: int = DEFAULT_PLAN_LIST_LIMIT
    offset: int = 0


@dataclass
class PlanPage:
    items: list[SubscriptionPlan]
    total: int
    limit: int
    offset: int


@dataclass
class PlanStats:
    total: int = 0
    active: int = 0
    draft: int = 0
    archived: int = 0
    by_scope: dict[str, int] = field(default_factory=dict)
    total_product_assignments: int = 0


def validate_scope_ownership(
    scope: str,
    organization_id: int | None,
    client_id: int | None,
    company_id: int | None,
) -> None:
    """
    Check that exactly the owner id matching ``scope`` is set.

    Raises BadRequestError naming the offending id otherwise.
    """
    owners = {
        PlanScope.ORGANIZATION: ("organization_id", organization_id),
        PlanScope.CLIENT: ("client_id", client_id),
        PlanScope.COMPANY: ("company_id", company_id),
    }
    if scope not in owners:
        raise PlanRegistryError(f"Unknown plan scope: {scope}")

    label, owner_id = owners[PlanScope(scope)]
    if owner_id is None:
        raise PlanRegistryError(f"{label} is required for {scope} scope")

    others = [value for key, (_, value) in owners.items() if key != scope]
    if any(value is not None for value in others):
        raise PlanRegistryError(f"Only {label} should be set for {scope} scope")


def validate_loyalty_tiers(tiers: Any) -> list[dict] | None:
    """
    Normalize loyalty tiers to ``[{"after_rebills": int, "discount_pct": n}]``.

    Thresholds must be non-negative integers in strictly ascending order and
    discounts must lie in 0..100.
    """
    if tiers is None:
        return None
    if not isinstance(tiers, list):
        raise PlanRegistryError("loyalty_tiers must be a list")

    normalized = []
    previous = None
    for index, tier in enumerate(tiers):
        if not isinstance(tier, dict):
            raise PlanRegistryError(f"Loyalty tier {index} must be an object")
        after_rebills = tier.get("after_rebills")
        discount_pct = tier.get("discount_pct")
        if (
            isinstance(after_rebills, bool)
            or not isinstance(after_rebills, int)
            or after_rebills < 0
        ):
            raise PlanRegistryError(
                f"Loyalty tier {index}: after_rebills must be a non-negative integer",
            )
        if (
            isinstance(discount_pct, bool)
            or not isinstance(discount_pct, int | float)
            or not 0 <= discount_pct <= 100  # noqa: PLR2004
        ):
            raise PlanRegistryError(
                f"Loyalty tier {index}: discount_pct must be between 0 and 100",
            )
        if previous is not None and after_rebills <= previous:
            raise PlanRegistryError(
                "Loyalty tiers must be strictly ascending by after_rebills",
            )
        previous = after_rebills
        normalized.append({"after_rebills": after_rebills, "discount_pct": discount_pct})
    return normalized


class PlanService:
    """
    Registry of subscription plan templates.

    Collaborators are passed in so tests can observe them:

        events = RecordingEventSink()
        service = PlanService(events=events)
    """

    def __init__(self, events: EventSink | None = None):
        self.events = events or SignalEventSink()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_plan(self, plan_id: int) -> SubscriptionPlan:
        plan = (
            SubscriptionPlan.objects.select_related("downsell_plan")
            .annotate(product_plans_count=Count("product_plans"))
            .filter(pk=plan_id)
            .first()
        )
        if plan is None:
            raise NotFoundError(f"Subscription plan {plan_id} not found")
        return plan

    def list_plans(self, filters: PlanFilters | None = None) -> PlanPage:
        filters = filters or PlanFilters()
        queryset = SubscriptionPlan.objects.annotate(
            product_plans_count=Count("product_plans"),
        )

        if filters.scope:
            queryset = queryset.filter(scope=filters.scope)
        if filters.organization_id is not None:
            queryset = queryset.filter(organization_id=filters.organization_id)
        if filters.client_id is not None:
            queryset = queryset.filter(client_id=filters.client_id)
        if filters.company_id is not None:
            queryset = queryset.filter(company_id=filters.company_id)
        if filters.status:
            queryset = queryset.filter(status=filters.status)
        elif not filters.include_archived:
            queryset = queryset.exclude(status=PlanStatus.ARCHIVED)
        if filters.is_public is not None:
            queryset = queryset.filter(is_public=filters.is_public)
        if filters.search:
            queryset = queryset.filter(
                Q(name__icontains=filters.search)
                | Q(display_name__icontains=filters.search)
                | Q(description__icontains=filters.search),
            )

        queryset = queryset.order_by("sort_order", "name")
        total = queryset.count()
        items = list(queryset[filters.offset : filters.offset + filters.limit])
        return PlanPage(
            items=items,
            total=total,
            limit=filters.limit,
            offset=filters.offset,
        )

    def find_available_for_company(self, company_id: int) -> list[SubscriptionPlan]:
        return list(plans_available_for_company(company_id))

    def get_stats(
        self,
        scope: str | None = None,
        scope_id: int | None = None,
    ) -> PlanStats:
        queryset = SubscriptionPlan.objects.all()
        if scope:
            queryset = queryset.filter(scope=scope)
            if scope_id is not None:
                queryset = queryset.in_scope(scope, scope_id)

        stats = PlanStats(by_scope={value: 0 for value in PlanScope.values})
        for row in queryset.order_by().values("status", "scope").annotate(
            count=Count("id"),
        ):
            stats.total += row["count"]
            stats.by_scope[row["scope"]] += row["count"]
            if row["status"] == PlanStatus.ACTIVE:
                stats.active += row["count"]
            elif row["status"] == PlanStatus.DRAFT:
                stats.draft += row["count"]
            elif row["status"] == PlanStatus.ARCHIVED:
                stats.archived += row["count"]

        stats.total_product_assignments = ProductSubscriptionPlan.objects.filter(
            plan__in=queryset,
        ).count()
        return stats

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: dict[str, Any], *, user: User | None = None) -> SubscriptionPlan:
        scope = data.get("scope")
        organization_id = data.get("organization_id")
        client_id = data.get("client_id")
        company_id = data.get("company_id")
        validate_scope_ownership(scope, organization_id, client_id, company_id)

        name = data.get("name")
        if not name:
            raise PlanRegistryError("name is required")
        owner_id = {
            PlanScope.ORGANIZATION: organization_id,
            PlanScope.CLIENT: client_id,
            PlanScope.COMPANY: company_id,
        }[PlanScope(scope)]
        self._ensure_name_available(scope, owner_id, name)

        plan = SubscriptionPlan(
            scope=scope,
            organization_id=organization_id,
            client_id=client_id,
            company_id=company_id,
            currency=settings.RETAINLY_DEFAULT_CURRENCY,
            status=PlanStatus.DRAFT,
            created_by=user,
            updated_by=user,
        )
        config = {key: value for key, value in data.items() if key in PLAN_CONFIG_FIELDS}
        config.setdefault("display_name", name)
        self._assign(plan, config)
        plan.save()

        logger.info(
            "Created subscription plan %s (%s) in %s scope",
            plan.pk,
            plan.name,
            plan.scope,
        )
        self._emit("subscription-plan.created", plan)
        return plan

    @transaction.atomic
    def update(
        self,
        plan_id: int,
        patch: dict[str, Any],
        *,
        user: User | None = None,
    ) -> SubscriptionPlan:
        plan = self._get_for_update(plan_id)

        unknown = set(patch) - set(PLAN_CONFIG_FIELDS)
        if unknown:
            raise PlanRegistryError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
            )

        new_name = patch.get("name")
        if "name" in patch and new_name != plan.name:
            if not new_name:
                raise PlanRegistryError("name cannot be empty")
            self._ensure_name_available(plan.scope, plan.owner_id, new_name, exclude=plan.pk)

        self._assign(plan, patch)
        plan.updated_by = user
        plan.save()

        logger.info(
            "Updated subscription plan %s (fields: %s)",
            plan.pk,
            ", ".join(sorted(patch)),
        )
        self._emit("subscription-plan.updated", plan, fields=sorted(patch))
        return plan

    @transaction.atomic
    def publish(self, plan_id: int, *, user: User | None = None) -> SubscriptionPlan:
        plan = self._get_for_update(plan_id)
        if plan.status != PlanStatus.DRAFT:
            raise BadRequestError("Only draft plans can be published")

        plan.status = PlanStatus.ACTIVE
        plan.published_at = timezone.now()
        plan.updated_by = user
        plan.save(update_fields=["status", "published_at", "updated_by", "modified"])

        logger.info("Published subscription plan %s", plan.pk)
        self._emit("subscription-plan.published", plan)
        return plan

    @transaction.atomic
    def archive(self, plan_id: int, *, user: User | None = None) -> SubscriptionPlan:
        plan = self._get_for_update(plan_id)
        if plan.status == PlanStatus.ARCHIVED:
            raise ConflictError("Plan is already archived")

        plan.status = PlanStatus.ARCHIVED
        plan.archived_at = timezone.now()
        plan.updated_by = user
        plan.save(update_fields=["status", "archived_at", "updated_by", "modified"])

        logger.info("Archived subscription plan %s", plan.pk)
        self._emit("subscription-plan.archived", plan)
        return plan

    @transaction.atomic
    def duplicate(
        self,
        plan_id: int,
        new_name: str,
        *,
        user: User | None = None,
    ) -> SubscriptionPlan:
        source = self._get(plan_id)
        if not new_name:
            raise PlanRegistryError("name is required")
        self._ensure_name_available(source.scope, source.owner_id, new_name)

        copy = SubscriptionPlan()
        for model_field in SubscriptionPlan._meta.concrete_fields:  # noqa: SLF001
            if model_field.name in DUPLICATE_SKIP_FIELDS:
                continue
            setattr(copy, model_field.attname, getattr(source, model_field.attname))

        copy.name = new_name
        copy.display_name = f"{source.display_name}{DUPLICATE_DISPLAY_SUFFIX}"
        copy.status = PlanStatus.DRAFT
        copy.created_by = user
        copy.updated_by = user
        copy.save()

        logger.info("Duplicated subscription plan %s as %s", source.pk, copy.pk)
        self._emit("subscription-plan.duplicated", copy, source_plan_id=source.pk)
        return copy

    @transaction.atomic
    def delete(self, plan_id: int, *, user: User | None = None) -> SubscriptionPlan:
        plan = self._get_for_update(plan_id)

        attached = plan.product_plans.count()
        if attached:
            raise ConflictError(
                f"Cannot delete plan that is attached to {attached} products. "
                "Remove product assignments first.",
            )

        plan.deleted_at = timezone.now()
        plan.deleted_by = user
        plan.save(update_fields=["deleted_at", "deleted_by", "modified"])

        logger.info("Soft-deleted subscription plan %s", plan.pk)
        self._emit("subscription-plan.deleted", plan)
        return plan

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get(self, plan_id: int) -> SubscriptionPlan:
        plan = SubscriptionPlan.objects.filter(pk=plan_id).first()
        if plan is None:
            raise NotFoundError(f"Subscription plan {plan_id} not found")
        return plan

    def _get_for_update(self, plan_id: int) -> SubscriptionPlan:
        plan = SubscriptionPlan.objects.select_for_update().filter(pk=plan_id).first()
        if plan is None:
            raise NotFoundError(f"Subscription plan {plan_id} not found")
        return plan

    def _ensure_name_available(
        self,
        scope: str,
        owner_id: int,
        name: str,
        exclude: int | None = None,
    ) -> None:
        clashes = SubscriptionPlan.objects.in_scope(scope, owner_id).filter(name=name)
        if exclude is not None:
            clashes = clashes.exclude(pk=exclude)
        if clashes.exists():
            raise ConflictError(f'A plan named "{name}" already exists in this scope')

    def _assign(self, plan: SubscriptionPlan, values: dict[str, Any]) -> None:
        """Coerce and set the given config fields on ``plan``."""
        for key, value in values.items():
            if key == "loyalty_tiers":
                plan.loyalty_tiers = validate_loyalty_tiers(value)
                continue
            if key == "downsell_plan_id":
                plan.downsell_plan_id = self._validate_downsell(plan, value)
                continue

            model_field = SubscriptionPlan._meta.get_field(key)  # noqa: SLF001
            if value is None and not model_field.null:
                raise PlanRegistryError(f"{key} cannot be null")
            if value is not None and model_field.choices and value not in dict(model_field.choices):
                raise PlanRegistryError(f"{key}: invalid choice {value!r}")
            if value is not None and not isinstance(model_field, models.JSONField):
                try:
                    value = model_field.to_python(value)
                except ValidationError as exc:
                    raise PlanRegistryError(f"{key}: {'; '.join(exc.messages)}") from exc
            setattr(plan, key, value)

    def _validate_downsell(self, plan: SubscriptionPlan, downsell_id) -> int | None:
        if downsell_id is None:
            return None
        if plan.pk is not None and int(downsell_id) == plan.pk:
            raise PlanRegistryError("A plan cannot be its own downsell plan")
        if not SubscriptionPlan.objects.filter(pk=downsell_id).exists():
            raise NotFoundError(f"Downsell plan {downsell_id} not found")
        return int(downsell_id)

    def _emit(self, name: str, plan: SubscriptionPlan, **extra) -> None:
        self.events.emit(
            name,
            {
                "plan_id": plan.pk,
                "scope": plan.scope,
                "owner_id": plan.owner_id,
                "name": plan.name,
                "status": plan.status,
                **extra,
            },
        )

