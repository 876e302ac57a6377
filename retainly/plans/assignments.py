"""
Product-plan assignments.

Attaches ACTIVE plans to catalog products with optional per-product price
and trial overrides. A product has at most one default assignment: marking
one default unsets the flag on the product's other assignments inside the
same transaction.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import transaction

from retainly.core.events import EventSink
from retainly.core.events import SignalEventSink
from retainly.core.exceptions import BadRequestError
from retainly.core.exceptions import ConflictError
from retainly.core.exceptions import NotFoundError
from retainly.plans.constants import PlanStatus
from retainly.plans.models import ProductSubscriptionPlan
from retainly.plans.models import SubscriptionPlan

logger = logging.getLogger(__name__)

ASSIGNMENT_FIELDS = (
    "override_price_monthly",
    "override_price_annual",
    "override_trial_days",
    "is_default",
    "sort_order",
)


class ProductPlanService:
    def __init__(self, events: EventSink | None = None):
        self.events = events or SignalEventSink()

    def find_by_product(self, product_id: int) -> list[ProductSubscriptionPlan]:
        return list(
            ProductSubscriptionPlan.objects.filter(product_id=product_id)
            .select_related("plan")
            .order_by("-is_default", "sort_order"),
        )

    @transaction.atomic
    def attach_to_product(
        self,
        product_id: int,
        plan_id: int,
        options: dict[str, Any] | None = None,
    ) -> ProductSubscriptionPlan:
        from retainly.catalog.models import Product

        options = options or {}
        if not Product.objects.filter(pk=product_id).exists():
            raise NotFoundError(f"Product {product_id} not found")

        plan = SubscriptionPlan.objects.filter(pk=plan_id).first()
        if plan is None:
            raise NotFoundError(f"Subscription plan {plan_id} not found")
        if plan.status != PlanStatus.ACTIVE:
            raise BadRequestError("Can only attach active plans to products")

        if ProductSubscriptionPlan.objects.filter(
            product_id=product_id,
            plan_id=plan_id,
        ).exists():
            raise ConflictError("Plan is already attached to this product")

        values = {key: options[key] for key in ASSIGNMENT_FIELDS if key in options}
        if values.get("is_default"):
            self._clear_default(product_id)

        assignment = ProductSubscriptionPlan.objects.create(
            product_id=product_id,
            plan=plan,
            **values,
        )
        logger.info("Attached plan %s to product %s", plan_id, product_id)
        self._emit("product-plan.attached", assignment)
        return assignment

    @transaction.atomic
    def update_product_plan(
        self,
        product_id: int,
        plan_id: int,
        patch: dict[str, Any],
    ) -> ProductSubscriptionPlan:
        assignment = self._get_for_update(product_id, plan_id)

        unknown = set(patch) - set(ASSIGNMENT_FIELDS)
        if unknown:
            raise BadRequestError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
            )

        if patch.get("is_default"):
            self._clear_default(product_id, exclude=assignment.pk)
        for key, value in patch.items():
            if value is None and key in ("is_default", "sort_order"):
                raise BadRequestError(f"{key} cannot be null")
            setattr(assignment, key, value)
        assignment.save()

        logger.info("Updated plan %s on product %s", plan_id, product_id)
        self._emit("product-plan.updated", assignment)
        return assignment

    @transaction.atomic
    def detach_from_product(self, product_id: int, plan_id: int) -> None:
        assignment = self._get_for_update(product_id, plan_id)
        payload = self._payload(assignment)
        assignment.delete()
        logger.info("Detached plan %s from product %s", plan_id, product_id)
        self.events.emit("product-plan.detached", payload)

    def _get_for_update(self, product_id: int, plan_id: int) -> ProductSubscriptionPlan:
        assignment = (
            ProductSubscriptionPlan.objects.select_for_update()
            .filter(product_id=product_id, plan_id=plan_id)
            .first()
        )
        if assignment is None:
            raise NotFoundError(
                f"Plan {plan_id} is not attached to product {product_id}",
            )
        return assignment

    def _clear_default(self, product_id: int, exclude: int | None = None) -> None:
        others = ProductSubscriptionPlan.objects.filter(
            product_id=product_id,
            is_default=True,
        )
        if exclude is not None:
            others = others.exclude(pk=exclude)
        others.update(is_default=False)

    def _payload(self, assignment: ProductSubscriptionPlan) -> dict[str, Any]:
        return {
            "product_id": assignment.product_id,
            "plan_id": assignment.plan_id,
            "is_default": assignment.is_default,
        }

    def _emit(self, name: str, assignment: ProductSubscriptionPlan) -> None:
        self.events.emit(name, self._payload(assignment))
