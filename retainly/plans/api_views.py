"""
REST endpoints for subscription plans and product-plan assignments.

    /api/v1/subscription-plans/
    /api/v1/subscription-plans/<id>/
    /api/v1/subscription-plans/<id>/publish|archive|duplicate/
    /api/v1/subscription-plans/available/<company_id>/
    /api/v1/subscription-plans/product/<product_id>/
    /api/v1/subscription-plans/products/attach/
    /api/v1/subscription-plans/products/<product_id>/<plan_id>/

Company plans need access to their company. Client and organization plans
span several companies, so only staff may read or change them directly;
companies see them through the ``available`` endpoint.
"""

from __future__ import annotations

from http import HTTPStatus

from django.shortcuts import get_object_or_404
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from retainly.core.api.company_scoped import CompanyScopedMixin
from retainly.plans.assignments import ProductPlanService
from retainly.plans.constants import PlanScope
from retainly.plans.serializers import AttachProductPlanSerializer
from retainly.plans.serializers import DuplicatePlanSerializer
from retainly.plans.serializers import PlanListQuerySerializer
from retainly.plans.serializers import PlanStatsQuerySerializer
from retainly.plans.serializers import ProductPlanSerializer
from retainly.plans.serializers import ProductPlanUpdateSerializer
from retainly.plans.serializers import SubscriptionPlanCreateSerializer
from retainly.plans.serializers import SubscriptionPlanSerializer
from retainly.plans.serializers import SubscriptionPlanWriteSerializer
from retainly.plans.services import PlanFilters
from retainly.plans.services import PlanService

STAFF_ONLY_MESSAGE = "Only staff can manage organization and client plans."


class SubscriptionPlanViewSet(CompanyScopedMixin, viewsets.ViewSet):
    """Create, publish and retire plan templates, and attach them to products."""

    lookup_value_regex = r"\d+"
    plan_service_class = PlanService
    assignment_service_class = ProductPlanService

    def get_plan_service(self) -> PlanService:
        return self.plan_service_class()

    def get_assignment_service(self) -> ProductPlanService:
        return self.assignment_service_class()

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def is_staff(self) -> bool:
        user = self.request.user
        return bool(user.is_staff or user.is_superuser)

    def require_scope_access(self, scope: str, company_id: int | None) -> None:
        if scope == PlanScope.COMPANY:
            self.require_company_access(company_id)
        elif not self.is_staff():
            raise PermissionDenied(STAFF_ONLY_MESSAGE)

    def get_plan_for_user(self, pk):
        plan = self.get_plan_service().get_plan(int(pk))
        self.require_scope_access(plan.scope, plan.company_id)
        return plan

    def get_product_for_user(self, product_id):
        from retainly.catalog.models import Product

        product = get_object_or_404(Product, pk=product_id)
        self.require_company_access(product.company_id)
        return product

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def list(self, request):
        query = PlanListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        filters = PlanFilters(**query.validated_data)

        if not self.is_staff():
            if filters.company_id is None:
                raise ValidationError({"company_id": ["This field is required."]})
            self.require_company_access(filters.company_id)
            filters.scope = PlanScope.COMPANY

        page = self.get_plan_service().list_plans(filters)
        return Response(
            {
                "items": SubscriptionPlanSerializer(page.items, many=True).data,
                "total": page.total,
                "limit": page.limit,
                "offset": page.offset,
            },
        )

    def retrieve(self, request, pk=None):
        plan = self.get_plan_for_user(pk)
        return Response(SubscriptionPlanSerializer(plan).data)

    def create(self, request):
        serializer = SubscriptionPlanCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        self.require_scope_access(data["scope"], data.get("company_id"))

        plan = self.get_plan_service().create(dict(data), user=request.user)
        return Response(
            SubscriptionPlanSerializer(plan).data,
            status=HTTPStatus.CREATED,
        )

    def partial_update(self, request, pk=None):
        self.get_plan_for_user(pk)
        serializer = SubscriptionPlanWriteSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        plan = self.get_plan_service().update(
            int(pk),
            dict(serializer.validated_data),
            user=request.user,
        )
        return Response(SubscriptionPlanSerializer(plan).data)

    def destroy(self, request, pk=None):
        self.get_plan_for_user(pk)
        self.get_plan_service().delete(int(pk), user=request.user)
        return Response(status=HTTPStatus.NO_CONTENT)

    @action(detail=True, methods=["post"])
    def publish(self, request, pk=None):
        self.get_plan_for_user(pk)
        plan = self.get_plan_service().publish(int(pk), user=request.user)
        return Response(SubscriptionPlanSerializer(plan).data)

    @action(detail=True, methods=["post"])
    def archive(self, request, pk=None):
        self.get_plan_for_user(pk)
        plan = self.get_plan_service().archive(int(pk), user=request.user)
        return Response(SubscriptionPlanSerializer(plan).data)

    @action(detail=True, methods=["post"])
    def duplicate(self, request, pk=None):
        self.get_plan_for_user(pk)
        serializer = DuplicatePlanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        plan = self.get_plan_service().duplicate(
            int(pk),
            serializer.validated_data["name"],
            user=request.user,
        )
        return Response(
            SubscriptionPlanSerializer(plan).data,
            status=HTTPStatus.CREATED,
        )

    @action(detail=False, methods=["get"])
    def stats(self, request):
        if not self.is_staff():
            raise PermissionDenied(STAFF_ONLY_MESSAGE)
        query = PlanStatsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        stats = self.get_plan_service().get_stats(**query.validated_data)
        return Response(
            {
                "total": stats.total,
                "active": stats.active,
                "draft": stats.draft,
                "archived": stats.archived,
                "by_scope": stats.by_scope,
                "total_product_assignments": stats.total_product_assignments,
            },
        )

    @action(
        detail=False,
        methods=["get"],
        url_path=r"available/(?P<company_id>\d+)",
        url_name="available",
    )
    def available(self, request, company_id=None):
        """Active plans a company can sell, widest scope first."""
        self.require_company_access(int(company_id))
        plans = self.get_plan_service().find_available_for_company(int(company_id))
        return Response(SubscriptionPlanSerializer(plans, many=True).data)

    # ------------------------------------------------------------------
    # Product assignments
    # ------------------------------------------------------------------

    @action(
        detail=False,
        methods=["get"],
        url_path=r"product/(?P<product_id>\d+)",
        url_name="product",
    )
    def product(self, request, product_id=None):
        self.get_product_for_user(product_id)
        assignments = self.get_assignment_service().find_by_product(int(product_id))
        return Response(ProductPlanSerializer(assignments, many=True).data)

    @action(
        detail=False,
        methods=["post"],
        url_path="products/attach",
        url_name="attach",
    )
    def attach(self, request):
        serializer = AttachProductPlanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        options = dict(serializer.validated_data)
        product_id = options.pop("product_id")
        plan_id = options.pop("plan_id")

        self.get_product_for_user(product_id)
        self.get_plan_for_user(plan_id)
        assignment = self.get_assignment_service().attach_to_product(
            product_id,
            plan_id,
            options,
        )
        return Response(
            ProductPlanSerializer(assignment).data,
            status=HTTPStatus.CREATED,
        )

    @action(
        detail=False,
        methods=["patch", "delete"],
        url_path=r"products/(?P<product_id>\d+)/(?P<plan_id>\d+)",
        url_name="product-plan",
    )
    def product_plan(self, request, product_id=None, plan_id=None):
        self.get_product_for_user(product_id)
        service = self.get_assignment_service()

        if request.method == "DELETE":
            service.detach_from_product(int(product_id), int(plan_id))
            return Response(status=HTTPStatus.NO_CONTENT)

        serializer = ProductPlanUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        assignment = service.update_product_plan(
            int(product_id),
            int(plan_id),
            dict(serializer.validated_data),
        )
        return Response(ProductPlanSerializer(assignment).data)
