"""
Mixin and permission classes for company-scoped API viewsets.

Engine endpoints address companies in different ways (a ``company_id``
query parameter, a subscription id in the path, a plan's owning scope), so
views resolve the company themselves and call ``require_company_access``
before handing off to a service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.shortcuts import get_object_or_404
from rest_framework import permissions
from rest_framework.exceptions import PermissionDenied
from rest_framework.exceptions import ValidationError

from retainly.core.access import CompanyAccessResolver

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView

    from retainly.subscriptions.models import Subscription


class CompanyScopedMixin:
    """
    Helpers for viewsets whose resources belong to a company.

    Usage:
        class MyViewSet(CompanyScopedMixin, viewsets.ViewSet):
            def list(self, request):
                company_id = self.get_company_id()
                self.require_company_access(company_id)
                ...
    """

    access_resolver = CompanyAccessResolver()
    access_denied_message = "You do not have access to this company."

    def get_company_id(self) -> int:
        """
        Return the company id from the query string or request body.

        Raises a 400 when it is missing or not an integer.
        """
        raw = self.request.query_params.get("company_id")
        if raw is None and isinstance(self.request.data, dict):
            raw = self.request.data.get("company_id")
        if raw in (None, ""):
            raise ValidationError({"company_id": ["This field is required."]})
        try:
            return int(raw)
        except (TypeError, ValueError) as exc:
            raise ValidationError({"company_id": ["A valid integer is required."]}) from exc

    def require_company_access(self, company_id: int | None) -> None:
        if not self.access_resolver.can_access_company(self.request.user, company_id):
            raise PermissionDenied(self.access_denied_message)

    def get_subscription_for_user(self, subscription_id) -> Subscription:
        """
        Load a subscription and check the caller can act on its company.

        Raises Http404 if the subscription doesn't exist.
        """
        from retainly.subscriptions.models import Subscription

        subscription = get_object_or_404(Subscription, pk=subscription_id)
        self.require_company_access(subscription.company_id)
        return subscription


class CompanyAccessPermission(permissions.BasePermission):
    """
    Object permission for models that carry a ``company_id``.

    Superusers always pass. Objects without a company (organization or
    client scoped plans) require staff status.
    """

    message = "You do not have access to this company."

    def has_object_permission(self, request: Request, view: APIView, obj) -> bool:
        if request.user.is_authenticated and request.user.is_superuser:
            return True

        company_id = getattr(obj, "company_id", None)
        if company_id is None:
            return bool(request.user.is_authenticated and request.user.is_staff)

        return CompanyAccessResolver().can_access_company(request.user, company_id)
