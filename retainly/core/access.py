"""
Company access resolution.

The engine only ever asks one question of the tenancy hierarchy: may this
user act on this company? Access is company-level. Membership in a sibling
company under the same client grants nothing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from retainly.users.models import User


class CompanyAccessResolver:
    def can_access_company(self, user: User, company_id: int | None) -> bool:
        if not user or not user.is_authenticated or company_id is None:
            return False
        if user.is_superuser:
            return True

        from retainly.users.models import CompanyMembership

        return CompanyMembership.objects.filter(
            user=user,
            company_id=company_id,
            is_active=True,
        ).exists()
