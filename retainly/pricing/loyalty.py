"""
Loyalty tier resolution.

A plan's tiers are ordered by ``after_rebills``. The current tier is the
highest one whose threshold the subscription's rebill count has reached.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class LoyaltyTierInfo:
    tier: int | None
    discount_pct: Decimal
    next_tier_at: int | None = None
    next_tier_discount: Decimal | None = None


NO_TIER = LoyaltyTierInfo(tier=None, discount_pct=Decimal("0"))


def _pct(value) -> Decimal:
    return Decimal(str(value))


def resolve_loyalty_tier(tiers: list[dict] | None, cycle_count: int) -> LoyaltyTierInfo:
    """
    Return the tier earned after ``cycle_count`` rebills, plus the next one.

        >>> tiers = [{"after_rebills": 3, "discount_pct": 5},
        ...          {"after_rebills": 6, "discount_pct": 10}]
        >>> resolve_loyalty_tier(tiers, 6).tier
        1
    """
    if not tiers:
        return NO_TIER

    current = None
    for index in range(len(tiers) - 1, -1, -1):
        if tiers[index]["after_rebills"] <= cycle_count:
            current = index
            break

    next_index = 0 if current is None else current + 1
    if next_index < len(tiers):
        next_tier_at = tiers[next_index]["after_rebills"]
        next_tier_discount = _pct(tiers[next_index]["discount_pct"])
    else:
        next_tier_at = None
        next_tier_discount = None

    return LoyaltyTierInfo(
        tier=current,
        discount_pct=_pct(tiers[current]["discount_pct"]) if current is not None else Decimal("0"),
        next_tier_at=next_tier_at,
        next_tier_discount=next_tier_discount,
    )
