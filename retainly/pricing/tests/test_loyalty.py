from decimal import Decimal

from retainly.pricing.loyalty import resolve_loyalty_tier

TIERS = [
    {"after_rebills": 3, "discount_pct": 5},
    {"after_rebills": 6, "discount_pct": 10},
    {"after_rebills": 12, "discount_pct": 20},
]


def test_middle_tier():
    info = resolve_loyalty_tier(TIERS, 6)

    assert info.tier == 1
    assert info.discount_pct == Decimal("10")
    assert info.next_tier_at == 12
    assert info.next_tier_discount == Decimal("20")


def test_below_first_threshold():
    info = resolve_loyalty_tier(TIERS, 2)

    assert info.tier is None
    assert info.discount_pct == Decimal("0")
    assert info.next_tier_at == 3
    assert info.next_tier_discount == Decimal("5")


def test_top_tier_has_no_next():
    info = resolve_loyalty_tier(TIERS, 40)

    assert info.tier == 2
    assert info.next_tier_at is None
    assert info.next_tier_discount is None


def test_exact_threshold_counts():
    assert resolve_loyalty_tier(TIERS, 3).tier == 0


def test_no_tiers():
    info = resolve_loyalty_tier([], 10)

    assert info.tier is None
    assert info.next_tier_at is None


def test_fractional_discount():
    info = resolve_loyalty_tier([{"after_rebills": 0, "discount_pct": 7.5}], 0)

    assert info.discount_pct == Decimal("7.5")
