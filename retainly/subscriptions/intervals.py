"""
Billing period arithmetic.

Months and years are calendar steps (python-dateutil relativedelta), so a
period starting on the 31st ends on the last day of a shorter month. Multiple
cycles are applied one step at a time: Jan 31 + 2 months is Mar 28, the same
date a subscriber billed twice would reach.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dateutil.relativedelta import relativedelta

from retainly.subscriptions.constants import BillingInterval

if TYPE_CHECKING:
    from datetime import datetime

INTERVAL_STEPS = {
    BillingInterval.DAILY: relativedelta(days=1),
    BillingInterval.WEEKLY: relativedelta(weeks=1),
    BillingInterval.BIWEEKLY: relativedelta(weeks=2),
    BillingInterval.MONTHLY: relativedelta(months=1),
    BillingInterval.QUARTERLY: relativedelta(months=3),
    BillingInterval.YEARLY: relativedelta(years=1),
}


def add_cycles(start: datetime, interval: str | None, cycles: int = 1) -> datetime:
    """
    Advance ``start`` by ``cycles`` billing periods of ``interval``.

    An unknown or missing interval is treated as MONTHLY.
    """
    try:
        step = INTERVAL_STEPS[BillingInterval(interval)]
    except ValueError:
        step = INTERVAL_STEPS[BillingInterval.MONTHLY]

    result = start
    for _ in range(cycles):
        result = result + step
    return result
