"""Billing cycle date arithmetic - which invoice a purchase belongs to, and when it closes and is due"""

from datetime import date
from typing import Optional, Tuple

from invoice_gateway.domain.models import BillingCycleRule
from invoice_gateway.utils.date_utils import add_months, clamp_day, first_of_month


def reference_month_for(
    purchase_date: date,
    closing_day: Optional[int] = None,
    rule: BillingCycleRule = BillingCycleRule.NEXT_CALENDAR_MONTH,
) -> date:
    """
    Return the reference month (first day of the month) of the invoice a purchase is charged to.

    Rules:
    - NEXT_CALENDAR_MONTH (default): purchases made in month M are billed on the
      invoice of month M+1, whatever the closing day. closing_day is ignored.
    - CLOSING_DAY_AWARE: a purchase on or before the closing date of its own month
      belongs to that month's invoice; after it, to the next month's.

    Example:
        reference_month_for(date(2025, 12, 15)) -> date(2026, 1, 1)
    """
    purchase_month = first_of_month(purchase_date)

    if rule == BillingCycleRule.CLOSING_DAY_AWARE and closing_day is not None:
        closing_date = clamp_day(purchase_date.year, purchase_date.month, closing_day)
        if purchase_date <= closing_date:
            return purchase_month

    return add_months(purchase_month, 1)


def closing_and_due_dates_for(reference_month: date, closing_day: int, due_day: int) -> Tuple[date, date]:
    """
    Closing date falls inside the reference month, due date inside the month after.

    Days past the end of the month clamp to its last day:
        (2025-02, closing_day=31, due_day=10) -> (2025-02-28, 2025-03-10)
    """
    closing_date = clamp_day(reference_month.year, reference_month.month, closing_day)

    due_month = add_months(first_of_month(reference_month), 1)
    due_date = clamp_day(due_month.year, due_month.month, due_day)

    return closing_date, due_date
