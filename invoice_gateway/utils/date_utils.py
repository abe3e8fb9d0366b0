"""Date manipulation utilities"""

from calendar import monthrange
from datetime import date

from dateutil.relativedelta import relativedelta


def last_day_of_month(year: int, month: int) -> int:
    return monthrange(year, month)[1]


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date in the given month, clamping day into 1..last day of month"""
    safe_day = max(1, min(day, last_day_of_month(year, month)))
    return date(year, month, safe_day)


def first_of_month(value: date) -> date:
    return value.replace(day=1)


def add_months(from_date: date, months: int) -> date:
    """Calendar month arithmetic; Jan 31 + 1 month = last day of February"""
    return from_date + relativedelta(months=months)


def format_reference_month(reference_month: date) -> str:
    """date(2025, 2, 1) -> "2025-02" """
    return f"{reference_month.year:04d}-{reference_month.month:02d}"


def parse_reference_month(value: str) -> date:
    """Parse "YYYY-MM" (or a full ISO date) into the first day of that month"""
    parts = value.strip()[:7].split("-")
    if len(parts) != 2:
        raise ValueError(f"Invalid reference month: {value!r}")
    return date(int(parts[0]), int(parts[1]), 1)
