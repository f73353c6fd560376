"""Calendar helpers shared by the recurring engine and the reports."""

import calendar
import re
from datetime import MAXYEAR, date, datetime

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def parse_month(month: str) -> date:
    """Return the first day of a ``YYYY-MM`` month.

    Raises:
        ValueError: If the string is not a valid month.
    """
    if not month or not MONTH_PATTERN.match(month):
        raise ValueError(f"Invalid month '{month}', expected YYYY-MM")
    start = datetime.strptime(month, "%Y-%m").date()
    # The month after must be representable too
    if start.year == MAXYEAR and start.month == 12:
        raise ValueError(f"Month '{month}' is out of range")
    return start


def format_month(d: date) -> str:
    return d.strftime("%Y-%m")


def month_range(month: str) -> tuple[date, date]:
    """Return the half-open range [first-of-month, first-of-next-month)."""
    start = parse_month(month)
    return start, add_months(start, 1)


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(d: date, n: int) -> date:
    """Add n months to d, clamping the day to the end of the target month."""
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    day = min(d.day, days_in_month(year, month))
    return d.replace(year=year, month=month, day=day)


def add_years(d: date, n: int) -> date:
    """Add n years to d; Feb 29 lands on Feb 28 in non-leap years."""
    return add_months(d, 12 * n)


def month_days(month: str) -> list[date]:
    """Every calendar day of a ``YYYY-MM`` month, in order."""
    start = parse_month(month)
    return [
        start.replace(day=day)
        for day in range(1, days_in_month(start.year, start.month) + 1)
    ]


def recent_months(reference: date, count: int) -> list[str]:
    """The ``count`` months ending with reference's month, oldest first."""
    first = reference.replace(day=1)
    return [format_month(add_months(first, -offset)) for offset in range(count - 1, -1, -1)]
