"""
Calendar date arithmetic on ISO `YYYY-MM-DD` strings.

Adding months or years clamps the day to the last valid day
of the target month (Jan 31 + 1 month -> Feb 28/29). ISO
strings of this shape sort lexicographically in date order,
which the scheduler relies on.
"""

import calendar
import re
from datetime import date, datetime, timedelta

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_iso_date(value) -> bool:
    if not isinstance(value, str) or not ISO_DATE_RE.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def to_iso(value: date | datetime) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def add_days(iso: str, days: int) -> str:
    return (date.fromisoformat(iso) + timedelta(days=days)).isoformat()


def add_months(iso: str, months: int) -> str:
    current = date.fromisoformat(iso)
    index = current.year * 12 + (current.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(current.day, last_day)).isoformat()


def add_years(iso: str, years: int) -> str:
    current = date.fromisoformat(iso)
    year = current.year + years
    last_day = calendar.monthrange(year, current.month)[1]
    return date(year, current.month, min(current.day, last_day)).isoformat()


def next_from(frequency: str, current_iso: str) -> str:
    """Next occurrence after current_iso. Unknown frequencies are monthly."""
    if frequency == "weekly":
        return add_days(current_iso, 7)
    if frequency == "biweekly":
        return add_days(current_iso, 14)
    if frequency == "yearly":
        return add_years(current_iso, 1)
    return add_months(current_iso, 1)


def month_bounds(year: int, month: int) -> tuple[str, str]:
    """First and last ISO day of a month (month is 1-based)."""
    last_day = calendar.monthrange(year, month)[1]
    return (
        date(year, month, 1).isoformat(),
        date(year, month, last_day).isoformat(),
    )
