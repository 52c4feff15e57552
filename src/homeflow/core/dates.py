"""Calendar-date helpers.

All arithmetic here works on ``datetime.date`` values only. Times and
timezones are dropped before any offset is applied, so a plan generated late
in the evening never slips onto the next day.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta


def as_date(value: date | datetime) -> date:
    """Truncate a datetime to its calendar date; dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def add_days(value: date | datetime, days: int) -> date:
    """Add a (possibly negative) number of calendar days."""
    return as_date(value) + timedelta(days=days)


def format_date(value: date | datetime) -> str:
    """Serialize as YYYY-MM-DD with no time component."""
    return as_date(value).isoformat()


def parse_date(value: str | date | datetime) -> date:
    """Parse a YYYY-MM-DD string (or pass a date through)."""
    if isinstance(value, (date, datetime)):
        return as_date(value)
    return date.fromisoformat(value.strip()[:10])


def today() -> date:
    return date.today()
