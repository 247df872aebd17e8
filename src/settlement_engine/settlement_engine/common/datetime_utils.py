from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional

from ..core.exceptions import InvalidArgument


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise InvalidArgument(f"Invalid date (YYYY-MM-DD): {value!r}")


def parse_iso_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"Invalid timestamp (ISO 8601): {value!r}")


def combine_deadline(day: date, time_of_day: Optional[time] = None) -> datetime:
    """Combine a date and a time-of-day into a single deadline instant.

    A bare date means end of that day (23:59:59) so that "due on the 1st"
    still accepts work finished on the 1st.
    """
    if isinstance(day, datetime):
        return day
    return datetime.combine(day, time_of_day or time(23, 59, 59))


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()
