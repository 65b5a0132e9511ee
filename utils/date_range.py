"""
Activity scheduling bounds.

A stop's dates are whole days: the window opens at 00:00 of ``start_date``
and closes at 23:59 of ``end_date``. Either bound may be missing.
"""
from datetime import date, datetime, time
from typing import Optional

DAY_START = time(0, 0)
DAY_END = time(23, 59)


def stop_window(start_date: Optional[date], end_date: Optional[date]) -> tuple[Optional[datetime], Optional[datetime]]:
    lower = datetime.combine(start_date, DAY_START) if start_date else None
    upper = datetime.combine(end_date, DAY_END) if end_date else None
    return lower, upper


def is_within_stop_range(
    start_date: Optional[date],
    end_date: Optional[date],
    scheduled_at: datetime,
) -> bool:
    """Return True when `scheduled_at` falls inside the stop window (inclusive).

    Timezone-aware values are compared by their wall-clock time.
    """
    lower, upper = stop_window(start_date, end_date)
    moment = scheduled_at.replace(tzinfo=None)
    if lower is not None and moment < lower:
        return False
    if upper is not None and moment > upper:
        return False
    return True


def describe_stop_window(start_date: Optional[date], end_date: Optional[date]) -> str:
    if start_date and end_date:
        return f"between {start_date.isoformat()} 00:00 and {end_date.isoformat()} 23:59"
    if start_date:
        return f"on or after {start_date.isoformat()} 00:00"
    if end_date:
        return f"on or before {end_date.isoformat()} 23:59"
    return "at any time"
