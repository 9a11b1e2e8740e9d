"""Usage period helpers.

Usage is aggregated per UTC calendar month. The window is half-open:
[first day of month, first day of next month).
"""

from datetime import date, datetime, timezone
from typing import Optional


def month_window(now: Optional[datetime] = None) -> tuple[date, date]:
    """Return the calendar-month window containing ``now``.

    Args:
        now: Reference instant (defaults to current UTC time). Naive values
            are treated as UTC.

    Returns:
        (period_start, period_end) where period_end is the first day of the
        following month.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is not None:
        now = now.astimezone(timezone.utc)

    period_start = date(now.year, now.month, 1)
    if now.month == 12:
        period_end = date(now.year + 1, 1, 1)
    else:
        period_end = date(now.year, now.month + 1, 1)
    return period_start, period_end
