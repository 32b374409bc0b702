"""Time helpers.

Billing timestamps are stored as naive UTC (``timestamp without time zone``)
so comparisons behave the same on PostgreSQL and SQLite.
"""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_timestamp(value: int) -> datetime:
    """Convert a unix timestamp (seconds) to naive UTC."""
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


def month_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """Return [start, end) of the calendar month containing ``moment``."""
    start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def shift_months(moment: datetime, months: int) -> datetime:
    """Move the first-of-month ``moment`` by a (possibly negative) number of months."""
    index = moment.year * 12 + (moment.month - 1) + months
    return moment.replace(year=index // 12, month=index % 12 + 1)
