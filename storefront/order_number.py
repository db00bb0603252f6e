"""Human-readable, date-scoped order numbers.

An order number looks like ``AUD-20240301-0004``: a prefix, the UTC calendar
date the order was created on, and the 1-based position of the order within
that day, padded to four digits.
"""
from datetime import datetime, timedelta, timezone
from typing import Tuple

DEFAULT_PREFIX = "AUD"


def as_utc(moment: datetime) -> datetime:
    """Return ``moment`` in UTC. Naive datetimes are taken to already be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def utc_day_bounds(moment: datetime) -> Tuple[datetime, datetime]:
    """Half-open ``[start, end)`` interval of the UTC day containing ``moment``."""
    start = as_utc(moment).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def format_order_number(created_at: datetime, orders_today: int, prefix: str = DEFAULT_PREFIX) -> str:
    if orders_today < 0:
        raise ValueError(f"orders_today must be >= 0, got {orders_today}")
    date_stamp = as_utc(created_at).strftime("%Y%m%d")
    return f"{prefix}-{date_stamp}-{orders_today + 1:04d}"
