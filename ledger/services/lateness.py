from __future__ import annotations

from datetime import datetime, timedelta

from ..schemas.sale import Sale

DEFAULT_LATE_DAYS = 30


def last_activity_at(sale: Sale) -> datetime:
    """Timestamp of the most recent payment, or the sale date when nothing was paid."""
    return sale.last_payment_at or sale.date


def is_sale_late(sale: Sale, now: datetime, late_days: int = DEFAULT_LATE_DAYS) -> bool:
    """Whether more than ``late_days`` have passed since the sale's last activity.

    This answers the time question only; fully paid sales are filtered out by
    the callers.
    """
    if not late_days or late_days <= 0:
        late_days = DEFAULT_LATE_DAYS
    return now - last_activity_at(sale) > timedelta(days=late_days)


def days_since_activity(sale: Sale, now: datetime) -> int:
    return (now - last_activity_at(sale)).days
