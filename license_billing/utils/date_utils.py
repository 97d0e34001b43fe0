"""
Date and time helpers for billing periods.

All datetimes handled by the engine are naive UTC; aware values are
converted to UTC before the tzinfo is dropped.
"""

import calendar
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from license_billing.utils.money import round2

MAX_MONTHS = Decimal("99.99")


def now_utc() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today_utc() -> date:
    return now_utc().date()


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return to_naive_utc(value).date()
    return value


def add_months(d: date, months: int) -> date:
    """Calendar month arithmetic, clamped to the end of shorter months."""
    return d + relativedelta(months=months)


def months_between(start: date, end: date) -> Decimal:
    """
    Fractional months from ``start`` to ``end``.

    Whole calendar months are counted first; the remaining days count as
    a fraction of the month that follows the last whole month. The result
    is rounded to 2 decimals and clamped to ``[0, 99.99]``.
    """
    if end <= start:
        return Decimal("0.00")

    delta = relativedelta(end, start)
    whole = delta.years * 12 + delta.months
    anchor = start + relativedelta(months=whole)
    remaining_days = (end - anchor).days

    fraction = Decimal(0)
    if remaining_days:
        days_in_month = calendar.monthrange(anchor.year, anchor.month)[1]
        fraction = Decimal(remaining_days) / Decimal(days_in_month)

    return min(round2(Decimal(whole) + fraction), MAX_MONTHS)
