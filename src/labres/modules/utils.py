from __future__ import annotations

import calendar
import sedate

from datetime import date, datetime, timedelta
from decimal import Decimal


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterator
    from sedate.types import TzInfoOrName


def month_range(day: date) -> tuple[date, date]:
    """ Returns the first and the last day of the month the given
    day is in.

    """
    _, last = calendar.monthrange(day.year, day.month)
    return day.replace(day=1), day.replace(day=last)


def iterate_days(start: date, end: date) -> Iterator[date]:
    """ Yields every day from start to end (both included). """
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def local_date(value: datetime, timezone: TzInfoOrName) -> date:
    """ Returns the calendar day of the given datetime in the given timezone.
    Naive datetimes are assumed to be in that timezone already.

    """
    if value.tzinfo is None:
        return value.date()

    return sedate.to_timezone(value, timezone).date()


def local_datetime(value: datetime, timezone: TzInfoOrName) -> datetime:
    if value.tzinfo is None:
        return sedate.replace_timezone(value, timezone)

    return sedate.to_timezone(value, timezone)


def minutes_between(start: datetime, end: datetime) -> int:
    """ Whole minutes between start and end, zero if end is not after
    start.

    """
    seconds = (end - start).total_seconds()
    return int(seconds // 60) if seconds > 0 else 0


def as_decimal(value: Decimal | float | int | str) -> Decimal:
    if isinstance(value, Decimal):
        return value

    # going through str avoids the binary representation of floats
    return Decimal(str(value))
