from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from labres.modules import utils
from sedate import replace_timezone


def test_month_range() -> None:
    assert utils.month_range(date(2025, 2, 14)) == (
        date(2025, 2, 1), date(2025, 2, 28))
    assert utils.month_range(date(2024, 2, 1)) == (
        date(2024, 2, 1), date(2024, 2, 29))
    assert utils.month_range(date(2025, 12, 31)) == (
        date(2025, 12, 1), date(2025, 12, 31))


def test_iterate_days() -> None:
    days = list(utils.iterate_days(date(2025, 2, 27), date(2025, 3, 2)))

    assert days == [
        date(2025, 2, 27),
        date(2025, 2, 28),
        date(2025, 3, 1),
        date(2025, 3, 2),
    ]

    assert list(utils.iterate_days(date(2025, 3, 2), date(2025, 3, 1))) == []


def test_is_weekend() -> None:
    assert not utils.is_weekend(date(2025, 3, 7))
    assert utils.is_weekend(date(2025, 3, 8))
    assert utils.is_weekend(date(2025, 3, 9))
    assert not utils.is_weekend(date(2025, 3, 10))


def test_local_date() -> None:
    late = replace_timezone(datetime(2025, 3, 9, 23, 30), 'UTC')

    assert utils.local_date(late, 'UTC') == date(2025, 3, 9)
    assert utils.local_date(late, 'Europe/Zurich') == date(2025, 3, 10)

    # naive datetimes are already local
    assert utils.local_date(
        datetime(2025, 3, 9, 23, 30), 'Europe/Zurich') == date(2025, 3, 9)


def test_local_datetime() -> None:
    naive = utils.local_datetime(datetime(2025, 3, 10, 9), 'Europe/Zurich')
    assert naive.hour == 9
    assert naive.utcoffset() is not None

    aware = replace_timezone(datetime(2025, 3, 10, 8), 'UTC')
    assert utils.local_datetime(aware, 'Europe/Zurich').hour == 9


def test_minutes_between() -> None:
    start = datetime(2025, 3, 10, 9)

    assert utils.minutes_between(start, datetime(2025, 3, 10, 11)) == 120
    assert utils.minutes_between(start, datetime(2025, 3, 10, 9, 0, 59)) == 0
    assert utils.minutes_between(start, datetime(2025, 3, 10, 8)) == 0


def test_as_decimal() -> None:
    assert utils.as_decimal(0.1) == Decimal('0.1')
    assert utils.as_decimal('2.50') == Decimal('2.5')
    assert utils.as_decimal(3) == 3

    value = Decimal('1.23')
    assert utils.as_decimal(value) is value
