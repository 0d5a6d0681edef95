from __future__ import annotations

import pytest

from datetime import date, time
from labres.availability import MachineAvailability
from labres.modules import errors
from labres.selection import (
    is_selectable,
    refresh_availability,
    rejection_reason,
    set_day_quantity,
    toggle_date,
    DaySelection,
    ReservationRequest,
    SelectionRules,
)


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable


TODAY = date(2025, 3, 3)

WEEKDAYS = (
    date(2025, 3, 4),
    date(2025, 3, 5),
    date(2025, 3, 6),
    date(2025, 3, 7),
    date(2025, 3, 10),
    date(2025, 3, 11),
)


def fixed(
    morning: int = 2,
    afternoon: int = 2,
    **days: tuple[int, int]
) -> Callable[[date], MachineAvailability]:

    def availability(day: date) -> MachineAvailability:
        m, a = days.get(f'd{day.day}', (morning, afternoon))
        return MachineAvailability(day, m, a, min(m, a))

    return availability


def rules(**kwargs: object) -> SelectionRules:
    kwargs.setdefault('availability', fixed())
    return SelectionRules(today=TODAY, **kwargs)  # type: ignore[arg-type]


def test_toggle_adds_and_removes() -> None:
    request = ReservationRequest()

    result = toggle_date(request, WEEKDAYS[0], rules())
    assert result.accepted
    assert result.request.dates == (WEEKDAYS[0], )

    result = toggle_date(result.request, WEEKDAYS[0], rules())
    assert result.accepted
    assert result.request.dates == ()


def test_days_are_sorted_and_unique() -> None:
    request = ReservationRequest()

    for day in reversed(WEEKDAYS[:3]):
        request = toggle_date(request, day, rules()).request

    assert request.dates == WEEKDAYS[:3]

    with pytest.raises(errors.DuplicateDaySelection):
        request.with_days((*request.days, DaySelection(WEEKDAYS[0])))


def test_sixth_date_is_rejected() -> None:
    request = ReservationRequest()

    for day in WEEKDAYS[:5]:
        request = toggle_date(request, day, rules()).request

    assert len(request.days) == 5

    result = toggle_date(request, WEEKDAYS[5], rules())

    assert not result.accepted
    assert result.reason == 'capacity'
    assert result.request is request

    # selected dates may still be removed at capacity
    result = toggle_date(request, WEEKDAYS[4], rules())
    assert result.accepted
    assert len(result.request.days) == 4


def test_max_dates_may_be_changed() -> None:
    request = toggle_date(
        ReservationRequest(), WEEKDAYS[0], rules(max_dates=1)).request

    result = toggle_date(request, WEEKDAYS[1], rules(max_dates=1))
    assert result.reason == 'capacity'


def test_rejection_reasons() -> None:
    request = ReservationRequest()

    assert rejection_reason(request, date(2025, 3, 2), rules()) == 'past'
    assert rejection_reason(request, date(2025, 3, 8), rules()) == 'weekend'
    assert rejection_reason(request, date(2025, 3, 9), rules()) == 'weekend'

    blocked = rules(blocked=frozenset((WEEKDAYS[0], )))
    assert rejection_reason(request, WEEKDAYS[0], blocked) == 'blocked'

    horizon = rules(horizon=5)
    assert rejection_reason(request, date(2025, 3, 7), horizon) is None
    assert rejection_reason(request, date(2025, 3, 10), horizon) == 'horizon'

    full = rules(availability=fixed(0, 0))
    assert rejection_reason(request, WEEKDAYS[0], full) == 'unavailable'

    # today is selectable
    assert rejection_reason(request, TODAY, rules()) is None


def test_requested_quantity_decides_availability() -> None:
    request = ReservationRequest(machine_quantity=2)
    availability = fixed(1, 1, d5=(2, 0))

    assert not is_selectable(request, WEEKDAYS[0], rules(
        availability=availability))
    assert is_selectable(request, WEEKDAYS[1], rules(
        availability=availability))

    result = toggle_date(request, WEEKDAYS[1], rules(
        availability=availability))

    selection = result.request.days[0]
    assert selection.available_morning
    assert not selection.available_afternoon
    assert selection.max_machines == 2
    assert selection.machine_quantity == 2


def test_selected_days_stay_removable() -> None:
    request = toggle_date(ReservationRequest(), WEEKDAYS[0], rules()).request

    # the day was blocked after it was picked
    blocked = rules(blocked=frozenset((WEEKDAYS[0], )))
    assert not is_selectable(request, WEEKDAYS[0], blocked)

    result = toggle_date(request, WEEKDAYS[0], blocked)
    assert result.accepted
    assert result.request.days == ()


def test_new_days_adopt_unified_times() -> None:
    request = ReservationRequest(
        sync_times=True,
        unified_start_time=time(9),
        unified_end_time=time(11)
    )

    request = toggle_date(request, WEEKDAYS[0], rules()).request
    assert request.days[0].start_time == time(9)
    assert request.days[0].end_time == time(11)

    request = toggle_date(
        request._replace(sync_times=False), WEEKDAYS[1], rules()).request
    assert request.days[1].start_time is None
    assert request.days[1].end_time is None


def test_set_day_quantity() -> None:
    request = toggle_date(
        ReservationRequest(), WEEKDAYS[0], rules(availability=fixed(3, 1))
    ).request

    request = set_day_quantity(request, WEEKDAYS[0], 3)
    assert request.days[0].machine_quantity == 3

    with pytest.raises(errors.MachineQuantityExceeded) as e:
        set_day_quantity(request, WEEKDAYS[0], 4)

    assert e.value.limit == 3

    with pytest.raises(errors.InvalidMachineQuantity):
        set_day_quantity(request, WEEKDAYS[0], 0)

    with pytest.raises(errors.StateInvariantViolation):
        set_day_quantity(request, WEEKDAYS[1], 1)


def test_refresh_availability() -> None:
    request = toggle_date(
        ReservationRequest(), WEEKDAYS[0], rules(availability=fixed(3, 3))
    ).request
    request = set_day_quantity(request, WEEKDAYS[0], 3)

    request = refresh_availability(request, rules(
        availability=fixed(1, 0)))

    selection = request.days[0]
    assert selection.max_machines == 1
    assert selection.machine_quantity == 1
    assert selection.available_morning
    assert not selection.available_afternoon
