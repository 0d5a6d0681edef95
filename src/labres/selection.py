""" The dates of a reservation request.

A request spans up to ``settings.max_dates`` days. Each day carries its own
time window and machine quantity, together with the availability it was
picked with. Requests are immutable, every change returns a new request.

"""
from __future__ import annotations

import logging

from datetime import timedelta

from labres.availability import MachineAvailability
from labres.modules import errors
from labres.modules import utils
from labres.modules.timewindow import Session


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Iterable
    from datetime import date, time
    from typing_extensions import Self


log = logging.getLogger('labres')

MAX_DATES = 5


class DaySelection(NamedTuple):
    """ A single day of a reservation request. """

    day: date
    start_time: time | None = None
    end_time: time | None = None
    machine_quantity: int = 1
    available_morning: bool = True
    available_afternoon: bool = True
    max_machines: int = 1

    #: the machines free in the morning and in the afternoon, if known
    free_morning: int | None = None
    free_afternoon: int | None = None

    def can_take(self, morning: bool, afternoon: bool) -> bool:
        """ True if the machine quantity of this day is free during the
        given sessions.

        """
        if morning:
            if not self.available_morning:
                return False

            free = self.free_morning
            if free is not None and free < self.machine_quantity:
                return False

        if afternoon:
            if not self.available_afternoon:
                return False

            free = self.free_afternoon
            if free is not None and free < self.machine_quantity:
                return False

        return True

    @property
    def session(self) -> Session | None:
        """ The session(s) this day still has room in. """
        return Session.from_availability(
            self.available_morning,
            self.available_afternoon
        )


class ReservationRequest(NamedTuple):
    """ A reservation request being put together by a requester.

    The days are unique by date and kept in the order of their dates.

    """

    days: tuple[DaySelection, ...] = ()
    sync_times: bool = False
    unified_start_time: time | None = None
    unified_end_time: time | None = None
    service_id: int | None = None

    #: the number of machines the requester needs, days without that many
    #: free machines can't be picked
    machine_quantity: int = 1

    @property
    def dates(self) -> tuple[date, ...]:
        return tuple(d.day for d in self.days)

    def has_day(self, day: date) -> bool:
        return any(d.day == day for d in self.days)

    def get_day(self, day: date) -> DaySelection | None:
        for selection in self.days:
            if selection.day == day:
                return selection
        return None

    def with_days(self, days: Iterable[DaySelection]) -> Self:
        """ Returns a copy with the given days, sorted by date. """

        ordered = tuple(sorted(days, key=lambda d: d.day))

        for previous, current in zip(ordered, ordered[1:]):
            if previous.day == current.day:
                raise errors.DuplicateDaySelection(current.day)

        return self._replace(days=ordered)

    def with_day(self, selection: DaySelection) -> Self:
        """ Returns a copy with the given day added or replaced. """

        return self.with_days(
            (*(d for d in self.days if d.day != selection.day), selection)
        )

    def without_day(self, day: date) -> Self:
        return self._replace(
            days=tuple(d for d in self.days if d.day != day)
        )


class SelectionRules(NamedTuple):
    """ Everything needed to decide which dates may be picked. """

    today: date

    #: returns the availability of the given day
    availability: Callable[[date], MachineAvailability]

    blocked: frozenset[date] = frozenset()
    max_dates: int = MAX_DATES

    #: number of days ahead of today a date may be picked, None for no limit
    horizon: int | None = None

    def is_blocked(self, day: date) -> bool:
        return day in self.blocked


class ToggleResult(NamedTuple):
    request: ReservationRequest
    accepted: bool
    reason: str | None = None


def rejection_reason(
    request: ReservationRequest,
    day: date,
    rules: SelectionRules
) -> str | None:
    """ Returns why the given date can't be picked, or None if it can.

    Past dates, weekends, blocked dates and dates beyond the booking
    horizon are never selectable. Dates which are not yet selected are
    also rejected once the maximum number of dates is reached or if they
    lack the requested number of machines.

    """
    if day < rules.today:
        return 'past'

    if utils.is_weekend(day):
        return 'weekend'

    if rules.is_blocked(day):
        return 'blocked'

    if rules.horizon is not None:
        if day > rules.today + timedelta(days=rules.horizon):
            return 'horizon'

    if request.has_day(day):
        return None

    if len(request.days) >= rules.max_dates:
        return 'capacity'

    if not rules.availability(day).is_selectable(request.machine_quantity):
        return 'unavailable'

    return None


def is_selectable(
    request: ReservationRequest,
    day: date,
    rules: SelectionRules
) -> bool:
    return rejection_reason(request, day, rules) is None


def new_day_selection(
    request: ReservationRequest,
    day: date,
    availability: MachineAvailability
) -> DaySelection:
    """ Creates the selection of a newly picked day. If the times are in
    sync, the day starts out with the unified times.

    """
    quantity = request.machine_quantity

    return DaySelection(
        day=day,
        start_time=request.unified_start_time if request.sync_times else None,
        end_time=request.unified_end_time if request.sync_times else None,
        machine_quantity=min(quantity, availability.max_machines),
        available_morning=availability.available_morning(quantity),
        available_afternoon=availability.available_afternoon(quantity),
        max_machines=availability.max_machines,
        free_morning=availability.morning,
        free_afternoon=availability.afternoon
    )


def toggle_date(
    request: ReservationRequest,
    day: date,
    rules: SelectionRules
) -> ToggleResult:
    """ Removes the given date if it is selected, adds it otherwise.

    Dates which can't be added leave the request unchanged. No error is
    raised in this case, the result's ``accepted`` flag is False and the
    ``reason`` tells why (see :func:`rejection_reason`).

    """
    if request.has_day(day):
        return ToggleResult(request.without_day(day), True)

    reason = rejection_reason(request, day, rules)

    if reason is not None:
        log.warning(f'Rejected {day}: {reason}')
        return ToggleResult(request, False, reason)

    selection = new_day_selection(request, day, rules.availability(day))
    return ToggleResult(request.with_day(selection), True)


def remove_date(request: ReservationRequest, day: date) -> ReservationRequest:
    return request.without_day(day)


def set_day_quantity(
    request: ReservationRequest,
    day: date,
    quantity: int
) -> ReservationRequest:
    """ Sets the number of machines of a single day. """

    selection = request.get_day(day)

    if selection is None:
        raise errors.StateInvariantViolation(f'{day} is not selected')

    if quantity < 1:
        raise errors.InvalidMachineQuantity(day)

    if quantity > selection.max_machines:
        raise errors.MachineQuantityExceeded(
            day, quantity, selection.max_machines)

    return request.with_day(selection._replace(machine_quantity=quantity))


def refresh_availability(
    request: ReservationRequest,
    rules: SelectionRules
) -> ReservationRequest:
    """ Updates the availability of the selected days after the underlying
    snapshot changed. Quantities are reduced to what is still available.

    """
    quantity = request.machine_quantity
    days = []

    for selection in request.days:
        availability = rules.availability(selection.day)
        days.append(selection._replace(
            available_morning=availability.available_morning(quantity),
            available_afternoon=availability.available_afternoon(quantity),
            max_machines=availability.max_machines,
            free_morning=availability.morning,
            free_afternoon=availability.afternoon,
            machine_quantity=min(
                selection.machine_quantity, availability.max_machines)
        ))

    return request.with_days(days)
