""" Calculates how many machines of a service are still free on each day of
a month, separately for the morning and the afternoon session.

The calculation works on records fetched beforehand (see
:mod:`labres.snapshot`), it never talks to the database itself.

"""
from __future__ import annotations

import logging

from labres.modules import utils
from labres.modules.timewindow import MORNING_END, AFTERNOON_START
from labres.modules.timewindow import required_sessions


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Collection
    from collections.abc import Iterable
    from datetime import date, datetime, time
    from sedate.types import TzInfoOrName


log = logging.getLogger('labres')


class Timespan(NamedTuple):
    start: datetime | None
    end: datetime | None


class ReservationRecord(NamedTuple):
    """ An existing reservation as far as availability is concerned. """

    #: the names of the machines used by the reservation
    machines: tuple[str, ...] = ()

    #: the number of machines consumed, if not given the machines of the
    #: pool found in ``machines`` are counted
    quantity: int | None = None

    #: the reserved time slots, one per day
    time_slots: tuple[Timespan, ...] = ()

    #: the day of the reservation, used if there are no time slots
    day: date | None = None

    def consumed(self, pool: Collection[str] | None = None) -> int:
        """ Returns the number of machines of the given pool this
        reservation consumes (0 if it doesn't use the pool at all).

        """
        if pool is None:
            matching = len(self.machines)
        else:
            matching = sum(1 for m in self.machines if m in pool)

            if not matching:
                return 0

        if self.quantity is not None:
            return self.quantity

        return matching or 1


class MachineAvailability(NamedTuple):
    day: date
    morning: int
    afternoon: int
    all_day: int

    def is_selectable(self, quantity: int = 1) -> bool:
        """ True if at least one session can still accommodate the
        given number of machines.

        """
        return self.morning >= quantity or self.afternoon >= quantity

    def available_morning(self, quantity: int = 1) -> bool:
        return self.morning >= quantity

    def available_afternoon(self, quantity: int = 1) -> bool:
        return self.afternoon >= quantity

    @property
    def max_machines(self) -> int:
        """ The most machines that can be reserved in any one session. """
        return max(self.morning, self.afternoon)

    @classmethod
    def unavailable(cls, day: date) -> MachineAvailability:
        return cls(day, 0, 0, 0)


def accommodates(
    availability: MachineAvailability,
    start: time,
    end: time,
    quantity: int = 1
) -> bool:
    """ True if the given number of machines is free during every session
    the window from start to end touches.

    """
    needs_morning, needs_afternoon = required_sessions(start, end)

    if needs_morning and not availability.available_morning(quantity):
        return False

    if needs_afternoon and not availability.available_afternoon(quantity):
        return False

    return True


def calculate_availability(
    start: date,
    end: date,
    capacity: int,
    reservations: Iterable[ReservationRecord],
    pool: Collection[str] | None = None,
    timezone: TzInfoOrName = 'UTC'
) -> dict[date, MachineAvailability]:
    """ Returns the availability of each day between start and end (both
    included).

    Every day starts out with the full capacity. Each time slot of an
    existing reservation then reduces the free machines of the morning if
    it starts before noon, of the afternoon if it ends at one o'clock or
    later and of the whole day if it does both. Reservations without time
    slots occupy the whole day.

    Free machines are never negative, even if a day is overbooked.

    :capacity:
        The total number of machines of the service.

    :reservations:
        The existing reservations, see :class:`ReservationRecord`.

    :pool:
        The names of the machines belonging to the service. Reservations
        not using any of them are ignored. If None, all reservations are
        counted.

    :timezone:
        The timezone of the machines. Time slots are converted to it before
        their day and hours are looked at.

    """
    capacity = max(0, capacity)

    counts: dict[date, list[int]] = {
        day: [capacity, capacity, capacity]
        for day in utils.iterate_days(start, end)
    }

    def occupy(
        day: date,
        used: int,
        morning: bool,
        afternoon: bool
    ) -> None:

        if day not in counts:
            return

        free = counts[day]

        if morning:
            free[0] = max(0, free[0] - used)

        if afternoon:
            free[1] = max(0, free[1] - used)

        if morning and afternoon:
            free[2] = max(0, free[2] - used)

    for reservation in reservations:
        used = reservation.consumed(pool)

        if not used:
            continue

        if not reservation.time_slots:
            if reservation.day is not None:
                occupy(reservation.day, used, True, True)
            continue

        for slot in reservation.time_slots:
            if slot.start is None or slot.end is None:
                continue

            slot_start = utils.local_datetime(slot.start, timezone)
            slot_end = utils.local_datetime(slot.end, timezone)

            occupy(
                slot_start.date(),
                used,
                slot_start.hour < MORNING_END.hour,
                slot_end.hour >= AFTERNOON_START.hour
            )

    return {
        day: MachineAvailability(day, *free)
        for day, free in counts.items()
    }


class AvailabilityCalculator:
    """ Holds a snapshot of the reservations of a service and hands out
    the availability of single days or whole months.

    Results are cached per snapshot version and date range. Replacing the
    snapshot increases the version, which invalidates the cache.

    """

    def __init__(
        self,
        capacity: int,
        reservations: Iterable[ReservationRecord],
        pool: Collection[str] | None = None,
        timezone: TzInfoOrName = 'UTC'
    ):
        self.capacity = capacity
        self.reservations = tuple(reservations)
        self.pool = frozenset(pool) if pool is not None else None
        self.timezone = timezone
        self.version = 0
        self.cache: dict[
            tuple[int, date, date], dict[date, MachineAvailability]
        ] = {}

    def replace_snapshot(
        self,
        capacity: int,
        reservations: Iterable[ReservationRecord]
    ) -> None:
        self.capacity = capacity
        self.reservations = tuple(reservations)
        self.version += 1
        self.cache.clear()

    def range(self, start: date, end: date) -> dict[date, MachineAvailability]:
        key = (self.version, start, end)

        if key not in self.cache:
            log.debug(
                f'Calculating availability from {start} to {end} '
                f'(snapshot {self.version})'
            )
            self.cache[key] = calculate_availability(
                start, end,
                capacity=self.capacity,
                reservations=self.reservations,
                pool=self.pool,
                timezone=self.timezone
            )

        return self.cache[key]

    def month(self, day: date) -> dict[date, MachineAvailability]:
        """ The availability of the month the given day is in. """
        return self.range(*utils.month_range(day))

    def on(self, day: date) -> MachineAvailability:
        return self.month(day)[day]
