""" Reconciles the recorded usage of a reservation with the downtime of its
machines.

Once the machines have been used, every day of a reservation is recorded
as a :class:`UtilTimeSlot` and marked as Completed or Cancelled. The time
the machines were down is deducted from the billed duration.

"""
from __future__ import annotations

import enum
import sedate

from datetime import datetime
from decimal import Decimal
from functools import lru_cache

from labres.modules import errors
from labres.modules import utils


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable
    from collections.abc import Sequence
    from datetime import time
    from sedate.types import TzInfoOrName


class SlotStatus(enum.Enum):
    ONGOING = 'Ongoing'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'

    @property
    def is_final(self) -> bool:
        return self is not SlotStatus.ONGOING


class UtilTimeSlot(NamedTuple):
    """ The recorded usage of a single day of a reservation. """

    day_num: int
    start: datetime | None = None
    end: datetime | None = None
    status: SlotStatus = SlotStatus.ONGOING

    #: the id of the record in the database, if any
    id: int | None = None

    @property
    def is_cancelled(self) -> bool:
        return self.status is SlotStatus.CANCELLED

    @property
    def is_incomplete(self) -> bool:
        """ True if the slot counts but lacks a start or an end. """
        return not self.is_cancelled and (
            self.start is None or self.end is None
        )

    @property
    def minutes(self) -> int:
        if self.is_cancelled or self.start is None or self.end is None:
            return 0

        return utils.minutes_between(self.start, self.end)


class DowntimeEntry(NamedTuple):
    duration_minutes: int
    cause: str | None = None


class CostCalculation(NamedTuple):
    total_minutes: int
    downtime_minutes: int
    effective_minutes: int
    rate_per_minute: Decimal
    original_cost: Decimal
    adjusted_cost: Decimal

    #: the day numbers of the slots lacking a start or an end
    incomplete: tuple[int, ...] = ()

    @property
    def deduction(self) -> Decimal:
        return self.original_cost - self.adjusted_cost


def change_status(slot: UtilTimeSlot, status: SlotStatus) -> UtilTimeSlot:
    """ Moves the slot to the given status. Completed and Cancelled slots
    can't change anymore.

    """
    if slot.status is status:
        return slot

    if slot.status.is_final:
        raise errors.InvalidStatusTransition(
            f'Day {slot.day_num} is {slot.status.value} already'
        )

    return slot._replace(status=status)


def edit_slot_time(
    slot: UtilTimeSlot,
    start: datetime | None,
    end: datetime | None
) -> UtilTimeSlot:
    """ Changes the recorded start and end of a slot. Cancelled slots are
    frozen.

    """
    if slot.is_cancelled:
        raise errors.FrozenTimeSlot(
            f'Day {slot.day_num} is cancelled, its times are frozen'
        )

    if start is not None and end is not None and end <= start:
        raise errors.EndBeforeStart(start.date())

    return slot._replace(start=start, end=end)


def replace_time_of_day(
    value: datetime | None,
    new_time: time,
    timezone: TzInfoOrName,
    fallback: datetime | None = None
) -> datetime:
    """ Returns the given datetime with its local time of day replaced,
    keeping the local date. Without a value, the date of the fallback is
    used (or today's if there is no fallback either).

    """
    base = value or fallback or sedate.utcnow()
    local = utils.local_datetime(base, timezone)

    return sedate.replace_timezone(
        datetime.combine(local.date(), new_time), timezone
    )


def mark_all_completed(
    slots: Iterable[UtilTimeSlot]
) -> tuple[UtilTimeSlot, ...]:
    """ Marks all ongoing slots as Completed, cancelled slots stay
    cancelled.

    """
    return tuple(
        s._replace(status=SlotStatus.COMPLETED)
        if s.status is SlotStatus.ONGOING else s
        for s in slots
    )


def count_unfinished(slots: Iterable[UtilTimeSlot]) -> int:
    return sum(1 for s in slots if s.status is SlotStatus.ONGOING)


@lru_cache(maxsize=128)
def _calculate(
    slots: tuple[UtilTimeSlot, ...],
    downtime: tuple[DowntimeEntry, ...],
    rate: Decimal
) -> CostCalculation:

    total = sum(s.minutes for s in slots)
    down = sum(d.duration_minutes or 0 for d in downtime)
    effective = max(0, total - down)

    return CostCalculation(
        total_minutes=total,
        downtime_minutes=down,
        effective_minutes=effective,
        rate_per_minute=rate,
        original_cost=total * rate,
        adjusted_cost=effective * rate,
        incomplete=tuple(s.day_num for s in slots if s.is_incomplete)
    )


def calculate_cost(
    slots: Iterable[UtilTimeSlot],
    downtime: Iterable[DowntimeEntry],
    rate_per_minute: Decimal | float | int | str
) -> CostCalculation:
    """ Calculates the billable duration and cost of the given slots.

    All downtime is deducted, regardless of the day it occurred on. The
    effective duration is never negative. Cancelled slots and slots without
    a start or an end count as zero minutes, the latter are listed in the
    result's ``incomplete``.

    """
    return _calculate(
        tuple(slots),
        tuple(downtime),
        utils.as_decimal(rate_per_minute)
    )


def finalize(
    slots: Sequence[UtilTimeSlot],
    downtime: Iterable[DowntimeEntry],
    rate_per_minute: Decimal | float | int | str
) -> CostCalculation:
    """ Returns the final cost of the given slots.

    Fails if any slot is still ongoing or if a slot which is not cancelled
    lacks a valid time window. Nothing is finalized in that case.

    """
    unfinished = count_unfinished(slots)

    if unfinished:
        raise errors.UnfinishedTimeSlots(unfinished)

    for slot in slots:
        if slot.is_cancelled:
            continue

        if slot.start is None or slot.end is None:
            raise errors.MissingTimeField()

        if slot.end <= slot.start:
            raise errors.EndBeforeStart(slot.start.date())

    return calculate_cost(slots, downtime, rate_per_minute)


class ServiceCharge(NamedTuple):
    """ A service billed on a reservation. """

    service: str

    #: the names of the machines used for the service
    machines: tuple[str, ...]

    #: the cost of the service and the minutes that cost covers
    cost: Decimal | None = None
    minutes: int | None = None


class MachineUsage(NamedTuple):
    """ The use of one machine for a service, with its logged downtime. """

    machine: str
    service: str
    downtime: tuple[DowntimeEntry, ...] = ()


class ServiceAdjustment(NamedTuple):
    service: str
    downtime_minutes: int
    rate_per_minute: Decimal
    original_cost: Decimal
    adjusted_cost: Decimal

    @property
    def deduction(self) -> Decimal:
        return self.original_cost - self.adjusted_cost


def parse_machines(equipment: str | None) -> list[tuple[str, int]]:
    """ Parses machine lists like 'Laser Cutter:2, 3D Printer' into
    name/quantity pairs. The quantity defaults to 1.

    """
    result = []

    for part in (equipment or '').split(','):
        name, _, quantity = part.partition(':')
        name = name.strip()

        if not name:
            continue

        try:
            result.append((name, int(quantity.strip() or 1) or 1))
        except ValueError:
            result.append((name, 1))

    return result


def rate_for(cost: Decimal | None, minutes: int | None) -> Decimal:
    """ The cost per minute of a service. Services without minutes are
    billed by the hour.

    """
    cost = utils.as_decimal(cost or 0)
    minutes = minutes or 60

    return cost / minutes if minutes > 0 else Decimal(0)


def breakdown(
    charges: Iterable[ServiceCharge],
    usages: Iterable[MachineUsage]
) -> list[ServiceAdjustment]:
    """ Deducts the downtime of the machines of each service from its cost.

    The downtime of a machine usage counts towards a service if the usage
    belongs to the service and its machine is one of the service's
    machines. Adjusted costs never go below zero.

    """
    usages = tuple(usages)
    result = []

    for charge in charges:
        minutes = sum(
            entry.duration_minutes or 0
            for usage in usages
            if usage.service == charge.service
            and usage.machine in charge.machines
            for entry in usage.downtime
        )

        original = utils.as_decimal(charge.cost or 0)
        rate = rate_for(charge.cost, charge.minutes)
        adjusted = max(Decimal(0), original - rate * minutes)

        result.append(ServiceAdjustment(
            service=charge.service,
            downtime_minutes=minutes,
            rate_per_minute=rate,
            original_cost=original,
            adjusted_cost=adjusted
        ))

    return result


def has_discrepancy(
    stored: Decimal | float | None,
    calculated: Decimal | float,
    tolerance: Decimal | float = 0.01
) -> bool:
    """ True if a stored total deviates from the recalculated one. Missing
    totals are not a discrepancy.

    """
    if stored is None:
        return False

    difference = abs(utils.as_decimal(stored) - utils.as_decimal(calculated))
    return difference > utils.as_decimal(tolerance)


class BreakdownTotals(NamedTuple):
    downtime_minutes: int
    original_cost: Decimal
    adjusted_cost: Decimal

    @property
    def deduction(self) -> Decimal:
        return self.original_cost - self.adjusted_cost


def totals(adjustments: Iterable[ServiceAdjustment]) -> BreakdownTotals:
    adjustments = tuple(adjustments)

    return BreakdownTotals(
        downtime_minutes=sum(a.downtime_minutes for a in adjustments),
        original_cost=sum(
            (a.original_cost for a in adjustments), Decimal(0)),
        adjusted_cost=sum(
            (a.adjusted_cost for a in adjustments), Decimal(0))
    )
