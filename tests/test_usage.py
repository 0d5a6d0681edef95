from __future__ import annotations

import pytest

from datetime import datetime, time
from decimal import Decimal
from labres.modules import errors
from labres.usage import (
    breakdown,
    calculate_cost,
    change_status,
    edit_slot_time,
    finalize,
    has_discrepancy,
    mark_all_completed,
    parse_machines,
    replace_time_of_day,
    totals,
    DowntimeEntry,
    MachineUsage,
    ServiceCharge,
    SlotStatus,
    UtilTimeSlot,
)
from sedate import replace_timezone


def at(hour: int, minute: int = 0, day: int = 10) -> datetime:
    return replace_timezone(datetime(2025, 3, day, hour, minute), 'UTC')


def test_cost_with_downtime() -> None:
    slots = [UtilTimeSlot(1, at(9), at(11), SlotStatus.COMPLETED)]
    downtime = [DowntimeEntry(30, 'Laser tube replaced')]

    cost = calculate_cost(slots, downtime, 5)

    assert cost.total_minutes == 120
    assert cost.downtime_minutes == 30
    assert cost.effective_minutes == 90
    assert cost.original_cost == 600
    assert cost.adjusted_cost == 450
    assert cost.deduction == 150


def test_effective_minutes_are_never_negative() -> None:
    slots = [UtilTimeSlot(1, at(9), at(10), SlotStatus.COMPLETED)]
    downtime = [DowntimeEntry(45), DowntimeEntry(45)]

    cost = calculate_cost(slots, downtime, Decimal('2.5'))

    assert cost.effective_minutes == 0
    assert cost.adjusted_cost == 0
    assert cost.deduction == 150


def test_cancelled_and_incomplete_slots_count_zero() -> None:
    slots = [
        UtilTimeSlot(1, at(9), at(10), SlotStatus.COMPLETED),
        UtilTimeSlot(2, at(9, day=11), at(12, day=11), SlotStatus.CANCELLED),
        UtilTimeSlot(3, at(9, day=12), None, SlotStatus.COMPLETED),
    ]

    cost = calculate_cost(slots, [], 1)

    assert cost.total_minutes == 60
    assert cost.incomplete == (3, )


def test_status_is_monotonic() -> None:
    slot = UtilTimeSlot(1, at(9), at(10))

    completed = change_status(slot, SlotStatus.COMPLETED)
    assert completed.status is SlotStatus.COMPLETED
    assert change_status(completed, SlotStatus.COMPLETED) is completed

    with pytest.raises(errors.InvalidStatusTransition):
        change_status(completed, SlotStatus.ONGOING)

    cancelled = change_status(slot, SlotStatus.CANCELLED)

    with pytest.raises(errors.InvalidStatusTransition):
        change_status(cancelled, SlotStatus.COMPLETED)


def test_cancelled_slots_are_frozen() -> None:
    slot = UtilTimeSlot(1, at(9), at(10), SlotStatus.CANCELLED)

    with pytest.raises(errors.FrozenTimeSlot):
        edit_slot_time(slot, at(8), at(10))

    slot = edit_slot_time(slot._replace(status=SlotStatus.ONGOING),
                          at(8), at(10))
    assert slot.start == at(8)

    with pytest.raises(errors.EndBeforeStart):
        edit_slot_time(slot, at(10), at(8))


def test_finalize_requires_finished_slots() -> None:
    slots = (
        UtilTimeSlot(1, at(9), at(10), SlotStatus.COMPLETED),
        UtilTimeSlot(2, at(9, day=11), at(10, day=11), SlotStatus.ONGOING),
        UtilTimeSlot(3, at(9, day=12), at(10, day=12), SlotStatus.CANCELLED),
    )

    with pytest.raises(errors.UnfinishedTimeSlots) as e:
        finalize(slots, [], 1)

    assert e.value.count == 1

    slots = mark_all_completed(slots)

    assert [s.status for s in slots] == [
        SlotStatus.COMPLETED,
        SlotStatus.COMPLETED,
        SlotStatus.CANCELLED
    ]

    cost = finalize(slots, [], 1)
    assert cost.total_minutes == 120


def test_finalize_requires_times() -> None:
    slots = (UtilTimeSlot(1, at(9), None, SlotStatus.COMPLETED), )

    with pytest.raises(errors.MissingTimeField):
        finalize(slots, [], 1)


def test_replace_time_of_day() -> None:
    value = replace_timezone(datetime(2025, 3, 10, 9), 'Europe/Zurich')
    changed = replace_time_of_day(value, time(14, 30), 'Europe/Zurich')

    assert changed.date() == value.date()
    assert (changed.hour, changed.minute) == (14, 30)

    fallback = replace_time_of_day(None, time(8), 'UTC', fallback=at(12))
    assert fallback == at(8)


def test_parse_machines() -> None:
    assert parse_machines('Laser Cutter:2, 3D Printer') == [
        ('Laser Cutter', 2),
        ('3D Printer', 1)
    ]
    assert parse_machines('Mill:x, ,') == [('Mill', 1)]
    assert parse_machines(None) == []


def test_breakdown() -> None:
    charges = [
        ServiceCharge('Laser Cutting', ('Laser A', ), Decimal(600), 120),
        ServiceCharge('3D Printing', ('Printer', ), Decimal(100)),
    ]
    usages = [
        MachineUsage('Laser A', 'Laser Cutting', (DowntimeEntry(30), )),
        MachineUsage('Laser B', 'Laser Cutting', (DowntimeEntry(60), )),
        MachineUsage('Printer', '3D Printing', (DowntimeEntry(600), )),
    ]

    laser, printer = breakdown(charges, usages)

    assert laser.downtime_minutes == 30
    assert laser.rate_per_minute == 5
    assert laser.adjusted_cost == 450
    assert laser.deduction == 150

    # billed by the hour, capped at zero
    assert printer.downtime_minutes == 600
    assert printer.adjusted_cost == 0

    total = totals([laser, printer])
    assert total.downtime_minutes == 630
    assert total.original_cost == 700
    assert total.adjusted_cost == 450
    assert total.deduction == 250


def test_discrepancy() -> None:
    assert not has_discrepancy(Decimal('450.00'), Decimal(450))
    assert not has_discrepancy(450.005, 450)
    assert has_discrepancy(Decimal('451'), Decimal('450'))
    assert not has_discrepancy(None, 450)
    assert not has_discrepancy(451, 450, tolerance=5)
