""" Applies a time window or a machine quantity to all days of a request at
once.

"""
from __future__ import annotations

import logging

from labres.modules import errors
from labres.modules.timewindow import required_sessions, validate_pair


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import date, time

    from labres.selection import DaySelection, ReservationRequest


log = logging.getLogger('labres')


class BatchResult(NamedTuple):
    request: ReservationRequest

    #: the days which could not accommodate the batch and kept their values
    skipped: tuple[date, ...] = ()


def can_accommodate(selection: DaySelection, start: time, end: time) -> bool:
    """ True if the machine quantity of the given day is free during all
    sessions the window touches.

    """
    return selection.can_take(*required_sessions(start, end))


def apply_time_window(
    request: ReservationRequest,
    start: time,
    end: time
) -> BatchResult:
    """ Writes the given window to every day that can accommodate it.

    Days which can't are left untouched and reported in the result's
    ``skipped``. The window itself has to be valid.

    If the times are in sync, the window becomes the unified window as
    well. If it can't be applied to all days in that case, the request
    falls out of sync, as its days no longer share one window.

    """
    validate_pair(start, end)

    days = []
    skipped = []

    for selection in request.days:
        if can_accommodate(selection, start, end):
            days.append(selection._replace(start_time=start, end_time=end))
        else:
            days.append(selection)
            skipped.append(selection.day)

    if skipped:
        log.info(
            f'Time window {start:%H:%M}-{end:%H:%M} skipped on '
            + ', '.join(str(d) for d in skipped)
        )

    updated = request.with_days(days)

    if request.sync_times and len(skipped) < len(request.days):
        if skipped:
            updated = updated._replace(sync_times=False)
        else:
            updated = updated._replace(
                unified_start_time=start,
                unified_end_time=end
            )

    return BatchResult(updated, tuple(skipped))


def quantity_ceiling(request: ReservationRequest) -> int:
    """ The largest machine quantity every selected day can take. """

    if not request.days:
        return 0

    return min(d.max_machines for d in request.days)


def clamp_quantity(request: ReservationRequest, quantity: int) -> int:
    """ Restricts a batch quantity input to 1 up to the ceiling. If some
    day has no machines left at all, the ceiling is 0 and so is the
    result.

    """
    ceiling = quantity_ceiling(request)

    if ceiling < 1:
        return 0

    return min(max(1, quantity), ceiling)


def apply_machine_quantity(
    request: ReservationRequest,
    quantity: int
) -> ReservationRequest:
    """ Sets the machine quantity of every day, each day is clamped to the
    machines it has available.

    """
    if quantity < 1:
        raise errors.InvalidMachineQuantity()

    return request.with_days(
        d._replace(machine_quantity=min(quantity, d.max_machines))
        for d in request.days
    )
