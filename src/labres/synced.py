""" Switches a reservation request between one unified time window for all
days and independent time windows per day.

While the times are in sync, the unified window is the single source of
truth: every change to it (or to any day) is written to all days. Out of
sync, each day keeps its own window. Switching modes never throws away
times which were already entered.

"""
from __future__ import annotations

from labres.modules import errors
from labres.modules.timewindow import generate_end_options, Session


from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import date, time
    from typing_extensions import TypeAlias

    from labres.selection import ReservationRequest

    TimeField: TypeAlias = Literal['start_time', 'end_time']


FIELDS = ('start_time', 'end_time')


def _assert_field(field: str) -> None:
    if field not in FIELDS:
        raise errors.StateInvariantViolation(f'Unknown time field: {field}')


def _check_end(
    start: time | None,
    end: time | None,
    day: date | None = None
) -> None:
    if start is not None and end is not None and end <= start:
        raise errors.EndBeforeStart(day)


def set_sync_mode(
    request: ReservationRequest,
    enabled: bool
) -> ReservationRequest:
    """ Turns the synchronisation of times on or off.

    Turning it on adopts the times of the first day as unified times where
    no unified time has been set yet and then writes the unified times to
    all days.

    Turning it off keeps the unified times around, but they are no longer
    written to the days. Each day keeps the times it had.

    Fails with :class:`labres.modules.errors.EndBeforeStart` if the
    resulting window ends before it starts, the request stays as it is.

    """
    if not enabled:
        return request._replace(sync_times=False)

    start = request.unified_start_time
    end = request.unified_end_time

    if request.days:
        first = request.days[0]

        if start is None:
            start = first.start_time

        if end is None:
            end = first.end_time

    _check_end(start, end)

    return request._replace(
        sync_times=True,
        unified_start_time=start,
        unified_end_time=end,
        days=tuple(
            d._replace(start_time=start, end_time=end) for d in request.days
        )
    )


def set_unified_time(
    request: ReservationRequest,
    field: TimeField,
    value: time | None
) -> ReservationRequest:
    """ Changes the unified start or end time. Only the given field changes,
    changing the start does not clear the end.

    If the times are in sync, the change is written to all days.

    """
    _assert_field(field)

    if field == 'end_time':
        _check_end(request.unified_start_time, value)
        request = request._replace(unified_end_time=value)
    else:
        request = request._replace(unified_start_time=value)

    if not request.sync_times:
        return request

    return request._replace(
        days=tuple(d._replace(**{field: value}) for d in request.days)
    )


def set_day_time(
    request: ReservationRequest,
    day: date,
    field: TimeField,
    value: time | None
) -> ReservationRequest:
    """ Changes the start or end time of a single day.

    If the times are in sync this is the same as changing the unified time,
    the value ends up on all days.

    """
    _assert_field(field)

    if request.sync_times:
        return set_unified_time(request, field, value)

    selection = request.get_day(day)

    if selection is None:
        raise errors.StateInvariantViolation(f'{day} is not selected')

    if field == 'end_time':
        _check_end(selection.start_time, value, day)

    return request.with_day(selection._replace(**{field: value}))


def end_options(
    request: ReservationRequest,
    day: date | None = None
) -> list[time]:
    """ The end times to offer for the unified window (no day given) or
    for the window of the given day.

    """
    if day is None or request.sync_times:
        start = request.unified_start_time
        sessions = [d.session for d in request.days]

        # the unified window must fit all days
        session = Session.BOTH
        if sessions and all(s is Session.MORNING for s in sessions):
            session = Session.MORNING
        elif sessions and all(s is Session.AFTERNOON for s in sessions):
            session = Session.AFTERNOON

        return generate_end_options(start, session)

    selection = request.get_day(day)

    if selection is None:
        raise errors.StateInvariantViolation(f'{day} is not selected')

    return generate_end_options(
        selection.start_time,
        selection.session or Session.BOTH
    )
