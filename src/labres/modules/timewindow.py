""" Generates, validates and formats the time-of-day values a requester
may pick for a reservation.

Machines can be reserved during two sessions a day, the morning
(08:00 - 12:00) and the afternoon (13:00 - 17:00). Reservations start and
end on a raster of 15 minutes. A reservation may span both sessions, in
which case the lunch break is part of it.

"""
from __future__ import annotations

import enum
import re

from datetime import datetime, time, timedelta

from labres.modules import errors


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import date


RASTER = timedelta(minutes=15)

MORNING_START = time(8, 0)
MORNING_END = time(12, 0)
AFTERNOON_START = time(13, 0)
AFTERNOON_END = time(17, 0)


class Session(enum.Enum):
    MORNING = 'morning'
    AFTERNOON = 'afternoon'
    BOTH = 'both'

    @classmethod
    def from_availability(
        cls,
        morning: bool,
        afternoon: bool
    ) -> Session | None:
        """ Returns the session a day with the given availability offers,
        None if neither session is available.

        """
        if morning and afternoon:
            return cls.BOTH
        if morning:
            return cls.MORNING
        if afternoon:
            return cls.AFTERNOON
        return None

    @property
    def includes_morning(self) -> bool:
        return self in (Session.MORNING, Session.BOTH)

    @property
    def includes_afternoon(self) -> bool:
        return self in (Session.AFTERNOON, Session.BOTH)


def _raster(start: time, end: time) -> list[time]:
    """ All raster points from start up to (and including) end. """
    anchor = datetime(2000, 1, 1)
    current = datetime.combine(anchor, start)
    last = datetime.combine(anchor, end)

    result = []
    while current <= last:
        result.append(current.time())
        current += RASTER

    return result


def _minus_raster(value: time) -> time:
    return (datetime.combine(datetime(2000, 1, 1), value) - RASTER).time()


def generate_start_options(session: Session = Session.BOTH) -> list[time]:
    """ Returns the ordered start times for the given session.

    A reservation can't start at the very end of a session, so the last
    option of the morning is 11:45 and the last of the afternoon 16:45.

    """
    options = []

    if session.includes_morning:
        options.extend(_raster(MORNING_START, _minus_raster(MORNING_END)))

    if session.includes_afternoon:
        options.extend(
            _raster(AFTERNOON_START, _minus_raster(AFTERNOON_END)))

    return options


def generate_end_options(
    start: time | None,
    session: Session = Session.BOTH
) -> list[time]:
    """ Returns the ordered end times available for the given start.

    The options are strictly after the start and stop at 17:00. If only the
    morning is available, the options stop at 12:00. If only the afternoon
    is available, no morning times are offered.

    Without a start there are no end options.

    """
    if start is None:
        return []

    first = (datetime.combine(datetime(2000, 1, 1), start) + RASTER).time()

    # the start might not be on the raster (e.g. an edited time)
    if first.minute % 15:
        first = first.replace(minute=first.minute - first.minute % 15)

    if start >= AFTERNOON_END:
        return []

    options = _raster(first, AFTERNOON_END)

    if session is Session.MORNING:
        options = [o for o in options if o <= MORNING_END]
    elif session is Session.AFTERNOON:
        options = [o for o in options if o >= AFTERNOON_START]

    return [o for o in options if o > start]


def check_pair(
    start: time | None,
    end: time | None,
    day: date | None = None
) -> errors.ValidationError | None:
    """ Returns the validation error of the given pair or None. """

    if start is None or end is None:
        return errors.MissingTimeField(day)

    if end <= start:
        return errors.EndBeforeStart(day)

    return None


def validate_pair(
    start: time | None,
    end: time | None,
    day: date | None = None
) -> None:
    """ Raises a :class:`labres.modules.errors.ValidationError` if the given
    pair is incomplete or if the end is not after the start.

    """
    error = check_pair(start, end, day)

    if error is not None:
        raise error


def required_sessions(start: time, end: time) -> tuple[bool, bool]:
    """ Returns whether the given window needs the morning and/or the
    afternoon session. Windows ending during the lunch break only need the
    morning, the same way existing reservations are counted.

    """
    return start.hour < MORNING_END.hour, end.hour >= AFTERNOON_START.hour


display_expr = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$')
storage_expr = re.compile(r'^\s*(\d{1,2}):(\d{2})(?::00)?\s*$')


def format_for_display(value: time) -> str:
    """ Formats the time like '9:15 AM'. """

    hour = value.hour % 12 or 12
    period = 'PM' if value.hour >= 12 else 'AM'

    return f'{hour}:{value.minute:02d} {period}'


def parse_display(text: str) -> time:
    """ Parses the output of :func:`format_for_display`. Zero-padded hours
    ('09:15 AM') are accepted as well.

    """
    match = display_expr.match(text)

    if not match:
        raise ValueError(f'Invalid time: {text!r}')

    hour, minute = int(match.group(1)), int(match.group(2))
    period = match.group(3).upper()

    if not 1 <= hour <= 12:
        raise ValueError(f'Invalid hour: {text!r}')

    if period == 'AM':
        hour = 0 if hour == 12 else hour
    else:
        hour = hour if hour == 12 else hour + 12

    return time(hour, minute)


def format_for_storage(value: time) -> str:
    """ Formats the time like '09:15'. """
    return value.strftime('%H:%M')


def parse_storage(text: str) -> time:
    """ Parses '09:15' as well as '9:15'. """

    match = storage_expr.match(text)

    if not match:
        raise ValueError(f'Invalid time: {text!r}')

    return time(int(match.group(1)), int(match.group(2)))
