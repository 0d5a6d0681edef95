""" Drives a reservation request from the first picked date to its
submission.

Every interaction of the requester is an action. :func:`reduce` applies an
action to a request and returns the new request, the old one is never
changed. The :class:`Planner` ties this to a context and a source of
availability data.

"""
from __future__ import annotations

import logging

from labres import batch
from labres import selection
from labres import synced
from labres.availability import MachineAvailability
from labres.context.core import ContextServicesMixin
from labres.modules import errors
from labres.modules import events
from labres.modules import utils
from labres.selection import MAX_DATES, ReservationRequest, SelectionRules
from labres.snapshot import load_snapshot


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import date, time
    from typing_extensions import TypeAlias

    from labres.availability import AvailabilityCalculator
    from labres.context.core import Context
    from labres.snapshot import ReservationSink, ReservationSource, Snapshot
    from labres.synced import TimeField


log = logging.getLogger('labres')


class ToggleDate(NamedTuple):
    day: date


class RemoveDate(NamedTuple):
    day: date


class SetSyncMode(NamedTuple):
    enabled: bool


class SetUnifiedTime(NamedTuple):
    field: TimeField
    value: time | None


class SetDayTime(NamedTuple):
    day: date
    field: TimeField
    value: time | None


class ApplyTimeWindow(NamedTuple):
    start: time
    end: time


class ApplyMachineQuantity(NamedTuple):
    quantity: int


class SetDayQuantity(NamedTuple):
    day: date
    quantity: int


class RefreshAvailability(NamedTuple):
    pass


if TYPE_CHECKING:
    Action: TypeAlias = (
        'ToggleDate | RemoveDate | SetSyncMode | SetUnifiedTime | SetDayTime'
        ' | ApplyTimeWindow | ApplyMachineQuantity | SetDayQuantity'
        ' | RefreshAvailability'
    )


def reduce(
    request: ReservationRequest,
    action: Action,
    rules: SelectionRules
) -> ReservationRequest:
    """ Returns the request resulting from the given action. """

    if isinstance(action, ToggleDate):
        return selection.toggle_date(request, action.day, rules).request

    if isinstance(action, RemoveDate):
        return selection.remove_date(request, action.day)

    if isinstance(action, SetSyncMode):
        return synced.set_sync_mode(request, action.enabled)

    if isinstance(action, SetUnifiedTime):
        return synced.set_unified_time(request, action.field, action.value)

    if isinstance(action, SetDayTime):
        return synced.set_day_time(
            request, action.day, action.field, action.value)

    if isinstance(action, ApplyTimeWindow):
        result = batch.apply_time_window(request, action.start, action.end)
        return result.request

    if isinstance(action, ApplyMachineQuantity):
        return batch.apply_machine_quantity(request, action.quantity)

    if isinstance(action, SetDayQuantity):
        return selection.set_day_quantity(request, action.day, action.quantity)

    if isinstance(action, RefreshAvailability):
        return selection.refresh_availability(request, rules)

    raise NotImplementedError(f'Unknown action: {action!r}')


def validate_request(
    request: ReservationRequest,
    max_dates: int = MAX_DATES
) -> list[errors.ValidationError]:
    """ Returns all problems which prevent the request from being submitted,
    an empty list if there are none.

    """
    problems: list[errors.ValidationError] = []

    if not request.days:
        problems.append(errors.NoDatesSelected())

    if len(request.days) > max_dates:
        problems.append(errors.TooManyDates(max_dates))

    for day in request.days:
        if day.start_time is None or day.end_time is None:
            problems.append(errors.MissingTimeField(day.day))
        elif day.end_time <= day.start_time:
            problems.append(errors.EndBeforeStart(day.day))

        if day.machine_quantity < 1:
            problems.append(errors.InvalidMachineQuantity(day.day))
        elif day.machine_quantity > day.max_machines:
            problems.append(errors.MachineQuantityExceeded(
                day.day, day.machine_quantity, day.max_machines))

    return problems


def assert_valid_request(
    request: ReservationRequest,
    max_dates: int = MAX_DATES
) -> None:
    problems = validate_request(request, max_dates)

    if problems:
        raise errors.RequestInvalid(problems)


class Planner(ContextServicesMixin):
    """ Holds the reservation request of a single requester for a single
    service, together with the availability of the months looked at.

    Availability is loaded one month at a time, when a date of that month
    is first looked at. :meth:`reload` throws away everything loaded so
    far, for example after another reservation has been made.

    """

    def __init__(
        self,
        context: Context,
        source: ReservationSource,
        service_id: int,
        timezone: str,
        request: ReservationRequest | None = None
    ):
        self.context = context
        self.source = source
        self.service_id = service_id
        self.timezone = timezone
        self.request = request or ReservationRequest(service_id=service_id)

        self.snapshots: dict[tuple[int, int], Snapshot] = {}
        self.calculators: dict[tuple[int, int], AvailabilityCalculator] = {}

    def snapshot(self, day: date) -> Snapshot:
        """ The snapshot of the month the given day is in. """

        key = (day.year, day.month)

        if key not in self.snapshots:
            start, end = utils.month_range(day)

            snapshot = load_snapshot(
                self.source, self.service_id, start, end, self.context)

            self.snapshots[key] = snapshot
            self.calculators[key] = snapshot.calculator(self.timezone)

        return self.snapshots[key]

    def availability(self, day: date) -> MachineAvailability:
        snapshot = self.snapshot(day)

        if not snapshot.is_complete:
            return MachineAvailability.unavailable(day)

        return self.calculators[(day.year, day.month)].on(day)

    def month(self, day: date) -> dict[date, MachineAvailability]:
        """ The availability of every day in the month of the given day. """
        self.snapshot(day)
        return self.calculators[(day.year, day.month)].month(day)

    def blocked(self) -> frozenset[date]:
        blocked: frozenset[date] = frozenset()

        for snapshot in self.snapshots.values():
            blocked |= snapshot.blocked

        return blocked

    @property
    def rules(self) -> SelectionRules:
        today = self.today(self.timezone)

        # make sure today's month (and the blocked dates) are known
        self.snapshot(today)

        return SelectionRules(
            today=today,
            availability=self.availability,
            blocked=self.blocked(),
            max_dates=self.context.get_setting('max_dates'),
            horizon=self.context.get_setting('booking_horizon')
        )

    def is_selectable(self, day: date) -> bool:
        self.snapshot(day)
        return selection.is_selectable(self.request, day, self.rules)

    def reload(self) -> ReservationRequest:
        """ Loads the availability again and updates the selected days. """

        self.snapshots.clear()
        self.calculators.clear()

        return self.dispatch(RefreshAvailability())

    def dispatch(self, action: Action) -> ReservationRequest:
        """ Applies the given action to the request of this planner and
        returns the new request.

        """
        if isinstance(action, ToggleDate):
            self.snapshot(action.day)
            rules = self.rules

            result = selection.toggle_date(self.request, action.day, rules)

            if not result.accepted:
                assert result.reason is not None
                events.on_toggle_rejected(
                    self.context, action.day, result.reason)

            self.request = result.request
            return self.request

        self.request = reduce(self.request, action, self.rules)
        return self.request

    def validate(self) -> list[errors.ValidationError]:
        return validate_request(
            self.request, self.context.get_setting('max_dates'))

    def submit(self, sink: ReservationSink) -> int:
        """ Hands the request to the given sink, returning the id of the
        new reservation.

        """
        assert_valid_request(
            self.request, self.context.get_setting('max_dates'))

        return sink.submit_reservation(self.request)


def new_planner(
    context: Context | str,
    source: ReservationSource,
    service_id: int,
    timezone: str,
    request: ReservationRequest | None = None
) -> Planner:
    """ Creates a planner for the given service.

    The context may be given by name, in which case it has to exist in
    the default registry.

    """
    if isinstance(context, str):
        import labres
        context = labres.registry.get_context(context)

    return Planner(context, source, service_id, timezone, request)
