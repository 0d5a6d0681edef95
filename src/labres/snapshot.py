""" Loads everything the availability of a service depends on.

A snapshot consists of the capacity of a service, the reservations made for
it and the blocked dates. Each of them is fetched on its own. If a fetch
fails, the failure is reported and the snapshot degrades to zero capacity or
empty lists, so a failed fetch never makes a date look available.

"""
from __future__ import annotations

import labres
import logging

from labres.availability import AvailabilityCalculator
from labres.modules import errors
from labres.modules import events


from typing import Any
from typing import NamedTuple
from typing import Protocol
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Collection
    from collections.abc import Sequence
    from datetime import date
    from decimal import Decimal
    from sedate.types import TzInfoOrName

    from labres.availability import ReservationRecord
    from labres.context.core import Context
    from labres.selection import ReservationRequest
    from labres.usage import DowntimeEntry, UtilTimeSlot


log = logging.getLogger('labres')


class ReservationSource(Protocol):
    """ Provides the records availability and costs are calculated from. """

    def list_reservations(
        self,
        service_id: int,
        start: date,
        end: date
    ) -> Sequence[ReservationRecord]: ...

    def list_blocked_dates(self) -> Collection[date]: ...

    def get_service_capacity(self, service_id: int) -> int: ...

    def list_downtime(
        self,
        machine_utilization_ids: Collection[int]
    ) -> Sequence[DowntimeEntry]: ...


class ReservationSink(Protocol):
    """ Stores submitted reservations and their recorded usage. """

    def submit_reservation(self, request: ReservationRequest) -> int: ...

    def update_usage(
        self,
        reservation_id: int,
        slots: Sequence[UtilTimeSlot],
        adjusted_cost: Decimal,
        total_duration: int
    ) -> None: ...


class Snapshot(NamedTuple):
    service_id: int
    start: date
    end: date
    capacity: int
    reservations: tuple[ReservationRecord, ...]
    blocked: frozenset[date]

    #: the fetches which failed, the values above contain the fallbacks
    #: in their place
    failures: tuple[errors.FetchError, ...] = ()

    @property
    def is_complete(self) -> bool:
        return not self.failures

    def calculator(
        self,
        timezone: TzInfoOrName = 'UTC'
    ) -> AvailabilityCalculator:
        return AvailabilityCalculator(
            self.capacity,
            self.reservations,
            timezone=timezone
        )


def load_snapshot(
    source: ReservationSource,
    service_id: int,
    start: date,
    end: date,
    context: Context | None = None
) -> Snapshot:
    """ Fetches the capacity, the reservations and the blocked dates of the
    given service and date range.

    Failed fetches are logged and passed to
    :data:`labres.modules.events.on_fetch_failed`. They don't stop the
    other fetches.

    """
    context = context or labres.registry.current_context
    failures: list[errors.FetchError] = []

    def fetch(name: str, load: Callable[[], Any], fallback: Any) -> Any:
        try:
            return load()
        except Exception as e:
            error = errors.FetchError(name, e)
            log.warning(f'Failed to fetch {name} of service {service_id}: {e}')
            events.on_fetch_failed(context, name, error)
            failures.append(error)
            return fallback

    capacity = fetch(
        'capacity',
        lambda: source.get_service_capacity(service_id),
        0
    )
    reservations = fetch(
        'reservations',
        lambda: source.list_reservations(service_id, start, end),
        ()
    )
    blocked = fetch(
        'blocked dates',
        source.list_blocked_dates,
        ()
    )

    return Snapshot(
        service_id=service_id,
        start=start,
        end=end,
        capacity=capacity,
        reservations=tuple(reservations),
        blocked=frozenset(blocked),
        failures=tuple(failures)
    )
