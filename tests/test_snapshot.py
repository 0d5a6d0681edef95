from __future__ import annotations

from datetime import date
from labres.availability import ReservationRecord
from labres.modules import errors
from labres.modules import events
from labres.snapshot import load_snapshot


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from labres.context.core import Context


class BrokenSource:
    """ Fails to deliver everything but the blocked dates. """

    def list_reservations(
        self,
        service_id: int,
        start: date,
        end: date
    ) -> list[ReservationRecord]:
        raise ConnectionError('database went away')

    def list_blocked_dates(self) -> list[date]:
        return [date(2025, 3, 10)]

    def get_service_capacity(self, service_id: int) -> int:
        raise ConnectionError('database went away')

    def list_downtime(self, ids: object) -> list[object]:
        return []


class WorkingSource(BrokenSource):

    def list_reservations(
        self,
        service_id: int,
        start: date,
        end: date
    ) -> list[ReservationRecord]:
        return [ReservationRecord(quantity=1, day=date(2025, 3, 11))]

    def get_service_capacity(self, service_id: int) -> int:
        return 2


def test_failed_fetches_degrade(context: Context) -> None:
    failed = []

    def on_fetch_failed(
        context: Context,
        source: str,
        error: errors.FetchError
    ) -> None:
        failed.append((source, error))

    events.on_fetch_failed.append(on_fetch_failed)

    snapshot = load_snapshot(
        BrokenSource(), 1, date(2025, 3, 1), date(2025, 3, 31), context)

    assert not snapshot.is_complete
    assert snapshot.capacity == 0
    assert snapshot.reservations == ()

    # the fetch which did work is kept
    assert snapshot.blocked == frozenset((date(2025, 3, 10), ))

    assert [source for source, _ in failed] == ['capacity', 'reservations']
    assert isinstance(failed[0][1].original, ConnectionError)
    assert snapshot.failures == tuple(error for _, error in failed)

    # nothing is available with a failed snapshot
    availability = snapshot.calculator().on(date(2025, 3, 12))
    assert not availability.is_selectable()


def test_snapshot(context: Context) -> None:
    snapshot = load_snapshot(
        WorkingSource(), 1, date(2025, 3, 1), date(2025, 3, 31), context)

    assert snapshot.is_complete
    assert snapshot.capacity == 2

    calculator = snapshot.calculator('Europe/Zurich')
    assert calculator.on(date(2025, 3, 11)).morning == 1
    assert calculator.on(date(2025, 3, 12)).morning == 2
