from __future__ import annotations

import logging
import sedate

from datetime import datetime, time, timedelta
from sqlalchemy.orm import selectinload
from sqlalchemy.sql import or_

from labres.availability import accommodates, calculate_availability
from labres.context.core import ContextServicesMixin
from labres.db.models import ORMBase, BlockedDate, DownTime, Machine
from labres.db.models import MachineUtilization, Reservation, Service
from labres.db.models import UtilTime
from labres.modules import errors
from labres.modules import events
from labres.modules import utils
from labres import usage
from labres.workflow import assert_valid_request


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Collection
    from collections.abc import Sequence
    from datetime import date
    from decimal import Decimal
    from sqlalchemy.orm import Query
    from uuid import UUID

    from labres.availability import MachineAvailability, ReservationRecord
    from labres.context.core import Context
    from labres.db.models.reservation import ReservationStatus
    from labres.selection import ReservationRequest


log = logging.getLogger('labres')


class Ledger(ContextServicesMixin):
    """ Stores services, reservations and their usage in a SQL database.

    The ledger provides everything the planning of a reservation needs
    (see :class:`labres.snapshot.ReservationSource`) and accepts the
    submitted reservations and the recorded usage in return
    (see :class:`labres.snapshot.ReservationSink`).

    Nothing is committed by the ledger itself, that's up to the caller.

    """

    def __init__(self, context: Context, name: str, timezone: str):
        """ Initializes a new ledger.

        :context:
            The :class:`labres.context.core.Context` this ledger should
            operate on.

        :name:
            The name of the ledger. Together with the name of the context
            it defines which records belong to the ledger. Use the same
            names to access the records again later.

        :timezone:
            The timezone the machines are in. It defines when a day starts
            and when the morning and afternoon sessions are. Naive times
            passed to the ledger are assumed to be in this timezone.

        """
        assert isinstance(timezone, str)

        self.context = context
        self.name = name
        self.timezone = timezone

    @property
    def resource(self) -> UUID:
        """ The uuid of this ledger, generated from its name and the name
        of the context using :ref:`settings.uuid_namespace`.

        """
        return self.generate_uuid(self.name)

    def setup_database(self) -> None:
        """ Creates the tables required by labres. Calling it more than
        once does no harm.

        """
        ORMBase.metadata.create_all(self.session.bind)

    def managed_services(self) -> Query[Service]:
        query = self.session.query(Service)
        query = query.filter(Service.resource == self.resource)

        return query

    def managed_machines(self) -> Query[Machine]:
        services = self.managed_services().with_entities(Service.id)

        query = self.session.query(Machine)
        query = query.filter(Machine.service_id.in_(services))

        return query

    def managed_reservations(self) -> Query[Reservation]:
        query = self.session.query(Reservation)
        query = query.filter(Reservation.resource == self.resource)

        return query

    def managed_time_slots(self) -> Query[UtilTime]:
        ids = self.managed_reservations().with_entities(Reservation.id)

        query = self.session.query(UtilTime)
        query = query.filter(UtilTime.reservation_id.in_(ids))

        return query

    def managed_utilizations(self) -> Query[MachineUtilization]:
        ids = self.managed_reservations().with_entities(Reservation.id)

        query = self.session.query(MachineUtilization)
        query = query.filter(MachineUtilization.reservation_id.in_(ids))

        return query

    def managed_downtime(self) -> Query[DownTime]:
        ids = self.managed_utilizations().with_entities(MachineUtilization.id)

        query = self.session.query(DownTime)
        query = query.filter(DownTime.utilization_id.in_(ids))

        return query

    def managed_blocked_dates(self) -> Query[BlockedDate]:
        query = self.session.query(BlockedDate)
        query = query.filter(BlockedDate.resource == self.resource)

        return query

    def extinguish_managed_records(self) -> None:
        """ WARNING:
        Completely removes any trace of the records managed by this ledger.
        That means all services, reservations, recorded usage and blocked
        dates!

        """
        self.managed_downtime().delete('fetch')
        self.managed_utilizations().delete('fetch')
        self.managed_time_slots().delete('fetch')
        self.managed_reservations().delete('fetch')
        self.managed_machines().delete('fetch')
        self.managed_services().delete('fetch')
        self.managed_blocked_dates().delete('fetch')

    def add_service(
        self,
        name: str,
        cost: Decimal | float | int | None = None,
        minutes: int | None = None
    ) -> Service:
        """ Adds a new service, billed with the given cost per number of
        minutes (per hour if no minutes are given).

        """
        service = Service()
        service.resource = self.resource
        service.name = name
        service.cost = None if cost is None else utils.as_decimal(cost)
        service.minutes = minutes

        self.session.add(service)
        self.session.flush()

        return service

    def add_machine(
        self,
        service_id: int,
        name: str,
        number: int = 1,
        is_available: bool = True
    ) -> Machine:

        machine = Machine()
        machine.name = name
        machine.number = number
        machine.is_available = is_available

        self.service_by_id(service_id).machines.append(machine)
        self.session.flush()

        return machine

    def service_by_id(self, id: int) -> Service:
        service = self.managed_services().filter(Service.id == id).first()

        if service is None:
            raise errors.UnknownServiceId(id)

        return service

    def reservation_by_id(self, id: int) -> Reservation:
        query = self.managed_reservations().filter(Reservation.id == id)
        reservation = query.first()

        if reservation is None:
            raise errors.UnknownReservation(id)

        return reservation

    def _day_bounds(self, start: date, end: date) -> tuple[datetime, datetime]:
        """ The first moment of start and the first moment after end, in
        UTC.

        """
        return (
            sedate.standardize_date(
                datetime.combine(start, time(0)), self.timezone),
            sedate.standardize_date(
                datetime.combine(end + timedelta(days=1), time(0)),
                self.timezone
            )
        )

    def list_reservations(
        self,
        service_id: int,
        start: date,
        end: date
    ) -> list[ReservationRecord]:
        """ Returns the reservations of the given service which occupy
        machines between start and end (both included).

        """
        lower, upper = self._day_bounds(start, end)

        in_range = self.session.query(UtilTime.reservation_id)
        in_range = in_range.filter(UtilTime.start >= lower)
        in_range = in_range.filter(UtilTime.start < upper)

        query = self.managed_reservations()
        query = query.filter(Reservation.service_id == service_id)
        query = query.filter(Reservation.status.in_(
            self.context.get_setting('counted_statuses')
        ))
        query = query.filter(or_(
            Reservation.id.in_(in_range),
            Reservation.day.between(start, end)
        ))
        query = query.options(selectinload(Reservation.time_slots))
        query = query.order_by(Reservation.id)

        return [reservation.record() for reservation in query]

    def list_blocked_dates(self) -> list[date]:
        query = self.managed_blocked_dates().with_entities(BlockedDate.day)
        query = query.order_by(BlockedDate.day)

        return [day for day, in query]

    def get_service_capacity(self, service_id: int) -> int:
        """ The number of machines of the service which may be used at the
        same time. Machines which are not available don't count.

        """
        return self.service_by_id(service_id).capacity

    def list_downtime(
        self,
        machine_utilization_ids: Collection[int]
    ) -> list[usage.DowntimeEntry]:

        if not machine_utilization_ids:
            return []

        query = self.managed_downtime()
        query = query.filter(DownTime.utilization_id.in_(
            machine_utilization_ids
        ))
        query = query.order_by(DownTime.id)

        return [downtime.entry() for downtime in query]

    def availability(
        self,
        service_id: int,
        start: date,
        end: date
    ) -> dict[date, MachineAvailability]:
        """ The availability of the given service between start and end,
        as it is right now in the database.

        """
        return calculate_availability(
            start, end,
            capacity=self.get_service_capacity(service_id),
            reservations=self.list_reservations(service_id, start, end),
            timezone=self.timezone
        )

    def submit_reservation(
        self,
        request: ReservationRequest,
        comments: str | None = None
    ) -> int:
        """ Stores the given request as a pending reservation and returns
        the id of the new reservation.

        The availability the request was put together with may be outdated
        by now. It is therefore checked again, within the same transaction
        the reservation is written in. If another reservation got there
        first, :class:`labres.modules.errors.MachinesUnavailable` is raised
        and nothing is written.

        """
        assert_valid_request(request, self.context.get_setting('max_dates'))

        if request.service_id is None:
            raise errors.UnknownServiceId(None)

        service = self.service_by_id(request.service_id)

        first, last = request.days[0].day, request.days[-1].day
        available = self.availability(service.id, first, last)

        taken = []
        for selection in request.days:
            assert selection.start_time is not None
            assert selection.end_time is not None

            if not accommodates(
                available[selection.day],
                selection.start_time,
                selection.end_time,
                selection.machine_quantity
            ):
                taken.append(selection.day)

        if taken:
            raise errors.MachinesUnavailable(taken)

        reservation = Reservation()
        reservation.resource = self.resource
        reservation.service = service
        reservation.status = 'Pending'
        reservation.machines = ', '.join(
            m.name for m in service.available_machines
        )
        reservation.quantity = max(d.machine_quantity for d in request.days)
        reservation.day = first
        reservation.comments = comments

        for day_num, selection in enumerate(request.days, start=1):
            assert selection.start_time is not None
            assert selection.end_time is not None

            slot = UtilTime()
            slot.day_num = day_num
            slot.start = sedate.replace_timezone(
                datetime.combine(selection.day, selection.start_time),
                self.timezone
            )
            slot.end = sedate.replace_timezone(
                datetime.combine(selection.day, selection.end_time),
                self.timezone
            )
            slot.status = usage.SlotStatus.ONGOING

            reservation.time_slots.append(slot)

        self.session.add(reservation)
        self.session.flush()

        log.info(
            f'Reservation {reservation.id} submitted for {service.name} '
            f'on {len(request.days)} day(s)'
        )

        events.on_reservation_submitted(self.context, reservation)

        return reservation.id

    def change_status(
        self,
        reservation_id: int,
        status: ReservationStatus
    ) -> None:
        reservation = self.reservation_by_id(reservation_id)
        reservation.status = status

    def usage_slots(
        self,
        reservation_id: int
    ) -> tuple[usage.UtilTimeSlot, ...]:

        reservation = self.reservation_by_id(reservation_id)
        return tuple(slot.as_slot() for slot in reservation.time_slots)

    def add_utilization(
        self,
        reservation_id: int,
        machine: str,
        service_name: str | None = None
    ) -> MachineUtilization:
        """ Records that the given machine was used for the reservation. The
        service defaults to the service of the reservation.

        """
        reservation = self.reservation_by_id(reservation_id)

        utilization = MachineUtilization()
        utilization.machine = machine
        utilization.service_name = service_name or reservation.service.name

        reservation.utilizations.append(utilization)
        self.session.flush()

        return utilization

    def log_downtime(
        self,
        utilization_id: int,
        duration_minutes: int,
        cause: str | None = None
    ) -> DownTime:
        query = self.managed_utilizations()
        query = query.filter(MachineUtilization.id == utilization_id)
        utilization = query.one()

        downtime = DownTime()
        downtime.duration_minutes = duration_minutes
        downtime.cause = cause

        utilization.downtime.append(downtime)
        self.session.flush()

        return downtime

    def reservation_downtime(
        self,
        reservation_id: int
    ) -> list[usage.DowntimeEntry]:
        """ All downtime logged for the machines used by a reservation. """

        reservation = self.reservation_by_id(reservation_id)
        return self.list_downtime([u.id for u in reservation.utilizations])

    def update_usage(
        self,
        reservation_id: int,
        slots: Sequence[usage.UtilTimeSlot],
        adjusted_cost: Decimal | float | int,
        total_duration: int,
        downtime_minutes: int = 0,
        deduction: Decimal | float | int | None = None
    ) -> None:
        """ Writes the recorded times and statuses of the given slots and
        the new total of the reservation.

        If there was downtime, a note about it is added to the comments of
        the reservation.

        Completed and cancelled days can't go back to ongoing and the times
        of cancelled days are frozen. Such changes raise
        :class:`labres.modules.errors.StateInvariantViolation` before
        anything is written.

        """
        reservation = self.reservation_by_id(reservation_id)
        records = {r.day_num: r for r in reservation.time_slots}

        changes = []

        for slot in slots:
            record = records.get(slot.day_num)

            if record is None:
                raise errors.StateInvariantViolation(
                    f'Reservation {reservation_id} has no day {slot.day_num}'
                )

            updated = record.as_slot()

            if (slot.start, slot.end) != (updated.start, updated.end):
                updated = usage.edit_slot_time(updated, slot.start, slot.end)

            changes.append(
                (record, usage.change_status(updated, slot.status))
            )

        for record, updated in changes:
            record.start = updated.start
            record.end = updated.end
            record.status = updated.status

        reservation.total_amount_due = utils.as_decimal(adjusted_cost)
        reservation.total_minutes = total_duration

        if downtime_minutes > 0:
            today = self.today(self.timezone)
            note = (
                f'[{today:%Y-%m-%d}] Downtime adjustment: {downtime_minutes} '
                'minutes'
            )

            if deduction is not None:
                deducted = utils.as_decimal(deduction)
                note += f' resulted in {deducted:.2f} deduction.'
            else:
                note += '.'

            reservation.add_comment(note)

        self.session.flush()

        log.info(
            f'Usage of reservation {reservation_id} updated: '
            f'{total_duration} minutes, total {adjusted_cost}'
        )

    def record_usage(
        self,
        reservation_id: int,
        slots: Sequence[usage.UtilTimeSlot]
    ) -> usage.CostCalculation:
        """ Finalizes the given slots of a reservation, deducting all downtime
        logged for it, and stores the result.

        Fails with :class:`labres.modules.errors.UnfinishedTimeSlots` if a
        slot is still ongoing, in which case nothing is stored.

        """
        reservation = self.reservation_by_id(reservation_id)

        cost = usage.finalize(
            slots,
            self.reservation_downtime(reservation_id),
            reservation.service.rate_per_minute
        )

        self.update_usage(
            reservation_id,
            slots,
            adjusted_cost=cost.adjusted_cost,
            total_duration=cost.effective_minutes,
            downtime_minutes=cost.downtime_minutes,
            deduction=cost.deduction
        )

        events.on_usage_updated(self.context, reservation, cost)

        return cost

    def breakdown(
        self,
        reservation_id: int
    ) -> list[usage.ServiceAdjustment]:
        """ The cost of the recorded usage of the reservation, with the
        downtime of its machines deducted.

        """
        reservation = self.reservation_by_id(reservation_id)
        service = reservation.service

        recorded = usage.calculate_cost(
            (slot.as_slot() for slot in reservation.time_slots),
            (),
            service.rate_per_minute
        )

        charge = usage.ServiceCharge(
            service=service.name,
            machines=reservation.machine_names,
            cost=recorded.original_cost,
            minutes=recorded.total_minutes or None
        )

        return usage.breakdown(
            [charge],
            [u.usage() for u in reservation.utilizations]
        )

    def has_discrepancy(self, reservation_id: int) -> bool:
        """ True if the stored total of the reservation differs from the
        recalculated one.

        """
        reservation = self.reservation_by_id(reservation_id)
        totals = usage.totals(self.breakdown(reservation_id))

        return usage.has_discrepancy(
            reservation.total_amount_due,
            totals.adjusted_cost,
            self.context.get_setting('discrepancy_tolerance')
        )

    def add_blocked_date(
        self,
        day: date,
        reason: str | None = None
    ) -> BlockedDate:
        """ Blocks the given date. Blocking a date twice does nothing. """

        existing = self.managed_blocked_dates().filter(
            BlockedDate.day == day
        ).first()

        if existing is not None:
            return existing

        blocked = BlockedDate()
        blocked.resource = self.resource
        blocked.day = day
        blocked.reason = reason

        self.session.add(blocked)
        self.session.flush()

        return blocked

    def remove_blocked_date(self, day: date) -> None:
        query = self.managed_blocked_dates()
        query = query.filter(BlockedDate.day == day)
        query.delete('fetch')
