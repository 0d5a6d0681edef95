from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import ForeignKey
from sqlalchemy.schema import Index
from uuid import UUID

from labres.availability import ReservationRecord, Timespan
from labres.db.models.base import ORMBase
from labres.db.models.service import Service
from labres.db.models.timestamp import TimestampMixin
from labres.usage import SlotStatus, UtilTimeSlot


from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from typing_extensions import TypeAlias

    from labres.db.models.utilization import MachineUtilization


ReservationStatus: TypeAlias = Literal[
    'Pending', 'Approved', 'Ongoing', 'Completed', 'Rejected', 'Cancelled'
]

STATUSES: tuple[ReservationStatus, ...] = (
    'Pending', 'Approved', 'Ongoing', 'Completed', 'Rejected', 'Cancelled'
)


class Reservation(TimestampMixin, ORMBase):
    """ Describes a reservation of one or more machines of a service on up
    to a handful of days.

    Which statuses occupy machines is defined by
    :ref:`settings.counted_statuses`, by default all but rejected and
    cancelled reservations do.

    """

    __tablename__ = 'reservations'

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True
    )

    resource: Mapped[UUID]

    service_id: Mapped[int] = mapped_column(ForeignKey(Service.id))
    service: Mapped[Service] = relationship()

    status: Mapped[ReservationStatus] = mapped_column(
        types.Enum(*STATUSES, name='reservation_status'),
        default='Pending'
    )

    #: the names of the machines reserved, separated by commas
    machines: Mapped[str | None] = mapped_column(types.Text())

    #: the number of machines used at the same time
    quantity: Mapped[int] = mapped_column(default=1)

    #: the first day of the reservation
    day: Mapped[date]

    total_amount_due: Mapped[Decimal | None]
    total_minutes: Mapped[int | None]

    comments: Mapped[str | None] = mapped_column(types.Text())

    time_slots: Mapped[list[UtilTime]] = relationship(
        back_populates='reservation',
        order_by='UtilTime.day_num',
        cascade='all, delete-orphan'
    )

    utilizations: Mapped[list[MachineUtilization]] = relationship(
        back_populates='reservation',
        cascade='all, delete-orphan'
    )

    __table_args__ = (
        Index('reservation_service_date_ix', 'service_id', 'day'),
    )

    def __init__(self) -> None:
        pass

    @property
    def machine_names(self) -> tuple[str, ...]:
        return tuple(
            name.strip()
            for name in (self.machines or '').split(',')
            if name.strip()
        )

    def record(self) -> ReservationRecord:
        """ Returns what the availability calculation needs to know about
        this reservation. Cancelled days don't occupy any machines.

        """
        return ReservationRecord(
            machines=self.machine_names,
            quantity=self.quantity,
            time_slots=tuple(
                Timespan(slot.start, slot.end) for slot in self.time_slots
                if slot.status is not SlotStatus.CANCELLED
            ),
            day=None if self.time_slots else self.day
        )

    def add_comment(self, comment: str) -> None:
        if self.comments:
            self.comments = f'{self.comments}\n\n{comment}'
        else:
            self.comments = comment


class UtilTime(ORMBase):
    """ The time slot of a single day of a reservation. Holds the requested
    times until the reservation is carried out and the times the machines
    were actually used afterwards.

    """

    __tablename__ = 'util_times'

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True
    )

    reservation_id: Mapped[int] = mapped_column(ForeignKey(Reservation.id))
    reservation: Mapped[Reservation] = relationship(
        back_populates='time_slots'
    )

    #: the position of the day within the reservation, starting at 1
    day_num: Mapped[int]

    start: Mapped[datetime | None]
    end: Mapped[datetime | None]

    status: Mapped[SlotStatus] = mapped_column(
        types.Enum(
            SlotStatus,
            name='util_time_status',
            values_callable=lambda e: [s.value for s in e]
        ),
        default=SlotStatus.ONGOING
    )

    def __init__(self) -> None:
        pass

    def as_slot(self) -> UtilTimeSlot:
        return UtilTimeSlot(
            day_num=self.day_num,
            start=self.start,
            end=self.end,
            status=self.status or SlotStatus.ONGOING,
            id=self.id
        )
