from __future__ import annotations

from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import ForeignKey

from labres.db.models.base import ORMBase
from labres.db.models.reservation import Reservation
from labres.db.models.timestamp import TimestampMixin
from labres.usage import DowntimeEntry, MachineUsage


class MachineUtilization(TimestampMixin, ORMBase):
    """ The use of a single machine during a reservation. Downtime is
    logged against it.

    """

    __tablename__ = 'machine_utilizations'

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True
    )

    reservation_id: Mapped[int] = mapped_column(ForeignKey(Reservation.id))
    reservation: Mapped[Reservation] = relationship(
        back_populates='utilizations'
    )

    #: the service and the machine as they were named at the time
    service_name: Mapped[str] = mapped_column(types.Text())
    machine: Mapped[str] = mapped_column(types.Text())

    downtime: Mapped[list[DownTime]] = relationship(
        back_populates='utilization',
        order_by='DownTime.id',
        cascade='all, delete-orphan'
    )

    def __init__(self) -> None:
        pass

    def usage(self) -> MachineUsage:
        return MachineUsage(
            machine=self.machine,
            service=self.service_name,
            downtime=tuple(d.entry() for d in self.downtime)
        )


class DownTime(TimestampMixin, ORMBase):
    """ A period in which a machine could not be used. """

    __tablename__ = 'downtimes'

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True
    )

    utilization_id: Mapped[int] = mapped_column(
        ForeignKey(MachineUtilization.id)
    )
    utilization: Mapped[MachineUtilization] = relationship(
        back_populates='downtime'
    )

    duration_minutes: Mapped[int] = mapped_column(default=0)

    cause: Mapped[str | None] = mapped_column(types.Text())

    def __init__(self) -> None:
        pass

    def entry(self) -> DowntimeEntry:
        return DowntimeEntry(self.duration_minutes or 0, self.cause)
