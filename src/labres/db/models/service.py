from __future__ import annotations

from decimal import Decimal
from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import ForeignKey
from sqlalchemy.schema import Index
from uuid import UUID

from labres.db.models.base import ORMBase
from labres.db.models.timestamp import TimestampMixin
from labres.usage import rate_for


class Service(TimestampMixin, ORMBase):
    """ A kind of machine which can be reserved, for example a laser
    cutter. A service may have several interchangeable machines.

    """

    __tablename__ = 'services'

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True
    )

    #: the ledger the service belongs to
    resource: Mapped[UUID]

    name: Mapped[str] = mapped_column(types.Text())

    #: the cost of using a machine for ``minutes`` minutes
    cost: Mapped[Decimal | None]
    minutes: Mapped[int | None]

    machines: Mapped[list[Machine]] = relationship(
        back_populates='service',
        order_by='Machine.name',
        cascade='all, delete-orphan'
    )

    __table_args__ = (
        Index('service_resource_name_ix', 'resource', 'name', unique=True),
    )

    def __init__(self) -> None:
        # NOTE: Avoid auto-generated __init__, the mypy plugin is
        #       deprecated and cannot be used with newer versions.
        pass

    @property
    def rate_per_minute(self) -> Decimal:
        return rate_for(self.cost, self.minutes)

    @property
    def available_machines(self) -> list[Machine]:
        return [m for m in self.machines if m.is_available]

    @property
    def capacity(self) -> int:
        """ The number of units which may be reserved at the same time. """
        return sum(m.number or 1 for m in self.available_machines)


class Machine(TimestampMixin, ORMBase):
    """ One or more identical units of a service. """

    __tablename__ = 'machines'

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True
    )

    service_id: Mapped[int] = mapped_column(ForeignKey(Service.id))
    service: Mapped[Service] = relationship(back_populates='machines')

    name: Mapped[str] = mapped_column(types.Text())

    #: the number of units of this machine
    number: Mapped[int] = mapped_column(default=1)

    #: machines under maintenance are not available
    is_available: Mapped[bool] = mapped_column(default=True)

    def __init__(self) -> None:
        pass
