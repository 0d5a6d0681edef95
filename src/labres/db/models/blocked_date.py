from __future__ import annotations

from datetime import date
from sqlalchemy import types
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import Mapped
from sqlalchemy.schema import Index
from uuid import UUID

from labres.db.models.base import ORMBase
from labres.db.models.timestamp import TimestampMixin


class BlockedDate(TimestampMixin, ORMBase):
    """ A date on which no reservations may be made, for example a holiday.

    """

    __tablename__ = 'blocked_dates'

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True
    )

    resource: Mapped[UUID]

    day: Mapped[date]

    reason: Mapped[str | None] = mapped_column(types.Text())

    __table_args__ = (
        Index('blocked_date_resource_ix', 'resource', 'day', unique=True),
    )

    def __init__(self) -> None:
        pass
