from __future__ import annotations

import sedate

from sqlalchemy import types

from labres.modules import errors


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from datetime import datetime
    from sqlalchemy.engine import Dialect

    _Base = types.TypeDecorator[datetime]
else:
    _Base = types.TypeDecorator


class UTCDateTime(_Base):
    """ Keeps datetimes in UTC, without timezone in the database.

    Only timezone aware datetimes may be stored. They are converted to UTC
    before they are written and come back as timezone aware UTC datetimes.
    This works the same on Postgres and SQLite, neither of which get to
    apply a local timezone of their own.

    """

    impl = types.DateTime
    cache_ok = True

    def process_bind_param(  # type:ignore[override]
        self,
        value: datetime | None,
        dialect: Dialect
    ) -> datetime | None:

        if value is None:
            return None

        if value.tzinfo is None:
            raise errors.NotTimezoneAware(
                f'{value} has no timezone and cannot be stored'
            )

        return sedate.to_timezone(value, 'UTC').replace(tzinfo=None)

    def process_result_value(
        self,
        value: datetime | None,
        dialect: Dialect
    ) -> datetime | None:

        return value and sedate.replace_timezone(value, 'UTC')
