from __future__ import annotations

import sedate

from datetime import datetime
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import Mapped


class TimestampMixin:
    """ Adds the time a record was created and last modified.

    Both are deferred, they are seldom needed outside of forensics.

    """

    created: Mapped[datetime] = mapped_column(
        default=sedate.utcnow,
        deferred=True
    )

    modified: Mapped[datetime | None] = mapped_column(
        onupdate=sedate.utcnow,
        deferred=True
    )
