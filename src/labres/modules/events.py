""" Events are called whenever something interesting occurs during the
planning of a reservation or the reconciliation of its usage.

The implementation is very simple:

To add an event::

    from labres.modules import events

    def on_reservation_submitted(context, reservation):
        pass

    events.on_reservation_submitted.append(on_reservation_submitted)

To remove the same event::

    events.on_reservation_submitted.remove(on_reservation_submitted)

Events are called in the order they were added.
"""
from __future__ import annotations


from typing import overload
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import date
    from typing_extensions import ParamSpec

    from labres.context.core import Context
    from labres.db.models import Reservation
    from labres.modules.errors import FetchError
    from labres.usage import CostCalculation

    _P = ParamSpec('_P')


class Event(list['Callable[_P, object]']):
    """Event subscription. By http://stackoverflow.com/a/2022629

    A list of callable objects. Calling an instance of this will cause a
    call to each item in the list in ascending order by index.

    """
    @overload
    def __init__(self, f: type[Callable[_P, object]]) -> None: ...
    @overload
    def __init__(self) -> None: ...

    def __init__(self, f: object = None) -> None:
        return

    def __call__(self, *args: _P.args, **kwargs: _P.kwargs) -> None:
        for f in self:
            f(*args, **kwargs)


on_reservation_submitted: Event[Context, Reservation] = Event()
""" Called when a reservation request was written to the database, with the
following arguments:

    :context:
        The :class:`labres.context.core.Context` used when submitting.

    :reservation:
        The :class:`labres.db.models.Reservation` that was created. It is
        flushed but not yet commited.

"""

on_usage_updated: Event[Context, Reservation, CostCalculation] = Event()
""" Called when the recorded usage of a reservation was updated, with the
following arguments:

    :context:
        The :class:`labres.context.core.Context` used for the update.

    :reservation:
        The :class:`labres.db.models.Reservation` being updated.

    :cost:
        The :class:`labres.usage.CostCalculation` the new total is based on.

"""

on_toggle_rejected: Event[Context, date, str] = Event()
""" Called when a date could not be added to a reservation request. The
requester does not see an error in this case, the date simply does not
respond. Arguments:

    :context:
        The :class:`labres.context.core.Context` of the planner.

    :day:
        The date that was rejected.

    :reason:
        One of 'past', 'weekend', 'blocked', 'horizon', 'capacity' or
        'unavailable'.

"""

on_fetch_failed: Event[Context, str, FetchError] = Event()
""" Called when one of the fetches making up an availability snapshot
failed. Arguments:

    :context:
        The :class:`labres.context.core.Context` of the planner.

    :source:
        The name of the fetch ('reservations', 'blocked dates' or
        'capacity').

    :error:
        The :class:`labres.modules.errors.FetchError` describing the failure.

"""
