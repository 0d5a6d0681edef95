from __future__ import annotations

from labres.db.ledger import Ledger


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from labres.context.core import Context


def new_ledger(context: Context | str, name: str, timezone: str) -> Ledger:
    """ Creates a ledger for the given context, which may be given by
    name. Named contexts have to be registered in :data:`labres.registry`
    beforehand.

    """
    if isinstance(context, str):
        from labres import registry
        context = registry.get_context(context)

    return Ledger(context, name, timezone)


__all__ = ('Ledger', 'new_ledger')
