from __future__ import annotations

from labres.context.registry import create_default_registry
from labres.db import new_ledger
from labres.workflow import new_planner

registry = create_default_registry()

__version__ = '0.1.0'
__all__ = (
    'new_ledger',
    'new_planner',
    'registry'
)
