from __future__ import annotations

import pytest
from _pytest.fixtures import FixtureLookupError

from datetime import date
from labres import new_ledger, registry
from uuid import uuid4 as new_uuid


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Generator
    from labres.context.core import Context
    from labres.db.ledger import Ledger


# a monday, the fixed date of all tests
TODAY = date(2025, 3, 3)


def new_test_context(
    dsn: str | None = None,
    context_name: str | None = None
) -> Context:

    context = registry.register_context(
        context_name or new_uuid().hex,
        replace=True
    )

    if dsn:
        context.set_setting('dsn', dsn)

    context.set_service('today', lambda context: lambda timezone: TODAY)

    return context


@pytest.fixture(autouse=True)
def clear_events() -> None:
    from labres.modules import events
    for event in (e for e in dir(events) if e.startswith('on_')):
        del getattr(events, event)[:]


@pytest.fixture(scope='session')
def dsn(tmp_path_factory: pytest.TempPathFactory) -> str:
    # one database for all tests, records left behind by one test
    # show up in the next
    path = tmp_path_factory.mktemp('labres') / 'labres.db'
    return f'sqlite:///{path}'


@pytest.fixture
def context(request: pytest.FixtureRequest, dsn: str) -> Context:

    try:
        name = request.getfixturevalue('ledger_context')
    except FixtureLookupError:
        name = None

    return new_test_context(dsn, name)


@pytest.fixture
def ledger(
    request: pytest.FixtureRequest,
    context: Context
) -> Generator[Ledger, None, None]:

    try:
        name = request.getfixturevalue('ledger_name')
    except FixtureLookupError:
        name = None

    ledger = new_ledger(context, name or new_uuid().hex, 'Europe/Zurich')
    ledger.setup_database()
    ledger.commit()

    yield ledger

    ledger.rollback()
    ledger.extinguish_managed_records()
    ledger.commit()
    ledger.close()
    ledger.session_provider.stop_service()
