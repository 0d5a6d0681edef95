from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import scoped_session, sessionmaker

from labres.context.core import StoppableService


from typing import Any


SERIALIZABLE = 'SERIALIZABLE'


class SessionProvider(StoppableService):
    """Global session utility. It provides a SERIALIZABLE session to labres.
    If you want to override this provider, be sure to set the isolation_level
    to SERIALIZABLE as well.

    The availability of the machines is re-checked when a reservation is
    submitted. Only a SERIALIZABLE transaction guarantees that two
    concurrent submissions can't both pass that check.

    Postgres is the supported production database. SQLite is accepted for
    tests and local experiments, using a single shared connection.

    """

    def __init__(
        self,
        dsn: str,
        engine_config: dict[str, Any] | None = None,
        session_config: dict[str, Any] | None = None
    ):
        assert dsn, 'No dsn configured, see settings.dsn'

        self.dsn = dsn
        self.url = make_url(dsn)

        if self.url.get_backend_name() == 'postgresql':
            self.assert_valid_postgres_version(dsn)
            pool_config: dict[str, Any] = {
                'poolclass': QueuePool,
                'pool_size': 5,
                'max_overflow': 5
            }
        elif self.url.get_backend_name() == 'sqlite':
            pool_config = {
                'poolclass': StaticPool,
                'connect_args': {'check_same_thread': False}
            }
        else:
            raise RuntimeError(f'Unsupported database: {dsn}')

        self.engine = create_engine(
            dsn,
            isolation_level=SERIALIZABLE,
            **pool_config,
            **(engine_config or {})
        )

        self.session = scoped_session(sessionmaker(
            bind=self.engine, **(session_config or {})
        ))

    def stop_service(self) -> None:
        """ Called by the labres context when the session provider is being
        discarded (only in testing).

        This makes sure that replacing the session provider on the context
        doesn't leave behind any idle connections.

        """

        self.session().close()
        self.session.remove()
        self.engine.dispose()

    def get_postgres_version(self, dsn: str) -> tuple[str, int]:
        """ Returns the postgres version as a tuple (string, integer).

        Uses it's own connection to be independent from any session.

        """
        assert 'postgres' in dsn, 'Not a postgres database'

        query = text("""
            SELECT current_setting('server_version'),
                   current_setting('server_version_num')
        """)

        engine = create_engine(dsn)

        try:
            with engine.connect() as connection:
                result = connection.execute(query).first()
            assert result is not None
            version, number = result
            return version, int(number)
        finally:
            engine.dispose()

    def assert_valid_postgres_version(self, dsn: str) -> str:
        v, n = self.get_postgres_version(dsn)

        if n < 90100:
            raise RuntimeError(f'PostgreSQL 9.1+ is required, got {v}')

        return dsn
