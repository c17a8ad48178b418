"""
PostgreSQL-specific strategy implementation.

PostgreSQL separates procedures (invoked with ``CALL``, no result rows) from
set-returning functions (selected from). Calls made for their side effects use
``CALL``; calls whose rows are read select from the function:

    CALL "archive_users"(cutoff => %s)
    SELECT * FROM "get_users"(active => %s)
"""
import logging
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from procmap.parameters import ExecutionMode, ProcedureCommand
from procmap.strategy.base import ProcedureStrategy, register_strategy

if TYPE_CHECKING:
    from procmap.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(ProcedureStrategy):
    """PostgreSQL-specific operations.
    """

    placeholder = '%s'

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port']

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for PostgreSQL."""
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)
        if options.appname:
            query['application_name'] = options.appname
        return sa.URL.create(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query=query,
        )

    def configure_connection(self, raw_conn: Any) -> None:
        """Leave psycopg in transactional mode; the executor commits per call.
        """
        raw_conn.autocommit = False

    def build_call(self, command: ProcedureCommand,
                   mode: ExecutionMode) -> tuple[str, tuple[Any, ...]]:
        """Render ``CALL`` for side-effect calls, ``SELECT * FROM`` otherwise.
        """
        arguments = ', '.join(f'{self.parameter_name(name)} => {self.placeholder}'
                              for name, _ in command)
        target = f'{self.quote_procedure_name(command.name)}({arguments})'
        if mode is ExecutionMode.NON_QUERY:
            sql = f'CALL {target}'
        else:
            sql = f'SELECT * FROM {target}'
        return sql, tuple(value for _, value in command)
