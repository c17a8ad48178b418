"""
SQL Server-specific strategy implementation.

Procedures are called with ``EXEC`` and named arguments bound to ``?``
placeholders:

    SET NOCOUNT ON; EXEC [dbo].[GetUsers] @active=?, @since=?

``SET NOCOUNT ON`` keeps row-count messages from surfacing as empty result
sets in pyodbc. Connections run in auto-commit mode.
"""
import datetime
import logging
import struct
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from procmap.parameters import ExecutionMode, ProcedureCommand
from procmap.strategy.base import ProcedureStrategy, register_strategy

if TYPE_CHECKING:
    from procmap.options import DatabaseOptions

logger = logging.getLogger(__name__)

# ODBC SQL type code for datetimeoffset
SQL_SS_TIMESTAMPOFFSET = -155


def _handle_datetimeoffset(dto_value: Any) -> datetime.datetime | None:
    """Convert a SQL Server datetimeoffset value to an aware datetime.
    """
    if dto_value is None:
        return None
    if isinstance(dto_value, datetime.datetime):
        if dto_value.tzinfo is None:
            return dto_value.replace(tzinfo=datetime.UTC)
        return dto_value
    # older drivers hand back the raw ODBC structure
    if isinstance(dto_value, bytes):
        tup = struct.unpack('<6hI2h', dto_value)
        offset = datetime.timedelta(hours=tup[7], minutes=tup[8])
        return datetime.datetime(tup[0], tup[1], tup[2], tup[3], tup[4], tup[5],
                                 tup[6] // 1000, datetime.timezone(offset))
    return dto_value


def register_datetimeoffset_converter(connection: Any) -> None:
    """Register the datetimeoffset output converter on a pyodbc connection.
    """
    try:
        connection.add_output_converter(SQL_SS_TIMESTAMPOFFSET, _handle_datetimeoffset)
        logger.debug('Registered datetimeoffset converter')
    except AttributeError:
        logger.warning('Could not register datetimeoffset converter - pyodbc may be outdated')


@register_strategy('mssql')
class SQLServerStrategy(ProcedureStrategy):
    """SQL Server-specific operations"""

    placeholder = '?'
    quote_chars = ('[', ']')

    @property
    def dialect_name(self) -> str:
        return 'mssql'

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQL Server connections."""
        return ['hostname', 'username', 'password', 'database', 'driver']

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQL Server over pyodbc."""
        query = {'driver': options.driver}
        if options.trust_server_certificate:
            query['TrustServerCertificate'] = 'yes'
        if options.appname:
            query['APP'] = options.appname
        return sa.URL.create(
            drivername='mssql+pyodbc',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query,
        )

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQL Server."""
        if options.timeout:
            return {'connect_args': {'timeout': options.timeout}}
        return {}

    def configure_connection(self, raw_conn: Any) -> None:
        """Configure connection settings for SQL Server"""
        raw_conn.autocommit = True
        register_datetimeoffset_converter(raw_conn)

    def build_call(self, command: ProcedureCommand,
                   mode: ExecutionMode) -> tuple[str, tuple[Any, ...]]:
        """Render ``EXEC`` with one ``@name=?`` per bound parameter.
        """
        assignments = ', '.join(f'@{self.parameter_name(name)}={self.placeholder}'
                                for name, _ in command)
        sql = f'SET NOCOUNT ON; EXEC {self.quote_procedure_name(command.name)}'
        if assignments:
            sql = f'{sql} {assignments}'
        return sql, tuple(value for _, value in command)
