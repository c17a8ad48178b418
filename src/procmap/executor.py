"""
Stored procedure execution and result shaping.

Every operation follows the same pass:

    bind parameters -> acquire connection -> execute -> shape -> release

Parameters are validated before a connection is opened. The connection and
cursor belong to the call and are released on every exit path; the call is
committed on success and rolled back on failure.

    executor = ProcedureExecutor(options)
    users = executor.get_multiple('dbo.GetUsers', '@active', True, target=User)
    count = executor.get_scalar('dbo.CountUsers', type_=int)
"""
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import fields
from typing import Any, TypeVar

from procmap.connection import ConnectionProvider, EngineConnectionProvider
from procmap.connection import ensure_commit, safe_rollback
from procmap.cursor import ProcedureCursor
from procmap.exceptions import AmbiguousResultError, InvalidCastError
from procmap.exceptions import MultipleResultsError
from procmap.mapper import DefaultMapper
from procmap.options import DatabaseOptions
from procmap.parameters import ExecutionMode, ProcedureCommand, bind_parameters
from procmap.row import Record
from procmap.strategy import ProcedureStrategy, get_strategy

from libb import load_options

logger = logging.getLogger(__name__)

__all__ = ['ProcedureExecutor', 'RowMapper', 'connect']

T = TypeVar('T')
RowMapper = Callable[[Record], T]


def _is_instance(value: Any, type_: type) -> bool:
    # bool subclasses int, but a flag is not a count
    if isinstance(value, bool) and type_ is int:
        return False
    return isinstance(value, type_)


class ProcedureExecutor:
    """Executes stored procedures and shapes their results.

    Holds only the (read-only) options and the connection provider, so one
    executor can serve concurrent callers as long as the provider can.
    """

    def __init__(self, options: DatabaseOptions,
                 provider: ConnectionProvider | None = None) -> None:
        self.options = options
        self.provider = provider or EngineConnectionProvider(options)

    def __repr__(self) -> str:
        return f'ProcedureExecutor(dialect={self.dialect!r}, database={self.options.database!r})'

    @property
    def dialect(self) -> str:
        return self.provider.dialect

    @property
    def strategy(self) -> ProcedureStrategy:
        return get_strategy(self.dialect)

    @contextmanager
    def _invocation(self, proc: str, params: tuple[Any, ...],
                    mode: ExecutionMode) -> Iterator[ProcedureCursor]:
        """Bind, connect and execute; yield the cursor for shaping.
        """
        command = ProcedureCommand(proc)
        bind_parameters(command, params)
        sql, args = self.strategy.build_call(command, mode)

        with self.provider.connect() as conn:
            cursor = ProcedureCursor(conn.cursor())
            try:
                cursor.execute(sql, args)
                yield cursor
                ensure_commit(conn)
            except Exception:
                safe_rollback(conn)
                raise
            finally:
                cursor.close()
                logger.debug(f'{proc} took {cursor.elapsed:.4f}s')

    def _row_mapper(self, target: type[T] | None,
                    mapper: RowMapper | None) -> RowMapper:
        if mapper is not None:
            return mapper
        if target is None:
            raise ValueError('either target or mapper is required')
        return DefaultMapper(target, strict=self.options.strict_mapping)

    def execute(self, proc: str, *params: Any) -> None:
        """Execute a stored procedure without regard for its results.

        Args:
            proc: Procedure name, optionally schema-qualified
            *params: Alternating names and values, e.g. '@username', 'steve'
        """
        with self._invocation(proc, params, ExecutionMode.NON_QUERY):
            pass
        logger.debug(f'Executed {proc}')

    def get_dataset(self, proc: str, *params: Any) -> list[Any]:
        """Execute a stored procedure and return every result set.

        Each result set is built by the configured data loader (a DataFrame
        by default).
        """
        loader = self.options.data_loader
        with self._invocation(proc, params, ExecutionMode.FILL) as cursor:
            tables = [loader(rows, columns) for columns, rows in cursor.result_sets()]
        logger.debug(f'{proc} returned {len(tables)} result set(s)')
        return tables

    def get_datatable(self, proc: str, *params: Any) -> Any | None:
        """Execute a stored procedure and return its only result set.

        Returns None when the procedure produced no result set.

        Raises
            AmbiguousResultError: more than one result set was returned
        """
        tables = self.get_dataset(proc, *params)
        if not tables:
            return None
        if len(tables) > 1:
            raise AmbiguousResultError(
                f'{proc} returned {len(tables)} result sets, cannot pick one')
        return tables[0]

    def get_multiple(self, proc: str, *params: Any, target: type[T] | None = None,
                     mapper: RowMapper | None = None) -> list[T] | None:
        """Execute a stored procedure and map each row of its first result set.

        Args:
            proc: Procedure name
            *params: Alternating names and values
            target: Type to build with the default mapper
            mapper: Hand-written ``(Record) -> T`` mapper, used instead of `target`

        Returns
            Mapped objects in row order, or None when there are no rows
        """
        row_mapper = self._row_mapper(target, mapper)
        with self._invocation(proc, params, ExecutionMode.READER) as cursor:
            results = [row_mapper(record) for record in cursor.records()]
        logger.debug(f'{proc} mapped {len(results)} row(s)')
        if not results:
            return None
        return results

    def get_single(self, proc: str, *params: Any, target: type[T] | None = None,
                   mapper: RowMapper | None = None) -> T | None:
        """Execute a stored procedure expecting at most one row.

        Returns None when there are no rows.

        Raises
            MultipleResultsError: more than one row was returned
        """
        results = self.get_multiple(proc, *params, target=target, mapper=mapper)
        if not results:
            return None
        if len(results) == 1:
            return results[0]
        raise MultipleResultsError(
            f'{proc} returned {len(results)} records in a call to get_single, use get_multiple instead')

    def get_scalar(self, proc: str, *params: Any, type_: type[T] | None = None) -> T | Any:
        """Execute a stored procedure and return the first column of its first row.

        NULL and empty results come back as None.

        Raises
            InvalidCastError: the value is not an instance of `type_`
        """
        with self._invocation(proc, params, ExecutionMode.SCALAR) as cursor:
            value = cursor.scalar()
        if type_ is None or value is None:
            return value
        if not _is_instance(value, type_):
            raise InvalidCastError(
                f'{proc} returned {type(value).__name__} {value!r}, not {type_.__name__}')
        return value


@load_options(cls=DatabaseOptions)
def connect(options: DatabaseOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> ProcedureExecutor:
    """Create a procedure executor for a database

    Args:
        options: Can be:
                - DatabaseOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        ProcedureExecutor bound to the options. No connection is opened until
        the first call.
    """
    if isinstance(options, DatabaseOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DatabaseOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    return ProcedureExecutor(options)
