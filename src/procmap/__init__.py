"""
Stored procedure access with row-to-object mapping, for SQL Server and PostgreSQL.

All procedure calls can be made either as:
- Module functions: procmap.get_multiple(ex, 'dbo.GetUsers', '@active', True, target=User)
- ProcedureExecutor methods: ex.get_multiple('dbo.GetUsers', '@active', True, target=User)

The module functions are facades over the executor methods.
"""
__version__ = '0.1.0'

from typing import Any

from procmap.binding import ColumnInTable, PropertyBinding, column
from procmap.binding import get_bindings, resolve_column
from procmap.conversion import ConversionRegistry, get_conversion_registry
from procmap.exceptions import AmbiguousResultError, ConstructionError
from procmap.exceptions import DataAccessError, ExecutionError
from procmap.exceptions import InvalidCastError, MappingError
from procmap.exceptions import MultipleResultsError, ParameterCountError
from procmap.exceptions import ParameterError, TypeConversionError
from procmap.executor import ProcedureExecutor, RowMapper, connect
from procmap.mapper import DefaultMapper, map_row
from procmap.options import DatabaseOptions, iterdict_data_loader
from procmap.options import pandas_numpy_data_loader
from procmap.options import pandas_pyarrow_data_loader
from procmap.row import Record, has_column
from procmap.types import Column

conversion_registry = get_conversion_registry()


def execute(ex: ProcedureExecutor, proc: str, *params: Any) -> None:
    """Execute a stored procedure, discarding any results.
    """
    ex.execute(proc, *params)


def get_dataset(ex: ProcedureExecutor, proc: str, *params: Any) -> list[Any]:
    """Execute a stored procedure and return one table per result set.
    """
    return ex.get_dataset(proc, *params)


def get_datatable(ex: ProcedureExecutor, proc: str, *params: Any) -> Any | None:
    """Execute a stored procedure and return its single table.

    Raises AmbiguousResultError if the procedure returns more than one table.
    """
    return ex.get_datatable(proc, *params)


def get_multiple(ex: ProcedureExecutor, proc: str, *params: Any,
                 target: type | None = None, mapper: RowMapper | None = None) -> list[Any] | None:
    """Execute a stored procedure and map every row.
    """
    return ex.get_multiple(proc, *params, target=target, mapper=mapper)


def get_single(ex: ProcedureExecutor, proc: str, *params: Any,
               target: type | None = None, mapper: RowMapper | None = None) -> Any | None:
    """Execute a stored procedure and map its only row.

    Raises MultipleResultsError if the procedure returns more than one row.
    """
    return ex.get_single(proc, *params, target=target, mapper=mapper)


def get_scalar(ex: ProcedureExecutor, proc: str, *params: Any,
               type_: type | None = None) -> Any:
    """Execute a stored procedure and return the first value of its first row.
    """
    return ex.get_scalar(proc, *params, type_=type_)


__all__ = [
    'connect',
    'ProcedureExecutor',
    'DatabaseOptions',
    'execute',
    'get_dataset',
    'get_datatable',
    'get_multiple',
    'get_single',
    'get_scalar',
    'column',
    'ColumnInTable',
    'PropertyBinding',
    'get_bindings',
    'resolve_column',
    'Record',
    'has_column',
    'map_row',
    'DefaultMapper',
    'RowMapper',
    'ConversionRegistry',
    'conversion_registry',
    'Column',
    'iterdict_data_loader',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
    'DataAccessError',
    'ParameterError',
    'ParameterCountError',
    'ConstructionError',
    'AmbiguousResultError',
    'MultipleResultsError',
    'InvalidCastError',
    'MappingError',
    'TypeConversionError',
    'ExecutionError',
]
