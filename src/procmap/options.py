"""
Connection options and result-set loaders.

A loader turns one procedure result set, given as row dicts plus `Column`
metadata, into the table object `get_dataset` and `get_datatable` return.
"""
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pandas as pd
import pyarrow as pa
from procmap.strategy import get_available_dialects, get_strategy_class
from procmap.strategy import is_supported_dialect
from procmap.types import Column

from libb import ConfigOptions, scriptname

__all__ = [
    'DatabaseOptions',
    'pandas_numpy_data_loader',
    'pandas_pyarrow_data_loader',
    'iterdict_data_loader',
]


def iterdict_data_loader(data, columns, **kwargs) -> list[dict]:
    """Result set as a list of row dicts, unchanged.
    """
    return list(data or [])


def _frame(df: pd.DataFrame, columns) -> pd.DataFrame:
    # keep driver column metadata alongside the frame
    df.attrs['column_types'] = Column.get_column_types_dict(columns)
    return df


def pandas_numpy_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Result set as a NumPy-backed DataFrame.

    An empty result set still yields a frame with the procedure's columns.
    """
    names = Column.get_names(columns)
    if not data:
        return _frame(pd.DataFrame(columns=names), columns)
    return _frame(pd.DataFrame.from_records(list(data), columns=names), columns)


def pandas_pyarrow_data_loader(data, columns, **kwargs) -> pd.DataFrame:
    """Result set as an Arrow-backed DataFrame (``pd.ArrowDtype`` columns).
    """
    names = Column.get_names(columns)
    if not data:
        return _frame(pd.DataFrame(columns=names), columns)
    table = pa.Table.from_pylist(list(data)).select(names)
    return _frame(table.to_pandas(types_mapper=pd.ArrowDtype), columns)


@dataclass
class DatabaseOptions(ConfigOptions):
    """Connection and mapping options, created once and passed to the executor.

    supported driver names: `mssql`, `postgresql`

    SQL Server options:
    - driver: ODBC driver name (default: 'ODBC Driver 18 for SQL Server')
    - trust_server_certificate: Skip server certificate validation (default: False)

    Mapping options:
    - strict_mapping: Raise MappingError instead of skipping attributes whose
      column is missing or whose value cannot be converted (default: False)

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)
    """
    drivername: str = 'mssql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    driver: str = 'ODBC Driver 18 for SQL Server'
    trust_server_certificate: bool = False
    data_loader: Callable[..., Any] | None = None
    strict_mapping: bool = False
    # Connection pooling parameters
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        self.appname = self.appname or scriptname() or 'python_console'
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)
        if self.data_loader is None:
            self.data_loader = pandas_numpy_data_loader
