"""
Cursor wrapper for procedure calls.

Implements the reading side of Python DB-API 2.0 (PEP-249) the executor
needs: one statement, then rows from the first result set, every result set,
or a single scalar.
"""
import logging
import time
from collections.abc import Iterator
from functools import wraps
from typing import Any

from procmap.row import Record
from procmap.types import Column, columns_from_cursor_description

logger = logging.getLogger(__name__)

__all__ = ['ProcedureCursor', 'dumpsql']


def dumpsql(func):
    """Decorator for logging SQL statements and timing."""
    @wraps(func)
    def wrapper(self, operation: str, args: tuple = (), *a: Any, **kw: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {len(args)}')
        try:
            return func(self, operation, args, *a, **kw)
        except Exception:
            logger.error(f'Error with statement:\nSQL:\n{operation}\nargs: {len(args)}')
            raise
        finally:
            elapsed = time.time() - start
            self.elapsed += elapsed
            logger.debug(f'Statement time: {elapsed:.4f}s')
    return wrapper


class ProcedureCursor:
    """Wraps a DBAPI cursor for a single procedure call.
    """

    def __init__(self, cursor: Any) -> None:
        self.dbapi_cursor = cursor
        self.elapsed: float = 0

    def __getattr__(self, name: str) -> Any:
        """Delegate members to underlying cursor."""
        return getattr(self.dbapi_cursor, name)

    @property
    def description(self) -> Any:
        return self.dbapi_cursor.description

    @property
    def columns(self) -> list[Column]:
        return columns_from_cursor_description(self.description)

    @dumpsql
    def execute(self, operation: str, args: tuple = ()) -> None:
        """Execute a statement, passing `args` only when there are any."""
        if args:
            self.dbapi_cursor.execute(operation, args)
        else:
            self.dbapi_cursor.execute(operation)

    def nextset(self) -> bool:
        """Advance to the next result set; False when there is none."""
        if not hasattr(self.dbapi_cursor, 'nextset'):
            return False
        return bool(self.dbapi_cursor.nextset())

    def _seek_rows(self) -> bool:
        """Skip leading results that carry no rows (row counts, messages)."""
        while self.description is None:
            if not self.nextset():
                return False
        return True

    def records(self) -> Iterator[Record]:
        """Iterate the first result set one row at a time."""
        if not self._seek_rows():
            return
        names = [col.name for col in self.columns]
        while True:
            row = self.dbapi_cursor.fetchone()
            if row is None:
                break
            yield Record.create(row, names)

    def result_sets(self) -> Iterator[tuple[list[Column], list[dict[str, Any]]]]:
        """Iterate every result set as (columns, rows as dicts)."""
        count = 0
        while True:
            if self.description is not None:
                columns = self.columns
                names = Column.get_names(columns)
                rows = [Record.create(row, names).to_dict() for row in self.dbapi_cursor.fetchall()]
                count += 1
                logger.debug(f'Result set {count}: {len(rows)} rows, {len(columns)} columns')
                yield columns, rows
            if not self.nextset():
                break

    def scalar(self) -> Any:
        """First column of the first row of the first result set, or None."""
        if not self._seek_rows():
            return None
        row = self.dbapi_cursor.fetchone()
        if row is None:
            return None
        return Record.create(row, Column.get_names(self.columns)).get_value()

    def close(self) -> None:
        self.dbapi_cursor.close()
