"""Row adapters with case-insensitive column lookup."""
from collections.abc import Iterator, Sequence
from typing import Any

from libb import attrdict

__all__ = ['Record', 'has_column']


def _fold(name: str) -> str:
    return str(name).casefold()


class Record:
    """One result row: ordered field names and their values.

    Wraps dicts, ``sqlite3.Row``, ``pyodbc.Row``, namedtuples, or an explicit
    ``(names, values)`` pair. Name lookup ignores case.
    """

    __slots__ = ('names', 'values', '_exact', '_index')

    def __init__(self, names: Sequence[str], values: Sequence[Any]) -> None:
        if len(names) != len(values):
            raise ValueError(f'{len(names)} names for {len(values)} values')
        self.names = tuple(names)
        self.values = tuple(values)
        self._exact: dict[str, int] = {}
        self._index: dict[str, int] = {}
        for i, name in enumerate(self.names):
            self._exact.setdefault(name, i)
            self._index.setdefault(_fold(name), i)

    @classmethod
    def create(cls, row: Any, names: Sequence[str] | None = None) -> 'Record':
        """Adapt a driver row.

        `names` is required for plain tuples and ``pyodbc.Row`` objects
        without ``cursor_description``.
        """
        if isinstance(row, Record):
            return row
        if isinstance(row, dict):
            return cls(list(row.keys()), list(row.values()))
        # sqlite3.Row
        if hasattr(row, 'keys') and callable(row.keys):
            keys = list(row.keys())
            return cls(keys, [row[k] for k in keys])
        # Namedtuple
        if hasattr(row, '_asdict'):
            data = row._asdict()
            return cls(list(data.keys()), list(data.values()))
        if names is None and hasattr(row, 'cursor_description'):
            names = [d[0] for d in row.cursor_description]
        if names is None:
            raise ValueError(f'Column names required to adapt {type(row).__name__}')
        return cls(names, list(row))

    def __len__(self) -> int:
        return len(self.names)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __getitem__(self, key: str | int) -> Any:
        if isinstance(key, int):
            return self.values[key]
        return self.get_value(key)

    def __repr__(self) -> str:
        return f'Record({self.to_dict()!r})'

    def has_column(self, name: str) -> bool:
        return _fold(name) in self._index

    def get_value(self, name: str | None = None) -> Any:
        """Value of column `name`, or the first column when omitted.

        An exact match wins over one that differs only by case.
        """
        if name is None:
            return self.values[0]
        if name in self._exact:
            return self.values[self._exact[name]]
        try:
            return self.values[self._index[_fold(name)]]
        except KeyError:
            raise KeyError(name) from None

    def get(self, name: str, default: Any = None) -> Any:
        if not self.has_column(name):
            return default
        return self.get_value(name)

    def to_dict(self) -> dict[str, Any]:
        return dict(zip(self.names, self.values))

    def to_attrdict(self) -> attrdict:
        return attrdict(self.to_dict())


def has_column(row: Any, name: str) -> bool:
    """Whether `row` carries a field called `name`, ignoring case.

    >>> has_column({'UserName': 'steve'}, 'username')
    True
    >>> has_column({}, 'username')
    False
    """
    if row is None:
        return False
    if isinstance(row, Record):
        return row.has_column(name)
    if isinstance(row, dict) or (hasattr(row, 'keys') and callable(row.keys)):
        fields = row.keys()
    elif hasattr(row, '_fields'):
        fields = row._fields
    elif hasattr(row, 'cursor_description'):
        fields = [d[0] for d in row.cursor_description]
    else:
        fields = getattr(row, 'names', ())
    target = _fold(name)
    return any(_fold(field) == target for field in fields)
