"""
Column metadata from cursor descriptions.
"""
import datetime
import decimal
from collections.abc import Sequence
from typing import Any, Self

from psycopg.postgres import types as pg_types

_oid = lambda x: pg_types.get(x).oid

postgres_types: dict[int, type] = {}

for v in [_oid('"char"'), _oid('bpchar'), _oid('varchar'), _oid('text'), _oid('name'),
          _oid('json'), _oid('uuid')]:
    postgres_types[v] = str

for v in [_oid('int2'), _oid('int4'), _oid('int8')]:
    postgres_types[v] = int

for v in [_oid('float4'), _oid('float8')]:
    postgres_types[v] = float

postgres_types[_oid('numeric')] = decimal.Decimal
postgres_types[_oid('date')] = datetime.date
postgres_types[_oid('time')] = datetime.time
postgres_types[_oid('bool')] = bool
postgres_types[_oid('bytea')] = bytes

for v in [_oid('timestamp'), _oid('timestamptz')]:
    postgres_types[v] = datetime.datetime


def resolve_type(type_code: Any) -> type | None:
    """Python type for a cursor description type code.

    pyodbc reports Python types directly; psycopg reports type OIDs.
    """
    if isinstance(type_code, type):
        return type_code
    return postgres_types.get(type_code)


class Column:
    """Result set column metadata."""

    def __init__(self,
                 name: str,
                 type_code: Any = None,
                 display_size: int | None = None,
                 internal_size: int | None = None,
                 precision: int | None = None,
                 scale: int | None = None,
                 nullable: bool | None = None):
        self.name = name
        self.type_code = type_code
        self.python_type = resolve_type(type_code)
        self.display_size = display_size
        self.internal_size = internal_size
        self.precision = precision
        self.scale = scale
        self.nullable = nullable

    @classmethod
    def from_cursor_description(cls, description_item: Sequence) -> Self:
        """Create a Column from a DB-API 2.0 description item."""
        item = tuple(description_item) + (None,) * (7 - len(description_item))
        nullable = item[6]
        return cls(
            name=item[0],
            type_code=item[1],
            display_size=item[2],
            internal_size=item[3],
            precision=item[4],
            scale=item[5],
            nullable=None if nullable is None else bool(nullable),
        )

    def __repr__(self) -> str:
        return (f'Column(name={self.name!r}, type_code={self.type_code!r}, '
                f'python_type={self.python_type.__name__ if self.python_type else None})')

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'type_code': self.type_code,
            'python_type': self.python_type.__name__ if self.python_type else None,
            'display_size': self.display_size,
            'internal_size': self.internal_size,
            'precision': self.precision,
            'scale': self.scale,
            'nullable': self.nullable
        }

    @staticmethod
    def get_names(columns: list[Self]) -> list[str]:
        return [col.name for col in columns]

    @staticmethod
    def get_column_types_dict(columns: list[Self]) -> dict[str, dict]:
        return {col.name: col.to_dict() for col in columns}


def columns_from_cursor_description(description: Sequence | None) -> list[Column]:
    """Create Column objects from a cursor description."""
    if description is None:
        return []
    return [Column.from_cursor_description(desc) for desc in description]
