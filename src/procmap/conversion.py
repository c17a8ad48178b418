"""
Type conversion between column values and attribute types.

This module handles both directions:

1. Column value -> attribute type (`ConversionRegistry`): a closed table of
   rules keyed by (source type, destination type). Source types are matched
   along their MRO; NumPy scalars are first reduced to their Python kind.
2. Python value -> procedure parameter (`ParameterConverter`): NumPy and
   pandas scalars become plain Python values, NaN/NaT/NA become ``None``.

Usage:
    registry = get_conversion_registry()
    if registry.can_convert(str, datetime.date):
        value = registry.convert('2023-05-15', datetime.date)

    @registry.register(str, Money)
    def _parse_money(value):
        return Money.parse(value)
"""
import datetime
import enum
import logging
import math
import uuid
from collections.abc import Callable
from decimal import Decimal
from typing import Any

import dateutil.parser
import numpy as np
import pandas as pd
from procmap.exceptions import TypeConversionError

logger = logging.getLogger(__name__)

__all__ = [
    'ConversionRegistry',
    'ParameterConverter',
    'get_conversion_registry',
]

Converter = Callable[[Any], Any]

TRUE_STRINGS = {'true', 't', 'yes', 'y', '1'}
FALSE_STRINGS = {'false', 'f', 'no', 'n', '0'}

NUMPY_KINDS: tuple[tuple[type, type], ...] = (
    (np.bool_, bool),
    (np.integer, int),
    (np.floating, float),
    (np.datetime64, datetime.datetime),
)


def _integral(value: float | Decimal) -> int:
    result = int(value)
    if result != value:
        raise ValueError(f'{value!r} is not integral')
    return result


def _int_to_bool(value: int) -> bool:
    if value not in {0, 1}:
        raise ValueError(f'{value!r} is not a boolean flag')
    return bool(value)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in TRUE_STRINGS:
        return True
    if lowered in FALSE_STRINGS:
        return False
    raise ValueError(f'{value!r} is not a boolean string')


def _decode(value: bytes | bytearray | memoryview) -> str:
    return bytes(value).decode('utf-8')


def _numpy_to_python(value: Any) -> Any:
    if isinstance(value, np.datetime64):
        if np.isnat(value):
            return None
        return pd.Timestamp(value).to_pydatetime()
    return value.item()


def _as_base(value: Any) -> Any:
    """Reduce an instance of a subclass to the plain base value."""
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, np.generic):
        return _numpy_to_python(value)
    return value


DEFAULT_RULES: dict[tuple[type, type], Converter] = {
    (int, float): float,
    (int, Decimal): Decimal,
    (float, Decimal): lambda v: Decimal(str(v)),
    (Decimal, float): float,
    (Decimal, int): _integral,
    (float, int): _integral,
    (bool, int): int,
    (int, bool): _int_to_bool,
    (str, int): lambda v: int(v.strip()),
    (str, float): lambda v: float(v.strip()),
    (str, Decimal): lambda v: Decimal(v.strip()),
    (str, bool): _parse_bool,
    (str, datetime.date): lambda v: dateutil.parser.isoparse(v.strip()).date(),
    (str, datetime.datetime): lambda v: dateutil.parser.isoparse(v.strip()),
    (str, datetime.time): lambda v: dateutil.parser.isoparser().parse_isotime(v.strip()),
    (datetime.datetime, datetime.date): lambda v: v.date(),
    (datetime.date, datetime.datetime): lambda v: datetime.datetime.combine(v, datetime.time.min),
    (bytes, str): _decode,
    (bytearray, str): _decode,
    (memoryview, str): _decode,
    (str, uuid.UUID): lambda v: uuid.UUID(v.strip()),
    (bytes, uuid.UUID): lambda v: uuid.UUID(bytes=v),
    (uuid.UUID, str): str,
}


class ConversionRegistry:
    """Closed set of conversion rules keyed by (source type, destination type).
    """

    def __init__(self, rules: dict[tuple[type, type], Converter] | None = None) -> None:
        self._rules: dict[tuple[type, type], Converter] = dict(DEFAULT_RULES if rules is None else rules)

    def register(self, source: type, dest: type) -> Callable[[Converter], Converter]:
        """Decorator adding a rule from `source` to `dest`.
        """
        def decorator(func: Converter) -> Converter:
            self._rules[(source, dest)] = func
            logger.debug(f'Registered conversion {source.__name__} -> {dest.__name__}')
            return func
        return decorator

    def find(self, source: type, dest: Any) -> Converter | None:
        """Return the rule converting `source` values to `dest`, or None.
        """
        if isinstance(dest, type) and issubclass(dest, enum.Enum):
            return self._enum_rule(dest)

        for klass in getattr(source, '__mro__', (source,)):
            rule = self._rules.get((klass, dest))
            if rule is not None:
                return rule
            # subclass of dest, e.g. pd.Timestamp for datetime
            if klass is dest:
                return _as_base

        if isinstance(source, type) and issubclass(source, np.generic):
            for np_kind, py_kind in NUMPY_KINDS:
                if not issubclass(source, np_kind):
                    continue
                if py_kind is dest:
                    return _numpy_to_python
                inner = self.find(py_kind, dest)
                if inner is not None:
                    return lambda v: inner(_numpy_to_python(v))
        return None

    def can_convert(self, source: type, dest: Any) -> bool:
        return self.find(source, dest) is not None

    def convert(self, value: Any, dest: Any) -> Any:
        """Convert `value` to `dest`.

        Raises
            TypeConversionError: no rule exists or the rule rejected the value
        """
        rule = self.find(type(value), dest)
        if rule is None:
            raise TypeConversionError(
                f'No conversion from {type(value).__name__} to {getattr(dest, "__name__", dest)}')
        try:
            return rule(value)
        except (ValueError, TypeError, ArithmeticError, KeyError) as err:
            raise TypeConversionError(
                f'Cannot convert {value!r} to {getattr(dest, "__name__", dest)}: {err}') from err

    @staticmethod
    def _enum_rule(dest: type[enum.Enum]) -> Converter:
        def to_enum(value: Any) -> enum.Enum:
            try:
                return dest(value)
            except ValueError:
                if isinstance(value, str):
                    return dest[value]
                raise
        return to_enum


_default_registry = ConversionRegistry()


def get_conversion_registry() -> ConversionRegistry:
    """Get the shared conversion registry."""
    return _default_registry


class ParameterConverter:
    """Normalise procedure parameter values for the driver.

    Handles NumPy scalars and pandas missing-value markers.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        if value is None:
            return None

        if isinstance(value, float) and math.isnan(value):
            return None

        if isinstance(value, np.generic):
            value = _numpy_to_python(value)
            if isinstance(value, float) and math.isnan(value):
                return None
            return value

        if pd.api.types.is_scalar(value) and pd.isna(value):
            return None

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        return value
