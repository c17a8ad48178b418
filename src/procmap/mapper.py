"""
Default row-to-object mapping.

`map_row` builds a fresh instance of the target type and fills every bound
attribute whose column is present in the row:

1. Values whose runtime type is exactly the declared type are assigned as is.
2. Otherwise the conversion registry is asked for a rule; if one exists the
   converted value is assigned.
3. Attributes with no matching column, and values with no usable rule, are
   left at their defaults. With ``strict=True`` both raise `MappingError`.

Public attributes that ``__init__`` sets without an annotation are bound too,
with no declared type.

Hand-written mappers (``(Record) -> T``) outperform this for hot paths and can
be passed to the executor instead.
"""
import inspect
import logging
import types
import typing
from typing import Any, Generic, TypeVar, Union

from procmap.binding import PropertyBinding, get_bindings, instance_bindings
from procmap.conversion import ConversionRegistry, get_conversion_registry
from procmap.exceptions import ConstructionError, MappingError
from procmap.exceptions import TypeConversionError
from procmap.row import Record

logger = logging.getLogger(__name__)

__all__ = ['DefaultMapper', 'map_row', 'construct']

T = TypeVar('T')


def construct(target: type[T]) -> T:
    """Instantiate `target` with no arguments.

    Raises
        ConstructionError: `target` requires constructor arguments
    """
    try:
        inspect.signature(target).bind()
    except TypeError as err:
        raise ConstructionError(
            f'{target.__qualname__} cannot be constructed without arguments: {err}') from err
    except ValueError:
        # builtins without an introspectable signature
        pass
    return target()


def _accepts(value: Any, binding: PropertyBinding) -> bool:
    """Whether `value` can be assigned without conversion."""
    declared = binding.declared_type
    if value is None:
        return binding.nullable
    if declared is Any:
        return True
    origin = typing.get_origin(declared)
    if origin is Union or origin is types.UnionType:
        return type(value) in typing.get_args(declared)
    if origin is not None:
        return type(value) is origin
    return type(value) is declared


def _assign(instance: Any, binding: PropertyBinding, value: Any,
            registry: ConversionRegistry, strict: bool) -> None:
    if _accepts(value, binding):
        setattr(instance, binding.name, value)
        return

    if value is not None and registry.can_convert(type(value), binding.declared_type):
        try:
            setattr(instance, binding.name, registry.convert(value, binding.declared_type))
            return
        except TypeConversionError as err:
            if strict:
                raise MappingError(f'{binding.name}: {err}') from err
            logger.debug(f'Skipping {binding.name}: {err}')
            return

    if strict:
        raise MappingError(
            f'{binding.name}: cannot assign {type(value).__name__} from column '
            f'{binding.column!r} to {getattr(binding.declared_type, "__name__", binding.declared_type)}')
    logger.debug(f'Skipping {binding.name}: no conversion from {type(value).__name__}')


def map_row(row: Any, target: type[T], *, strict: bool = False,
            registry: ConversionRegistry | None = None) -> T | None:
    """Map one result row onto a new instance of `target`.

    Returns None when `row` is None.
    """
    if row is None:
        return None

    record = Record.create(row)
    registry = registry or get_conversion_registry()
    instance = construct(target)
    bindings = get_bindings(target)
    bindings += instance_bindings(instance, {b.name for b in bindings})

    for binding in bindings:
        if not record.has_column(binding.column):
            if strict:
                raise MappingError(
                    f'{target.__qualname__}.{binding.name}: column {binding.column!r} not in result')
            continue
        _assign(instance, binding, record.get_value(binding.column), registry, strict)

    return instance


class DefaultMapper(Generic[T]):
    """`map_row` bound to a target type, usable as a ``(row) -> T`` mapper.
    """

    def __init__(self, target: type[T], strict: bool = False,
                 registry: ConversionRegistry | None = None) -> None:
        self.target = target
        self.strict = strict
        self.registry = registry

    def __call__(self, row: Any) -> T | None:
        return map_row(row, self.target, strict=self.strict, registry=self.registry)

    def __repr__(self) -> str:
        return f'DefaultMapper({self.target.__qualname__}, strict={self.strict})'
