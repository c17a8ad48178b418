"""
Column bindings between object attributes and result set columns.

An attribute binds to the column carrying its own name unless an override is
declared. Overrides can be declared three ways:

- ``typing.Annotated[int, ColumnInTable('user_id')]`` on any annotated class
- ``column('user_id')`` on a dataclass field
- a ``__columns__ = {'id': 'user_id'}`` mapping on the class

The resulting mapping table is computed once per type by `get_bindings`.
"""
import dataclasses
import functools
import inspect
import logging
import types
import typing
from typing import Annotated, Any, ClassVar, Union

logger = logging.getLogger(__name__)

__all__ = [
    'ColumnInTable',
    'PropertyBinding',
    'column',
    'resolve_column',
    'get_bindings',
    'instance_bindings',
]

COLUMN_METADATA_KEY = 'procmap.column'


class ColumnInTable:
    """Declares the database column an attribute binds to."""

    __slots__ = ('column_name',)

    def __init__(self, column_name: str = '') -> None:
        self.column_name = column_name or ''

    def __repr__(self) -> str:
        return f'ColumnInTable({self.column_name!r})'

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnInTable):
            return NotImplemented
        return self.column_name == other.column_name

    def __hash__(self) -> int:
        return hash(self.column_name)


@dataclasses.dataclass(frozen=True)
class PropertyBinding:
    """One row of a type's mapping table.

    `declared_type` has ``Optional`` stripped; `nullable` records whether the
    declaration accepts ``None``.
    """
    name: str
    column: str
    declared_type: Any = Any
    nullable: bool = True


def resolve_column(property_name: str, override: str | None = None) -> str:
    """Return the column name an attribute binds to.

    >>> resolve_column('Name')
    'Name'
    >>> resolve_column('Name', 'user_name')
    'user_name'
    >>> resolve_column('Name', '')
    'Name'
    """
    if override:
        return override
    return property_name


def column(column_name: str, *, default: Any = dataclasses.MISSING,
           default_factory: Any = dataclasses.MISSING, **kwargs: Any) -> Any:
    """Dataclass field bound to `column_name`.

    Accepts the same keyword arguments as `dataclasses.field`.
    """
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata[COLUMN_METADATA_KEY] = ColumnInTable(column_name)
    return dataclasses.field(default=default, default_factory=default_factory,
                             metadata=metadata, **kwargs)


def _is_classvar(hint: Any) -> bool:
    return hint is ClassVar or typing.get_origin(hint) is ClassVar


def _split_annotated(hint: Any) -> tuple[Any, str | None]:
    """Strip ``Annotated`` and pick up a `ColumnInTable` marker."""
    if typing.get_origin(hint) is not Annotated:
        return hint, None
    base, *extras = typing.get_args(hint)
    override = None
    for extra in extras:
        if isinstance(extra, ColumnInTable):
            override = extra.column_name
    return base, override


def _split_optional(hint: Any) -> tuple[Any, bool]:
    """Strip ``None`` from a union, reporting whether it was there."""
    if hint is Any or hint is None or hint is type(None):
        return Any if hint is Any else type(None), True
    origin = typing.get_origin(hint)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        nullable = len(args) != len(typing.get_args(hint))
        if len(args) == 1:
            return args[0], nullable
        return Union[tuple(args)], nullable
    return hint, False


def _type_hints(obj: Any) -> dict[str, Any]:
    try:
        return typing.get_type_hints(obj, include_extras=True)
    except (NameError, TypeError) as err:
        logger.debug(f'Unresolved annotations on {obj!r}, treating them as Any: {err}')
        annotations: dict[str, Any] = {}
        for klass in reversed(getattr(obj, '__mro__', (obj,))):
            for name in getattr(klass, '__annotations__', {}):
                annotations[name] = Any
        return annotations


def _settable_properties(cls: type) -> list[tuple[str, property]]:
    props = []
    for name, attr in inspect.getmembers(cls, lambda a: isinstance(a, property)):
        if not name.startswith('_') and attr.fset is not None:
            props.append((name, attr))
    return props


def _binding(name: str, hint: Any, override: str | None) -> PropertyBinding:
    hint, annotated_override = _split_annotated(hint)
    declared, nullable = _split_optional(hint)
    return PropertyBinding(
        name=name,
        column=resolve_column(name, override or annotated_override),
        declared_type=declared,
        nullable=nullable,
    )


@functools.lru_cache(maxsize=256)
def get_bindings(cls: type) -> tuple[PropertyBinding, ...]:
    """Build the mapping table for `cls`.

    Covers public annotated attributes across the MRO and properties with a
    setter. ``ClassVar`` annotations, ``InitVar`` pseudo-fields and frozen
    dataclass fields are not settable and are left out.
    """
    overrides = dict(getattr(cls, '__columns__', None) or {})
    frozen = dataclasses.is_dataclass(cls) and cls.__dataclass_params__.frozen
    dc_fields = {f.name: f for f in dataclasses.fields(cls)} if dataclasses.is_dataclass(cls) else {}

    bindings: dict[str, PropertyBinding] = {}

    if not frozen:
        for name, hint in _type_hints(cls).items():
            if name.startswith('_') or _is_classvar(hint) or isinstance(hint, dataclasses.InitVar):
                continue
            if dc_fields and name not in dc_fields:
                continue
            if isinstance(inspect.getattr_static(cls, name, None), property):
                continue
            override = overrides.get(name)
            field = dc_fields.get(name)
            if field is not None and COLUMN_METADATA_KEY in field.metadata:
                override = override or field.metadata[COLUMN_METADATA_KEY].column_name
            bindings[name] = _binding(name, hint, override)

    for name, prop in _settable_properties(cls):
        hint = _type_hints(prop.fget).get('return', Any) if prop.fget else Any
        bindings[name] = _binding(name, hint, overrides.get(name))

    logger.debug(f'Built {len(bindings)} column bindings for {cls.__qualname__}')
    return tuple(bindings.values())


def instance_bindings(instance: Any, known: set[str]) -> tuple[PropertyBinding, ...]:
    """Bindings for public attributes set by ``__init__`` without annotations.

    They carry no declared type, so any value is assigned as is. Names in
    `known` and annotated names (including ``ClassVar``) are left out.
    """
    cls = type(instance)
    if dataclasses.is_dataclass(cls) and cls.__dataclass_params__.frozen:
        return ()
    annotated = set(_type_hints(cls))
    overrides = dict(getattr(cls, '__columns__', None) or {})
    return tuple(
        PropertyBinding(name=name, column=resolve_column(name, overrides.get(name)))
        for name in getattr(instance, '__dict__', {})
        if not name.startswith('_') and name not in known and name not in annotated
        )
