"""
Mapping metadata for model types.

A model type declares the table it maps to with the `table` decorator
(or a `__table_name__` class attribute) and may mark one member as the
identity column, either with `identity()` on a dataclass field or with
`Annotated[int | None, Identity]`:

    @table('people')
    @dataclass
    class Person:
        id: int | None = identity()
        name: str = ''
        age: int = 0

The resolved `TableSchema` is computed once per type and cached.
"""
import dataclasses
import logging
import types
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin
from typing import get_type_hints

from sqlhelper.cache import cached_by_type
from sqlhelper.exceptions import ConfigurationError

__all__ = [
    'ColumnInfo',
    'Identity',
    'TableSchema',
    'describe_columns',
    'identity',
    'member_value',
    'resolve',
    'resolve_search_table',
    'table',
]

logger = logging.getLogger(__name__)

TABLE_NAME_ATTR = '__table_name__'
IDENTITY_KEY = 'sqlhelper.identity'
SEARCH_TABLE_MEMBER = 'table_name'

MISSING = object()


class Identity:
    """Marker for the identity column in `Annotated` hints."""


def identity(default: Any = None, **kwargs: Any) -> Any:
    """Dataclass field marked as the store-generated identity column.
    """
    metadata = {**kwargs.pop('metadata', {}), IDENTITY_KEY: True}
    return dataclasses.field(default=default, metadata=metadata, **kwargs)


@dataclass(frozen=True, slots=True)
class ColumnInfo:
    """A mapped member: name, declared Python type and ordinal."""
    name: str
    python_type: type
    ordinal: int


@dataclass(frozen=True)
class TableSchema:
    """Resolved mapping metadata for one model type."""
    table_name: str
    columns: tuple[ColumnInfo, ...]
    identity_column: str | None = None

    @property
    def column_names(self) -> list[str]:
        return [col.name for col in self.columns]

    def column(self, name: str) -> ColumnInfo | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None


def member_value(obj: Any, name: str, default: Any = MISSING) -> Any:
    """Read a member from a mapping or an object.

    Raises AttributeError when the member is absent and no default is given.
    """
    if isinstance(obj, Mapping):
        if name in obj:
            return obj[name]
    elif hasattr(obj, name):
        return getattr(obj, name)
    if default is MISSING:
        raise AttributeError(f'{type(obj).__name__} has no member {name!r}')
    return default


def _strip_hint(hint: Any) -> tuple[type, bool]:
    """Reduce a type hint to a concrete type and whether it carries Identity.
    """
    marked = False
    if get_origin(hint) is Annotated:
        marked = any(m is Identity or isinstance(m, Identity) for m in hint.__metadata__)
        hint = get_args(hint)[0]

    if get_origin(hint) in {Union, types.UnionType}:
        args = [a for a in get_args(hint) if a is not type(None)]
        hint = args[0] if len(args) == 1 else object

    if isinstance(hint, type):
        return hint, marked
    origin = get_origin(hint)
    if isinstance(origin, type):
        return origin, marked
    return object, marked


def _type_hints(model: type) -> dict[str, Any]:
    try:
        return get_type_hints(model, include_extras=True)
    except (NameError, TypeError) as err:
        logger.debug(f'Could not evaluate hints for {model.__qualname__}: {err}')
        hints: dict[str, Any] = {}
        for klass in reversed(model.__mro__):
            hints.update(vars(klass).get('__annotations__', {}))
        return hints


def _inspect_members(model: type) -> tuple[tuple[ColumnInfo, ...], str | None]:
    """Enumerate public members in declaration order and find the identity.
    """
    hints = _type_hints(model)

    if dataclasses.is_dataclass(model):
        members = [(f.name, hints.get(f.name, f.type), bool(f.metadata.get(IDENTITY_KEY)))
                   for f in dataclasses.fields(model)]
    else:
        members = []
        for name, hint in hints.items():
            if hint is ClassVar or get_origin(hint) is ClassVar:
                continue
            default = getattr(model, name, None)
            marked = isinstance(default, dataclasses.Field) and bool(default.metadata.get(IDENTITY_KEY))
            members.append((name, hint, marked))

    columns = []
    identities = []
    for name, hint, marked in members:
        if name.startswith('_'):
            continue
        python_type, annotated = _strip_hint(hint)
        if marked or annotated:
            identities.append(name)
        columns.append(ColumnInfo(name, python_type, len(columns)))

    if len(identities) > 1:
        raise ConfigurationError(
            f'{model.__qualname__} marks more than one identity column: {identities}')

    return tuple(columns), (identities[0] if identities else None)


def _table_name(model: type) -> str:
    name = getattr(model, TABLE_NAME_ATTR, None)
    if name is None:
        raise ConfigurationError(f'{model.__qualname__} does not declare a table name')
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError(f'{model.__qualname__} declares a blank table name')
    return name


def _build_schema(model: type) -> TableSchema:
    table_name = _table_name(model)
    columns, identity_column = _inspect_members(model)
    if not columns:
        raise ConfigurationError(
            f'{model.__qualname__} declares no mapped members; '
            'use a dataclass or annotate the members at class level')
    return TableSchema(table_name, columns, identity_column)


@cached_by_type('table_schema')
def _resolve_type(model: type) -> TableSchema:
    return _build_schema(model)


@cached_by_type('model_columns')
def _describe_type(model: type) -> tuple[ColumnInfo, ...]:
    columns, _ = _inspect_members(model)
    return columns


def resolve(model: type | Any) -> TableSchema:
    """Resolve the table name and identity column of a model type or instance.

    Raises ConfigurationError if the table name is missing or blank, if the
    type declares no members (instance attributes set only in `__init__`
    are not members), or if more than one member is marked as the identity
    column.
    """
    if not isinstance(model, type):
        model = type(model)
    return _resolve_type(model)


def describe_columns(model: type) -> tuple[ColumnInfo, ...]:
    """Ordered public members of a type; no table name required."""
    return _describe_type(model)


def table(name: str):
    """Class decorator declaring the table a model type maps to.

    Identity markers are validated here, so a misconfigured model fails at
    import time rather than on its first insert.
    """
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError('Table name must be a non-blank string')

    def decorator(cls: type) -> type:
        setattr(cls, TABLE_NAME_ATTR, name)
        schema = _build_schema(cls)
        logger.debug(f'Registered {cls.__qualname__} as {name} '
                     f'({len(schema.columns)} columns, identity={schema.identity_column})')
        return cls

    return decorator


def resolve_search_table(search: Any) -> str:
    """Table name carried by an ad hoc search value in its `table_name` member.
    """
    value = member_value(search, SEARCH_TABLE_MEMBER, None)
    if value is None:
        raise ConfigurationError(
            f'{type(search).__name__} does not have a {SEARCH_TABLE_MEMBER} member')
    if not isinstance(value, str):
        raise ConfigurationError(
            f'{SEARCH_TABLE_MEMBER} must be a string, got {type(value).__name__}')
    if not value.strip():
        raise ConfigurationError(f'{SEARCH_TABLE_MEMBER} is blank')
    return value
