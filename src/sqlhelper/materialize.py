"""
Materialize returned rows into model instances.

Each row becomes a freshly constructed instance of the target type. Column
names are matched to writable public members exactly first, then without
regard to case, since dialects differ in how they case column names
(SQL Server preserves declared case, PostgreSQL folds unquoted names to
lower case). Unmatched columns are ignored; unmatched members keep their
defaults.
"""
import inspect
import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from sqlhelper.exceptions import ConfigurationError
from sqlhelper.projection import public_members

__all__ = ['materialize_all', 'materialize_one', 'writable_members']

logger = logging.getLogger(__name__)

T = TypeVar('T')


def _row_mapping(row: Any) -> Mapping[str, Any]:
    """Column mapping of a returned row (SQLAlchemy Row, sqlite3.Row or dict)."""
    if hasattr(row, '_mapping'):
        return row._mapping
    if isinstance(row, Mapping):
        return row
    if hasattr(row, 'keys') and callable(row.keys):
        return {key: row[key] for key in row.keys()}  # noqa: SIM118
    raise TypeError(f'Cannot read columns from {type(row).__name__}')


def _requires_arguments(model: type) -> bool:
    try:
        signature = inspect.signature(model)
    except (TypeError, ValueError):
        return False
    try:
        signature.bind()
    except TypeError:
        return True
    return False


def _new_instance(model: type[T]) -> T:
    if _requires_arguments(model):
        raise ConfigurationError(
            f'{model.__qualname__} must be constructible without arguments')
    return model()


def writable_members(model: type, instance: Any = None) -> list[str]:
    """Public members of a model that can be assigned on an instance.
    """
    params = getattr(model, '__dataclass_params__', None)
    if params is not None and params.frozen:
        logger.warning(f'{model.__qualname__} is frozen; returned columns cannot be assigned')
        return []

    if instance is None:
        instance = _new_instance(model)

    names = list(public_members(instance))
    for klass in reversed(model.__mro__):
        for name, attr in vars(klass).items():
            if isinstance(attr, property) and attr.fset is not None \
                    and not name.startswith('_') and name not in names:
                names.append(name)

    read_only = {name for klass in model.__mro__ for name, attr in vars(klass).items()
                 if isinstance(attr, property) and attr.fset is None}
    return [name for name in names if name not in read_only]


class _MemberIndex:
    """Resolve column names to member names: exact match, then case-insensitive."""

    def __init__(self, names: list[str]) -> None:
        self.exact = set(names)
        self.folded: dict[str, str] = {}
        for name in names:
            self.folded.setdefault(name.casefold(), name)

    def find(self, column: str) -> str | None:
        if column in self.exact:
            return column
        return self.folded.get(column.casefold())


def _populate(instance: Any, row: Any, index: _MemberIndex) -> Any:
    for column, value in _row_mapping(row).items():
        member = index.find(column)
        if member is None:
            continue
        setattr(instance, member, value)
    return instance


def materialize_all(model: type[T], rows: Iterable[Any]) -> list[T]:
    """Materialize every row into a new instance of `model`.

    Returns an empty list when there are no rows.
    """
    results: list[T] = []
    index = None
    for row in rows:
        instance = _new_instance(model)
        if index is None:
            index = _MemberIndex(writable_members(model, instance))
        results.append(_populate(instance, row, index))
    logger.debug(f'Materialized {len(results)} {model.__qualname__} rows')
    return results


def materialize_one(model: type[T], rows: Iterable[Any]) -> T | None:
    """Materialize the first row into a new instance of `model`.

    Returns None when there are no rows; that is a normal outcome.
    """
    for row in rows:
        instance = _new_instance(model)
        return _populate(instance, row, _MemberIndex(writable_members(model, instance)))
    return None
