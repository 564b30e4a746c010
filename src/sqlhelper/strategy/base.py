"""
Base strategy interface for dialect-specific operations.

Defines the abstract base class that all dialect strategies inherit from.
A strategy knows how to build a connection URL for its dialect, how to
ask the store for the identity value generated by an insert, and how to
stream the rows of a tabular reader into a table (the bulk-load protocol).

The reader handed to `bulk_load` only needs the tabular reader contract:
`field_count`, `get_name(ordinal)`, `read()` and `get_value(ordinal)`.
"""
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from more_itertools import chunked
from sqlhelper.command import insert_statement, parameter_names
from sqlhelper.exceptions import ConfigurationError, ValidationError
from sqlhelper.types import SqlValue

if TYPE_CHECKING:
    from sqlhelper.connection import ConnectionWrapper
    from sqlhelper.options import DatabaseOptions

logger = logging.getLogger(__name__)

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


def load_ordinals(reader: Any, exclude: Iterable[str] = ()) -> list[int]:
    """Ordinals of the reader fields that are sent to the store."""
    excluded = set(exclude)
    return [i for i in range(reader.field_count) if reader.get_name(i) not in excluded]


def iter_records(reader: Any, ordinals: list[int]) -> Iterator[tuple]:
    """Pull rows from a tabular reader until it is exhausted.

    Values are classified as for single inserts; an unsupported kind raises
    TypeMismatchError before anything reaches the driver.
    """
    while reader.read():
        yield tuple(SqlValue.of(reader.get_value(i)).value for i in ordinals)


class DatabaseStrategy(ABC):
    """Base class for dialect-specific operations.
    """

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier (e.g., 'postgresql', 'sqlite')."""

    @abstractmethod
    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for this dialect.

        Args:
            options: DatabaseOptions containing connection parameters

        Returns
            URL suitable for sqlalchemy.create_engine
        """

    def get_engine_kwargs(self, options: 'DatabaseOptions | None' = None) -> dict[str, Any]:
        """Return extra SQLAlchemy create_engine kwargs for this dialect.
        """
        return {}

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect.
        """

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Raises
            ConfigurationError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ConfigurationError(f'field {field} cannot be None or 0')

    def configure_connection(self, sa_connection: sa.engine.Connection) -> None:
        """Apply per-connection settings right after connecting.
        """

    @abstractmethod
    def identity_clause(self, identity_column: str) -> str:
        """Clause appended to an INSERT so that it returns the generated identity.

        Args:
            identity_column: Name of the identity column

        Returns
            Text appended verbatim to the INSERT statement
        """

    def fetch_identity(self, result: sa.CursorResult) -> Any:
        """Read the generated identity from the result of an identity insert.
        """
        value = result.scalar()
        if isinstance(value, (Decimal, float)):
            return int(value)
        return value

    def bulk_load(self, cn: 'ConnectionWrapper', table_name: str, reader: Any,
                  exclude: Iterable[str] = (), batch_size: int = 500) -> int:
        """Stream every row of a tabular reader into a table.

        Rows are pulled from the reader and sent in batches of `batch_size`
        with one executemany round trip per batch. Fields named in `exclude`
        (typically the identity column) are left for the store to fill.

        Returns
            Number of rows sent
        """
        ordinals = load_ordinals(reader, exclude)
        if not ordinals:
            raise ValidationError(f'No columns left to load into {table_name}')

        names = [reader.get_name(i) for i in ordinals]
        sql = insert_statement(table_name, names)
        params = parameter_names(len(names))

        total = 0
        for batch in chunked(iter_records(reader, ordinals), batch_size):
            total += cn.executemany(sql, [dict(zip(params, row)) for row in batch])
            logger.debug(f'Loaded {total} rows into {table_name}')
        return total
