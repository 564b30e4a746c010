"""
SQLite-specific strategy implementation.

SQLite returns generated rowids through INSERT ... RETURNING (SQLite 3.35+)
and has no native bulk-copy path, so bulk loads use the batched
executemany of the base strategy. Adapters and converters are registered
so decimal, GUID and timestamp values survive a round trip through
columns declared with those types.
"""
import datetime
import logging
import sqlite3
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import dateutil.parser
import sqlalchemy as sa
from sqlhelper.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from sqlhelper.options import DatabaseOptions

logger = logging.getLogger(__name__)


def convert_date(val: bytes) -> datetime.date:
    """Convert ISO 8601 date string to date object."""
    return dateutil.parser.isoparse(val.decode()).date()


def convert_datetime(val: bytes) -> datetime.datetime:
    """Convert ISO 8601 datetime string to datetime object."""
    return dateutil.parser.isoparse(val.decode())


def convert_decimal(val: bytes) -> Decimal:
    return Decimal(val.decode())


def convert_guid(val: bytes) -> uuid.UUID:
    return uuid.UUID(val.decode())


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQLite."""
        return sa.URL.create(drivername='sqlite', database=options.database)

    def get_engine_kwargs(self, options: 'DatabaseOptions | None' = None) -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite."""
        return {
            'connect_args': {
                'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
            }
        }

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']

    def register_type_adapters(self) -> None:
        """Register adapters and converters for SQLite.

        Adapters (Python -> SQLite) store values as ISO or canonical text;
        converters (SQLite -> Python) apply to columns declared with the
        matching type name.
        """
        sqlite3.register_adapter(Decimal, str)
        sqlite3.register_adapter(uuid.UUID, str)
        sqlite3.register_adapter(datetime.date, datetime.date.isoformat)
        sqlite3.register_adapter(datetime.datetime, lambda v: v.isoformat(' '))

        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)
        sqlite3.register_converter('timestamp', convert_datetime)
        sqlite3.register_converter('decimal', convert_decimal)
        sqlite3.register_converter('guid', convert_guid)
        sqlite3.register_converter('uuid', convert_guid)

    def configure_connection(self, sa_connection: sa.engine.Connection) -> None:
        """Register type adapters and enforce foreign keys on a new connection.
        """
        self.register_type_adapters()
        cursor = sa_connection.connection.cursor()
        try:
            cursor.execute('PRAGMA foreign_keys = ON')
        finally:
            cursor.close()

    def identity_clause(self, identity_column: str) -> str:
        return f' RETURNING {identity_column}'
