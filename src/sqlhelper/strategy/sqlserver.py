"""
SQL Server-specific strategy implementation.

This module implements the DatabaseStrategy interface for SQL Server:
- SCOPE_IDENTITY() appended to inserts to return the generated identity
- NOCOUNT enabled per connection so that SELECT SCOPE_IDENTITY() is the
  first result the driver sees
- pyodbc fast_executemany for batched bulk loads
"""
import logging
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlhelper.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from sqlhelper.options import DatabaseOptions

logger = logging.getLogger(__name__)

DEFAULT_ODBC_DRIVER = 'ODBC Driver 18 for SQL Server'


@register_strategy('mssql')
class SQLServerStrategy(DatabaseStrategy):
    """SQL Server-specific operations"""

    @property
    def dialect_name(self) -> str:
        return 'mssql'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQL Server over pyodbc"""
        query = {'driver': options.driver or DEFAULT_ODBC_DRIVER}
        if options.timeout:
            query['timeout'] = str(options.timeout)

        return sa.URL.create(
            drivername='mssql+pyodbc',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query
        )

    def get_engine_kwargs(self, options: 'DatabaseOptions | None' = None) -> dict[str, Any]:
        return {'fast_executemany': True}

    @classmethod
    def get_required_options(cls) -> list[str]:
        return ['hostname', 'database']

    def configure_connection(self, sa_connection: sa.engine.Connection) -> None:
        """Suppress row-count messages so identity selects come back first"""
        cursor = sa_connection.connection.cursor()
        try:
            cursor.execute('SET NOCOUNT ON')
        finally:
            cursor.close()
        logger.debug('Enabled NOCOUNT on SQL Server connection')

    def identity_clause(self, identity_column: str) -> str:
        return '; SELECT SCOPE_IDENTITY()'
