"""
PostgreSQL-specific strategy implementation.

Generated identities come back through INSERT ... RETURNING. Bulk loads
stream the reader through psycopg's COPY protocol instead of batched
INSERT statements, so rows never round-trip one by one.
"""
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlhelper.exceptions import ValidationError
from sqlhelper.strategy.base import DatabaseStrategy, iter_records
from sqlhelper.strategy.base import load_ordinals, register_strategy

if TYPE_CHECKING:
    from sqlhelper.connection import ConnectionWrapper
    from sqlhelper.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    def build_connection_url(self, options: 'DatabaseOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for PostgreSQL (psycopg 3)."""
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)

        return sa.URL.create(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query
        )

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port', 'timeout']

    def identity_clause(self, identity_column: str) -> str:
        return f' RETURNING {identity_column}'

    def bulk_load(self, cn: 'ConnectionWrapper', table_name: str, reader: Any,
                  exclude: Iterable[str] = (), batch_size: int = 500) -> int:
        """Stream every row of a tabular reader with COPY ... FROM STDIN.

        `batch_size` is unused: COPY streams the whole reader in one
        statement.
        """
        ordinals = load_ordinals(reader, exclude)
        if not ordinals:
            raise ValidationError(f'No columns left to load into {table_name}')

        columns = ', '.join(reader.get_name(i) for i in ordinals)
        sql = f'COPY {table_name} ({columns}) FROM STDIN'
        logger.debug(f'SQL:\n{sql}')

        total = 0
        cursor = cn.dbapi_connection.cursor()
        try:
            with cursor.copy(sql) as copy:
                for record in iter_records(reader, ordinals):
                    copy.write_row(record)
                    total += 1
        finally:
            cursor.close()

        logger.debug(f'Copied {total} rows into {table_name}')
        return total
