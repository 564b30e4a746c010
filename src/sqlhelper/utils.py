"""Low-level connection utilities with no internal dependencies.

These utilities work with any connection type (ConnectionWrapper,
SQLAlchemy connections and engines, raw DBAPI connections) and import
nothing from the rest of the package.
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)


def get_dialect_name(obj: Any) -> str:
    """Get dialect name for a database connection or engine.
    """
    if isinstance(obj, str):
        return obj.lower()

    if hasattr(obj, 'dialect'):
        dialect = obj.dialect
        if isinstance(dialect, str):
            return dialect.lower()
        return str(dialect.name).lower()

    if hasattr(obj, 'engine') and hasattr(obj.engine, 'dialect'):
        return str(obj.engine.dialect.name).lower()

    if hasattr(obj, 'sa_connection') and hasattr(obj.sa_connection, 'engine'):
        return str(obj.sa_connection.engine.dialect.name).lower()

    type_name = f'{type(obj).__module__}.{type(obj).__name__}'
    if 'psycopg' in type_name:
        return 'postgresql'
    if 'sqlite3' in type_name:
        return 'sqlite'
    if 'pyodbc' in type_name:
        return 'mssql'

    raise AttributeError(f'Cannot determine dialect for {type(obj)}')
