"""
Database connection handling with SQLAlchemy.

This module provides:
1. Engine creation and management through a thread-safe registry
2. The `ConnectionWrapper` class that runs built commands on one connection
3. The `connect()` function for opening a configured connection

A connection is opened for exactly one top-level operation and closed
before that operation returns. A ConnectionWrapper must not be shared by
two operations in flight at the same time.
"""
import atexit
import logging
import threading
import time
from collections.abc import Callable, Sequence
from functools import wraps
from typing import Any, Self

import sqlalchemy as sa
from sqlalchemy.engine import Engine, RowMapping
from sqlalchemy.pool import NullPool
from sqlhelper.command import Command
from sqlhelper.exceptions import ConfigurationError
from sqlhelper.options import DatabaseOptions, create_url_from_options
from sqlhelper.strategy import get_db_strategy
from sqlhelper.utils import get_dialect_name

__all__ = [
    'ConnectionWrapper',
    'connect',
    'dispose_all_engines',
    'get_engine',
    'make_url',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def make_url(target: str | sa.URL | DatabaseOptions) -> sa.URL:
    """Normalize a connection string, URL or DatabaseOptions to a URL.

    Raises
        ConfigurationError: If the connection string is missing or blank
    """
    if isinstance(target, DatabaseOptions):
        return create_url_from_options(target)
    if isinstance(target, sa.URL):
        return target
    if target is None or not isinstance(target, str) or not target.strip():
        raise ConfigurationError('Connection string is null or blank')
    try:
        return sa.make_url(target)
    except sa.exc.ArgumentError as err:
        raise ConfigurationError(f'Could not parse connection string: {err}') from err


def get_engine(url: sa.URL, use_pool: bool = False, pool_size: int = 5,
               pool_recycle: int = 300, pool_timeout: int = 30,
               engine_factory: Callable[..., Engine] = sa.create_engine,
               **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given URL.
    """
    key = f'{url.render_as_string(hide_password=False)}_{use_pool}_{pool_size}_{pool_recycle}_{pool_timeout}'

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {url.get_backend_name()}')
            return _engine_registry[key]

        strategy = get_db_strategy(url.get_backend_name())
        engine_kwargs: dict[str, Any] = {'echo': False}
        engine_kwargs.update(strategy.get_engine_kwargs())

        if not use_pool:
            engine_kwargs['poolclass'] = NullPool
        else:
            engine_kwargs['pool_size'] = pool_size
            engine_kwargs['pool_recycle'] = pool_recycle
            engine_kwargs['pool_timeout'] = pool_timeout
            engine_kwargs['max_overflow'] = 10
            engine_kwargs['pool_pre_ping'] = True
            engine_kwargs['pool_reset_on_return'] = 'rollback'

        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {url.get_backend_name()}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in _engine_registry.values():
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


def dumpsql(func):
    """Decorator for logging SQL statements, parameter counts and timing."""
    @wraps(func)
    def wrapper(self, statement: Any, *args: Any, **kwargs: Any):
        sql = statement.sql if isinstance(statement, Command) else statement
        start = time.time()
        logger.debug(f'SQL:\n{sql}')
        try:
            return func(self, statement, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{sql}')
            raise
        finally:
            elapsed = time.time() - start
            self.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class ConnectionWrapper:
    """Wraps a SQLAlchemy connection to run built commands and track timing

    1. Executes Command objects with their bound parameters
    2. Tracks query execution counts and timing
    3. Supports context manager protocol; an exception inside the block
       rolls back before the connection is closed
    4. Exposes the underlying DBAPI connection for driver-level bulk paths
    """

    def __init__(self, sa_connection: sa.engine.Connection) -> None:
        self.sa_connection = sa_connection
        self.engine = sa_connection.engine
        self.dbapi_connection = sa_connection.connection
        self._dialect = get_dialect_name(sa_connection)
        self.calls = 0
        self.time = 0.0

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        if exc_type is not None:
            self.rollback()
        self.close()

    @property
    def dialect(self) -> str:
        """Return the dialect name ('sqlite', 'postgresql' or 'mssql')."""
        return self._dialect

    @property
    def closed(self) -> bool:
        return self.sa_connection.closed

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def commit(self) -> None:
        """Commit whatever ran on this connection, through SQLAlchemy or the driver
        """
        if self.sa_connection.in_transaction():
            self.sa_connection.commit()
        else:
            self.dbapi_connection.commit()

    def rollback(self) -> None:
        try:
            if self.sa_connection.in_transaction():
                self.sa_connection.rollback()
            else:
                self.dbapi_connection.rollback()
            logger.warning('Rolled back the current operation')
        except sa.exc.SQLAlchemyError as err:
            logger.debug(f'Rollback failed: {err}')

    def close(self) -> None:
        """Close the SQLAlchemy connection
        """
        if not self.sa_connection.closed:
            self.sa_connection.close()
            logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s '
                         f'(avg: {self.time/max(1,self.calls):.3f}s per query)')

    @dumpsql
    def execute(self, command: Command) -> sa.CursorResult:
        """Execute a built command with its bound parameters.
        """
        result = self.sa_connection.execute(command.to_text(), command.bind())
        logger.debug(f'Executed command with {len(command.parameters)} parameters')
        return result

    @dumpsql
    def executemany(self, sql: str, params: Sequence[dict[str, Any]]) -> int:
        """Execute one statement against every parameter mapping; returns rows sent.
        """
        if not params:
            logger.debug('executemany called with no parameter sets')
            return 0
        self.sa_connection.execute(sa.text(sql), list(params))
        return len(params)

    def select(self, command: Command) -> list[RowMapping]:
        """All rows of a SELECT command as column mappings.
        """
        rows = self.execute(command).mappings().all()
        logger.debug(f'Select returned {len(rows)} rows')
        return rows

    def select_first(self, command: Command) -> RowMapping | None:
        """First row of a SELECT command, or None.
        """
        return self.execute(command).mappings().first()


def connect(target: str | sa.URL | DatabaseOptions | Engine, **kw: Any) -> ConnectionWrapper:
    """Open a configured connection

    Args:
        target: Can be:
                - SQLAlchemy connection string or URL
                - DatabaseOptions object
                - An existing Engine
        **kw: Additional keyword arguments passed to engine creation

    Returns
        ConnectionWrapper around a newly opened connection
    """
    if isinstance(target, Engine):
        engine = target
    elif isinstance(target, DatabaseOptions):
        engine = get_engine(make_url(target), use_pool=target.use_pool,
                            pool_size=target.pool_max_connections,
                            pool_recycle=target.pool_max_idle_time,
                            pool_timeout=target.pool_wait_timeout, **kw)
    else:
        engine = get_engine(make_url(target), **kw)

    sa_connection = engine.connect()
    get_db_strategy(sa_connection).configure_connection(sa_connection)
    return ConnectionWrapper(sa_connection)
