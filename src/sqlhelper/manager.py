"""
Object mapping facade.

`DataManager` writes model instances to their table and reads rows back
into model instances:

- insert_one(obj) - INSERT one row, returning the generated identity
- insert_many(objs) - stream many rows through the dialect's bulk-load path
- find_one(Model, search) - first row matching a search value, or None
- find_all(Model, search) - every row matching a search value

A search value is any mapping or object carrying a `table_name` member;
its other public members become equality criteria joined by AND:

    dm.find_one(Person, {'table_name': 'people', 'name': 'Ann'})

Each call opens its own connection and closes it before returning. The
manager keeps no per-call state, so one instance may be shared freely.
"""
import logging
from collections.abc import Iterable
from typing import Any, TypeVar

import sqlalchemy as sa
from more_itertools import peekable
from sqlhelper.command import build_insert, build_select
from sqlhelper.connection import ConnectionWrapper, connect, get_engine, make_url
from sqlhelper.exceptions import ValidationError
from sqlhelper.materialize import materialize_all, materialize_one
from sqlhelper.options import DatabaseOptions
from sqlhelper.projection import project
from sqlhelper.reader import IterableReader
from sqlhelper.schema import SEARCH_TABLE_MEMBER, resolve, resolve_search_table
from sqlhelper.strategy import get_db_strategy

__all__ = ['DataManager']

logger = logging.getLogger(__name__)

T = TypeVar('T')


class DataManager:
    """Maps model instances to table rows and back.

    Args:
        connection: SQLAlchemy connection string or URL, or DatabaseOptions
        **engine_kwargs: Extra keyword arguments for engine creation

    Raises
        ConfigurationError: If the connection string is missing or blank
    """

    def __init__(self, connection: str | sa.URL | DatabaseOptions, **engine_kwargs: Any) -> None:
        url = make_url(connection)
        if isinstance(connection, DatabaseOptions):
            engine_kwargs.setdefault('use_pool', connection.use_pool)
            engine_kwargs.setdefault('pool_size', connection.pool_max_connections)
            engine_kwargs.setdefault('pool_recycle', connection.pool_max_idle_time)
            engine_kwargs.setdefault('pool_timeout', connection.pool_wait_timeout)
        self.engine = get_engine(url, **engine_kwargs)
        self.strategy = get_db_strategy(self.engine)

    def __repr__(self) -> str:
        return f'DataManager({self.engine.url!r})'

    @property
    def dialect(self) -> str:
        return self.strategy.dialect_name

    def connect(self) -> ConnectionWrapper:
        """Open a configured connection for one operation."""
        return connect(self.engine)

    def insert_one(self, data: Any) -> Any | None:
        """Insert one model instance.

        The identity member, if the model has one, is left out of the
        INSERT and its generated value is returned.

        Returns
            Generated identity value, or None when the model has no identity column
        """
        if data is None:
            raise ValidationError('data is None')

        schema = resolve(data)
        columns = project(data, skip=schema.identity_column)
        command = build_insert(schema.table_name, schema.identity_column, columns, self.dialect)

        identity = None
        with self.connect() as cn:
            result = cn.execute(command)
            if command.returns_identity:
                identity = self.strategy.fetch_identity(result)
            cn.commit()

        logger.debug(f'Inserted one row into {schema.table_name} (identity={identity})')
        return identity

    def insert_many(self, data: Iterable[Any], model: type | None = None,
                    batch_size: int = 500) -> int:
        """Insert many model instances through the bulk-load path.

        The instances are streamed through an IterableReader; they are never
        collected into an intermediate table. The model type defaults to the
        type of the first element. An empty iterable inserts nothing.

        Returns
            Number of rows sent to the store
        """
        if data is None:
            raise ValidationError('data is None')

        rows = peekable(data)
        if model is None:
            if not rows:
                logger.debug('Skipping insert of empty rows')
                return 0
            model = type(rows.peek())

        schema = resolve(model)
        exclude = (schema.identity_column,) if schema.identity_column else ()

        with self.connect() as cn, IterableReader(rows, schema) as reader:
            count = self.strategy.bulk_load(cn, schema.table_name, reader,
                                            exclude=exclude, batch_size=batch_size)
            cn.commit()

        logger.debug(f'Bulk loaded {count} rows into {schema.table_name}')
        return count

    def _select_command(self, search: Any):
        if search is None:
            raise ValidationError('search is None')
        table_name = resolve_search_table(search)
        criteria = project(search, skip=SEARCH_TABLE_MEMBER)
        return build_select(table_name, criteria)

    def find_one(self, model: type[T], search: Any) -> T | None:
        """First row matching the search value, as a new `model` instance.

        Returns
            The instance, or None if nothing matched
        """
        command = self._select_command(search)
        with self.connect() as cn:
            row = cn.select_first(command)
        if row is None:
            return None
        return materialize_one(model, [row])

    def find_all(self, model: type[T], search: Any) -> list[T]:
        """Every row matching the search value, as new `model` instances.

        Returns
            List of instances; empty if nothing matched
        """
        command = self._select_command(search)
        with self.connect() as cn:
            rows = cn.select(command)
        return materialize_all(model, rows)
