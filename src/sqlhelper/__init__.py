"""
Minimal object-relational mapping over SQLAlchemy connections.

Model types declare their table with `@table(...)` and optionally one
identity member; `DataManager` inserts instances (singly or through the
bulk-load path) and finds rows by equality on a search value:

    @table('people')
    @dataclass
    class Person:
        id: int | None = identity()
        name: str = ''
        age: int = 0

    dm = DataManager('sqlite:///people.db')
    person_id = dm.insert_one(Person(name='Ann', age=30))
    ann = dm.find_one(Person, {'table_name': 'people', 'name': 'Ann'})
"""
__version__ = '0.1.0'

from sqlhelper.command import Command, Parameter, build_insert, build_select
from sqlhelper.connection import ConnectionWrapper, connect
from sqlhelper.exceptions import ConfigurationError, DbConnectionError
from sqlhelper.exceptions import IntegrityError, InvalidStateError
from sqlhelper.exceptions import ProgrammingError, SqlHelperError
from sqlhelper.exceptions import TypeMismatchError, ValidationError
from sqlhelper.manager import DataManager
from sqlhelper.materialize import materialize_all, materialize_one
from sqlhelper.options import DatabaseOptions
from sqlhelper.projection import project
from sqlhelper.reader import IterableReader, ReaderState
from sqlhelper.schema import Identity, TableSchema, identity, resolve
from sqlhelper.schema import resolve_search_table, table
from sqlhelper.types import SqlValue, ValueKind

__all__ = [
    'DataManager',
    'table',
    'identity',
    'Identity',
    'TableSchema',
    'resolve',
    'resolve_search_table',
    'project',
    'Command',
    'Parameter',
    'build_insert',
    'build_select',
    'materialize_one',
    'materialize_all',
    'IterableReader',
    'ReaderState',
    'SqlValue',
    'ValueKind',
    'DatabaseOptions',
    'ConnectionWrapper',
    'connect',
    'SqlHelperError',
    'ConfigurationError',
    'ValidationError',
    'InvalidStateError',
    'TypeMismatchError',
    'DbConnectionError',
    'IntegrityError',
    'ProgrammingError',
]
