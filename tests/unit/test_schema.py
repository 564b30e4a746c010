"""
Unit tests for model mapping metadata.
"""
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Annotated, ClassVar

import pytest
from sqlhelper.exceptions import ConfigurationError
from sqlhelper.schema import Identity, TableSchema, describe_columns, identity
from sqlhelper.schema import member_value, resolve, resolve_search_table, table

from tests.fixtures.models import Person, PersonRow


def test_resolve_person():
    """Table name, identity and ordered columns of a decorated dataclass"""
    schema = resolve(Person)

    assert isinstance(schema, TableSchema)
    assert schema.table_name == 'people'
    assert schema.identity_column == 'id'
    assert schema.column_names == ['id', 'name', 'age']
    assert [col.ordinal for col in schema.columns] == [0, 1, 2]


def test_resolve_instance_matches_type():
    assert resolve(Person(name='Ann', age=30)) == resolve(Person)


def test_resolve_without_identity():
    schema = resolve(PersonRow)

    assert schema.table_name == 'people'
    assert schema.identity_column is None


def test_resolve_strips_optional_hint():
    assert resolve(Person).column('id').python_type is int
    assert resolve(Person).column('missing') is None


def test_resolve_is_cached():
    assert resolve(Person) is resolve(Person)


def test_resolve_missing_table_name():
    @dataclass
    class Unmapped:
        name: str = ''

    with pytest.raises(ConfigurationError, match='does not declare a table name'):
        resolve(Unmapped)


@pytest.mark.parametrize('name', ['', '   '])
def test_resolve_blank_table_attribute(name):
    @dataclass
    class Blank:
        __table_name__: ClassVar[str] = name
        value: int = 0

    with pytest.raises(ConfigurationError, match='blank table name'):
        resolve(Blank)


@pytest.mark.parametrize('name', ['', '  ', None, 42])
def test_table_decorator_rejects_blank_name(name):
    with pytest.raises(ConfigurationError):
        table(name)


def test_table_decorator_rejects_two_identities():
    """A model with two identity markers fails when it is declared"""
    with pytest.raises(ConfigurationError, match='more than one identity'):
        @table('pairs')
        @dataclass
        class Pair:
            left: int | None = identity()
            right: int | None = identity()


def test_identity_keeps_field_metadata():
    @table('tagged')
    @dataclass
    class Tagged:
        key: int | None = identity(metadata={'doc': 'surrogate key'})
        label: str = ''

    assert resolve(Tagged).identity_column == 'key'


def test_annotated_identity_on_plain_class():
    """Plain annotated classes map their annotations; ClassVar is skipped"""
    @table('sensors')
    class Sensor:
        kind: ClassVar[str] = 'sensor'
        sensor_id: Annotated[int | None, Identity]
        label: str

    schema = resolve(Sensor)

    assert schema.table_name == 'sensors'
    assert schema.identity_column == 'sensor_id'
    assert schema.column_names == ['sensor_id', 'label']
    assert schema.column('sensor_id').python_type is int


def test_private_members_are_not_columns():
    @table('secrets')
    @dataclass
    class Secret:
        name: str = ''
        _token: str = field(default='', repr=False)

    assert resolve(Secret).column_names == ['name']


def test_describe_columns_without_table():
    @dataclass
    class Loose:
        a: int = 0
        b: str = ''

    assert [col.name for col in describe_columns(Loose)] == ['a', 'b']


def test_describe_columns_of_empty_class():
    class Empty:
        pass

    assert describe_columns(Empty) == ()


def test_member_value():
    assert member_value({'a': 1}, 'a') == 1
    assert member_value(SimpleNamespace(a=2), 'a') == 2
    assert member_value({'a': 1}, 'b', None) is None
    with pytest.raises(AttributeError):
        member_value(SimpleNamespace(), 'b')


@pytest.mark.parametrize('search', [
    {'table_name': 'people', 'name': 'Ann'},
    SimpleNamespace(table_name='people', name='Ann'),
])
def test_resolve_search_table(search):
    assert resolve_search_table(search) == 'people'


@pytest.mark.parametrize(('search', 'message'), [
    ({'name': 'Ann'}, 'does not have a table_name member'),
    (SimpleNamespace(name='Ann'), 'does not have a table_name member'),
    ({'table_name': None}, 'does not have a table_name member'),
    ({'table_name': 7}, 'must be a string'),
    ({'table_name': '  '}, 'is blank'),
])
def test_resolve_search_table_errors(search, message):
    with pytest.raises(ConfigurationError, match=message):
        resolve_search_table(search)


def test_table_rejects_class_without_members():
    """Attributes assigned only in __init__ are not mapped members"""
    with pytest.raises(ConfigurationError, match='declares no mapped members'):
        @table('people')
        class Bare:
            def __init__(self, name='', age=0):
                self.name = name
                self.age = age


def test_resolve_rejects_class_without_members():
    class Bare:
        __table_name__ = 'people'

        def __init__(self, name=''):
            self.name = name

    with pytest.raises(ConfigurationError, match='declares no mapped members'):
        resolve(Bare('Ann'))
