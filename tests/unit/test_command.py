"""
Unit tests for INSERT and SELECT command construction.
"""
import dataclasses

import pytest
import sqlalchemy as sa
from sqlhelper.command import Command, build_insert, build_select, parameter_names
from sqlhelper.exceptions import ConfigurationError, TypeMismatchError
from sqlhelper.exceptions import ValidationError
from sqlhelper.types import ValueKind


def test_build_insert_with_identity():
    command = build_insert('people', 'id', [('name', 'Ann'), ('age', 30)], dialect='sqlite')

    assert command.sql == 'INSERT INTO people (name,age) VALUES (:p0,:p1) RETURNING id'
    assert command.values == ['Ann', 30]
    assert command.returns_identity is True


def test_build_insert_without_identity():
    command = build_insert('people', None, [('name', 'Ann'), ('age', 30)])

    assert command.sql == 'INSERT INTO people (name,age) VALUES (:p0,:p1)'
    assert command.returns_identity is False


@pytest.mark.parametrize(('dialect', 'suffix'), [
    ('sqlite', ' RETURNING id'),
    ('postgresql', ' RETURNING id'),
    ('mssql', '; SELECT SCOPE_IDENTITY()'),
])
def test_build_insert_identity_clause_per_dialect(dialect, suffix):
    command = build_insert('people', 'id', [('name', 'Ann')], dialect=dialect)

    assert command.sql == f'INSERT INTO people (name) VALUES (:p0){suffix}'


def test_build_insert_unknown_dialect():
    with pytest.raises(ConfigurationError, match='Unsupported dialect'):
        build_insert('people', 'id', [('name', 'Ann')], dialect='oracle')


def test_build_insert_no_columns():
    with pytest.raises(ValidationError):
        build_insert('people', 'id', [])


@pytest.mark.parametrize('count', [1, 3, 7])
def test_one_parameter_per_column(count):
    columns = [(f'c{i}', i) for i in range(count)]
    command = build_insert('wide', None, columns)

    assert [param.name for param in command.parameters] == parameter_names(count)
    assert command.values == list(range(count))
    assert command.sql.count(':p') == count


def test_parameters_are_tagged():
    command = build_insert('people', None, [('name', 'Ann'), ('age', 30), ('nick', None)])

    assert [param.value.kind for param in command.parameters] == [
        ValueKind.TEXT, ValueKind.INTEGER, ValueKind.NULL]


def test_values_are_never_interpolated():
    hostile = "Ann'); DROP TABLE people; --"
    command = build_insert('people', None, [('name', hostile)])

    assert hostile not in command.sql
    assert command.bind() == {'p0': hostile}


def test_build_insert_unsupported_value():
    with pytest.raises(TypeMismatchError):
        build_insert('people', None, [('name', object())])


def test_build_select_one_criterion():
    command = build_select('people', [('name', 'Ann')])

    assert command.sql == 'SELECT * FROM people WHERE name = :p0;'
    assert command.values == ['Ann']
    assert command.returns_identity is False


def test_build_select_joins_with_and():
    command = build_select('people', [('name', 'Ann'), ('age', 30)])

    assert command.sql == 'SELECT * FROM people WHERE name = :p0 AND age = :p1;'
    assert command.bind() == {'p0': 'Ann', 'p1': 30}


def test_build_select_requires_criteria():
    with pytest.raises(ValidationError, match='search criterion'):
        build_select('people', [])


def test_command_is_immutable():
    command = build_select('people', [('name', 'Ann')])

    with pytest.raises(dataclasses.FrozenInstanceError):
        command.sql = 'DELETE FROM people'


def test_commands_do_not_share_parameters():
    first = build_select('people', [('name', 'Ann')])
    second = build_select('people', [('name', 'Bo')])

    assert first.values == ['Ann']
    assert second.values == ['Bo']


def test_to_text():
    command = Command('SELECT 1', ())

    assert isinstance(command.to_text(), sa.TextClause)
    assert command.bind() == {}
