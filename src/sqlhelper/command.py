"""
SQL command construction.

Commands are rendered from a column mapping (ordered `(column, value)`
pairs) into statement text with named placeholders `:p0 .. :pN` and a
matching ordered parameter list:

    INSERT INTO people (name,age) VALUES (:p0,:p1)
    SELECT * FROM people WHERE name = :p0 AND age = :p1;

Values are never interpolated into the statement text; they travel as
bound parameters through SQLAlchemy `text()`, which maps the named
placeholders onto the driver's own parameter style.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import sqlalchemy as sa
from sqlhelper.exceptions import ValidationError
from sqlhelper.types import SqlValue

__all__ = [
    'Command',
    'Parameter',
    'build_insert',
    'build_select',
    'insert_statement',
    'parameter_names',
]

logger = logging.getLogger(__name__)

PARAMETER_PREFIX = 'p'


@dataclass(frozen=True, slots=True)
class Parameter:
    """A named, positionally bound parameter."""
    name: str
    value: SqlValue


@dataclass(frozen=True)
class Command:
    """Statement text plus its ordered parameters. Immutable once built."""
    sql: str
    parameters: tuple[Parameter, ...]
    returns_identity: bool = False

    @property
    def values(self) -> list[Any]:
        """Bound values in parameter order."""
        return [param.value.value for param in self.parameters]

    def bind(self) -> dict[str, Any]:
        """Parameter mapping for execution."""
        return {param.name: param.value.value for param in self.parameters}

    def to_text(self) -> sa.TextClause:
        return sa.text(self.sql)


def parameter_names(count: int) -> list[str]:
    return [f'{PARAMETER_PREFIX}{i}' for i in range(count)]


def insert_statement(table_name: str, columns: Sequence[str]) -> str:
    """INSERT text for the given columns, one placeholder per column.
    """
    placeholders = ','.join(f':{name}' for name in parameter_names(len(columns)))
    return f"INSERT INTO {table_name} ({','.join(columns)}) VALUES ({placeholders})"


def _parameters(columns: Sequence[tuple[str, Any]]) -> tuple[Parameter, ...]:
    return tuple(Parameter(name, SqlValue.of(value))
                 for name, (_, value) in zip(parameter_names(len(columns)), columns))


def build_insert(table_name: str, identity_column: str | None,
                 columns: Sequence[tuple[str, Any]], dialect: str = 'sqlite') -> Command:
    """Build a parameterized INSERT for one row.

    With an identity column, the dialect's identity-return clause is
    appended and the command reports `returns_identity`.

    Raises
        ValidationError: If there are no columns to insert
        TypeMismatchError: If a value is of an unsupported kind
    """
    if not columns:
        raise ValidationError(f'No columns to insert into {table_name}')

    from sqlhelper.strategy import get_strategy

    sql = insert_statement(table_name, [name for name, _ in columns])
    if identity_column:
        sql += get_strategy(dialect).identity_clause(identity_column)

    command = Command(sql, _parameters(columns), returns_identity=bool(identity_column))
    logger.debug(f'Built insert with {len(command.parameters)} parameters')
    return command


def build_select(table_name: str, columns: Sequence[tuple[str, Any]]) -> Command:
    """Build a SELECT matching every column by equality (AND only).

    Raises
        ValidationError: If no search criteria are given
        TypeMismatchError: If a value is of an unsupported kind
    """
    if not columns:
        raise ValidationError(f'At least one search criterion is required for {table_name}')

    names = parameter_names(len(columns))
    conditions = [f'{column} = :{name}' for (column, _), name in zip(columns, names)]
    sql = f"SELECT * FROM {table_name} WHERE {' AND '.join(conditions)};"

    command = Command(sql, _parameters(columns))
    logger.debug(f'Built select with {len(command.parameters)} criteria')
    return command
