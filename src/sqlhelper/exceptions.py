"""
Mapper-specific exception classes.
"""
import sqlite3

import psycopg
import sqlalchemy as sa


class SqlHelperError(Exception):
    """Base class for all sqlhelper errors.
    """


class ConfigurationError(SqlHelperError):
    """Missing or invalid mapping metadata or connection configuration.
    """


class ValidationError(SqlHelperError):
    """Error in caller-supplied input.
    """


class InvalidStateError(SqlHelperError):
    """Operation not permitted in the reader's current state.
    """


class TypeMismatchError(SqlHelperError, TypeError):
    """A value is not of the kind an accessor or parameter requires.
    """

    def __init__(self, expected: str, actual: str, detail: str | None = None) -> None:
        self.expected = expected
        self.actual = actual
        message = f'Expected {expected}, got {actual}'
        if detail:
            message = f'{message} ({detail})'
        super().__init__(message)


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    sa.exc.OperationalError,
    sa.exc.InterfaceError,
    )

IntegrityError = (
    psycopg.IntegrityError,
    sqlite3.IntegrityError,
    sa.exc.IntegrityError,
    )

ProgrammingError = (
    psycopg.ProgrammingError,
    sqlite3.ProgrammingError,
    sa.exc.ProgrammingError,
    )
