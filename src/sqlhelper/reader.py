"""
Forward-only tabular reader over an in-memory iterable of objects.

`IterableReader` exposes a sequence of model instances the way a database
cursor exposes a result set: a fixed number of fields addressed by
ordinal, a `read()` that advances one row at a time, and typed accessors.
Bulk-load consumers (see `DatabaseStrategy.bulk_load`) pull rows from it
directly, so the source is never copied into an intermediate table.

State machine:

    OPEN --read() True--> POSITIONED --read() True--> POSITIONED
    OPEN | POSITIONED --read() False--> EXHAUSTED
    any --close()--> CLOSED (terminal; further reads raise InvalidStateError)

`has_rows` is always True: the reader cannot tell whether the source is
empty without consuming it. Callers that need to know must check the
source themselves or watch the first `read()`.
"""
import datetime
import logging
import uuid
from collections.abc import Iterable, Iterator, MutableSequence
from decimal import Decimal
from enum import Enum
from typing import Any, Self

import pandas as pd
from sqlhelper.exceptions import ConfigurationError, InvalidStateError
from sqlhelper.exceptions import TypeMismatchError
from sqlhelper.schema import ColumnInfo, TableSchema, describe_columns
from sqlhelper.schema import member_value

__all__ = ['IterableReader', 'ReaderState']

logger = logging.getLogger(__name__)

INT_RANGES = {
    'byte': (0, 2**8 - 1),
    'int16': (-2**15, 2**15 - 1),
    'int32': (-2**31, 2**31 - 1),
    'int64': (-2**63, 2**63 - 1),
}


class ReaderState(Enum):
    """Lifecycle states of an IterableReader."""
    OPEN = 'open'
    POSITIONED = 'positioned'
    EXHAUSTED = 'exhausted'
    CLOSED = 'closed'


class IterableReader:
    """Forward-only, ordinal-addressable reader over an iterable of objects.

    Fields are the public members of the element type, in declaration
    order, derived once at construction. The reader owns the iterator it
    takes from `rows`; nothing else may advance it.

    Args:
        rows: Iterable of element instances (consumed lazily)
        model: Element type, or a resolved TableSchema
    """

    def __init__(self, rows: Iterable[Any], model: type | TableSchema) -> None:
        if isinstance(model, TableSchema):
            columns = model.columns
        else:
            columns = describe_columns(model)
        if not columns:
            raise ConfigurationError(f'{model!r} has no public members to read')

        self._columns: tuple[ColumnInfo, ...] = tuple(columns)
        self._iterator: Iterator[Any] | None = iter(rows)
        self._current: Any = None
        self._state = ReaderState.OPEN
        self._rows_read = 0

    def __repr__(self) -> str:
        return f'<IterableReader fields={self.field_count} state={self._state.value}>'

    # Structure

    @property
    def field_count(self) -> int:
        """Number of fields per row; fixed for the reader's lifetime."""
        return len(self._columns)

    @property
    def state(self) -> ReaderState:
        return self._state

    @property
    def has_rows(self) -> bool:
        """Always True; see the module docstring."""
        return True

    @property
    def is_closed(self) -> bool:
        return self._state is ReaderState.CLOSED

    @property
    def depth(self) -> int:
        """Nesting depth of the current row; readers over objects are flat."""
        return 0

    def _column(self, ordinal: int) -> ColumnInfo:
        if not 0 <= ordinal < len(self._columns):
            raise IndexError(f'Ordinal {ordinal} out of range for {len(self._columns)} fields')
        return self._columns[ordinal]

    def get_name(self, ordinal: int) -> str:
        return self._column(ordinal).name

    def get_field_type(self, ordinal: int) -> type:
        return self._column(ordinal).python_type

    def get_data_type_name(self, ordinal: int) -> str:
        return self._column(ordinal).python_type.__name__

    def get_ordinal(self, name: str) -> int:
        """Position of the named field, or -1 if there is none."""
        for ordinal, column in enumerate(self._columns):
            if column.name == name:
                return ordinal
        return -1

    def get_schema_table(self) -> pd.DataFrame:
        """One row per field: ColumnName, DataType, ColumnOrdinal."""
        return pd.DataFrame({
            'ColumnName': [col.name for col in self._columns],
            'DataType': [col.python_type for col in self._columns],
            'ColumnOrdinal': list(range(len(self._columns))),
            })

    # Navigation

    def read(self) -> bool:
        """Advance to the next row.

        Returns
            True if positioned on a new row, False once the source is exhausted

        Raises
            InvalidStateError: If the reader is closed
        """
        if self._state is ReaderState.CLOSED:
            raise InvalidStateError('reader is closed')
        if self._state is ReaderState.EXHAUSTED:
            return False

        try:
            self._current = next(self._iterator)
        except StopIteration:
            self._current = None
            self._state = ReaderState.EXHAUSTED
            logger.debug(f'Reader exhausted after {self._rows_read} rows')
            return False

        self._rows_read += 1
        self._state = ReaderState.POSITIONED
        return True

    def next_result(self) -> bool:
        """There is exactly one result set."""
        return False

    def close(self) -> None:
        """Release the underlying iterator and move to CLOSED."""
        if self._state is ReaderState.CLOSED:
            return
        close = getattr(self._iterator, 'close', None)
        if callable(close):
            close()
        self._iterator = None
        self._current = None
        self._state = ReaderState.CLOSED
        logger.debug(f'Reader closed after {self._rows_read} rows')

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __iter__(self) -> Iterator[tuple]:
        """Remaining rows as value tuples."""
        while self.read():
            yield tuple(self.get_value(i) for i in range(self.field_count))

    # Values

    def get_value(self, ordinal: int) -> Any:
        """Raw value of a field in the current row.

        Raises
            IndexError: If the ordinal is out of range
            InvalidStateError: If the reader is closed or not positioned on a row
        """
        column = self._column(ordinal)
        if self._state is ReaderState.CLOSED:
            raise InvalidStateError('reader is closed')
        if self._state is not ReaderState.POSITIONED:
            raise InvalidStateError(f'reader is {self._state.value}; no current row')
        return member_value(self._current, column.name)

    def get_values(self, values: MutableSequence[Any]) -> int:
        """Fill `values` with the current row; returns the number copied."""
        count = min(len(values), self.field_count)
        for i in range(count):
            values[i] = self.get_value(i)
        return count

    def __getitem__(self, key: int | str) -> Any:
        if isinstance(key, str):
            ordinal = self.get_ordinal(key)
            if ordinal < 0:
                raise KeyError(key)
            return self.get_value(ordinal)
        return self.get_value(key)

    def is_null(self, ordinal: int) -> bool:
        return self.get_value(ordinal) is None

    def _cast(self, ordinal: int, types: type | tuple[type, ...], expected: str) -> Any:
        """Checked cast of a field value; never converts."""
        value = self.get_value(ordinal)
        if not isinstance(value, types) or (isinstance(value, bool) and bool not in _as_tuple(types)):
            raise TypeMismatchError(expected, type(value).__name__,
                                    f'field {self.get_name(ordinal)!r}')
        return value

    def _integer(self, ordinal: int, kind: str) -> int:
        value = self._cast(ordinal, int, kind)
        low, high = INT_RANGES[kind]
        if not low <= value <= high:
            raise TypeMismatchError(kind, f'int {value}',
                                    f'field {self.get_name(ordinal)!r} out of range')
        return value

    def get_boolean(self, ordinal: int) -> bool:
        return self._cast(ordinal, bool, 'bool')

    def get_byte(self, ordinal: int) -> int:
        return self._integer(ordinal, 'byte')

    def get_int16(self, ordinal: int) -> int:
        return self._integer(ordinal, 'int16')

    def get_int32(self, ordinal: int) -> int:
        return self._integer(ordinal, 'int32')

    def get_int64(self, ordinal: int) -> int:
        return self._integer(ordinal, 'int64')

    def get_float(self, ordinal: int) -> float:
        return self._cast(ordinal, float, 'float')

    def get_double(self, ordinal: int) -> float:
        return self._cast(ordinal, float, 'double')

    def get_decimal(self, ordinal: int) -> Decimal:
        return self._cast(ordinal, Decimal, 'Decimal')

    def get_datetime(self, ordinal: int) -> datetime.datetime:
        return self._cast(ordinal, datetime.datetime, 'datetime')

    def get_string(self, ordinal: int) -> str:
        return self._cast(ordinal, str, 'str')

    def get_char(self, ordinal: int) -> str:
        value = self._cast(ordinal, str, 'char')
        if len(value) != 1:
            raise TypeMismatchError('char', f'str of length {len(value)}',
                                    f'field {self.get_name(ordinal)!r}')
        return value

    def get_guid(self, ordinal: int) -> uuid.UUID:
        return self._cast(ordinal, uuid.UUID, 'UUID')

    def get_bytes(self, ordinal: int, data_offset: int, buffer: MutableSequence[int] | None,
                  buffer_offset: int, length: int) -> int:
        """Copy up to `length` bytes of a binary field, starting at `data_offset`.

        The copy is clipped to the bytes remaining after `data_offset` and to
        the room left in `buffer` after `buffer_offset`. With no buffer, the
        total length of the value is returned instead.

        Returns
            Number of bytes copied
        """
        value = self._cast(ordinal, (bytes, bytearray, memoryview), 'bytes')
        return _copy_slice(value, data_offset, buffer, buffer_offset, length)

    def get_chars(self, ordinal: int, data_offset: int, buffer: MutableSequence[str] | None,
                  buffer_offset: int, length: int) -> int:
        """Copy up to `length` characters of a text field into `buffer`.

        Same clipping rules as `get_bytes`.
        """
        value = self._cast(ordinal, str, 'str')
        return _copy_slice(value, data_offset, buffer, buffer_offset, length)


def _as_tuple(types: type | tuple[type, ...]) -> tuple[type, ...]:
    return types if isinstance(types, tuple) else (types,)


def _copy_slice(value: Any, data_offset: int, buffer: MutableSequence | None,
                buffer_offset: int, length: int) -> int:
    if buffer is None:
        return len(value)
    if data_offset < 0 or buffer_offset < 0 or length < 0:
        raise IndexError('Offsets and length must not be negative')

    count = max(0, min(length, len(value) - data_offset, len(buffer) - buffer_offset))
    buffer[buffer_offset:buffer_offset + count] = list(value[data_offset:data_offset + count]) \
        if isinstance(value, str) else value[data_offset:data_offset + count]
    return count
