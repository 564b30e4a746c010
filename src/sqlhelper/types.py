"""
Value handling for bound parameters.

This module provides:
- TypeConverter: Normalize NumPy/Pandas scalars to plain Python values
- ValueKind: The finite set of value kinds a parameter may carry
- SqlValue: Tagged value, classified when it is built
"""
import datetime
import logging
import math
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Self

import numpy as np
import pandas as pd

from sqlhelper.exceptions import TypeMismatchError

__all__ = ['SqlValue', 'TypeConverter', 'ValueKind']

logger = logging.getLogger(__name__)

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)


def _convert_numpy_value(val: Any) -> Any:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        return pd.Timestamp(val).to_pydatetime()

    if isinstance(val, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_)):
        return val.item()

    return val


class TypeConverter:
    """Universal type conversion for parameter values.

    Handles NumPy and Pandas scalars and their missing-value markers.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a plain Python value."""
        if value is None:
            return None

        if isinstance(value, float) and math.isnan(value):
            return None

        if value is pd.NaT or value is pd.NA:
            return None

        if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_, np.datetime64)):
            return _convert_numpy_value(value)

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        return value


class ValueKind(Enum):
    """Kinds of values a bound parameter may carry."""
    NULL = 'null'
    BOOLEAN = 'boolean'
    INTEGER = 'integer'
    DECIMAL = 'decimal'
    TEXT = 'text'
    TIMESTAMP = 'timestamp'
    BINARY = 'binary'
    GUID = 'guid'


# bool before int: bool is an int subclass
_KIND_TYPES: tuple[tuple[type | tuple[type, ...], ValueKind], ...] = (
    (bool, ValueKind.BOOLEAN),
    (int, ValueKind.INTEGER),
    ((float, Decimal), ValueKind.DECIMAL),
    (str, ValueKind.TEXT),
    ((datetime.datetime, datetime.date, datetime.time), ValueKind.TIMESTAMP),
    ((bytes, bytearray, memoryview), ValueKind.BINARY),
    (uuid.UUID, ValueKind.GUID),
    )


@dataclass(frozen=True, slots=True)
class SqlValue:
    """A parameter value tagged with its kind."""
    kind: ValueKind
    value: Any

    @classmethod
    def of(cls, value: Any) -> Self:
        """Classify a value, raising TypeMismatchError for unsupported kinds."""
        if isinstance(value, cls):
            return value

        value = TypeConverter.convert_value(value)
        if value is None:
            return cls(ValueKind.NULL, None)

        for types_, kind in _KIND_TYPES:
            if isinstance(value, types_):
                if kind is ValueKind.BINARY and not isinstance(value, bytes):
                    value = bytes(value)
                return cls(kind, value)

        expected = ', '.join(kind.value for kind in ValueKind)
        raise TypeMismatchError(f'one of ({expected})', type(value).__name__)

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL
