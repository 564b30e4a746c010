"""
Unit tests for the forward-only IterableReader.
"""
import datetime
import uuid
from decimal import Decimal

import pandas as pd
import pytest
from sqlhelper.exceptions import ConfigurationError, InvalidStateError
from sqlhelper.exceptions import TypeMismatchError
from sqlhelper.reader import IterableReader, ReaderState
from sqlhelper.schema import resolve

from tests.fixtures.models import Person, PersonRow, Sample


@pytest.fixture
def sample_reader(sample):
    reader = IterableReader([sample], Sample)
    assert reader.read()
    return reader


def test_read_two_rows():
    """Two rows, then exhaustion"""
    reader = IterableReader([PersonRow('Ann', 30), PersonRow('Bo', 25)], PersonRow)

    assert reader.field_count == 2
    assert reader.get_name(0) == 'name'
    assert reader.state is ReaderState.OPEN

    assert reader.read() is True
    assert reader.get_value(0) == 'Ann'
    assert reader.state is ReaderState.POSITIONED
    assert reader.read() is True
    assert reader.get_value(0) == 'Bo'
    assert reader.get_value(1) == 25
    assert reader.read() is False
    assert reader.state is ReaderState.EXHAUSTED


def test_empty_source():
    reader = IterableReader([], PersonRow)

    assert reader.has_rows is True
    assert reader.read() is False
    assert reader.read() is False
    assert reader.state is ReaderState.EXHAUSTED


def test_read_after_close():
    reader = IterableReader([PersonRow('Ann', 30)], PersonRow)
    reader.close()

    assert reader.is_closed
    with pytest.raises(InvalidStateError, match='reader is closed'):
        reader.read()
    with pytest.raises(InvalidStateError, match='reader is closed'):
        reader.get_value(0)


def test_get_value_before_read():
    reader = IterableReader([PersonRow('Ann', 30)], PersonRow)

    with pytest.raises(InvalidStateError, match='no current row'):
        reader.get_value(0)


def test_get_value_after_exhaustion():
    reader = IterableReader([PersonRow('Ann', 30)], PersonRow)
    while reader.read():
        pass

    with pytest.raises(InvalidStateError):
        reader.get_value(0)


@pytest.mark.parametrize('ordinal', [-1, 2, 10])
def test_ordinal_out_of_range(ordinal):
    reader = IterableReader([PersonRow('Ann', 30)], PersonRow)
    reader.read()

    with pytest.raises(IndexError):
        reader.get_name(ordinal)
    with pytest.raises(IndexError):
        reader.get_value(ordinal)


def test_field_metadata():
    reader = IterableReader([], PersonRow)

    assert reader.get_ordinal('age') == 1
    assert reader.get_ordinal('missing') == -1
    assert reader.get_field_type(1) is int
    assert reader.get_data_type_name(0) == 'str'
    assert reader.depth == 0
    assert reader.next_result() is False


def test_schema_table():
    frame = IterableReader([], PersonRow).get_schema_table()

    assert isinstance(frame, pd.DataFrame)
    assert list(frame.columns) == ['ColumnName', 'DataType', 'ColumnOrdinal']
    assert frame['ColumnName'].tolist() == ['name', 'age']
    assert frame['ColumnOrdinal'].tolist() == [0, 1]


def test_reader_over_table_schema():
    reader = IterableReader([Person(1, 'Ann', 30)], resolve(Person))

    assert reader.field_count == 3
    assert reader.read()
    assert reader['name'] == 'Ann'


def test_reader_over_mappings():
    reader = IterableReader([{'name': 'Ann', 'age': 30}], PersonRow)

    assert reader.read()
    assert reader.get_value(0) == 'Ann'


def test_type_without_members():
    class Empty:
        pass

    with pytest.raises(ConfigurationError, match='no public members'):
        IterableReader([], Empty)


def test_source_consumed_lazily():
    pulled = []

    def rows():
        for name in ('Ann', 'Bo'):
            pulled.append(name)
            yield PersonRow(name, 30)

    reader = IterableReader(rows(), PersonRow)
    assert pulled == []
    reader.read()
    assert pulled == ['Ann']


def test_close_releases_source_and_is_idempotent():
    closed = []

    def rows():
        try:
            yield PersonRow('Ann', 30)
            yield PersonRow('Bo', 25)
        finally:
            closed.append(True)

    reader = IterableReader(rows(), PersonRow)
    reader.read()
    reader.close()
    reader.close()

    assert closed == [True]
    assert reader.state is ReaderState.CLOSED


def test_context_manager_closes():
    with IterableReader([PersonRow('Ann', 30)], PersonRow) as reader:
        reader.read()

    assert reader.is_closed


def test_iterate_rows():
    reader = IterableReader([PersonRow('Ann', 30), PersonRow('Bo', 25)], PersonRow)

    assert list(reader) == [('Ann', 30), ('Bo', 25)]


def test_get_values():
    reader = IterableReader([PersonRow('Ann', 30)], PersonRow)
    reader.read()

    values = [None] * 3
    assert reader.get_values(values) == 2
    assert values == ['Ann', 30, None]

    short = [None]
    assert reader.get_values(short) == 1
    assert short == ['Ann']


def test_getitem():
    reader = IterableReader([PersonRow('Ann', 30)], PersonRow)
    reader.read()

    assert reader[1] == 30
    assert reader['age'] == 30
    with pytest.raises(KeyError):
        reader['missing']


def test_typed_accessors(sample_reader):
    r = sample_reader

    assert r.get_boolean(0) is True
    assert r.get_byte(1) == 200
    assert r.get_int16(1) == 200
    assert r.get_int32(2) == 70000
    assert r.get_int64(2) == 70000
    assert r.get_double(3) == 0.5
    assert r.get_float(3) == 0.5
    assert r.get_decimal(4) == Decimal('12.50')
    assert r.get_datetime(5) == datetime.datetime(2024, 1, 2, 3, 4, 5)
    assert r.get_string(6) == 'Ann'
    assert r.get_char(7) == 'A'
    assert r.get_guid(9) == uuid.UUID('12345678-1234-5678-1234-567812345678')
    assert r.is_null(10)
    assert not r.is_null(6)


def test_integer_ranges(sample_reader):
    with pytest.raises(TypeMismatchError, match='out of range'):
        sample_reader.get_int16(2)
    with pytest.raises(TypeMismatchError):
        sample_reader.get_byte(2)


def test_accessor_type_mismatch(sample_reader):
    with pytest.raises(TypeMismatchError) as err:
        sample_reader.get_string(1)

    assert err.value.expected == 'str'
    assert err.value.actual == 'int'


def test_bool_is_not_an_integer(sample_reader):
    with pytest.raises(TypeMismatchError):
        sample_reader.get_int32(0)


@pytest.mark.parametrize(('accessor', 'ordinal'), [
    ('get_boolean', 1),
    ('get_double', 1),
    ('get_decimal', 3),
    ('get_datetime', 6),
    ('get_guid', 6),
    ('get_char', 6),
])
def test_accessors_never_convert(sample_reader, accessor, ordinal):
    with pytest.raises(TypeMismatchError):
        getattr(sample_reader, accessor)(ordinal)


def test_get_bytes(sample_reader):
    buffer = bytearray(4)

    assert sample_reader.get_bytes(8, 2, buffer, 0, 4) == 4
    assert buffer == bytearray(b'cdef')

    assert sample_reader.get_bytes(8, 6, buffer, 0, 4) == 2
    assert buffer[:2] == bytearray(b'gh')

    assert sample_reader.get_bytes(8, 20, buffer, 0, 4) == 0


def test_get_bytes_total_length(sample_reader):
    assert sample_reader.get_bytes(8, 0, None, 0, 0) == 8


def test_get_bytes_clipped_to_buffer(sample_reader):
    buffer = bytearray(3)

    assert sample_reader.get_bytes(8, 0, buffer, 1, 10) == 2
    assert buffer == bytearray(b'\x00ab')


def test_get_bytes_negative_offset(sample_reader):
    with pytest.raises(IndexError):
        sample_reader.get_bytes(8, -1, bytearray(4), 0, 4)


def test_get_chars(sample_reader):
    buffer = [''] * 5

    assert sample_reader.get_chars(6, 1, buffer, 0, 5) == 2
    assert buffer == ['n', 'n', '', '', '']
    assert sample_reader.get_chars(6, 0, None, 0, 0) == 3


def test_get_bytes_of_text(sample_reader):
    with pytest.raises(TypeMismatchError):
        sample_reader.get_bytes(6, 0, bytearray(4), 0, 4)
