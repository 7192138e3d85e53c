"""
Tests for ResultSet cursor movement and typed getters.
"""
import datetime
import decimal

import pytest
from dbaccess.exceptions import AlreadyClosedError, ColumnIndexError
from dbaccess.exceptions import ColumnNotFoundError, ErrorKind, NoCurrentRowError
from dbaccess.exceptions import TypeConversionError
from dbaccess.types import ValueKind, Variant


@pytest.fixture
def query(fake_conn, fake_session):
    """Run a query returning the given labels and rows."""
    def run(labels, rows):
        fake_session.set_rows(labels, rows)
        return fake_conn.create_statement().execute_query('SELECT 1')
    return run


@pytest.fixture
def rs(query):
    return query(['id', 'Name', 'score', 'born', 'NAME'], [
        (1, 'alice', None, '1990-05-17', 'dup'),
        (2, 'bob', 3.5, datetime.date(1985, 1, 2), 'dup2'),
        (3, 'carol', decimal.Decimal('7'), None, 'dup3'),
        ])


def test_cursor_states(rs):
    assert rs.get_row() == 0
    assert not rs.is_first()
    assert rs.next()
    assert rs.is_first()
    assert rs.get_row() == 1
    assert rs.next()
    assert rs.next()
    assert rs.is_last()
    assert rs.get_row() == 3
    assert not rs.next()
    assert not rs.next()
    assert not rs.is_last()
    assert rs.get_row() == 0


def test_first_resets_exhausted_cursor(rs):
    while rs.next():
        pass
    assert rs.first()
    assert rs.get_row() == 1
    assert rs.get_int('id') == 1


def test_empty_result(query):
    rs = query(['a'], [])
    assert rs.get_fetch_size() == 0
    assert not rs.first()
    assert rs.get_row() == 0
    assert not rs.next()
    assert not rs.is_first()
    assert not rs.is_last()


def test_single_row_is_first_and_last(query):
    rs = query(['a'], [(1,)])
    assert rs.next()
    assert rs.is_first()
    assert rs.is_last()


def test_getter_before_first_row(rs):
    with pytest.raises(NoCurrentRowError) as exc_info:
        rs.get_int(1)
    assert exc_info.value.kind is ErrorKind.NO_CURRENT_ROW


def test_getter_after_exhaustion(rs):
    while rs.next():
        pass
    with pytest.raises(NoCurrentRowError):
        rs.get_string(2)


def test_getters_by_index_and_label(rs):
    rs.next()
    assert rs.get_int(1) == 1
    assert rs.get_long('id') == 1
    assert rs.get_string('Name') == 'alice'
    assert rs.get_date('born') == datetime.date(1990, 5, 17)
    assert rs.get_datetime('born') == datetime.datetime(1990, 5, 17)


def test_label_lookup(rs):
    assert rs.find_column('Name') == 2
    assert rs.find_column('NAME') == 5
    assert rs.find_column('name') == 2
    assert rs.find_column('SCORE') == 3
    with pytest.raises(ColumnNotFoundError) as exc_info:
        rs.find_column('missing')
    assert exc_info.value.kind is ErrorKind.COLUMN_NOT_FOUND


@pytest.mark.parametrize('index', [0, 6, -1])
def test_column_index_out_of_bounds(rs, index):
    rs.next()
    with pytest.raises(ColumnIndexError):
        rs.get_string(index)


def test_bad_column_checked_before_row(rs):
    with pytest.raises(ColumnIndexError):
        rs.get_int(9)


def test_null_handling(rs):
    rs.next()
    assert rs.is_null('score')
    assert rs.get_double('score') == 0.0
    assert rs.was_null()
    assert rs.get_int('id') == 1
    assert not rs.was_null()
    assert rs.get_string('score') is None
    assert rs.was_null()
    assert rs.get_decimal('score') == decimal.Decimal(0)
    assert rs.get_boolean('score') is False
    assert rs.get_variant('score') is None
    assert rs.get_object('score') is None
    rs.next()
    rs.next()
    assert rs.get_date('born') == datetime.date.min
    assert rs.was_null()


def test_numeric_conversions(rs):
    rs.next()
    rs.next()
    assert rs.get_double('score') == 3.5
    assert rs.get_float('score') == 3.5
    assert rs.get_decimal('score') == decimal.Decimal('3.5')
    assert rs.get_string('score') == '3.5'
    with pytest.raises(TypeConversionError) as exc_info:
        rs.get_int('score')
    assert str(exc_info.value) == "Cannot convert field 3: '3.5' to int"
    rs.next()
    assert rs.get_int('score') == 7


def test_incompatible_type(rs):
    rs.next()
    with pytest.raises(TypeConversionError) as exc_info:
        rs.get_int('Name')
    assert exc_info.value.kind is ErrorKind.INCOMPATIBLE_TYPE
    assert 'alice' in str(exc_info.value)


def test_integer_range(query):
    rs = query(['a', 'b'], [(300, -1)])
    rs.next()
    assert rs.get_short('a') == 300
    assert rs.get_ushort('a') == 300
    with pytest.raises(TypeConversionError):
        rs.get_byte('a')
    assert rs.get_byte('b') == -1
    with pytest.raises(TypeConversionError):
        rs.get_ubyte('b')
    with pytest.raises(TypeConversionError):
        rs.get_uint('b')
    with pytest.raises(TypeConversionError):
        rs.get_ulong('b')
    assert rs.get_boolean('b') is True


def test_bytes_and_time(query):
    rs = query(['blob', 't'], [(b'hi', '12:30:00')])
    rs.next()
    assert rs.get_bytes('blob') == b'hi'
    assert rs.get_string('blob') == 'hi'
    assert rs.get_time('t') == datetime.time(12, 30)
    assert rs.get_bytes('t') == b'12:30:00'


def test_variant_and_object(rs):
    rs.next()
    assert rs.get_variant('Name') == Variant(ValueKind.STRING, 'alice')
    assert rs.get_object('id') == 1
    assert not rs.was_null()


def test_close(rs):
    stmt = rs.get_statement()
    rs.close()
    assert rs.is_closed()
    assert stmt.get_resultset() is None
    for call in (rs.next, rs.first, rs.get_row, rs.get_metadata, rs.close,
                 lambda: rs.get_int(1), lambda: rs.find_column('id')):
        with pytest.raises(AlreadyClosedError):
            call()


def test_context_manager(query):
    with query(['a'], [(1,)]) as rs:
        assert rs.next()
    assert rs.is_closed()


def test_load_with_connection_loader(rs):
    data = rs.load()
    assert data[0] == {'id': 1, 'Name': 'alice', 'score': None,
                       'born': '1990-05-17', 'NAME': 'dup'}
    assert len(data) == 3


def test_load_with_explicit_loader(rs):
    seen = []

    def loader(data, metadata):
        seen.append(metadata.column_count())
        return len(data)

    assert rs.load(loader) == 3
    assert seen == [5]


def test_load_keeps_repeated_labels(query):
    rs = query(['id', 'id'], [(1, 2)])
    assert rs.load() == [{'id': 1, 'id_2': 2}]
    assert rs.find_column('id') == 1
