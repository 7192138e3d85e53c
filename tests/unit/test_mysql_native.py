"""
MySQL session tests with PyMySQL mocked out.
"""
import datetime
from types import SimpleNamespace
from unittest import mock

import pytest
from dbaccess.native.mysql import MySQLSession, _fields, _to_time_of_day
from dbaccess.options import ConnectionConfig
from dbaccess.types import ValueKind, Variant
from pymysql.constants import FIELD_TYPE, FLAG


@pytest.fixture
def config():
    return ConnectionConfig.from_url('mysql://root@db/app?connect_timeout=3&foo=bar',
                                     default_port=MySQLSession.default_port)


@pytest.fixture
def session(config):
    raw = mock.MagicMock()
    cursor = raw.cursor.return_value
    cursor.__enter__.return_value = cursor
    return MySQLSession(raw, config)


def test_time_of_day():
    assert _to_time_of_day(datetime.timedelta(hours=1, minutes=2)) == datetime.time(1, 2)
    assert _to_time_of_day(datetime.timedelta(days=2)) == datetime.timedelta(days=2)
    assert _to_time_of_day(datetime.timedelta(hours=-1)) == datetime.timedelta(hours=-1)
    assert _to_time_of_day('x') == 'x'


def test_fields_from_descriptors():
    field = SimpleNamespace(
        name='uid', type_code=FIELD_TYPE.LONGLONG, org_name='user_id', db=b'app',
        get_column_length=lambda: 20, scale=0,
        flags=FLAG.NOT_NULL | FLAG.UNSIGNED)
    cursor = SimpleNamespace(_result=SimpleNamespace(fields=[field]), description=None)
    [f] = _fields(cursor)
    assert (f.name, f.original_name, f.schema) == ('uid', 'user_id', 'app')
    assert f.precision == 20
    assert not f.nullable
    assert not f.signed


def test_fields_fall_back_to_description():
    cursor = SimpleNamespace(_result=None,
                             description=[('a', FIELD_TYPE.LONG, None, 11, 11, 0, True)])
    [f] = _fields(cursor)
    assert (f.name, f.type_code, f.precision, f.scale) == ('a', FIELD_TYPE.LONG, 11, 0)


def test_open_passes_options(config):
    with mock.patch('pymysql.connect') as connect:
        MySQLSession.open(config)
    connect.assert_called_once_with(
        host='db', port=3306, user='root', password='', database='app',
        autocommit=True, charset='utf8mb4', connect_timeout=3)


def test_prepare_validates_on_server(session):
    handle = session.prepare('SELECT * FROM t WHERE a = ? AND b = ?')
    cursor = session.raw.cursor.return_value
    assert cursor.execute.call_args_list == [
        mock.call('PREPARE dbaccess_stmt FROM %s', ('SELECT * FROM t WHERE a = ? AND b = ?',)),
        mock.call('DEALLOCATE PREPARE dbaccess_stmt'),
        ]
    assert handle.param_count == 2
    assert handle.native_sql == 'SELECT * FROM t WHERE a = %s AND b = %s'


def test_execute_query_converts_time(session):
    cursor = session.raw.cursor.return_value
    cursor._result = None
    cursor.description = [('t', FIELD_TYPE.TIME, None, None, None, None, True)]
    cursor.fetchall.return_value = [(datetime.timedelta(hours=3),)]
    result = session.execute_query('SELECT t FROM x WHERE id = ?', [Variant(ValueKind.INT, 1)])
    cursor.execute.assert_called_once_with('SELECT t FROM x WHERE id = %s', [1])
    assert result.rows == [(datetime.time(3),)]


def test_execute_command_reports_insert_id(session):
    cursor = session.raw.cursor.return_value
    cursor.rowcount = 1
    cursor.lastrowid = 9
    result = session.execute_command('INSERT INTO t VALUES (?)', [Variant.null()])
    cursor.execute.assert_called_once_with('INSERT INTO t VALUES (%s)', [None])
    assert (result.affected, result.last_insert_id) == (1, 9)


def test_set_autocommit(session):
    session.set_autocommit(False)
    session.raw.autocommit.assert_called_once_with(False)
    session.raw.commit.assert_not_called()
    session.set_autocommit(True)
    session.raw.commit.assert_called_once_with()


def test_select_database(session):
    session.select_database('other')
    session.raw.select_db.assert_called_once_with('other')
