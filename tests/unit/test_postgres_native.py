"""
PostgreSQL session tests with psycopg mocked out.
"""
from unittest import mock

import pytest
from dbaccess.native.postgres import PostgresSession, _decode_typmod
from dbaccess.options import ConnectionConfig
from dbaccess.types import ValueKind, Variant
from psycopg.postgres import types as pg_types


@pytest.fixture
def config():
    return ConnectionConfig.from_url('postgresql://u:p@db/app?sslmode=require',
                                     default_port=PostgresSession.default_port)


@pytest.fixture
def session(config):
    raw = mock.MagicMock()
    cursor = raw.cursor.return_value
    cursor.__enter__.return_value = cursor
    return PostgresSession(raw, config)


def test_decode_typmod():
    numeric = pg_types.get('numeric').oid
    varchar = pg_types.get('varchar').oid
    assert _decode_typmod(numeric, ((10 << 16) | 2) + 4) == (10, 2)
    assert _decode_typmod(varchar, 54) == (50, None)
    assert _decode_typmod(varchar, -1) == (None, None)


def test_open_passes_options(config):
    with mock.patch('psycopg.connect') as connect:
        session = PostgresSession.open(config)
    connect.assert_called_once_with(
        host='db', port=5432, dbname='app', user='u', password='p',
        autocommit=True, sslmode='require')
    assert session.raw is connect.return_value


def test_execute_query_rewrites_placeholders(session):
    cursor = session.raw.cursor.return_value
    cursor.description = None
    session.execute_query("SELECT * FROM t WHERE a = ? AND b LIKE 'x%'",
                          [Variant(ValueKind.INT, 1)])
    cursor.execute.assert_called_once_with(
        "SELECT * FROM t WHERE a = %s AND b LIKE 'x%%'", [1], prepare=None)


def test_insert_id_from_returning_row(session):
    cursor = session.raw.cursor.return_value
    cursor.description = [mock.Mock()]
    cursor.fetchone.return_value = (42,)
    cursor.rowcount = 1
    result = session.execute_command('INSERT INTO t (a) VALUES (?) RETURNING id',
                                     [Variant(ValueKind.INT, 5)])
    assert (result.affected, result.last_insert_id) == (1, 42)


def test_command_without_returning(session):
    cursor = session.raw.cursor.return_value
    cursor.description = None
    cursor.rowcount = -1
    result = session.execute_command('CREATE TABLE t (a int)')
    assert (result.affected, result.last_insert_id) == (0, None)


def test_set_autocommit(session):
    session.set_autocommit(False)
    assert session.raw.autocommit is False
    session.raw.commit.assert_not_called()
    session.set_autocommit(True)
    session.raw.commit.assert_called_once_with()
    assert session.raw.autocommit is True


def test_current_database(session):
    session.raw.execute.return_value.fetchone.return_value = ('public',)
    assert session.current_database() == 'public'
