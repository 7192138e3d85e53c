import datetime
import decimal

import dbaccess
import pytest


def _create_test_table(cn):
    with cn.create_statement() as stmt:
        stmt.execute_update("""
        CREATE TABLE test_table (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            value INTEGER NOT NULL
        )
        """)
        stmt.execute_update("""
        INSERT INTO test_table (name, value) VALUES
        ('Alice', 10),
        ('Bob', 20),
        ('Charlie', 30)
        """)


@pytest.fixture
def sqlite_conn():
    """Create an in-memory SQLite database for testing"""
    cn = dbaccess.connect('sqlite:///:memory:')
    _create_test_table(cn)
    yield cn
    if not cn.is_closed():
        cn.close()


@pytest.fixture
def sqlite_file_conn(tmp_path):
    """File-based SQLite connection for testing persistence across connections."""
    path = tmp_path / 'test.db'
    cn = dbaccess.connect(f'sqlite:///{path}')
    _create_test_table(cn)
    yield cn, path
    if not cn.is_closed():
        cn.close()


@pytest.fixture
def datetime_values():
    """Sample values for typed parameter round trips."""
    return {
        'date': datetime.date(2024, 2, 29),
        'datetime': datetime.datetime(2024, 2, 29, 13, 45, 7),
        'time': datetime.time(6, 30, 15),
        'amount': decimal.Decimal('9.99'),
        }
