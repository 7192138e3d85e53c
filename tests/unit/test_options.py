"""
Tests for connection URL parsing and override resolution.
"""
import pytest
from dbaccess.loaders import iterdict_data_loader, pandas_numpy_data_loader
from dbaccess.options import ConnectionConfig, parse_scheme


def test_url_with_overrides():
    """Host, port and database come from the URL, credentials from overrides."""
    config = ConnectionConfig.from_url('mysql://localhost:9999/mydb',
                                       {'user': 'a', 'password': 'b'}, default_port=3306)
    assert config.scheme == 'mysql'
    assert config.host == 'localhost'
    assert config.port == 9999
    assert config.database == 'mydb'
    assert config.username == 'a'
    assert config.password == 'b'
    assert config.params == {}


def test_override_wins_over_userinfo():
    config = ConnectionConfig.from_url('postgresql://u1:p1@db.example.com/app',
                                       {'user': 'u2'}, default_port=5432)
    assert config.username == 'u2'
    assert config.password == 'p1'
    assert config.port == 5432


def test_override_wins_over_query_params():
    config = ConnectionConfig.from_url('mysql://h/db?user=q&password=qp&charset=latin1',
                                       {'password': 'o', 'charset': 'utf8mb4'})
    assert config.username == 'q'
    assert config.password == 'o'
    assert config.params == {'charset': 'utf8mb4'}


def test_query_params_passed_through():
    config = ConnectionConfig.from_url('postgresql://h/db?sslmode=require&application_name=x')
    assert config.params == {'sslmode': 'require', 'application_name': 'x'}


def test_missing_host_defaults_to_localhost():
    config = ConnectionConfig.from_url('mysql:///mydb', default_port=3306)
    assert config.host == 'localhost'
    assert config.port == 3306


@pytest.mark.parametrize('url', [
    'mysql://h:0/db',
    'mysql://h:70000/db',
    'mysql://h/db',
    'mysql://h:abc/db',
    'mysql://u:p@h:abc/db',
])
def test_invalid_port_falls_back_to_default(url):
    config = ConnectionConfig.from_url(url, default_port=3306)
    assert config.port == 3306
    assert config.host == 'h'
    assert config.database == 'db'


def test_port_override():
    config = ConnectionConfig.from_url('mysql://h:1000/db', {'port': '2000'}, default_port=3306)
    assert config.port == 2000


def test_sqlite_urls():
    assert ConnectionConfig.from_url('sqlite:///:memory:').database == ':memory:'
    assert ConnectionConfig.from_url('sqlite:///data.db').database == 'data.db'
    assert ConnectionConfig.from_url('sqlite:////tmp/data.db').database == '/tmp/data.db'
    assert ConnectionConfig.from_url('sqlite://').database is None


def test_data_loader_default_and_override():
    assert ConnectionConfig.from_url('sqlite://').data_loader is iterdict_data_loader
    config = ConnectionConfig.from_url('sqlite://', data_loader=pandas_numpy_data_loader)
    assert config.data_loader is pandas_numpy_data_loader


def test_repr_hides_password():
    config = ConnectionConfig.from_url('mysql://u:secret@h/db')
    assert 'secret' not in repr(config)


@pytest.mark.parametrize(('url', 'scheme'), [
    ('mysql://h/db', 'mysql'),
    ('MySQL://h/db', 'mysql'),
    ('postgresql+psycopg://h/db', 'postgresql'),
    ('sqlite:///:memory:', 'sqlite'),
])
def test_parse_scheme(url, scheme):
    assert parse_scheme(url) == scheme


@pytest.mark.parametrize('url', ['localhost/db', '://h/db', ''])
def test_parse_scheme_rejects_missing_scheme(url):
    with pytest.raises(ValueError):
        parse_scheme(url)
