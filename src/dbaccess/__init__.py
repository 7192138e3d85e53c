"""
Vendor-neutral relational database access for MySQL, PostgreSQL and SQLite.

Connections are opened from a URL through a driver registry:

    cn = dbaccess.connect('sqlite:///:memory:')
    stmt = cn.prepare_statement('SELECT name FROM users WHERE id = ?')
    stmt.set_int(1, 42)
    rs = stmt.execute_query()
    while rs.next():
        print(rs.get_string('name'))
"""
__version__ = '0.1.1'

from collections.abc import Callable
from typing import Any

from dbaccess.connection import Connection
from dbaccess.exceptions import AlreadyClosedError, ColumnIndexError
from dbaccess.exceptions import ColumnNotFoundError, ConnectionFailure
from dbaccess.exceptions import DatabaseError, ErrorKind, NoCurrentRowError
from dbaccess.exceptions import OperationalFailure, ParameterIndexError
from dbaccess.exceptions import PrepareError, QueryError
from dbaccess.exceptions import TransactionControlError, TypeConversionError
from dbaccess.exceptions import UnknownDriverError, UpdateError, ValidationError
from dbaccess.exceptions import is_retryable_error
from dbaccess.loaders import iterdict_data_loader, pandas_numpy_data_loader
from dbaccess.loaders import pandas_pyarrow_data_loader
from dbaccess.metadata import ColumnMetadataItem, ParameterMetaData
from dbaccess.metadata import ParameterMetadataItem, ResultSetMetaData
from dbaccess.options import ConnectionConfig
from dbaccess.registry import Driver, DriverRegistry, default_registry
from dbaccess.resultset import ResultSet
from dbaccess.statement import PreparedStatement, Statement
from dbaccess.types import PortableType, ValueKind, Variant


def connect(url: str, params: dict[str, Any] | None = None,
            registry: DriverRegistry | None = None,
            data_loader: Callable[..., Any] | None = None,
            **overrides: Any) -> Connection:
    """Open a connection for `url` through `registry` (default: bundled drivers).
    """
    registry = registry or default_registry()
    return registry.connect(url, params, data_loader=data_loader, **overrides)
