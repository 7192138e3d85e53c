"""
SQLite native session over the standard library `sqlite3` module.

SQLite specifics:
- Autocommit is driven by `isolation_level` (None = autocommit)
- Statements are validated with EXPLAIN, which compiles without running them
- Column types are reported per value (storage class), so field types are
  inferred from the first non-NULL value in each column
- There is one catalog per attached database; `main` is the default
"""
import datetime
import decimal
import logging
import sqlite3
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Self

from dbaccess.native.base import CommandResult, NativeField, NativeParam
from dbaccess.native.base import NativeResult, NativeSession, PreparedHandle
from dbaccess.native.base import register_native
from dbaccess.sql import count_placeholders
from dbaccess.types import ValueKind, Variant, convert_date, convert_datetime
from dbaccess.types import convert_time

if TYPE_CHECKING:
    from dbaccess.options import ConnectionConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


def _storage_class(value: Any) -> str:
    """Name the SQLite type of a fetched value."""
    if value is None:
        return 'NULL'
    if isinstance(value, bool | int):
        return 'INTEGER'
    if isinstance(value, float):
        return 'REAL'
    if isinstance(value, bytes):
        return 'BLOB'
    if isinstance(value, datetime.datetime):
        return 'DATETIME'
    if isinstance(value, datetime.date):
        return 'DATE'
    if isinstance(value, datetime.time):
        return 'TIME'
    if isinstance(value, decimal.Decimal):
        return 'NUMERIC'
    return 'TEXT'


def _infer_fields(description: Sequence | None, rows: list[tuple]) -> list[NativeField]:
    if description is None:
        return []
    fields = []
    for i, item in enumerate(description):
        type_code = None
        if rows:
            values = [row[i] for row in rows if row[i] is not None]
            type_code = _storage_class(values[0] if values else None)
        fields.append(NativeField(name=item[0], type_code=type_code))
    return fields


@register_native('sqlite')
class SQLiteSession(NativeSession):
    """SQLite client session.
    """
    dialect = 'sqlite'
    default_port = 0

    @classmethod
    def open(cls, config: 'ConnectionConfig') -> Self:
        database = config.database or ':memory:'
        timeout = float(config.params.get('timeout', DEFAULT_TIMEOUT))
        # Converters (SQLite -> Python)
        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)
        sqlite3.register_converter('timestamp', convert_datetime)
        sqlite3.register_converter('time', convert_time)
        raw = sqlite3.connect(
            database,
            timeout=timeout,
            detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
            isolation_level=None,
            check_same_thread=False,
            )
        logger.debug(f'Opened SQLite database {database}')
        return cls(raw, config)

    def select_database(self, name: str) -> None:
        names = [row[1] for row in self.raw.execute('PRAGMA database_list')]
        if name not in names:
            raise sqlite3.OperationalError(f'unknown database {name}')

    def current_database(self) -> str:
        return 'main'

    def execute_query(self, sql: str, args: Sequence[Variant] = ()) -> NativeResult:
        cursor = self.raw.cursor()
        try:
            cursor.execute(sql, self.adapt_args(args))
            rows = cursor.fetchall()
            return NativeResult(rows=rows, fields=_infer_fields(cursor.description, rows))
        finally:
            cursor.close()

    def execute_command(self, sql: str, args: Sequence[Variant] = ()) -> CommandResult:
        cursor = self.raw.cursor()
        try:
            cursor.execute(sql, self.adapt_args(args))
            return CommandResult(affected=max(cursor.rowcount, 0),
                                 last_insert_id=cursor.lastrowid)
        finally:
            cursor.close()

    def prepare(self, sql: str) -> PreparedHandle:
        n = count_placeholders(sql)
        self.raw.execute(f'EXPLAIN {sql}', [None] * n).fetchall()
        return PreparedHandle(sql=sql, native_sql=sql, param_count=n,
                              params=[NativeParam() for _ in range(n)])

    def set_autocommit(self, flag: bool) -> None:
        if flag:
            if self.raw.in_transaction:
                self.raw.commit()
            self.raw.isolation_level = None
        else:
            self.raw.isolation_level = 'DEFERRED'

    def adapt_value(self, variant: Variant) -> Any:
        if variant.kind is ValueKind.NULL:
            return None
        if variant.kind is ValueKind.BOOL:
            return int(variant.value)
        if variant.kind is ValueKind.DECIMAL:
            return str(variant.value)
        if variant.kind is ValueKind.DATETIME:
            return variant.value.isoformat(sep=' ')
        if variant.kind in {ValueKind.DATE, ValueKind.TIME}:
            return variant.value.isoformat()
        return variant.value
