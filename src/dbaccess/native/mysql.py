"""
MySQL native session over PyMySQL.

MySQL specifics:
- Statements are validated with a server-side PREPARE that is immediately
  deallocated; execution goes through PyMySQL's client-side formatting
- Field descriptors carry the original column name, schema and the
  UNSIGNED / NOT NULL flags
- TIME columns arrive as timedelta; values within one day become time
"""
import datetime
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Self

import pymysql
from dbaccess.native.base import CommandResult, NativeField, NativeParam
from dbaccess.native.base import NativeResult, NativeSession, PreparedHandle
from dbaccess.native.base import fields_from_description, register_native
from dbaccess.sql import count_placeholders, to_format_style
from dbaccess.types import Variant
from pymysql.constants import FLAG

if TYPE_CHECKING:
    from dbaccess.options import ConnectionConfig

logger = logging.getLogger(__name__)

DEFAULT_CHARSET = 'utf8mb4'

_ONE_DAY = datetime.timedelta(days=1)


def _to_time_of_day(value: Any) -> Any:
    if isinstance(value, datetime.timedelta) and datetime.timedelta(0) <= value < _ONE_DAY:
        return (datetime.datetime.min + value).time()
    return value


def _fields(cursor) -> list[NativeField]:
    """Build fields from PyMySQL field descriptors when available."""
    result = getattr(cursor, '_result', None)
    if result is None or not getattr(result, 'fields', None):
        return fields_from_description(cursor.description)
    return [NativeField(
        name=f.name,
        type_code=f.type_code,
        original_name=f.org_name or None,
        schema=f.db.decode() if isinstance(f.db, bytes) else f.db,
        precision=f.get_column_length(),
        scale=f.scale,
        nullable=not f.flags & FLAG.NOT_NULL,
        signed=not f.flags & FLAG.UNSIGNED,
        ) for f in result.fields]


@register_native('mysql')
class MySQLSession(NativeSession):
    """MySQL client session.
    """
    dialect = 'mysql'
    default_port = 3306

    @classmethod
    def open(cls, config: 'ConnectionConfig') -> Self:
        extra = dict(config.params)
        kwargs = {'charset': extra.pop('charset', DEFAULT_CHARSET)}
        if 'connect_timeout' in extra:
            kwargs['connect_timeout'] = int(extra.pop('connect_timeout'))
        if extra:
            logger.debug(f'Ignoring unsupported MySQL options: {sorted(extra)}')
        raw = pymysql.connect(
            host=config.host,
            port=config.port,
            user=config.username,
            password=config.password or '',
            database=config.database,
            autocommit=True,
            **kwargs,
            )
        logger.debug(f'Opened MySQL session on {config.host}:{config.port}')
        return cls(raw, config)

    def select_database(self, name: str) -> None:
        self.raw.select_db(name)

    def current_database(self) -> str | None:
        with self.raw.cursor() as cursor:
            cursor.execute('SELECT DATABASE()')
            return cursor.fetchone()[0]

    def execute_query(self, sql: str, args: Sequence[Variant] = ()) -> NativeResult:
        with self.raw.cursor() as cursor:
            cursor.execute(to_format_style(sql), self.adapt_args(args))
            rows = [tuple(_to_time_of_day(v) for v in row) for row in cursor.fetchall()]
            return NativeResult(rows=rows, fields=_fields(cursor))

    def execute_command(self, sql: str, args: Sequence[Variant] = ()) -> CommandResult:
        with self.raw.cursor() as cursor:
            cursor.execute(to_format_style(sql), self.adapt_args(args))
            return CommandResult(affected=max(cursor.rowcount, 0),
                                 last_insert_id=cursor.lastrowid)

    def prepare(self, sql: str) -> PreparedHandle:
        with self.raw.cursor() as cursor:
            cursor.execute('PREPARE dbaccess_stmt FROM %s', (sql,))
            cursor.execute('DEALLOCATE PREPARE dbaccess_stmt')
        n = count_placeholders(sql)
        return PreparedHandle(sql=sql, native_sql=to_format_style(sql), param_count=n,
                              params=[NativeParam() for _ in range(n)])

    def set_autocommit(self, flag: bool) -> None:
        if flag:
            self.raw.commit()
        self.raw.autocommit(flag)
