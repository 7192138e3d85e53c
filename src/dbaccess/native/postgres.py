"""
PostgreSQL native session over psycopg 3.

PostgreSQL specifics:
- Statements are prepared on the server through libpq so the parameter
  count and column types come from the server, not from the SQL text
- Execution goes through a psycopg cursor with `prepare=True`
- The catalog maps to the schema search path (`SET search_path`)
- There is no last-insert-id; a `RETURNING` row supplies it instead
"""
import itertools
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Self

import psycopg
from dbaccess.native.base import CommandResult, NativeField, NativeParam
from dbaccess.native.base import NativeResult, NativeSession, PreparedHandle
from dbaccess.native.base import register_native
from dbaccess.sql import to_format_style, to_numeric_style
from dbaccess.types import Variant
from psycopg import sql as pgsql
from psycopg.errors import error_from_result
from psycopg.pq import ExecStatus
from psycopg.postgres import types as pg_types

if TYPE_CHECKING:
    from dbaccess.options import ConnectionConfig

logger = logging.getLogger(__name__)

_NUMERIC_OID = pg_types.get('numeric').oid
_statement_ids = itertools.count(1)


def _decode_typmod(type_oid: int, fmod: int) -> tuple[int | None, int | None]:
    """Decode a column type modifier into (precision, scale)."""
    if fmod < 4:
        return None, None
    if type_oid == _NUMERIC_OID:
        return ((fmod - 4) >> 16) & 0xFFFF, (fmod - 4) & 0xFFFF
    return fmod - 4, None


@register_native('postgresql', 'postgres')
class PostgresSession(NativeSession):
    """PostgreSQL client session.
    """
    dialect = 'postgresql'
    default_port = 5432

    @classmethod
    def open(cls, config: 'ConnectionConfig') -> Self:
        raw = psycopg.connect(
            host=config.host,
            port=config.port,
            dbname=config.database,
            user=config.username,
            password=config.password,
            autocommit=True,
            **config.params,
            )
        logger.debug(f'Opened PostgreSQL session on {config.host}:{config.port}')
        return cls(raw, config)

    def _check(self, result) -> None:
        if result.status not in {ExecStatus.COMMAND_OK, ExecStatus.TUPLES_OK}:
            raise error_from_result(result, encoding=self.raw.info.encoding)

    def select_database(self, name: str) -> None:
        self.raw.execute(pgsql.SQL('SET search_path TO {}').format(pgsql.Identifier(name)))

    def current_database(self) -> str | None:
        return self.raw.execute('SELECT current_schema()').fetchone()[0]

    def _run(self, sql: str, args: Sequence[Variant], prepare: bool | None = None):
        cursor = self.raw.cursor()
        cursor.execute(to_format_style(sql), self.adapt_args(args), prepare=prepare)
        return cursor

    def _fields(self, cursor) -> list[NativeField]:
        if cursor.description is None:
            return []
        return [NativeField(
            name=col.name,
            type_code=col.type_code,
            precision=col.precision,
            scale=col.scale,
            nullable=True if col.null_ok is None else col.null_ok,
            ) for col in cursor.description]

    def execute_query(self, sql: str, args: Sequence[Variant] = (),
                      prepare: bool | None = None) -> NativeResult:
        with self._run(sql, args, prepare) as cursor:
            rows = cursor.fetchall() if cursor.description is not None else []
            return NativeResult(rows=rows, fields=self._fields(cursor))

    def execute_command(self, sql: str, args: Sequence[Variant] = (),
                        prepare: bool | None = None) -> CommandResult:
        with self._run(sql, args, prepare) as cursor:
            last_insert_id = None
            if cursor.description is not None:
                row = cursor.fetchone()
                last_insert_id = row[0] if row else None
            return CommandResult(affected=max(cursor.rowcount, 0),
                                 last_insert_id=last_insert_id)

    def prepare(self, sql: str) -> PreparedHandle:
        name = f'dbaccess_{next(_statement_ids)}'
        pgconn = self.raw.pgconn
        self._check(pgconn.prepare(name.encode(), to_numeric_style(sql).encode()))
        desc = pgconn.describe_prepared(name.encode())
        self._check(desc)
        params = [NativeParam(type_code=desc.param_type(i)) for i in range(desc.nparams)]
        return PreparedHandle(sql=sql, native_sql=to_format_style(sql),
                              param_count=desc.nparams, params=params, name=name)

    def describe_prepared(self, handle: PreparedHandle) -> list[NativeField]:
        desc = self.raw.pgconn.describe_prepared(handle.name.encode())
        self._check(desc)
        fields = []
        for i in range(desc.nfields):
            type_oid = desc.ftype(i)
            precision, scale = _decode_typmod(type_oid, desc.fmod(i))
            fields.append(NativeField(
                name=desc.fname(i).decode(),
                type_code=type_oid,
                precision=precision,
                scale=scale,
                ))
        return fields

    def execute_prepared_query(self, handle: PreparedHandle,
                               args: Sequence[Variant]) -> NativeResult:
        return self.execute_query(handle.sql, args, prepare=True)

    def execute_prepared_command(self, handle: PreparedHandle,
                                 args: Sequence[Variant]) -> CommandResult:
        return self.execute_command(handle.sql, args, prepare=True)

    def release_prepared(self, handle: PreparedHandle) -> None:
        self.raw.execute(pgsql.SQL('DEALLOCATE {}').format(pgsql.Identifier(handle.name)))

    def set_autocommit(self, flag: bool) -> None:
        if flag:
            self.raw.commit()
        self.raw.autocommit = flag
