"""
Statement and prepared statement execution.

A `Statement` runs ad-hoc SQL. A `PreparedStatement` compiles SQL with `?`
placeholders once and binds arguments by 1-based position. Both hold at most
one live `ResultSet`; executing a new query closes the previous one.

Every execution is logged with its SQL, arguments and timing by `dumpsql`.
"""
import datetime
import decimal
import logging
import time
from functools import wraps
from typing import TYPE_CHECKING, Any, Self

from dbaccess.exceptions import AlreadyClosedError, NativeError
from dbaccess.exceptions import ParameterIndexError, PrepareError, QueryError
from dbaccess.exceptions import UpdateError
from dbaccess.metadata import ParameterMetaData, ResultSetMetaData
from dbaccess.resultset import ResultSet
from dbaccess.types import PortableType, TypeConverter, ValueKind, Variant

if TYPE_CHECKING:
    from dbaccess.connection import Connection

__all__ = ['Statement', 'PreparedStatement', 'dumpsql']

logger = logging.getLogger(__name__)


def dumpsql(func):
    """Decorator for logging SQL queries and parameters."""
    @wraps(func)
    def wrapper(self, *args: Any, **kwargs: Any):
        operation = args[0] if args and isinstance(args[0], str) else self.sql
        params = self._bound_values()
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {params}')
        try:
            return func(self, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nargs: {params}')
            raise
        finally:
            elapsed = time.time() - start
            self.connection.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class Statement:
    """Executes SQL text on its connection.
    """

    def __init__(self, connection: 'Connection') -> None:
        self.connection = connection
        self.sql: str | None = None
        self._resultset: ResultSet | None = None
        self._closed = False

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        if not self.is_closed():
            self.close()

    def __repr__(self) -> str:
        state = 'closed' if self._closed else 'open'
        return f'{type(self).__name__}({state})'

    def _check_closed(self) -> None:
        if self._closed:
            raise AlreadyClosedError(f'{type(self).__name__} is already closed')

    def _bound_values(self) -> list[Any]:
        return []

    def _close_resultset(self) -> None:
        if self._resultset is not None and not self._resultset.is_closed():
            self._resultset._release()
        self._resultset = None

    def _resultset_closed(self, rs: ResultSet) -> None:
        if self._resultset is rs:
            self._resultset = None

    def _release(self) -> None:
        """Free native resources held by the statement."""

    def get_connection(self) -> 'Connection':
        return self.connection

    def is_closed(self) -> bool:
        with self.connection.lock:
            return self._closed

    def get_resultset(self) -> ResultSet | None:
        """Return the live result set, if any."""
        with self.connection.lock:
            return self._resultset

    def _make_resultset(self, result) -> ResultSet:
        metadata = ResultSetMetaData.from_native(result.fields, self.connection.dialect)
        self._resultset = ResultSet(self, result.rows, metadata)
        return self._resultset

    @dumpsql
    def execute_query(self, sql: str) -> ResultSet:
        """Execute a row-returning statement and materialize every row.

        The previous result set of this statement is closed first.

        Raises
            QueryError: The backend failed to run the query
        """
        with self.connection.lock:
            self._check_closed()
            self._close_resultset()
            self.sql = sql
            try:
                result = self.connection.session.execute_query(sql)
            except NativeError as exc:
                raise QueryError(f'Error executing query: {exc}', sql=sql) from exc
            return self._make_resultset(result)

    @dumpsql
    def execute_update(self, sql: str, return_id: bool = False) -> int | tuple[int, Any]:
        """Execute a statement that returns no rows.

        Args:
            sql: Statement text
            return_id: Also return the id generated by an INSERT

        Returns
            Affected row count, or (count, last insert id) when return_id

        Raises
            UpdateError: The backend failed to run the statement
        """
        with self.connection.lock:
            self._check_closed()
            self.sql = sql
            try:
                result = self.connection.session.execute_command(sql)
            except NativeError as exc:
                raise UpdateError(f'Error executing update: {exc}', sql=sql) from exc
        logger.debug(f'Affected rows: {result.affected}')
        if return_id:
            return result.affected, result.last_insert_id
        return result.affected

    def close(self) -> None:
        """Close the result set, release the statement and unregister it.

        Raises
            AlreadyClosedError: The statement was closed before
        """
        with self.connection.lock:
            self._check_closed()
            self._close_resultset()
            try:
                self._release()
            finally:
                self._closed = True
                self.connection._unregister(self)


class PreparedStatement(Statement):
    """Statement compiled once and executed with bound arguments.

    Arguments are bound by 1-based position; every slot starts as NULL.
    """

    def __init__(self, connection: 'Connection', sql: str) -> None:
        """Prepare `sql` on the connection's native session.

        Raises
            PrepareError: The backend rejected the SQL
        """
        super().__init__(connection)
        self.sql = sql
        try:
            self._handle = connection.session.prepare(sql)
        except NativeError as exc:
            logger.error(f'Error preparing statement:\nSQL:\n{sql}')
            raise PrepareError(f'Error preparing statement: {exc}', sql=sql) from exc
        self._args: list[Variant] = [Variant.null()] * self._handle.param_count
        self._metadata: ResultSetMetaData | None = None
        self._param_metadata: ParameterMetaData | None = None
        logger.debug(f'Prepared statement with {self._handle.param_count} parameters')

    def _bound_values(self) -> list[Any]:
        return [v.value for v in self._args]

    def _release(self) -> None:
        try:
            self.connection.session.release_prepared(self._handle)
        except NativeError as exc:
            logger.warning(f'Error releasing prepared statement: {exc}')

    @property
    def parameter_count(self) -> int:
        return self._handle.param_count

    def get_metadata(self) -> ResultSetMetaData:
        """Describe the columns the statement returns. Computed once.
        """
        with self.connection.lock:
            self._check_closed()
            if self._metadata is None:
                try:
                    fields = self.connection.session.describe_prepared(self._handle)
                except NativeError as exc:
                    raise PrepareError(f'Error describing statement: {exc}', sql=self.sql) from exc
                self._metadata = ResultSetMetaData.from_native(fields, self.connection.dialect)
            return self._metadata

    def get_parameter_metadata(self) -> ParameterMetaData:
        """Describe the statement parameters. Computed once.
        """
        with self.connection.lock:
            self._check_closed()
            if self._param_metadata is None:
                self._param_metadata = ParameterMetaData.from_native(
                    self._handle.params, self.connection.dialect)
            return self._param_metadata

    def _bind(self, index: int, value: Variant) -> None:
        with self.connection.lock:
            self._check_closed()
            if not 1 <= index <= self._handle.param_count:
                raise ParameterIndexError(
                    f'Parameter index {index} out of range (1..{self._handle.param_count})')
            self._args[index - 1] = value

    def set_null(self, index: int, sql_type: PortableType | None = None) -> None:
        self._bind(index, Variant.null())

    def set_boolean(self, index: int, value: bool) -> None:
        self._bind(index, Variant(ValueKind.BOOL, bool(value)))

    def set_byte(self, index: int, value: int) -> None:
        self._bind(index, Variant(ValueKind.INT, int(value)))

    def set_short(self, index: int, value: int) -> None:
        self._bind(index, Variant(ValueKind.INT, int(value)))

    def set_int(self, index: int, value: int) -> None:
        self._bind(index, Variant(ValueKind.INT, int(value)))

    def set_long(self, index: int, value: int) -> None:
        self._bind(index, Variant(ValueKind.INT, int(value)))

    def set_float(self, index: int, value: float) -> None:
        self._bind(index, Variant(ValueKind.FLOAT, float(value)))

    def set_double(self, index: int, value: float) -> None:
        self._bind(index, Variant(ValueKind.FLOAT, float(value)))

    def set_decimal(self, index: int, value: decimal.Decimal | None) -> None:
        if value is None:
            return self.set_null(index)
        if not isinstance(value, decimal.Decimal):
            value = decimal.Decimal(str(value))
        self._bind(index, Variant(ValueKind.DECIMAL, value))

    def set_string(self, index: int, value: str | None) -> None:
        if value is None:
            return self.set_null(index)
        self._bind(index, Variant(ValueKind.STRING, str(value)))

    def set_bytes(self, index: int, value: bytes | None) -> None:
        if value is None:
            return self.set_null(index)
        self._bind(index, Variant(ValueKind.BYTES, bytes(value)))

    def set_date(self, index: int, value: datetime.date | None) -> None:
        if value is None:
            return self.set_null(index)
        if isinstance(value, datetime.datetime):
            value = value.date()
        self._bind(index, Variant(ValueKind.DATE, value))

    def set_time(self, index: int, value: datetime.time | None) -> None:
        if value is None:
            return self.set_null(index)
        self._bind(index, Variant(ValueKind.TIME, value))

    def set_datetime(self, index: int, value: datetime.datetime | None) -> None:
        if value is None:
            return self.set_null(index)
        self._bind(index, Variant(ValueKind.DATETIME, value))

    def set_variant(self, index: int, value: Variant | Any) -> None:
        self._bind(index, Variant.of(value))

    def set_object(self, index: int, value: Any) -> None:
        """Bind any Python, NumPy, pandas or PyArrow value.

        NaN, NaT and pandas NA bind as NULL.
        """
        self._bind(index, Variant.of(TypeConverter.convert_value(value)))

    def clear_parameters(self) -> None:
        """Reset every argument slot to NULL.
        """
        with self.connection.lock:
            self._check_closed()
            self._args = [Variant.null()] * self._handle.param_count

    @dumpsql
    def execute_query(self) -> ResultSet:
        """Execute with the bound arguments and materialize every row.

        Raises
            QueryError: The backend failed to run the query
        """
        with self.connection.lock:
            self._check_closed()
            self._close_resultset()
            try:
                result = self.connection.session.execute_prepared_query(
                    self._handle, list(self._args))
            except NativeError as exc:
                raise QueryError(f'Error executing query: {exc}', sql=self.sql) from exc
            return self._make_resultset(result)

    @dumpsql
    def execute_update(self, return_id: bool = False) -> int | tuple[int, Any]:
        """Execute with the bound arguments; no rows are returned.

        Returns
            Affected row count, or (count, last insert id) when return_id

        Raises
            UpdateError: The backend failed to run the statement
        """
        with self.connection.lock:
            self._check_closed()
            try:
                result = self.connection.session.execute_prepared_command(
                    self._handle, list(self._args))
            except NativeError as exc:
                raise UpdateError(f'Error executing update: {exc}', sql=self.sql) from exc
        logger.debug(f'Affected rows: {result.affected}')
        if return_id:
            return result.affected, result.last_insert_id
        return result.affected
