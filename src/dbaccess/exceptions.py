"""
Database access exception classes.

Every error raised by this package derives from `DatabaseError` and carries
an `ErrorKind`. The hierarchy separates two families:

- `ValidationError`: a precondition was violated by the caller (closed
  object, bad index, unknown column, impossible conversion).
- `OperationalFailure`: the native client or the server failed. The native
  exception is chained as ``__cause__`` and the SQL text is kept on ``sql``.
"""
import re
import sqlite3
from enum import Enum

import psycopg
import pymysql

RETRYABLE_PATTERNS = [
    # SSL/TLS errors
    r'ssl',
    r'tls',
    # Connection drops
    r'connection.*(closed|reset|refused|lost|terminated|broken)',
    r'server closed',
    r'server has gone away',
    r'lost connection',
    r'eof detected',
    r'broken pipe',
    # Timeouts
    r'timeout',
    r'timed out',
    # Network issues
    r'could not connect',
    r"can't connect",
    r'no route to host',
    r'network.*(unreachable|error)',
    r'host.*(unreachable|down)',
    # Database unavailable
    r'database.*(unavailable|is locked)',
    r'too many connections',
    r'deadlock',
]

_RETRYABLE_REGEX = re.compile('|'.join(RETRYABLE_PATTERNS), re.IGNORECASE)

# Errors surfaced by the native clients. These are the only exceptions
# wrapped into OperationalFailure subclasses.
NativeError = (
    sqlite3.Error,
    psycopg.Error,
    pymysql.err.Error,
    OSError,
    )


class ErrorKind(Enum):
    """Kinds of failure reported by the access layer.
    """
    ALREADY_CLOSED = 'already_closed'
    UNKNOWN_DRIVER = 'unknown_driver'
    CONNECTION_FAILED = 'connection_failed'
    PREPARE_FAILED = 'prepare_failed'
    QUERY_FAILED = 'query_failed'
    UPDATE_FAILED = 'update_failed'
    TRANSACTION_CONTROL_FAILED = 'transaction_control_failed'
    PARAMETER_INDEX_OUT_OF_RANGE = 'parameter_index_out_of_range'
    COLUMN_INDEX_OUT_OF_BOUNDS = 'column_index_out_of_bounds'
    COLUMN_NOT_FOUND = 'column_not_found'
    NO_CURRENT_ROW = 'no_current_row'
    INCOMPATIBLE_TYPE = 'incompatible_type'


class DatabaseError(Exception):
    """Base class for all dbaccess errors.
    """
    kind: ErrorKind

    def __init__(self, message: str, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql


class ValidationError(DatabaseError):
    """A caller precondition was violated.
    """


class OperationalFailure(DatabaseError):
    """The native client or the server reported a failure.
    """


class AlreadyClosedError(ValidationError):
    """Operation attempted on a closed connection, statement or result set.
    """
    kind = ErrorKind.ALREADY_CLOSED


class UnknownDriverError(ValidationError):
    """No driver factory is registered for the URL scheme.
    """
    kind = ErrorKind.UNKNOWN_DRIVER


class ParameterIndexError(ValidationError):
    """Parameter index outside [1, parameter count].
    """
    kind = ErrorKind.PARAMETER_INDEX_OUT_OF_RANGE


class ColumnIndexError(ValidationError):
    """Column index outside [1, column count].
    """
    kind = ErrorKind.COLUMN_INDEX_OUT_OF_BOUNDS


class ColumnNotFoundError(ValidationError):
    """Column label not present in the result set.
    """
    kind = ErrorKind.COLUMN_NOT_FOUND


class NoCurrentRowError(ValidationError):
    """Result set cursor is not positioned on a row.
    """
    kind = ErrorKind.NO_CURRENT_ROW


class TypeConversionError(ValidationError):
    """Column value cannot be converted to the requested type.
    """
    kind = ErrorKind.INCOMPATIBLE_TYPE


class ConnectionFailure(OperationalFailure):
    """Error establishing a database session.
    """
    kind = ErrorKind.CONNECTION_FAILED


class PrepareError(OperationalFailure):
    """Error compiling a prepared statement.
    """
    kind = ErrorKind.PREPARE_FAILED


class QueryError(OperationalFailure):
    """Error executing a row-returning statement.
    """
    kind = ErrorKind.QUERY_FAILED


class UpdateError(OperationalFailure):
    """Error executing a non-row-returning statement.
    """
    kind = ErrorKind.UPDATE_FAILED


class TransactionControlError(OperationalFailure):
    """Error switching autocommit, committing or rolling back.
    """
    kind = ErrorKind.TRANSACTION_CONTROL_FAILED


def is_retryable_error(exc: BaseException) -> bool:
    """Check if an exception represents a transient error worth retrying.

    Nothing in this package retries on its own; callers use this to decide
    whether an `OperationalFailure` should be retried upstream. The chained
    native exception is inspected along with the wrapper.

    :param exc: The exception to check.
    :returns: True if the error is likely transient and worth retrying.
    """
    if isinstance(exc, ValidationError):
        return False
    messages = [str(exc)]
    if exc.__cause__ is not None:
        messages.append(str(exc.__cause__))
    return any(_RETRYABLE_REGEX.search(msg) for msg in messages)
