"""
Base native session interface.

A native session is a thin adapter over one backend's Python client library.
It speaks SQL written with positional `?` placeholders and `Variant`
arguments, and returns fully fetched rows together with field descriptions.

Native sessions are not thread-safe and do not validate state: the owning
`Connection` serializes every call under its lock and checks the open flag
first. Errors of the underlying client propagate unchanged; the caller wraps
them into the dbaccess error taxonomy.
"""
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Self

from dbaccess.sql import count_placeholders, is_query
from dbaccess.types import ValueKind, Variant

if TYPE_CHECKING:
    from dbaccess.options import ConnectionConfig

# Registry of scheme -> native session class
_NATIVE_REGISTRY: dict[str, type['NativeSession']] = {}


def register_native(*schemes: str):
    """Decorator to register a native session class for URL schemes.

    Usage:
        @register_native('postgresql', 'postgres')
        class PostgresSession(NativeSession):
            ...
    """
    def decorator(cls: type['NativeSession']) -> type['NativeSession']:
        for scheme in schemes:
            _NATIVE_REGISTRY[scheme] = cls
        return cls
    return decorator


def get_native_class(scheme: str) -> type['NativeSession']:
    """Get the native session class registered for a scheme.

    Raises
        KeyError: If no class is registered for the scheme
    """
    return _NATIVE_REGISTRY[scheme]


@dataclass(slots=True)
class NativeField:
    """Column description reported by a native client."""
    name: str
    type_code: Any = None
    original_name: str | None = None
    schema: str | None = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool = True
    signed: bool = True


@dataclass(slots=True)
class NativeParam:
    """Parameter description reported by a native client."""
    type_code: Any = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool = True
    signed: bool = True


@dataclass(slots=True)
class NativeResult:
    """Fully fetched rows of a row-returning statement."""
    rows: list[tuple]
    fields: list[NativeField]


@dataclass(slots=True)
class CommandResult:
    """Outcome of a non-row-returning statement."""
    affected: int
    last_insert_id: Any = None


@dataclass(slots=True)
class PreparedHandle:
    """Native side of a prepared statement.

    `sql` is the caller's text, `native_sql` the text in the client's
    parameter style.
    """
    sql: str
    native_sql: str
    param_count: int
    params: list[NativeParam] = field(default_factory=list)
    name: str | None = None


def fields_from_description(description: Sequence | None) -> list[NativeField]:
    """Create NativeField objects from a DB-API cursor description.
    """
    if description is None:
        return []
    result = []
    for item in description:
        null_ok = item[6] if len(item) > 6 else None
        result.append(NativeField(
            name=item[0],
            type_code=item[1],
            precision=item[4] if len(item) > 4 else None,
            scale=item[5] if len(item) > 5 else None,
            nullable=True if null_ok is None else bool(null_ok),
            ))
    return result


class NativeSession(ABC):
    """Base class for backend client adapters.
    """
    dialect: str = ''
    default_port: int = 0

    def __init__(self, raw: Any, config: 'ConnectionConfig') -> None:
        self.raw = raw
        self.config = config

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.config!r})'

    @classmethod
    @abstractmethod
    def open(cls, config: 'ConnectionConfig') -> Self:
        """Open a client session for the resolved configuration.
        """

    def close(self) -> None:
        """Release the client session."""
        self.raw.close()

    @abstractmethod
    def select_database(self, name: str) -> None:
        """Make `name` the session's default catalog.
        """

    @abstractmethod
    def current_database(self) -> str | None:
        """Return the session's default catalog.
        """

    @abstractmethod
    def execute_query(self, sql: str, args: Sequence[Variant] = ()) -> NativeResult:
        """Execute a row-returning statement and fetch every row.
        """

    @abstractmethod
    def execute_command(self, sql: str, args: Sequence[Variant] = ()) -> CommandResult:
        """Execute a statement and report affected rows and insert id.
        """

    def prepare(self, sql: str) -> PreparedHandle:
        """Compile a statement and report its parameter count.

        The base implementation only counts placeholders; clients that can
        validate statements on the server override this.
        """
        n = count_placeholders(sql)
        return PreparedHandle(sql=sql, native_sql=sql, param_count=n,
                              params=[NativeParam() for _ in range(n)])

    def describe_prepared(self, handle: PreparedHandle) -> list[NativeField]:
        """Describe the columns a prepared statement will return.

        Row-returning statements run with NULL arguments in a
        subquery that yields no rows; other statements have no columns.
        """
        if not is_query(handle.sql):
            return []
        empty = f'SELECT * FROM ({handle.sql}) AS described LIMIT 0'
        args = [Variant.null()] * handle.param_count
        return self.execute_query(empty, args).fields

    def execute_prepared_query(self, handle: PreparedHandle,
                               args: Sequence[Variant]) -> NativeResult:
        return self.execute_query(handle.sql, args)

    def execute_prepared_command(self, handle: PreparedHandle,
                                 args: Sequence[Variant]) -> CommandResult:
        return self.execute_command(handle.sql, args)

    def release_prepared(self, handle: PreparedHandle) -> None:
        """Free server resources held by a prepared statement."""

    @abstractmethod
    def set_autocommit(self, flag: bool) -> None:
        """Switch autocommit. Enabling it commits any open transaction.
        """

    def commit(self) -> None:
        self.raw.commit()

    def rollback(self) -> None:
        self.raw.rollback()

    def adapt_value(self, variant: Variant) -> Any:
        """Convert a Variant into a value the client can bind.
        """
        if variant.kind is ValueKind.NULL:
            return None
        return variant.value

    def adapt_args(self, args: Sequence[Variant]) -> list[Any]:
        return [self.adapt_value(v) for v in args]
