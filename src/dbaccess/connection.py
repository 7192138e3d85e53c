"""
Database connection handling.

This module provides the `Connection` class: one native client session
guarded by a re-entrant lock, plus the list of statements created from it.

Every operation takes the lock for its full extent and checks the open flag
first. Closing a connection force-closes every statement still open, which
in turn closes their result sets.
"""
import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Self

from dbaccess.exceptions import AlreadyClosedError, ConnectionFailure
from dbaccess.exceptions import NativeError, QueryError, TransactionControlError
from dbaccess.options import ConnectionConfig
from dbaccess.statement import PreparedStatement, Statement

if TYPE_CHECKING:
    from dbaccess.native.base import NativeSession

__all__ = ['Connection']

logger = logging.getLogger(__name__)

# Malformed client options (e.g. timeout=abc) surface as ValueError on open
_OPEN_ERRORS = (*NativeError, ValueError)


class Connection:
    """A session with one database, shared by its statements.

    The connection opens in autocommit mode. Statistics of executed calls
    are tracked in `calls` and `time` and logged on close.
    """

    def __init__(self, native_cls: type['NativeSession'], url: str,
                 params: dict[str, Any] | None = None,
                 data_loader: Callable[..., Any] | None = None) -> None:
        """Open a connection.

        Args:
            native_cls: Native session class for the backend
            url: Connection URL
            params: Overrides applied on top of the URL
            data_loader: Optional loader used by `ResultSet.load()`

        Raises
            ConnectionFailure: URL is invalid or the session cannot be opened
        """
        self._lock = threading.RLock()
        self._statements: list[Statement] = []
        self._closed = False
        self._autocommit = True
        self._catalog: str | None = None
        self.calls = 0
        self.time = 0

        try:
            self.config = ConnectionConfig.from_url(
                url, params, default_port=native_cls.default_port, data_loader=data_loader)
        except ValueError as exc:
            raise ConnectionFailure(f'Invalid connection URL: {exc}') from exc

        session = None
        try:
            session = native_cls.open(self.config)
            session.set_autocommit(True)
        except _OPEN_ERRORS as exc:
            if session is not None:
                self._discard(session)
            raise ConnectionFailure(
                f'Cannot connect to {self.config.scheme} database: {exc}') from exc
        self.session = session
        logger.debug(f'Connected: {self.config!r}')

    @staticmethod
    def _discard(session: 'NativeSession') -> None:
        """Close a half-open session after a failed open."""
        try:
            session.close()
        except NativeError as exc:
            logger.debug(f'Error closing half-open session: {exc}')

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        """Close the connection if it is still open
        """
        if not self.is_closed():
            self.close()
            logger.debug('Closed connection via context manager')

    def __repr__(self) -> str:
        state = 'closed' if self._closed else 'open'
        return f'Connection({self.config.scheme}://{self.config.host}:{self.config.port}, {state})'

    @property
    def lock(self) -> threading.RLock:
        """Lock serializing every call into the native session."""
        return self._lock

    @property
    def dialect(self) -> str:
        """Return the dialect name ('mysql', 'postgresql' or 'sqlite')."""
        return self.session.dialect

    def _check_closed(self) -> None:
        if self._closed:
            raise AlreadyClosedError('Connection is already closed')

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        with self._lock:
            self.time += elapsed
            self.calls += 1

    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    def create_statement(self) -> Statement:
        """Create a statement for ad-hoc SQL.
        """
        with self._lock:
            self._check_closed()
            stmt = Statement(self)
            self._statements.append(stmt)
            return stmt

    def prepare_statement(self, sql: str) -> PreparedStatement:
        """Compile SQL with `?` placeholders into a prepared statement.

        Raises
            PrepareError: The backend rejected the SQL
        """
        with self._lock:
            self._check_closed()
            stmt = PreparedStatement(self, sql)
            self._statements.append(stmt)
            return stmt

    def _unregister(self, stmt: Statement) -> None:
        with self._lock:
            if stmt in self._statements:
                self._statements.remove(stmt)

    @property
    def statements(self) -> list[Statement]:
        """Statements created from this connection and still open."""
        with self._lock:
            return list(self._statements)

    def get_auto_commit(self) -> bool:
        with self._lock:
            self._check_closed()
            return self._autocommit

    def set_auto_commit(self, flag: bool) -> None:
        """Switch autocommit mode. Enabling it commits the open transaction.
        """
        with self._lock:
            self._check_closed()
            if flag == self._autocommit:
                return
            try:
                self.session.set_autocommit(flag)
            except NativeError as exc:
                raise TransactionControlError(f'Cannot set autocommit to {flag}: {exc}') from exc
            self._autocommit = flag
            logger.debug(f'Autocommit set to {flag}')

    def commit(self) -> None:
        """Commit the current transaction
        """
        with self._lock:
            self._check_closed()
            try:
                self.session.commit()
            except NativeError as exc:
                raise TransactionControlError(f'Commit failed: {exc}') from exc
            logger.debug('Transaction committed')

    def rollback(self) -> None:
        """Roll back the current transaction
        """
        with self._lock:
            self._check_closed()
            try:
                self.session.rollback()
            except NativeError as exc:
                raise TransactionControlError(f'Rollback failed: {exc}') from exc
            logger.debug('Transaction rolled back')

    def get_catalog(self) -> str | None:
        """Return the session's default catalog.
        """
        with self._lock:
            self._check_closed()
            if self._catalog is None:
                try:
                    self._catalog = self.session.current_database()
                except NativeError as exc:
                    raise QueryError(f'Cannot read current catalog: {exc}') from exc
            return self._catalog

    def set_catalog(self, name: str) -> None:
        """Select the session's default catalog. No-op when already selected.
        """
        with self._lock:
            self._check_closed()
            if name == self.get_catalog():
                return
            try:
                self.session.select_database(name)
            except NativeError as exc:
                raise QueryError(f'Cannot select catalog {name}: {exc}') from exc
            self._catalog = name
            logger.debug(f'Catalog set to {name}')

    def close(self) -> None:
        """Close every open statement, then release the native session.

        Raises
            AlreadyClosedError: The connection was closed before
        """
        with self._lock:
            self._check_closed()
            for stmt in list(self._statements):
                if not stmt.is_closed():
                    stmt.close()
            self._statements.clear()
            try:
                self.session.close()
            except NativeError as exc:
                raise ConnectionFailure(f'Error closing connection: {exc}') from exc
            finally:
                self._closed = True
                logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per query)')
