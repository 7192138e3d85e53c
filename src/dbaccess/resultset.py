"""
Materialized result sets.

All rows of a query are fetched when the query runs. The cursor then moves
over the buffered rows:

    before-first --next/first--> positioned --next past end--> exhausted
          \\__________________________ close() ____________________/--> closed

Getters take a 1-based column index or a column label and coerce the value
with `dbaccess.types.coerce`. A NULL column yields the getter's default
value and sets `was_null()`.
"""
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Self

from dbaccess.exceptions import AlreadyClosedError, ColumnIndexError
from dbaccess.exceptions import ColumnNotFoundError, NoCurrentRowError
from dbaccess.metadata import ResultSetMetaData
from dbaccess.types import TargetKind, Variant, coerce

if TYPE_CHECKING:
    from dbaccess.statement import Statement

__all__ = ['ResultSet']

logger = logging.getLogger(__name__)

Column = int | str


class ResultSet:
    """Buffered rows of one query with a forward cursor.
    """

    def __init__(self, statement: 'Statement', rows: list[tuple],
                 metadata: ResultSetMetaData) -> None:
        self.statement = statement
        self._rows = list(rows)
        self._metadata = metadata
        self._labels: dict[str, int] = {}
        self._labels_lower: dict[str, int] = {}
        for index, label in enumerate(metadata.get_labels(), 1):
            self._labels.setdefault(label, index)
            self._labels_lower.setdefault(label.lower(), index)
        self._position = -1
        self._exhausted = False
        self._last_was_null = False
        self._closed = False
        logger.debug(f'Materialized {len(self._rows)} rows')

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        if not self.is_closed():
            self.close()

    def __repr__(self) -> str:
        return f'ResultSet(rows={len(self._rows)}, columns={self._metadata.get_labels()!r})'

    @property
    def _lock(self):
        return self.statement.connection.lock

    def _check_closed(self) -> None:
        if self._closed:
            raise AlreadyClosedError('ResultSet is already closed')

    @property
    def _positioned(self) -> bool:
        return self._position >= 0 and not self._exhausted

    def _release(self) -> None:
        self._closed = True
        self._rows = []

    def close(self) -> None:
        """Close the result set and detach it from its statement.
        """
        with self._lock:
            self._check_closed()
            self._release()
            self.statement._resultset_closed(self)

    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    def get_statement(self) -> 'Statement':
        return self.statement

    def get_metadata(self) -> ResultSetMetaData:
        with self._lock:
            self._check_closed()
            return self._metadata

    def get_fetch_size(self) -> int:
        """Number of materialized rows."""
        with self._lock:
            self._check_closed()
            return len(self._rows)

    # cursor movement

    def next(self) -> bool:
        """Advance to the next row.

        Returns False past the last row; the position is left unchanged and
        the result set is exhausted.
        """
        with self._lock:
            self._check_closed()
            if self._exhausted or self._position + 1 >= len(self._rows):
                self._exhausted = True
                return False
            self._position += 1
            return True

    def first(self) -> bool:
        """Move to the first row. Returns False when there are no rows.
        """
        with self._lock:
            self._check_closed()
            if not self._rows:
                return False
            self._position = 0
            self._exhausted = False
            return True

    def is_first(self) -> bool:
        with self._lock:
            self._check_closed()
            return self._positioned and self._position == 0

    def is_last(self) -> bool:
        with self._lock:
            self._check_closed()
            return self._positioned and self._position == len(self._rows) - 1

    def get_row(self) -> int:
        """1-based number of the current row, 0 when not on a row."""
        with self._lock:
            self._check_closed()
            return self._position + 1 if self._positioned else 0

    # column access

    def find_column(self, label: str) -> int:
        """Return the 1-based index of the first column with `label`.

        Exact matches win over case-insensitive ones.

        Raises
            ColumnNotFoundError: No column has the label
        """
        with self._lock:
            self._check_closed()
            if label in self._labels:
                return self._labels[label]
            if label.lower() in self._labels_lower:
                return self._labels_lower[label.lower()]
            raise ColumnNotFoundError(f'Column not found: {label}')

    def _resolve(self, column: Column) -> int:
        if isinstance(column, str):
            return self.find_column(column)
        if not 1 <= column <= self._metadata.column_count():
            raise ColumnIndexError(
                f'Column index {column} out of bounds (1..{self._metadata.column_count()})')
        return column

    def _value(self, column: Column) -> tuple[Variant, int]:
        self._check_closed()
        index = self._resolve(column)
        if not self._positioned:
            raise NoCurrentRowError('ResultSet is not positioned on a row')
        return Variant.of(self._rows[self._position][index - 1]), index

    def _get(self, column: Column, target: TargetKind) -> Any:
        with self._lock:
            variant, index = self._value(column)
            value, was_null = coerce(variant, target, index)
            self._last_was_null = was_null
            return value

    def is_null(self, column: Column) -> bool:
        with self._lock:
            variant, _ = self._value(column)
            return variant.is_null

    def was_null(self) -> bool:
        """Whether the last getter read a NULL column.
        """
        with self._lock:
            self._check_closed()
            return self._last_was_null

    def get_boolean(self, column: Column) -> bool:
        return self._get(column, TargetKind.BOOLEAN)

    def get_byte(self, column: Column) -> int:
        return self._get(column, TargetKind.BYTE)

    def get_ubyte(self, column: Column) -> int:
        return self._get(column, TargetKind.UBYTE)

    def get_short(self, column: Column) -> int:
        return self._get(column, TargetKind.SHORT)

    def get_ushort(self, column: Column) -> int:
        return self._get(column, TargetKind.USHORT)

    def get_int(self, column: Column) -> int:
        return self._get(column, TargetKind.INT)

    def get_uint(self, column: Column) -> int:
        return self._get(column, TargetKind.UINT)

    def get_long(self, column: Column) -> int:
        return self._get(column, TargetKind.LONG)

    def get_ulong(self, column: Column) -> int:
        return self._get(column, TargetKind.ULONG)

    def get_float(self, column: Column) -> float:
        return self._get(column, TargetKind.FLOAT)

    def get_double(self, column: Column) -> float:
        return self._get(column, TargetKind.DOUBLE)

    def get_decimal(self, column: Column):
        return self._get(column, TargetKind.DECIMAL)

    def get_string(self, column: Column) -> str | None:
        return self._get(column, TargetKind.STRING)

    def get_bytes(self, column: Column) -> bytes | None:
        return self._get(column, TargetKind.BYTES)

    def get_date(self, column: Column):
        return self._get(column, TargetKind.DATE)

    def get_time(self, column: Column):
        return self._get(column, TargetKind.TIME)

    def get_datetime(self, column: Column):
        return self._get(column, TargetKind.DATETIME)

    def get_variant(self, column: Column) -> Variant | None:
        """Return the column as a Variant, or None for NULL.
        """
        with self._lock:
            variant, _ = self._value(column)
            self._last_was_null = variant.is_null
            return None if variant.is_null else variant

    def get_object(self, column: Column) -> Any:
        """Return the column value as fetched by the native client.
        """
        with self._lock:
            variant, _ = self._value(column)
            self._last_was_null = variant.is_null
            return variant.value

    def load(self, data_loader: Callable[..., Any] | None = None) -> Any:
        """Hand every materialized row to a data loader.

        Rows are passed as dicts keyed by column label; a repeated label
        gets a `_2`, `_3`, ... suffix. Without an explicit
        loader the connection's configured loader is used.
        """
        with self._lock:
            self._check_closed()
            loader = data_loader or self.statement.connection.config.data_loader
            labels = self._metadata.get_unique_labels()
            data = [dict(zip(labels, row)) for row in self._rows]
            return loader(data, self._metadata)
