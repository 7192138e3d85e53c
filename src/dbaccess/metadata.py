"""
Column and parameter metadata across database backends.
"""
import logging
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Self

from dbaccess.exceptions import ColumnIndexError, ParameterIndexError
from dbaccess.types import PortableType, map_native_type

if TYPE_CHECKING:
    from dbaccess.native.base import NativeField, NativeParam

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ColumnMetadataItem:
    """Description of one result column.

    `type` is the portable type resolved from `type_code`, the code reported
    by the native client. Sizes the native client does not report are None.
    """
    name: str
    label: str
    type: PortableType
    type_code: Any = None
    schema: str | None = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool = True
    signed: bool = True

    @classmethod
    def from_native(cls, field: 'NativeField', dialect: str) -> Self:
        """Create a ColumnMetadataItem from a native field description.
        """
        return cls(
            name=field.original_name or field.name,
            label=field.name,
            type=map_native_type(dialect, field.type_code),
            type_code=field.type_code,
            schema=field.schema,
            precision=field.precision,
            scale=field.scale,
            nullable=field.nullable,
            signed=field.signed,
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization.
        """
        d = asdict(self)
        d['type'] = self.type.value
        return d


@dataclass(slots=True)
class ParameterMetadataItem:
    """Description of one statement parameter.
    """
    type: PortableType
    type_code: Any = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool = True
    signed: bool = True

    @classmethod
    def from_native(cls, param: 'NativeParam', dialect: str) -> Self:
        return cls(
            type=map_native_type(dialect, param.type_code),
            type_code=param.type_code,
            precision=param.precision,
            scale=param.scale,
            nullable=param.nullable,
            signed=param.signed,
            )


class ResultSetMetaData:
    """Ordered column descriptions of a result set.

    All accessors take a 1-based column index.
    """

    def __init__(self, columns: list[ColumnMetadataItem]) -> None:
        self.columns = list(columns)

    @classmethod
    def from_native(cls, fields: list['NativeField'], dialect: str) -> Self:
        return cls([ColumnMetadataItem.from_native(f, dialect) for f in fields])

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self):
        return iter(self.columns)

    def __repr__(self) -> str:
        return f'ResultSetMetaData({self.get_labels()!r})'

    def column_count(self) -> int:
        return len(self.columns)

    def get(self, index: int) -> ColumnMetadataItem:
        """Return the column at 1-based `index`.

        Raises
            ColumnIndexError: index outside [1, column_count]
        """
        if not 1 <= index <= len(self.columns):
            raise ColumnIndexError(
                f'Column index {index} out of bounds (1..{len(self.columns)})')
        return self.columns[index - 1]

    def column_name(self, index: int) -> str:
        return self.get(index).name

    def column_label(self, index: int) -> str:
        return self.get(index).label

    def column_type(self, index: int) -> PortableType:
        return self.get(index).type

    def column_type_code(self, index: int) -> Any:
        return self.get(index).type_code

    def schema_name(self, index: int) -> str | None:
        return self.get(index).schema

    def precision(self, index: int) -> int | None:
        return self.get(index).precision

    def scale(self, index: int) -> int | None:
        return self.get(index).scale

    def is_nullable(self, index: int) -> bool:
        return self.get(index).nullable

    def is_signed(self, index: int) -> bool:
        return self.get(index).signed

    def get_names(self) -> list[str]:
        """Get column names in order.
        """
        return [col.name for col in self.columns]

    def get_labels(self) -> list[str]:
        """Get column labels in order.
        """
        return [col.label for col in self.columns]

    def get_unique_labels(self) -> list[str]:
        """Get column labels with repeats suffixed `_2`, `_3`, ... in order.

        Used as dict keys and DataFrame columns, where a repeated label
        (`SELECT a.id, b.id`) would otherwise hide a column.
        """
        seen = set(self.get_labels())
        counts: dict[str, int] = {}
        labels = []
        for label in self.get_labels():
            counts[label] = counts.get(label, 0) + 1
            if counts[label] == 1:
                labels.append(label)
                continue
            n = counts[label]
            while f'{label}_{n}' in seen:
                n += 1
            counts[label] = n
            seen.add(f'{label}_{n}')
            labels.append(f'{label}_{n}')
        return labels

    def to_dict(self) -> dict[str, dict[str, Any]]:
        """Get a dictionary of column descriptions indexed by unique label.
        """
        return dict(zip(self.get_unique_labels(), (col.to_dict() for col in self.columns)))


class ParameterMetaData:
    """Ordered parameter descriptions of a prepared statement.

    All accessors take a 1-based parameter index.
    """

    def __init__(self, params: list[ParameterMetadataItem]) -> None:
        self.params = list(params)

    @classmethod
    def from_native(cls, params: list['NativeParam'], dialect: str) -> Self:
        return cls([ParameterMetadataItem.from_native(p, dialect) for p in params])

    def __len__(self) -> int:
        return len(self.params)

    def parameter_count(self) -> int:
        return len(self.params)

    def get(self, index: int) -> ParameterMetadataItem:
        if not 1 <= index <= len(self.params):
            raise ParameterIndexError(
                f'Parameter index {index} out of range (1..{len(self.params)})')
        return self.params[index - 1]

    def parameter_type(self, index: int) -> PortableType:
        return self.get(index).type

    def precision(self, index: int) -> int | None:
        return self.get(index).precision

    def scale(self, index: int) -> int | None:
        return self.get(index).scale

    def is_nullable(self, index: int) -> bool:
        return self.get(index).nullable

    def is_signed(self, index: int) -> bool:
        return self.get(index).signed
