"""
Portable type handling for database values.

This module provides:
- PortableType: engine-neutral SQL type enumeration used in metadata
- map_native_type: resolve a native column type code to a PortableType
- Variant: tagged value (kind + payload) exchanged with the native clients
- coerce: convert a Variant read from a row into the type a getter asks for
- TypeConverter: normalize NumPy, pandas and PyArrow values before binding
- SQLite converters for date/datetime columns
"""
import datetime
import decimal
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Self

import dateutil.parser
import numpy as np
import pandas as pd
import pyarrow as pa
from dbaccess.exceptions import TypeConversionError
from psycopg.postgres import types as pg_types
from pymysql.constants import FIELD_TYPE

logger = logging.getLogger(__name__)


class PortableType(Enum):
    """Engine-neutral SQL types.
    """
    TINYINT = 'tinyint'
    SMALLINT = 'smallint'
    INTEGER = 'integer'
    BIGINT = 'bigint'
    FLOAT = 'float'
    DOUBLE = 'double'
    DECIMAL = 'decimal'
    BIT = 'bit'
    DATE = 'date'
    TIME = 'time'
    DATETIME = 'datetime'
    VARCHAR = 'varchar'
    BLOB = 'blob'
    NULL = 'null'
    OTHER = 'other'


# Native type resolution - database type codes -> PortableType

mysql_types: dict[int, PortableType] = {
    FIELD_TYPE.TINY: PortableType.TINYINT,
    FIELD_TYPE.SHORT: PortableType.SMALLINT,
    FIELD_TYPE.YEAR: PortableType.SMALLINT,
    FIELD_TYPE.LONG: PortableType.INTEGER,
    FIELD_TYPE.INT24: PortableType.INTEGER,
    FIELD_TYPE.LONGLONG: PortableType.BIGINT,
    FIELD_TYPE.FLOAT: PortableType.FLOAT,
    FIELD_TYPE.DOUBLE: PortableType.DOUBLE,
    FIELD_TYPE.DECIMAL: PortableType.DECIMAL,
    FIELD_TYPE.NEWDECIMAL: PortableType.DECIMAL,
    FIELD_TYPE.NULL: PortableType.NULL,
    FIELD_TYPE.TIMESTAMP: PortableType.DATETIME,
    FIELD_TYPE.DATETIME: PortableType.DATETIME,
    FIELD_TYPE.DATE: PortableType.DATE,
    FIELD_TYPE.NEWDATE: PortableType.DATE,
    FIELD_TYPE.TIME: PortableType.TIME,
    FIELD_TYPE.VARCHAR: PortableType.VARCHAR,
    FIELD_TYPE.VAR_STRING: PortableType.VARCHAR,
    FIELD_TYPE.STRING: PortableType.VARCHAR,
    FIELD_TYPE.BIT: PortableType.BIT,
    FIELD_TYPE.TINY_BLOB: PortableType.BLOB,
    FIELD_TYPE.MEDIUM_BLOB: PortableType.BLOB,
    FIELD_TYPE.LONG_BLOB: PortableType.BLOB,
    FIELD_TYPE.BLOB: PortableType.BLOB,
    FIELD_TYPE.ENUM: PortableType.OTHER,
    FIELD_TYPE.SET: PortableType.OTHER,
    FIELD_TYPE.GEOMETRY: PortableType.OTHER,
    FIELD_TYPE.JSON: PortableType.OTHER,
}

_oid = lambda x: pg_types.get(x).oid

postgres_types: dict[int, PortableType] = {
    _oid('"char"'): PortableType.TINYINT,
    _oid('int2'): PortableType.SMALLINT,
    _oid('int4'): PortableType.INTEGER,
    _oid('oid'): PortableType.BIGINT,
    _oid('int8'): PortableType.BIGINT,
    _oid('float4'): PortableType.FLOAT,
    _oid('float8'): PortableType.DOUBLE,
    _oid('numeric'): PortableType.DECIMAL,
    _oid('bool'): PortableType.BIT,
    _oid('bit'): PortableType.BIT,
    _oid('varbit'): PortableType.BIT,
    _oid('date'): PortableType.DATE,
    _oid('time'): PortableType.TIME,
    _oid('timetz'): PortableType.TIME,
    _oid('timestamp'): PortableType.DATETIME,
    _oid('timestamptz'): PortableType.DATETIME,
    _oid('bpchar'): PortableType.VARCHAR,
    _oid('varchar'): PortableType.VARCHAR,
    _oid('text'): PortableType.VARCHAR,
    _oid('name'): PortableType.VARCHAR,
    _oid('bytea'): PortableType.BLOB,
}

# SQLite reports storage classes per value; declared type names share the table
sqlite_types: dict[str, PortableType] = {
    'NULL': PortableType.NULL,
    'INTEGER': PortableType.BIGINT,
    'INT': PortableType.INTEGER,
    'TINYINT': PortableType.TINYINT,
    'SMALLINT': PortableType.SMALLINT,
    'BIGINT': PortableType.BIGINT,
    'REAL': PortableType.DOUBLE,
    'FLOAT': PortableType.FLOAT,
    'DOUBLE': PortableType.DOUBLE,
    'NUMERIC': PortableType.DECIMAL,
    'DECIMAL': PortableType.DECIMAL,
    'BOOLEAN': PortableType.BIT,
    'TEXT': PortableType.VARCHAR,
    'VARCHAR': PortableType.VARCHAR,
    'CHAR': PortableType.VARCHAR,
    'BLOB': PortableType.BLOB,
    'DATE': PortableType.DATE,
    'TIME': PortableType.TIME,
    'DATETIME': PortableType.DATETIME,
    'TIMESTAMP': PortableType.DATETIME,
}


def _sqlite_affinity(type_name: str) -> PortableType:
    """Apply SQLite's column affinity rules to an unknown declared type."""
    if 'INT' in type_name:
        return PortableType.BIGINT
    if any(s in type_name for s in ('CHAR', 'CLOB', 'TEXT')):
        return PortableType.VARCHAR
    if 'BLOB' in type_name:
        return PortableType.BLOB
    if any(s in type_name for s in ('REAL', 'FLOA', 'DOUB')):
        return PortableType.DOUBLE
    return PortableType.OTHER


def map_native_type(dialect: str, type_code: Any) -> PortableType:
    """Resolve a native column type code to a PortableType.

    Total over its input: unknown dialects, unknown codes and missing codes
    resolve to OTHER.

    Args:
        dialect: Native client dialect ('mysql', 'postgresql', 'sqlite')
        type_code: Type code reported by the native client

    Returns
        PortableType for the code
    """
    if type_code is None:
        return PortableType.OTHER

    if dialect == 'mysql':
        return mysql_types.get(type_code, PortableType.OTHER)
    if dialect == 'postgresql':
        return postgres_types.get(type_code, PortableType.OTHER)
    if dialect == 'sqlite' and isinstance(type_code, str):
        base_type = type_code.split('(')[0].strip().upper()
        if base_type in sqlite_types:
            return sqlite_types[base_type]
        return _sqlite_affinity(base_type)

    return PortableType.OTHER


# Variant - tagged value exchanged with native clients

class ValueKind(Enum):
    """Kinds of value a Variant can hold.
    """
    NULL = 'null'
    BOOL = 'bool'
    INT = 'int'
    FLOAT = 'float'
    DECIMAL = 'decimal'
    STRING = 'string'
    BYTES = 'bytes'
    DATE = 'date'
    TIME = 'time'
    DATETIME = 'datetime'
    OTHER = 'other'


@dataclass(frozen=True, slots=True)
class Variant:
    """A value tagged with its kind.

    Python values are classified once, when they cross the boundary with a
    native client. Coercion dispatches on `kind` only.
    """
    kind: ValueKind
    value: Any = None

    @classmethod
    def null(cls) -> Self:
        return cls(ValueKind.NULL)

    @classmethod
    def of(cls, value: Any) -> Self:
        """Classify a plain Python value.
        """
        if value is None:
            return cls(ValueKind.NULL)
        if isinstance(value, Variant):
            return value
        if isinstance(value, bool):
            return cls(ValueKind.BOOL, value)
        if isinstance(value, int):
            return cls(ValueKind.INT, value)
        if isinstance(value, float):
            return cls(ValueKind.FLOAT, value)
        if isinstance(value, decimal.Decimal):
            return cls(ValueKind.DECIMAL, value)
        if isinstance(value, str):
            return cls(ValueKind.STRING, value)
        if isinstance(value, bytes | bytearray | memoryview):
            return cls(ValueKind.BYTES, bytes(value))
        if isinstance(value, datetime.datetime):
            return cls(ValueKind.DATETIME, value)
        if isinstance(value, datetime.date):
            return cls(ValueKind.DATE, value)
        if isinstance(value, datetime.time):
            return cls(ValueKind.TIME, value)
        return cls(ValueKind.OTHER, value)

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def text(self) -> str:
        """String form of the payload, used in error messages."""
        if self.kind is ValueKind.BYTES:
            return self.value.decode('utf-8', errors='replace')
        return str(self.value)


# Coercion - Variant -> getter target type

class TargetKind(Enum):
    """Types a result set getter can ask for.
    """
    BOOLEAN = 'boolean'
    BYTE = 'byte'
    UBYTE = 'ubyte'
    SHORT = 'short'
    USHORT = 'ushort'
    INT = 'int'
    UINT = 'uint'
    LONG = 'long'
    ULONG = 'ulong'
    FLOAT = 'float'
    DOUBLE = 'double'
    DECIMAL = 'decimal'
    STRING = 'string'
    BYTES = 'bytes'
    DATE = 'date'
    TIME = 'time'
    DATETIME = 'datetime'


INTEGER_RANGES: dict[TargetKind, tuple[int, int]] = {
    TargetKind.BYTE: (-2**7, 2**7 - 1),
    TargetKind.UBYTE: (0, 2**8 - 1),
    TargetKind.SHORT: (-2**15, 2**15 - 1),
    TargetKind.USHORT: (0, 2**16 - 1),
    TargetKind.INT: (-2**31, 2**31 - 1),
    TargetKind.UINT: (0, 2**32 - 1),
    TargetKind.LONG: (-2**63, 2**63 - 1),
    TargetKind.ULONG: (0, 2**64 - 1),
}

FLOAT32_MAX = 3.4028234663852886e38

_INCOMPATIBLE = object()

_isoparser = dateutil.parser.isoparser()


def default_value(target: TargetKind) -> Any:
    """Value a getter returns when the column is NULL.
    """
    if target in INTEGER_RANGES:
        return 0
    if target in {TargetKind.FLOAT, TargetKind.DOUBLE}:
        return 0.0
    if target is TargetKind.BOOLEAN:
        return False
    if target is TargetKind.DECIMAL:
        return decimal.Decimal(0)
    if target is TargetKind.DATE:
        return datetime.date.min
    if target is TargetKind.TIME:
        return datetime.time()
    if target is TargetKind.DATETIME:
        return datetime.datetime.min
    return None


def _to_integer(variant: Variant, target: TargetKind) -> Any:
    if variant.kind in {ValueKind.INT, ValueKind.BOOL}:
        value = int(variant.value)
    elif (variant.kind is ValueKind.DECIMAL and variant.value.is_finite()
          and variant.value == variant.value.to_integral_value()):
        value = int(variant.value)
    else:
        return _INCOMPATIBLE
    low, high = INTEGER_RANGES[target]
    if not low <= value <= high:
        return _INCOMPATIBLE
    return value


def _to_boolean(variant: Variant) -> Any:
    if variant.kind is ValueKind.BOOL:
        return variant.value
    if variant.kind is ValueKind.INT:
        return variant.value != 0
    return _INCOMPATIBLE


def _to_float(variant: Variant, target: TargetKind) -> Any:
    if variant.kind not in {ValueKind.INT, ValueKind.FLOAT, ValueKind.DECIMAL, ValueKind.BOOL}:
        return _INCOMPATIBLE
    value = float(variant.value)
    if target is TargetKind.FLOAT and math.isfinite(value) and abs(value) > FLOAT32_MAX:
        return _INCOMPATIBLE
    return value


def _to_decimal(variant: Variant) -> Any:
    if variant.kind in {ValueKind.INT, ValueKind.DECIMAL, ValueKind.BOOL}:
        return decimal.Decimal(int(variant.value) if variant.kind is ValueKind.BOOL else variant.value)
    if variant.kind in {ValueKind.FLOAT, ValueKind.STRING}:
        try:
            return decimal.Decimal(str(variant.value).strip())
        except decimal.InvalidOperation:
            return _INCOMPATIBLE
    return _INCOMPATIBLE


def _to_string(variant: Variant) -> str:
    if variant.kind is ValueKind.BYTES:
        # blobs are assumed to hold UTF-8 text
        return variant.value.decode('utf-8', errors='replace')
    if variant.kind is ValueKind.DATETIME:
        return variant.value.isoformat(sep=' ')
    if variant.kind in {ValueKind.DATE, ValueKind.TIME}:
        return variant.value.isoformat()
    return str(variant.value)


def _to_bytes(variant: Variant) -> Any:
    if variant.kind is ValueKind.BYTES:
        return variant.value
    if variant.kind is ValueKind.STRING:
        return variant.value.encode('utf-8')
    return _INCOMPATIBLE


def _to_date(variant: Variant) -> Any:
    if variant.kind is ValueKind.DATE:
        return variant.value
    if variant.kind is ValueKind.DATETIME:
        return variant.value.date()
    if variant.kind is ValueKind.STRING:
        try:
            return dateutil.parser.isoparse(variant.value.strip()).date()
        except ValueError:
            return _INCOMPATIBLE
    return _INCOMPATIBLE


def _to_time(variant: Variant) -> Any:
    if variant.kind is ValueKind.TIME:
        return variant.value
    if variant.kind is ValueKind.DATETIME:
        return variant.value.time()
    if variant.kind is ValueKind.STRING:
        text = variant.value.strip()
        try:
            # a leading YYYY- means the string carries a date part
            if len(text) >= 10 and text[4] == '-':
                return dateutil.parser.isoparse(text).time()
            return _isoparser.parse_isotime(text)
        except ValueError:
            return _INCOMPATIBLE
    return _INCOMPATIBLE


def _to_datetime(variant: Variant) -> Any:
    if variant.kind is ValueKind.DATETIME:
        return variant.value
    if variant.kind is ValueKind.DATE:
        return datetime.datetime.combine(variant.value, datetime.time())
    if variant.kind is ValueKind.STRING:
        try:
            return dateutil.parser.isoparse(variant.value.strip())
        except ValueError:
            return _INCOMPATIBLE
    return _INCOMPATIBLE


def coerce(variant: Variant, target: TargetKind, column_index: int) -> tuple[Any, bool]:
    """Convert a column value to the requested target type.

    Args:
        variant: Value read from the current row
        target: Type requested by the getter
        column_index: 1-based column index, used in error messages

    Returns
        Tuple of (converted value, was_null). A NULL column yields the
        target's default value and was_null=True.

    Raises
        TypeConversionError: No conversion path exists for the value
    """
    if variant.kind is ValueKind.NULL:
        return default_value(target), True

    if target in INTEGER_RANGES:
        value = _to_integer(variant, target)
    elif target is TargetKind.BOOLEAN:
        value = _to_boolean(variant)
    elif target in {TargetKind.FLOAT, TargetKind.DOUBLE}:
        value = _to_float(variant, target)
    elif target is TargetKind.DECIMAL:
        value = _to_decimal(variant)
    elif target is TargetKind.STRING:
        value = _to_string(variant)
    elif target is TargetKind.BYTES:
        value = _to_bytes(variant)
    elif target is TargetKind.DATE:
        value = _to_date(variant)
    elif target is TargetKind.TIME:
        value = _to_time(variant)
    elif target is TargetKind.DATETIME:
        value = _to_datetime(variant)
    else:
        raise ValueError(f'Unhandled target kind: {target}')

    if value is _INCOMPATIBLE:
        raise TypeConversionError(
            f"Cannot convert field {column_index}: '{variant.text()}' to {target.value}")
    return value, False


# Type Converter - Handles Python -> Database value conversion

class TypeConverter:
    """Normalize NumPy, pandas and PyArrow values into plain Python values.

    NaN, NaT and pandas NA become None so they bind as SQL NULL.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a database-compatible format."""
        if value is None:
            return None

        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None

        if isinstance(value, pa.Scalar):
            return TypeConverter.convert_value(value.as_py())

        if isinstance(value, np.datetime64):
            if np.isnat(value):
                return None
            return pd.Timestamp(value).to_pydatetime()

        if isinstance(value, np.generic):
            return TypeConverter.convert_value(value.item())

        if value is pd.NaT or value is pd.NA:
            return None

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        return value


# SQLite converters - Database value converters
#
# SQLite accepts any text in a DATE/TIME column; text that is not ISO 8601
# is returned as the decoded string so coercion reports it per getter.

def _parse_or_text(val: bytes, parse: Callable[[str], Any]) -> Any:
    text = val.decode(errors='replace')
    try:
        return parse(text)
    except ValueError:
        return text


def convert_date(val: bytes) -> datetime.date | str:
    """Convert ISO 8601 date string to date object."""
    return _parse_or_text(val, lambda s: dateutil.parser.isoparse(s).date())


def convert_datetime(val: bytes) -> datetime.datetime | str:
    """Convert ISO 8601 datetime string to datetime object."""
    return _parse_or_text(val, dateutil.parser.isoparse)


def convert_time(val: bytes) -> datetime.time | str:
    """Convert ISO 8601 time string to time object."""
    return _parse_or_text(val, _isoparser.parse_isotime)
