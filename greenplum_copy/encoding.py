"""Row encoding for the COPY text format.

Every column gets a converter resolved once from its Spark data type. Values
are rendered to text, escaped for the COPY text format and joined with the
single-character delimiter. A null value becomes the literal token ``NULL``,
which means a string column holding ``"NULL"`` is loaded as null as well; the
token is kept for compatibility with the ``NULL AS 'NULL'`` COPY clause.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from enum import Enum, auto
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Sequence

from pyspark.sql.types import (
    BinaryType,
    BooleanType,
    ByteType,
    DataType,
    DateType,
    DecimalType,
    DoubleType,
    FloatType,
    IntegerType,
    LongType,
    ShortType,
    StringType,
    StructType,
    TimestampType,
    UserDefinedType,
)

NULL_TOKEN = "NULL"

Converter = Callable[[Any], str]


class ValueKind(Enum):
    STRING = auto()
    BOOLEAN = auto()
    BYTE = auto()
    SHORT = auto()
    INTEGER = auto()
    LONG = auto()
    FLOAT = auto()
    DOUBLE = auto()
    DECIMAL = auto()
    DATE = auto()
    TIMESTAMP = auto()
    BINARY = auto()
    DEFAULT = auto()


_KIND_BY_TYPE = (
    (StringType, ValueKind.STRING),
    (BooleanType, ValueKind.BOOLEAN),
    (ByteType, ValueKind.BYTE),
    (ShortType, ValueKind.SHORT),
    (IntegerType, ValueKind.INTEGER),
    (LongType, ValueKind.LONG),
    (FloatType, ValueKind.FLOAT),
    (DoubleType, ValueKind.DOUBLE),
    (DecimalType, ValueKind.DECIMAL),
    (DateType, ValueKind.DATE),
    (TimestampType, ValueKind.TIMESTAMP),
    (BinaryType, ValueKind.BINARY),
)


def value_kind(data_type: DataType) -> ValueKind:
    if isinstance(data_type, UserDefinedType):
        return value_kind(data_type.sqlType())
    for type_cls, kind in _KIND_BY_TYPE:
        if isinstance(data_type, type_cls):
            return kind
    return ValueKind.DEFAULT


def _float_text(value: Any) -> str:
    number = float(value)
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "Infinity" if number > 0 else "-Infinity"
    return repr(number)


def _date_text(value: Any) -> str:
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _timestamp_text(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return str(value)


def _binary_text(value: Any) -> str:
    return bytes(value).decode("utf-8", errors="replace")


_CONVERTERS: Dict[ValueKind, Converter] = {
    ValueKind.STRING: str,
    ValueKind.BOOLEAN: lambda v: "true" if v else "false",
    ValueKind.BYTE: lambda v: str(int(v)),
    ValueKind.SHORT: lambda v: str(int(v)),
    ValueKind.INTEGER: lambda v: str(int(v)),
    ValueKind.LONG: lambda v: str(int(v)),
    ValueKind.FLOAT: _float_text,
    ValueKind.DOUBLE: _float_text,
    ValueKind.DECIMAL: str,
    ValueKind.DATE: _date_text,
    ValueKind.TIMESTAMP: _timestamp_text,
    ValueKind.BINARY: _binary_text,
    ValueKind.DEFAULT: str,
}


def make_converter(data_type: DataType) -> Converter:
    return _CONVERTERS[value_kind(data_type)]


def make_converters(schema: StructType) -> List[Converter]:
    return [make_converter(f.dataType) for f in schema.fields]


@lru_cache(maxsize=16)
def _escape_table(delimiter: str) -> Dict[int, Optional[str]]:
    return {
        ord("\\"): "\\\\",
        ord("\n"): "\\n",
        ord("\r"): "\\r",
        ord(delimiter): "\\" + delimiter,
        0: None,
    }


def convert_value(text: str, delimiter: str) -> str:
    return text.translate(_escape_table(delimiter))


def convert_row(
    row: Sequence[Any],
    length: int,
    delimiter: str,
    value_converters: Sequence[Converter],
) -> bytes:
    values = []
    for i in range(length):
        value = row[i]
        if value is None:
            values.append(NULL_TOKEN)
        else:
            values.append(convert_value(value_converters[i](value), delimiter))
    return (delimiter.join(values) + "\n").encode("utf-8")


_UNESCAPES = {"n": "\n", "r": "\r", "\\": "\\"}


def decode_line(line: bytes, delimiter: str) -> List[Optional[str]]:
    """Split one encoded line back into field values (`None` for the null token)."""
    text = line.decode("utf-8")
    if text.endswith("\n"):
        text = text[:-1]
    fields: List[Optional[str]] = []
    current: List[str] = []
    escaped = False
    for ch in text:
        if escaped:
            current.append(_UNESCAPES.get(ch, ch))
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == delimiter:
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
    fields.append("".join(current))
    return [None if f == NULL_TOKEN else f for f in fields]
