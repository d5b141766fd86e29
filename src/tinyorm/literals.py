"""Typed SQL literal formatting.

One function per value kind, plus :func:`format_value` which dispatches on
the runtime type. These are used wherever a value must be inlined into SQL
text (multi-row INSERT, DEFAULT clauses, migration bookkeeping, secrets);
single-record writes prefer parameterized execution instead.

    >>> format_value(None)
    'NULL'
    >>> format_value(True)
    'TRUE'
    >>> format_value(42)
    '42'
    >>> format_value("O'Brien")
    "'O''Brien'"
"""

from __future__ import annotations

import datetime
import math
from decimal import Decimal
from typing import Any

NULL = "NULL"


def null_literal() -> str:
    return NULL


def bool_literal(value: bool) -> str:
    return "TRUE" if value else "FALSE"


def number_literal(value: int | float | Decimal) -> str:
    if isinstance(value, float) and not math.isfinite(value):
        return f"'{value}'::DOUBLE"
    return str(value)


def string_literal(value: str) -> str:
    """Single-quote ``value``, doubling embedded quotes."""
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def bytes_literal(value: bytes | bytearray | memoryview) -> str:
    """Blob literal using DuckDB's ``\\xNN`` escapes."""
    hex_escaped = "".join(f"\\x{b:02X}" for b in bytes(value))
    return f"'{hex_escaped}'::BLOB"


def temporal_literal(value: datetime.date | datetime.time) -> str:
    return string_literal(value.isoformat())


def format_value(value: Any) -> str:
    """Render ``value`` as an inline SQL literal by its runtime kind."""
    if value is None:
        return null_literal()
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return bool_literal(value)
    if isinstance(value, (int, float, Decimal)):
        return number_literal(value)
    if isinstance(value, str):
        return string_literal(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes_literal(value)
    if isinstance(value, (datetime.date, datetime.time)):
        return temporal_literal(value)
    return string_literal(str(value))


__all__ = [
    "NULL",
    "null_literal",
    "bool_literal",
    "number_literal",
    "string_literal",
    "bytes_literal",
    "temporal_literal",
    "format_value",
]
