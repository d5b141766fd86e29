"""Bulk ingestion through columnar buffers.

An :class:`Appender` accepts values row by row with typed ``append_*``
calls, buffers them per column, and on :meth:`Appender.flush` turns each
buffer into a typed Arrow array. The resulting table is registered with the
connection as a temporary view and copied into the target table with a
single ``INSERT INTO ... SELECT``. There is no per-row SQL and no literal
formatting on this path.

Architecture:
    ::

        append_integer(1) append_varchar("JB") ... end_row()
                 │
                 ▼
        column buffers  ──flush()──►  pyarrow.Table  ──register──►  view
                                                                     │
                         INSERT INTO main.t ("c1", ...) SELECT ... FROM view

Sequence defaults are not applied here. Auto-increment primary keys must
be supplied by the caller.

Tags:
    appender, bulk-insert, pyarrow, duckdb, tinyorm
"""

from __future__ import annotations

import math
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import pyarrow as pa

from tinyorm.descriptors import SqlType, TableDescriptor
from tinyorm.errors import DatabaseError, ValidationError
from tinyorm.logging import get_logger

if TYPE_CHECKING:
    from tinyorm.database import Database

logger = get_logger(__name__)

_INT_RANGES: dict[str, tuple[int, int]] = {
    "tinyint": (-(2**7), 2**7 - 1),
    "smallint": (-(2**15), 2**15 - 1),
    "integer": (-(2**31), 2**31 - 1),
    "bigint": (-(2**63), 2**63 - 1),
    "hugeint": (-(2**127), 2**127 - 1),
    "utinyint": (0, 2**8 - 1),
    "usmallint": (0, 2**16 - 1),
    "uinteger": (0, 2**32 - 1),
    "ubigint": (0, 2**64 - 1),
    "uhugeint": (0, 2**128 - 1),
}

_SIGNED = {8: pa.int8(), 16: pa.int16(), 32: pa.int32(), 64: pa.int64()}
_UNSIGNED = {8: pa.uint8(), 16: pa.uint16(), 32: pa.uint32(), 64: pa.uint64()}
_INT_TYPES = frozenset(_SIGNED.values()) | frozenset(_UNSIGNED.values())

# 128-bit integers travel as decimal text; INSERT ... SELECT casts them.
_WIDE_INT = pa.string()


def _quote(name: str) -> str:
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


def _integer_type(types: set[pa.DataType]) -> pa.DataType:
    """Narrowest Arrow integer type holding every kind in ``types``."""
    signed = max((t.bit_width for t in types if pa.types.is_signed_integer(t)), default=0)
    unsigned = max((t.bit_width for t in types if pa.types.is_unsigned_integer(t)), default=0)
    if not signed:
        return _UNSIGNED[unsigned]
    # a signed type holds an unsigned kind only at twice its width
    bits = max(signed, unsigned * 2)
    return _SIGNED.get(bits, _WIDE_INT)


def _common_type(types: set[pa.DataType]) -> pa.DataType:
    if not types:
        return pa.null()
    if len(types) == 1:
        return next(iter(types))
    if types <= _INT_TYPES:
        return _integer_type(types)
    if types <= _INT_TYPES | {pa.float64()}:
        return pa.float64()
    return pa.string()


def _coerce(value: Any, target: pa.DataType) -> Any:
    if value is None:
        return None
    if target == pa.float64():
        return float(value)
    if target == pa.string() and not isinstance(value, str):
        return value.hex() if isinstance(value, bytes) else str(value)
    return value


class Appender:
    """Row-oriented append handle bound to one table."""

    def __init__(self, database: Database, table: str):
        self._database = database
        self._table = table
        columns = database.table_columns(table)
        if not columns:
            raise DatabaseError(f"Table {table} does not exist").with_context(table=table)
        self._columns = [c["column_name"] for c in columns]
        self._values: list[list[Any]] = [[] for _ in self._columns]
        self._types: list[set[pa.DataType]] = [set() for _ in self._columns]
        self._row: list[tuple[Any, pa.DataType | None]] = []
        self._pending = 0
        self._appended = 0
        self._closed = False

    @property
    def table(self) -> str:
        return self._table

    @property
    def columns(self) -> list[str]:
        return list(self._columns)

    @property
    def pending_rows(self) -> int:
        return self._pending

    @property
    def appended_rows(self) -> int:
        return self._appended

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _append(self, value: Any, arrow_type: pa.DataType | None) -> Appender:
        if self._closed:
            raise ValidationError(f"Appender for {self._table} is closed")
        if len(self._row) >= len(self._columns):
            raise ValidationError(
                f"Too many values for {self._table}: it has {len(self._columns)} columns"
            ).with_context(table=self._table)
        self._row.append((value, arrow_type))
        return self

    def _append_int(self, kind: str, value: int, arrow_type: pa.DataType) -> Appender:
        low, high = _INT_RANGES[kind]
        if not low <= int(value) <= high:
            raise ValidationError(
                f"{value} is out of range for {kind.upper()}",
                field=self._current_column(),
                value=value,
            )
        return self._append(int(value), arrow_type)

    def _current_column(self) -> str | None:
        index = len(self._row)
        return self._columns[index] if index < len(self._columns) else None

    def append_null(self) -> Appender:
        return self._append(None, None)

    def append_boolean(self, value: bool) -> Appender:
        return self._append(bool(value), pa.bool_())

    def append_tinyint(self, value: int) -> Appender:
        return self._append_int("tinyint", value, pa.int8())

    def append_smallint(self, value: int) -> Appender:
        return self._append_int("smallint", value, pa.int16())

    def append_integer(self, value: int) -> Appender:
        return self._append_int("integer", value, pa.int32())

    def append_bigint(self, value: int) -> Appender:
        return self._append_int("bigint", value, pa.int64())

    def append_hugeint(self, value: int) -> Appender:
        return self._append_int("hugeint", value, _WIDE_INT)

    def append_utinyint(self, value: int) -> Appender:
        return self._append_int("utinyint", value, pa.uint8())

    def append_usmallint(self, value: int) -> Appender:
        return self._append_int("usmallint", value, pa.uint16())

    def append_uinteger(self, value: int) -> Appender:
        return self._append_int("uinteger", value, pa.uint32())

    def append_ubigint(self, value: int) -> Appender:
        return self._append_int("ubigint", value, pa.uint64())

    def append_uhugeint(self, value: int) -> Appender:
        return self._append_int("uhugeint", value, _WIDE_INT)

    def append_double(self, value: float) -> Appender:
        return self._append(float(value), pa.float64())

    def append_varchar(self, value: str) -> Appender:
        return self._append(str(value), pa.string())

    def append_blob(self, value: bytes | bytearray | memoryview) -> Appender:
        return self._append(bytes(value), pa.binary())

    def end_row(self) -> Appender:
        """Close the current row; it must supply every column."""
        if len(self._row) != len(self._columns):
            raise ValidationError(
                f"Row for {self._table} has {len(self._row)} values, "
                f"expected {len(self._columns)}"
            ).with_context(table=self._table)
        for index, (value, arrow_type) in enumerate(self._row):
            self._values[index].append(value)
            if arrow_type is not None:
                self._types[index].add(arrow_type)
        self._row = []
        self._pending += 1
        return self

    def _build_table(self) -> pa.Table:
        arrays = []
        for column, values, types in zip(self._columns, self._values, self._types, strict=True):
            target = _common_type(types)
            try:
                arrays.append(pa.array([_coerce(v, target) for v in values], type=target))
            except (pa.ArrowException, OverflowError) as e:
                raise ValidationError(
                    f"Cannot buffer column {column} of {self._table} as {target}: {e}",
                    field=column,
                    cause=e,
                ).with_context(table=self._table) from e
        return pa.Table.from_arrays(arrays, names=self._columns)

    def flush(self) -> int:
        """Write buffered rows; returns how many were written."""
        if self._closed:
            raise ValidationError(f"Appender for {self._table} is closed")
        if self._row:
            raise ValidationError(
                f"Cannot flush {self._table} with an unfinished row ({len(self._row)} values)"
            ).with_context(table=self._table)
        if not self._pending:
            return 0

        batch = self._build_table()
        view = f"__tinyorm_append_{uuid.uuid4().hex}"
        columns = ", ".join(_quote(c) for c in self._columns)
        self._database.register(view, batch)
        try:
            self._database.execute(
                f"INSERT INTO {self._table} ({columns}) SELECT {columns} FROM {view}"
            )
        finally:
            self._database.unregister(view)

        written = self._pending
        self._appended += written
        self._reset_buffers()
        logger.debug("appender.flushed", table=self._table, rows=written)
        return written

    def _reset_buffers(self) -> None:
        self._values = [[] for _ in self._columns]
        self._types = [set() for _ in self._columns]
        self._row = []
        self._pending = 0

    def close(self) -> None:
        """Release buffers; rows not yet flushed are discarded."""
        if self._closed:
            return
        if self._pending:
            logger.warning("appender.discarded", table=self._table, rows=self._pending)
        self._reset_buffers()
        self._closed = True

    def __enter__(self) -> Appender:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if exc_type is None:
                self.flush()
        finally:
            self.close()


def _is_whole(value: int | float | Decimal) -> bool:
    if isinstance(value, int):
        return True
    if isinstance(value, Decimal):
        return value.is_finite() and value == value.to_integral_value()
    return math.isfinite(value) and value.is_integer()


_INTEGER_WRITERS: dict[SqlType, str] = {
    SqlType.TINYINT: "append_tinyint",
    SqlType.SMALLINT: "append_smallint",
    SqlType.INTEGER: "append_integer",
    SqlType.BIGINT: "append_bigint",
    SqlType.HUGEINT: "append_hugeint",
    SqlType.UTINYINT: "append_utinyint",
    SqlType.USMALLINT: "append_usmallint",
    SqlType.UINTEGER: "append_uinteger",
    SqlType.UBIGINT: "append_ubigint",
    SqlType.UHUGEINT: "append_uhugeint",
}


def append_value(appender: Appender, value: Any, category: SqlType | None = None) -> None:
    """Append ``value`` using the write that matches ``category``."""
    if value is None:
        appender.append_null()
        return
    if isinstance(value, bool):
        appender.append_boolean(value)
        return
    if isinstance(value, (int, float, Decimal)):
        if category in (SqlType.DOUBLE, SqlType.DECIMAL):
            appender.append_double(float(value))
        elif category in _INTEGER_WRITERS:
            getattr(appender, _INTEGER_WRITERS[category])(int(value))
        elif _is_whole(value):
            whole = int(value)
            if _INT_RANGES["integer"][0] <= whole <= _INT_RANGES["integer"][1]:
                appender.append_integer(whole)
            else:
                appender.append_bigint(whole)
        else:
            appender.append_double(float(value))
        return
    if isinstance(value, (bytes, bytearray, memoryview)):
        appender.append_blob(value)
        return
    appender.append_varchar(str(value))


def append_record(appender: Appender, record: Any, descriptor: TableDescriptor) -> None:
    """Write every field of ``record`` in descriptor order, then end the row."""
    for col in descriptor.columns:
        append_value(appender, getattr(record, col.name, None), col.category)
    appender.end_row()


__all__ = ["Appender", "append_value", "append_record"]
