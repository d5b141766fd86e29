"""DML synthesis: INSERT statements and record/row conversion.

Single-record saves use :func:`insert_statement`, which binds values as
``?`` parameters. Multi-row inserts inline values through
:mod:`tinyorm.literals`.

Which columns an INSERT names depends on the record:

- auto-increment primary keys are never written;
- other auto-increment columns, and columns with a declared DEFAULT, are
  left out while the record holds ``None`` so the engine fills them;
- a ``NOT NULL`` column holding ``None`` is rejected before any SQL runs.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from tinyorm.ddl import insert_into_statement
from tinyorm.descriptors import ColumnDescriptor, TableDescriptor
from tinyorm.errors import ValidationError
from tinyorm.literals import format_value


def insertable_columns(record: Any, descriptor: TableDescriptor) -> list[ColumnDescriptor]:
    """Columns an INSERT of ``record`` should name, in declaration order.

    Raises:
        ValidationError: a ``NOT NULL`` column is ``None``, or nothing is insertable.
    """
    columns = []
    for col in descriptor.columns:
        if col.is_generated_key:
            continue
        value = getattr(record, col.name, None)
        if value is None:
            if col.auto_increment or col.has_default:
                continue
            if col.not_null:
                raise ValidationError(
                    f"Column {col.name} of {descriptor.table_name} is NOT NULL but the value is None",
                    field=col.name,
                    constraint="NOT NULL",
                ).with_context(table=descriptor.table_name, entity=descriptor.entity_name)
        columns.append(col)

    if not columns:
        raise ValidationError(
            f"No insertable fields for {descriptor.entity_name}"
        ).with_context(table=descriptor.table_name, entity=descriptor.entity_name)
    return columns


def insert_values(record: Any, descriptor: TableDescriptor) -> str:
    """Inline form ``(c1, c2) VALUES (v1, v2)``."""
    columns = insertable_columns(record, descriptor)
    names = ", ".join(c.name for c in columns)
    values = ", ".join(format_value(getattr(record, c.name, None)) for c in columns)
    return f"({names}) VALUES ({values})"


def insert_statement(record: Any, descriptor: TableDescriptor) -> tuple[str, list[Any]]:
    """Parameterized single-row INSERT: ``(sql, params)``."""
    columns = insertable_columns(record, descriptor)
    names = ", ".join(c.name for c in columns)
    placeholders = ", ".join("?" for _ in columns)
    params = [getattr(record, c.name, None) for c in columns]
    sql = f"INSERT INTO {descriptor.qualified_name} ({names}) VALUES ({placeholders})"
    return sql, params


def bulk_insert_statements(records: Iterable[Any], descriptor: TableDescriptor) -> list[str]:
    """Multi-row inline INSERTs, one per distinct insertable column set.

    Groups keep the order in which their first record appears; rows keep
    their relative order within a group.
    """
    groups: dict[tuple[str, ...], list[str]] = {}
    for record in records:
        columns = insertable_columns(record, descriptor)
        key = tuple(c.name for c in columns)
        row = ", ".join(format_value(getattr(record, name, None)) for name in key)
        groups.setdefault(key, []).append(f"({row})")

    return [
        insert_into_statement(descriptor, list(names)) + ", ".join(rows)
        for names, rows in groups.items()
    ]


def record_to_row(record: Any, descriptor: TableDescriptor) -> list[Any]:
    """Field values in descriptor (declaration) order."""
    return [getattr(record, name, None) for name in descriptor.column_names]


def row_to_record(row: Mapping[str, Any] | Sequence[Any], descriptor: TableDescriptor) -> Any:
    """Build an entity instance from a result row.

    Mapping rows may carry a subset of columns (projections); missing fields
    take their dataclass default, or ``None`` when they have none.
    """
    if descriptor.entity is None:
        return dict(row) if isinstance(row, Mapping) else row
    if not isinstance(row, Mapping):
        row = dict(zip(descriptor.column_names, row))

    kwargs: dict[str, Any] = {}
    for f in dataclasses.fields(descriptor.entity):
        if not f.init:
            continue
        if f.name in row:
            kwargs[f.name] = row[f.name]
        elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            kwargs[f.name] = None
    return descriptor.entity(**kwargs)


__all__ = [
    "insertable_columns",
    "insert_values",
    "insert_statement",
    "bulk_insert_statements",
    "record_to_row",
    "row_to_record",
]
