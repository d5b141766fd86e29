"""DDL synthesis: CREATE/DROP for tables and sequences.

Column clauses are emitted in a fixed order: ``name type``, ``PRIMARY KEY``,
the DEFAULT clause, ``NOT NULL``, ``UNIQUE``. ``CHECK`` expressions are
collected and appended after all columns as table-level constraints.

    >>> create_sequence_statement("seq_subjects_id")
    'CREATE SEQUENCE IF NOT EXISTS seq_subjects_id START 1;'
"""

from __future__ import annotations

from tinyorm.descriptors import ColumnDescriptor, TableDescriptor
from tinyorm.errors import PrimaryKeyError
from tinyorm.literals import format_value


def _column_clause(col: ColumnDescriptor, sequences: dict[str, str]) -> str:
    parts = [col.name, col.sql_type]
    if col.primary_key:
        parts.append("PRIMARY KEY")
    if col.auto_increment and col.name in sequences:
        parts.append(f"DEFAULT nextval('{sequences[col.name]}')")
    elif col.has_default:
        parts.append(f"DEFAULT {format_value(col.default)}")
    if col.not_null:
        parts.append("NOT NULL")
    if col.unique:
        parts.append("UNIQUE")
    return " ".join(parts)


def create_table_statement(descriptor: TableDescriptor) -> str:
    """Render ``CREATE TABLE IF NOT EXISTS`` for ``descriptor``.

    Raises:
        PrimaryKeyError: more than one column is declared as primary key.
    """
    sequences = dict(descriptor.sequences)
    clauses = [_column_clause(col, sequences) for col in descriptor.columns]
    clauses.extend(f"CHECK ({col.check})" for col in descriptor.columns if col.check)
    statement = (
        f"CREATE TABLE IF NOT EXISTS {descriptor.qualified_name} ({', '.join(clauses)})"
    )

    primary_keys = descriptor.primary_keys
    if len(primary_keys) > 1:
        raise PrimaryKeyError(
            f"Multiple primary keys are not supported (table {descriptor.table_name}: "
            f"{', '.join(c.name for c in primary_keys)})"
        ).with_context(table=descriptor.table_name)
    return statement


def create_sequence_statement(name: str) -> str:
    return f"CREATE SEQUENCE IF NOT EXISTS {name} START 1;"


def drop_sequence_statement(name: str) -> str:
    return f"DROP SEQUENCE IF EXISTS {name};"


def drop_table_statement(table: str | TableDescriptor) -> str:
    if isinstance(table, TableDescriptor):
        qualified = table.qualified_name
    else:
        qualified = table if "." in table else f"main.{table}"
    return f"DROP TABLE IF EXISTS {qualified}"


def insert_into_statement(descriptor: TableDescriptor, columns: list[str] | None = None) -> str:
    """``INSERT INTO main.<table> (cols) VALUES `` prefix for multi-row inserts."""
    names = columns if columns is not None else list(descriptor.column_names)
    return f"INSERT INTO {descriptor.qualified_name} ({', '.join(names)}) VALUES "


__all__ = [
    "create_table_statement",
    "create_sequence_statement",
    "drop_sequence_statement",
    "drop_table_statement",
    "insert_into_statement",
]
