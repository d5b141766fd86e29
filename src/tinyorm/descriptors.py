"""Entity declaration and the descriptor registry.

Record types are plain dataclasses decorated with :func:`entity`. Column
metadata rides on ``dataclasses.field`` metadata via :func:`column`; fields
declared without it become nullable columns whose SQL type is inferred from
the annotation (``VARCHAR`` when nothing better is known).

Architecture::

    @entity(name="subjects")            build_descriptor()        registry
    class Subject:            ───────►  TableDescriptor  ───────►  {Subject: descriptor}
        id: int | None = column(...)      columns (declaration order)      │
        code: str = column(...)           primary_key / sequences          ▼
                                                                   resolve(Subject)

Descriptors are built and validated once, when the class is decorated. The
only later change is attaching sequence bindings when the table is created,
which replaces the cached descriptor with a new frozen instance.

Usage:
    >>> @entity(name="subjects")
    ... class Subject:
    ...     id: int | None = column("INTEGER", primary_key=True, auto_increment=True)
    ...     code: str = column("VARCHAR", not_null=True, unique=True)
    >>> resolve(Subject).column_names
    ('id', 'code')

Tags:
    descriptor, registry, metadata, dataclass, entity
"""

from __future__ import annotations

import dataclasses
import datetime
import types
import typing
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, TypeVar

from tinyorm.errors import ConfigurationError, PrimaryKeyError

T = TypeVar("T")

COLUMN_METADATA_KEY = "tinyorm"
DEFAULT_SQL_TYPE = "VARCHAR"
DEFAULT_SCHEMA = "main"


class _NoDefault:
    """Sentinel: no SQL DEFAULT declared."""

    _instance: _NoDefault | None = None

    def __new__(cls) -> _NoDefault:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_DEFAULT"

    def __bool__(self) -> bool:
        return False


NO_DEFAULT: Any = _NoDefault()


# =========================================================================
# SQL type categories
# =========================================================================


class SqlType(str, Enum):
    """Closed set of type categories the ORM distinguishes.

    Resolved once per column from its declared type string; appender writes
    and literal handling switch on the category instead of re-parsing.
    """

    TINYINT = "TINYINT"
    SMALLINT = "SMALLINT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    UTINYINT = "UTINYINT"
    USMALLINT = "USMALLINT"
    UINTEGER = "UINTEGER"
    UBIGINT = "UBIGINT"
    HUGEINT = "HUGEINT"
    UHUGEINT = "UHUGEINT"
    DOUBLE = "DOUBLE"
    DECIMAL = "DECIMAL"
    BOOLEAN = "BOOLEAN"
    VARCHAR = "VARCHAR"
    BLOB = "BLOB"
    TEMPORAL = "TEMPORAL"
    OTHER = "OTHER"

    @property
    def is_integer(self) -> bool:
        return self in _INTEGER_TYPES

    @property
    def is_floating(self) -> bool:
        return self in (SqlType.DOUBLE, SqlType.DECIMAL)

    @property
    def is_numeric(self) -> bool:
        return self.is_integer or self.is_floating

    @classmethod
    def from_sql(cls, sql_type: str) -> SqlType:
        """Map a declared type string (``'DECIMAL(10, 2)'``) to its category."""
        normalized = sql_type.strip().upper()
        if not normalized or normalized.endswith("]"):
            return cls.OTHER
        base = normalized.split("(", 1)[0].split()[0]
        return _TYPE_NAMES.get(base, cls.OTHER)


_INTEGER_TYPES = frozenset(
    {
        SqlType.TINYINT,
        SqlType.SMALLINT,
        SqlType.INTEGER,
        SqlType.BIGINT,
        SqlType.UTINYINT,
        SqlType.USMALLINT,
        SqlType.UINTEGER,
        SqlType.UBIGINT,
        SqlType.HUGEINT,
        SqlType.UHUGEINT,
    }
)

_TYPE_NAMES: dict[str, SqlType] = {
    "TINYINT": SqlType.TINYINT,
    "INT1": SqlType.TINYINT,
    "UTINYINT": SqlType.UTINYINT,
    "SMALLINT": SqlType.SMALLINT,
    "INT2": SqlType.SMALLINT,
    "SHORT": SqlType.SMALLINT,
    "USMALLINT": SqlType.USMALLINT,
    "INTEGER": SqlType.INTEGER,
    "INT": SqlType.INTEGER,
    "INT4": SqlType.INTEGER,
    "SIGNED": SqlType.INTEGER,
    "UINTEGER": SqlType.UINTEGER,
    "BIGINT": SqlType.BIGINT,
    "INT8": SqlType.BIGINT,
    "LONG": SqlType.BIGINT,
    "UBIGINT": SqlType.UBIGINT,
    "HUGEINT": SqlType.HUGEINT,
    "INT128": SqlType.HUGEINT,
    "UHUGEINT": SqlType.UHUGEINT,
    "DOUBLE": SqlType.DOUBLE,
    "FLOAT": SqlType.DOUBLE,
    "FLOAT4": SqlType.DOUBLE,
    "FLOAT8": SqlType.DOUBLE,
    "REAL": SqlType.DOUBLE,
    "DECIMAL": SqlType.DECIMAL,
    "NUMERIC": SqlType.DECIMAL,
    "BOOLEAN": SqlType.BOOLEAN,
    "BOOL": SqlType.BOOLEAN,
    "LOGICAL": SqlType.BOOLEAN,
    "VARCHAR": SqlType.VARCHAR,
    "TEXT": SqlType.VARCHAR,
    "STRING": SqlType.VARCHAR,
    "CHAR": SqlType.VARCHAR,
    "BPCHAR": SqlType.VARCHAR,
    "BLOB": SqlType.BLOB,
    "BYTEA": SqlType.BLOB,
    "BINARY": SqlType.BLOB,
    "VARBINARY": SqlType.BLOB,
    "DATE": SqlType.TEMPORAL,
    "TIME": SqlType.TEMPORAL,
    "TIMESTAMP": SqlType.TEMPORAL,
    "TIMESTAMPTZ": SqlType.TEMPORAL,
    "DATETIME": SqlType.TEMPORAL,
}

# Annotation → SQL type for fields declared without an explicit type.
TYPE_ANNOTATION_MAP: dict[type, str] = {
    bool: "BOOLEAN",
    int: "BIGINT",
    float: "DOUBLE",
    Decimal: "DECIMAL(18, 3)",
    str: "VARCHAR",
    bytes: "BLOB",
    datetime.datetime: "TIMESTAMP",
    datetime.date: "DATE",
    datetime.time: "TIME",
    uuid.UUID: "UUID",
}


# =========================================================================
# Column / table descriptors
# =========================================================================


@dataclass(frozen=True)
class ColumnOptions:
    """Options captured by :func:`column` and stored in field metadata."""

    sql_type: str | None = None
    primary_key: bool = False
    unique: bool = False
    not_null: bool = False
    auto_increment: bool = False
    default: Any = NO_DEFAULT
    check: str | None = None


@dataclass(frozen=True)
class ColumnDescriptor:
    """Resolved metadata for one column."""

    name: str
    sql_type: str = DEFAULT_SQL_TYPE
    category: SqlType = SqlType.VARCHAR
    primary_key: bool = False
    unique: bool = False
    not_null: bool = False
    auto_increment: bool = False
    default: Any = NO_DEFAULT
    check: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT

    @property
    def is_generated_key(self) -> bool:
        """Auto-increment primary key: never written by INSERT."""
        return self.primary_key and self.auto_increment


@dataclass(frozen=True)
class TableDescriptor:
    """Resolved, immutable metadata for a declared record type."""

    table_name: str
    columns: tuple[ColumnDescriptor, ...]
    entity: type | None = None
    schema: str = DEFAULT_SCHEMA
    sequences: Mapping[str, str] = field(default_factory=dict)

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.table_name}"

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)

    @property
    def primary_keys(self) -> tuple[ColumnDescriptor, ...]:
        return tuple(c for c in self.columns if c.primary_key)

    @property
    def primary_key(self) -> ColumnDescriptor | None:
        """The primary-key column, or ``None`` unless exactly one is declared."""
        keys = self.primary_keys
        return keys[0] if len(keys) == 1 else None

    @property
    def auto_increment_columns(self) -> tuple[ColumnDescriptor, ...]:
        return tuple(c for c in self.columns if c.auto_increment)

    @property
    def entity_name(self) -> str:
        return self.entity.__name__ if self.entity is not None else self.table_name

    def column(self, name: str) -> ColumnDescriptor:
        for col in self.columns:
            if col.name == name:
                return col
        raise ConfigurationError(
            f"Table {self.table_name} has no column {name!r}"
        ).with_context(table=self.table_name)

    def sequence_names(self) -> dict[str, str]:
        """Sequence name per auto-increment column (``seq_<table>_<column>``)."""
        return {
            c.name: f"seq_{self.table_name}_{c.name}" for c in self.auto_increment_columns
        }

    def bind_sequences(self, sequences: Mapping[str, str]) -> TableDescriptor:
        """Return a copy with sequence bindings attached."""
        return dataclasses.replace(self, sequences=dict(sequences))

    def require_primary_key(self) -> ColumnDescriptor:
        keys = self.primary_keys
        if len(keys) != 1:
            raise PrimaryKeyError(
                f"Table {self.table_name} declares {len(keys)} primary keys; exactly one is required"
            ).with_context(table=self.table_name)
        return keys[0]

    def validate(self) -> None:
        """Check invariants: unique column names, at most one primary key."""
        seen: set[str] = set()
        for col in self.columns:
            if col.name in seen:
                raise ConfigurationError(
                    f"Duplicate column {col.name!r} in table {self.table_name}"
                ).with_context(table=self.table_name)
            seen.add(col.name)
            if not col.sql_type.strip():
                raise ConfigurationError(
                    f"Column {col.name!r} in table {self.table_name} has an empty type"
                ).with_context(table=self.table_name)
        if len(self.primary_keys) > 1:
            raise PrimaryKeyError(
                f"Multiple primary keys are not supported (table {self.table_name})"
            ).with_context(table=self.table_name)


# =========================================================================
# Declaration API
# =========================================================================


def column(
    sql_type: str | None = None,
    *,
    primary_key: bool = False,
    unique: bool = False,
    not_null: bool = False,
    auto_increment: bool = False,
    default: Any = NO_DEFAULT,
    check: str | None = None,
    default_factory: Callable[[], Any] | None = None,
) -> Any:
    """Declare a column on an entity field.

    ``default`` is both the SQL ``DEFAULT`` literal and the field's Python
    default. Auto-increment columns default to ``None`` until saved, as do
    nullable non-key columns; ``NOT NULL`` and key columns stay required.
    """
    options = ColumnOptions(
        sql_type=sql_type,
        primary_key=primary_key,
        unique=unique,
        not_null=not_null,
        auto_increment=auto_increment,
        default=default,
        check=check,
    )
    kwargs: dict[str, Any] = {"metadata": {COLUMN_METADATA_KEY: options}}
    if default_factory is not None:
        kwargs["default_factory"] = default_factory
    elif default is not NO_DEFAULT:
        kwargs["default"] = default
    elif auto_increment or not (not_null or primary_key):
        kwargs["default"] = None
    return field(**kwargs)


def _unwrap_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


_ANNOTATION_NAMES: dict[str, str] = {
    **{t.__name__: sql for t, sql in TYPE_ANNOTATION_MAP.items()},
    **{f"{t.__module__}.{t.__name__}": sql for t, sql in TYPE_ANNOTATION_MAP.items()},
}


def _infer_sql_type(annotation: Any) -> str:
    if isinstance(annotation, str):
        # unresolved postponed annotation, e.g. "int | None"
        names = [p.strip() for p in annotation.split("|") if p.strip() not in ("None", "")]
        if len(names) == 1:
            name = names[0]
            if name.startswith("Optional[") and name.endswith("]"):
                name = name[len("Optional[") : -1].strip()
            return _ANNOTATION_NAMES.get(name, DEFAULT_SQL_TYPE)
        return DEFAULT_SQL_TYPE
    annotation = _unwrap_optional(annotation)
    if isinstance(annotation, type):
        return TYPE_ANNOTATION_MAP.get(annotation, DEFAULT_SQL_TYPE)
    return DEFAULT_SQL_TYPE


def build_descriptor(
    cls: type,
    *,
    name: str | None = None,
    schema: str = DEFAULT_SCHEMA,
) -> TableDescriptor:
    """Build and validate the descriptor for a dataclass ``cls``."""
    if not dataclasses.is_dataclass(cls):
        raise ConfigurationError(f"{cls.__name__} is not a dataclass").with_context(
            entity=cls.__name__
        )

    try:
        hints = typing.get_type_hints(cls)
    except (NameError, TypeError):
        hints = {}

    columns = []
    for f in dataclasses.fields(cls):
        options: ColumnOptions = f.metadata.get(COLUMN_METADATA_KEY, ColumnOptions())
        sql_type = options.sql_type or _infer_sql_type(hints.get(f.name, f.type))
        columns.append(
            ColumnDescriptor(
                name=f.name,
                sql_type=sql_type,
                category=SqlType.from_sql(sql_type),
                primary_key=options.primary_key,
                unique=options.unique,
                not_null=options.not_null,
                auto_increment=options.auto_increment,
                default=options.default,
                check=options.check,
            )
        )

    descriptor = TableDescriptor(
        table_name=name or cls.__name__,
        columns=tuple(columns),
        entity=cls,
        schema=schema,
    )
    descriptor.validate()
    return descriptor


# =========================================================================
# Registry
# =========================================================================


class DescriptorRegistry:
    """Maps record types to their table descriptors."""

    def __init__(self) -> None:
        self._descriptors: dict[type, TableDescriptor] = {}

    def register(self, cls: type, descriptor: TableDescriptor) -> None:
        self._descriptors[cls] = descriptor

    def is_entity(self, record_type: Any) -> bool:
        return _as_type(record_type) in self._descriptors

    def resolve(self, record_type: Any) -> TableDescriptor:
        cls = _as_type(record_type)
        try:
            return self._descriptors[cls]
        except KeyError:
            raise ConfigurationError(
                f"{cls.__name__} is not declared as an entity (missing @entity)"
            ).with_context(entity=cls.__name__) from None

    def bind_sequences(self, record_type: Any, sequences: Mapping[str, str]) -> TableDescriptor:
        """Attach sequence bindings discovered at table-creation time."""
        cls = _as_type(record_type)
        bound = self.resolve(cls).bind_sequences(sequences)
        self._descriptors[cls] = bound
        return bound

    def entities(self) -> list[type]:
        return list(self._descriptors)

    def clear(self) -> None:
        self._descriptors.clear()


def _as_type(record_type: Any) -> type:
    return record_type if isinstance(record_type, type) else type(record_type)


_registry = DescriptorRegistry()


def get_registry() -> DescriptorRegistry:
    """Return the process-wide descriptor registry."""
    return _registry


def resolve(record_type: Any) -> TableDescriptor:
    """Resolve a record type (or instance) to its descriptor."""
    return _registry.resolve(record_type)


def entity(
    cls: type[T] | None = None,
    *,
    name: str | None = None,
    schema: str = DEFAULT_SCHEMA,
    kw_only: bool = True,
) -> Any:
    """Declare a record type as an entity.

    Usable bare (``@entity``) or with options (``@entity(name="subjects")``).
    Classes that are not yet dataclasses are converted, keyword-only by
    default so required and defaulted columns can be declared in any order.
    """

    def wrap(target: type[T]) -> type[T]:
        if not dataclasses.is_dataclass(target):
            target = dataclass(kw_only=kw_only)(target)
        descriptor = build_descriptor(target, name=name, schema=schema)
        _registry.register(target, descriptor)
        return target

    if cls is not None:
        return wrap(cls)
    return wrap


def get_table_name(record_type: Any) -> str:
    return resolve(record_type).table_name


def get_primary_id(record_type: Any) -> str:
    """Primary-key column name, or ``""`` unless exactly one is declared."""
    key = resolve(record_type).primary_key
    return key.name if key is not None else ""


__all__ = [
    "NO_DEFAULT",
    "SqlType",
    "TYPE_ANNOTATION_MAP",
    "ColumnOptions",
    "ColumnDescriptor",
    "TableDescriptor",
    "DescriptorRegistry",
    "column",
    "entity",
    "build_descriptor",
    "get_registry",
    "resolve",
    "get_table_name",
    "get_primary_id",
]
