"""Entity repositories.

A :class:`Repository` pairs one declared entity with a shared
:class:`~tinyorm.database.Database` handle and exposes CRUD, pagination,
query-builder execution, transactions, bulk append and export.

Architecture::

    ┌───────────────────────────────────────────────────────────────────┐
    │                        Repository[T]                              │
    │                                                                   │
    │   database: Database          ← shared, passed in explicitly      │
    │   descriptor: TableDescriptor ← resolved from the registry        │
    │                                                                   │
    │   init()            → CREATE SEQUENCE / CREATE TABLE (memoized)   │
    │   save / save_all   → INSERT (parameterized / multi-row)          │
    │   find_* / count    → SELECT → entity instances                   │
    │   with_transaction  → BEGIN … COMMIT | ROLLBACK                   │
    │   append_entities   → Appender (Arrow batch)                      │
    │   export_*          → COPY … TO                                   │
    └───────────────────────────────────────────────────────────────────┘

The entity is bound by argument, by a class attribute, or by decorator::

    repo = Repository(database, Subject)

    class SubjectRepository(Repository[Subject]):
        entity = Subject

    @repository(Subject)
    class SubjectRepository(Repository[Subject]):
        def find_by_code(self, code: str) -> list[Subject]:
            return self.find_by({"code": code})

Generated keys are read back with ``SELECT MAX(<pk>)`` after each save.
That is only correct while a single writer inserts into the table.

Tags:
    repository, crud, orm, duckdb, tinyorm
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, ClassVar, Generic, TypeVar

from tinyorm.appender import append_record
from tinyorm.database import Database
from tinyorm.descriptors import TableDescriptor, resolve
from tinyorm.dml import bulk_insert_statements, insert_statement, row_to_record
from tinyorm.errors import (
    ConfigurationError,
    EntityNotFoundError,
    TransactionError,
    ValidationError,
)
from tinyorm.export import ExportOptions
from tinyorm.logging import get_logger
from tinyorm.pagination import Page, Pageable
from tinyorm.query import QueryBuilder
from tinyorm.transaction import Transaction

T = TypeVar("T")
R = TypeVar("R")

logger = get_logger(__name__)


def _affected(rows: list[dict[str, Any]]) -> int:
    if not rows:
        return 0
    value = next(iter(rows[0].values()))
    return int(value) if value is not None else 0


class Repository(Generic[T]):
    """CRUD and query access for one entity type."""

    entity: ClassVar[type | None] = None

    def __init__(self, database: Database, entity: type[T] | None = None):
        record_type = entity or type(self).entity
        if record_type is None:
            raise ConfigurationError(
                f"{type(self).__name__} has no entity type; pass one or set `entity`"
            )
        self.database = database
        self.entity_type: type[T] = record_type
        # fails fast for undeclared types
        resolve(record_type)
        self._primary_column: str | None = None

    @property
    def descriptor(self) -> TableDescriptor:
        """Current descriptor, including sequence bindings once created."""
        return resolve(self.entity_type)

    @property
    def table_name(self) -> str:
        return self.descriptor.qualified_name

    @property
    def primary_key_column(self) -> str:
        if self._primary_column is None:
            self._primary_column = self.descriptor.require_primary_key().name
        return self._primary_column

    def _to_records(self, rows: Iterable[Mapping[str, Any]]) -> list[T]:
        descriptor = self.descriptor
        return [row_to_record(row, descriptor) for row in rows]

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def init(self) -> TableDescriptor:
        """Create sequences and table if this handle has not yet done so."""
        return self.database.create_table(self.descriptor)

    def drop_table(self) -> None:
        self.database.drop_table(self.descriptor)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, record: T) -> T:
        """Insert ``record``; generated keys are assigned back onto it."""
        descriptor = self.init()
        sql, params = insert_statement(record, descriptor)
        self.database.execute(sql, params)

        for col in descriptor.columns:
            if col.is_generated_key:
                generated = self.database.scalar(
                    f"SELECT MAX({col.name}) FROM {descriptor.qualified_name}"
                )
                setattr(record, col.name, generated)

        logger.debug("entity.saved", table=descriptor.table_name)
        return record

    def save_all(self, records: Iterable[T]) -> list[T]:
        """Insert many records with multi-row INSERTs (no key read-back)."""
        records = list(records)
        if not records:
            return records
        descriptor = self.init()
        for statement in bulk_insert_statements(records, descriptor):
            self.database.execute(statement)
        logger.debug("entity.saved_all", table=descriptor.table_name, count=len(records))
        return records

    def remove_by_id(self, id: Any) -> int:
        self.init()
        rows = self.database.execute(
            f"DELETE FROM {self.table_name} WHERE {self.primary_key_column} = ?", [id]
        )
        return _affected(rows)

    def remove_all(self) -> int:
        self.init()
        return _affected(self.database.execute(f"DELETE FROM {self.table_name}"))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_all(self) -> list[T]:
        self.init()
        return self._to_records(self.database.execute(f"SELECT * FROM {self.table_name}"))

    def find_by_id(self, id: Any) -> T | None:
        self.init()
        row = self.database.query_one(
            f"SELECT * FROM {self.table_name} WHERE {self.primary_key_column} = ?", [id]
        )
        return row_to_record(row, self.descriptor) if row is not None else None

    def get_by_id(self, id: Any) -> T:
        found = self.find_by_id(id)
        if found is None:
            raise EntityNotFoundError(self.descriptor.entity_name, id).with_context(
                table=self.descriptor.table_name
            )
        return found

    def find_by(
        self,
        criteria: Mapping[str, Any] | T,
        columns: Sequence[str] | None = None,
    ) -> list[T]:
        """Rows whose columns equal the criteria values (``None`` → ``IS NULL``).

        ``criteria`` is a mapping or an entity instance. ``columns`` limits
        which keys take part; for an instance it defaults to its non-``None``
        fields.
        """
        descriptor = self.descriptor
        if isinstance(criteria, Mapping):
            values = dict(criteria)
        else:
            values = {name: getattr(criteria, name, None) for name in descriptor.column_names}
            if columns is None:
                values = {k: v for k, v in values.items() if v is not None}
        if columns is not None:
            values = {name: values.get(name) for name in columns}

        for name in values:
            descriptor.column(name)

        conditions = []
        params = []
        for name, value in values.items():
            if value is None:
                conditions.append(f"{name} IS NULL")
            else:
                conditions.append(f"{name} = ?")
                params.append(value)

        self.init()
        sql = f"SELECT * FROM {self.table_name}"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        return self._to_records(self.database.execute(sql, params))

    def count(self) -> int:
        self.init()
        return int(self.database.scalar(f"SELECT COUNT(*) FROM {self.table_name}") or 0)

    def find_with_pagination(self, pageable: Pageable) -> Page[T]:
        """One zero-based page, ordered by primary key when there is one."""
        self.init()
        total = self.count()
        sql = f"SELECT * FROM {self.table_name}"
        key = self.descriptor.primary_key
        if key is not None:
            sql += f" ORDER BY {key.name}"
        sql += f" LIMIT {int(pageable.size)} OFFSET {int(pageable.offset)}"
        content = self._to_records(self.database.execute(sql))
        return Page.of(content, pageable, total)

    # ------------------------------------------------------------------
    # Query builder
    # ------------------------------------------------------------------

    def create_query_builder(self) -> QueryBuilder:
        return QueryBuilder(self.descriptor)

    def find_by_query(self, builder: QueryBuilder, *, raw: bool = False) -> list[Any]:
        """Run a builder; ``raw=True`` returns dict rows (aggregates, joins)."""
        self.init()
        rows = self.database.execute(builder.get_query(), builder.get_parameters())
        return rows if raw else self._to_records(rows)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def with_transaction(self, callback: Callable[[Transaction], R]) -> R:
        """Run ``callback`` inside BEGIN/COMMIT; roll back if it fails.

        Raises:
            TransactionError: ``phase="execution"`` wrapping the callback's
                failure, or ``phase="rollback"`` (with ``original`` set) when
                the rollback itself fails.
        """
        # DDL stays outside the transaction so a rollback cannot undo it
        self.init()
        transaction = self.database.create_transaction()
        transaction.begin()
        try:
            result = callback(transaction)
            transaction.commit()
            return result
        except Exception as exc:
            if transaction.is_active:
                try:
                    transaction.rollback()
                except TransactionError as rollback_error:
                    rollback_error.original = exc
                    logger.error(
                        "transaction.rollback_failed",
                        table=self.descriptor.table_name,
                        error=str(rollback_error),
                        original=str(exc),
                    )
                    raise
            if isinstance(exc, TransactionError):
                raise
            raise TransactionError("execution", cause=exc) from exc

    # ------------------------------------------------------------------
    # Bulk append
    # ------------------------------------------------------------------

    def append_entities(self, records: Iterable[T]) -> int:
        """Bulk-load records through an appender; keys must be supplied."""
        records = list(records)
        if not records:
            return 0
        descriptor = self.init()
        for record in records:
            for col in descriptor.columns:
                if col.is_generated_key and getattr(record, col.name, None) is None:
                    raise ValidationError(
                        f"Appending to {descriptor.table_name} requires an explicit {col.name}",
                        field=col.name,
                        constraint="PRIMARY KEY",
                    ).with_context(table=descriptor.table_name)

        appender = self.database.create_appender(descriptor)
        try:
            for record in records:
                append_record(appender, record, descriptor)
            written = appender.flush()
        finally:
            appender.close()

        logger.info("entity.appended", table=descriptor.table_name, count=written)
        return written

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_data(self, options: ExportOptions) -> None:
        self.init()
        self.database.export_table(self.descriptor, options)

    def export_query(self, query: str | QueryBuilder, options: ExportOptions) -> None:
        if isinstance(query, QueryBuilder):
            if query.get_parameters():
                raise ValidationError("Exported queries cannot carry bound parameters")
            query = query.get_query()
        self.init()
        self.database.export_query(query, options)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.entity_type.__name__}, {self.database!r})"


def repository(entity_type: type) -> Callable[[type[Repository]], type[Repository]]:
    """Class decorator binding a repository subclass to ``entity_type``."""

    def wrap(cls: type[Repository]) -> type[Repository]:
        cls.entity = entity_type
        return cls

    return wrap


__all__ = ["Repository", "repository"]
