"""DuckDB connection handle.

Manifesto:
    One ``Database`` wraps one ``duckdb.DuckDBPyConnection``. Repositories,
    transactions, migration runners and appenders all receive the same
    handle explicitly; nothing reaches for a hidden global. For scripts
    that want one, :meth:`Database.get_instance` hands out a shared handle
    per database path.

Features:
    - ``execute()`` returns rows as dicts and wraps ``duckdb.Error`` in
      :class:`~tinyorm.errors.QueryExecutionError`
    - Memoized ``create_table()``: sequences first, then
      ``CREATE TABLE IF NOT EXISTS``, at most once per table
    - Export (``COPY``), secrets, extension lookup, Arrow registration
    - Context-manager protocol for connection lifecycle

Architecture:
    ::

        Repository ──┐
        Transaction ─┤
        Migration ───┼──► Database.execute(sql, params) ──► duckdb connection
        Appender ────┘          │
                                ▼
                     list[dict[str, Any]]  |  QueryExecutionError

Tags:
    database, duckdb, connection, adapter, tinyorm
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any, ClassVar

import duckdb

from tinyorm.ddl import (
    create_sequence_statement,
    create_table_statement,
    drop_sequence_statement,
    drop_table_statement,
)
from tinyorm.descriptors import TableDescriptor, get_registry
from tinyorm.errors import (
    ConfigurationError,
    DatabaseConnectionError,
    QueryExecutionError,
    TableCreationError,
)
from tinyorm.export import ExportOptions, copy_statement
from tinyorm.logging import get_logger
from tinyorm.secrets import Secret, SecretType, create_secret_statement, drop_secret_statement
from tinyorm.settings import DuckDbConfig, DuckDbLocation

if TYPE_CHECKING:
    from tinyorm.appender import Appender
    from tinyorm.transaction import Transaction

logger = get_logger(__name__)


class Database:
    """Handle on one DuckDB database."""

    _instances: ClassVar[dict[str, Database]] = {}
    _instances_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, config: DuckDbConfig | None = None, *, connect: bool = True):
        self._config = config or DuckDbConfig()
        if self._config.location == DuckDbLocation.FILE and not self._config.filename:
            raise ConfigurationError("Filepath for duckdb is missing")
        self._conn: duckdb.DuckDBPyConnection | None = None
        self._tables: dict[str, tuple[str, ...]] = {}
        self._tables_snapshot: dict[str, tuple[str, ...]] | None = None
        if connect:
            self.connect()

    # ------------------------------------------------------------------
    # Shared instances
    # ------------------------------------------------------------------

    @classmethod
    def get_instance(cls, config: DuckDbConfig | None = None) -> Database:
        """Shared handle for ``config``'s database path (created on first use)."""
        config = config or DuckDbConfig()
        if config.location == DuckDbLocation.FILE and not config.filename:
            raise ConfigurationError("Filepath for duckdb is missing")
        key = config.database_path
        with cls._instances_lock:
            instance = cls._instances.get(key)
            if instance is None or not instance.is_connected:
                instance = cls(config)
                cls._instances[key] = instance
            return instance

    @classmethod
    def reset_instances(cls) -> None:
        """Close and forget every shared handle."""
        with cls._instances_lock:
            for instance in cls._instances.values():
                instance.close()
            cls._instances.clear()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def config(self) -> DuckDbConfig:
        return self._config

    @property
    def database_path(self) -> str:
        return self._config.database_path

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise DatabaseConnectionError("Connection is not established.")
        return self._conn

    def connect(self) -> None:
        if self._conn is not None:
            return
        try:
            self._conn = duckdb.connect(
                database=self.database_path,
                read_only=self._config.read_only,
                config=dict(self._config.options),
            )
        except duckdb.Error as e:
            raise DatabaseConnectionError(
                f"Failed to open DuckDB database {self.database_path}: {e}",
                cause=e,
            ) from e
        logger.debug("database.connected", database=self.database_path, name=self._config.name)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._tables.clear()
            self._tables_snapshot = None
            logger.debug("database.closed", database=self.database_path)

    def __enter__(self) -> Database:
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "open" if self.is_connected else "closed"
        return f"Database({self.database_path!r}, {state})"

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        """Run one statement; rows come back as dicts (empty for DDL)."""
        conn = self.connection
        try:
            cursor = conn.execute(sql, list(params)) if params else conn.execute(sql)
            if cursor.description is None:
                return []
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row, strict=False)) for row in cursor.fetchall()]
        except duckdb.Error as e:
            raise QueryExecutionError(sql, cause=e) from e

    def query_one(self, sql: str, params: Sequence[Any] | None = None) -> dict[str, Any] | None:
        rows = self.execute(sql, params)
        return rows[0] if rows else None

    def scalar(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        """First column of the first row, or ``None``."""
        row = self.query_one(sql, params)
        return next(iter(row.values())) if row else None

    def register(self, view_name: str, data: Any) -> None:
        """Expose a Python object (Arrow table, DataFrame) as a view."""
        try:
            self.connection.register(view_name, data)
        except duckdb.Error as e:
            raise QueryExecutionError(f"REGISTER {view_name}", cause=e) from e

    def unregister(self, view_name: str) -> None:
        try:
            self.connection.unregister(view_name)
        except duckdb.Error as e:
            raise QueryExecutionError(f"UNREGISTER {view_name}", cause=e) from e

    # ------------------------------------------------------------------
    # Tables
    # ------------------------------------------------------------------

    def has_created(self, table: str | TableDescriptor) -> bool:
        return _qualified(table) in self._tables

    def create_table(self, descriptor: TableDescriptor) -> TableDescriptor:
        """Create sequences and table for ``descriptor`` once per handle.

        Returns the descriptor with its sequence bindings attached.
        """
        registry = get_registry()
        registered = _is_registered(descriptor)
        if descriptor.qualified_name in self._tables:
            if registered:
                return registry.resolve(descriptor.entity)
            return descriptor.bind_sequences(descriptor.sequence_names())

        sequences = descriptor.sequence_names()
        bound = descriptor.bind_sequences(sequences)
        try:
            if descriptor.schema != "main":
                self.execute(f"CREATE SCHEMA IF NOT EXISTS {descriptor.schema}")
            for sequence in sequences.values():
                self.execute(create_sequence_statement(sequence))
                logger.debug("sequence.created", sequence=sequence)
            self.execute(create_table_statement(bound))
        except QueryExecutionError as e:
            raise TableCreationError(descriptor.table_name, cause=e.cause or e) from e

        if registered:
            bound = registry.bind_sequences(descriptor.entity, sequences)
        self._tables[descriptor.qualified_name] = tuple(sequences.values())
        logger.info("table.created", table=descriptor.qualified_name, sequences=list(sequences.values()))
        return bound

    def drop_table(self, table: str | TableDescriptor) -> None:
        """Drop a table; for descriptors, also drop its sequences (best effort)."""
        qualified = _qualified(table)
        self.execute(drop_table_statement(table))
        self._tables.pop(qualified, None)
        logger.info("table.dropped", table=qualified)

        if isinstance(table, TableDescriptor):
            self._drop_sequences(table.sequence_names().values())

    def drop_tables(self) -> list[str]:
        """Drop every table created through this handle, and its sequences."""
        dropped = sorted(self._tables)
        for table in dropped:
            self.execute(f"DROP TABLE IF EXISTS {table}")
            sequences = self._tables.pop(table)
            logger.info("table.dropped", table=table)
            self._drop_sequences(sequences)
        return dropped

    def _drop_sequences(self, sequences: Iterable[str]) -> None:
        for sequence in sequences:
            try:
                self.execute(drop_sequence_statement(sequence))
            except QueryExecutionError as e:
                logger.warning("sequence.drop_failed", sequence=sequence, error=str(e.cause or e))

    def snapshot_tables(self) -> None:
        """Remember the created-table memo; called when a transaction begins."""
        self._tables_snapshot = dict(self._tables)

    def restore_tables(self) -> None:
        """Forget tables created since :meth:`snapshot_tables` (after ROLLBACK)."""
        if self._tables_snapshot is not None:
            self._tables = self._tables_snapshot
        self._tables_snapshot = None

    def release_snapshot(self) -> None:
        self._tables_snapshot = None

    def list_tables(self) -> list[dict[str, Any]]:
        return self.execute(
            "SELECT table_schema, table_name FROM information_schema.tables "
            "WHERE table_type = 'BASE TABLE' ORDER BY table_schema, table_name"
        )

    def table_columns(self, table: str) -> list[dict[str, Any]]:
        """Column names and types of ``[schema.]table`` in ordinal order."""
        schema, _, name = table.rpartition(".")
        return self.execute(
            "SELECT column_name, data_type FROM information_schema.columns "
            "WHERE table_schema = ? AND table_name = ? ORDER BY ordinal_position",
            [schema or "main", name],
        )

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    def create_transaction(self) -> Transaction:
        from tinyorm.transaction import Transaction

        self.connect()
        return Transaction(self)

    def create_appender(self, table: str | TableDescriptor) -> Appender:
        from tinyorm.appender import Appender

        return Appender(self, _qualified(table))

    def export_table(self, table: str | TableDescriptor, options: ExportOptions) -> None:
        statement = copy_statement(_qualified(table), options)
        self.execute(statement)
        logger.info("table.exported", table=_qualified(table), file=options.file_name)

    def export_query(self, query: str, options: ExportOptions) -> None:
        self.execute(copy_statement(query, options))
        logger.info("query.exported", file=options.file_name)

    def create_secret(self, secret: Secret) -> None:
        self.execute(create_secret_statement(secret))
        logger.info("secret.created", secret=secret.name, type=SecretType(secret.type).value)

    def drop_secret(self, name: str) -> None:
        self.execute(drop_secret_statement(name))

    def get_extension(self, extension_name: str) -> list[dict[str, Any]]:
        return self.execute(
            "SELECT extension_name, loaded, installed FROM duckdb_extensions() "
            "WHERE extension_name = ?",
            [extension_name],
        )


def _is_registered(descriptor: TableDescriptor) -> bool:
    """True when ``descriptor`` is the registry's table for its entity."""
    registry = get_registry()
    if descriptor.entity is None or not registry.is_entity(descriptor.entity):
        return False
    return registry.resolve(descriptor.entity).qualified_name == descriptor.qualified_name


def _qualified(table: str | TableDescriptor) -> str:
    if isinstance(table, TableDescriptor):
        return table.qualified_name
    return table if "." in table else f"main.{table}"


__all__ = ["Database"]
