"""
Structured error types for tinyorm.

Every failure the ORM surfaces to callers is an :class:`OrmError`. Instead of
bare engine exceptions that lose context, each error carries:

- **Category:** What kind of failure (config, database, transaction, ...)
- **Context:** Table, entity, statement, migration version, custom fields
- **Cause:** The underlying exception (usually a ``duckdb.Error``), chained

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different phases
    - **Fail Before the Engine:** Synthesis-time validation raises before SQL runs
    - **Rich Context:** Errors carry metadata for logging
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                          OrmError                                │
        │               (category, context, cause)                         │
        ├─────────────────────────────────────────────────────────────────┤
        │  ConfigurationError   DatabaseError          TransactionError    │
        │  (CONFIG)             (DATABASE)             (TRANSACTION)       │
        │       │                    │                                     │
        │  PrimaryKeyError      TableCreationError     ValidationError     │
        │                       QueryExecutionError    MigrationError      │
        │                       EntityNotFoundError    DatabaseConnection- │
        │                                              Error               │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = QueryExecutionError("SELECT * FROM missing", cause=RuntimeError("boom"))
    >>> error.category
    <ErrorCategory.DATABASE: 'DATABASE'>
    >>> error.with_context(table="missing").context.table
    'missing'

Guardrails:
    ❌ DON'T: Let ``duckdb.Error`` escape from repository code
    ✅ DO: Wrap it in the matching OrmError subclass with ``cause=``

Tags:
    error-handling, exception-hierarchy, error-context, tinyorm
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and logging."""

    CONFIG = "CONFIG"              # Missing metadata, invalid settings
    DATABASE = "DATABASE"          # Statement failed at the engine
    CONNECTION = "CONNECTION"      # No open connection
    TRANSACTION = "TRANSACTION"    # BEGIN / COMMIT / ROLLBACK failures
    VALIDATION = "VALIDATION"      # Constraint or insertability violations
    MIGRATION = "MIGRATION"        # Apply / revert failures
    INTERNAL = "INTERNAL"          # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Typed fields cover what the ORM knows when a failure happens; anything
    else goes into ``metadata``. ``to_dict()`` drops unset fields so log
    lines stay compact.

    Examples:
        >>> ctx = ErrorContext(table="subjects", entity="Subject")
        >>> ctx.to_dict()
        {'table': 'subjects', 'entity': 'Subject'}
    """

    table: str | None = None
    entity: str | None = None
    statement: str | None = None
    version: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["table", "entity", "statement", "version"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class OrmError(Exception):
    """
    Base exception for all tinyorm errors.

    Subclasses set ``default_category``; callers may override it per
    instance. When ``cause`` is given it is also installed as
    ``__cause__`` so tracebacks show the engine failure.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> OrmError:
        """
        Add context to this error (fluent API).

        Usage:
            raise QueryExecutionError(sql, cause=exc).with_context(table="subjects")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigurationError(OrmError):
    """
    A type or setting is not usable as declared.

    Raised when a record type was never declared with ``@entity`` or when a
    connection configuration is incomplete.
    """

    default_category = ErrorCategory.CONFIG


class PrimaryKeyError(ConfigurationError):
    """Zero or multiple primary keys where exactly one is required."""

    pass


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(OrmError):
    """A statement failed at the engine."""

    default_category = ErrorCategory.DATABASE


class TableCreationError(DatabaseError):
    """CREATE SEQUENCE / CREATE TABLE failed."""

    def __init__(self, table_name: str, cause: BaseException | None = None):
        self.table_name = table_name
        message = f"Failed to create table {table_name}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, cause=cause, context=ErrorContext(table=table_name))


class QueryExecutionError(DatabaseError):
    """A statement failed while executing."""

    def __init__(self, query: str, cause: BaseException | None = None):
        self.query = query
        message = f"Error executing query: {query[:100]}"
        if cause is not None:
            message = f"{message}\nDetails: {cause}"
        super().__init__(message, cause=cause, context=ErrorContext(statement=query))


class EntityNotFoundError(DatabaseError):
    """Lookup by primary key returned no row."""

    def __init__(self, entity_name: str, id: Any):
        self.entity_name = entity_name
        self.id = id
        super().__init__(
            f"Entity {entity_name} with id {id!r} not found",
            context=ErrorContext(entity=entity_name),
        )


class DatabaseConnectionError(OrmError):
    """An operation was attempted without an open connection."""

    default_category = ErrorCategory.CONNECTION


# =============================================================================
# TRANSACTION ERRORS
# =============================================================================


class TransactionError(OrmError):
    """
    A transaction phase failed.

    ``phase`` is one of ``begin``, ``commit``, ``rollback`` or ``execution``.
    When a rollback fails after a failed unit of work, ``cause`` is the
    rollback failure and ``original`` the failure that triggered it.
    """

    default_category = ErrorCategory.TRANSACTION

    def __init__(
        self,
        phase: str,
        cause: BaseException | None = None,
        *,
        original: BaseException | None = None,
        message: str | None = None,
    ):
        self.phase = phase
        self.original = original
        if message is None:
            message = f"Transaction {phase} failed"
            if cause is not None:
                message = f"{message}: {cause}"
        super().__init__(message, cause=cause)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["phase"] = self.phase
        if self.original is not None:
            result["original"] = str(self.original)
        return result


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(OrmError):
    """
    Data validation error.

    Raised when a record cannot be written as declared: no insertable
    fields, a ``NOT NULL`` column left empty, or an unsupported option.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        constraint: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        self.constraint = constraint

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        if self.constraint:
            result["constraint"] = self.constraint
        return result


# =============================================================================
# MIGRATION ERRORS
# =============================================================================


class MigrationError(OrmError):
    """Applying (``up``) or reverting (``down``) a migration failed.

    When the rollback after a failure also fails, ``cause`` is the rollback
    failure and ``original`` the failure that triggered it.
    """

    default_category = ErrorCategory.MIGRATION

    def __init__(
        self,
        version: str,
        direction: str,
        cause: BaseException | None = None,
        *,
        original: BaseException | None = None,
    ):
        self.version = version
        self.direction = direction
        self.original = original
        message = f"Migration {version} {direction} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, cause=cause, context=ErrorContext(version=version))

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["direction"] = self.direction
        if self.original is not None:
            result["original"] = str(self.original)
        return result


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "OrmError",
    "ConfigurationError",
    "PrimaryKeyError",
    "DatabaseError",
    "TableCreationError",
    "QueryExecutionError",
    "EntityNotFoundError",
    "DatabaseConnectionError",
    "TransactionError",
    "ValidationError",
    "MigrationError",
]
