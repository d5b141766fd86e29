"""tinyorm -- a small object-relational layer over DuckDB.

Manifesto:
    Declaring a record type should be enough to store it. ``tinyorm`` reads
    column metadata off decorated dataclasses and synthesizes the DuckDB SQL
    to create tables, insert, query, paginate, migrate, bulk-load and
    export. All primitives are synchronous and share one explicit
    ``Database`` handle.

    - **Declare once:** descriptors are built and validated at decoration time
    - **Typed literals:** values are formatted by kind, or bound as parameters
    - **Explicit handle:** repositories receive their ``Database``
    - **Structured errors:** every failure is an ``OrmError`` with context

Architecture::

    Layer 1 -- Ambient
        errors.py        OrmError hierarchy (category, context, cause)
        logging.py       structlog configuration + get_logger
        settings.py      DuckDbConfig / LoggingSettings (pydantic-settings)

    Layer 2 -- Synthesis
        literals.py      Typed SQL literal formatting
        descriptors.py   @entity / column(), SqlType, descriptor registry
        ddl.py           CREATE/DROP TABLE and SEQUENCE
        dml.py           INSERT synthesis, row <-> record mapping
        query.py         Fluent QueryBuilder
        export.py        COPY ... TO rendering
        secrets.py       CREATE SECRET rendering

    Layer 3 -- Execution
        database.py      Database handle (duckdb connection)
        transaction.py   Transaction state machine
        appender.py      Arrow-backed bulk appender
        repository.py    Repository[T] CRUD / pagination / transactions
        migrations/      Migration base class + runner
        cli/             Typer CLI (tinyorm db ...)

Usage:
    >>> from tinyorm import Database, Repository, column, entity
    >>> @entity(name="subjects")
    ... class Subject:
    ...     id: int | None = column("INTEGER", primary_key=True, auto_increment=True)
    ...     code: str = column("VARCHAR", not_null=True, unique=True)
    >>> repo = Repository(Database(), Subject)
    >>> repo.save(Subject(code="JB")).id
    1

Tags:
    tinyorm, duckdb, orm, migrations, appender
"""

__version__ = "0.3.0"

from tinyorm.appender import Appender, append_record, append_value
from tinyorm.database import Database
from tinyorm.descriptors import (
    NO_DEFAULT,
    ColumnDescriptor,
    SqlType,
    TableDescriptor,
    column,
    entity,
    get_primary_id,
    get_table_name,
    resolve,
)
from tinyorm.errors import (
    ConfigurationError,
    DatabaseConnectionError,
    DatabaseError,
    EntityNotFoundError,
    ErrorCategory,
    MigrationError,
    OrmError,
    PrimaryKeyError,
    QueryExecutionError,
    TableCreationError,
    TransactionError,
    ValidationError,
)
from tinyorm.export import CsvOptions, ExportFormat, ExportOptions, JsonOptions, ParquetOptions
from tinyorm.migrations import Migration, MigrationRunner, load_migrations
from tinyorm.pagination import Page, Pageable
from tinyorm.query import QueryBuilder
from tinyorm.repository import Repository, repository
from tinyorm.secrets import AzureProviderType, AzureSecret, S3Secret, SecretType
from tinyorm.settings import DuckDbConfig, DuckDbLocation
from tinyorm.transaction import Transaction, TransactionState

__all__ = [
    "__version__",
    # Declaration
    "entity",
    "column",
    "resolve",
    "get_table_name",
    "get_primary_id",
    "NO_DEFAULT",
    "SqlType",
    "ColumnDescriptor",
    "TableDescriptor",
    # Execution
    "Database",
    "DuckDbConfig",
    "DuckDbLocation",
    "Repository",
    "repository",
    "QueryBuilder",
    "Page",
    "Pageable",
    "Transaction",
    "TransactionState",
    "Appender",
    "append_value",
    "append_record",
    "Migration",
    "MigrationRunner",
    "load_migrations",
    # Export / secrets
    "ExportFormat",
    "ExportOptions",
    "CsvOptions",
    "JsonOptions",
    "ParquetOptions",
    "SecretType",
    "AzureProviderType",
    "S3Secret",
    "AzureSecret",
    # Errors
    "ErrorCategory",
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
