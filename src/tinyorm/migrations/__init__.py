"""Versioned schema migrations for tinyorm.

Manifesto:
    Schemas evolve through hand-written ``up``/``down`` pairs. The runner
    applies them in version order, each in its own transaction, and records
    what has been applied in the ``migrations`` table so runs are
    idempotent and reversible down to a target version.

Modules
-------
runner    Migration base class, MigrationRunner, load_migrations()

Tags:
    tinyorm, migrations, schema, database, idempotent, DDL
"""

from tinyorm.migrations.runner import (
    Migration,
    MigrationRecord,
    MigrationResult,
    MigrationRunner,
    load_migrations,
)

__all__ = [
    "Migration",
    "MigrationRecord",
    "MigrationResult",
    "MigrationRunner",
    "load_migrations",
]
