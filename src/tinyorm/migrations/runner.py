"""Migration runner.

Each :class:`Migration` carries a ``version`` string and returns SQL from
``up()`` and ``down()``. Versions are compared as plain strings, so they
must be zero-padded (``"001"``, ``"002"``, ...) or otherwise sort lexically.
"""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import sys
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import Any

from tinyorm.database import Database
from tinyorm.errors import ConfigurationError, MigrationError, OrmError, TransactionError
from tinyorm.logging import LogContext, get_logger
from tinyorm.transaction import Transaction

logger = get_logger(__name__)

DEFAULT_TABLE_NAME = "migrations"


class Migration(ABC):
    """One reversible schema change."""

    version: str = ""

    @abstractmethod
    def up(self) -> str:
        """SQL applying the change."""

    @abstractmethod
    def down(self) -> str:
        """SQL reverting the change."""

    @property
    def description(self) -> str:
        doc = inspect.getdoc(self) or ""
        return doc.splitlines()[0] if doc else type(self).__name__

    def __repr__(self) -> str:
        return f"{type(self).__name__}(version={self.version!r})"


@dataclass
class MigrationRecord:
    """Row of the migrations table."""

    id: int
    version: str
    applied_at: datetime | None = None


@dataclass
class MigrationResult:
    """Outcome of an apply or revert run."""

    applied: list[str] = field(default_factory=list)
    reverted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"applied": self.applied, "reverted": self.reverted, "skipped": self.skipped}


class MigrationRunner:
    """Applies and reverts migrations against a :class:`Database`.

    Example::

        runner = MigrationRunner(database)
        runner.apply_migrations([CreateUsers(), AddEmail()])
        runner.revert_migrations([CreateUsers(), AddEmail()], target_version="001")
    """

    def __init__(self, database: Database, table_name: str = DEFAULT_TABLE_NAME) -> None:
        self._database = database
        self._table_name = table_name

    @property
    def table_name(self) -> str:
        return self._table_name

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Create the migrations table if it doesn't exist."""
        self._database.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table_name} (
                id INTEGER PRIMARY KEY,
                version VARCHAR NOT NULL UNIQUE,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def get_applied(self) -> list[MigrationRecord]:
        """Applied migrations in application order."""
        self.initialize()
        rows = self._database.execute(
            f"SELECT id, version, applied_at FROM {self._table_name} ORDER BY id ASC"
        )
        return [
            MigrationRecord(id=int(row["id"]), version=str(row["version"]), applied_at=row["applied_at"])
            for row in rows
        ]

    def get_pending(self, migrations: Iterable[Migration]) -> list[Migration]:
        """Migrations not yet applied, in ascending version order."""
        applied = {r.version for r in self.get_applied()}
        return [m for m in _sorted(migrations) if m.version not in applied]

    def apply_migrations(self, migrations: Iterable[Migration]) -> MigrationResult:
        """Apply pending migrations in ascending version order.

        Each migration runs with its bookkeeping insert in one transaction.
        The first failure raises :class:`MigrationError`; earlier migrations
        stay applied.
        """
        result = MigrationResult()
        applied = {r.version for r in self.get_applied()}

        for migration in _sorted(migrations):
            if migration.version in applied:
                result.skipped.append(migration.version)
                continue
            self._run(
                migration,
                "up",
                f"INSERT INTO {self._table_name} (id, version) "
                f"SELECT COALESCE(MAX(id), 0) + 1, CAST(? AS VARCHAR) FROM {self._table_name}",
            )
            result.applied.append(migration.version)
            logger.info("migration.applied", version=migration.version, description=migration.description)

        return result

    def revert_migrations(
        self,
        migrations: Iterable[Migration],
        target_version: str | None = None,
    ) -> MigrationResult:
        """Revert applied migrations newest first.

        Stops before the first applied migration whose version is
        ``<= target_version``; without a target every applied migration is
        reverted.
        """
        result = MigrationResult()
        applied = {r.version for r in self.get_applied()}

        for migration in _sorted(migrations, reverse=True):
            if migration.version not in applied:
                continue
            if target_version and migration.version <= target_version:
                break
            self._run(
                migration,
                "down",
                f"DELETE FROM {self._table_name} WHERE version = ?",
            )
            result.reverted.append(migration.version)
            logger.info("migration.reverted", version=migration.version)

        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _run(self, migration: Migration, direction: str, bookkeeping: str) -> None:
        transaction = Transaction(self._database)
        with LogContext(migration=migration.version, direction=direction):
            try:
                transaction.begin()
                sql = migration.up() if direction == "up" else migration.down()
                transaction.execute(sql)
                transaction.execute(bookkeeping, [migration.version])
                transaction.commit()
            except Exception as exc:
                if transaction.is_active:
                    try:
                        transaction.rollback()
                    except TransactionError as rollback_error:
                        logger.error(
                            "migration.rollback_failed",
                            error=str(rollback_error),
                            original=str(exc),
                        )
                        raise MigrationError(
                            migration.version, direction, cause=rollback_error, original=exc
                        ) from rollback_error
                logger.error("migration.failed", error=str(exc))
                cause = (exc.cause or exc) if isinstance(exc, OrmError) else exc
                raise MigrationError(migration.version, direction, cause=cause) from exc


def _sorted(migrations: Iterable[Migration], reverse: bool = False) -> list[Migration]:
    return sorted(migrations, key=lambda m: m.version, reverse=reverse)


def _import(module_path: str) -> ModuleType:
    path = Path(module_path)
    if path.suffix == ".py":
        if not path.exists():
            raise ConfigurationError(f"Migration file not found: {module_path}")
        module_name = f"tinyorm_migrations_{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ConfigurationError(f"Cannot load migrations from {module_path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        spec.loader.exec_module(module)
        return module
    try:
        return importlib.import_module(module_path)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import migrations module {module_path}: {e}", cause=e) from e


def load_migrations(module_path: str) -> list[Migration]:
    """Collect migrations from a module path or ``.py`` file.

    A module-level ``MIGRATIONS`` list (instances or classes) wins; otherwise
    every concrete :class:`Migration` subclass defined in the module is
    instantiated.
    """
    module = _import(module_path)
    declared = getattr(module, "MIGRATIONS", None)
    if declared is not None:
        candidates = list(declared)
    else:
        candidates = [
            obj
            for obj in vars(module).values()
            if inspect.isclass(obj)
            and issubclass(obj, Migration)
            and not inspect.isabstract(obj)
            and obj.__module__ == module.__name__
        ]

    migrations = []
    for candidate in candidates:
        migration = candidate() if inspect.isclass(candidate) else candidate
        if not isinstance(migration, Migration):
            raise ConfigurationError(f"{candidate!r} in {module_path} is not a Migration")
        if not migration.version:
            raise ConfigurationError(f"{type(migration).__name__} has no version")
        migrations.append(migration)
    return _sorted(migrations)


__all__ = [
    "Migration",
    "MigrationRecord",
    "MigrationResult",
    "MigrationRunner",
    "load_migrations",
]
