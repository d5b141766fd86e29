"""Explicit transactions over a :class:`~tinyorm.database.Database`.

State machine::

    IDLE ──begin()──► ACTIVE ──commit()───► COMMITTED
                        │
                        └──rollback()──► ROLLED_BACK

A transaction is single-use and not reentrant. DuckDB allows one open
transaction per connection, so a second ``begin()`` on the same handle is
rejected by the engine and surfaces as ``TransactionError(phase="begin")``.

Usage:
    with database.create_transaction() as tx:
        tx.execute("INSERT INTO main.subjects (code) VALUES (?)", ["JB"])
    # committed here; rolled back if the block raised
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any

from tinyorm.errors import OrmError, TransactionError
from tinyorm.logging import get_logger

if TYPE_CHECKING:
    from tinyorm.database import Database

logger = get_logger(__name__)


class TransactionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Transaction:
    """BEGIN / COMMIT / ROLLBACK with state checks."""

    def __init__(self, database: Database):
        self._database = database
        self._state = TransactionState.IDLE

    @property
    def state(self) -> TransactionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == TransactionState.ACTIVE

    @property
    def database(self) -> Database:
        return self._database

    def _run(self, phase: str, sql: str) -> None:
        try:
            self._database.execute(sql)
        except OrmError as e:
            raise TransactionError(phase, cause=e.cause or e) from e

    def begin(self) -> None:
        if self._state != TransactionState.IDLE:
            raise TransactionError(
                "begin", message=f"Cannot begin: transaction is {self._state.value}"
            )
        self._run("begin", "BEGIN TRANSACTION")
        self._database.snapshot_tables()
        self._state = TransactionState.ACTIVE
        logger.debug("transaction.begin", database=self._database.database_path)

    def commit(self) -> None:
        if self._state != TransactionState.ACTIVE:
            raise TransactionError(
                "commit", message=f"Cannot commit: transaction is {self._state.value}"
            )
        self._run("commit", "COMMIT")
        self._database.release_snapshot()
        self._state = TransactionState.COMMITTED
        logger.debug("transaction.commit", database=self._database.database_path)

    def rollback(self) -> None:
        if self._state != TransactionState.ACTIVE:
            raise TransactionError(
                "rollback", message=f"Cannot roll back: transaction is {self._state.value}"
            )
        try:
            self._run("rollback", "ROLLBACK")
        finally:
            # ROLLBACK also undoes CREATE TABLE / CREATE SEQUENCE
            self._database.restore_tables()
        self._state = TransactionState.ROLLED_BACK
        logger.debug("transaction.rollback", database=self._database.database_path)

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        """Run a statement on the transaction's connection."""
        return self._database.execute(sql, params)

    def __enter__(self) -> Transaction:
        self.begin()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.commit()
            return
        if not self.is_active:
            return
        try:
            self.rollback()
        except TransactionError as rollback_error:
            rollback_error.original = exc_val
            raise

    def __repr__(self) -> str:
        return f"Transaction(state={self._state.value})"


__all__ = ["TransactionState", "Transaction"]
