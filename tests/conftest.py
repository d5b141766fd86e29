"""
Shared pytest fixtures and configuration for tinyorm tests.

This module provides:
- A fresh in-memory ``Database`` per test
- A file-backed ``Database`` under ``tmp_path``
- Cleanup of shared ``Database.get_instance`` handles
- Restoration of global logging state after ``configure_logging``

Entities used across modules live in ``tests/_support/entities.py``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog

from tinyorm.database import Database
from tinyorm.settings import DuckDbConfig, DuckDbLocation


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests without an explicit marker as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def database() -> Iterator[Database]:
    """Fresh in-memory database, closed after the test."""
    db = Database(DuckDbConfig())
    yield db
    db.close()


@pytest.fixture
def db_file(tmp_path: Path) -> Path:
    return tmp_path / "tinyorm.duckdb"


@pytest.fixture
def file_database(db_file: Path) -> Iterator[Database]:
    """File-backed database under ``tmp_path``."""
    db = Database(DuckDbConfig(location=DuckDbLocation.FILE, filename=str(db_file)))
    yield db
    db.close()


@pytest.fixture(autouse=True)
def reset_shared_databases() -> Iterator[None]:
    """Close handles created through ``Database.get_instance``."""
    yield
    Database.reset_instances()


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture
def restore_logging() -> Iterator[None]:
    """Undo ``configure_logging``: root handlers, levels and structlog config."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    package_level = logging.getLogger("tinyorm").level
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger("tinyorm").setLevel(package_level)
