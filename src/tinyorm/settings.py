"""Connection and logging settings.

``DuckDbConfig`` describes which database a :class:`~tinyorm.database.Database`
opens: an in-memory database or a file on disk, plus engine options passed
verbatim to ``duckdb.connect(config=...)``.

Settings are environment-driven through pydantic-settings::

    TINYORM_LOCATION=file
    TINYORM_FILENAME=./data/app.duckdb
    TINYORM_OPTIONS='{"threads": 4}'

Examples:
    >>> from tinyorm.settings import DuckDbConfig, DuckDbLocation
    >>> DuckDbConfig().database_path
    ':memory:'
    >>> DuckDbConfig(location=DuckDbLocation.FILE, filename="app.duckdb").is_memory
    False

Tags:
    settings, configuration, pydantic, environment, tinyorm
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MEMORY_DATABASE = ":memory:"


class DuckDbLocation(str, Enum):
    """Where the database lives."""

    MEMORY = "memory"
    FILE = "file"


class DuckDbConfig(BaseSettings):
    """Configuration for one DuckDB database.

    Fields
    ──────
    name      : Logical name, used in log lines only
    location  : ``memory`` or ``file``
    filename  : Database file; required when ``location`` is ``file``
    read_only : Open a file database read-only
    options   : Engine startup options (opaque key/value pairs)
    """

    model_config = SettingsConfigDict(
        env_prefix="TINYORM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    name: str = "default"
    location: DuckDbLocation = DuckDbLocation.MEMORY
    filename: str | None = None
    read_only: bool = False
    options: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_memory(self) -> bool:
        return self.location == DuckDbLocation.MEMORY

    @property
    def database_path(self) -> str:
        """Target handed to the engine; also the singleton key."""
        if self.is_memory:
            return MEMORY_DATABASE
        if not self.filename:
            # Validated by Database; keep the property total.
            return ""
        return str(Path(self.filename).expanduser().resolve())

    @classmethod
    def from_target(cls, target: str | None) -> DuckDbConfig:
        """Build a config from a CLI-style target (``None``/``:memory:``/path)."""
        if target is None or target in ("", "memory", MEMORY_DATABASE):
            return cls(location=DuckDbLocation.MEMORY)
        return cls(location=DuckDbLocation.FILE, filename=target)


class LoggingSettings(BaseSettings):
    """Logging options read from ``TINYORM_LOG_LEVEL`` / ``TINYORM_LOG_JSON_FORMAT``."""

    model_config = SettingsConfigDict(
        env_prefix="TINYORM_LOG_",
        extra="ignore",
    )

    level: str = "INFO"
    json_format: bool | None = None


__all__ = [
    "MEMORY_DATABASE",
    "DuckDbLocation",
    "DuckDbConfig",
    "LoggingSettings",
]
