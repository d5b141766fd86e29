"""
CLI utility helpers: output formatting and database handles.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from tinyorm.database import Database
from tinyorm.errors import OrmError
from tinyorm.logging import bind_context
from tinyorm.settings import DuckDbConfig

console = Console()
err_console = Console(stderr=True)


# ── Database helper ──────────────────────────────────────────────────────


def open_database(database: str | None = None) -> Database:
    """Open a handle; ``None`` falls back to ``TINYORM_*`` settings."""
    config = DuckDbConfig() if database is None else DuckDbConfig.from_target(database)
    bind_context(database=config.database_path)
    return Database(config)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn ORM failures into a red message and exit code 1."""
    try:
        yield
    except OrmError as exc:
        err_console.print(f"[bold red]Error[/bold red] ({exc.category.value}): {exc.message}")
        raise typer.Exit(code=1) from exc


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / pydantic model / dict to plain dict."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump()
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def output_rows(rows: list[Any], *, as_json: bool = False, title: str = "") -> None:
    """Render a list of dicts/dataclasses as a table or JSON array."""
    if as_json:
        console.print_json(json.dumps([_to_dict(r) for r in rows], default=str))
        return
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    first = _to_dict(rows[0])
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in first:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(str(v) for v in _to_dict(row).values()))
    console.print(table)


def output_dict(data: dict[str, Any], *, as_json: bool = False, title: str = "") -> None:
    """Render a single dict as key-value pairs or a JSON object."""
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
