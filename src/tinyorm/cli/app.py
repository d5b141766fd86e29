"""
Root Typer application for the tinyorm CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from tinyorm import __version__
from tinyorm.logging import clear_context, configure_logging
from tinyorm.settings import LoggingSettings

app = Typer(
    name="tinyorm",
    help="tinyorm: DuckDB entities, migrations and exports.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"tinyorm {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str = typer.Option(
        "WARNING", "--log-level", envvar="TINYORM_LOG_LEVEL", help="Log level"
    ),
) -> None:
    """tinyorm CLI: apply migrations, export tables, inspect a database."""
    settings = LoggingSettings()
    configure_logging(level=log_level, json_format=settings.json_format, add_timestamp=False)
    clear_context()


# ── Sub-command registration ─────────────────────────────────────────────

from tinyorm.cli.db import app as db_app  # noqa: E402

app.add_typer(db_app, name="db", help="Database operations.")
