"""
CLI: ``tinyorm db``: migrations, exports and table listing.
"""

from __future__ import annotations

import typer

from tinyorm.cli.utils import handle_errors, open_database, output_dict, output_rows
from tinyorm.export import CsvOptions, ExportFormat, ExportOptions, JsonOptions, ParquetOptions
from tinyorm.migrations import MigrationRunner, load_migrations

app = typer.Typer(no_args_is_help=True)


@app.command()
def migrate(
    module: str = typer.Argument(..., help="Module path or .py file defining migrations"),
    database: str | None = typer.Option(None, "--database", "-d", help="Database file"),
    table: str = typer.Option("migrations", "--table", help="Migrations table name"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Apply pending migrations."""
    with handle_errors():
        migrations = load_migrations(module)
        with open_database(database) as db:
            result = MigrationRunner(db, table_name=table).apply_migrations(migrations)
    output_dict(result.to_dict(), as_json=json_out, title="Migrations")


@app.command()
def revert(
    module: str = typer.Argument(..., help="Module path or .py file defining migrations"),
    target: str | None = typer.Option(None, "--target", "-t", help="Keep this version and older"),
    database: str | None = typer.Option(None, "--database", "-d"),
    table: str = typer.Option("migrations", "--table"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Revert applied migrations down to ``--target`` (all when omitted)."""
    with handle_errors():
        migrations = load_migrations(module)
        with open_database(database) as db:
            result = MigrationRunner(db, table_name=table).revert_migrations(
                migrations, target_version=target
            )
    output_dict(result.to_dict(), as_json=json_out, title="Migrations")


@app.command()
def status(
    module: str = typer.Argument(..., help="Module path or .py file defining migrations"),
    database: str | None = typer.Option(None, "--database", "-d"),
    table: str = typer.Option("migrations", "--table"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show applied and pending migrations."""
    with handle_errors():
        migrations = load_migrations(module)
        with open_database(database) as db:
            runner = MigrationRunner(db, table_name=table)
            applied = runner.get_applied()
            pending = runner.get_pending(migrations)

    rows = [
        {"version": r.version, "status": "applied", "applied_at": r.applied_at} for r in applied
    ]
    rows.extend({"version": m.version, "status": "pending", "applied_at": None} for m in pending)
    output_rows(rows, as_json=json_out, title="Migration Status")


@app.command()
def export(
    table: str = typer.Argument(..., help="Table to export"),
    file: str = typer.Argument(..., help="Output file"),
    fmt: ExportFormat = typer.Option(ExportFormat.PARQUET, "--format", "-f", help="csv, json or parquet"),
    pretty: bool = typer.Option(False, "--pretty", help="JSON: write one array"),
    compression: str = typer.Option("ZSTD", "--compression", help="Parquet codec"),
    delimiter: str = typer.Option(",", "--delimiter", help="CSV delimiter"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Export a table with ``COPY ... TO``."""
    options = ExportOptions(
        format=fmt,
        file_name=file,
        csv_options=CsvOptions(delimiter=delimiter),
        json_options=JsonOptions(pretty=pretty),
        parquet_options=ParquetOptions(compression=compression),
    )
    with handle_errors():
        with open_database(database) as db:
            db.export_table(table, options)
    output_dict({"table": table, "file": file, "format": fmt.value}, as_json=json_out, title="Export")


@app.command()
def tables(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List tables with row counts."""
    with handle_errors():
        with open_database(database) as db:
            rows = []
            for row in db.list_tables():
                qualified = f"{row['table_schema']}.{row['table_name']}"
                count = db.scalar(f"SELECT COUNT(*) FROM {qualified}")
                rows.append({"table": qualified, "rows": count})
    output_rows(rows, as_json=json_out, title="Tables")
