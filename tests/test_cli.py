"""Tests for tinyorm.cli: ``tinyorm db`` commands via CliRunner.

Each test works against a DuckDB file under ``tmp_path`` so state carries
across separate invocations, the way it does from a shell.
"""

from __future__ import annotations

import json

import pytest
import structlog
from typer.testing import CliRunner

from tinyorm import __version__
from tinyorm.cli import app
from tinyorm.database import Database
from tinyorm.logging import bind_context
from tinyorm.settings import DuckDbConfig

runner = CliRunner()

MIGRATIONS = "tests._support.migrations"

pytestmark = [pytest.mark.integration, pytest.mark.usefixtures("restore_logging")]


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "cli.duckdb")


def _invoke(*args: str):
    return runner.invoke(app, list(args))


def _json(result):
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


# ─── Root ────────────────────────────────────────────────────────────────


class TestRoot:
    def test_version(self):
        result = _invoke("--version")
        assert result.exit_code == 0
        assert f"tinyorm {__version__}" in result.stdout

    def test_db_help(self):
        result = _invoke("db", "--help")
        assert result.exit_code == 0
        for command in ("migrate", "revert", "status", "export", "tables"):
            assert command in result.stdout

    def test_each_invocation_starts_with_fresh_log_context(self, db_path):
        bind_context(stale="yes")
        result = _invoke("db", "tables", "-d", db_path)
        assert result.exit_code == 0
        assert structlog.contextvars.get_contextvars() == {
            "database": DuckDbConfig.from_target(db_path).database_path
        }


# ─── Migrations ──────────────────────────────────────────────────────────


class TestMigrationCommands:
    def test_migrate(self, db_path):
        data = _json(_invoke("db", "migrate", MIGRATIONS, "-d", db_path, "--json"))
        assert data == {"applied": ["001", "002", "003"], "reverted": [], "skipped": []}

    def test_migrate_twice_skips(self, db_path):
        _invoke("db", "migrate", MIGRATIONS, "-d", db_path)
        data = _json(_invoke("db", "migrate", MIGRATIONS, "-d", db_path, "--json"))
        assert data["applied"] == []
        assert data["skipped"] == ["001", "002", "003"]

    def test_migrate_plain_output(self, db_path):
        result = _invoke("db", "migrate", MIGRATIONS, "--database", db_path)
        assert result.exit_code == 0
        assert "applied" in result.stdout

    def test_migrate_from_file(self, db_path, tmp_path):
        path = tmp_path / "cli_migrations.py"
        path.write_text(
            "from tinyorm.migrations import Migration\n"
            "\n"
            "class Create(Migration):\n"
            "    version = '001'\n"
            "\n"
            "    def up(self):\n"
            "        return 'CREATE TABLE from_file (x INTEGER)'\n"
            "\n"
            "    def down(self):\n"
            "        return 'DROP TABLE from_file'\n"
        )
        data = _json(_invoke("db", "migrate", str(path), "-d", db_path, "--json"))
        assert data["applied"] == ["001"]

    def test_status(self, db_path):
        _invoke("db", "migrate", MIGRATIONS, "-d", db_path)
        _invoke("db", "revert", MIGRATIONS, "-d", db_path, "--target", "002")
        rows = _json(_invoke("db", "status", MIGRATIONS, "-d", db_path, "--json"))
        assert [(r["version"], r["status"]) for r in rows] == [
            ("001", "applied"),
            ("002", "applied"),
            ("003", "pending"),
        ]
        assert rows[0]["applied_at"] is not None
        assert rows[2]["applied_at"] is None

    def test_revert_to_target(self, db_path):
        _invoke("db", "migrate", MIGRATIONS, "-d", db_path)
        data = _json(_invoke("db", "revert", MIGRATIONS, "-d", db_path, "-t", "001", "--json"))
        assert data["reverted"] == ["003", "002"]

    def test_custom_migrations_table(self, db_path):
        _json(_invoke("db", "migrate", MIGRATIONS, "-d", db_path, "--table", "history", "--json"))
        with Database(DuckDbConfig.from_target(db_path)) as db:
            assert db.scalar("SELECT COUNT(*) FROM history") == 3

    def test_unknown_module_fails(self, db_path):
        result = _invoke("db", "migrate", "tests.no_such_module", "-d", db_path)
        assert result.exit_code == 1
        assert "Error" in result.output


# ─── Tables / export ─────────────────────────────────────────────────────


@pytest.fixture
def seeded(db_path) -> str:
    with Database(DuckDbConfig.from_target(db_path)) as db:
        db.execute("CREATE TABLE scores (name VARCHAR, score INTEGER)")
        db.execute("INSERT INTO scores VALUES ('ada', 3), ('bob', 5)")
    return db_path


class TestTableCommands:
    def test_tables(self, seeded):
        rows = _json(_invoke("db", "tables", "-d", seeded, "--json"))
        assert rows == [{"table": "main.scores", "rows": 2}]

    def test_tables_empty(self, db_path):
        result = _invoke("db", "tables", "-d", db_path)
        assert result.exit_code == 0
        assert "No items." in result.stdout

    def test_export_parquet(self, seeded, tmp_path):
        target = tmp_path / "scores.parquet"
        data = _json(_invoke("db", "export", "scores", str(target), "-d", seeded, "--json"))
        assert data == {"table": "scores", "file": str(target), "format": "parquet"}
        assert target.exists()

    def test_export_csv(self, seeded, tmp_path):
        target = tmp_path / "scores.csv"
        result = _invoke(
            "db", "export", "scores", str(target), "-d", seeded, "-f", "csv", "--delimiter", "|"
        )
        assert result.exit_code == 0
        assert target.read_text().splitlines()[0] == "name|score"

    def test_export_missing_table(self, db_path, tmp_path):
        result = _invoke("db", "export", "nope", str(tmp_path / "x.parquet"), "-d", db_path)
        assert result.exit_code == 1
