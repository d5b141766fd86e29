"""
Tests for ``tinyorm.migrations``.

Covers ordering, idempotent re-application, revert-to-target, failure
isolation, and loading migrations from files and modules.
"""

from __future__ import annotations

import json
import textwrap
from unittest.mock import patch

import pytest
import structlog

from tests._support.migrations import AddEmail, CreateAudit, CreateUsers
from tinyorm.errors import (
    ConfigurationError,
    MigrationError,
    QueryExecutionError,
    TransactionError,
)
from tinyorm.logging import configure_logging
from tinyorm.migrations import Migration, MigrationRunner, load_migrations
from tinyorm.transaction import Transaction


class BrokenUp(Migration):
    version = "004"

    def up(self) -> str:
        return "CREATE TABLE oops ("

    def down(self) -> str:
        return "DROP TABLE oops"


class Unrenderable(Migration):
    version = "005"

    def up(self) -> str:
        raise KeyError("missing template variable")

    def down(self) -> str:
        return "SELECT 1"


ALL = [CreateUsers(), AddEmail(), CreateAudit()]


@pytest.fixture
def runner(database) -> MigrationRunner:
    return MigrationRunner(database)


def _tables(database) -> set[str]:
    return {row["table_name"] for row in database.list_tables()}


def _applied(runner: MigrationRunner) -> list[str]:
    return [record.version for record in runner.get_applied()]


class TestMigration:
    def test_description_from_docstring(self):
        assert CreateUsers().description == "Create the users table."

    def test_description_falls_back_to_class_name(self):
        assert AddEmail().description == "AddEmail"

    def test_repr(self):
        assert repr(CreateUsers()) == "CreateUsers(version='001')"


class TestApply:
    def test_bookkeeping_table_created_on_first_use(self, runner, database):
        assert runner.get_applied() == []
        assert "migrations" in _tables(database)

    def test_applied_in_version_order(self, runner, database):
        shuffled = [CreateAudit(), CreateUsers(), AddEmail()]
        result = runner.apply_migrations(shuffled)
        assert result.applied == ["001", "002", "003"]
        records = runner.get_applied()
        assert [r.version for r in records] == ["001", "002", "003"]
        assert [r.id for r in records] == [1, 2, 3]
        assert all(r.applied_at is not None for r in records)
        columns = [c["column_name"] for c in database.table_columns("users")]
        assert columns == ["id", "name", "email"]

    def test_reapply_skips(self, runner):
        runner.apply_migrations(ALL)
        result = runner.apply_migrations(ALL)
        assert result.applied == []
        assert result.skipped == ["001", "002", "003"]

    def test_pending(self, runner):
        runner.apply_migrations([CreateUsers()])
        assert [m.version for m in runner.get_pending(ALL)] == ["002", "003"]

    def test_failure_keeps_earlier_migrations(self, runner, database):
        with pytest.raises(MigrationError) as exc_info:
            runner.apply_migrations([*ALL, BrokenUp()])
        err = exc_info.value
        assert err.version == "004"
        assert err.direction == "up"
        assert err.cause is not None
        assert _applied(runner) == ["001", "002", "003"]
        assert "oops" not in _tables(database)

    def test_failure_while_rendering_sql(self, runner, database):
        with pytest.raises(MigrationError) as exc_info:
            runner.apply_migrations([CreateUsers(), Unrenderable()])
        err = exc_info.value
        assert err.version == "005"
        assert isinstance(err.cause, KeyError)
        assert _applied(runner) == ["001"]

    def test_rollback_failure_is_a_migration_error(self, runner):
        rollback_error = TransactionError("rollback", cause=RuntimeError("connection lost"))
        with patch.object(Transaction, "rollback", side_effect=rollback_error):
            with pytest.raises(MigrationError) as exc_info:
                runner.apply_migrations([BrokenUp()])
        err = exc_info.value
        assert err.version == "004"
        assert err.direction == "up"
        assert err.cause is rollback_error
        assert isinstance(err.original, QueryExecutionError)
        assert "original" in err.to_dict()

    @pytest.mark.usefixtures("restore_logging")
    def test_failure_logs_carry_migration(self, runner, capsys):
        configure_logging(level="INFO", json_format=True)
        with pytest.raises(MigrationError):
            runner.apply_migrations([BrokenUp()])
        lines = [json.loads(line) for line in capsys.readouterr().err.splitlines() if line]
        failed = [line for line in lines if line["event"] == "migration.failed"]
        assert failed
        assert failed[0]["migration"] == "004"
        assert failed[0]["direction"] == "up"
        assert structlog.contextvars.get_contextvars() == {}

    def test_custom_table_name(self, database):
        runner = MigrationRunner(database, table_name="schema_history")
        runner.apply_migrations([CreateUsers()])
        assert "schema_history" in _tables(database)
        assert "migrations" not in _tables(database)

    def test_result_to_dict(self, runner):
        assert runner.apply_migrations([CreateUsers()]).to_dict() == {
            "applied": ["001"],
            "reverted": [],
            "skipped": [],
        }


class TestRevert:
    def test_revert_to_target(self, runner, database):
        runner.apply_migrations(ALL)
        result = runner.revert_migrations(ALL, target_version="001")
        assert result.reverted == ["003", "002"]
        assert _applied(runner) == ["001"]
        assert "audit" not in _tables(database)
        columns = [c["column_name"] for c in database.table_columns("users")]
        assert columns == ["id", "name"]

    def test_revert_all(self, runner, database):
        runner.apply_migrations(ALL)
        result = runner.revert_migrations(ALL)
        assert result.reverted == ["003", "002", "001"]
        assert _applied(runner) == []
        assert _tables(database) == {"migrations"}

    def test_unapplied_are_ignored(self, runner):
        runner.apply_migrations([CreateUsers()])
        result = runner.revert_migrations(ALL)
        assert result.reverted == ["001"]

    def test_failure_keeps_record(self, runner, database):
        runner.apply_migrations([CreateUsers()])
        database.execute("DROP TABLE users")
        with pytest.raises(MigrationError) as exc_info:
            runner.revert_migrations([CreateUsers()])
        assert exc_info.value.direction == "down"
        assert _applied(runner) == ["001"]


class TestLoadMigrations:
    def test_from_file(self, tmp_path):
        path = tmp_path / "app_migrations.py"
        path.write_text(
            textwrap.dedent(
                '''
                from tinyorm.migrations import Migration


                class Second(Migration):
                    version = "002"

                    def up(self):
                        return "CREATE TABLE t2 (x INTEGER)"

                    def down(self):
                        return "DROP TABLE t2"


                class First(Migration):
                    version = "001"

                    def up(self):
                        return "CREATE TABLE t1 (x INTEGER)"

                    def down(self):
                        return "DROP TABLE t1"
                '''
            )
        )
        migrations = load_migrations(str(path))
        assert [m.version for m in migrations] == ["001", "002"]
        assert [type(m).__name__ for m in migrations] == ["First", "Second"]

    def test_declared_list_wins(self, tmp_path):
        path = tmp_path / "listed.py"
        path.write_text(
            textwrap.dedent(
                '''
                from tests._support.migrations import AddEmail, CreateUsers

                MIGRATIONS = [AddEmail, CreateUsers()]
                '''
            )
        )
        assert [m.version for m in load_migrations(str(path))] == ["001", "002"]

    def test_from_module_path(self):
        migrations = load_migrations("tests._support.migrations")
        assert [m.version for m in migrations] == ["001", "002", "003"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_migrations(str(tmp_path / "nope.py"))

    def test_missing_module(self):
        with pytest.raises(ConfigurationError):
            load_migrations("tests.no_such_migrations")

    def test_missing_version(self, tmp_path):
        path = tmp_path / "unversioned.py"
        path.write_text(
            textwrap.dedent(
                '''
                from tinyorm.migrations import Migration


                class NoVersion(Migration):
                    def up(self):
                        return "SELECT 1"

                    def down(self):
                        return "SELECT 1"
                '''
            )
        )
        with pytest.raises(ConfigurationError, match="has no version"):
            load_migrations(str(path))

    def test_non_migration_in_list(self, tmp_path):
        path = tmp_path / "bad_list.py"
        path.write_text("MIGRATIONS = ['001']\n")
        with pytest.raises(ConfigurationError, match="is not a Migration"):
            load_migrations(str(path))
