"""Tests for ``tinyorm.ddl``: CREATE/DROP statement synthesis."""

from __future__ import annotations

import pytest

from tests._support.entities import Measurement, Note, Subject
from tinyorm.ddl import (
    create_sequence_statement,
    create_table_statement,
    drop_sequence_statement,
    drop_table_statement,
    insert_into_statement,
)
from tinyorm.descriptors import ColumnDescriptor, SqlType, TableDescriptor, build_descriptor, resolve
from tinyorm.errors import PrimaryKeyError


@pytest.fixture
def subject_descriptor() -> TableDescriptor:
    """Unbound descriptor, independent of the shared registry."""
    return build_descriptor(Subject, name="subjects")


class TestCreateTable:
    def test_unbound_auto_increment_has_no_default(self, subject_descriptor):
        sql = create_table_statement(subject_descriptor)
        assert sql == (
            "CREATE TABLE IF NOT EXISTS main.subjects ("
            "id INTEGER PRIMARY KEY, "
            "code VARCHAR NOT NULL UNIQUE, "
            "name VARCHAR NOT NULL, "
            "description VARCHAR, "
            "year INTEGER DEFAULT 2024, "
            "CHECK (year >= 2000))"
        )

    def test_bound_sequence_renders_nextval(self, subject_descriptor):
        bound = subject_descriptor.bind_sequences(subject_descriptor.sequence_names())
        sql = create_table_statement(bound)
        assert "id INTEGER PRIMARY KEY DEFAULT nextval('seq_subjects_id')" in sql
        assert sql.count("PRIMARY KEY") == 1

    def test_check_constraints_come_last(self, subject_descriptor):
        sql = create_table_statement(subject_descriptor)
        assert sql.index("CHECK") > sql.index("year INTEGER")
        assert sql.endswith("CHECK (year >= 2000))")

    def test_boolean_default_literal(self):
        sql = create_table_statement(resolve(Measurement))
        assert "ok BOOLEAN DEFAULT TRUE" in sql
        assert "payload BLOB" in sql

    def test_inferred_types(self):
        sql = create_table_statement(resolve(Note))
        assert sql == (
            "CREATE TABLE IF NOT EXISTS main.Note "
            "(title VARCHAR, body VARCHAR, stars BIGINT)"
        )

    def test_multiple_primary_keys_rejected(self):
        descriptor = TableDescriptor(
            table_name="pairs",
            columns=(
                ColumnDescriptor(name="a", sql_type="INTEGER", category=SqlType.INTEGER, primary_key=True),
                ColumnDescriptor(name="b", sql_type="INTEGER", category=SqlType.INTEGER, primary_key=True),
            ),
        )
        with pytest.raises(PrimaryKeyError) as exc_info:
            create_table_statement(descriptor)
        assert exc_info.value.context.table == "pairs"

    def test_custom_schema(self):
        descriptor = build_descriptor(Note, name="notes", schema="staging")
        assert create_table_statement(descriptor).startswith(
            "CREATE TABLE IF NOT EXISTS staging.notes ("
        )


class TestSequenceStatements:
    def test_create(self):
        assert create_sequence_statement("seq_subjects_id") == (
            "CREATE SEQUENCE IF NOT EXISTS seq_subjects_id START 1;"
        )

    def test_drop(self):
        assert drop_sequence_statement("seq_subjects_id") == "DROP SEQUENCE IF EXISTS seq_subjects_id;"


class TestDropTable:
    def test_plain_name_gets_main_schema(self):
        assert drop_table_statement("subjects") == "DROP TABLE IF EXISTS main.subjects"

    def test_qualified_name_is_kept(self):
        assert drop_table_statement("staging.subjects") == "DROP TABLE IF EXISTS staging.subjects"

    def test_descriptor(self, subject_descriptor):
        assert drop_table_statement(subject_descriptor) == "DROP TABLE IF EXISTS main.subjects"


class TestInsertInto:
    def test_all_columns(self):
        assert insert_into_statement(resolve(Note)) == (
            "INSERT INTO main.Note (title, body, stars) VALUES "
        )

    def test_selected_columns(self, subject_descriptor):
        assert insert_into_statement(subject_descriptor, ["code", "name"]) == (
            "INSERT INTO main.subjects (code, name) VALUES "
        )
