"""Tests for ``tinyorm.query.QueryBuilder``."""

from __future__ import annotations

import pytest

from tests._support.entities import Subject
from tinyorm.descriptors import resolve
from tinyorm.errors import ValidationError
from tinyorm.query import QueryBuilder


class TestSource:
    def test_entity_source(self):
        assert QueryBuilder(Subject).get_query() == "SELECT * FROM main.subjects"

    def test_descriptor_source(self):
        assert str(QueryBuilder(resolve(Subject))) == "SELECT * FROM main.subjects"

    def test_string_source(self):
        assert QueryBuilder("events").get_query() == "SELECT * FROM main.events"
        assert QueryBuilder("raw.events").get_query() == "SELECT * FROM raw.events"

    def test_undeclared_class_uses_class_name(self):
        class Loose:
            pass

        assert QueryBuilder(Loose).get_query() == "SELECT * FROM main.Loose"


class TestClauses:
    def test_select_columns(self):
        assert QueryBuilder(Subject).select(["id", "name"]).get_query() == (
            "SELECT id, name FROM main.subjects"
        )

    def test_select_single_string(self):
        assert QueryBuilder(Subject).select("count(*)").get_query() == (
            "SELECT count(*) FROM main.subjects"
        )

    def test_predicates_are_not_parenthesized(self):
        query = (
            QueryBuilder(Subject)
            .where("year = 2024")
            .and_where("code = 'JB'")
            .or_where("name = 'Go'")
            .get_query()
        )
        assert query == (
            "SELECT * FROM main.subjects WHERE year = 2024 AND code = 'JB' OR name = 'Go'"
        )

    def test_repeated_where_joins_with_and(self):
        query = QueryBuilder(Subject).where("a = 1").where("b = 2").get_query()
        assert query.endswith("WHERE a = 1 AND b = 2")

    def test_leading_and_where_has_no_keyword(self):
        assert QueryBuilder(Subject).and_where("a = 1").get_query().endswith("WHERE a = 1")

    def test_full_render_order(self):
        query = (
            QueryBuilder(Subject)
            .select(["year", "count(*) AS n"])
            .left_join("main.notes n", "n.title = subjects.code")
            .where("year > ?", 2000)
            .group_by("year")
            .having("count(*) > ?", 1)
            .having("year < 2030")
            .order_by("year", "desc")
            .limit(10)
            .offset(20)
            .get_query()
        )
        assert query == (
            "SELECT year, count(*) AS n FROM main.subjects "
            "LEFT JOIN main.notes n ON n.title = subjects.code "
            "WHERE year > ? "
            "GROUP BY year "
            "HAVING count(*) > ? AND year < 2030 "
            "ORDER BY year DESC "
            "LIMIT 10 OFFSET 20"
        )

    def test_joins(self):
        query = (
            QueryBuilder(Subject)
            .join("a", "a.id = subjects.id")
            .right_join("b", "b.id = subjects.id")
            .get_query()
        )
        assert query == (
            "SELECT * FROM main.subjects JOIN a ON a.id = subjects.id "
            "RIGHT JOIN b ON b.id = subjects.id"
        )

    def test_multiple_order_by(self):
        query = QueryBuilder(Subject).order_by("year", "DESC").order_by("name").get_query()
        assert query.endswith("ORDER BY year DESC, name ASC")

    def test_invalid_direction(self):
        with pytest.raises(ValidationError):
            QueryBuilder(Subject).order_by("year", "sideways")

    def test_offset_without_limit(self):
        assert QueryBuilder(Subject).offset(5).get_query().endswith("FROM main.subjects OFFSET 5")


class TestParameters:
    def test_parameters_in_clause_order(self):
        builder = (
            QueryBuilder(Subject)
            .where("year = ?", 2024)
            .or_where("code IN (?, ?)", "JB", "GO")
            .having("count(*) > ?", 2)
        )
        assert builder.get_parameters() == [2024, "JB", "GO", 2]

    def test_parameters_are_copied(self):
        builder = QueryBuilder(Subject).where("year = ?", 2024)
        builder.get_parameters().append("junk")
        assert builder.get_parameters() == [2024]
