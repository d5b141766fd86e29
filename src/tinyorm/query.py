"""Fluent SELECT builder.

One builder per query; every method mutates and returns ``self``::

    query = (
        QueryBuilder(Subject)
        .select(["id", "name"])
        .where("year = ?", 2024)
        .order_by("name")
        .limit(5)
    )
    rows = database.execute(query.get_query(), query.get_parameters())

Predicates are joined exactly as written: ``and_where`` / ``or_where``
prefix ``AND`` / ``OR`` and no parentheses are added, so mixed AND/OR
precedence is the caller's responsibility. The rendered text is not
escaped; literals embedded in clause strings must already be formatted
(see :mod:`tinyorm.literals`) or bound through ``?`` parameters.
"""

from __future__ import annotations

from typing import Any

from tinyorm.descriptors import TableDescriptor, get_registry
from tinyorm.errors import ValidationError

_DIRECTIONS = ("ASC", "DESC")


def _as_list(columns: str | list[str] | tuple[str, ...]) -> list[str]:
    if isinstance(columns, str):
        return [columns]
    return list(columns)


class QueryBuilder:
    """Accumulates SELECT clauses and renders them in SQL order."""

    def __init__(self, source: type | TableDescriptor | str):
        if isinstance(source, TableDescriptor):
            self._from = source.qualified_name
        elif isinstance(source, str):
            self._from = source if "." in source else f"main.{source}"
        else:
            registry = get_registry()
            if registry.is_entity(source):
                self._from = registry.resolve(source).qualified_name
            else:
                self._from = f"main.{source.__name__}"

        self._select: list[str] = ["*"]
        self._joins: list[str] = []
        self._where: list[str] = []
        self._group_by: list[str] = []
        self._having: list[str] = []
        self._order_by: list[str] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._parameters: list[Any] = []

    def select(self, columns: str | list[str] | tuple[str, ...]) -> QueryBuilder:
        self._select = _as_list(columns) or ["*"]
        return self

    def _add_predicate(self, keyword: str, condition: str, params: tuple[Any, ...]) -> QueryBuilder:
        if self._where:
            self._where.append(f"{keyword} {condition}")
        else:
            self._where.append(condition)
        self._parameters.extend(params)
        return self

    def where(self, condition: str, *params: Any) -> QueryBuilder:
        """Add a predicate; after an existing one it is joined with ``AND``."""
        return self._add_predicate("AND", condition, params)

    def and_where(self, condition: str, *params: Any) -> QueryBuilder:
        return self._add_predicate("AND", condition, params)

    def or_where(self, condition: str, *params: Any) -> QueryBuilder:
        return self._add_predicate("OR", condition, params)

    def group_by(self, columns: str | list[str] | tuple[str, ...]) -> QueryBuilder:
        self._group_by.extend(_as_list(columns))
        return self

    def having(self, condition: str, *params: Any) -> QueryBuilder:
        self._having.append(condition)
        self._parameters.extend(params)
        return self

    def order_by(self, column: str, direction: str = "ASC") -> QueryBuilder:
        normalized = direction.upper()
        if normalized not in _DIRECTIONS:
            raise ValidationError(
                f"Invalid sort direction {direction!r}; expected ASC or DESC",
                field="direction",
                value=direction,
            )
        self._order_by.append(f"{column} {normalized}")
        return self

    def limit(self, limit: int) -> QueryBuilder:
        self._limit = limit
        return self

    def offset(self, offset: int) -> QueryBuilder:
        self._offset = offset
        return self

    def join(self, table: str, condition: str) -> QueryBuilder:
        self._joins.append(f"JOIN {table} ON {condition}")
        return self

    def left_join(self, table: str, condition: str) -> QueryBuilder:
        self._joins.append(f"LEFT JOIN {table} ON {condition}")
        return self

    def right_join(self, table: str, condition: str) -> QueryBuilder:
        self._joins.append(f"RIGHT JOIN {table} ON {condition}")
        return self

    def get_query(self) -> str:
        query = f"SELECT {', '.join(self._select)} FROM {self._from}"
        if self._joins:
            query += f" {' '.join(self._joins)}"
        if self._where:
            query += f" WHERE {' '.join(self._where)}"
        if self._group_by:
            query += f" GROUP BY {', '.join(self._group_by)}"
        if self._having:
            query += f" HAVING {' AND '.join(self._having)}"
        if self._order_by:
            query += f" ORDER BY {', '.join(self._order_by)}"
        if self._limit is not None:
            query += f" LIMIT {self._limit}"
        if self._offset is not None:
            query += f" OFFSET {self._offset}"
        return query

    def get_parameters(self) -> list[Any]:
        return list(self._parameters)

    def __str__(self) -> str:
        return self.get_query()


__all__ = ["QueryBuilder"]
