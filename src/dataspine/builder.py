"""Query compiler: structural SQL statements to parameterized text.

Builds SELECT / INSERT / UPDATE / DELETE statements fluently and compiles
them to ``(sql, params)``. Values never appear in the SQL text. They are
bound as ``:v0, :v1, ...`` in traversal order: insert values or update set
values first, then join conditions, where, having.

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                          QueryBuilder                             │
    │                                                                   │
    │  select(cols).from_(t)  ─┐                                        │
    │  insert(cols).into(t)   ─┤   joins → where → group → having       │
    │  update(t).set(data)    ─┤   → order → limit/offset               │
    │  delete().from_(t)      ─┘                                        │
    │                                                                   │
    │  compile() ──▶ CompiledQuery(sql, params)                         │
    └──────────────────────────────────────────────────────────────────┘

Rendering rules:
    - Bare identifiers in select/where/group/order are qualified with the
      primary table alias. Dotted names are quoted per part. Anything with
      ``(`` or a space is an expression and is left alone.
    - Qualified select columns ``t.c`` are labelled ``AS "t.c"`` so result
      rows can be nested by table.
    - Negated predicates are null-safe: ``(col <> :v0 OR col IS NULL)``.
    - UPDATE/DELETE with a limit are bounded through a key subquery.

Examples:
    >>> compiled = (
    ...     QueryBuilder()
    ...     .select(["id", "title"])
    ...     .from_("articles")
    ...     .where({"id >": 1000})
    ...     .order_by("title DESC")
    ...     .limit(10)
    ...     .compile()
    ... )
    >>> compiled.sql
    'SELECT articles.id, articles.title FROM articles WHERE articles.id > :v0 ORDER BY articles.title DESC LIMIT 10'
    >>> compiled.params
    [1000]

Tags:
    query-builder, sql, compiler, parameters, dataspine
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from dataspine.criteria import Operator, Predicate, parse
from dataspine.dialect import SqlDialect
from dataspine.errors import JoinConfigError, QueryBuilderError
from dataspine.query import order_terms

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_QUALIFIED = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*\.([A-Za-z_][A-Za-z0-9_]*|\*)$")

JOIN_TYPES = ("left", "right", "full", "inner")


@dataclass(frozen=True)
class CompiledQuery:
    """SQL text plus its ordered parameter values."""

    sql: str
    params: list[Any] = field(default_factory=list)

    @property
    def bindings(self) -> dict[str, Any]:
        """Named bindings, ``{"v0": ..., "v1": ...}``."""
        return {f"v{index}": value for index, value in enumerate(self.params)}

    def __str__(self) -> str:
        return self.sql


@dataclass
class _Join:
    type: str
    table: str
    alias: str | None
    conditions: list[str | Predicate]


class QueryBuilder:
    """Fluent SQL builder.

    Each statement starter (``select``, ``insert``, ``update``, ``delete``)
    resets the builder, so one instance can be reused for several queries.

    Parameters:
        dialect: Used for identifier quoting. Without one, identifiers are
                 emitted as written.
    """

    def __init__(self, dialect: SqlDialect | None = None) -> None:
        self.dialect = dialect
        self._reset(None)

    def _reset(self, statement: str | None) -> None:
        self._type = statement
        self._table: str | None = None
        self._alias: str | None = None
        self._columns: list[str] = []
        self._insert_columns: list[str] = []
        self._values: list[Any] = []
        self._set: dict[str, Any] = {}
        self._joins: list[_Join] = []
        self._where: list[Predicate] = []
        self._group: list[str] = []
        self._having: list[Predicate] = []
        self._order: list[tuple[str, bool]] = []
        self._limit: int | None = None
        self._offset: int | None = None
        self._key = "id"
        self._params: list[Any] = []

    # -- statement starters ------------------------------------------------

    def select(self, columns: list[str] | None = None) -> QueryBuilder:
        self._reset("select")
        self._columns = list(columns or ["*"])
        return self

    def insert(self, columns: list[str]) -> QueryBuilder:
        self._reset("insert")
        self._insert_columns = list(columns)
        return self

    def into(self, table: str) -> QueryBuilder:
        self._table = table
        self._alias = table
        return self

    def values(self, values: list[Any]) -> QueryBuilder:
        self._values = list(values)
        return self

    def update(self, table: str, key: str = "id") -> QueryBuilder:
        """Start an UPDATE. ``key`` bounds the statement when a limit is set."""
        self._reset("update")
        self._key = key
        return self.from_(table)

    def set(self, data: Mapping[str, Any]) -> QueryBuilder:
        self._set = dict(data)
        return self

    def delete(self, key: str = "id") -> QueryBuilder:
        """Start a DELETE. ``key`` bounds the statement when a limit is set."""
        self._reset("delete")
        self._key = key
        return self

    def from_(self, table: str, alias: str | None = None) -> QueryBuilder:
        self._table = table
        self._alias = alias or table
        return self

    # -- clauses -----------------------------------------------------------

    def join(
        self,
        type: str,
        table: str,
        alias: str | None = None,
        conditions: list[str] | str | Mapping[str, Any] | None = None,
    ) -> QueryBuilder:
        """Add a join.

        ``conditions`` is raw SQL (a string or list of strings, joined with
        AND) or a criteria mapping whose values are bound as parameters.

        Raises:
            JoinConfigError: Missing table or unsupported join type.
        """
        if not table:
            raise JoinConfigError("Join configuration is missing `table`")
        join_type = str(type or "").lower()
        if join_type not in JOIN_TYPES:
            raise JoinConfigError(f"Invalid join type `{type}`")

        if conditions is None:
            conditions = []
        elif isinstance(conditions, str):
            conditions = [conditions]
        elif isinstance(conditions, Mapping):
            conditions = parse(conditions)
        else:
            conditions = list(conditions)
        self._joins.append(_Join(join_type.upper(), table, alias, conditions))
        return self

    def left_join(self, table: str, alias: str | None = None, conditions: Any = None) -> QueryBuilder:
        return self.join("left", table, alias, conditions)

    def right_join(self, table: str, alias: str | None = None, conditions: Any = None) -> QueryBuilder:
        return self.join("right", table, alias, conditions)

    def inner_join(self, table: str, alias: str | None = None, conditions: Any = None) -> QueryBuilder:
        return self.join("inner", table, alias, conditions)

    def full_join(self, table: str, alias: str | None = None, conditions: Any = None) -> QueryBuilder:
        return self.join("full", table, alias, conditions)

    def where(self, criteria: Mapping[str, Any] | None) -> QueryBuilder:
        """Set the WHERE criteria. Parsing errors surface here."""
        self._where = parse(criteria)
        return self

    def group_by(self, columns: str | list[str]) -> QueryBuilder:
        self._group = [columns] if isinstance(columns, str) else list(columns)
        return self

    def having(self, criteria: Mapping[str, Any] | None) -> QueryBuilder:
        self._having = parse(criteria)
        return self

    def order_by(self, order: Any) -> QueryBuilder:
        self._order = order_terms(order)
        return self

    def limit(self, limit: int, offset: int | None = None) -> QueryBuilder:
        self._limit = int(limit)
        self._offset = int(offset) if offset else None
        return self

    # -- compilation -------------------------------------------------------

    def compile(self) -> CompiledQuery:
        """Render the statement.

        Raises:
            QueryBuilderError: No statement started or no table set.
        """
        self._params = []
        if self._type is None:
            raise QueryBuilderError("No statement type set, call select/insert/update/delete first")
        if not self._table:
            raise QueryBuilderError("Table for the query was not set")

        if self._type == "select":
            sql = self._compile_select()
        elif self._type == "insert":
            sql = self._compile_insert()
        elif self._type == "update":
            sql = self._compile_update()
        else:
            sql = self._compile_delete()
        return CompiledQuery(sql, list(self._params))

    def __str__(self) -> str:
        return self.compile().sql

    def _compile_insert(self) -> str:
        if len(self._insert_columns) != len(self._values):
            raise QueryBuilderError(
                f"Insert has {len(self._insert_columns)} columns but {len(self._values)} values"
            )
        placeholders = [self._placeholder(value) for value in self._values]
        columns = ", ".join(self._quote(column) for column in self._insert_columns)
        return f"INSERT INTO {self._quote(self._table)} ({columns}) VALUES ({', '.join(placeholders)})"

    def _compile_select(self) -> str:
        columns = ", ".join(self._select_column(column) for column in self._columns)
        statement = [f"SELECT {columns} FROM {self._from_clause()}"]
        statement.extend(self._tail())
        return " ".join(statement)

    def _compile_update(self) -> str:
        if not self._set:
            raise QueryBuilderError("Update has no values to set")
        sets = ", ".join(
            f"{self._quote(column)} = {self._placeholder(value)}" for column, value in self._set.items()
        )
        statement = [f"UPDATE {self._quote(self._table)} SET {sets}"]
        statement.extend(self._bounded_where())
        return " ".join(statement)

    def _compile_delete(self) -> str:
        statement = [f"DELETE FROM {self._quote(self._table)}"]
        statement.extend(self._bounded_where())
        return " ".join(statement)

    def _from_clause(self) -> str:
        if self._alias and self._alias != self._table:
            return f"{self._quote(self._table)} AS {self._quote(self._alias)}"
        return self._quote(self._table)

    def _tail(self) -> list[str]:
        clauses = []
        for join in self._joins:
            table = self._quote(join.table)
            if join.alias:
                table += f" AS {self._quote(join.alias)}"
            conditions = [
                self._condition(c, qualify=False) if isinstance(c, Predicate) else c
                for c in join.conditions
            ]
            clause = f"{join.type} JOIN {table}"
            if conditions:
                clause += f" ON {' AND '.join(conditions)}"
            clauses.append(clause)

        clauses.extend(self._where_clause())

        if self._group:
            clauses.append(f"GROUP BY {', '.join(self._column(c) for c in self._group)}")
        if self._having:
            clauses.append(f"HAVING {' AND '.join(self._condition(p, qualify=False) for p in self._having)}")
        clauses.extend(self._order_clause())
        if self._limit is not None:
            clauses.append(f"LIMIT {self._limit}")
            if self._offset:
                clauses.append(f"OFFSET {self._offset}")
        return clauses

    def _where_clause(self) -> list[str]:
        if not self._where:
            return []
        return [f"WHERE {' AND '.join(self._condition(p) for p in self._where)}"]

    def _order_clause(self) -> list[str]:
        if not self._order:
            return []
        terms = [f"{self._column(column)} {'DESC' if desc else 'ASC'}" for column, desc in self._order]
        return [f"ORDER BY {', '.join(terms)}"]

    def _bounded_where(self) -> list[str]:
        """WHERE for UPDATE/DELETE; a limit becomes a key subquery."""
        if self._limit is None:
            return self._where_clause()

        key = self._quote(self._key)
        inner = [f"SELECT {self._column(self._key)} FROM {self._from_clause()}"]
        inner.extend(self._where_clause())
        inner.extend(self._order_clause())
        inner.append(f"LIMIT {self._limit}")
        if self._offset:
            inner.append(f"OFFSET {self._offset}")
        # Derived table so MySQL accepts LIMIT and a self-referencing subquery
        return [f"WHERE {key} IN (SELECT {key} FROM ({' '.join(inner)}) AS {self._quote('bounded')})"]

    # -- fragments ---------------------------------------------------------

    def _placeholder(self, value: Any) -> str:
        placeholder = f":v{len(self._params)}"
        self._params.append(value)
        return placeholder

    def _placeholders(self, values: tuple[Any, ...]) -> str:
        return f"({', '.join(self._placeholder(value) for value in values)})"

    def _quote(self, identifier: str) -> str:
        if self.dialect is None:
            return identifier
        return self.dialect.quote_identifier(identifier)

    def _label(self, name: str) -> str:
        char = self.dialect.quote_char if self.dialect is not None else '"'
        return f"{char}{name}{char}"

    def _column(self, column: str) -> str:
        """Qualify a bare identifier with the primary table alias."""
        if _IDENTIFIER.match(column):
            return f"{self._quote(self._alias)}.{self._quote(column)}"
        if _QUALIFIED.match(column):
            return self._quote(column)
        return column

    def _select_column(self, column: str) -> str:
        if _QUALIFIED.match(column) and not column.endswith(".*"):
            return f"{self._quote(column)} AS {self._label(column)}"
        return self._column(column)

    def _condition(self, predicate: Predicate, qualify: bool = True) -> str:
        column = self._column(predicate.field) if qualify else predicate.field
        op = predicate.operator
        value = predicate.value

        if op is Operator.IS_NULL:
            return f"{column} IS NULL"
        if op is Operator.IS_NOT_NULL:
            return f"{column} IS NOT NULL"
        if op is Operator.IN:
            if not value:
                return "1 = 0"
            return f"{column} IN {self._placeholders(value)}"
        if op is Operator.NOT_IN:
            if not value:
                return "1 = 1"
            return f"({column} NOT IN {self._placeholders(value)} OR {column} IS NULL)"
        if op in (Operator.BETWEEN, Operator.NOT_BETWEEN):
            low, high = self._placeholder(value[0]), self._placeholder(value[1])
            if op is Operator.BETWEEN:
                return f"{column} BETWEEN {low} AND {high}"
            return f"({column} NOT BETWEEN {low} AND {high} OR {column} IS NULL)"

        condition = f"{column} {op.value} {self._placeholder(value)}"
        if op.negated:
            return f"({condition} OR {column} IS NULL)"
        return condition


__all__ = ["QueryBuilder", "CompiledQuery", "JOIN_TYPES"]
