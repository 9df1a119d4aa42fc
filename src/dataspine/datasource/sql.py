"""SQL data source.

Compiles each :class:`QueryObject` with :class:`QueryBuilder` and runs it
through a :class:`Database` prepared statement.

Result mapping:
    Column labels of the form ``table.column`` come from qualified select
    fields. When ``table`` is not the queried table the value is nested in
    a sub-Row under that table name; everything else stays at the top level::

        fields=["id", "title", "authors.name"]
        -> Row({"id": 1000, "title": "...", "authors": Row({"name": "Jon"})})

Errors:
    Join configuration and criteria errors are raised while the statement
    is built, before anything reaches the database. Driver failures surface
    as ``QueryError`` with the SQL text attached.
"""

from __future__ import annotations

from collections.abc import Mapping
from contextlib import AbstractContextManager
from typing import Any

from dataspine.builder import QueryBuilder
from dataspine.database import Database, Statement
from dataspine.dialect import get_dialect
from dataspine.errors import JoinConfigError, UnsupportedOptionError
from dataspine.query import QueryObject
from dataspine.row import ResultSet, Row


class SqlDataSource:
    """DataSource backed by a relational database.

    Parameters:
        database: Executor wrapping a SQLAlchemy connection.
        builder: Query builder; defaults to one quoting identifiers with the
                 database's dialect.
        primary_key: Key column used to bound UPDATE/DELETE with a limit.
    """

    def __init__(
        self,
        database: Database,
        builder: QueryBuilder | None = None,
        primary_key: str = "id",
    ) -> None:
        self.database = database
        self.builder = builder or QueryBuilder(get_dialect(database.dialect_name))
        self.primary_key = primary_key
        self._generated_id: Any = None

    @property
    def generated_id(self) -> Any:
        return self._generated_id

    # -- writes ------------------------------------------------------------

    def create(self, table: str, data: dict[str, Any]) -> bool:
        compiled = self.builder.insert(list(data)).into(table).values(list(data.values())).compile()
        statement = self.database.prepare(compiled.sql)
        statement.execute(compiled.bindings)

        created = statement.row_count == 1
        if created:
            key = data.get(self.primary_key)
            self._generated_id = key if key is not None else self.database.last_insert_id()
        return created

    def update(self, table: str, query: QueryObject | None, data: dict[str, Any]) -> int:
        query = query or QueryObject()
        self._check_write_options(query)

        builder = self.builder.update(table, key=self.primary_key).set(data).where(query.criteria)
        self._apply_window(builder, query)
        return self._execute(builder).row_count

    def delete(self, table: str, query: QueryObject | None = None) -> int:
        query = query or QueryObject()
        self._check_write_options(query)

        builder = self.builder.delete(key=self.primary_key).from_(table).where(query.criteria)
        self._apply_window(builder, query)
        return self._execute(builder).row_count

    # -- reads -------------------------------------------------------------

    def read(self, table: str, query: QueryObject | None = None) -> ResultSet:
        query = query or QueryObject()
        fields = query.fields or ([f"{table}.*"] if query.joins else None)

        builder = self.builder.select(fields).from_(table)
        self._apply_joins(builder, query)
        builder.where(query.criteria)
        self._apply_grouping(builder, query)
        self._apply_window(builder, query)

        statement = self._execute(builder)
        return ResultSet(self._map_row(table, record) for record in statement.fetch_all())

    def count(self, table: str, query: QueryObject | None = None) -> int:
        """Number of rows ``read`` would return without its window.

        Counts groups when ``group`` is set. ``having`` filters the same way
        it does for ``read``. Order and limit/offset are ignored.
        """
        query = query or QueryObject()

        if not (query.group or query.having):
            builder = self.builder.select(["COUNT(*) AS count"]).from_(table)
            self._apply_joins(builder, query)
            builder.where(query.criteria)
            return int(self._execute(builder).fetch_column() or 0)

        # having may reference select aliases
        builder = self.builder.select(query.fields or ["1"]).from_(table)
        self._apply_joins(builder, query)
        builder.where(query.criteria)
        self._apply_grouping(builder, query)
        compiled = builder.compile()
        statement = self.database.prepare(f"SELECT COUNT(*) AS count FROM ({compiled.sql}) AS grouped")
        statement.execute(compiled.bindings)
        return int(statement.fetch_column() or 0)

    def transaction(self) -> AbstractContextManager[Database]:
        """Open (or join) a database transaction."""
        return self.database.transaction()

    # -- internals ---------------------------------------------------------

    def _execute(self, builder: QueryBuilder) -> Statement:
        compiled = builder.compile()
        statement = self.database.prepare(compiled.sql)
        statement.execute(compiled.bindings)
        return statement

    def _apply_joins(self, builder: QueryBuilder, query: QueryObject) -> None:
        for join in query.joins:
            if not isinstance(join, Mapping) or not join.get("table"):
                raise JoinConfigError("Join configuration is missing `table`")
            builder.join(
                join.get("type") or "left",
                join["table"],
                join.get("alias"),
                join.get("conditions"),
            )

    def _apply_grouping(self, builder: QueryBuilder, query: QueryObject) -> None:
        if query.group:
            builder.group_by(query.group)
        if query.having:
            builder.having(query.having)

    def _apply_window(self, builder: QueryBuilder, query: QueryObject) -> None:
        if query.order:
            builder.order_by(query.order)
        if query.limit:
            builder.limit(query.limit, query.offset)

    def _check_write_options(self, query: QueryObject) -> None:
        for option in ("joins", "group", "having"):
            if query.get_option(option):
                raise UnsupportedOptionError(option, f"{type(self).__name__} update/delete")

    @staticmethod
    def _map_row(table: str, record: dict[str, Any]) -> Row:
        row = Row()
        for label, value in record.items():
            prefix, dot, column = label.partition(".")
            if not dot or prefix == table:
                row[column if dot else label] = value
                continue
            nested = row.get(prefix)
            if not isinstance(nested, Row):
                nested = Row()
                row[prefix] = nested
            nested[column] = value
        return row


__all__ = ["SqlDataSource"]
