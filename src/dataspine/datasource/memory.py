"""In-memory data source.

Stores rows as ``{collection: {key: row}}`` and answers queries with the
criteria engine, so tests and request-scoped caches get the same semantics
as the SQL data source without a database.

    >>> source = MemoryDataSource({"articles": [{"id": 1000, "title": "Hello"}]})
    >>> source.read("articles", QueryObject({"id >": 999})).first()["title"]
    'Hello'

Query handling:
    - ``order`` is a stable multi-key sort applied before the scan. Ordering
      on a field missing from any row raises ``MissingFieldError``.
    - ``offset``/``limit`` window the matches in scan order. Offset is only
      honoured together with a limit.
    - ``update``/``delete`` act on exactly the rows ``read`` would return.
    - ``fields`` projects columns. ``joins``, ``group`` and ``having`` raise
      ``UnsupportedOptionError``.

Not thread-safe: there is no locking, callers must serialize concurrent
mutation themselves.
"""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from dataspine.criteria import Criteria
from dataspine.errors import MissingFieldError, QueryError, UnsupportedOptionError
from dataspine.logging import get_logger
from dataspine.query import QueryObject, order_terms
from dataspine.row import ResultSet, Row

logger = get_logger(__name__)

_UNSUPPORTED = ("joins", "group", "having")


class MemoryDataSource:
    """DataSource over native dicts.

    Parameters:
        data: Initial collections. Each value is a list of rows (keyed by
              their primary key, generated when absent) or a ``{key: row}``
              mapping used as-is.
        primary_key: Field holding each row's key.
    """

    def __init__(
        self,
        data: Mapping[str, Any] | None = None,
        primary_key: str = "id",
    ) -> None:
        self.primary_key = primary_key
        self._data: dict[str, dict[Any, dict[str, Any]]] = {}
        self._auto_increment: dict[str, int] = {}
        self._generated_id: Any = None
        self._depth = 0

        for collection, rows in (data or {}).items():
            if isinstance(rows, Mapping):
                self._data[collection] = {key: dict(row) for key, row in rows.items()}
            else:
                for row in rows:
                    self.create(collection, row)
        self._generated_id = None

    @property
    def generated_id(self) -> Any:
        return self._generated_id

    def collection(self, name: str) -> dict[Any, dict[str, Any]]:
        """Raw ``{key: row}`` storage of a collection (empty if unknown)."""
        return self._data.get(name, {})

    # -- writes ------------------------------------------------------------

    def create(self, table: str, data: dict[str, Any]) -> bool:
        rows = self._data.setdefault(table, {})
        row = dict(data)

        key = row.get(self.primary_key)
        if key is None:
            key = self._auto_increment.get(table, 0) + 1
            while key in rows:
                key += 1
            self._auto_increment[table] = key
            row[self.primary_key] = key
        elif key in rows:
            raise QueryError(f"Duplicate key `{key}` in `{table}`").with_context(table=table)

        rows[key] = row
        self._generated_id = key
        return True

    def update(self, table: str, query: QueryObject | None, data: dict[str, Any]) -> int:
        rows = self._data.get(table, {})
        keys = self._window(table, query or QueryObject())
        if self.primary_key in data:
            self._rekey(table, rows, keys, data[self.primary_key])
        for key in keys:
            rows[key].update(data)
        return len(keys)

    def _rekey(self, table: str, rows: dict[Any, dict[str, Any]], keys: list[Any], new_key: Any) -> None:
        """Move the updated rows under ``new_key`` so storage agrees with the row."""
        if new_key is None:
            raise QueryError(f"Cannot set `{self.primary_key}` to null in `{table}`").with_context(
                table=table, field=self.primary_key
            )
        moving = [key for key in keys if key != new_key]
        if not moving:
            return
        if len(keys) > 1 or new_key in rows:
            raise QueryError(f"Duplicate key `{new_key}` in `{table}`").with_context(
                table=table, field=self.primary_key
            )
        rows[new_key] = rows.pop(moving[0])
        keys[:] = [new_key]

    def delete(self, table: str, query: QueryObject | None = None) -> int:
        rows = self._data.get(table, {})
        keys = self._window(table, query or QueryObject())
        for key in keys:
            del rows[key]
        return len(keys)

    # -- reads -------------------------------------------------------------

    def read(self, table: str, query: QueryObject | None = None) -> ResultSet:
        query = query or QueryObject()
        rows = self._data.get(table, {})
        keys = self._window(table, query)
        logger.debug("memory.read", collection=table, matched=len(keys))

        fields = query.fields
        return ResultSet(self._project(table, rows[key], fields) for key in keys)

    def count(self, table: str, query: QueryObject | None = None) -> int:
        """Number of matching rows. Order and limit/offset are ignored."""
        query = query or QueryObject()
        self._check_options(query)
        criteria = Criteria(query.criteria)
        return sum(1 for row in self._data.get(table, {}).values() if criteria.match(row))

    # -- transactions ------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[MemoryDataSource]:
        """Snapshot the collections and restore them if the block raises."""
        if self._depth > 0:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        snapshot = (copy.deepcopy(self._data), dict(self._auto_increment))
        self._depth = 1
        logger.debug("transaction.begin")
        try:
            yield self
        except Exception:
            self._data, self._auto_increment = snapshot
            logger.debug("transaction.rollback")
            raise
        else:
            logger.debug("transaction.commit")
        finally:
            self._depth = 0

    # -- internals ---------------------------------------------------------

    def _check_options(self, query: QueryObject) -> None:
        for option in _UNSUPPORTED:
            if query.get_option(option):
                raise UnsupportedOptionError(option, type(self).__name__)

    def _window(self, table: str, query: QueryObject) -> list[Any]:
        """Keys of the rows selected by ``query``, in scan order."""
        self._check_options(query)
        criteria = Criteria(query.criteria)
        rows = self._data.get(table, {})

        keys = list(rows)
        terms = order_terms(query.order)
        if terms:
            keys = self._sort(table, rows, keys, terms)

        limit = query.limit
        offset = query.offset if limit else 0

        selected = []
        skipped = 0
        for key in keys:
            if not criteria.match(rows[key]):
                continue
            if skipped < offset:
                skipped += 1
                continue
            selected.append(key)
            if limit and len(selected) == limit:
                break
        return selected

    def _sort(
        self,
        table: str,
        rows: dict[Any, dict[str, Any]],
        keys: list[Any],
        terms: list[tuple[str, bool]],
    ) -> list[Any]:
        # Stable sorts applied from the last term to the first
        for column, descending in reversed(terms):
            field = self._local_field(table, column)
            for key in keys:
                if field not in rows[key]:
                    raise MissingFieldError(
                        f"The key `{field}` does not exist in one or more rows of the data",
                        field=field,
                    )
            # None sorts first ascending, last descending
            keys.sort(
                key=lambda k: (rows[k][field] is not None, rows[k][field]),
                reverse=descending,
            )
        return keys

    def _project(self, table: str, row: dict[str, Any], fields: list[str]) -> Row:
        if not fields:
            return Row(row)
        projected = Row()
        for column in fields:
            field = self._local_field(table, column)
            if field not in row:
                raise MissingFieldError(f"Data is missing key `{field}`", field=field)
            projected[field] = row[field]
        return projected

    @staticmethod
    def _local_field(table: str, column: str) -> str:
        prefix = f"{table}."
        return column[len(prefix):] if column.startswith(prefix) else column

    def __repr__(self) -> str:
        sizes = {name: len(rows) for name, rows in self._data.items()}
        return f"MemoryDataSource({sizes!r})"


__all__ = ["MemoryDataSource"]
