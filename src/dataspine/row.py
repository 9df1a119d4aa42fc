"""Generic result rows and result sets.

:class:`Row` is an order-preserving mapping with explicit accessors. There is
no attribute magic: use ``row["title"]`` or ``row.get("title")``. When a query
joins other tables, their columns are nested in a sub-Row keyed by the table
name or alias::

    {"id": 1000, "title": "Article #1", "authors": Row({"name": "Jon"})}

:class:`ResultSet` is the ordered sequence returned by every ``read``.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator, Mapping, MutableMapping, Sequence
from typing import Any, overload


class Row(MutableMapping[str, Any]):
    """One result row. Nested values may themselves be Rows or lists of Rows."""

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    @classmethod
    def from_state(cls, state: Mapping[str, Any]) -> Row:
        return cls(state)

    def to_state(self) -> dict[str, Any]:
        """Shallow copy of the stored fields, as persisted by a data source."""
        return dict(self._data)

    def to_dict(self) -> dict[str, Any]:
        """Recursive plain-dict conversion, nested Rows included."""
        return {key: _plain(value) for key, value in self._data.items()}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def has(self, key: str) -> bool:
        return key in self._data and self._data[key] is not None

    def set(self, key: str, value: Any) -> Row:
        self._data[key] = value
        return self

    def unset(self, key: str) -> None:
        self._data.pop(key, None)

    # -- MutableMapping ----------------------------------------------------

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Row):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"Row({self._data!r})"


def _plain(value: Any) -> Any:
    if isinstance(value, Row):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


class ResultSet(Sequence[Row]):
    """Ordered, immutable-length collection of rows."""

    def __init__(self, rows: Iterable[Row] | None = None) -> None:
        self._rows: list[Row] = list(rows or [])

    def first(self) -> Row | None:
        return self._rows[0] if self._rows else None

    def is_empty(self) -> bool:
        return not self._rows

    def to_list(self) -> list[Row]:
        return list(self._rows)

    def to_dicts(self) -> list[dict[str, Any]]:
        return [row.to_dict() for row in self._rows]

    def to_json(self) -> str:
        return json.dumps(self.to_dicts(), default=str)

    def map(self, callback: Callable[[Row], Row]) -> ResultSet:
        return ResultSet(callback(row) for row in self._rows)

    def filter(self, callback: Callable[[Row], bool]) -> ResultSet:
        return ResultSet(row for row in self._rows if callback(row))

    def index_by(self, callback: Callable[[Row], Any]) -> dict[Any, Row]:
        """Map key -> row; later rows win on duplicate keys."""
        return {callback(row): row for row in self._rows}

    def group_by(self, callback: Callable[[Row], Any]) -> dict[Any, list[Row]]:
        """Map key -> rows, keeping result order inside each group."""
        groups: dict[Any, list[Row]] = {}
        for row in self._rows:
            groups.setdefault(callback(row), []).append(row)
        return groups

    @overload
    def __getitem__(self, index: int) -> Row: ...

    @overload
    def __getitem__(self, index: slice) -> ResultSet: ...

    def __getitem__(self, index: int | slice) -> Row | ResultSet:
        if isinstance(index, slice):
            return ResultSet(self._rows[index])
        return self._rows[index]

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self._rows)

    def __repr__(self) -> str:
        return f"ResultSet({self._rows!r})"


__all__ = ["Row", "ResultSet"]
