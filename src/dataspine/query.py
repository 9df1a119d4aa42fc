"""Backend-agnostic query descriptor.

A :class:`QueryObject` bundles criteria with an options bag and is handed to
exactly one data source call. It holds data only. Validation belongs to the
consumer (the data source or the compiler), so the same object can drive the
SQL engine and the in-memory engine.

Recognized options:

==========  ==============================================================
``fields``  Projection: ``["id", "title", "authors.name"]``
``joins``   ``[{"table": "authors", "type": "left", "alias": None,
            "conditions": ["articles.author_id = authors.id"]}]``
``group``   ``["author_id"]``
``having``  Criteria mapping applied after grouping
``order``   ``{"title": "DESC"}``, ``["title DESC", "id"]`` or ``"title"``
``limit``   Maximum number of rows
``offset``  Rows to skip (honoured together with ``limit``)
``with``    Relation names to eager load (mappers only)
==========  ==============================================================

Any other key is preserved verbatim and ignored.
"""

from __future__ import annotations

import copy
from typing import Any

from dataspine.errors import ValidationError

OPTION_KEYS = ("fields", "joins", "group", "having", "order", "limit", "offset", "with")

_DIRECTIONS = ("ASC", "DESC")


class QueryObject:
    """Criteria plus options; setters return ``self`` for chaining."""

    def __init__(
        self,
        criteria: dict[str, Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> None:
        self.criteria: dict[str, Any] = dict(criteria or {})
        self.options: dict[str, Any] = dict(options or {})

    # -- criteria ----------------------------------------------------------

    def get_criteria(self) -> dict[str, Any]:
        return self.criteria

    def set_criteria(self, criteria: dict[str, Any]) -> QueryObject:
        self.criteria = dict(criteria)
        return self

    # -- options -----------------------------------------------------------

    def get_options(self) -> dict[str, Any]:
        return self.options

    def get_option(self, key: str, default: Any = None) -> Any:
        value = self.options.get(key)
        return default if value is None else value

    def set_option(self, key: str, value: Any) -> QueryObject:
        self.options[key] = value
        return self

    def set_options(self, options: dict[str, Any]) -> QueryObject:
        self.options = dict(options)
        return self

    # -- typed accessors for recognized keys -------------------------------

    @property
    def fields(self) -> list[str]:
        return list(self.get_option("fields", []))

    @property
    def joins(self) -> list[dict[str, Any]]:
        return list(self.get_option("joins", []))

    @property
    def group(self) -> list[str]:
        group = self.get_option("group", [])
        return [group] if isinstance(group, str) else list(group)

    @property
    def having(self) -> dict[str, Any]:
        return dict(self.get_option("having", {}))

    @property
    def order(self) -> Any:
        return self.get_option("order")

    @property
    def limit(self) -> int | None:
        limit = self.get_option("limit")
        return int(limit) if limit else None

    @property
    def offset(self) -> int:
        return int(self.get_option("offset", 0))

    @property
    def with_(self) -> list[str]:
        relations = self.get_option("with", [])
        return [relations] if isinstance(relations, str) else list(relations)

    def copy(self) -> QueryObject:
        """Independent clone, safe to mutate without affecting this instance."""
        return QueryObject(copy.deepcopy(self.criteria), copy.deepcopy(self.options))

    def __repr__(self) -> str:
        return f"QueryObject(criteria={self.criteria!r}, options={self.options!r})"


def order_terms(order: Any) -> list[tuple[str, bool]]:
    """Normalize an ``order`` option into ``[(column, descending), ...]``.

    Accepts ``"title"``, ``"title DESC"``, a list of those, or a mapping of
    column to direction. A trailing token that is not ASC/DESC is part of
    the column expression.
    """
    if not order:
        return []
    if isinstance(order, dict):
        terms = []
        for column, direction in order.items():
            direction = str(direction or "ASC").upper()
            if direction not in _DIRECTIONS:
                raise ValidationError(f"Invalid sort direction `{direction}`", field=column)
            terms.append((column, direction == "DESC"))
        return terms

    if isinstance(order, str):
        order = [order]

    terms = []
    for item in order:
        parts = str(item).strip().rsplit(None, 1)
        if len(parts) == 2 and parts[1].upper() in _DIRECTIONS:
            terms.append((parts[0], parts[1].upper() == "DESC"))
        else:
            terms.append((str(item).strip(), False))
    return terms


__all__ = ["QueryObject", "OPTION_KEYS", "order_terms"]
