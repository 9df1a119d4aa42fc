"""Criteria engine: parse ``"field[ operator]" -> value`` maps into predicates.

The same parsed predicates drive both execution engines. The query builder
renders them to SQL, and :func:`match` evaluates them against in-memory rows.
Both engines use the same null rules, so a negated predicate (``!=``,
``NOT IN``, ``NOT BETWEEN``, ``NOT LIKE``) matches a ``None`` value and a
positive one never does.

    >>> criteria = Criteria({"id >": 1000, "status IN": ["draft", "new"]})
    >>> criteria.match({"id": 1100, "status": "new"})
    True

Keys are split on their trailing operator token. A key without whitespace is
an equality test, and ``None`` turns ``=``/``!=`` into ``IS NULL``/``IS NOT
NULL``. Value shapes are checked once, when the criteria are parsed.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any
from uuid import UUID

from dataspine.errors import CriteriaError, MissingFieldError


class Operator(str, Enum):
    """Closed set of comparison operators."""

    EQ = "="
    NEQ = "<>"
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    IN = "IN"
    NOT_IN = "NOT IN"
    BETWEEN = "BETWEEN"
    NOT_BETWEEN = "NOT BETWEEN"
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"

    @property
    def negated(self) -> bool:
        return self in _NEGATED


_NEGATED = frozenset(
    {Operator.NEQ, Operator.NOT_IN, Operator.NOT_BETWEEN, Operator.NOT_LIKE, Operator.IS_NOT_NULL}
)

# Keyword -> operator, as written in criteria keys
_TOKENS: dict[str, Operator] = {
    "=": Operator.EQ,
    "!=": Operator.NEQ,
    "<>": Operator.NEQ,
    ">": Operator.GT,
    ">=": Operator.GTE,
    "<": Operator.LT,
    "<=": Operator.LTE,
    "IN": Operator.IN,
    "NOT IN": Operator.NOT_IN,
    "BETWEEN": Operator.BETWEEN,
    "NOT BETWEEN": Operator.NOT_BETWEEN,
    "LIKE": Operator.LIKE,
    "NOT LIKE": Operator.NOT_LIKE,
}

_ARITHMETIC = frozenset({Operator.GT, Operator.GTE, Operator.LT, Operator.LTE})

_SCALAR_TYPES = (str, bytes, int, float, bool, Decimal, date, datetime, time, UUID, Enum)


@dataclass(frozen=True, slots=True)
class Predicate:
    """One parsed criteria entry."""

    field: str
    operator: Operator
    value: Any = None


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


def _is_scalar(value: Any) -> bool:
    return isinstance(value, _SCALAR_TYPES)


def split_key(key: Any) -> tuple[str, Operator | None]:
    """Split a criteria key into ``(field, operator)``.

    The operator is ``None`` when the key carries no operator token.

    Raises:
        CriteriaError: Empty/non-string key or unrecognized operator token.
    """
    if not isinstance(key, str) or not key.strip():
        raise CriteriaError("No key provided", value=key)

    key = key.strip()
    parts = key.split()
    if len(parts) == 1:
        if key.upper() in _TOKENS:
            raise CriteriaError("No key provided", value=key)
        return key, None

    # Two-word operators first: "NOT IN", "NOT BETWEEN", "NOT LIKE"
    if len(parts) >= 3:
        token = f"{parts[-2]} {parts[-1]}".upper()
        if token in _TOKENS:
            return " ".join(parts[:-2]), _TOKENS[token]

    token = parts[-1].upper()
    if token in _TOKENS:
        return " ".join(parts[:-1]), _TOKENS[token]

    field, expression = key.split(None, 1)
    raise CriteriaError(f"Invalid expression `{expression}`", field=field)


def parse_condition(key: Any, value: Any) -> Predicate:
    """Parse a single criteria entry into a validated :class:`Predicate`."""
    field, operator = split_key(key)

    if operator is None:
        operator = Operator.EQ

    if operator in (Operator.EQ, Operator.NEQ):
        if value is None:
            return Predicate(field, Operator.IS_NULL if operator is Operator.EQ else Operator.IS_NOT_NULL)
        if _is_list(value):
            operator = Operator.IN if operator is Operator.EQ else Operator.NOT_IN
        elif not _is_scalar(value):
            raise CriteriaError(
                f"Invalid comparison value for `{field}`, object provided", field=field, value=value
            )

    if operator in (Operator.IN, Operator.NOT_IN):
        if not _is_list(value):
            raise CriteriaError(
                f"Invalid comparison value for `{field}`, expected an array", field=field, value=value
            )
        _check_elements(field, value)
        return Predicate(field, operator, tuple(value))

    if operator in (Operator.BETWEEN, Operator.NOT_BETWEEN):
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            raise CriteriaError(
                f"Invalid comparison value for `{field}`, expected an array with two values.",
                field=field,
                value=value,
            )
        _check_elements(field, value)
        return Predicate(field, operator, tuple(value))

    if operator in _ARITHMETIC and not _is_scalar(value):
        if _is_list(value):
            message = f"Invalid comparison value for `{field}`, did not expect array"
        else:
            message = f"Invalid comparison value for `{field}`, expected a scalar value"
        raise CriteriaError(message, field=field, value=value)

    if operator in (Operator.LIKE, Operator.NOT_LIKE) and not isinstance(value, (str, int, float, Decimal)):
        raise CriteriaError(
            f"Invalid comparison value for `{field}`, expected a scalar value", field=field, value=value
        )

    return Predicate(field, operator, value)


def _check_elements(field: str, values: Any) -> None:
    for item in values:
        # NULL list members never compare true in SQL
        if item is None:
            raise CriteriaError(
                f"Invalid comparison value for `{field}`, null provided, use IS NULL instead",
                field=field,
                value=values,
            )
        if not _is_scalar(item):
            raise CriteriaError(
                f"Invalid comparison value for `{field}`, object provided", field=field, value=item
            )


def parse(conditions: Mapping[str, Any] | None) -> list[Predicate]:
    """Parse a criteria mapping into predicates (implicit AND)."""
    if not conditions:
        return []
    return [parse_condition(key, value) for key, value in conditions.items()]


# =========================================================================
# Evaluation
# =========================================================================


@lru_cache(maxsize=256)
def like_pattern(pattern: Any) -> re.Pattern[str]:
    """Translate a SQL ``LIKE`` pattern into an anchored, case-insensitive regex."""
    out = []
    for char in str(pattern):
        if char == "%":
            out.append(".*")
        elif char == "_":
            out.append(".")
        else:
            out.append(re.escape(char))
    return re.compile("".join(out), re.IGNORECASE | re.DOTALL)


def _between(actual: Any, bounds: tuple[Any, Any]) -> bool:
    if actual is None:
        return False
    return bounds[0] <= actual <= bounds[1]


def _compare(operator: Operator, actual: Any, expected: Any) -> bool:
    if actual is None:
        return False
    if operator is Operator.GT:
        return actual > expected
    if operator is Operator.GTE:
        return actual >= expected
    if operator is Operator.LT:
        return actual < expected
    return actual <= expected


def evaluate(predicate: Predicate, actual: Any) -> bool:
    """Evaluate one predicate against a field value."""
    op = predicate.operator
    expected = predicate.value

    if op is Operator.EQ:
        return actual is not None and actual == expected
    if op is Operator.NEQ:
        return not (actual is not None and actual == expected)
    if op is Operator.IS_NULL:
        return actual is None
    if op is Operator.IS_NOT_NULL:
        return actual is not None
    if op in _ARITHMETIC:
        return _compare(op, actual, expected)
    if op is Operator.IN:
        return actual is not None and actual in expected
    if op is Operator.NOT_IN:
        return not (actual is not None and actual in expected)
    if op is Operator.BETWEEN:
        return _between(actual, expected)
    if op is Operator.NOT_BETWEEN:
        return not _between(actual, expected)
    if op is Operator.LIKE:
        return actual is not None and like_pattern(expected).fullmatch(str(actual)) is not None
    if op is Operator.NOT_LIKE:
        return not (actual is not None and like_pattern(expected).fullmatch(str(actual)) is not None)

    raise CriteriaError(f"Unsupported operator `{op.value}`", field=predicate.field)


def match(predicates: list[Predicate], row: Mapping[str, Any]) -> bool:
    """Return True when ``row`` satisfies every predicate.

    Raises:
        MissingFieldError: ``row`` lacks a field referenced by a predicate.
    """
    for predicate in predicates:
        if predicate.field not in row:
            raise MissingFieldError(f"Data is missing key `{predicate.field}`", field=predicate.field)
        if not evaluate(predicate, row[predicate.field]):
            return False
    return True


class Criteria:
    """Parsed criteria, ready to match rows.

    Parsing happens in the constructor so malformed criteria fail before any
    data is touched.
    """

    def __init__(self, conditions: Mapping[str, Any] | None = None):
        self.predicates = parse(conditions)

    def match(self, row: Mapping[str, Any]) -> bool:
        return match(self.predicates, row)

    def fields(self) -> list[str]:
        return [p.field for p in self.predicates]

    def __len__(self) -> int:
        return len(self.predicates)

    def __repr__(self) -> str:
        return f"Criteria({self.predicates!r})"


__all__ = [
    "Operator",
    "Predicate",
    "Criteria",
    "split_key",
    "parse_condition",
    "parse",
    "evaluate",
    "match",
    "like_pattern",
]
