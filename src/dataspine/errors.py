"""
Structured error types for dataspine.

Every failure the data-access layer can raise is a :class:`DataSpineError`
subclass carrying a category, structured context and an optional chained
cause. Callers can catch a whole family (``ConfigError``) or one precise
kind (``JoinConfigError``) without string-matching messages.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure kind
    - **All-or-nothing:** Parse/compile errors surface before any backend call
    - **Rich Context:** Errors carry table, field and SQL for debugging
    - **Error Chaining:** Driver exceptions are kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       DataSpineError                             │
        │  (category, context, cause)                                      │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ValidationError     ConfigError          DatabaseError          │
        │  (VALIDATION)        (CONFIG)             (DATABASE)             │
        │       │                   │                    │                 │
        │  CriteriaError       JoinConfigError      QueryError             │
        │  MissingFieldError   RelationConfigError                         │
        │                      UnsupportedOptionError                      │
        │                      InvalidConfigError                          │
        │                                                                  │
        │  QueryBuilderError   MapperError                                 │
        │  (INTERNAL)          (INTERNAL)                                  │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = CriteriaError("Invalid expression `~`", field="id")
    >>> error.category
    <ErrorCategory.VALIDATION: 'VALIDATION'>

    >>> try:
    ...     raise RuntimeError("no such table: foo")
    ... except RuntimeError as e:
    ...     err = QueryError("no such table: foo", cause=e).with_context(sql="SELECT 1")
    >>> err.context.sql
    'SELECT 1'

Guardrails:
    ❌ DON'T: Raise bare ValueError for malformed criteria
    ✅ DO: Raise CriteriaError so callers can tell it apart from driver errors

    ❌ DON'T: Swallow the driver exception
    ✅ DO: Pass it as cause= when wrapping

Tags:
    error-handling, exception-hierarchy, error-context, dataspine
"""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for classification and reporting."""

    DATABASE = "DATABASE"         # Driver, statement execution
    VALIDATION = "VALIDATION"     # Criteria shape, missing fields
    CONFIG = "CONFIG"             # Joins, relations, dialects, options
    INTERNAL = "INTERNAL"         # API misuse, unexpected state
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only non-None fields are emitted by :meth:`to_dict`, so a context can be
    logged without noise.

    Attributes:
        table: Table or collection the operation targeted
        field: Field name involved (criteria, match, ordering)
        sql: SQL text that was being executed
        metadata: Additional key-value pairs
    """

    table: str | None = None
    field: str | None = None
    sql: str | None = None

    metadata: dict[str, Any] = dataclass_field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Set fields plus metadata, flattened for a log event."""
        known = {name: getattr(self, name) for name in _CONTEXT_FIELDS}
        return {**{k: v for k, v in known.items() if v is not None}, **self.metadata}


_CONTEXT_FIELDS = ("table", "field", "sql")


class DataSpineError(Exception):
    """
    Base exception for all dataspine errors.

    Subclasses set ``default_category``. Instances carry a message, a
    category, an :class:`ErrorContext` and an optional chained cause.

    Examples:
        >>> error = DataSpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(table="articles").context.table
        'articles'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context if context is not None else ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> DataSpineError:
        """
        Attach table/field/sql or free-form metadata, returning ``self``.

        Usage:
            raise QueryError(message).with_context(sql=sql, params=params)
        """
        for key, value in kwargs.items():
            if key in _CONTEXT_FIELDS:
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serializable form: type, message, category, context and cause."""
        data: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if context := self.context.to_dict():
            data["context"] = context
        if self.cause is not None:
            data["cause"] = str(self.cause)
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(DataSpineError):
    """
    Input validation error.

    Raised before any backend call; the input must be fixed.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value
        if field is not None:
            self.context.field = field

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class CriteriaError(ValidationError):
    """Malformed criteria: missing field name, unknown operator or bad value shape."""
    pass


class MissingFieldError(ValidationError):
    """A row lacks a field referenced by the criteria or the ordering."""
    pass


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(DataSpineError):
    """
    Configuration error.

    Raised for invalid joins, relation declarations and backend settings.
    """

    default_category = ErrorCategory.CONFIG


class JoinConfigError(ConfigError):
    """Join descriptor is missing ``table`` or uses an unsupported type."""
    pass


class RelationConfigError(ConfigError):
    """Relation declaration is incomplete, or ``with`` names an unknown relation."""
    pass


class UnsupportedOptionError(ConfigError):
    """Query option is recognized but not supported by the data source."""

    def __init__(self, option: str, backend: str, message: str | None = None):
        self.option = option
        self.backend = backend
        super().__init__(message or f"Option `{option}` is not supported by {backend}")


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(DataSpineError):
    """Database query or transaction error."""

    default_category = ErrorCategory.DATABASE


class QueryError(DatabaseError):
    """A statement failed to execute. ``context.sql`` holds the failing SQL."""
    pass


# =============================================================================
# USAGE ERRORS
# =============================================================================


class QueryBuilderError(DataSpineError):
    """The query builder was asked to compile an incomplete statement."""
    pass


class MapperError(DataSpineError):
    """A mapper operation was called with unusable input."""
    pass


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "DataSpineError",
    "ValidationError",
    "CriteriaError",
    "MissingFieldError",
    "ConfigError",
    "JoinConfigError",
    "RelationConfigError",
    "UnsupportedOptionError",
    "InvalidConfigError",
    "DatabaseError",
    "QueryError",
    "QueryBuilderError",
    "MapperError",
]
