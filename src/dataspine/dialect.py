"""SQL dialect helpers for identifier quoting and table maintenance.

Provides a ``SqlDialect`` protocol and one implementation per supported
backend. The query builder uses ``quote_identifier``; test fixtures use the
statement helpers to reset tables between runs.

Manifesto:
    Backend-specific SQL lives in one place. The builder and the data
    sources never branch on the database name.

    - **One interface:** SqlDialect protocol for every backend
    - **Statements, not execution:** Helpers return SQL lists, callers run them
    - **Lookup by name:** get_dialect("sqlite") or the SQLAlchemy URL backend

Architecture::

    ┌──────────────────────────────────────────────────────────────────┐
    │                           SqlDialect                              │
    └──────────────────────────────────────────────────────────────────┘
         │                      │                        │
    ┌──────────┐        ┌──────────────┐          ┌──────────┐
    │ SQLite   │        │ PostgreSQL   │          │  MySQL   │
    │ "ident"  │        │ "ident"      │          │ `ident`  │
    │ PRAGMA   │        │ SET CONSTR.  │          │ SET FK=0 │
    └──────────┘        └──────────────┘          └──────────┘

Examples:
    >>> from dataspine.dialect import get_dialect
    >>> d = get_dialect("sqlite")
    >>> d.quote_identifier("articles")
    '"articles"'
    >>> d.truncate("articles")
    ['DELETE FROM "articles"', "DELETE FROM sqlite_sequence WHERE name = 'articles'"]

Guardrails:
    ❌ DON'T: Hard-code quote characters in builder code
    ✅ DO: Pass a dialect to QueryBuilder

Tags:
    dialect, sql, quoting, fixtures, portability, dataspine
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from dataspine.errors import InvalidConfigError


@runtime_checkable
class SqlDialect(Protocol):
    """SQL dialect contract.

    Statement helpers return a list because some backends need more than one
    statement for a single logical step (SQLite truncation).
    """

    @property
    def name(self) -> str:
        """Dialect name (e.g. ``'sqlite'``)."""
        ...

    @property
    def quote_char(self) -> str:
        """Character used to quote identifiers and column labels."""
        ...

    def quote_identifier(self, identifier: str) -> str:
        """Quote a table or column name. Dotted names are quoted per part."""
        ...

    def disable_foreign_key_constraints(self) -> list[str]:
        ...

    def enable_foreign_key_constraints(self) -> list[str]:
        ...

    def truncate(self, table: str) -> list[str]:
        """Empty ``table`` and reset its identity counter."""
        ...

    def reset_auto_increment(self, table: str, value: int, column: str = "id") -> list[str]:
        """Make the next generated key of ``table`` equal ``value``."""
        ...


def _quote(identifier: str, char: str) -> str:
    parts = identifier.split(".")
    return ".".join(
        part if part == "*" else f"{char}{part.replace(char, char * 2)}{char}"
        for part in parts
    )


# =========================================================================
# Implementations
# =========================================================================


class SQLiteDialect:
    """SQLite dialect: ``"ident"``, ``PRAGMA foreign_keys``."""

    @property
    def name(self) -> str:
        return "sqlite"

    @property
    def quote_char(self) -> str:
        return '"'

    def quote_identifier(self, identifier: str) -> str:
        return _quote(identifier, self.quote_char)

    def disable_foreign_key_constraints(self) -> list[str]:
        return ["PRAGMA foreign_keys = OFF"]

    def enable_foreign_key_constraints(self) -> list[str]:
        return ["PRAGMA foreign_keys = ON"]

    def truncate(self, table: str) -> list[str]:
        # sqlite_sequence holds AUTOINCREMENT counters
        return [
            f"DELETE FROM {self.quote_identifier(table)}",
            f"DELETE FROM sqlite_sequence WHERE name = '{table}'",
        ]

    def reset_auto_increment(self, table: str, value: int, column: str = "id") -> list[str]:  # noqa: ARG002
        return [f"UPDATE sqlite_sequence SET seq = {int(value) - 1} WHERE name = '{table}'"]


class PostgreSQLDialect:
    """PostgreSQL dialect: ``"ident"``, deferred constraints."""

    @property
    def name(self) -> str:
        return "postgresql"

    @property
    def quote_char(self) -> str:
        return '"'

    def quote_identifier(self, identifier: str) -> str:
        return _quote(identifier, self.quote_char)

    def disable_foreign_key_constraints(self) -> list[str]:
        return ["SET CONSTRAINTS ALL IMMEDIATE"]

    def enable_foreign_key_constraints(self) -> list[str]:
        return ["SET CONSTRAINTS ALL DEFERRED"]

    def truncate(self, table: str) -> list[str]:
        return [f"TRUNCATE TABLE {self.quote_identifier(table)} RESTART IDENTITY CASCADE"]

    def reset_auto_increment(self, table: str, value: int, column: str = "id") -> list[str]:
        return [f"ALTER SEQUENCE {self.quote_identifier(f'{table}_{column}_seq')} RESTART WITH {int(value)}"]


class MySQLDialect:
    """MySQL dialect: ```ident```, ``FOREIGN_KEY_CHECKS``."""

    @property
    def name(self) -> str:
        return "mysql"

    @property
    def quote_char(self) -> str:
        return "`"

    def quote_identifier(self, identifier: str) -> str:
        return _quote(identifier, self.quote_char)

    def disable_foreign_key_constraints(self) -> list[str]:
        return ["SET FOREIGN_KEY_CHECKS = 0"]

    def enable_foreign_key_constraints(self) -> list[str]:
        return ["SET FOREIGN_KEY_CHECKS = 1"]

    def truncate(self, table: str) -> list[str]:
        return [f"TRUNCATE TABLE {self.quote_identifier(table)}"]

    def reset_auto_increment(self, table: str, value: int, column: str = "id") -> list[str]:  # noqa: ARG002
        return [f"ALTER TABLE {self.quote_identifier(table)} AUTO_INCREMENT = {int(value)}"]


# =========================================================================
# Factory
# =========================================================================


_DIALECTS: dict[str, SqlDialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "pgsql": PostgreSQLDialect(),  # alias
    "mysql": MySQLDialect(),
    "mariadb": MySQLDialect(),  # alias
}


def get_dialect(name: str) -> SqlDialect:
    """Get a dialect by backend name.

    Args:
        name: ``'sqlite'``, ``'postgresql'`` (``'postgres'``, ``'pgsql'``)
              or ``'mysql'``. A SQLAlchemy backend name such as
              ``'postgresql+psycopg'`` resolves by its prefix.

    Raises:
        InvalidConfigError: If ``name`` is not recognised.
    """
    key = name.lower().split("+", 1)[0] if isinstance(name, str) else name
    if key not in _DIALECTS:
        raise InvalidConfigError(
            "dialect", name, f"No SQL dialect available for `{name}`"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: SqlDialect) -> None:
    """Register a custom dialect implementation under ``name``."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "SqlDialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "MySQLDialect",
    "get_dialect",
    "register_dialect",
]
