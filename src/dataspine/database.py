"""SQLAlchemy engine factory and prepared-statement executor.

Manifesto:
    The SQL data source needs four things from a database: prepare a
    statement, execute it with named parameters, fetch rows as mappings
    and read the last generated key. ``Database`` provides exactly that on
    top of one SQLAlchemy ``Connection``, plus an explicit transaction
    boundary for multi-statement units of work (cascading deletes).

This module provides:

* ``create_engine`` -- Create a SA engine from a URL with sane defaults.
* ``Database``      -- Wraps a SA ``Connection``: prepare, last_insert_id,
  nesting-aware ``transaction()``.
* ``Statement``     -- A prepared statement: execute, fetch_all,
  fetch_column, row_count.

Transactions:
    Outside ``transaction()`` every statement commits on its own. Inside
    it, statements share one database transaction that commits when the
    outermost block exits normally and rolls back when it raises. Nested
    blocks join the outer transaction.

Tags:
    dataspine, sqlalchemy, engine, connection, statement, transaction

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from dataspine.errors import QueryError
from dataspine.logging import get_logger

logger = get_logger(__name__)

_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def create_engine(url: str = "sqlite://", *, echo: bool = False, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql://…``, etc.)
    echo:
        If ``True``, log all SQL through SQLAlchemy.
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    if not url.startswith("sqlite"):
        return _sa_create_engine(url, echo=echo, **kwargs)

    kwargs.setdefault("connect_args", {"check_same_thread": False})
    if url in _MEMORY_URLS:
        # One shared connection, otherwise each checkout sees an empty database
        kwargs.setdefault("poolclass", StaticPool)

    engine = _sa_create_engine(url, echo=echo, **kwargs)

    # Foreign keys off by default in SQLite, enable via event listener
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def _driver_message(error: SQLAlchemyError) -> str:
    if isinstance(error, DBAPIError) and error.orig is not None:
        return str(error.orig)
    return str(error)


class Statement:
    """A prepared statement bound to a :class:`Database`.

    Results are buffered on :meth:`execute`, so rows stay readable after the
    surrounding transaction has committed.
    """

    def __init__(self, database: Database, sql: str) -> None:
        self.database = database
        self.sql = sql
        self.row_count = 0
        self._keys: list[str] = []
        self._rows: list[tuple[Any, ...]] = []

    def execute(self, params: Mapping[str, Any] | None = None) -> bool:
        """Execute with named parameters (``{"v0": ...}``).

        Raises:
            QueryError: The driver rejected the statement. ``context.sql``
                holds the SQL text and ``cause`` the driver exception.
        """
        params = dict(params or {})
        logger.debug("sql.execute", sql=self.sql, params=params)
        connection = self.database.connection
        try:
            result = connection.execute(text(self.sql), params)
            if result.returns_rows:
                self._keys = list(result.keys())
                self._rows = [tuple(row) for row in result.all()]
                self.row_count = len(self._rows)
            else:
                self._keys, self._rows = [], []
                self.row_count = result.rowcount
                self.database._last_row_id = getattr(result, "lastrowid", None)
        except SQLAlchemyError as e:
            self.database._release(failed=True)
            raise QueryError(_driver_message(e), cause=e).with_context(sql=self.sql, params=params) from e

        self.database._release(failed=False)
        return True

    def fetch_all(self) -> list[dict[str, Any]]:
        """Rows as ``{column label: value}`` dicts, in result order."""
        return [dict(zip(self._keys, row)) for row in self._rows]

    def fetch_column(self, index: int = 0) -> Any:
        """One column of the first row, or ``None`` when there are no rows."""
        if not self._rows:
            return None
        return self._rows[0][index]

    @property
    def column_names(self) -> list[str]:
        return list(self._keys)


class Database:
    """Prepared-statement executor over one SQLAlchemy ``Connection``.

    Example::

        db = Database.connect(create_engine("sqlite://"))
        stmt = db.prepare("SELECT * FROM articles WHERE id = :v0")
        stmt.execute({"v0": 1000})
        rows = stmt.fetch_all()
    """

    def __init__(self, connection: Connection) -> None:
        self.connection = connection
        self._depth = 0
        self._last_row_id: Any = None

    @classmethod
    def connect(cls, engine: Engine) -> Database:
        return cls(engine.connect())

    @property
    def dialect_name(self) -> str:
        """SQLAlchemy backend name (``sqlite``, ``postgresql``, ``mysql``)."""
        return self.connection.dialect.name

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def prepare(self, sql: str) -> Statement:
        return Statement(self, sql)

    def execute(self, sql: str, params: Mapping[str, Any] | None = None) -> Statement:
        """Prepare and execute in one call."""
        statement = self.prepare(sql)
        statement.execute(params)
        return statement

    def last_insert_id(self) -> Any:
        """Key generated by the last INSERT.

        Digit-only strings are returned as ``int``. PostgreSQL has no cursor
        row id, so the session's ``lastval()`` is read instead.
        """
        if self.dialect_name == "postgresql":
            return self.execute("SELECT lastval()").fetch_column()
        value = self._last_row_id
        if isinstance(value, str) and value.isdigit():
            return int(value)
        return value

    @contextmanager
    def transaction(self) -> Iterator[Database]:
        """Open (or join) a transaction.

        Usage::

            with db.transaction():
                db.execute("DELETE FROM comments WHERE article_id = :v0", {"v0": 1})
                db.execute("DELETE FROM articles WHERE id = :v0", {"v0": 1})
        """
        if self._depth > 0:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        # SQLAlchemy autobegins; settle anything pending before an explicit begin
        if self.connection.in_transaction():
            self.connection.commit()

        transaction = self.connection.begin()
        self._depth = 1
        logger.debug("transaction.begin")
        try:
            yield self
        except Exception:
            transaction.rollback()
            logger.debug("transaction.rollback")
            raise
        else:
            transaction.commit()
            logger.debug("transaction.commit")
        finally:
            self._depth = 0

    def _release(self, failed: bool) -> None:
        """End the implicit per-statement transaction outside ``transaction()``."""
        if self._depth > 0 or not self.connection.in_transaction():
            return
        if failed:
            self.connection.rollback()
        else:
            self.connection.commit()

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


__all__ = ["create_engine", "Database", "Statement"]
