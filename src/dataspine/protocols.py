"""
Canonical protocol definitions for dataspine.

Mappers and callers depend on the *shape* of a data source, not on the SQL
or in-memory implementation. Any object that matches :class:`DataSource`
works, including test doubles that count calls.

Architecture:
    ::

        protocols.py
        ├── DataSource      : create/read/update/delete/count + transaction
        └── Transactional   : context-manager transaction boundary

    Implementations:
        datasource/sql.py (SqlDataSource), datasource/memory.py (MemoryDataSource)

Guardrails:
    ❌ DON'T: Type-check against SqlDataSource in mapper code
    ✅ DO: Accept any DataSource

Tags:
    protocol, datasource, transaction, dataspine
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Protocol, runtime_checkable

from dataspine.query import QueryObject
from dataspine.row import ResultSet


@runtime_checkable
class Transactional(Protocol):
    """Anything that can open an all-or-nothing unit of work.

    ``transaction()`` commits when the block exits normally and rolls back
    when it raises. Nested use joins the outer transaction.
    """

    def transaction(self) -> AbstractContextManager[Any]: ...


@runtime_checkable
class DataSource(Transactional, Protocol):
    """Storage contract shared by every backend.

    ``table`` names a SQL table or an in-memory collection. ``query`` may be
    ``None``, meaning no criteria and no options.
    """

    def create(self, table: str, data: dict[str, Any]) -> bool:
        """Insert one row; the generated key is available via :attr:`generated_id`."""
        ...

    def read(self, table: str, query: QueryObject | None = None) -> ResultSet: ...

    def update(self, table: str, query: QueryObject | None, data: dict[str, Any]) -> int:
        """Update matching rows and return how many were affected."""
        ...

    def delete(self, table: str, query: QueryObject | None = None) -> int:
        """Delete matching rows and return how many were removed."""
        ...

    def count(self, table: str, query: QueryObject | None = None) -> int: ...

    @property
    def generated_id(self) -> Any:
        """Key generated by the last successful :meth:`create`, else ``None``."""
        ...


__all__ = ["DataSource", "Transactional"]
