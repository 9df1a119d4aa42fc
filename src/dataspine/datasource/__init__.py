"""Data source implementations: SQL (via SQLAlchemy) and in-memory."""

from dataspine.datasource.memory import MemoryDataSource
from dataspine.datasource.sql import SqlDataSource

__all__ = ["MemoryDataSource", "SqlDataSource"]
