"""Build a data source from settings.

    >>> from dataspine.factory import create_data_source
    >>> from dataspine.settings import DataSpineSettings
    >>> source = create_data_source(DataSpineSettings(database_url="sqlite://"))
    >>> type(source).__name__
    'SqlDataSource'
"""

from __future__ import annotations

from dataspine.builder import QueryBuilder
from dataspine.database import Database, create_engine
from dataspine.datasource import MemoryDataSource, SqlDataSource
from dataspine.dialect import get_dialect
from dataspine.protocols import DataSource
from dataspine.settings import DataSpineSettings


def create_data_source(settings: DataSpineSettings | None = None) -> DataSource:
    """Return a MemoryDataSource for ``memory``, else a SqlDataSource.

    Raises:
        InvalidConfigError: Identifier quoting is on and the URL's backend
            has no known dialect.
    """
    settings = settings or DataSpineSettings()
    if settings.is_memory:
        return MemoryDataSource(primary_key=settings.primary_key)

    engine = create_engine(settings.database_url, echo=settings.echo_sql)
    dialect = get_dialect(engine.dialect.name) if settings.quote_identifiers else None
    return SqlDataSource(
        Database.connect(engine),
        QueryBuilder(dialect),
        primary_key=settings.primary_key,
    )


__all__ = ["create_data_source"]
