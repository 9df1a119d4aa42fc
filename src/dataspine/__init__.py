"""
dataspine - backend-agnostic data access.

One query descriptor, two execution engines with identical semantics, and a
relation-aware mapper layer on top:

    >>> from dataspine import MemoryDataSource, QueryObject
    >>> source = MemoryDataSource({"articles": [{"id": 1000, "title": "Hello"}]})
    >>> len(source.read("articles", QueryObject({"title LIKE": "hel%"})))
    1

Modules:
    criteria    Criteria engine (parse + match)
    query       QueryObject
    builder     SQL compiler
    database    SQLAlchemy-backed executor
    datasource  SqlDataSource, MemoryDataSource
    orm         Mapper, relations, MapperRegistry
"""

from dataspine.builder import CompiledQuery, QueryBuilder
from dataspine.criteria import Criteria, Operator, Predicate
from dataspine.database import Database, Statement, create_engine
from dataspine.datasource import MemoryDataSource, SqlDataSource
from dataspine.dialect import SqlDialect, get_dialect
from dataspine.errors import (
    ConfigError,
    CriteriaError,
    DatabaseError,
    DataSpineError,
    JoinConfigError,
    MapperError,
    MissingFieldError,
    QueryBuilderError,
    QueryError,
    RelationConfigError,
    UnsupportedOptionError,
    ValidationError,
)
from dataspine.factory import create_data_source
from dataspine.orm import (
    Mapper,
    MapperRegistry,
    Relation,
    RelationKind,
    belongs_to,
    has_and_belongs_to_many,
    has_many,
    has_one,
)
from dataspine.protocols import DataSource
from dataspine.query import QueryObject
from dataspine.row import ResultSet, Row
from dataspine.settings import DataSpineSettings

__version__ = "0.1.0"

__all__ = [
    # Query
    "Criteria",
    "Operator",
    "Predicate",
    "QueryObject",
    "QueryBuilder",
    "CompiledQuery",
    # Results
    "Row",
    "ResultSet",
    # Data sources
    "DataSource",
    "MemoryDataSource",
    "SqlDataSource",
    "Database",
    "Statement",
    "create_engine",
    "create_data_source",
    "SqlDialect",
    "get_dialect",
    # ORM
    "Mapper",
    "MapperRegistry",
    "Relation",
    "RelationKind",
    "belongs_to",
    "has_one",
    "has_many",
    "has_and_belongs_to_many",
    # Settings
    "DataSpineSettings",
    # Errors
    "DataSpineError",
    "ValidationError",
    "CriteriaError",
    "MissingFieldError",
    "ConfigError",
    "JoinConfigError",
    "RelationConfigError",
    "UnsupportedOptionError",
    "DatabaseError",
    "QueryError",
    "QueryBuilderError",
    "MapperError",
]
