"""
Shared pytest fixtures and configuration for dataspine tests.

This module provides:
- Fixture data for a small blog schema (authors, articles, comments, tags)
- An in-memory data source and a SQLite-backed SQL data source loaded
  with the same rows
- A ``data_source`` fixture parametrized over both backends
- Mapper classes wired through a ``MapperRegistry``
- ``CountingDataSource`` for asserting how many reads a call issues

Usage:
    def test_something(data_source, registry):
        articles = registry.get("ArticleMapper")
        ...
"""

import copy
import sys
from pathlib import Path
from typing import Any, Generator

import pytest

# Ensure dataspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dataspine.database import Database, create_engine
from dataspine.datasource import MemoryDataSource, SqlDataSource
from dataspine.orm import (
    Mapper,
    MapperRegistry,
    belongs_to,
    has_and_belongs_to_many,
    has_many,
    has_one,
)
from dataspine.query import QueryObject
from dataspine.row import ResultSet


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        test_path = Path(item.fspath).relative_to(Path(__file__).parent)

        if "integration" in str(test_path):
            item.add_marker(pytest.mark.integration)

        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Fixture Data
# =============================================================================


FIXTURE_DATA: dict[str, list[dict[str, Any]]] = {
    "authors": [
        {"id": 2000, "name": "Jon"},
        {"id": 2001, "name": "Claire"},
        {"id": 2002, "name": "Tony"},
    ],
    "articles": [
        {"id": 1000, "title": "Article #1", "body": "First body", "author_id": 2000, "status": "published", "views": 10},
        {"id": 1001, "title": "Article #2", "body": "Second body", "author_id": 2001, "status": "draft", "views": 25},
        {"id": 1002, "title": "Article #3", "body": "Third body", "author_id": 2002, "status": "published", "views": 40},
        {"id": 1003, "title": "Article #4", "body": "Fourth body", "author_id": None, "status": None, "views": 5},
    ],
    "comments": [
        {"id": 4000, "article_id": 1000, "body": "Nice"},
        {"id": 4001, "article_id": 1000, "body": "Agreed"},
        {"id": 4002, "article_id": 1001, "body": "Typo in line 2"},
    ],
    "profiles": [
        {"id": 5000, "author_id": 2000, "bio": "Writes about databases"},
        {"id": 5001, "author_id": 2001, "bio": "Editor"},
    ],
    "tags": [
        {"id": 3000, "name": "orm"},
        {"id": 3001, "name": "python"},
        {"id": 3002, "name": "databases"},
    ],
    "articles_tags": [
        {"article_id": 1000, "tag_id": 3000},
        {"article_id": 1000, "tag_id": 3002},
        {"article_id": 1001, "tag_id": 3001},
    ],
}

SCHEMA = [
    "CREATE TABLE authors (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL)",
    """CREATE TABLE articles (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        body TEXT,
        author_id INTEGER,
        status TEXT,
        views INTEGER
    )""",
    "CREATE TABLE comments (id INTEGER PRIMARY KEY AUTOINCREMENT, article_id INTEGER, body TEXT)",
    "CREATE TABLE profiles (id INTEGER PRIMARY KEY AUTOINCREMENT, author_id INTEGER, bio TEXT)",
    "CREATE TABLE tags (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT NOT NULL)",
    "CREATE TABLE articles_tags (article_id INTEGER NOT NULL, tag_id INTEGER NOT NULL)",
]


def fixture_data() -> dict[str, list[dict[str, Any]]]:
    """Fresh copy of the fixture rows."""
    return copy.deepcopy(FIXTURE_DATA)


# =============================================================================
# Data Source Fixtures
# =============================================================================


@pytest.fixture
def memory_source() -> MemoryDataSource:
    """Memory data source loaded with the fixture rows."""
    return MemoryDataSource(fixture_data())


@pytest.fixture
def sqlite_database() -> Generator[Database, None, None]:
    """Database over a private in-memory SQLite engine with the schema created."""
    engine = create_engine("sqlite://")
    database = Database.connect(engine)
    for ddl in SCHEMA:
        database.execute(ddl)
    yield database
    database.close()
    engine.dispose()


@pytest.fixture
def sql_source(sqlite_database: Database) -> SqlDataSource:
    """SQL data source loaded with the fixture rows."""
    source = SqlDataSource(sqlite_database)
    for table, rows in fixture_data().items():
        for row in rows:
            source.create(table, row)
    return source


@pytest.fixture(params=["memory", "sql"])
def data_source(request: pytest.FixtureRequest) -> Any:
    """Both backends, loaded with identical rows."""
    return request.getfixturevalue(f"{request.param}_source")


class CountingDataSource:
    """Delegating data source that records which tables were read."""

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self.reads: list[str] = []

    def read(self, table: str, query: QueryObject | None = None) -> ResultSet:
        self.reads.append(table)
        return self.inner.read(table, query)

    def __getattr__(self, name: str) -> Any:
        return getattr(self.inner, name)


# =============================================================================
# Mapper Fixtures
# =============================================================================


class AuthorMapper(Mapper):
    table = "authors"
    relations = {
        "articles": has_many("ArticleMapper", foreign_key="author_id", dependent=True, order="id"),
        "published_articles": has_many(
            "ArticleMapper",
            foreign_key="author_id",
            conditions={"status": "published"},
            fields=["id", "title"],
            order="id",
        ),
        "profile": has_one("ProfileMapper", foreign_key="author_id", dependent=True),
    }


class ArticleMapper(Mapper):
    table = "articles"
    fields = ("id", "title", "body", "author_id", "status", "views")
    relations = {
        "author": belongs_to("AuthorMapper", foreign_key="author_id"),
        "comments": has_many("CommentMapper", foreign_key="article_id", dependent=True, order={"id": "ASC"}),
        "tags": has_and_belongs_to_many(
            "TagMapper",
            join_table="articles_tags",
            foreign_key="article_id",
            local_key="tag_id",
            dependent=True,
            order="name",
        ),
    }


class CommentMapper(Mapper):
    table = "comments"


class ProfileMapper(Mapper):
    table = "profiles"


class TagMapper(Mapper):
    table = "tags"


MAPPERS = (AuthorMapper, ArticleMapper, CommentMapper, ProfileMapper, TagMapper)


def build_registry(source: Any) -> MapperRegistry:
    registry = MapperRegistry(source)
    for mapper_class in MAPPERS:
        registry.register(mapper_class)
    return registry


@pytest.fixture
def registry(data_source: Any) -> MapperRegistry:
    """Registry with every fixture mapper, over both backends."""
    return build_registry(data_source)


@pytest.fixture
def counting_source(data_source: Any) -> CountingDataSource:
    return CountingDataSource(data_source)


@pytest.fixture
def counting_registry(counting_source: CountingDataSource) -> MapperRegistry:
    return build_registry(counting_source)
