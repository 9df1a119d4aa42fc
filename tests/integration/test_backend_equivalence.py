"""The same QueryObject must give the same rows on both backends."""

import pytest

from dataspine.errors import CriteriaError
from dataspine.query import QueryObject

QUERIES = [
    ({}, {}),
    ({"id >": 1000}, {}),
    ({"status": "published"}, {}),
    ({"status !=": "published"}, {}),
    ({"author_id": None}, {}),
    ({"author_id !=": None}, {}),
    ({"author_id IN": [2000, 2002]}, {}),
    ({"author_id NOT IN": [2000]}, {}),
    ({"author_id IN": [2000, 2001]}, {}),
    ({"author_id NOT IN": [2000, 2001]}, {}),
    ({"author_id NOT IN": [2000, 2001, 2002]}, {}),
    ({"status IN": ["draft"]}, {}),
    ({"status NOT IN": ["draft", "published"]}, {}),
    ({"id IN": []}, {}),
    ({"id NOT IN": []}, {}),
    ({"views BETWEEN": [10, 30]}, {}),
    ({"views NOT BETWEEN": [10, 30]}, {}),
    ({"views BETWEEN": [30, 10]}, {}),
    ({"views NOT BETWEEN": [30, 10]}, {}),
    ({"title LIKE": "article #%"}, {}),
    ({"title NOT LIKE": "%#1"}, {}),
    ({"views >=": 10, "status": "published"}, {}),
    ({}, {"fields": ["id", "title"], "limit": 2, "offset": 1}),
    ({}, {"order": {"views": "DESC"}, "limit": 3}),
    ({}, {"order": "author_id"}),
    ({}, {"order": "author_id DESC"}),
    ({}, {"order": ["status DESC", "id DESC"]}),
]


def with_default_order(options: dict) -> dict:
    return {"order": "id", **options}


@pytest.mark.parametrize(("criteria", "options"), QUERIES)
class TestEquivalence:
    def test_read(self, memory_source, sql_source, criteria, options):
        query = QueryObject(criteria, with_default_order(options))
        assert memory_source.read("articles", query).to_dicts() == sql_source.read("articles", query).to_dicts()

    def test_count(self, memory_source, sql_source, criteria, options):
        query = QueryObject(criteria, options)
        assert memory_source.count("articles", query) == sql_source.count("articles", query)


NULL_LISTS = [
    {"author_id IN": [2000, None]},
    {"author_id NOT IN": [2000, None]},
    {"views BETWEEN": [None, 30]},
    {"views NOT BETWEEN": [10, None]},
]


@pytest.mark.parametrize("criteria", NULL_LISTS)
class TestNullInValueLists:
    def test_read_rejected_by_both(self, memory_source, sql_source, criteria):
        for source in (memory_source, sql_source):
            with pytest.raises(CriteriaError, match="null provided"):
                source.read("articles", QueryObject(criteria))

    def test_count_rejected_by_both(self, memory_source, sql_source, criteria):
        for source in (memory_source, sql_source):
            with pytest.raises(CriteriaError, match="null provided"):
                source.count("articles", QueryObject(criteria))


class TestWriteEquivalence:
    def test_bounded_update(self, memory_source, sql_source):
        query = QueryObject({"views >": 5}, {"order": {"views": "DESC"}, "limit": 2, "offset": 1})
        assert memory_source.update("articles", query, {"status": "hot"}) == sql_source.update(
            "articles", query, {"status": "hot"}
        )

        everything = QueryObject(options={"order": "id"})
        assert memory_source.read("articles", everything).to_dicts() == sql_source.read("articles", everything).to_dicts()

    def test_bounded_delete(self, memory_source, sql_source):
        query = QueryObject({"status !=": "draft"}, {"order": "id", "limit": 2})
        assert memory_source.delete("articles", query) == sql_source.delete("articles", query) == 2

        everything = QueryObject(options={"order": "id", "fields": ["id"]})
        assert memory_source.read("articles", everything).to_dicts() == sql_source.read("articles", everything).to_dicts()
