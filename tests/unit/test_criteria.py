"""Tests for dataspine.criteria: key parsing, value validation and row matching."""

import pytest

from dataspine.criteria import (
    Criteria,
    Operator,
    Predicate,
    like_pattern,
    match,
    parse,
    parse_condition,
    split_key,
)
from dataspine.errors import CriteriaError, MissingFieldError, ValidationError


# =============================================================================
# Key splitting
# =============================================================================


class TestSplitKey:
    """Test field/operator splitting of criteria keys."""

    @pytest.mark.parametrize(
        ("key", "expected"),
        [
            ("id", ("id", None)),
            ("  id  ", ("id", None)),
            ("id =", ("id", Operator.EQ)),
            ("id !=", ("id", Operator.NEQ)),
            ("id <>", ("id", Operator.NEQ)),
            ("id >", ("id", Operator.GT)),
            ("id >=", ("id", Operator.GTE)),
            ("id <", ("id", Operator.LT)),
            ("id <=", ("id", Operator.LTE)),
            ("id IN", ("id", Operator.IN)),
            ("id NOT IN", ("id", Operator.NOT_IN)),
            ("views BETWEEN", ("views", Operator.BETWEEN)),
            ("views NOT BETWEEN", ("views", Operator.NOT_BETWEEN)),
            ("title LIKE", ("title", Operator.LIKE)),
            ("title not like", ("title", Operator.NOT_LIKE)),
            ("id   NOT   IN", ("id", Operator.NOT_IN)),
            ("authors.name", ("authors.name", None)),
        ],
    )
    def test_recognized_keys(self, key, expected):
        assert split_key(key) == expected

    @pytest.mark.parametrize("key", ["", "   ", "IN", ">", None, 42])
    def test_missing_field_name(self, key):
        with pytest.raises(CriteriaError, match="No key provided"):
            split_key(key)

    def test_unknown_operator(self):
        with pytest.raises(CriteriaError, match="Invalid expression `~`") as exc_info:
            split_key("id ~")
        assert exc_info.value.field == "id"

    def test_unknown_multi_word_operator(self):
        with pytest.raises(CriteriaError, match="Invalid expression `foo bar`"):
            split_key("id foo bar")

    def test_dangling_not(self):
        with pytest.raises(CriteriaError, match="Invalid expression `NOT`"):
            split_key("id NOT")


# =============================================================================
# Condition parsing
# =============================================================================


class TestParseCondition:
    """Test value-shape normalization and validation."""

    def test_plain_key_is_equality(self):
        assert parse_condition("status", "draft") == Predicate("status", Operator.EQ, "draft")

    def test_none_becomes_is_null(self):
        assert parse_condition("author_id", None).operator is Operator.IS_NULL
        assert parse_condition("author_id =", None).operator is Operator.IS_NULL

    def test_negated_none_becomes_is_not_null(self):
        assert parse_condition("author_id !=", None).operator is Operator.IS_NOT_NULL

    def test_list_value_becomes_in(self):
        predicate = parse_condition("id", [1, 2])
        assert predicate.operator is Operator.IN
        assert predicate.value == (1, 2)

    def test_negated_list_becomes_not_in(self):
        assert parse_condition("id !=", [1]).operator is Operator.NOT_IN

    def test_in_allows_empty_list(self):
        assert parse_condition("id IN", []).value == ()

    def test_in_requires_list(self):
        with pytest.raises(CriteriaError, match="expected an array"):
            parse_condition("id IN", 5)

    def test_in_rejects_object_elements(self):
        with pytest.raises(CriteriaError, match="object provided"):
            parse_condition("id IN", [1, {"x": 1}])

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("author_id IN", [2000, None]),
            ("author_id NOT IN", [2000, None]),
            ("author_id", [None]),
            ("author_id !=", [2000, None]),
            ("views BETWEEN", [None, 30]),
            ("views NOT BETWEEN", [10, None]),
        ],
    )
    def test_value_lists_reject_null(self, key, value):
        with pytest.raises(CriteriaError, match="null provided, use IS NULL instead") as exc_info:
            parse_condition(key, value)
        assert exc_info.value.field == key.split()[0]

    @pytest.mark.parametrize("value", [[1], [1, 2, 3], 5, "a"])
    def test_between_requires_two_values(self, value):
        with pytest.raises(CriteriaError, match="expected an array with two values"):
            parse_condition("views BETWEEN", value)

    def test_between_value_is_tuple(self):
        assert parse_condition("views NOT BETWEEN", [1, 9]).value == (1, 9)

    def test_arithmetic_rejects_list(self):
        with pytest.raises(CriteriaError, match="did not expect array"):
            parse_condition("id >", [1])

    def test_arithmetic_rejects_object(self):
        with pytest.raises(CriteriaError, match="expected a scalar value"):
            parse_condition("id >", object())

    def test_equality_rejects_mapping(self):
        with pytest.raises(CriteriaError, match="object provided"):
            parse_condition("id", {"a": 1})

    def test_like_rejects_none(self):
        with pytest.raises(CriteriaError):
            parse_condition("title LIKE", None)

    def test_criteria_error_is_validation_error(self):
        with pytest.raises(ValidationError):
            parse_condition("id >", [1])

    def test_parse_keeps_key_order(self):
        predicates = parse({"id >": 1, "status": "draft"})
        assert [p.field for p in predicates] == ["id", "status"]

    def test_parse_empty(self):
        assert parse(None) == []
        assert parse({}) == []


# =============================================================================
# Matching
# =============================================================================


class TestMatch:
    """Test evaluation of predicates against rows."""

    def test_greater_than_scenario(self):
        criteria = Criteria({"id >": 1000})
        rows = [{"id": 900}, {"id": 1000}, {"id": 1100}, {"id": 1200}]
        assert [row["id"] for row in rows if criteria.match(row)] == [1100, 1200]

    def test_conditions_are_anded(self):
        criteria = Criteria({"id >": 1, "status": "draft"})
        assert criteria.match({"id": 2, "status": "draft"})
        assert not criteria.match({"id": 2, "status": "published"})
        assert not criteria.match({"id": 1, "status": "draft"})

    def test_empty_criteria_matches_everything(self):
        assert Criteria().match({"anything": 1})
        assert Criteria({}).match({})

    def test_missing_field_raises(self):
        with pytest.raises(MissingFieldError, match="Data is missing key `status`") as exc_info:
            Criteria({"status": "draft"}).match({"id": 1})
        assert exc_info.value.field == "status"

    def test_equality_never_matches_null(self):
        assert not Criteria({"status": "draft"}).match({"status": None})
        assert not Criteria({"id >": 1}).match({"id": None})
        assert not Criteria({"id <=": 1}).match({"id": None})

    def test_not_equal_matches_null(self):
        assert Criteria({"status !=": "draft"}).match({"status": None})
        assert not Criteria({"status !=": "draft"}).match({"status": "draft"})

    def test_is_null(self):
        assert Criteria({"author_id": None}).match({"author_id": None})
        assert not Criteria({"author_id": None}).match({"author_id": 1})
        assert Criteria({"author_id !=": None}).match({"author_id": 1})

    @pytest.mark.parametrize("values", [[1, 2], [], [3], [1, 2, 3, 4]])
    def test_in_and_not_in_partition(self, values):
        column = [None, 1, 2, 3, 4]
        matched_in = {v for v in column if Criteria({"x IN": values}).match({"x": v})}
        matched_not_in = {v for v in column if Criteria({"x NOT IN": values}).match({"x": v})}
        assert matched_in.isdisjoint(matched_not_in)
        assert matched_in | matched_not_in == set(column)
        assert None in matched_not_in

    @pytest.mark.parametrize(("bounds", "expected"), [([5, 10], [5, 10]), ([10, 5], []), ([0, 0], [0])])
    def test_between_partition(self, bounds, expected):
        column = [None, 0, 5, 10, 15]
        between = [v for v in column if Criteria({"v BETWEEN": bounds}).match({"v": v})]
        not_between = [v for v in column if Criteria({"v NOT BETWEEN": bounds}).match({"v": v})]
        assert between == expected
        assert sorted(between + not_between, key=lambda v: (v is not None, v)) == column
        assert None in not_between

    def test_like_wildcards(self):
        assert Criteria({"title LIKE": "Art%"}).match({"title": "Article #1"})
        assert Criteria({"title LIKE": "_rticle%"}).match({"title": "Article #1"})
        assert Criteria({"title LIKE": "%#1"}).match({"title": "Article #1"})
        assert not Criteria({"title LIKE": "%#2"}).match({"title": "Article #1"})

    def test_like_is_case_insensitive(self):
        assert Criteria({"title LIKE": "article%"}).match({"title": "ARTICLE #1"})

    def test_like_escapes_regex_characters(self):
        assert not Criteria({"name LIKE": "a.c"}).match({"name": "abc"})
        assert Criteria({"name LIKE": "a.c"}).match({"name": "a.c"})

    def test_like_and_null(self):
        assert not Criteria({"title LIKE": "%"}).match({"title": None})
        assert Criteria({"title NOT LIKE": "%"}).match({"title": None})

    def test_like_pattern_is_anchored(self):
        assert like_pattern("abc").fullmatch("xabc") is None
        assert like_pattern("%abc").fullmatch("xabc") is not None

    def test_match_function_uses_predicates(self):
        assert match(parse({"id IN": [1, 2]}), {"id": 2})


class TestCriteria:
    """Test the Criteria wrapper."""

    def test_parse_errors_surface_in_constructor(self):
        with pytest.raises(CriteriaError):
            Criteria({"id ~": 1})

    def test_fields_and_len(self):
        criteria = Criteria({"id >": 1, "status": "draft"})
        assert criteria.fields() == ["id", "status"]
        assert len(criteria) == 2
