"""Tests for the generic query model."""

import pytest

from IndexBridge.conditions import (
    Condition,
    ConditionGroup,
    Conjunction,
    FacetRequest,
    Operator,
    SearchQuery,
    SortDirection,
)
from IndexBridge.errors import UnsupportedOperatorError


class TestOperator:
    """Closed operator set."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("=", Operator.EQUALS),
            ("<>", Operator.NOT_EQUALS),
            ("in", Operator.IN),
            ("not  in", Operator.NOT_IN),
            (" NOT IN ", Operator.NOT_IN),
            (Operator.IN, Operator.IN),
        ],
    )
    def test_parse(self, raw, expected):
        assert Operator.parse(raw) is expected

    @pytest.mark.parametrize("raw", ["LIKE", ">", "BETWEEN", ""])
    def test_unsupported_rejected(self, raw):
        with pytest.raises(UnsupportedOperatorError) as excinfo:
            Operator.parse(raw)
        assert excinfo.value.operator == raw

    def test_takes_list(self):
        assert Operator.IN.takes_list and Operator.NOT_IN.takes_list
        assert not Operator.EQUALS.takes_list


class TestCondition:
    """Leaf construction."""

    def test_unsupported_operator_rejected_at_construction(self):
        with pytest.raises(UnsupportedOperatorError):
            Condition("color", "red", "LIKE")

    def test_list_operator_wraps_scalar(self):
        assert Condition("color", "red", "IN").values == ("red",)

    def test_list_operator_keeps_order(self):
        assert Condition("color", ["red", "blue"], "NOT IN").value == ("red", "blue")

    def test_scalar_operator_rejects_list(self):
        with pytest.raises(ValueError):
            Condition("color", ["red", "blue"], "=")

    def test_requires_field(self):
        with pytest.raises(ValueError):
            Condition("", "x")


class TestConditionGroup:
    """Internal tree nodes."""

    def test_chaining(self):
        group = ConditionGroup("or").add_condition("a", 1).add_condition("b", [2, 3], "IN")
        assert group.conjunction is Conjunction.OR
        assert len(group.conditions) == 2

    def test_bad_conjunction(self):
        with pytest.raises(UnsupportedOperatorError):
            ConditionGroup("XOR")

    def test_bad_child(self):
        with pytest.raises(TypeError):
            ConditionGroup(conditions=["a = 1"])

    def test_is_empty(self):
        assert ConditionGroup().is_empty()
        assert ConditionGroup().add_group(ConditionGroup()).is_empty()
        assert not ConditionGroup().add_condition("a", 1).is_empty()


class TestSearchQuery:
    """Query normalisation."""

    @pytest.mark.parametrize("raw", ["DESC", "desc", "descending", SortDirection.DESC])
    def test_sort_direction_parse(self, raw):
        assert SortDirection.parse(raw) is SortDirection.DESC

    def test_bad_sort_direction(self):
        with pytest.raises(ValueError):
            SearchQuery(sorts={"title": "sideways"})

    def test_sorts_and_facets_normalised(self):
        query = SearchQuery(sorts={"title": "ASC"}, facets=[{"field": "color", "limit": 5}])
        assert query.sorts == {"title": SortDirection.ASC}
        assert query.facets == [FacetRequest("color", 5)]

    def test_add_sort_preserves_order(self):
        query = SearchQuery().add_sort("b", "asc").add_sort("a", "desc")
        assert list(query.sorts) == ["b", "a"]

    def test_negative_facet_limit(self):
        with pytest.raises(ValueError):
            FacetRequest("color", -1)
