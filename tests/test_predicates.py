"""Tests for apiwrapper.predicates: payload keys, wire forms and grouping."""

import pytest
from pydantic import TypeAdapter, ValidationError

from apiwrapper.predicates import (
    AnyPredicate,
    Comparison,
    Equality,
    InList,
    NullCheck,
    RawSql,
    RelationExistence,
    group_predicates,
)


class TestPayloads:
    """Test each variant's payload key and wire form."""

    def test_comparison(self):
        predicate = Comparison(column="age", operator=">", value=3, boolean="or")
        assert predicate.payload_key == "where"
        assert predicate.payload == {"column": "age", "operator": ">", "value": 3, "boolean": "or"}

    def test_raw(self):
        predicate = RawSql(expression="a > b")
        assert predicate.payload_key == "where_raw"
        assert predicate.payload == {"type": "raw", "sql": "a > b", "boolean": "and"}

    def test_null_checks(self):
        assert NullCheck(column="x").payload_key == "is_null"
        assert NullCheck(column="x", is_null=False).payload_key == "is_not_null"
        assert NullCheck(column="x").payload == "x"

    def test_in_list(self):
        assert InList(column="id", values=(1, 2)).payload == {"type": "whereIn", "column": "id", "values": [1, 2]}
        assert InList(column="id", values=(3,), negated=True).payload["type"] == "whereNotIn"

    def test_relation_existence_with_constraints(self):
        predicate = RelationExistence(
            relation="comments",
            constraints=(Equality(column="approved", value="true"), NullCheck(column="deleted_at")),
        )
        assert predicate.payload_key == "where_has"
        assert predicate.payload == {
            "relation": "comments",
            "constraints": {"approved": "true", "is_null": ["deleted_at"]},
        }
        assert RelationExistence(relation="comments", negated=True).payload_key == "where_doesnt_have"

    def test_predicates_are_frozen(self):
        predicate = Equality(column="a", value=1)
        with pytest.raises(ValidationError):
            predicate.value = 2


class TestDiscriminatedUnion:
    """Test that predicates round-trip through their tagged union."""

    def test_validate_from_dict(self):
        adapter = TypeAdapter(AnyPredicate)
        predicate = adapter.validate_python({"kind": "in_list", "column": "id", "values": [1, 2]})
        assert isinstance(predicate, InList)
        assert predicate.values == (1, 2)

    def test_unknown_kind(self):
        with pytest.raises(ValidationError):
            TypeAdapter(AnyPredicate).validate_python({"kind": "nope", "column": "id"})


def test_group_predicates_keeps_order_per_key():
    predicates = [
        Comparison(column="a", value=1),
        Equality(column="page", value=2),
        NullCheck(column="b"),
        Comparison(column="c", value=3, boolean="or"),
        NullCheck(column="d"),
    ]
    grouped = group_predicates(predicates)
    assert [w["column"] for w in grouped["where"]] == ["a", "c"]
    assert grouped["is_null"] == ["b", "d"]
    assert grouped["page"] == 2
