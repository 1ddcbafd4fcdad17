"""Tests for apiwrapper.compiler: payload layout, limits, grouping validation and scope merging."""

import pytest

from apiwrapper.compiler import MAX_RESULTS, compile_limit, compile_query, merge_fragment
from apiwrapper.exceptions import GroupByValidationError
from apiwrapper.predicates import Equality

from tests.helpers import Article, Category


class TestLayout:
    """Test where each piece of state lands in the payload."""

    def test_empty_query(self):
        assert compile_query(Category.q()) == {}

    def test_last_order_by_wins(self):
        q = Category.q().order_by("name").order_by("id", "desc")
        assert compile_query(q)["order_by"] == {"column": "id", "direction": "DESC"}

    def test_where_order_and_connectives(self):
        q = Category.q().where("a", 1).or_where("b", ">", 2).where("c", "like", "%x%")
        assert compile_query(q)["where"] == [
            {"column": "a", "operator": "=", "value": 1, "boolean": "and"},
            {"column": "b", "operator": ">", "value": 2, "boolean": "or"},
            {"column": "c", "operator": "like", "value": "%x%", "boolean": "and"},
        ]

    def test_conditions_from_where_in(self):
        q = Category.q().where_in("x", [1, 2]).where_not_in("y", [3])
        assert compile_query(q)["conditions"] == [
            {"type": "whereIn", "column": "x", "values": [1, 2]},
            {"type": "whereNotIn", "column": "y", "values": [3]},
        ]

    def test_fields_raw_with_columns(self):
        q = Category.q().select("id", "name").select_raw("count(*) as total").with_("parent")
        q.columns = ["id"]
        payload = compile_query(q)
        assert payload["fields"] == ["id", "name"]
        assert payload["select_raw"] == "count(*) as total"
        assert payload["with"] == ["parent"]
        assert payload["columns"] == ["id"]

    def test_star_columns_are_omitted(self):
        q = Category.q()
        q.columns = ["*"]
        assert "columns" not in compile_query(q)

    def test_top_level_equalities(self):
        q = Category.q().where({"active": True, "parent_id": None})
        payload = compile_query(q)
        assert payload["active"] == "true"
        assert payload["parent_id"] == "null"

    def test_equality_does_not_override_structural_keys(self):
        q = Category.q().with_("parent")
        q.filters.append(Equality(column="with", value="x"))
        assert compile_query(q)["with"] == ["parent"]

    def test_compiling_is_idempotent(self):
        q = Article.q().where("a", 1).where_null("b").order_by("a").take(3)
        assert compile_query(q) == compile_query(q)
        assert len(q.filters) == 2


class TestLimit:
    """Test limit compilation."""

    def test_absent_limit_is_omitted(self):
        assert "limit" not in compile_query(Category.q())

    def test_zero_means_max(self):
        assert compile_limit(0) == MAX_RESULTS
        assert compile_query(Category.q().limit(0))["limit"] == MAX_RESULTS

    def test_clamped(self):
        assert compile_limit(MAX_RESULTS + 1) == MAX_RESULTS
        assert compile_limit(25) == 25


class TestGrouping:
    """Test strict group-by validation."""

    def test_group_by_requires_fields(self):
        q = Category.q().group_by("name")
        with pytest.raises(GroupByValidationError):
            compile_query(q)

    def test_grouped_columns_must_be_selected(self):
        q = Category.q().select("name").group_by("name", "active")
        with pytest.raises(GroupByValidationError, match="active"):
            compile_query(q)

    def test_order_by_must_be_grouped_or_selected(self):
        q = Category.q().group_by("name").select("name").order_by("id")
        with pytest.raises(GroupByValidationError, match="id"):
            compile_query(q)

    def test_valid_grouping(self):
        q = Category.q().group_by("name").select("name").order_by("name")
        payload = compile_query(q)
        assert payload["group_by"] == ["name"]
        assert payload["fields"] == ["name"]

    def test_lenient_grouping(self):
        q = Category.q().group_by("name")
        q.strict_grouping = False
        assert compile_query(q)["group_by"] == ["name"]


class TestScopes:
    """Test how global scope fragments are merged."""

    def test_soft_delete_default(self):
        assert compile_query(Article.q())["is_null"] == ["deleted_at"]

    def test_scope_lists_come_first_and_are_deduplicated(self):
        q = Article.q().where_null("published_at").where_null("deleted_at")
        assert compile_query(q)["is_null"] == ["deleted_at", "published_at"]

    def test_local_scalar_wins(self):
        q = Category.q().take(5).with_global_scope("small", lambda query: {"limit": 1, "tenant": 3})
        payload = compile_query(q)
        assert payload["limit"] == 5
        assert payload["tenant"] == 3

    def test_removed_scope_is_skipped(self):
        q = Article.q().without_global_scope("soft_deleting")
        assert "is_null" not in compile_query(q)

    def test_local_null_check_overrides_scope(self):
        payload = compile_query(Article.q().where_not_null("deleted_at"))
        assert payload == {"is_not_null": ["deleted_at"]}

    def test_local_is_null_overrides_only_trashed_scope(self):
        payload = compile_query(Article.q().only_trashed().where_null("deleted_at"))
        assert payload == {"is_null": ["deleted_at"], "only_trashed": 1}

    def test_merge_fragment_drops_contradicting_columns(self):
        payload = {"is_not_null": ["a"]}
        merge_fragment(payload, {"is_null": ["a", "b"]})
        assert payload == {"is_not_null": ["a"], "is_null": ["b"]}

    def test_merge_fragment(self):
        payload = {"is_null": ["a"], "limit": 2}
        merge_fragment(payload, {"is_null": ["b", "a"], "limit": 9, "x": [1]})
        assert payload == {"is_null": ["b", "a"], "limit": 2, "x": [1]}
