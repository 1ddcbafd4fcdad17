"""Tests for apiwrapper.scopes."""

import pytest

from apiwrapper.scopes import (
    CallableScope,
    Scope,
    ScopeRegistry,
    SoftDeleteMode,
    SoftDeletingScope,
    as_scope,
)

from tests.helpers import Article, Category


class TestScope:
    """Test the scope classes."""

    def test_base_scope_is_abstract(self):
        with pytest.raises(NotImplementedError):
            Scope().apply(Category.q(), Category)

    def test_callable_scope(self):
        scope = as_scope(lambda query: {"tenant": 1})
        assert isinstance(scope, CallableScope)
        assert scope.apply(Category.q(), Category) == {"tenant": 1}

    def test_as_scope_keeps_scopes(self):
        scope = SoftDeletingScope()
        assert as_scope(scope) is scope

    def test_as_scope_rejects_other_values(self):
        with pytest.raises(TypeError):
            as_scope("soft_deleting")

    @pytest.mark.parametrize("mode, fragment", [
        (SoftDeleteMode.EXCLUDED, {"is_null": ["deleted_at"]}),
        (SoftDeleteMode.ONLY_TRASHED, {"is_not_null": ["deleted_at"]}),
        (SoftDeleteMode.INCLUDED, None),
    ])
    def test_soft_deleting_scope(self, mode, fragment):
        query = Article.q()
        query.soft_delete = mode
        assert SoftDeletingScope().apply(query, Article) == fragment


class TestScopeRegistry:
    """Test scopes registered per model class."""

    def test_defaults_come_first(self):
        registry = ScopeRegistry().add(Article, "tenant", lambda query: {"tenant": 1})
        assert list(registry.for_model(Article)) == ["soft_deleting", "tenant"]

    def test_base_class_scopes_apply_to_subclasses(self):
        class PinnedArticle(Article):
            pass

        registry = ScopeRegistry().add(Article, "tenant", lambda query: {"tenant": 1})
        assert registry.has(PinnedArticle, "tenant")
        assert not registry.has(Category, "tenant")

    def test_remove_and_clear(self):
        registry = ScopeRegistry().add(Category, "a", lambda query: None)
        registry.add(Category, "b", lambda query: None)
        registry.remove(Category, "a")
        assert list(registry.for_model(Category)) == ["b"]
        registry.remove(Article, "a")
        registry.clear()
        assert registry.for_model(Category) == {}


class TestContextScopes:
    """Test global scopes registered on a Context."""

    def test_query_receives_context_scopes(self, context):
        context.add_global_scope(Category, "tenant", lambda query: {"tenant_id": 4})
        assert Category.q(context).get_query() == {"tenant_id": 4}
        assert context.query(Category).get_query() == {"tenant_id": 4}

    def test_removed_context_scope(self, context):
        context.add_global_scope(Category, "tenant", lambda query: {"tenant_id": 4})
        context.remove_global_scope(Category, "tenant")
        assert Category.q(context).get_query() == {}

    def test_scope_fragments_reach_the_request(self, server, context):
        server.add("POST", "/articles/get", [])
        context.add_global_scope(Article, "tenant", lambda query: {"tenant_id": 4, "is_null": ["archived_at"]})
        Article.q(context).where_null("published_at").get()
        assert server.last_json() == {
            "is_null": ["archived_at", "deleted_at", "published_at"],
            "tenant_id": 4,
        }
