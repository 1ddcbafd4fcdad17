"""Global query scopes.

A scope contributes a payload fragment to every query of a model. Scopes are
registered either at class definition (``with_soft_delete=True`` installs the
soft deleting scope) or on a ``ScopeRegistry`` owned by a Context.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

if TYPE_CHECKING:
    from .query import Query


class SoftDeleteMode(enum.Enum):
    """Which rows a soft-deleting model query returns."""

    EXCLUDED = "excluded"
    INCLUDED = "included"
    ONLY_TRASHED = "only_trashed"


class Scope:
    """Base class for global scopes."""

    def apply(self, query: "Query", model_class: type) -> Optional[dict[str, Any]]:
        """Return the payload fragment this scope adds to query, or None."""
        raise NotImplementedError("Subclasses must implement `apply`")

    def extend(self, query: "Query") -> None:
        """Called once when the scope is attached to query."""


class CallableScope(Scope):
    """Adapter for plain ``f(query) -> dict | None`` callables."""

    def __init__(self, function: Callable[["Query"], Optional[dict[str, Any]]]):
        self.function = function

    def apply(self, query, model_class):
        return self.function(query)

    def __repr__(self):
        return f"CallableScope({self.function!r})"


class SoftDeletingScope(Scope):
    """Hide soft-deleted rows unless the query asked for them."""

    identifier = "soft_deleting"

    def apply(self, query, model_class):
        column = model_class.get_deleted_at_column()
        mode = query.get_soft_delete()
        if mode is SoftDeleteMode.EXCLUDED:
            return {"is_null": [column]}
        if mode is SoftDeleteMode.ONLY_TRASHED:
            return {"is_not_null": [column]}
        return None


ScopeLike = Union[Scope, Callable[["Query"], Optional[dict[str, Any]]]]


def as_scope(scope: ScopeLike) -> Scope:
    """Return scope itself, or wrap a plain callable in a CallableScope."""
    if isinstance(scope, Scope):
        return scope
    if callable(scope):
        return CallableScope(scope)
    raise TypeError(f"A scope must be a Scope instance or a callable, got {type(scope)}")


class ScopeRegistry:
    """Global scopes per model class.

    Scopes declared on a class (``model_class.default_scopes()``) come first,
    then the ones added here for the class or any of its base classes.
    """

    def __init__(self):
        self._scopes: dict[type, dict[str, Scope]] = {}

    def add(self, model_class: type, identifier: str, scope: ScopeLike) -> "ScopeRegistry":
        self._scopes.setdefault(model_class, {})[identifier] = as_scope(scope)
        return self

    def remove(self, model_class: type, identifier: str) -> "ScopeRegistry":
        self._scopes.get(model_class, {}).pop(identifier, None)
        return self

    def has(self, model_class: type, identifier: str) -> bool:
        return identifier in self.for_model(model_class)

    def for_model(self, model_class: type) -> dict[str, Scope]:
        """Return identifier -> scope for model_class, in registration order."""
        result: dict[str, Scope] = {}
        default_scopes = getattr(model_class, "default_scopes", None)
        if default_scopes is not None:
            result.update(default_scopes())
        for base in reversed(model_class.__mro__):
            result.update(self._scopes.get(base, {}))
        return result

    def clear(self) -> None:
        self._scopes.clear()


__all__ = [
    "SoftDeleteMode",
    "Scope",
    "CallableScope",
    "SoftDeletingScope",
    "ScopeLike",
    "as_scope",
    "ScopeRegistry",
]
