"""Query builder and execution for Model classes.

This module provides a fluent Query API accumulating filters, ordering,
grouping, selected fields, eager-loaded relations, pagination and global
scopes. Terminal operations (``get``, ``first``, ``find``, ``paginate``...)
compile the accumulated state into a request payload, send it through the
context's Api and hydrate the response into model instances.

Every builder method mutates the query and returns it:

    Category.q(context).where("active", True).order_by("name").take(10).get()
"""

from __future__ import annotations

import copy
import logging
import math
from collections.abc import Mapping
from typing import Any, Iterable, Literal, Optional

from pydantic import BaseModel, Field

from .compiler import MAX_RESULTS, compile_query
from .exceptions import (
    EntityNotFoundError,
    InvalidPredicateError,
    InvalidSelectError,
    MissingApiError,
)
from .predicates import (
    NULL_COMPARABLE_OPERATORS,
    OPERATORS,
    AnyPredicate,
    Comparison,
    Equality,
    InList,
    NullCheck,
    Predicate,
    RawSql,
    RelationExistence,
)
from .scopes import Scope, ScopeLike, SoftDeleteMode, SoftDeletingScope, as_scope
from .utils.naming import snake
from .utils.serialize import canonicalize_datetime, normalize_filter_value, serialize

logger = logging.getLogger("apiwrapper")

_UNSET: Any = object()


class OrderBy(BaseModel):
    """One ORDER BY entry."""

    column: str
    direction: Literal["ASC", "DESC"] = "ASC"


class Page(BaseModel):
    """One page of results, with the pagination numbers reported by the API."""

    model_config = {"arbitrary_types_allowed": True}

    data: list[Any] = Field(default_factory=list)
    total: Optional[int] = None
    per_page: Optional[int] = None
    current_page: Optional[int] = None
    last_page: Optional[int] = None
    options: dict[str, Any] = Field(default_factory=dict)


def _flatten(values: tuple) -> list:
    """Allow both ``f("a", "b")`` and ``f(["a", "b"])``."""
    if len(values) == 1 and isinstance(values[0], (list, tuple)):
        return list(values[0])
    return list(values)


class Query(BaseModel):
    """Fluent query builder for a Model.

    State is append-only predicates plus the scalar settings below; it is only
    turned into a payload by ``get_query()``, which does not modify it.
    """

    model_config = {"arbitrary_types_allowed": True}

    model: type
    """The Model class this query targets."""
    context: Optional[Any] = None
    """Context providing the Api; required by terminal operations only."""
    strict_grouping: bool = True
    """Validate group-by consistency when compiling."""
    filters: list[AnyPredicate] = Field(default_factory=list)
    """Predicates, in insertion order."""
    order_bys: list[OrderBy] = Field(default_factory=list)
    grouping: list[str] = Field(default_factory=list)
    selected_fields: list[str] = Field(default_factory=list)
    """Output columns; empty means all of them."""
    select_raw_expression: Optional[str] = None
    columns: list[str] = Field(default_factory=list)
    """Columns requested by the terminal call (``get(columns)``)."""
    relations: list[str] = Field(default_factory=list)
    """Relations to eager load."""
    limit_value: Optional[int] = None
    """Optional LIMIT (stored to avoid shadowing the limit() method)."""
    page: Optional[int] = None
    per_page: Optional[int] = None
    soft_delete: SoftDeleteMode = SoftDeleteMode.EXCLUDED
    global_scopes: dict[str, Scope] = Field(default_factory=dict)
    """Global scopes by identifier, in registration order."""
    removed_scopes: set[str] = Field(default_factory=set)
    invalid_null_query: bool = False
    """Set when a lookup received None where a value is required: execution returns nothing."""

    @property
    def fields(self) -> list[str]:
        return self.selected_fields

    def __getattr__(self, name: str) -> Any:
        """Dispatch ``query.<name>(...)`` to the model's ``scope_<name>``."""
        if name.startswith("_"):
            return super().__getattr__(name)
        model = self.__dict__.get("model")
        method = getattr(model, f"scope_{snake(name)}", None) if model is not None else None
        if method is None:
            raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

        def call(*args, **kwargs):
            return self.call_scope(method, *args, **kwargs)

        return call

    def clone(self) -> "Query":
        """Return an independent copy of this query."""
        changes = {
            name: copy.copy(value)
            for name, value in self.__dict__.items()
            if isinstance(value, (list, dict, set))
        }
        return self.model_copy(update=changes)

    # --- filters ---

    def where(self, column: Any, operator: Any = _UNSET, value: Any = _UNSET,
              boolean: Literal["and", "or"] = "and") -> "Query":
        """Add a filter.

        - ``where({"a": 1, "b": None})``: equalities, values spelled for the query
          string (booleans as "true"/"false", None as "null").
        - ``where("a", 1)``: equality comparison.
        - ``where("a", ">", 1)``: comparison with an explicit operator.

        None may only be compared with ``=``, ``<>`` and ``!=``; it is sent as "null".

        Raises:
            InvalidPredicateError: for unknown operators, None with another
                operator, a missing value or a column that is not a string.
        """
        if isinstance(column, Mapping):
            for key, item in normalize_filter_value(dict(column)).items():
                self.filters.append(Equality(column=key, value=item))
            return self
        if callable(column):
            raise InvalidPredicateError("Nested closures cannot be sent to the API; pass predicates instead")
        if not isinstance(column, str):
            raise InvalidPredicateError(f"Column names must be strings, got {column!r}")
        if value is _UNSET:
            if operator is _UNSET:
                raise InvalidPredicateError(f"A value is required to filter on '{column}'")
            operator, value = "=", operator
        if not isinstance(operator, str) or operator.lower() not in OPERATORS:
            raise InvalidPredicateError(f"Illegal operator: {operator!r}")
        operator = operator.lower()
        if value is None:
            if operator not in NULL_COMPARABLE_OPERATORS:
                raise InvalidPredicateError(
                    f"Illegal operator and value combination: '{operator}' cannot be compared with null"
                )
            value = "null"
        elif isinstance(value, (list, tuple, set)):
            value = [canonicalize_datetime(item) for item in serialize(value)]
        else:
            value = canonicalize_datetime(serialize(value))
        self.filters.append(Comparison(column=column, operator=operator, value=value, boolean=boolean))
        return self

    def or_where(self, column: Any, operator: Any = _UNSET, value: Any = _UNSET) -> "Query":
        """Same as where(), joined with OR."""
        return self.where(column, operator, value, boolean="or")

    def where_raw(self, expression: str, boolean: Literal["and", "or"] = "and") -> "Query":
        """Add a raw expression, passed to the API verbatim."""
        self.filters.append(RawSql(expression=expression, boolean=boolean))
        return self

    def where_null(self, column: str) -> "Query":
        self.filters.append(NullCheck(column=column, is_null=True))
        return self

    def where_not_null(self, column: str) -> "Query":
        self.filters.append(NullCheck(column=column, is_null=False))
        return self

    def where_in(self, column: str, values: Optional[Iterable[Any]], negated: bool = False) -> "Query":
        """Add ``column IN values``; None values make the query return nothing."""
        if values is None:
            self.invalid_null_query = True
            return self
        self.filters.append(InList(column=column, values=tuple(serialize(list(values))), negated=negated))
        return self

    def where_not_in(self, column: str, values: Optional[Iterable[Any]]) -> "Query":
        return self.where_in(column, values, negated=True)

    def _resolve_constraints(self, constraints: Any) -> tuple[Predicate, ...]:
        if constraints is None:
            return ()
        if callable(constraints) and not isinstance(constraints, (Query, Predicate)):
            raise InvalidPredicateError(
                "Callbacks cannot be sent to the API; pass predicates, a mapping or a Query instead"
            )
        if isinstance(constraints, Query):
            return tuple(constraints.filters)
        if isinstance(constraints, Mapping):
            return tuple(
                Equality(column=key, value=value)
                for key, value in normalize_filter_value(dict(constraints)).items()
            )
        if isinstance(constraints, Predicate):
            return (constraints,)
        resolved = tuple(constraints)
        for constraint in resolved:
            if not isinstance(constraint, Predicate):
                raise InvalidPredicateError(f"Not a predicate: {constraint!r}")
        return resolved

    def _where_relation(self, relation: str, constraints: Any, negated: bool) -> "Query":
        resolved = self._resolve_constraints(constraints)
        descriptor = self.model.get_relation_descriptor(relation)
        if descriptor is not None and descriptor.is_remote:
            logger.debug("Relation filter on '%s' dropped: %s.%s is served by another API",
                         relation, self.model.__name__, relation)
            return self
        self.filters.append(RelationExistence(relation=relation, negated=negated, constraints=resolved))
        return self

    def where_has(self, relation: str, constraints: Any = None) -> "Query":
        """Keep rows having related rows (matching constraints, when given).

        ``constraints`` may be predicates, a mapping of equalities, or a Query
        whose filters are used. Relations declared with
        ``RelationBacking.REMOTE`` are ignored.
        """
        return self._where_relation(relation, constraints, negated=False)

    def where_doesnt_have(self, relation: str, constraints: Any = None) -> "Query":
        """Keep rows without related rows (matching constraints, when given)."""
        return self._where_relation(relation, constraints, negated=True)

    # --- selection, ordering, grouping ---

    def select(self, *columns: str) -> "Query":
        """Restrict the returned fields.

        Raises:
            InvalidSelectError: if grouping is active and a column is not grouped.
        """
        columns = _flatten(columns)
        if self.grouping:
            for column in columns:
                if column not in self.grouping:
                    raise InvalidSelectError(
                        f"Cannot select field '{column}' without grouping by it when a group by clause is used."
                    )
        for column in columns:
            if column not in self.selected_fields:
                self.selected_fields.append(column)
        return self

    def select_raw(self, expression: str) -> "Query":
        self.select_raw_expression = expression
        return self

    def group_by(self, *columns: str) -> "Query":
        for column in _flatten(columns):
            if column not in self.grouping:
                self.grouping.append(column)
        return self

    def order_by(self, column: str, direction: str = "asc") -> "Query":
        direction = "ASC" if direction.upper() == "ASC" else "DESC"
        self.order_bys.append(OrderBy(column=column, direction=direction))
        return self

    def latest(self, column: str = "created_at") -> "Query":
        return self.order_by(column, "desc")

    def oldest(self, column: str = "created_at") -> "Query":
        return self.order_by(column, "asc")

    def with_(self, *relations: str) -> "Query":
        """Eager load relations (``with`` is a keyword)."""
        for relation in _flatten(relations):
            if relation not in self.relations:
                self.relations.append(relation)
        return self

    # --- limits ---

    def limit(self, value: Optional[int]) -> "Query":
        """Set LIMIT; 0 asks for as many rows as allowed, None removes it."""
        if value is not None and value < 0:
            raise ValueError(f"limit must be non-negative, got {value}")
        self.limit_value = value
        return self

    def take(self, value: Optional[int]) -> "Query":
        return self.limit(value)

    def for_page(self, page: int, per_page: int = 15) -> "Query":
        self.filters.append(Equality(column="page", value=page))
        return self.take(per_page)

    # --- soft delete ---

    def _ensure_soft_delete(self) -> None:
        if not self.model.uses_soft_delete():
            raise NotImplementedError(f"{self.model.__name__} does not use soft delete")

    def with_trashed(self) -> "Query":
        """Include soft-deleted rows."""
        self._ensure_soft_delete()
        self.soft_delete = SoftDeleteMode.INCLUDED
        return self

    def without_trashed(self) -> "Query":
        """Hide soft-deleted rows, re-attaching the soft deleting scope if it was removed."""
        self._ensure_soft_delete()
        self.soft_delete = SoftDeleteMode.EXCLUDED
        if SoftDeletingScope.identifier in self.global_scopes:
            self.removed_scopes.discard(SoftDeletingScope.identifier)
        else:
            self.with_global_scope(SoftDeletingScope.identifier, SoftDeletingScope())
        return self

    def only_trashed(self) -> "Query":
        """Return soft-deleted rows only."""
        self._ensure_soft_delete()
        self.soft_delete = SoftDeleteMode.ONLY_TRASHED
        return self

    def set_soft_delete(self, soft_delete: bool = True) -> "Query":
        """True hides soft-deleted rows, False includes them."""
        return self.without_trashed() if soft_delete else self.with_trashed()

    def get_soft_delete(self) -> SoftDeleteMode:
        return self.soft_delete

    # --- scopes ---

    def with_global_scope(self, identifier: str, scope: ScopeLike) -> "Query":
        """Attach a global scope and run its ``extend`` hook."""
        scope = as_scope(scope)
        self.global_scopes[identifier] = scope
        self.removed_scopes.discard(identifier)
        scope.extend(self)
        return self

    def without_global_scope(self, identifier: str) -> "Query":
        self.removed_scopes.add(identifier)
        return self

    def without_global_scopes(self, *identifiers: str) -> "Query":
        """Remove the given global scopes, or all of them when none is given."""
        self.removed_scopes.update(identifiers or self.global_scopes.keys())
        return self

    def get_removed_scopes(self) -> set[str]:
        return set(self.removed_scopes)

    def call_scope(self, method, *parameters, **kwargs) -> "Query":
        result = method(self, *parameters, **kwargs)
        return self if result is None else result

    def scopes(self, scopes: Any) -> "Query":
        """Apply model scopes: ``{"name": params}`` or a list of names.

        ``scope_<name>(query, *params)`` is looked up on the model class.
        """
        if isinstance(scopes, str):
            scopes = [scopes]
        if isinstance(scopes, Mapping):
            items = list(scopes.items())
        else:
            items = [(name, ()) for name in scopes]
        query = self
        for name, parameters in items:
            method = getattr(self.model, f"scope_{snake(name)}", None)
            if method is None:
                raise AttributeError(f"{self.model.__name__} has no scope named '{name}'")
            if not isinstance(parameters, (list, tuple)):
                parameters = (parameters,)
            query = query.call_scope(method, *parameters)
        return query

    # --- compilation ---

    def get_query(self) -> dict[str, Any]:
        """Return the request payload for the current state (does not modify it)."""
        return compile_query(self)

    def to_payload(self) -> dict[str, Any]:
        return self.get_query()

    # --- execution ---

    def _api(self):
        if self.context is None:
            raise MissingApiError(self.model)
        return self.context.get_api()

    def _use_cache(self) -> Optional[bool]:
        return getattr(self.model, "_USE_CACHE", None)

    def raw(self) -> Any:
        """Send the list read and return the decoded response, unhydrated.

        Not-found answers are logged and read as an empty list.
        """
        if self.invalid_null_query:
            return []
        payload = self.get_query()
        api = self._api()
        try:
            return api.find_all(self.model.get_entities(), payload, use_cache=self._use_cache())
        except EntityNotFoundError as error:
            logger.error("%s", error)
            return []

    def get(self, columns: Iterable[str] = ("*",)) -> list:
        """Execute the query and return the hydrated models."""
        if self.invalid_null_query:
            return []
        self.columns = list(columns)
        return self.model.hydrate_many(self.raw(), context=self.context)

    def first(self, columns: Iterable[str] = ("*",)):
        """Return the first matching model, or None."""
        results = self.take(1).get(columns)
        return results[0] if results else None

    def first_or_fail(self, columns: Iterable[str] = ("*",)):
        result = self.first(columns)
        if result is None:
            raise EntityNotFoundError(message=f"No {self.model.get_entity()} matches the query")
        return result

    def find(self, field: Any, columns: Iterable[str] = ("*",), value: Any = None):
        """Find by primary key, by a field value, or by a mapping of values.

        - ``find({"email": e})``: list of matching models.
        - ``find([1, 2, 3])``: list of models with these primary keys.
        - ``find("email", value=e)``: first model with that value, or None.
        - ``find(3)``: the model with that primary key, or None.

        ``find(None)`` returns None without sending anything.
        """
        if field is None:
            return None
        try:
            return self.find_or_fail(field, columns, value)
        except EntityNotFoundError:
            return None

    def find_or_fail(self, field: Any, columns: Iterable[str] = ("*",), value: Any = None):
        """Same as find(), raising EntityNotFoundError when nothing matches a single lookup."""
        if isinstance(field, Mapping):
            if any(item is None for item in field.values()):
                self.invalid_null_query = True
            return self.where(field).get(columns)
        if isinstance(field, (list, tuple, set)):
            return self.where_in(self.model._PRIMARY_KEY, list(field)).get(columns)
        if value is not None:
            result = self.where(field, value).first(columns)
            if result is None:
                raise EntityNotFoundError(message=f"No {self.model.get_entity()} with {field} = {value}")
            return result
        if field is None or self.invalid_null_query:
            raise EntityNotFoundError(message=f"Cannot find {self.model.get_entity()} without an id")
        self.columns = list(columns)
        payload = self.get_query()
        data = self._api().find_one(self.model.get_entity(), field, payload, use_cache=self._use_cache())
        instance = self.model.hydrate(data, context=self.context)
        if instance is None:
            raise EntityNotFoundError(message=f"{self.model.get_entity()} {field} not found")
        return instance

    def all(self) -> list:
        """Return every matching model, up to MAX_RESULTS."""
        return self.take(MAX_RESULTS).get()

    def paginate(self, per_page: Optional[int] = None, page: int = 1) -> Page:
        """Return one page; numbers come from the response ``meta`` when present."""
        per_page = per_page or self.model.get_per_page()
        self.limit(per_page)
        self.page = page
        self.per_page = per_page
        self.filters.append(Equality(column="page", value=page))

        response = self.raw()
        meta = response.get("meta") if isinstance(response, dict) else None
        meta = dict(meta or {})
        total = meta.get("total")
        reported_per_page = meta.get("per_page", per_page)
        last_page = meta.get("last_page")
        if last_page is None and total is not None and reported_per_page:
            last_page = max(1, math.ceil(total / reported_per_page))
        return Page(
            data=self.model.hydrate_many(response, context=self.context),
            total=total,
            per_page=reported_per_page,
            current_page=meta.get("current_page", page),
            last_page=last_page,
            options=meta,
        )

    def count(self) -> int:
        """Number of matching models (from a full list read)."""
        return len(self.get())


__all__ = ["OrderBy", "Page", "Query"]
