"""Compilation of a Query's accumulated state into the request payload.

``compile_query`` never mutates the query: compiling twice without changing
the query in between gives equal payloads. Steps run in a fixed order:

1. order-bys (the last one wins)
2. group-by, validated when strict grouping is enabled
3. relation existence predicates with their constraints
4. selected fields and raw select
5. eager-loaded relations
6. global scope fragments, skipping removed scopes
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .exceptions import GroupByValidationError
from .predicates import RelationExistence, group_predicates
from .scopes import SoftDeleteMode

if TYPE_CHECKING:
    from .query import Query

logger = logging.getLogger("apiwrapper")

MAX_RESULTS = 9999
"""Upper bound for ``limit``; ``limit(0)`` asks for that many rows."""


def validate_grouping(query: "Query") -> None:
    """Check that grouping, selected fields and ordering are consistent.

    Raises:
        GroupByValidationError: when no field is selected, a grouped column is
            not selected, or an order-by column is neither grouped nor selected.
    """
    if not query.fields:
        raise GroupByValidationError(
            "At least one field must be selected when a group by clause is used."
        )
    for column in query.grouping:
        if column not in query.fields:
            raise GroupByValidationError(
                f"Grouped column '{column}' must be selected when a group by clause is used."
            )
    allowed = set(query.grouping) | set(query.fields)
    for order in query.order_bys:
        if order.column not in allowed:
            raise GroupByValidationError(
                f"Cannot order by '{order.column}': it is neither grouped nor selected."
            )


def compile_limit(limit: int) -> int:
    """``0`` means as many rows as allowed; larger values are clamped."""
    if limit == 0 or limit > MAX_RESULTS:
        return MAX_RESULTS
    return limit


OPPOSITE_KEYS = {"is_null": "is_not_null", "is_not_null": "is_null"}
"""List keys whose entries contradict each other for the same column."""


def merge_fragment(payload: dict[str, Any], fragment: dict[str, Any]) -> None:
    """Merge a scope fragment into payload, in place.

    Lists are concatenated scope-first and de-duplicated; for any other value
    the key already present in payload wins. A column the local state checks
    with ``is_not_null`` is dropped from a scope ``is_null`` list, and the
    other way round.
    """
    for key, value in fragment.items():
        if key in OPPOSITE_KEYS and isinstance(value, list):
            local = payload.get(OPPOSITE_KEYS[key]) or []
            value = [item for item in value if item not in local]
            if not value:
                continue
        if key not in payload:
            payload[key] = list(value) if isinstance(value, list) else value
            continue
        current = payload[key]
        if isinstance(current, list) and isinstance(value, list):
            merged = []
            for item in value + current:
                if item not in merged:
                    merged.append(item)
            payload[key] = merged


def compile_query(query: "Query") -> dict[str, Any]:
    """Return the request payload for query."""
    payload: dict[str, Any] = {}

    plain = [p for p in query.filters if not isinstance(p, RelationExistence)]
    relational = [p for p in query.filters if isinstance(p, RelationExistence)]

    if query.order_bys:
        last = query.order_bys[-1]
        payload["order_by"] = {"column": last.column, "direction": last.direction}

    if query.grouping:
        if query.strict_grouping:
            validate_grouping(query)
        payload["group_by"] = list(query.grouping)

    for key, value in group_predicates(relational).items():
        payload[key] = value

    if query.fields:
        payload["fields"] = list(query.fields)
    if query.select_raw_expression:
        payload["select_raw"] = query.select_raw_expression

    if query.relations:
        payload["with"] = list(query.relations)

    # equalities never override a structural key
    for key, value in group_predicates(plain).items():
        if key in payload:
            logger.debug("Equality on '%s' ignored: the key is reserved", key)
            continue
        payload[key] = value

    if query.columns and list(query.columns) != ["*"]:
        payload["columns"] = list(query.columns)
    if query.limit_value is not None:
        payload["limit"] = compile_limit(query.limit_value)
    if query.page is not None:
        payload["page"] = query.page
    if query.per_page is not None:
        payload["per_page"] = query.per_page

    if query.soft_delete is SoftDeleteMode.INCLUDED:
        payload["with_trashed"] = 1
    elif query.soft_delete is SoftDeleteMode.ONLY_TRASHED:
        payload["only_trashed"] = 1

    for identifier, scope in query.global_scopes.items():
        if identifier in query.removed_scopes:
            continue
        fragment = scope.apply(query, query.model)
        if fragment:
            merge_fragment(payload, fragment)

    return payload


__all__ = [
    "MAX_RESULTS",
    "validate_grouping",
    "compile_limit",
    "merge_fragment",
    "compile_query",
]
