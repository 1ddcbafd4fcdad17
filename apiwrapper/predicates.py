"""Predicate variants accumulated by a Query.

Each predicate knows the payload key it is compiled under (``payload_key``)
and its wire form (``payload``), in the same way an SQL expression node knows
its ``sql``. ``Equality`` is the exception: it is merged at the top level of
the payload as ``{column: value}``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

OPERATORS: tuple[str, ...] = (
    "=", "<", ">", "<=", ">=", "<>", "!=", "<=>",
    "like", "like binary", "not like", "ilike",
    "&", "|", "^", "<<", ">>",
    "rlike", "regexp", "not regexp",
    "~", "~*", "!~", "!~*", "similar to",
    "not similar to", "not ilike", "~~*", "!~~*",
    "in", "not in",
)
"""Operators accepted by Query.where()."""

NULL_COMPARABLE_OPERATORS: tuple[str, ...] = ("=", "<>", "!=")
"""The only operators that may be compared against an explicit null."""

Boolean = Literal["and", "or"]


class Predicate(BaseModel):
    """Base type for all predicates; immutable once built."""

    model_config = ConfigDict(frozen=True)

    @property
    def payload_key(self) -> Optional[str]:
        """Key of the payload list this predicate is appended to."""
        raise NotImplementedError("Subclasses must implement `payload_key`")

    @property
    def payload(self) -> Any:
        """Wire form of this predicate."""
        raise NotImplementedError("Subclasses must implement `payload`")


class Equality(Predicate):
    """Literal equality, merged as a top-level ``{column: value}`` entry."""

    kind: Literal["equality"] = "equality"
    column: str
    value: Any

    @property
    def payload_key(self) -> Optional[str]:
        return None

    @property
    def payload(self) -> Any:
        return self.value


class Comparison(Predicate):
    """``column <operator> value`` joined to the previous predicates by ``boolean``."""

    kind: Literal["comparison"] = "comparison"
    column: str
    operator: str = "="
    value: Any = None
    boolean: Boolean = "and"

    @property
    def payload_key(self) -> str:
        return "where"

    @property
    def payload(self) -> dict[str, Any]:
        return {
            "column": self.column,
            "operator": self.operator,
            "value": self.value,
            "boolean": self.boolean,
        }


class RawSql(Predicate):
    """Raw expression passed through verbatim."""

    kind: Literal["raw"] = "raw"
    expression: str
    boolean: Boolean = "and"

    @property
    def payload_key(self) -> str:
        return "where_raw"

    @property
    def payload(self) -> dict[str, Any]:
        return {"type": "raw", "sql": self.expression, "boolean": self.boolean}


class NullCheck(Predicate):
    """``column IS NULL`` (or ``IS NOT NULL`` when ``is_null`` is False)."""

    kind: Literal["null_check"] = "null_check"
    column: str
    is_null: bool = True

    @property
    def payload_key(self) -> str:
        return "is_null" if self.is_null else "is_not_null"

    @property
    def payload(self) -> str:
        return self.column


class InList(Predicate):
    """``column IN (values)`` or, when negated, ``NOT IN``."""

    kind: Literal["in_list"] = "in_list"
    column: str
    values: tuple[Any, ...] = ()
    negated: bool = False

    @property
    def payload_key(self) -> str:
        return "conditions"

    @property
    def payload(self) -> dict[str, Any]:
        return {
            "type": "whereNotIn" if self.negated else "whereIn",
            "column": self.column,
            "values": list(self.values),
        }


class RelationExistence(Predicate):
    """Existence (or absence, when negated) of related rows.

    ``constraints`` are pre-resolved predicates applied to the related rows by
    the remote side; closures cannot be sent over the wire.
    """

    kind: Literal["relation_existence"] = "relation_existence"
    relation: str
    negated: bool = False
    constraints: tuple["AnyPredicate", ...] = ()

    @property
    def payload_key(self) -> str:
        return "where_doesnt_have" if self.negated else "where_has"

    @property
    def payload(self) -> dict[str, Any]:
        return {"relation": self.relation, "constraints": group_predicates(self.constraints)}


AnyPredicate = Annotated[
    Union[Equality, Comparison, RawSql, NullCheck, InList, RelationExistence],
    Field(discriminator="kind"),
]

RelationExistence.model_rebuild()


def group_predicates(predicates) -> dict[str, Any]:
    """Group predicates by payload key, keeping insertion order inside each key.

    Equalities are merged at the top level; every other predicate is appended
    to the list stored under its ``payload_key``.
    """
    result: dict[str, Any] = {}
    for predicate in predicates:
        key = predicate.payload_key
        if key is None:
            result[predicate.column] = predicate.payload
        else:
            result.setdefault(key, []).append(predicate.payload)
    return result


__all__ = [
    "OPERATORS",
    "NULL_COMPARABLE_OPERATORS",
    "Predicate",
    "Equality",
    "Comparison",
    "RawSql",
    "NullCheck",
    "InList",
    "RelationExistence",
    "AnyPredicate",
    "group_predicates",
]
