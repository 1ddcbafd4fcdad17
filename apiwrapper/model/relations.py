"""Relation descriptors declared on Model classes.

    class Post(Model):
        comments = has_many("Comment")
        author = has_one("User", foreign_key="id", local_key="user_id")
        reviews = has_many("Review", backing=RelationBacking.REMOTE)

Accessing ``post.comments`` returns the relation loaded with the instance
(through ``with_()`` or a ``relations`` block in a response), or lazy-loads it
with one extra request.
"""

from __future__ import annotations

import enum
import warnings
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..utils.get_model_by_name import get_model_by_name
from ..utils.naming import snake


class RelationBacking(enum.Enum):
    """Where the rows of a relation live.

    LOCAL relations are resolved by the API serving the parent entity, so
    ``where_has``/``where_doesnt_have`` on them are sent. REMOTE relations
    point to entities served by another API; filtering on them is already
    expressed by that API and such predicates are dropped.
    """

    LOCAL = "local"
    REMOTE = "remote"


class Relation(BaseModel):
    """Declaration of a has-one or has-many relation."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: Literal["has_one", "has_many"]
    target: Union[str, type]
    backing: RelationBacking = RelationBacking.LOCAL
    foreign_key: Optional[str] = None
    local_key: Optional[str] = None
    name: Optional[str] = None
    owner: Optional[type] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        self.owner = owner

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance.get_relation(self.name)

    @property
    def many(self) -> bool:
        return self.kind == "has_many"

    @property
    def is_remote(self) -> bool:
        return self.backing is RelationBacking.REMOTE

    def resolve_target(self) -> Optional[type]:
        """Return the related Model class; string targets are looked up by name."""
        if isinstance(self.target, str):
            return get_model_by_name(self.target)
        return self.target

    def get_foreign_key(self) -> str:
        """Column of the related entity pointing back to the owner (``<owner>_id`` by default)."""
        if self.foreign_key:
            return self.foreign_key
        return f"{snake(self.owner.get_entity())}_id"

    def get_local_key(self, instance) -> str:
        return self.local_key or instance.get_key_name()

    def load(self, instance) -> Any:
        """Fetch the related rows of instance; one request."""
        target = self.resolve_target()
        if target is None:
            raise LookupError(f"Cannot resolve the target of relation '{self.name}'")
        warnings.warn(
            f"Lazy loading '{self.name}' on {type(instance).__name__}: consider eager "
            f"loading (e.g. {type(instance).__name__}.q(context).with_('{self.name}'))",
            UserWarning,
            stacklevel=3,
        )
        key = getattr(instance, self.get_local_key(instance), None)
        query = target.q(instance.get_context()).where(self.get_foreign_key(), key)
        if self.many:
            return query.get()
        return query.first()


def has_one(
    target: Union[str, type],
    foreign_key: Optional[str] = None,
    local_key: Optional[str] = None,
    backing: RelationBacking = RelationBacking.LOCAL,
) -> Relation:
    """Declare a relation holding at most one related model."""
    return Relation(kind="has_one", target=target, foreign_key=foreign_key,
                    local_key=local_key, backing=backing)


def has_many(
    target: Union[str, type],
    foreign_key: Optional[str] = None,
    local_key: Optional[str] = None,
    backing: RelationBacking = RelationBacking.LOCAL,
) -> Relation:
    """Declare a relation holding a list of related models."""
    return Relation(kind="has_many", target=target, foreign_key=foreign_key,
                    local_key=local_key, backing=backing)


__all__ = ["RelationBacking", "Relation", "has_one", "has_many"]
