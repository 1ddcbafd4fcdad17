"""Model base, mixins, metadata and relation descriptors."""

from .base import Model
from .meta import ModelMeta
from .mixins import _WithSoftDelete, _WithTimestamps
from .relations import Relation, RelationBacking, has_many, has_one

__all__ = [
    "Model",
    "ModelMeta",
    "_WithSoftDelete",
    "_WithTimestamps",
    "Relation",
    "RelationBacking",
    "has_one",
    "has_many",
]
