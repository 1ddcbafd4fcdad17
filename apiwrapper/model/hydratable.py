"""Hydratable mixin: instance-building from decoded API responses."""

import logging
from typing import Any, Optional

from ..utils.get_model_by_name import get_model_by_name

logger = logging.getLogger("apiwrapper")

COLLECTION_KEYS = ("hydra:member", "data")
"""Keys a collection may be wrapped in, checked in this order."""


class Hydratable:
    """Mixin that provides instance-building from response payloads (hydration).

    Accepted shapes: a bare object or array, ``{"data": [...]}``,
    ``{"hydra:member": [...]}`` and the pagination envelope
    ``{"data": [...], "meta": {...}}``. A falsy payload never becomes an empty
    model: it hydrates to None (one) or [] (many).
    """

    @staticmethod
    def unwrap_collection(payload: Any) -> list:
        """Return the list of entity dicts held by payload."""
        if not payload:
            return []
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            for key in COLLECTION_KEYS:
                if key in payload:
                    items = payload[key]
                    if isinstance(items, dict):
                        return [items] if items else []
                    return list(items or [])
            return [payload]
        raise TypeError(f"Cannot hydrate a collection from {type(payload).__name__}")

    @classmethod
    def hydrate(cls, payload: Any, context=None) -> Optional["Model"]:
        """Build one existing model from payload, or return None when it is empty."""
        if not payload:
            return None
        if isinstance(payload, dict) and "data" in payload and not payload["data"]:
            return None
        if isinstance(payload, dict) and "hydra:member" not in payload \
                and not isinstance(payload.get("data"), list):
            return cls.new_instance(payload, exists=True, context=context)
        items = cls.unwrap_collection(payload)
        if not items:
            return None
        return cls.new_instance(items[0], exists=True, context=context)

    @classmethod
    def hydrate_many(cls, payload: Any, context=None) -> list["Model"]:
        """Build a list of existing models from payload."""
        return [
            cls.new_instance(item, exists=True, context=context)
            for item in cls.unwrap_collection(payload)
            if item
        ]

    def _resolve_relation_target(self, name: str) -> Optional[type]:
        descriptor = type(self).get_relation_descriptor(name)
        if descriptor is not None:
            target = descriptor.resolve_target()
            if target is not None:
                return target
        return get_model_by_name(name)

    def hydrate_relations(self, relations: dict[str, Any]) -> None:
        """Hydrate a ``relations`` block into the relation cache of this instance.

        A list becomes a list of models and a dict becomes one model; relations
        whose target class cannot be found are skipped.
        """
        context = self.get_context()
        for name, data in relations.items():
            target = self._resolve_relation_target(name)
            if target is None:
                logger.debug("Relation '%s' of %s skipped: no matching model",
                             name, type(self).__name__)
                continue
            descriptor = type(self).get_relation_descriptor(name)
            if isinstance(data, list):
                value = target.hydrate_many(data, context=context)
            elif isinstance(data, dict) and data:
                value = target.hydrate(data, context=context)
            elif descriptor is not None and descriptor.many:
                value = []
            else:
                value = None
            self.set_relation(name, value)
