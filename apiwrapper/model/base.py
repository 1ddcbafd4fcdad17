"""Model base: an ActiveRecord-style entity persisted through a remote API."""

from __future__ import annotations

import copy
import datetime
import json
from functools import cache
from typing import TYPE_CHECKING, Any, ClassVar, Optional

from pydantic import BaseModel, ConfigDict, PrivateAttr, TypeAdapter

from ..exceptions import MissingApiError
from ..scopes import Scope
from ..utils.naming import pluralize
from ..utils.serialize import serialize
from .hydratable import Hydratable
from .meta import ModelMeta
from .mixins import _WithSoftDelete, _WithTimestamps
from .relations import Relation

if TYPE_CHECKING:
    from ..api import Api
    from ..context import Context
    from ..query import Query


class Model(Hydratable, BaseModel, metaclass=ModelMeta):
    """Base class for remote entities.

    Declared fields are typed; any other key returned by the API is kept as an
    extra attribute. Class metadata is given as class keyword arguments:

        class Category(Model, entity="category", per_page=30):
            name: str | None = None
    """

    model_config = ConfigDict(
        extra="allow",
        arbitrary_types_allowed=True,
        ignored_types=(Relation,),
    )

    DELETED_AT: ClassVar[str] = "deleted_at"
    UPDATED_AT: ClassVar[str] = "updated_at"

    _original: dict[str, Any] = PrivateAttr(default_factory=dict)
    _relations: dict[str, Any] = PrivateAttr(default_factory=dict)
    _context: Optional[Any] = PrivateAttr(default=None)
    _exists: bool = PrivateAttr(default=False)
    _was_recently_created: bool = PrivateAttr(default=False)
    _request_id: Optional[str] = PrivateAttr(default=None)

    def __eq__(self, other: object) -> bool:
        """Compare instances by class and primary key; unsaved instances only equal themselves."""
        if not isinstance(other, Model):
            return NotImplemented
        if type(self) is not type(other):
            return False
        key = self.get_key()
        if key is None:
            return self is other
        return key == other.get_key()

    def __hash__(self) -> int:
        return hash((type(self), self.get_key()))

    def __str__(self) -> str:
        return self.to_json()

    # --- class metadata ---

    @classmethod
    def get_entity(cls) -> str:
        """Remote resource name of one entity (``category``)."""
        return cls._ENTITY

    @classmethod
    def get_entities(cls) -> str:
        """Remote resource name of the collection (``categories``)."""
        return pluralize(cls.get_entity())

    @classmethod
    def get_per_page(cls) -> int:
        return cls._PER_PAGE

    @classmethod
    def get_deleted_at_column(cls) -> str:
        return cls.DELETED_AT

    @classmethod
    def get_updated_at_column(cls) -> str:
        return cls.UPDATED_AT

    @classmethod
    def uses_timestamps(cls) -> bool:
        return issubclass(cls, _WithTimestamps)

    @classmethod
    def uses_soft_delete(cls) -> bool:
        return issubclass(cls, _WithSoftDelete)

    @classmethod
    def get_relation_descriptor(cls, name: str) -> Optional[Relation]:
        return cls._RELATIONS.get(name)

    @classmethod
    def default_scopes(cls) -> dict[str, Scope]:
        """Global scopes declared by the class and its mixins."""
        scopes: dict[str, Scope] = {}
        for base in reversed(cls.__mro__):
            scopes.update(base.__dict__.get("DEFAULT_SCOPES", {}))
        return scopes

    # --- context ---

    def bind(self, context: "Context") -> "Model":
        """Attach the context used by persistence operations."""
        self._context = context
        return self

    def get_context(self) -> Optional["Context"]:
        return self._context

    def get_api(self) -> "Api":
        if self._context is None:
            raise MissingApiError(type(self))
        return self._context.get_api()

    # --- construction ---

    @classmethod
    def new_instance(cls, attributes: Optional[dict] = None, exists: bool = False,
                     context: Optional["Context"] = None) -> "Model":
        """Build an instance from API data without running full validation.

        The instance is filled, then its current attributes become the original
        ones, so it starts clean.
        """
        instance = cls.model_construct()
        instance._context = context
        instance._exists = exists
        if attributes:
            instance.fill(attributes)
        instance.sync_original()
        return instance

    @classmethod
    def q(cls, context: Optional["Context"] = None) -> "Query":
        """Return a Query for this model with its global scopes attached."""
        from ..query import Query
        strict_grouping = context.strict_grouping if context is not None else True
        query = Query(model=cls, context=context, strict_grouping=strict_grouping)
        if context is not None:
            scopes = context.scopes.for_model(cls)
        else:
            scopes = cls.default_scopes()
        for identifier, scope in scopes.items():
            query.with_global_scope(identifier, scope)
        return query

    @classmethod
    def create(cls, context: "Context", attributes: Optional[dict] = None, **kwargs) -> "Model":
        """Build a new instance and POST it."""
        instance = cls.new_instance(context=context)
        instance.fill({**(attributes or {}), **kwargs})
        instance.save()
        return instance

    @classmethod
    def update_or_create(cls, context: "Context", attributes: dict,
                         values: Optional[dict] = None) -> "Model":
        """Update the entity matching attributes with values, or create it."""
        instance = cls.new_instance(attributes, context=context)
        values = values or {}
        instance.fill(values)
        response = instance.get_api().update_or_create(
            cls.get_entity(), serialize(attributes), serialize(values)
        )
        instance.fill(response)
        instance._exists = True
        instance._was_recently_created = True
        instance.sync_original()
        return instance

    # --- attributes ---

    @classmethod
    @cache
    def _get_adapter(cls, name: str) -> TypeAdapter:
        return TypeAdapter(cls.model_fields[name].annotation)

    def set_attribute(self, key: str, value: Any) -> None:
        """Set one attribute; declared fields are parsed to their annotated type."""
        if key in type(self).model_fields:
            self.__dict__[key] = type(self)._get_adapter(key).validate_python(value)
            self.__pydantic_fields_set__.add(key)
        else:
            if self.__pydantic_extra__ is None:
                object.__setattr__(self, "__pydantic_extra__", {})
            self.__pydantic_extra__[key] = value

    def fill(self, attributes: Optional[dict] = None) -> "Model":
        """Set attributes from an API payload.

        A non-empty ``data`` envelope is unwrapped, ``request_meta.request_id``
        is kept as ``request_id`` and a ``relations`` block is hydrated into the
        relation cache.
        """
        attributes = attributes or {}
        data = attributes.get("data")
        if isinstance(data, dict) and data:
            if "request_meta" in attributes:
                data = {**data, "request_meta": attributes["request_meta"]}
            attributes = data
        for key, value in attributes.items():
            if key == "request_meta" and isinstance(value, dict):
                if value.get("request_id") is not None:
                    self._request_id = value["request_id"]
            elif key == "relations" and isinstance(value, dict):
                self.hydrate_relations(value)
            else:
                self.set_attribute(key, value)
        return self

    @property
    def request_id(self) -> Optional[str]:
        """Request id reported by the API in ``request_meta`` of the last response."""
        return self._request_id

    @property
    def exists(self) -> bool:
        """True when the entity is persisted remotely."""
        return self._exists

    @property
    def was_recently_created(self) -> bool:
        return self._was_recently_created

    def get_attributes(self) -> dict[str, Any]:
        """Declared fields that were set, followed by extra attributes."""
        attributes = {
            name: self.__dict__[name]
            for name in type(self).model_fields
            if name in self.__pydantic_fields_set__
        }
        attributes.update(self.__pydantic_extra__ or {})
        return attributes

    def get_original(self) -> dict[str, Any]:
        return dict(self._original)

    def sync_original(self) -> "Model":
        self._original = copy.deepcopy(self.get_attributes())
        return self

    def get_dirty(self) -> dict[str, Any]:
        """Attributes changed since the last sync with the API."""
        return {
            key: value
            for key, value in self.get_attributes().items()
            if key not in self._original or self._original[key] != value
        }

    def is_dirty(self, *keys: str) -> bool:
        dirty = self.get_dirty()
        if keys:
            return any(key in dirty for key in keys)
        return bool(dirty)

    def get_key_name(self) -> str:
        return type(self)._PRIMARY_KEY

    def get_key(self) -> Any:
        return self.get_attributes().get(self.get_key_name())

    def to_array(self) -> dict[str, Any]:
        """Serialized attributes, with loaded relations under ``relations``."""
        data = serialize(self.get_attributes())
        if self._relations:
            relations = {}
            for name, value in self._relations.items():
                if isinstance(value, list):
                    relations[name] = [item.to_array() for item in value]
                elif value is not None:
                    relations[name] = value.to_array()
                else:
                    relations[name] = None
            data["relations"] = relations
        return data

    def to_json(self, **kwargs) -> str:
        return json.dumps(self.to_array(), **kwargs)

    # --- relations ---

    def set_relation(self, name: str, value: Any) -> "Model":
        self._relations[name] = value
        return self

    def relation_loaded(self, name: str) -> bool:
        return name in self._relations

    def get_relations(self) -> dict[str, Any]:
        return dict(self._relations)

    def get_relation(self, name: str) -> Any:
        """Return a loaded relation, lazy-loading declared ones on first access."""
        if name in self._relations:
            return self._relations[name]
        descriptor = type(self).get_relation_descriptor(name)
        if descriptor is None:
            raise KeyError(f"No such relation for {type(self).__name__}: {name}")
        value = descriptor.load(self)
        self._relations[name] = value
        return value

    # --- persistence ---

    def save(self) -> bool:
        """POST a new entity or PUT the dirty attributes of an existing one."""
        api = self.get_api()
        entity = type(self).get_entity()
        if self._exists:
            dirty = self.get_dirty()
            if dirty:
                response = api.update(entity, self.get_key(), serialize(dirty))
                self.fill(response)
        else:
            response = api.create(entity, serialize(self.get_attributes()))
            self.fill(response)
            self._exists = True
            self._was_recently_created = True
        self.sync_original()
        return True

    def update(self, attributes: Optional[dict] = None, **kwargs) -> "Model":
        self.fill({**(attributes or {}), **kwargs})
        self.save()
        return self

    def delete(self) -> bool:
        """DELETE the entity, sending the global scope fragments as the body.

        The instance is marked as not existing before the request and marked
        back on failure.
        """
        if not self._exists:
            return False
        from ..compiler import merge_fragment
        api = self.get_api()
        query = type(self).q(self._context)
        data: dict[str, Any] = {}
        for identifier, scope in query.global_scopes.items():
            fragment = scope.apply(query, type(self))
            if fragment:
                merge_fragment(data, fragment)
        self._exists = False
        try:
            api.delete(type(self).get_entity(), self.get_key(), data or None)
        except Exception:
            self._exists = True
            raise
        return True

    def push(self) -> bool:
        """Save this model, then every loaded related model, one request each."""
        if not self.save():
            return False
        for value in self._relations.values():
            models = value if isinstance(value, list) else [value]
            for model in models:
                if model is None:
                    continue
                if model.get_context() is None:
                    model.bind(self._context)
                if not model.push():
                    return False
        return True

    def touch(self) -> bool:
        """Set the updated-at column to now and save it."""
        if not type(self).uses_timestamps():
            return False
        self.set_attribute(type(self).get_updated_at_column(), datetime.datetime.now().replace(microsecond=0))
        if self._exists:
            return self.save()
        return True

    def trashed(self) -> bool:
        """True when the entity is soft-deleted."""
        return self.get_attributes().get(type(self).get_deleted_at_column()) is not None

    def restore(self) -> "Model":
        """Clear the deleted-at column of a soft-deleted entity."""
        return self.update({type(self).get_deleted_at_column(): None})
