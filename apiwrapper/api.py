"""Entity-level CRUD over a Transport.

Each entity name gets one EntityEndpoint whose verb table maps a Verb to the
method that builds the route. Reads are cached per Api instance; writes drop
the cached reads of the entity they touch.

Routes:
    list              POST   /<entities>/get        (query in the body)
    one               GET    /<entity>/<id>?<query>
    create            POST   /<entity>
    update            PUT    /<entity>/<id>
    update or create  POST   /update-or-create/<entity>
    delete            DELETE /<entity>/<id>
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Optional

from .exceptions import EntityNotFoundError
from .transport import Transport
from .utils.make_hashable import make_hashable
from .utils.naming import pluralize

logger = logging.getLogger("apiwrapper")


class Verb(enum.Enum):
    """Operations an entity endpoint understands."""

    GET = "get"
    CREATE = "create"
    UPDATE = "update"
    UPDATE_OR_CREATE = "update_or_create"
    DELETE = "delete"


class EntityEndpoint:
    """Routes for one remote entity, dispatched through an explicit verb table."""

    def __init__(self, api: "Api", entity: str):
        self.api = api
        self.entity = entity
        self.verbs: dict[Verb, Callable[..., Any]] = {
            Verb.GET: self.get,
            Verb.CREATE: self.create,
            Verb.UPDATE: self.update,
            Verb.UPDATE_OR_CREATE: self.update_or_create,
            Verb.DELETE: self.delete,
        }

    def __call__(self, verb: Verb, *args, **kwargs) -> Any:
        return self.verbs[verb](*args, **kwargs)

    def get(self, *args, **kwargs) -> Any:
        """``get(filters)`` lists entities, ``get(id, filters)`` fetches one."""
        if args and not isinstance(args[0], dict):
            return self.find_one(*args, **kwargs)
        return self.find_all(*args, **kwargs)

    def find_all(self, filters: Optional[dict] = None, use_cache: Optional[bool] = None) -> Any:
        """POST the query to ``/<entity>/get`` (a body avoids URL length limits)."""
        filters = filters or {}
        use_cache = self.api.use_cache if use_cache is None else use_cache
        key = (Verb.GET, self.entity, make_hashable(filters))
        if use_cache and key in self.api.cache:
            return self.api.cache[key]
        result = self.api.transport.request(f"/{self.entity}/get", filters, "post")
        if result is None:
            result = []
        return self.api.set_cache(key, result, use_cache)

    def find_one(self, id: Any, filters: Optional[dict] = None, use_cache: Optional[bool] = None) -> Any:
        """GET ``/<entity>/<id>``; a None id never reaches the transport."""
        if id is None:
            raise EntityNotFoundError(message=f"Cannot fetch {self.entity} without an id")
        filters = filters or {}
        use_cache = self.api.use_cache if use_cache is None else use_cache
        key = (Verb.GET, self.entity, str(id), make_hashable(filters))
        if use_cache and key in self.api.cache:
            return self.api.cache[key]
        result = self.api.transport.request(f"/{self.entity}/{id}", filters, "get")
        if result is None:
            result = {}
        return self.api.set_cache(key, result, use_cache)

    def create(self, attributes: dict) -> Any:
        self.api.forget(self.entity, pluralize(self.entity))
        return self.api.transport.request(f"/{self.entity}", attributes, "post") or {}

    def update(self, id: Any, attributes: dict) -> Any:
        self.api.forget(self.entity, pluralize(self.entity))
        return self.api.transport.request(f"/{self.entity}/{id}", attributes, "put") or {}

    def update_or_create(self, attributes: dict, values: Optional[dict] = None) -> Any:
        self.api.forget(self.entity, pluralize(self.entity))
        payload = {"attributes": attributes, "values": values or {}}
        return self.api.transport.request(f"/update-or-create/{self.entity}", payload, "post") or {}

    def delete(self, id: Any, data: Optional[dict] = None) -> Any:
        self.api.forget(self.entity, pluralize(self.entity))
        return self.api.transport.request(f"/{self.entity}/{id}", data or {}, "delete") or {}


class Api:
    """Remote API facade: one transport, one endpoint per entity, one read cache."""

    def __init__(self, transport: Transport, use_cache: bool = True):
        self.transport = transport
        self.use_cache = use_cache
        self.cache: dict[tuple, Any] = {}
        self._endpoints: dict[str, EntityEndpoint] = {}

    def endpoint(self, entity: str) -> EntityEndpoint:
        """Return the (memoized) endpoint for entity."""
        if entity not in self._endpoints:
            self._endpoints[entity] = EntityEndpoint(self, entity)
        return self._endpoints[entity]

    def call(self, verb: Verb, entity: str, *args, **kwargs) -> Any:
        """Dispatch ``verb`` on ``entity``, e.g. ``call(Verb.UPDATE, "user", 3, {...})``."""
        return self.endpoint(entity)(verb, *args, **kwargs)

    def find_all(self, entity: str, filters: Optional[dict] = None, use_cache: Optional[bool] = None) -> Any:
        return self.endpoint(entity).find_all(filters, use_cache)

    def find_one(self, entity: str, id: Any, filters: Optional[dict] = None,
                 use_cache: Optional[bool] = None) -> Any:
        return self.endpoint(entity).find_one(id, filters, use_cache)

    def create(self, entity: str, attributes: dict) -> Any:
        return self.endpoint(entity).create(attributes)

    def update(self, entity: str, id: Any, attributes: dict) -> Any:
        return self.endpoint(entity).update(id, attributes)

    def update_or_create(self, entity: str, attributes: dict, values: Optional[dict] = None) -> Any:
        return self.endpoint(entity).update_or_create(attributes, values)

    def delete(self, entity: str, id: Any, data: Optional[dict] = None) -> Any:
        return self.endpoint(entity).delete(id, data)

    def set_use_cache(self, use_cache: bool) -> "Api":
        self.use_cache = use_cache
        return self

    def set_cache(self, key: tuple, value: Any, use_cache: Optional[bool] = None) -> Any:
        """Store value under key when caching is enabled; return value."""
        if use_cache is None:
            use_cache = self.use_cache
        if use_cache:
            self.cache[key] = value
        return value

    def forget(self, *entities: str) -> None:
        """Drop every cached read (list reads and id reads) of the given entity names."""
        stale = [key for key in self.cache if key[1] in entities]
        for key in stale:
            del self.cache[key]
        if stale:
            logger.debug("Dropped %d cached read(s) of %s", len(stale), ", ".join(entities))

    def clear_cache(self) -> None:
        self.cache.clear()
