"""Context: the explicit configuration object shared by queries and models.

It owns the Api (and through it the transport and the read cache), the
global scope registry and the grouping strictness. Nothing is stored at
module or class level, so several contexts (e.g. two APIs) can coexist.

    context = Context.from_settings()
    categories = context.query(Category).where("active", True).get()
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .api import Api
from .exceptions import MissingApiError
from .scopes import ScopeLike, ScopeRegistry
from .settings import Settings
from .transport import BearerTransport, Transport


class Context(BaseModel):
    """Api, scopes and options used by queries and model operations."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    api: Optional[Api] = None
    strict_grouping: bool = True
    scopes: ScopeRegistry = Field(default_factory=ScopeRegistry)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **transport_kwargs) -> "Context":
        """Build a context with a (bearer) transport configured by settings."""
        settings = settings or Settings()
        if settings.token:
            transport = BearerTransport(settings.token, settings.base_url,
                                        timeout=settings.timeout, **transport_kwargs)
        else:
            transport = Transport(settings.base_url, timeout=settings.timeout, **transport_kwargs)
        api = Api(transport, use_cache=settings.use_cache)
        return cls(api=api, strict_grouping=settings.strict_grouping)

    def get_api(self) -> Api:
        if self.api is None:
            raise MissingApiError()
        return self.api

    def add_global_scope(self, model_class: type, identifier: str, scope: ScopeLike) -> "Context":
        self.scopes.add(model_class, identifier, scope)
        return self

    def remove_global_scope(self, model_class: type, identifier: str) -> "Context":
        self.scopes.remove(model_class, identifier)
        return self

    def query(self, model_class: type):
        """Return ``model_class.q(self)``."""
        return model_class.q(self)

    def find(self, model_class: type, *args: Any, **kwargs: Any):
        return model_class.q(self).find(*args, **kwargs)

    def create(self, model_class: type, attributes: Optional[dict] = None, **kwargs: Any):
        return model_class.create(self, attributes, **kwargs)

    def close(self) -> None:
        """Close the transport of the Api."""
        if self.api is not None:
            self.api.transport.close()
