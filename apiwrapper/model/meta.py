"""Metaclass for Model: injects mixins and stores the remote entity metadata on the class."""

from typing import Optional

from pydantic import BaseModel
from pydantic._internal._model_construction import ModelMetaclass

from ..utils.naming import snake, strip_class_suffix
from .mixins import _WithSoftDelete, _WithTimestamps
from .relations import Relation


class ModelMeta(ModelMetaclass):
    """Metaclass for Model.

    Keyword arguments (``class Post(Model, entity="post", with_soft_delete=True)``)
    are inherited by subclasses unless overridden.
    """

    def __new__(mcs, name, bases, namespace,
                entity: Optional[str] = None,
                primary_key: Optional[str] = None,
                per_page: Optional[int] = None,
                use_cache: Optional[bool] = None,
                with_soft_delete: bool = False,
                with_timestamps: bool = False,
                **kwargs):
        default_bases: tuple[type[BaseModel], ...] = tuple()
        if with_soft_delete and not any(issubclass(b, _WithSoftDelete) for b in bases):
            default_bases += (_WithSoftDelete,)
        if with_timestamps and not any(issubclass(b, _WithTimestamps) for b in bases):
            default_bases += (_WithTimestamps,)
        result = super().__new__(
            mcs, name, bases + default_bases, namespace, **kwargs
        )

        def inherited(attribute, value, default):
            if value is not None:
                return value
            for base in bases:
                found = getattr(base, attribute, None)
                if found is not None:
                    return found
            return default

        # the entity name is never inherited: each class maps its own resource
        result._ENTITY = entity or snake(strip_class_suffix(name))
        result._PRIMARY_KEY = inherited("_PRIMARY_KEY", primary_key, "id")
        result._PER_PAGE = inherited("_PER_PAGE", per_page, 15)
        result._USE_CACHE = inherited("_USE_CACHE", use_cache, None)

        relations: dict[str, Relation] = {}
        for base in reversed(bases):
            relations.update(getattr(base, "_RELATIONS", {}))
        for attribute, value in namespace.items():
            if isinstance(value, Relation):
                relations[attribute] = value
        result._RELATIONS = relations
        return result
