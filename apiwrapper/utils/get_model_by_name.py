"""Resolve a Model class from a relation or entity name (e.g. from a ``relations`` block)."""

from typing import Iterable, Optional

from .naming import strip_class_suffix, studly

_IGNORED_SUFFIXES = ("Proxy", "Model")


def _get_subclasses(base: type) -> Iterable[type]:
    """Recursively yield all subclasses of base in depth-first order, most recent first."""
    for subclass in base.__subclasses__()[::-1]:
        yield from _get_subclasses(subclass)
        yield subclass


def _base_name(name: str) -> str:
    for suffix in _IGNORED_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[: -len(suffix)]
    return strip_class_suffix(name)


def get_all_models() -> Iterable[type["Model"]]:
    """Yield all Model subclasses in the application."""
    from ..model import Model
    for cls in _get_subclasses(Model):
        yield cls


def get_model_by_name(name: str) -> Optional[type["Model"]]:
    """Return the Model subclass matching name, or None.

    ``name`` may be a class name (``UserProfile``), a snake_case relation name
    (``user_profile``) or an entity name; trailing ``Proxy``/``Model`` suffixes
    are ignored on both sides. The most recently defined match wins.
    """
    wanted = _base_name(studly(name))
    for cls in get_all_models():
        if cls.__name__.startswith("_"):
            continue
        if name == cls.get_entity() or wanted == _base_name(cls.__name__):
            return cls
    return None
