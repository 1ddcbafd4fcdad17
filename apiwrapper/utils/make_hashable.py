"""Convert payloads (including Pydantic models) to a hashable form, e.g. for cache keys."""

import datetime
import enum

from pydantic import BaseModel


def make_hashable(thing: any):
    """Return a hashable representation of thing (usable in hash() or as a dict key).

    Dict keys are sorted so two payloads with the same content but a different
    insertion order map to the same value.
    """
    # enums
    if isinstance(thing, enum.Enum):
        return (thing.name, thing.value)
    # pre-transform Pydantic model instances
    if isinstance(thing, BaseModel):
        thing = thing.model_dump()
    # dicts
    if isinstance(thing, dict):
        return tuple(
            (str(key), make_hashable(value))
            for key, value
            in sorted(thing.items(), key=lambda item: str(item[0]))
        )
    # collections
    if isinstance(thing, (list, tuple)):
        return tuple(make_hashable(value) for value in thing)
    if isinstance(thing, (set, frozenset)):
        return tuple(sorted((make_hashable(value) for value in thing), key=repr))
    # scalar types
    if isinstance(thing, (int, float, str, type(None), datetime.date)):
        return thing
    # other
    raise ValueError(f"Cannot hash `{thing}`, {type(thing)}")
