"""Recursive conversion of values to forms the remote API accepts.

Two flavours are needed:

* ``serialize`` produces JSON-compatible data for request bodies.
* ``normalize_filter_value`` additionally spells booleans and nulls as strings,
  because query strings cannot carry them (``None`` would be dropped and
  booleans would become ``1``/empty).
"""

import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_datetime(value: datetime.datetime) -> str:
    """Naive datetimes use DATETIME_FORMAT; aware ones keep their offset."""
    if value.utcoffset() is not None:
        return value.isoformat(sep=" ")
    return value.strftime(DATETIME_FORMAT)


def canonicalize_datetime(value: Any) -> Any:
    """Return value in the canonical ``Y-m-d H:i:s`` form when it is datetime-like.

    Strings are only considered when they strictly parse with that format;
    anything else is returned untouched.
    Aware datetimes keep their UTC offset (``Y-m-d H:i:s+HH:MM``).
    """
    if isinstance(value, datetime.datetime):
        return format_datetime(value)
    if isinstance(value, str):
        try:
            parsed = datetime.datetime.strptime(value, DATETIME_FORMAT)
        except ValueError:
            return value
        return parsed.strftime(DATETIME_FORMAT)
    return value


def serialize(data: Any) -> dict | list | int | float | str | bool | None:
    """Convert nested dicts, lists, scalars and pydantic models to JSON-serializable data."""
    if isinstance(data, BaseModel):
        return serialize(data.model_dump())
    if isinstance(data, dict):
        return {key: serialize(value) for key, value in data.items()}
    if isinstance(data, (list, tuple, set)):
        return [serialize(item) for item in data]
    if isinstance(data, Enum):
        return serialize(data.value)
    if isinstance(data, (int, float, str, bool)) or data is None:
        return data
    if isinstance(data, datetime.datetime):
        return format_datetime(data)
    if isinstance(data, datetime.date):
        return data.isoformat()
    raise ValueError(data)


def normalize_filter_value(data: Any) -> Any:
    """Serialize data for use as a filter, spelling booleans and nulls as strings."""
    if isinstance(data, bool):
        return "true" if data else "false"
    if data is None:
        return "null"
    if isinstance(data, BaseModel):
        return normalize_filter_value(data.model_dump())
    if isinstance(data, dict):
        return {key: normalize_filter_value(value) for key, value in data.items()}
    if isinstance(data, (list, tuple, set)):
        return [normalize_filter_value(item) for item in data]
    return canonicalize_datetime(serialize(data))
