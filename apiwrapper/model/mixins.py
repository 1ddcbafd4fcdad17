"""Mixins for Model: soft delete and timestamps."""

import datetime
from typing import ClassVar, Optional

from pydantic import BaseModel

from ..scopes import Scope, SoftDeletingScope


class _WithSoftDelete(BaseModel):
    """Mixin that adds soft delete via a `deleted_at` timestamp."""

    deleted_at: Optional[datetime.datetime] = None
    DEFAULT_SCOPES: ClassVar[dict[str, Scope]] = {
        SoftDeletingScope.identifier: SoftDeletingScope(),
    }


class _WithTimestamps(BaseModel):
    """Mixin that adds `created_at` and `updated_at`; `touch()` refreshes the latter."""

    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None
