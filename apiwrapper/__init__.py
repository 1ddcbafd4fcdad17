"""apiwrapper: an ActiveRecord-style ORM over a REST API, built on Pydantic and httpx."""

from .api import Api, Verb
from .context import Context
from .exceptions import (
    ApiError,
    ApiWrapperError,
    BadRequestError,
    EntityNotFoundError,
    ForbiddenError,
    GroupByValidationError,
    InvalidPredicateError,
    InvalidSelectError,
    MissingApiError,
    NetworkError,
    UnauthorizedError,
)
from .model import Model, RelationBacking, has_many, has_one
from .predicates import Comparison, Equality, InList, NullCheck, RawSql, RelationExistence
from .query import Page, Query
from .scopes import Scope, SoftDeleteMode, SoftDeletingScope
from .settings import Settings
from .transport import BearerTransport, Transport
