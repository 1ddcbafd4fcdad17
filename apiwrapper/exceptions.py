"""Exceptions raised by apiwrapper.

Local validation errors (predicates, select, group by) are raised synchronously
while the query is built or compiled, before any request is sent. Remote errors
are ApiError instances carrying the HTTP status and the decoded response body.
"""

from typing import Any, Optional


class ApiWrapperError(Exception):
    """Base class for every error raised by apiwrapper."""


class InvalidPredicateError(ApiWrapperError, ValueError):
    """An operator/value combination cannot be expressed as a predicate."""


class InvalidSelectError(ApiWrapperError, ValueError):
    """A selected field is incompatible with the active grouping."""


class GroupByValidationError(ApiWrapperError, ValueError):
    """Strict grouping rules are violated by the accumulated query state."""


class MissingApiError(ApiWrapperError):
    """A model operation needs an Api but no context was bound."""

    def __init__(self, model: Optional[type] = None):
        name = model.__name__ if model is not None else "model"
        super().__init__(f"No Api available for {name}; bind a Context first")


class ApiError(ApiWrapperError):
    """Non-2xx response (or network failure, status 0) from the remote API."""

    def __init__(self, status: int, body: Any = None, message: Optional[str] = None):
        self.status = status
        self.body = body
        if message is None:
            message = f"The request ended on a {status} code"
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status={self.status!r}, message={str(self)!r})"


class NetworkError(ApiError):
    """The request never produced an HTTP response."""


class UnauthorizedError(ApiError):
    """HTTP 401."""


class ForbiddenError(ApiError):
    """HTTP 403."""


class EntityNotFoundError(ApiError):
    """The requested entity does not exist (HTTP 404, or an empty id lookup)."""

    def __init__(self, body: Any = None, message: Optional[str] = None, status: int = 404):
        super().__init__(status, body, message or "Entity not found")


class BadRequestError(ApiError):
    """HTTP 400 or 422; `errors` holds the validation messages when provided."""

    @property
    def errors(self) -> dict:
        if isinstance(self.body, dict):
            errors = self.body.get("errors")
            if isinstance(errors, dict):
                return errors
        return {}


__all__ = [
    "ApiWrapperError",
    "InvalidPredicateError",
    "InvalidSelectError",
    "GroupByValidationError",
    "MissingApiError",
    "ApiError",
    "NetworkError",
    "UnauthorizedError",
    "ForbiddenError",
    "EntityNotFoundError",
    "BadRequestError",
]
