"""HTTP transport: sends one request to the remote API and decodes the JSON answer.

Non-2xx responses become ApiError instances which are passed, once, to the
error handler registered for their status code (0 stands for network failures).
A handler either raises a more specific error or returns a substitute result.
There is no retry logic here; timeouts are handled by httpx.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .exceptions import (
    ApiError,
    BadRequestError,
    EntityNotFoundError,
    ForbiddenError,
    NetworkError,
    UnauthorizedError,
)
from .utils.serialize import serialize

logger = logging.getLogger("apiwrapper")


def build_query(data: Any, prefix: Optional[str] = None) -> list[tuple[str, str]]:
    """Flatten nested data into bracketed query-string pairs (``a[b][0]=c``).

    ``None`` becomes an empty string and booleans become ``1``/``0``.
    """
    if isinstance(data, (list, tuple)):
        items = enumerate(data)
    else:
        items = data.items()
    pairs: list[tuple[str, str]] = []
    for key, value in items:
        name = f"{prefix}[{key}]" if prefix is not None else str(key)
        if isinstance(value, (dict, list, tuple)):
            pairs.extend(build_query(value, name))
        elif value is None:
            pairs.append((name, ""))
        elif isinstance(value, bool):
            pairs.append((name, "1" if value else "0"))
        else:
            pairs.append((name, str(serialize(value))))
    return pairs


class ErrorHandler:
    """Handles an ApiError for one status code; returns a substitute result or raises."""

    def __init__(self, transport: "Transport"):
        self.transport = transport

    def handle(self, error: ApiError, request: dict[str, Any]) -> Any:
        raise NotImplementedError("Subclasses must implement `handle`")


class RaisingErrorHandler(ErrorHandler):
    """Re-raise the error as `exception_class`, keeping status, body and message."""

    exception_class: type[ApiError] = ApiError

    def handle(self, error: ApiError, request: dict[str, Any]) -> Any:
        logger.debug("%s %s failed with status %s", request.get("method"), request.get("endpoint"), error.status)
        raise self.exception_class(status=error.status, body=error.body, message=str(error)) from error


class NetworkErrorHandler(RaisingErrorHandler):
    exception_class = NetworkError


class UnauthorizedErrorHandler(RaisingErrorHandler):
    exception_class = UnauthorizedError


class ForbiddenErrorHandler(RaisingErrorHandler):
    exception_class = ForbiddenError


class NotFoundErrorHandler(RaisingErrorHandler):
    exception_class = EntityNotFoundError


class BadRequestErrorHandler(RaisingErrorHandler):
    exception_class = BadRequestError


class Transport:
    """JSON transport over an ``httpx.Client``.

    GET requests carry the payload in the query string; every other method
    sends it as a JSON body.
    """

    HTTP_NETWORK_ERROR_CODE = 0
    HTTP_UNAUTHORIZED = 401
    HTTP_FORBIDDEN = 403
    HTTP_NOT_FOUND_ERROR_CODE = 404
    HTTP_BAD_REQUEST = 400
    HTTP_UNPROCESSABLE_ENTITY = 422

    JSON_MIME_TYPE = "application/json"

    def __init__(
        self,
        entrypoint: str,
        client: Optional[httpx.Client] = None,
        headers: Optional[dict[str, str]] = None,
        timeout: float = 30.0,
    ):
        self.entrypoint = entrypoint.rstrip("/") + "/"
        self.client = client if client is not None else httpx.Client(timeout=timeout)
        self.headers = {"Accept": self.JSON_MIME_TYPE, **(headers or {})}
        self.error_handlers: dict[int, ErrorHandler] = {}

        self.set_error_handler(self.HTTP_NETWORK_ERROR_CODE, NetworkErrorHandler(self))
        self.set_error_handler(self.HTTP_UNAUTHORIZED, UnauthorizedErrorHandler(self))
        self.set_error_handler(self.HTTP_FORBIDDEN, ForbiddenErrorHandler(self))
        self.set_error_handler(self.HTTP_NOT_FOUND_ERROR_CODE, NotFoundErrorHandler(self))
        self.set_error_handler(self.HTTP_BAD_REQUEST, BadRequestErrorHandler(self))
        self.set_error_handler(self.HTTP_UNPROCESSABLE_ENTITY, BadRequestErrorHandler(self))

    def set_error_handler(self, code: int, handler: Optional[ErrorHandler]) -> "Transport":
        """Define the handler for a status code; pass None to remove it."""
        if handler is None:
            self.error_handlers.pop(code, None)
        else:
            self.error_handlers[code] = handler
        return self

    @property
    def error_key(self) -> str:
        """Dotted path of the error message inside an error response body."""
        return "message"

    def get_url(self, endpoint: str) -> str:
        """Join the entrypoint and the endpoint."""
        return self.entrypoint + endpoint.lstrip("/")

    def raw_request(self, endpoint: str, data: Optional[dict] = None, method: str = "get") -> httpx.Response:
        """Send the request and return the undecoded response."""
        data = data or {}
        method = method.lower()
        url = self.get_url(endpoint)
        logger.info("API request (%s) to: %s", method, url)
        if method == "get":
            return self.client.get(url, params=build_query(data), headers=self.headers)
        if method in ("post", "put", "patch", "delete"):
            headers = {**self.headers, "Content-Type": self.JSON_MIME_TYPE}
            return self.client.request(method.upper(), url, json=serialize(data), headers=headers)
        raise ValueError(f"Unsupported HTTP method: {method}")

    def request(self, endpoint: str, data: Optional[dict] = None, method: str = "get") -> Any:
        """Send the request and return the decoded JSON body.

        Raises:
            ApiError: (or a subclass raised by a handler) for non-2xx answers.
        """
        request_info = {"endpoint": endpoint, "data": data or {}, "method": method.lower()}
        try:
            response = self.raw_request(endpoint, data, method)
        except httpx.RequestError as exc:
            error = ApiError(self.HTTP_NETWORK_ERROR_CODE, None, f"Network error: {exc}")
            error.__cause__ = exc
            return self._handle_error(error, request_info)

        body = self._decode(response)
        if 200 <= response.status_code <= 299:
            return body

        details = None
        if isinstance(body, dict):
            details = self._array_get(body, self.error_key)
        if details is None:
            details = response.text or "Unknown error message"
        error = ApiError(
            response.status_code,
            body,
            f"The request ended on a {response.status_code} code : {details}",
        )
        return self._handle_error(error, request_info)

    def _handle_error(self, error: ApiError, request_info: dict[str, Any]) -> Any:
        handler = self.error_handlers.get(error.status)
        if handler is not None:
            return handler.handle(error, request_info)
        raise error

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def _array_get(self, array: dict, key: str) -> Any:
        head, _, rest = key.partition(".")
        if not rest:
            return array.get(key)
        nested = array.get(head)
        if not isinstance(nested, dict):
            return None
        return self._array_get(nested, rest)

    def close(self) -> None:
        """Close the underlying httpx client."""
        self.client.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class BearerTransport(Transport):
    """Transport authenticating every request with ``Authorization: Bearer <token>``."""

    def __init__(
        self,
        token: str,
        entrypoint: str,
        client: Optional[httpx.Client] = None,
        headers: Optional[dict[str, str]] = None,
        timeout: float = 30.0,
    ):
        self.token = token
        headers = {"Authorization": f"Bearer {token}", **(headers or {})}
        super().__init__(entrypoint, client=client, headers=headers, timeout=timeout)


__all__ = [
    "build_query",
    "ErrorHandler",
    "RaisingErrorHandler",
    "NetworkErrorHandler",
    "UnauthorizedErrorHandler",
    "ForbiddenErrorHandler",
    "NotFoundErrorHandler",
    "BadRequestErrorHandler",
    "Transport",
    "BearerTransport",
]
