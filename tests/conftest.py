import json

import httpx
import pytest

from apiwrapper import Api, Context, Transport

from tests.helpers import ENTRYPOINT


class FakeServer:
    """Answers requests from a route table and records every request received."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, body=None, status=200):
        self.routes[(method.upper(), path)] = (status, body)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1")
        if (request.method, path) not in self.routes:
            return httpx.Response(404, json={"message": f"No route for {request.method} {path}"})
        status, body = self.routes[(request.method, path)]
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last_request.content)


@pytest.fixture(scope="function")
def server():
    return FakeServer()


@pytest.fixture(scope="function")
def transport(server):
    client = httpx.Client(transport=httpx.MockTransport(server.handler))
    yield Transport(ENTRYPOINT, client=client)
    client.close()


@pytest.fixture(scope="function")
def api(transport):
    return Api(transport)


@pytest.fixture(scope="function")
def context(api):
    return Context(api=api)
