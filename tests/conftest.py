import json

import httpx
import pytest

from hypernav.cache import ForeverCache
from hypernav.client import Client

API = "https://api.example.org"


class FakeServer:
    """In-memory stand-in for an API, plugged into httpx.MockTransport."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def route(self, method, path, status=200, body=None, headers=None, content_type='application/hal+json'):
        headers = dict(headers or {})
        if body is not None and content_type:
            headers.setdefault('Content-Type', content_type)
        if isinstance(body, (dict, list)):
            content = json.dumps(body).encode()
        elif isinstance(body, str):
            content = body.encode()
        else:
            content = body or b''
        self.routes[(method, API + path)] = (status, headers, content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, str(request.url))
        if key not in self.routes:
            return httpx.Response(404, headers={'Content-Type': 'text/plain'}, content=b'Not found')
        status, headers, content = self.routes[key]
        return httpx.Response(status, headers=headers, content=content)

    def count(self, method, path):
        return sum(1 for r in self.requests if r.method == method and str(r.url) == API + path)

    def last(self, method=None, path=None):
        for request in reversed(self.requests):
            if method and request.method != method:
                continue
            if path and str(request.url) != API + path:
                continue
            return request
        return None


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def client(server):
    return Client(API + "/", cache=ForeverCache(), transport=httpx.MockTransport(server.handler))
