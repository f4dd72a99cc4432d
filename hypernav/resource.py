"""
A Resource is an endpoint on the server, identified by its uri.

The client keeps one Resource per uri, so listeners registered with on()
keep working no matter how a resource was reached.
"""
import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

import httpx
import structlog

from .action import follow_response
from .follow_promise import FollowPromiseMany, FollowPromiseOne
from .http.error import problem_factory
from .link import Link, LinkNotFound
from .middlewares.cache import NO_STALE_HEADER
from .state.base import BaseHeadState, BaseState
from .uri import resolve

if TYPE_CHECKING:
    from .client import Client

logger = structlog.get_logger(__name__)

EVENTS = ('update', 'stale', 'delete')


def request_key(method: str, headers=None) -> str:
    """Canonical key for a request, independent of header order and casing.

    Repeated headers are merged into one comma-separated value first.
    """
    merged: Dict[str, List[str]] = {}
    for name, value in httpx.Headers(headers or {}).multi_items():
        merged.setdefault(name.lower(), []).append(value)
    entries = sorted((name, ', '.join(values)) for name, values in merged.items())
    return json.dumps([method.upper(), entries])


class Resource:

    def __init__(self, client: 'Client', uri: str, content_type: Optional[str] = None):
        self.client = client
        self.uri = uri
        self.content_type = content_type
        self._active_refresh: Dict[str, asyncio.Future] = {}
        self._listeners: Dict[str, List[Callable]] = {}

    async def get(self, headers=None) -> BaseState:
        """Return the cached State, or fetch it."""
        state = self.get_cache()
        if state is not None:
            return state
        return await self._request('GET', headers)

    async def head(self, headers=None) -> BaseHeadState:
        """Return the cached State, or do a HEAD request for the headers and links."""
        state = self.get_cache()
        if state is not None:
            return state
        return await self._request('HEAD', headers)

    async def refresh(self, headers=None) -> BaseState:
        """Fetch a fresh State from the server, skipping the cache."""
        return await self._request('GET', headers)

    async def _request(self, method: str, headers=None):
        """Run a GET or HEAD, sharing one request between identical concurrent calls."""
        key = request_key(method, headers)
        future = self._active_refresh.get(key)
        # A request cancelled before it started is left behind finished
        if future is None or future.done():
            future = asyncio.ensure_future(self._do_request(key, method, headers))
            self._active_refresh[key] = future
        else:
            logger.debug("request_coalesced", method=method, url=self.uri)
        return await asyncio.shield(future)

    def active_requests(self) -> List[asyncio.Future]:
        """GET and HEAD requests that are still in flight."""
        return [future for future in self._active_refresh.values() if not future.done()]

    async def _do_request(self, key: str, method: str, headers=None):
        try:
            response = await self.fetch_or_throw(method=method, headers=headers)
            state = await self.client.get_state_for_response(self.uri, response, method)
            if method != 'HEAD':
                if not self.content_type and 'Content-Type' in response.headers:
                    self.content_type = response.headers['Content-Type']
                self.update_cache(state)
            return state
        finally:
            self._active_refresh.pop(key, None)

    async def put(self, body, headers=None) -> None:
        """Replace the resource with a State or with a new body.

        A State is sent with its own content headers and becomes the cached
        State once the server accepted it.
        """
        if isinstance(body, BaseState):
            request_headers = body.content_headers()
            request_headers.update(headers or {})
            request_headers[NO_STALE_HEADER] = '1'
            await self.fetch_or_throw(method='PUT', headers=request_headers, content=body.serialize_body())
            self.update_cache(body)
            return

        await self.fetch_or_throw(method='PUT', **self._body_request(body, headers))

    async def patch(self, body, headers=None) -> httpx.Response:
        return await self.fetch_or_throw(method='PATCH', **self._body_request(body, headers))

    async def post(self, body, headers=None) -> BaseState:
        """POST to the resource and return the State of the response."""
        response = await self.fetch_or_throw(method='POST', **self._body_request(body, headers))
        return await self.client.get_state_for_response(self.uri, response)

    async def post_follow(self, body, headers=None) -> 'Resource':
        """POST to the resource and return the Resource the server points to.

        201 with a Location header resolves to the new resource; 204 and 205
        resolve to this one.
        """
        response = await self.fetch_or_throw(method='POST', **self._body_request(body, headers))
        return follow_response(self.client, self.uri, response)

    async def delete(self) -> None:
        await self.fetch_or_throw(method='DELETE')

    def _body_request(self, body, headers=None) -> Dict[str, Any]:
        request_headers = httpx.Headers(headers or {})
        if 'Content-Type' not in request_headers:
            request_headers['Content-Type'] = self.content_type or self.client.content_types[0]

        if isinstance(body, (bytes, str)):
            content = body
        else:
            content = json.dumps(body)
        return {'headers': request_headers, 'content': content}

    async def fetch(self, input=None, **init) -> httpx.Response:
        """Do an arbitrary request; relative urls resolve against this resource."""
        if input is None:
            uri = self.uri
        elif isinstance(input, str):
            uri = resolve(self.uri, input)
        elif isinstance(input, httpx.Request):
            uri = resolve(self.uri, str(input.url))
            init.setdefault('method', input.method)
            headers = httpx.Headers(input.headers)
            headers.update(init.get('headers') or {})
            init['headers'] = headers
            if not any(k in init for k in ('content', 'data', 'json', 'files')):
                init['content'] = input.content
        else:
            raise TypeError('When specified, input must be a url string or an httpx.Request')

        return await self.client.fetcher.fetch(uri, **init)

    async def fetch_or_throw(self, input=None, **init) -> httpx.Response:
        response = await self.fetch(input, **init)
        if response.is_success:
            return response
        raise problem_factory(response)

    def follow(self, rel: str, variables: Optional[Dict[str, Any]] = None) -> FollowPromiseOne:
        return FollowPromiseOne(self, rel, variables)

    def follow_all(self, rel: str) -> FollowPromiseMany:
        return FollowPromiseMany(self, rel)

    async def link(self, rel: str) -> Link:
        """First link with this rel. Raises LinkNotFound."""
        state = await self.get()
        link = state.links.get(rel)
        if link is None:
            raise LinkNotFound(f"Link with rel {rel} on {self.uri} not found")
        return link

    async def links(self, rel: Optional[str] = None) -> List[Link]:
        state = await self.get()
        if rel is None:
            return state.links.get_all()
        return state.links.get_many(rel)

    async def has_link(self, rel: str) -> bool:
        state = await self.get()
        return state.links.has(rel)

    def go(self, uri: str) -> 'Resource':
        """Resource for a uri relative to this one. No HTTP request is made."""
        return self.client.go(resolve(self.uri, uri))

    def get_cache(self) -> Optional[BaseState]:
        return self.client.cache.get(self.uri)

    def update_cache(self, state: BaseState) -> None:
        if state.uri != self.uri:
            raise ValueError('When calling update_cache on a resource, the uri of the State object must match the uri of the Resource')
        self.client.cache_state(state)

    def clear_cache(self) -> None:
        self.client.cache.delete(self.uri)

    def on(self, event: str, listener: Callable) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown event {event}")
        self._listeners.setdefault(event, []).append(listener)

    def once(self, event: str, listener: Callable) -> None:
        def wrapper(*args):
            self.off(event, wrapper)
            return listener(*args)
        self.on(event, wrapper)

    def off(self, event: str, listener: Callable) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: str, *args) -> None:
        for listener in list(self._listeners.get(event, [])):
            result = listener(*args)
            if asyncio.iscoroutine(result):
                self.client.run_in_background(result, event=f"{event}_listener", uri=self.uri)

    def __repr__(self) -> str:
        return f"<Resource {self.uri}>"
