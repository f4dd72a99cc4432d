"""
The Client is the starting point for navigating an API.

It owns the State cache, the Fetcher with its middlewares, the format
registry and the uri -> Resource identity map.
"""
import asyncio
from typing import Any, Dict, Iterable, List, Optional, Set

import httpx
import structlog

from .cache import ForeverCache, NeverCache, ShortCache
from .config import Config
from .follow_promise import FollowPromiseOne
from .http.fetcher import FetchMiddleware, Fetcher
from .middlewares.accept_header import accept_header_middleware
from .middlewares.cache import cache_middleware
from .middlewares.warning import warning_middleware
from .resource import Resource
from .state import head
from .state.base import BaseState
from .state.registry import FormatRegistry
from .uri import resolve

logger = structlog.get_logger(__name__)


def make_cache(settings: Dict[str, Any]):
    """Build the cache selected by the 'cache' config section."""
    policy = settings.get('policy', 'forever')
    if policy == 'forever':
        return ForeverCache()
    if policy == 'short':
        return ShortCache(ttl_seconds=float(settings.get('ttl', 30)))
    if policy == 'never':
        return NeverCache()
    raise ValueError(f"Unknown cache policy: {policy}")


class Client:

    def __init__(
        self,
        bookmark: str,
        cache=None,
        config: Config = None,
        transport: httpx.AsyncBaseTransport = None,
    ):
        """Create a client for the API whose entry point is bookmark.

        Args:
            bookmark: Absolute uri all navigation starts from.
            cache: A NeverCache, ForeverCache or ShortCache. If None, the
                   config's cache policy decides.
            config: Config instance; the packaged config.yaml if None.
            transport: httpx transport, mostly for testing.
        """
        self.bookmark = bookmark
        self.config = config or Config()
        self.cache = cache if cache is not None else make_cache(self.config.cache)
        self.fetcher = Fetcher.from_config(self.config, transport)
        self.content_type_map = FormatRegistry(strict=bool(self.config.formats.get('strict', False)))
        self.resources: Dict[str, Resource] = {}
        self.cache_dependencies: Dict[str, Set[str]] = {}
        self._background: Set[asyncio.Future] = set()

        self.fetcher.use(cache_middleware(self))
        self.fetcher.use(accept_header_middleware(self))
        self.fetcher.use(warning_middleware())

    def go(self, uri: Optional[str] = None) -> Resource:
        """Resource for a uri, resolved against the bookmark. No HTTP request is made.

        Without a uri, returns the bookmark resource.
        """
        absolute = resolve(self.bookmark, uri or '')
        if absolute not in self.resources:
            self.resources[absolute] = Resource(self, absolute)
        return self.resources[absolute]

    def follow(self, rel: str, variables: Optional[Dict[str, Any]] = None) -> FollowPromiseOne:
        """Shortcut for go().follow(rel)."""
        return self.go().follow(rel, variables)

    async def fetch(self, resource, **init) -> httpx.Response:
        return await self.fetcher.fetch(resource, **init)

    def use(self, middleware: FetchMiddleware, origin: str = '*') -> None:
        self.fetcher.use(middleware, origin)

    @property
    def content_types(self) -> List[str]:
        return self.content_type_map.mime_types()

    def accept_header(self) -> str:
        return self.content_type_map.accept_header()

    async def get_state_for_response(self, uri: str, response: httpx.Response, method: str = 'GET'):
        """Turn a response into a State using the factory for its Content-Type."""
        if method.upper() == 'HEAD':
            return await head.factory(self, uri, response)

        if 'Content-Type' not in response.headers or not response.content:
            factory = self.content_type_map.get_factory(None)
        else:
            factory = self.content_type_map.get_factory(response.headers['Content-Type'])
        return await factory(self, uri, response)

    def cache_state(self, state: BaseState) -> None:
        """Store a State and its embedded States, and notify live resources."""
        for embedded in state.get_embedded():
            self.cache_state(embedded)

        self.cache.store(state)
        resource = self.resources.get(state.uri)
        if resource is not None:
            resource.emit('update', state)

    def clear_cache(self) -> None:
        self.cache.clear()
        self.cache_dependencies.clear()

    def clear_resource_cache(self, stale_uris: Iterable[str], deleted_uris: Iterable[str]) -> None:
        """Expire cache entries and emit 'stale' or 'delete' on their resources.

        Uris that registered an inv-by dependency on an expired uri expire
        along with it.
        """
        deleted = set(deleted_uris)
        stale = expand_cache_dependencies(set(stale_uris) | deleted, self.cache_dependencies) - deleted

        for uri in stale:
            self.cache.delete(uri)
            resource = self.resources.get(uri)
            if resource is not None:
                resource.emit('stale')

        for uri in deleted:
            self.cache.delete(uri)
            resource = self.resources.get(uri)
            if resource is not None:
                resource.emit('delete')

    def run_in_background(self, coro, **context) -> asyncio.Future:
        """Schedule a coroutine nobody awaits, keeping a reference until it is done."""
        task = asyncio.ensure_future(coro)
        self._background.add(task)

        def done(t):
            self._background.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.warning("background_task_failed", error=str(t.exception()), **context)

        task.add_done_callback(done)
        return task

    async def aclose(self) -> None:
        """Cancel pending background work, then close middlewares and the transport."""
        pending = [task for task in self._background if not task.done()]
        for resource in self.resources.values():
            pending.extend(resource.active_requests())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for _, middleware in self.fetcher.middlewares:
            close = getattr(middleware, 'aclose', None)
            if close is not None:
                await close()

        await self.fetcher.aclose()

    async def __aenter__(self) -> 'Client':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def expand_cache_dependencies(uris: Set[str], dependencies: Dict[str, Set[str]]) -> Set[str]:
    """All uris plus, transitively, every uri that depends on them."""
    output: Set[str] = set()
    pending = list(uris)
    while pending:
        uri = pending.pop()
        if uri in output:
            continue
        output.add(uri)
        pending.extend(dependencies.get(uri, ()))
    return output
