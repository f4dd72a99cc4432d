"""
Lazy, awaitable results of Resource.follow() and Resource.follow_all().

Nothing happens until the object is awaited, which allows configuring the
eventual request first and chaining several hops without awaiting each one:

    author = await client.go().follow('article').follow('author').pre_fetch()
"""
import asyncio
import inspect
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)


class FollowPromise:
    """Base for FollowPromiseOne and FollowPromiseMany."""

    def __init__(self, resource, rel: str):
        self._resource = resource
        self.rel = rel
        self._prefetch_enabled = False
        self._prefer_push_enabled = False
        self._prefer_transclude_enabled = False
        self._use_head_enabled = False
        self._task: Optional[asyncio.Future] = None

    def _configure(self, option: str) -> 'FollowPromise':
        if self._task is not None:
            raise RuntimeError('A follow() result can only be configured before it is awaited')
        setattr(self, option, True)
        return self

    def pre_fetch(self) -> 'FollowPromise':
        """Start fetching the followed resource(s) in the background."""
        return self._configure('_prefetch_enabled')

    def prefer_push(self) -> 'FollowPromise':
        """Ask the server to push the followed resource (Prefer-Push)."""
        return self._configure('_prefer_push_enabled')

    def prefer_transclude(self) -> 'FollowPromise':
        """Ask the server to embed the followed resource (Prefer: transclude)."""
        return self._configure('_prefer_transclude_enabled')

    def use_head(self) -> 'FollowPromise':
        """Find the link with a HEAD request, for servers that put links in Link headers."""
        return self._configure('_use_head_enabled')

    def __await__(self):
        if self._task is None:
            self._task = asyncio.ensure_future(self._resolve())
        return self._task.__await__()

    async def _resolve(self):
        raise NotImplementedError

    async def _fetch_state(self):
        """Await the owning resource and get the State holding the links."""
        resource = self._resource
        if inspect.isawaitable(resource):
            resource = await resource

        headers: Dict[str, str] = {}
        if self._prefer_push_enabled:
            headers['Prefer-Push'] = self.rel
        if self._prefer_transclude_enabled and not self._use_head_enabled:
            headers['Prefer'] = 'transclude=' + self.rel

        if self._use_head_enabled:
            return await resource.head(headers=headers)
        return await resource.get(headers=headers)

    def _prefetch(self, resource) -> None:
        async def prefetch():
            try:
                await resource.get()
            except Exception as e:
                logger.warning("prefetch_failed", url=resource.uri, error=str(e))

        resource.client.run_in_background(prefetch(), event='prefetch', uri=resource.uri)


class FollowPromiseOne(FollowPromise):
    """Resolves to the Resource a single link points to."""

    def __init__(self, resource, rel: str, variables: Optional[Dict[str, Any]] = None):
        super().__init__(resource, rel)
        self.variables = variables

    async def _resolve(self):
        state = await self._fetch_state()
        new_resource = state.follow(self.rel, self.variables)

        if self._prefetch_enabled:
            self._prefetch(new_resource)

        return new_resource

    def follow(self, rel: str, variables: Optional[Dict[str, Any]] = None) -> 'FollowPromiseOne':
        """Follow another link from the resource this one resolves to."""
        return FollowPromiseOne(self, rel, variables)

    def follow_all(self, rel: str) -> 'FollowPromiseMany':
        return FollowPromiseMany(self, rel)


class FollowPromiseMany(FollowPromise):
    """Resolves to a list with a Resource for every link with the rel."""

    async def _resolve(self) -> List:
        state = await self._fetch_state()
        resources = state.follow_all(self.rel)

        if self._prefetch_enabled:
            for resource in resources:
                self._prefetch(resource)

        return resources
