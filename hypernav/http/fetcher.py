"""
The Fetcher wraps the HTTP transport in a chain of origin-scoped middlewares.

A middleware is an async callable taking the request and a `next_` callable
that runs the rest of the chain. It may alter the request before calling
`next_`, and alter or replace the response afterwards.
"""
import re
import time
from typing import Awaitable, Callable, List, Pattern, Tuple

import httpx
import structlog

from .error import problem_factory

logger = structlog.get_logger(__name__)

NextFunction = Callable[[httpx.Request], Awaitable[httpx.Response]]
FetchMiddleware = Callable[[httpx.Request, NextFunction], Awaitable[httpx.Response]]

REQUEST_INIT_KEYS = ('method', 'headers', 'content', 'data', 'json', 'params', 'files')


class Fetcher:
    def __init__(
        self,
        user_agent: str = 'Hypernav/0.1.0',
        timeout: float = 30.0,
        max_redirects: int = 5,
        max_connections: int = 20,
        max_keepalive_connections: int = 10,
        transport: httpx.AsyncBaseTransport = None,
    ):
        """Initialize the fetcher and the underlying httpx client."""
        self.user_agent = user_agent
        self.timeout = timeout
        self.middlewares: List[Tuple[Pattern, FetchMiddleware]] = []

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            max_redirects=max_redirects,
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
            transport=transport,
        )

    @classmethod
    def from_config(cls, config, transport: httpx.AsyncBaseTransport = None) -> 'Fetcher':
        """Create a fetcher from the 'fetcher' section of a Config."""
        settings = config.fetcher
        return cls(
            user_agent=settings.get('user_agent', 'Hypernav/0.1.0'),
            timeout=float(settings.get('timeout', 30.0)),
            max_redirects=int(settings.get('max_redirects', 5)),
            max_connections=int(settings.get('max_connections', 20)),
            max_keepalive_connections=int(settings.get('max_keepalive_connections', 10)),
            transport=transport,
        )

    def use(self, middleware: FetchMiddleware, origin: str = '*') -> None:
        """Register a middleware for every origin matching a glob like 'https://*.example.org'."""
        pattern = '(.*)'.join(re.escape(part) for part in origin.split('*'))
        self.middlewares.append((re.compile('^' + pattern + '$'), middleware))

    def get_middlewares_by_origin(self, origin: str) -> List[FetchMiddleware]:
        return [middleware for regex, middleware in self.middlewares if regex.match(origin)]

    def build_request(self, resource, **init) -> httpx.Request:
        """Create an httpx.Request from a url or an existing request plus overrides."""
        unknown = set(init) - set(REQUEST_INIT_KEYS)
        if unknown:
            raise TypeError(f"Unexpected request options: {', '.join(sorted(unknown))}")

        if isinstance(resource, httpx.Request):
            if not init:
                return resource
            headers = httpx.Headers(resource.headers)
            headers.update(init.pop('headers', None) or {})
            if not any(k in init for k in ('content', 'data', 'json', 'files')):
                init['content'] = resource.content
            method = init.pop('method', resource.method)
            return httpx.Request(method, resource.url, headers=headers, **init)

        if not isinstance(resource, (str, httpx.URL)):
            raise TypeError('resource must be a url string or an httpx.Request')

        method = init.pop('method', 'GET')
        return httpx.Request(method, resource, **init)

    async def fetch(self, resource, **init) -> httpx.Response:
        """Send a request through every middleware registered for its origin."""
        request = self.build_request(resource, **init)

        if not request.url.is_absolute_url:
            raise TypeError(f"Cannot fetch relative url {request.url}")

        origin = f"{request.url.scheme}://{request.url.netloc.decode('ascii')}"
        middlewares = self.get_middlewares_by_origin(origin)
        middlewares.append(self._send)

        return await invoke_middlewares(middlewares, request)

    async def fetch_or_throw(self, resource, **init) -> httpx.Response:
        """Like fetch, but raises HttpError or Problem for non-2xx responses."""
        response = await self.fetch(resource, **init)
        if response.is_success:
            return response
        raise problem_factory(response)

    async def _send(self, request: httpx.Request, next_: NextFunction = None) -> httpx.Response:
        """Last stage of the chain: the actual network call."""
        if 'User-Agent' not in request.headers:
            request.headers['User-Agent'] = self.user_agent

        start_time = time.time()
        try:
            response = await self._client.send(request)
        except httpx.TimeoutException as e:
            logger.warning("http_timeout", method=request.method, url=str(request.url),
                           timeout_seconds=self.timeout, error=str(e))
            raise
        except httpx.HTTPError as e:
            logger.warning("http_transport_error", method=request.method, url=str(request.url), error=str(e))
            raise

        logger.debug("http_request",
                     method=request.method,
                     url=str(request.url),
                     status_code=response.status_code,
                     fetch_time=time.time() - start_time)
        return response

    async def aclose(self) -> None:
        await self._client.aclose()


async def invoke_middlewares(middlewares: List[FetchMiddleware], request: httpx.Request) -> httpx.Response:
    """Call the first middleware, handing it a `next_` that runs the rest."""
    async def next_(next_request: httpx.Request) -> httpx.Response:
        return await invoke_middlewares(middlewares[1:], next_request)

    return await middlewares[0](request, next_)
