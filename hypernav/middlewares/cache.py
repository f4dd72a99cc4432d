"""
Keeps the client's State cache in line with the HTTP traffic.

After a successful unsafe request the request uri, every `Link: rel=invalidates`
target and the Location target are expired, and live resources get a 'stale'
event. A Content-Location response body is stored as the new State of that
uri. Responses with `Link: rel=inv-by` register a dependency so that the
linking uri expires along with the target.
"""
import structlog

from ..http.util import has_no_store, is_safe_method, links_by_rel
from ..uri import resolve

logger = structlog.get_logger(__name__)

# Internal request header: don't emit 'stale' for the request uri itself
NO_STALE_HEADER = 'X-Hypernav-No-Stale'


def cache_middleware(client):

    async def middleware(request, next_):
        no_stale = False
        if NO_STALE_HEADER in request.headers:
            no_stale = True
            del request.headers[NO_STALE_HEADER]

        response = await next_(request)

        request_uri = str(request.url)
        link_header = response.headers.get('Link')

        for uri in links_by_rel(request_uri, link_header, 'inv-by'):
            client.cache_dependencies.setdefault(uri, set()).add(request_uri)

        if is_safe_method(request.method) or not response.is_success:
            return response

        stale = []
        deleted = []
        if request.method == 'DELETE':
            deleted.append(request_uri)
        elif not no_stale:
            stale.append(request_uri)

        stale.extend(links_by_rel(request_uri, link_header, 'invalidates'))

        if 'Location' in response.headers:
            stale.append(resolve(request_uri, response.headers['Location']))

        content_location = None
        if 'Content-Location' in response.headers:
            content_location = resolve(request_uri, response.headers['Content-Location'])
            if has_no_store(response.headers.get('Cache-Control')) or not response.content:
                stale.append(content_location)
                content_location = None

        logger.debug("cache_invalidate", method=request.method, url=request_uri, stale=stale, deleted=deleted)
        client.clear_resource_cache(stale, deleted)

        if content_location is not None:
            state = await client.get_state_for_response(content_location, response)
            client.cache_state(state)

        return response

    return middleware
