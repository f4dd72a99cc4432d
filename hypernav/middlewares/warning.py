"""
Logs a warning for responses that announce their own deprecation
(Deprecation and Sunset headers, `Link: rel=deprecation`).
"""
import structlog

from ..http.util import links_by_rel

logger = structlog.get_logger(__name__)


def warning_middleware():

    async def middleware(request, next_):
        response = await next_(request)

        deprecation = response.headers.get('Deprecation')
        if deprecation:
            request_uri = str(request.url)
            logger.warning("resource_deprecated",
                           url=request_uri,
                           deprecation=deprecation,
                           sunset=response.headers.get('Sunset'),
                           info=links_by_rel(request_uri, response.headers.get('Link'), 'deprecation'))
        return response

    return middleware
