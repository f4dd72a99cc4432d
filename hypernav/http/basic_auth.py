import base64

from .fetcher import FetchMiddleware


def basic_auth(username: str, password: str) -> FetchMiddleware:
    """Middleware adding an Authorization: Basic header to every request."""
    credentials = base64.b64encode(f"{username}:{password}".encode('utf-8')).decode('ascii')
    header = 'Basic ' + credentials

    async def middleware(request, next_):
        request.headers['Authorization'] = header
        return await next_(request)

    return middleware
