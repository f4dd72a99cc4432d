from .fetcher import FetchMiddleware


def bearer_auth(token: str) -> FetchMiddleware:
    """Middleware adding an Authorization: Bearer header to every request."""
    header = 'Bearer ' + token

    async def middleware(request, next_):
        request.headers['Authorization'] = header
        return await next_(request)

    return middleware
