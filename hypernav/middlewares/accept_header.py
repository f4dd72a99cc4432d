def accept_header_middleware(client):
    """Set a default Accept header built from the client's registered formats."""

    async def middleware(request, next_):
        if 'Accept' not in request.headers:
            request.headers['Accept'] = client.accept_header()
        return await next_(request)

    return middleware
