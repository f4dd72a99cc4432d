"""
State factory for HEAD responses, which only carry headers
"""
import httpx

from ..http.util import parse_link
from .base import BaseHeadState


async def factory(client, uri: str, response: httpx.Response) -> BaseHeadState:
    return BaseHeadState(
        client=client,
        uri=uri,
        headers=response.headers,
        links=parse_link(uri, response.headers.get('Link')),
    )
