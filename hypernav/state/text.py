"""
Fallback state factory for text/* responses
"""
import httpx

from ..http.util import parse_link
from .base import BaseState


class TextState(BaseState):
    pass


async def factory(client, uri: str, response: httpx.Response) -> TextState:
    return TextState(
        client=client,
        uri=uri,
        data=response.text,
        headers=response.headers,
        links=parse_link(uri, response.headers.get('Link')),
    )
