"""
Fallback state factory for any response that is not text
"""
import httpx

from ..http.util import parse_link
from .base import BaseState


class BinaryState(BaseState):
    """A State for images, video and other opaque bodies. data holds bytes."""


async def factory(client, uri: str, response: httpx.Response) -> BinaryState:
    return BinaryState(
        client=client,
        uri=uri,
        data=response.content,
        headers=response.headers,
        links=parse_link(uri, response.headers.get('Link')),
    )
