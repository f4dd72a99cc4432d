"""
JSON:API (application/vnd.api+json) state factory
"""
import json
from typing import Any, Dict, List

import httpx

from ..http.util import parse_link
from ..link import Link
from .base import BaseState, merge_links


class JsonApiState(BaseState):

    def serialize_body(self) -> str:
        return json.dumps(self.data)


async def factory(client, uri: str, response: httpx.Response) -> JsonApiState:
    body = response.json()

    links = parse_link(uri, response.headers.get('Link'))
    if isinstance(body, dict):
        merge_links(links, parse_jsonapi_links(uri, body) + parse_jsonapi_collection(uri, body))

    return JsonApiState(
        client=client,
        uri=uri,
        data=body,
        headers=response.headers,
        links=links,
    )


def parse_jsonapi_link(context: str, rel: str, link) -> Link:
    """A JSON:API link is either a string or an object with a href."""
    if isinstance(link, str):
        return Link(rel=rel, href=link, context=context)
    return Link.from_dict(rel, context, link)


def parse_jsonapi_links(context: str, body: Dict[str, Any]) -> List[Link]:
    result = []
    for rel, value in (body.get('links') or {}).items():
        if value is None:
            continue
        if isinstance(value, list):
            result.extend(parse_jsonapi_link(context, rel, link) for link in value)
        else:
            result.append(parse_jsonapi_link(context, rel, value))
    return result


def parse_jsonapi_collection(context: str, body: Dict[str, Any]) -> List[Link]:
    """Members of a collection document become 'item' links of the parent."""
    data = body.get('data')
    if not isinstance(data, list):
        return []

    result = []
    for member in data:
        if not isinstance(member, dict):
            continue
        self_link = (member.get('links') or {}).get('self')
        if self_link is None:
            continue
        href = parse_jsonapi_link(context, 'self', self_link).href
        result.append(Link(rel='item', href=href, context=context))
    return result
