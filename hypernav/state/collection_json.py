"""
Collection+JSON (application/vnd.collection+json) state factory
"""
from typing import Any, Dict, List

import httpx

from ..http.error import UnsupportedFormat
from ..http.util import parse_link
from ..link import Link
from .base import BaseState, merge_links


class CjState(BaseState):

    def serialize_body(self):
        raise UnsupportedFormat('Reserializing Collection+JSON states is not supported')


async def factory(client, uri: str, response: httpx.Response) -> CjState:
    body = response.json()

    links = parse_link(uri, response.headers.get('Link'))
    if isinstance(body, dict):
        merge_links(links, parse_cj_links(uri, body))

    return CjState(
        client=client,
        uri=uri,
        data=body,
        headers=response.headers,
        links=links,
    )


def parse_cj_links(context: str, body: Dict[str, Any]) -> List[Link]:
    collection = body.get('collection') or {}
    result = []

    for link in collection.get('links', []):
        result.append(Link(rel=link['rel'], href=link['href'], context=context, title=link.get('name')))

    # Every item with a href is an 'item' of the collection
    for item in collection.get('items', []):
        if not item.get('href'):
            continue
        result.append(Link(rel='item', href=item['href'], context=context))

    # Queries with data become templated links
    for query in collection.get('queries', []):
        if not query.get('data'):
            result.append(Link(rel=query['rel'], href=query['href'], context=context, title=query.get('name')))
            continue
        template = query['href'] + '{?' + ','.join(prop['name'] for prop in query['data']) + '}'
        result.append(Link(
            rel=query['rel'],
            href=template,
            context=context,
            title=query.get('name'),
            templated=True,
        ))

    return result
