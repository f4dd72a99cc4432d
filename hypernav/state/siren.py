"""
Siren (application/vnd.siren+json) state factory
"""
import json
from typing import Any, Dict, List, Optional

import httpx

from ..action import ActionInfo
from ..field import Field
from ..http.util import parse_link
from ..link import Link, Links
from ..uri import resolve
from .base import BaseState, merge_links


class SirenState(BaseState):
    """A State in the Siren format. data holds the whole entity."""

    def serialize_body(self) -> str:
        return json.dumps(self.data)


async def factory(client, uri: str, response: httpx.Response) -> SirenState:
    body = response.json()
    links = parse_link(uri, response.headers.get('Link'))

    if not isinstance(body, dict):
        return SirenState(client=client, uri=uri, data=body, headers=response.headers, links=links)

    merge_links(links, parse_siren_links(uri, body))

    return SirenState(
        client=client,
        uri=uri,
        data=body,
        headers=response.headers,
        links=links,
        embedded=parse_siren_embedded(client, uri, body, response.headers),
        actions=[parse_siren_action(uri, action) for action in body.get('actions', [])],
    )


def parse_siren_links(context: str, body: Dict[str, Any]) -> List[Link]:
    result: List[Link] = []

    for link in body.get('links', []):
        result.extend(parse_siren_link(context, link))

    for entity in body.get('entities', []):
        if 'href' in entity:
            result.extend(parse_siren_link(context, entity))
        else:
            result.extend(parse_sub_entity_as_link(context, entity))

    return result


def parse_siren_link(context: str, link: Dict[str, Any]) -> List[Link]:
    attributes = {k: v for k, v in link.items() if k not in ('rel', 'class')}
    return [Link.from_dict(rel, context, attributes) for rel in link.get('rel', [])]


def find_self_href(entity: Dict[str, Any]) -> Optional[str]:
    href = None
    for link in entity.get('links', []):
        if 'self' in link.get('rel', []):
            href = link.get('href')
    return href


def parse_sub_entity_as_link(context: str, entity: Dict[str, Any]) -> List[Link]:
    # Sub-entities without a self link have no uri and are not linkable.
    href = find_self_href(entity)
    if href is None:
        return []
    return [
        Link(rel=rel, href=href, context=context, title=entity.get('title'))
        for rel in entity.get('rel', [])
    ]


def parse_siren_embedded(client, context: str, body: Dict[str, Any], headers: httpx.Headers) -> List[SirenState]:
    result = []
    for entity in body.get('entities', []):
        if 'href' in entity:
            continue
        href = find_self_href(entity)
        if href is None:
            continue

        entity_uri = resolve(context, href)
        result.append(SirenState(
            client=client,
            uri=entity_uri,
            data=entity,
            headers=httpx.Headers({'Content-Type': headers.get('Content-Type', 'application/vnd.siren+json')}),
            links=Links(entity_uri, parse_siren_links(entity_uri, entity)),
            actions=[parse_siren_action(entity_uri, action) for action in entity.get('actions', [])],
        ))
    return result


def parse_siren_action(context: str, action: Dict[str, Any]) -> ActionInfo:
    return ActionInfo(
        uri=resolve(context, action.get('href', '')),
        name=action.get('name'),
        title=action.get('title'),
        method=action.get('method', 'GET').upper(),
        content_type=action.get('type', 'application/x-www-form-urlencoded'),
        fields=[parse_siren_field(f) for f in action.get('fields', [])],
    )


def parse_siren_field(field: Dict[str, Any]) -> Field:
    field_type = field.get('type', 'text')
    value = field.get('value')
    options = {}

    # Siren radio/select values come as a list of {value, title} objects
    if isinstance(value, list):
        for option in value:
            options[str(option.get('value'))] = option.get('title', option.get('value'))
            if option.get('selected'):
                value = option.get('value')
        if isinstance(value, list):
            value = None

    return Field(
        name=field['name'],
        type=field_type,
        label=field.get('title'),
        value=value,
        options=options,
    )
