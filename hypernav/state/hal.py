"""
HAL (application/hal+json) and HAL-Forms state factory
"""
import json
from typing import Any, Dict, List

import httpx

from ..action import ActionInfo
from ..field import Field
from ..http.util import parse_link
from ..link import Link, Links
from ..uri import resolve
from .base import BaseState, as_list, merge_links

RESERVED_KEYS = ('_links', '_embedded', '_templates')


class HalState(BaseState):
    """A State in the HAL format."""

    def serialize_body(self) -> str:
        if not isinstance(self.data, dict):
            return json.dumps(self.data)
        return json.dumps({
            '_links': self._serialize_links(),
            **self.data,
        })

    def _serialize_links(self) -> Dict[str, Any]:
        links: Dict[str, Any] = {'self': {'href': self.uri}}
        for link in self.links.get_all():
            if link.rel == 'self':
                continue
            attributes = link.to_dict()
            if link.rel not in links:
                links[link.rel] = attributes
            elif isinstance(links[link.rel], list):
                links[link.rel].append(attributes)
            else:
                links[link.rel] = [links[link.rel], attributes]
        return links


async def factory(client, uri: str, response: httpx.Response) -> HalState:
    """Turn a HTTP response into a HalState."""
    body = response.json()
    links = parse_link(uri, response.headers.get('Link'))

    # Plain JSON documents that are not objects have no HAL structure
    if not isinstance(body, dict):
        return HalState(client=client, uri=uri, data=body, headers=response.headers, links=links)

    merge_links(links, parse_hal_links(uri, body))

    embedded_body = dict(body)
    embedded = parse_hal_embedded(client, uri, embedded_body, response.headers)

    return HalState(
        client=client,
        uri=uri,
        data=strip_reserved(embedded_body),
        headers=response.headers,
        links=links,
        embedded=embedded,
        actions=parse_hal_forms(uri, body),
    )


def strip_reserved(body: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in body.items() if k not in RESERVED_KEYS}


def self_href(body: Dict[str, Any]):
    self_link = (body.get('_links') or {}).get('self')
    if not isinstance(self_link, dict):
        return None
    return self_link.get('href')


def parse_hal_links(context: str, body: Dict[str, Any]) -> List[Link]:
    """Links from _links, plus a link for every _embedded member with a self href.

    Embedded members should also appear in _links, but not every server
    does that, so pairs already seen in _links are not added twice.
    """
    result: List[Link] = []
    found = set()

    for rel, links in (body.get('_links') or {}).items():
        for link in as_list(links):
            if not isinstance(link, dict) or 'href' not in link:
                continue
            found.add((rel, link['href']))
            result.append(Link.from_dict(rel, context, link))

    for rel, inner_bodies in (body.get('_embedded') or {}).items():
        for inner_body in as_list(inner_bodies):
            if not isinstance(inner_body, dict):
                continue
            href = self_href(inner_body)
            if not href or (rel, href) in found:
                continue
            found.add((rel, href))
            result.append(Link(rel=rel, href=href, context=context))

    return result


def parse_hal_embedded(client, context: str, body: Dict[str, Any], headers: httpx.Headers) -> List[HalState]:
    """Turn every _embedded member with a self link into its own HalState.

    Members without a self link cannot be cached by uri, so they are folded
    back into body under their rel. Nested members are resolved against the
    outermost context.
    """
    result: List[HalState] = []
    content_type = headers.get('Content-Type')

    for rel, embedded in (body.get('_embedded') or {}).items():
        for item in as_list(embedded):
            if not isinstance(item, dict):
                continue

            href = self_href(item)
            if href is None:
                if rel not in body:
                    body[rel] = item
                elif isinstance(body[rel], list):
                    body[rel].append(item)
                else:
                    body[rel] = [body[rel], item]
                continue

            item_uri = resolve(context, href)
            item_headers = httpx.Headers({'Content-Type': content_type} if content_type else {})
            result.append(HalState(
                client=client,
                uri=item_uri,
                data=strip_reserved(item),
                headers=item_headers,
                links=Links(context, parse_hal_links(context, item)),
                embedded=parse_hal_embedded(client, context, dict(item), headers),
                actions=parse_hal_forms(context, item),
            ))

    return result


def parse_hal_forms(context: str, body: Dict[str, Any]) -> List[ActionInfo]:
    """Actions from a HAL-Forms _templates object."""
    result = []
    for name, template in (body.get('_templates') or {}).items():
        if not isinstance(template, dict):
            continue
        result.append(ActionInfo(
            uri=resolve(context, template.get('target') or ''),
            name=name,
            title=template.get('title'),
            method=template.get('method', 'GET').upper(),
            content_type=template.get('contentType', 'application/json'),
            fields=[parse_hal_field(p) for p in template.get('properties', []) if 'name' in p],
        ))
    return result


def parse_hal_field(prop: Dict[str, Any]) -> Field:
    options = {}
    inline = (prop.get('options') or {}).get('inline') or []
    for option in inline:
        if isinstance(option, dict):
            options[str(option.get('value'))] = option.get('prompt', option.get('value'))
        else:
            options[str(option)] = str(option)

    return Field(
        name=prop['name'],
        type=prop.get('type', 'text'),
        required=prop.get('required', False),
        read_only=prop.get('readOnly', False),
        label=prop.get('prompt'),
        value=prop.get('value'),
        placeholder=prop.get('placeholder'),
        options=options,
        min=prop.get('min'),
        max=prop.get('max'),
        step=prop.get('step'),
        min_length=prop.get('minLength'),
        max_length=prop.get('maxLength'),
        pattern=prop.get('regex'),
    )
