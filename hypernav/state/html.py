"""
HTML (text/html) state factory

Links come from <link> and <a> elements that carry a rel attribute, actions
from <form> elements.
"""
from typing import List

import httpx
from lxml import etree, html

from ..action import ActionInfo
from ..field import Field
from ..http.error import UnsupportedFormat
from ..http.util import parse_link
from ..link import Link
from ..uri import resolve
from .base import BaseState, merge_links


class HtmlState(BaseState):

    def serialize_body(self):
        raise UnsupportedFormat('Reserializing HTML states is not supported')


async def factory(client, uri: str, response: httpx.Response) -> HtmlState:
    body = response.text

    links = parse_link(uri, response.headers.get('Link'))
    actions: List[ActionInfo] = []

    document = parse_document(body)
    if document is not None:
        merge_links(links, parse_html_links(uri, document))
        actions = parse_html_forms(uri, document)

    return HtmlState(
        client=client,
        uri=uri,
        data=body,
        headers=response.headers,
        links=links,
        actions=actions,
    )


def parse_document(body: str):
    if not body.strip():
        return None
    try:
        return html.fromstring(body)
    except (etree.ParserError, ValueError):
        return None


def parse_html_links(context: str, document) -> List[Link]:
    result = []
    for element in document.iter('link', 'a'):
        rels = element.get('rel')
        href = element.get('href')
        if not rels or href is None:
            continue
        for rel in rels.split():
            result.append(Link(
                rel=rel,
                href=href,
                context=context,
                type=element.get('type'),
                title=element.get('title'),
                hreflang=element.get('hreflang'),
                media=element.get('media'),
            ))
    return result


def parse_html_forms(context: str, document) -> List[ActionInfo]:
    result = []
    for form in document.iter('form'):
        result.append(ActionInfo(
            uri=resolve(context, form.get('action') or ''),
            name=form.get('id') or form.get('name'),
            title=form.get('title'),
            method=(form.get('method') or 'GET').upper(),
            content_type=form.get('enctype') or 'application/x-www-form-urlencoded',
            fields=parse_form_fields(form),
        ))
    return result


def parse_form_fields(form) -> List[Field]:
    fields = []
    for element in form.iter('input', 'textarea', 'select'):
        name = element.get('name')
        if not name:
            continue

        if element.tag == 'textarea':
            field_type = 'textarea'
            value = element.text
        elif element.tag == 'select':
            field_type = 'radio'
            value = None
        else:
            field_type = (element.get('type') or 'text').lower()
            value = element.get('value')

        if field_type in ('submit', 'button', 'reset', 'image'):
            continue

        options = {}
        if element.tag == 'select':
            for option in element.iter('option'):
                option_value = option.get('value', option.text_content())
                options[option_value] = option.text_content().strip()
                if option.get('selected') is not None:
                    value = option_value

        fields.append(Field(
            name=name,
            type=field_type,
            required=element.get('required') is not None,
            read_only=element.get('readonly') is not None,
            label=element.get('title'),
            value=value,
            placeholder=element.get('placeholder'),
            options=options,
            min=_number(element.get('min')),
            max=_number(element.get('max')),
            step=_number(element.get('step')),
            min_length=_number(element.get('minlength')),
            max_length=_number(element.get('maxlength')),
            pattern=element.get('pattern'),
        ))
    return fields


def _number(value):
    if value is None:
        return None
    try:
        return float(value) if '.' in value else int(value)
    except ValueError:
        return None
