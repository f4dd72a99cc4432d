"""
Small helpers shared by the fetcher, the middlewares and the state factories
"""
from typing import Optional

from requests.utils import parse_header_links

from ..link import Link, Links
from ..uri import resolve

SAFE_METHODS = ('GET', 'HEAD', 'OPTIONS', 'PRI', 'PROPFIND', 'REPORT', 'SEARCH', 'TRACE')

LINK_ATTRIBUTES = ('title', 'type', 'hreflang', 'anchor', 'media')


def parse_content_type(content_type: Optional[str]) -> Optional[str]:
    """Take a Content-Type header and return only the mime type, lowercased."""
    if not content_type:
        return None
    return content_type.split(';')[0].strip().lower()


def is_safe_method(method: str) -> bool:
    return method.upper() in SAFE_METHODS


def parse_link(context: str, header: Optional[str]) -> Links:
    """Parse an RFC 8288 Link header into a Links object.

    A rel attribute holding several space-separated relation types produces
    one link per relation type.
    """
    result = Links(context)
    if not header:
        return result

    for http_link in parse_header_links(header):
        href = http_link.get('url')
        rels = http_link.get('rel')
        if href is None or not rels:
            continue

        attributes = {k: http_link[k] for k in LINK_ATTRIBUTES if k in http_link}
        for rel in rels.split():
            result.add(Link(rel=rel, href=href, context=context, **attributes))

    return result


def links_by_rel(base: str, header: Optional[str], rel: str) -> list:
    """Return absolute URIs of every Link header entry with the given rel."""
    return [link.resolve() for link in parse_link(base, header).get_many(rel)]


def has_no_store(cache_control: Optional[str]) -> bool:
    if not cache_control:
        return False
    directives = [d.strip().lower() for d in cache_control.split(',')]
    return 'no-store' in directives
