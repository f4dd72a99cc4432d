"""
URI resolution and RFC 6570 template expansion
"""
from typing import Any, Dict, Optional
from urllib.parse import urljoin

from uritemplate import URITemplate


def resolve(base, relative: Optional[str] = None) -> str:
    """Resolve a relative reference against a base URI.

    Accepts either two strings, or a single Link, in which case the link's
    href is resolved against its context.
    """
    if not isinstance(base, str):
        relative = base.href
        base = base.context
    elif not relative:
        return base

    return urljoin(base, relative)


def expand(link, variables: Dict[str, Any]) -> str:
    """Expand a templated link and resolve the result against its context."""
    expanded = URITemplate(link.href).expand(variables)
    return resolve(link.context, expanded)
