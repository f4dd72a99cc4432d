"""
Maps response media types to the state factory that understands them
"""
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import structlog

from ..http.error import UnsupportedFormat
from ..http.util import parse_content_type
from . import binary, collection_json, hal, html, jsonapi, siren, text

logger = structlog.get_logger(__name__)

StateFactory = Callable[..., Awaitable]

DEFAULT_FORMATS: List[Tuple[str, StateFactory, str]] = [
    ('application/prs.hal-forms+json', hal.factory, '1.0'),
    ('application/hal+json', hal.factory, '0.9'),
    ('application/vnd.api+json', jsonapi.factory, '0.8'),
    ('application/vnd.siren+json', siren.factory, '0.8'),
    ('application/vnd.collection+json', collection_json.factory, '0.8'),
    ('application/json', hal.factory, '0.7'),
    ('text/html', html.factory, '0.6'),
]

__all__ = ['FormatRegistry', 'UnsupportedFormat', 'DEFAULT_FORMATS']


class FormatRegistry:
    """Ordered registry of mime type -> (state factory, q value).

    Unregistered text/* types fall back to the text factory and anything
    else to the binary factory. In strict mode the binary fallback is
    disabled and UnsupportedFormat is raised instead.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self._formats: Dict[str, Tuple[StateFactory, str]] = {}
        for mime, factory, q in DEFAULT_FORMATS:
            self.register(mime, factory, q)

    def register(self, mime: str, factory: StateFactory, q: str = '1.0') -> None:
        self._formats[mime.lower()] = (factory, str(q))

    def unregister(self, mime: str) -> None:
        self._formats.pop(mime.lower(), None)

    def mime_types(self) -> List[str]:
        return list(self._formats.keys())

    def items(self):
        return self._formats.items()

    def __contains__(self, mime: str) -> bool:
        return mime.lower() in self._formats

    def accept_header(self) -> str:
        """Build an Accept header, highest q first, ties in registration order."""
        entries = sorted(self._formats.items(), key=lambda item: -float(item[1][1]))
        return ', '.join(f"{mime};q={q}" for mime, (_, q) in entries)

    def get_factory(self, content_type: Optional[str]) -> StateFactory:
        """Select the factory for a Content-Type header value."""
        mime = parse_content_type(content_type)
        if mime is None:
            return binary.factory

        if mime in self._formats:
            return self._formats[mime][0]

        if mime.startswith('text/'):
            return text.factory

        if self.strict:
            logger.warning("unsupported_format", content_type=mime)
            raise UnsupportedFormat(f"No state factory is registered for {mime}")

        return binary.factory
