"""
Links and the ordered rel -> [Link] multimap attached to every State
"""
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Iterable, List, Optional, Union

from . import uri as uri_util


class LinkNotFound(LookupError):
    """Raised when a rel is followed that the current State does not have."""


@dataclass
class Link:
    rel: str
    href: str
    context: str
    title: Optional[str] = None
    type: Optional[str] = None
    templated: bool = False
    hreflang: Optional[str] = None
    anchor: Optional[str] = None
    media: Optional[str] = None
    name: Optional[str] = None
    hints: Dict[str, Any] = field(default_factory=dict)

    def resolve(self) -> str:
        """Return the absolute target URI."""
        return uri_util.resolve(self)

    def expand(self, variables: Dict[str, Any]) -> str:
        """Expand a URI template and return the absolute target URI."""
        if not self.templated:
            return self.resolve()
        return uri_util.expand(self, variables)

    def to_dict(self) -> Dict[str, Any]:
        """Attributes that were actually set, without rel and context."""
        result = {}
        for f in fields(self):
            if f.name in ('rel', 'context'):
                continue
            value = getattr(self, f.name)
            if value in (None, False, {}):
                continue
            result[f.name] = value
        return result

    @classmethod
    def from_dict(cls, rel: str, context: str, attributes: Dict[str, Any]) -> 'Link':
        """Build a Link from a format's link object, ignoring unknown keys."""
        known = {f.name for f in fields(cls)} - {'rel', 'context'}
        kwargs = {k: v for k, v in attributes.items() if k in known}
        return cls(rel=rel, context=context, **kwargs)


class Links:
    """Ordered collection of links, grouped by relation type."""

    def __init__(self, default_context: str, links: Union['Links', Iterable[Link], None] = None):
        self.default_context = default_context
        self._store: Dict[str, List[Link]] = {}

        if isinstance(links, Links):
            links = links.get_all()
        if links:
            self.add(*links)

    def add(self, *links: Link) -> None:
        for link in links:
            self._store.setdefault(link.rel, []).append(link)

    def set(self, link: Link) -> None:
        """Replace every link with the same rel."""
        self._store[link.rel] = [link]

    def get(self, rel: str) -> Optional[Link]:
        links = self._store.get(rel)
        if not links:
            return None
        return links[0]

    def get_many(self, rel: str) -> List[Link]:
        return list(self._store.get(rel, []))

    def get_all(self) -> List[Link]:
        result = []
        for links in self._store.values():
            result.extend(links)
        return result

    def has(self, rel: str) -> bool:
        return bool(self._store.get(rel))

    def delete(self, rel: str, href: Optional[str] = None) -> None:
        """Delete all links for a rel, or only those pointing at href.

        href may be relative, so both sides are resolved before comparing.
        """
        if href is None:
            self._store.pop(rel, None)
            return

        if rel not in self._store:
            return

        target = uri_util.resolve(self.default_context, href)
        remaining = [link for link in self._store[rel] if link.resolve() != target]
        if remaining:
            self._store[rel] = remaining
        else:
            del self._store[rel]

    def __len__(self) -> int:
        return len(self._store)

    def __iter__(self):
        return iter(self.get_all())

    def __repr__(self) -> str:
        return f"Links({self.default_context!r}, {self.get_all()!r})"
