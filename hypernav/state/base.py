"""
The uniform State a representor turns every HTTP response into
"""
import copy
import json
import time
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import httpx

from ..action import ActionInfo, ActionNotFound, SimpleAction
from ..link import LinkNotFound, Links

if TYPE_CHECKING:
    from ..client import Client
    from ..resource import Resource

CONTENT_HEADER_NAMES = ('Content-Type', 'Content-Language')


class BaseHeadState:
    """State derived from response headers only, as with a HEAD request."""

    def __init__(self, client: 'Client', uri: str, headers: httpx.Headers, links: Links):
        self.client = client
        self.uri = uri
        self.headers = headers
        self.links = links
        self.timestamp = time.time()

    def follow(self, rel: str, variables: Optional[Dict[str, Any]] = None) -> 'Resource':
        """Return the Resource a relation type points to.

        Templated links are expanded when variables are given. Raises
        LinkNotFound if the rel is absent.
        """
        link = self.links.get(rel)
        if link is None:
            raise LinkNotFound(f"Link with rel {rel} on {self.uri} not found")

        if link.templated and variables is not None:
            href = link.expand(variables)
        else:
            href = link.resolve()

        resource = self.client.go(href)
        if link.type:
            resource.content_type = link.type
        return resource

    def follow_all(self, rel: str) -> List['Resource']:
        """Return a Resource for every link with this rel. May be empty."""
        resources = []
        for link in self.links.get_many(rel):
            resource = self.client.go(link.resolve())
            if link.type:
                resource.content_type = link.type
            resources.append(resource)
        return resources

    def content_headers(self) -> httpx.Headers:
        """Headers describing the body, which are sent back on a PUT."""
        result = httpx.Headers()
        for name in CONTENT_HEADER_NAMES:
            if name in self.headers:
                result[name] = self.headers[name]
        return result

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.uri}>"


class BaseState(BaseHeadState):
    """A full resource representation: body, links, embedded states and actions."""

    def __init__(
        self,
        client: 'Client',
        uri: str,
        data: Any,
        headers: httpx.Headers,
        links: Links,
        embedded: Optional[List['BaseState']] = None,
        actions: Optional[List[ActionInfo]] = None,
    ):
        super().__init__(client, uri, headers, links)
        self.data = data
        self.embedded = embedded or []
        self.action_info = actions or []

    def action(self, name: Optional[str] = None) -> SimpleAction:
        """Return an action by name, or the first action if no name is given."""
        if not self.action_info:
            raise ActionNotFound('This State does not define any actions')

        if name is None:
            return SimpleAction(self.client, self.action_info[0])

        for info in self.action_info:
            if info.name == name:
                return SimpleAction(self.client, info)

        raise ActionNotFound(f"This State defines no action with name {name}")

    def actions(self) -> List[SimpleAction]:
        return [SimpleAction(self.client, info) for info in self.action_info]

    def has_action(self, name: Optional[str] = None) -> bool:
        if name is None:
            return len(self.action_info) > 0
        return any(info.name == name for info in self.action_info)

    def serialize_body(self):
        """Serialize data for use as a request body."""
        if isinstance(self.data, (bytes, str)):
            return self.data
        return json.dumps(self.data)

    def get_embedded(self) -> List['BaseState']:
        """States for sub-resources that came along in this response."""
        return self.embedded

    def clone(self) -> 'BaseState':
        """Copy of this State without its embedded states."""
        state = type(self)(
            client=self.client,
            uri=self.uri,
            data=copy.deepcopy(self.data),
            headers=httpx.Headers(self.headers),
            links=Links(self.uri, self.links),
            actions=list(self.action_info),
        )
        state.timestamp = self.timestamp
        return state


State = BaseState
HeadState = BaseHeadState


def merge_links(links: Links, new_links) -> Links:
    """Add links to a Links object, skipping (rel, href) pairs it already has."""
    seen = {(link.rel, link.resolve()) for link in links.get_all()}
    for link in new_links:
        key = (link.rel, link.resolve())
        if key in seen:
            continue
        seen.add(key)
        links.add(link)
    return links


def as_list(value) -> list:
    if isinstance(value, list):
        return value
    return [value]
