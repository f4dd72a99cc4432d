"""
Hypermedia actions: forms a server advertises alongside a resource State
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING
from urllib.parse import urlencode

import structlog

from .field import Field
from .http.error import UnsupportedFormat
from .uri import resolve

if TYPE_CHECKING:
    from .client import Client
    from .resource import Resource
    from .state.base import State

logger = structlog.get_logger(__name__)


class ActionNotFound(LookupError):
    """Raised when a State has no action with the requested name."""


@dataclass
class ActionInfo:
    uri: str
    name: Optional[str] = None
    title: Optional[str] = None
    method: str = 'POST'
    content_type: str = 'application/x-www-form-urlencoded'
    fields: List[Field] = field(default_factory=list)


class SimpleAction:
    """Binds an ActionInfo to a client so it can be submitted."""

    def __init__(self, client: 'Client', info: ActionInfo):
        self.client = client
        self.info = info

    @property
    def uri(self) -> str:
        return self.info.uri

    @property
    def name(self) -> Optional[str]:
        return self.info.name

    @property
    def method(self) -> str:
        return self.info.method

    @property
    def content_type(self) -> str:
        return self.info.content_type

    @property
    def fields(self) -> List[Field]:
        return self.info.fields

    def field(self, name: str) -> Optional[Field]:
        for f in self.info.fields:
            if f.name == name:
                return f
        return None

    def _form_data(self, form_data: Dict[str, Any]) -> Dict[str, Any]:
        """Fill in defaults from the field values and check required fields."""
        data = {}
        for f in self.info.fields:
            if f.value is not None:
                data[f.name] = f.value
        data.update(form_data or {})

        missing = [f.name for f in self.info.fields if f.required and data.get(f.name) in (None, '')]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")
        return data

    async def _send(self, form_data: Dict[str, Any]):
        data = self._form_data(form_data)
        method = self.info.method.upper()

        if method == 'GET':
            query = urlencode(data, doseq=True)
            separator = '&' if '?' in self.info.uri else '?'
            uri = self.info.uri + separator + query if query else self.info.uri
            logger.debug("action_submit", action=self.info.name, method=method, uri=uri)
            return uri, await self.client.fetcher.fetch_or_throw(uri, method='GET')

        content_type = self.info.content_type
        if content_type == 'application/json':
            body = json.dumps(data)
        elif content_type == 'application/x-www-form-urlencoded':
            body = urlencode(data, doseq=True)
        else:
            raise UnsupportedFormat(f"Cannot serialize action body as {content_type}")

        logger.debug("action_submit", action=self.info.name, method=method, uri=self.info.uri)
        response = await self.client.fetcher.fetch_or_throw(
            self.info.uri,
            method=method,
            headers={'Content-Type': content_type},
            content=body,
        )
        return self.info.uri, response

    async def submit(self, form_data: Optional[Dict[str, Any]] = None) -> 'State':
        """Submit the action and return the State the server responded with."""
        uri, response = await self._send(form_data)
        return await self.client.get_state_for_response(uri, response)

    async def submit_follow(self, form_data: Optional[Dict[str, Any]] = None) -> 'Resource':
        """Submit the action and return the Resource the server pointed to."""
        uri, response = await self._send(form_data)
        return follow_response(self.client, uri, response)


Action = SimpleAction


def follow_response(client: 'Client', uri: str, response) -> 'Resource':
    """Find the resource a 201, 204 or 205 response points at."""
    if response.status_code == 201:
        location = response.headers.get('Location')
        if not location:
            raise ValueError(
                'Could not follow after a 201 request, because the server did not reply with a Location header.'
            )
        return client.go(resolve(uri, location))
    if response.status_code in (204, 205):
        return client.go(uri)
    raise ValueError(
        f"Did not receive a 201, 204 or 205 status code so we could not follow to the next resource "
        f"(got {response.status_code})"
    )
