"""
Exceptions raised for HTTP error responses
"""
import re
from typing import Any, Dict

import httpx

PROBLEM_CONTENT_TYPE = re.compile(r'^application/problem\+json', re.IGNORECASE)


class HttpError(Exception):
    """Raised whenever a server emits a non-2xx response.

    The original response is available on the ``response`` attribute.
    """

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP error {response.status_code}")
        self.response = response
        self.status = response.status_code


class Problem(HttpError):
    """An HttpError with an RFC 7807 application/problem+json body."""

    def __init__(self, response: httpx.Response, problem_body: Dict[str, Any]):
        super().__init__(response)
        self.body = {
            'type': 'about:blank',
            'status': self.status,
            **problem_body,
        }
        if self.body.get('title'):
            self.args = (f"HTTP Error {self.status}: {self.body['title']}",)


def problem_factory(response: httpx.Response) -> HttpError:
    """Turn an error response into an HttpError, or a Problem if it has one.

    The body must already have been read; responses coming out of the
    fetcher always are.
    """
    content_type = response.headers.get('Content-Type')
    if content_type and PROBLEM_CONTENT_TYPE.match(content_type):
        try:
            body = response.json()
        except ValueError:
            return HttpError(response)
        if isinstance(body, dict):
            return Problem(response, body)
    return HttpError(response)


class UnsupportedFormat(ValueError):
    """Raised when a body has a media type no state factory can handle."""
