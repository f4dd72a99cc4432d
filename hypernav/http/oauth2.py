"""
OAuth2 middleware

Requests go out with the current access token, or without one if none was
obtained yet. A 401 response makes the middleware obtain a token (through the
refresh token if there is one, otherwise through the configured grant) and
retry the request exactly once.
"""
import asyncio
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx
import structlog

from .fetcher import NextFunction

logger = structlog.get_logger(__name__)

# Tokens this close to expiry (seconds) are refreshed before use
EXPIRY_MARGIN = 10

GRANT_TYPES = ('password', 'client_credentials', 'authorization_code', None)


class OAuth2Error(Exception):
    """The token endpoint refused to issue a token."""

    def __init__(self, message: str, error: str = None, response: httpx.Response = None):
        super().__init__(message)
        self.error = error
        self.response = response


@dataclass
class OAuth2Token:
    access_token: str
    expires_at: Optional[float] = None
    refresh_token: Optional[str] = None

    def is_expired(self, now: float = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or time.time()) >= self.expires_at - EXPIRY_MARGIN

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OAuth2Token':
        return cls(
            access_token=data['access_token'],
            expires_at=data.get('expires_at'),
            refresh_token=data.get('refresh_token'),
        )


@dataclass
class OAuth2Options:
    client_id: str
    token_endpoint: str
    grant_type: Optional[str] = None
    client_secret: Optional[str] = None
    scope: List[str] = field(default_factory=list)
    username: Optional[str] = None
    password: Optional[str] = None
    code: Optional[str] = None
    redirect_uri: Optional[str] = None
    code_verifier: Optional[str] = None
    on_token_update: Optional[Callable[[OAuth2Token], None]] = None
    on_auth_error: Optional[Callable[[Exception], None]] = None

    def __post_init__(self):
        if self.grant_type not in GRANT_TYPES:
            raise ValueError(f"Unsupported grant_type: {self.grant_type}")


class OAuth2Middleware:

    def __init__(self, options: OAuth2Options, token: OAuth2Token = None, http_client: httpx.AsyncClient = None):
        self.options = options
        self.token = token
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient()
        self._lock = asyncio.Lock()

    async def __call__(self, request: httpx.Request, next_: NextFunction) -> httpx.Response:
        token = self.token
        if token is not None and token.is_expired() and token.refresh_token:
            token = await self._renew(token)

        if token is not None:
            request.headers['Authorization'] = 'Bearer ' + token.access_token

        response = await next_(request)
        if response.status_code != 401:
            return response

        try:
            token = await self._renew(token)
        except (OAuth2Error, httpx.HTTPError) as e:
            logger.warning("oauth2_token_failed", token_endpoint=self.options.token_endpoint, error=str(e))
            if self.options.on_auth_error:
                self.options.on_auth_error(e)
            return response

        if token is None:
            return response

        retry = httpx.Request(
            request.method,
            request.url,
            headers=request.headers,
            content=request.content,
        )
        retry.headers['Authorization'] = 'Bearer ' + token.access_token
        logger.debug("oauth2_retry", url=str(request.url))
        return await next_(retry)

    async def aclose(self) -> None:
        """Close the token endpoint client, unless it was passed in by the caller."""
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> 'OAuth2Middleware':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def export_token(self) -> Optional[Dict[str, Any]]:
        """Current token as a plain dict, for applications that persist it."""
        if self.token is None:
            return None
        return self.token.to_dict()

    async def _renew(self, used_token: Optional[OAuth2Token]) -> Optional[OAuth2Token]:
        """Get a new token, unless a concurrent request already replaced the one we used."""
        async with self._lock:
            if self.token is not None and self.token is not used_token:
                return self.token

            if used_token is not None and used_token.refresh_token:
                params = {'grant_type': 'refresh_token', 'refresh_token': used_token.refresh_token}
            else:
                params = self._grant_params()
                if params is None:
                    return None

            self.token = await self._request_token(params)
            if self.options.on_token_update:
                self.options.on_token_update(self.token)
            return self.token

    def _grant_params(self) -> Optional[Dict[str, str]]:
        options = self.options
        if options.grant_type == 'password':
            params = {'grant_type': 'password', 'username': options.username, 'password': options.password}
        elif options.grant_type == 'client_credentials':
            params = {'grant_type': 'client_credentials'}
        elif options.grant_type == 'authorization_code':
            params = {'grant_type': 'authorization_code', 'code': options.code, 'redirect_uri': options.redirect_uri}
            if options.code_verifier:
                params['code_verifier'] = options.code_verifier
        else:
            return None

        if options.scope:
            params['scope'] = ' '.join(options.scope)
        return params

    async def _request_token(self, params: Dict[str, str]) -> OAuth2Token:
        auth = None
        if self.options.client_secret:
            auth = (self.options.client_id, self.options.client_secret)
        else:
            params = {**params, 'client_id': self.options.client_id}

        response = await self._http.post(self.options.token_endpoint, data=params, auth=auth)
        try:
            body = response.json()
        except ValueError:
            body = {}

        if not response.is_success:
            raise OAuth2Error(
                f"OAuth2 error {body.get('error', response.status_code)}: {body.get('error_description', '')}".strip(),
                error=body.get('error'),
                response=response,
            )

        expires_in = body.get('expires_in')
        return OAuth2Token(
            access_token=body['access_token'],
            expires_at=time.time() + expires_in if expires_in else None,
            refresh_token=body.get('refresh_token'),
        )


def oauth2(options: OAuth2Options, token: OAuth2Token = None, http_client: httpx.AsyncClient = None) -> OAuth2Middleware:
    return OAuth2Middleware(options, token, http_client)
