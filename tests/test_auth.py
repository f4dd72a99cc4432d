import asyncio
import time
from urllib.parse import parse_qs

import httpx
import pytest

from hypernav.client import Client
from hypernav.http.basic_auth import basic_auth
from hypernav.http.bearer_auth import bearer_auth
from hypernav.http.fetcher import Fetcher
from hypernav.http.oauth2 import OAuth2Options, OAuth2Token, oauth2

API = "https://api.example.org/"
TOKEN_ENDPOINT = "https://auth.example.org/token"


class FakeApi:
    """Accepts only requests carrying one of the valid bearer tokens."""

    def __init__(self, valid=('good',)):
        self.valid = valid
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if request.headers.get('Authorization') in ['Bearer ' + token for token in self.valid]:
            return httpx.Response(200, content=b'ok')
        return httpx.Response(401, content=b'unauthorized')


class FakeTokenEndpoint:

    def __init__(self, status=200, body=None):
        self.status = status
        self.body = body if body is not None else {
            'access_token': 'good',
            'token_type': 'bearer',
            'expires_in': 3600,
            'refresh_token': 'r1',
        }
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body)

    def form(self, index=-1):
        return {k: v[0] for k, v in parse_qs(self.requests[index].content.decode()).items()}


def fetch_with(middleware, api):
    fetcher = Fetcher(transport=httpx.MockTransport(api))
    fetcher.use(middleware)
    return asyncio.run(fetcher.fetch(API))


def test_basic_auth():
    api = FakeApi()
    fetch_with(basic_auth('user', 'pass'), api)

    assert api.requests[0].headers['Authorization'] == 'Basic dXNlcjpwYXNz'


def test_bearer_auth():
    api = FakeApi()
    response = fetch_with(bearer_auth('good'), api)

    assert response.status_code == 200


class TestOAuth2:

    def make(self, token_endpoint, token=None, **options):
        options.setdefault('grant_type', 'client_credentials')
        options.setdefault('client_secret', 'secret')
        updates = []
        errors = []
        middleware = oauth2(
            OAuth2Options(
                client_id='client',
                token_endpoint=TOKEN_ENDPOINT,
                on_token_update=updates.append,
                on_auth_error=errors.append,
                **options,
            ),
            token=token,
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(token_endpoint)),
        )
        return middleware, updates, errors

    def test_401_obtains_token_and_retries_once(self):
        api = FakeApi()
        endpoint = FakeTokenEndpoint()
        middleware, updates, errors = self.make(endpoint, scope=['read', 'write'])

        response = fetch_with(middleware, api)

        assert response.status_code == 200
        assert len(api.requests) == 2
        assert 'Authorization' not in api.requests[0].headers
        assert api.requests[1].headers['Authorization'] == 'Bearer good'
        assert endpoint.form() == {'grant_type': 'client_credentials', 'scope': 'read write'}
        assert endpoint.requests[0].headers['Authorization'].startswith('Basic ')
        assert [token.access_token for token in updates] == ['good']
        assert errors == []
        assert middleware.export_token()['refresh_token'] == 'r1'

    def test_still_unauthorized_after_retry(self):
        api = FakeApi(valid=())
        middleware, _, _ = self.make(FakeTokenEndpoint())

        response = fetch_with(middleware, api)

        assert response.status_code == 401
        assert len(api.requests) == 2

    def test_valid_token_is_sent_without_renewing(self):
        api = FakeApi()
        endpoint = FakeTokenEndpoint()
        middleware, _, _ = self.make(endpoint, token=OAuth2Token('good', expires_at=time.time() + 3600))

        assert fetch_with(middleware, api).status_code == 200
        assert endpoint.requests == []

    def test_expired_token_is_refreshed_first(self):
        api = FakeApi()
        endpoint = FakeTokenEndpoint()
        middleware, _, _ = self.make(endpoint, token=OAuth2Token('old', expires_at=time.time() - 1, refresh_token='r0'))

        response = fetch_with(middleware, api)

        assert response.status_code == 200
        assert len(api.requests) == 1
        assert endpoint.form() == {'grant_type': 'refresh_token', 'refresh_token': 'r0'}

    def test_password_grant_without_secret_sends_client_id(self):
        endpoint = FakeTokenEndpoint()
        middleware, _, _ = self.make(endpoint, grant_type='password', client_secret=None,
                                     username='evert', password='hunter2')

        fetch_with(middleware, FakeApi())

        assert endpoint.form() == {
            'grant_type': 'password',
            'username': 'evert',
            'password': 'hunter2',
            'client_id': 'client',
        }
        assert 'Authorization' not in endpoint.requests[0].headers

    def test_token_endpoint_error(self):
        api = FakeApi()
        endpoint = FakeTokenEndpoint(status=400, body={'error': 'invalid_client'})
        middleware, updates, errors = self.make(endpoint)

        response = fetch_with(middleware, api)

        assert response.status_code == 401
        assert len(api.requests) == 1
        assert updates == []
        assert errors[0].error == 'invalid_client'

    def test_no_grant_passes_401_through(self):
        api = FakeApi()
        endpoint = FakeTokenEndpoint()
        middleware, _, _ = self.make(endpoint, grant_type=None)

        assert fetch_with(middleware, api).status_code == 401
        assert endpoint.requests == []

    def test_invalid_grant_type(self):
        with pytest.raises(ValueError):
            OAuth2Options(client_id='client', token_endpoint=TOKEN_ENDPOINT, grant_type='implicit')


def test_token_expiry_margin():
    assert OAuth2Token('t', expires_at=time.time() + 5).is_expired()
    assert not OAuth2Token('t', expires_at=time.time() + 60).is_expired()
    assert not OAuth2Token('t').is_expired()
    assert OAuth2Token.from_dict({'access_token': 't', 'refresh_token': 'r'}).refresh_token == 'r'


class TestOAuth2Close:

    def test_aclose_closes_own_client(self):
        middleware = oauth2(OAuth2Options(client_id='client', token_endpoint=TOKEN_ENDPOINT))

        asyncio.run(middleware.aclose())

        assert middleware._http.is_closed

    def test_aclose_leaves_caller_client_open(self):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(FakeTokenEndpoint()))
        middleware = oauth2(OAuth2Options(client_id='client', token_endpoint=TOKEN_ENDPOINT), http_client=http_client)

        asyncio.run(middleware.aclose())

        assert not http_client.is_closed

    def test_async_context_manager(self):
        async def scenario():
            async with oauth2(OAuth2Options(client_id='client', token_endpoint=TOKEN_ENDPOINT)) as middleware:
                return middleware

        assert asyncio.run(scenario())._http.is_closed

    def test_client_aclose_closes_middleware(self):
        client = Client(API, transport=httpx.MockTransport(FakeApi()))
        middleware = oauth2(OAuth2Options(client_id='client', token_endpoint=TOKEN_ENDPOINT))
        client.use(middleware)

        asyncio.run(client.aclose())

        assert middleware._http.is_closed
        assert client.fetcher._client.is_closed
