import asyncio

import pytest
from structlog.testing import capture_logs

from hypernav.http.error import HttpError
from hypernav.link import LinkNotFound

API = "https://api.example.org"


@pytest.fixture
def api(server):
    server.route('GET', '/', body={
        '_links': {
            'articles': {'href': '/articles'},
            'article': {'href': '/articles/{id}', 'templated': True},
            'broken': {'href': '/broken'},
        },
    })
    server.route('GET', '/articles', body={
        '_links': {
            'item': [{'href': '/articles/1'}, {'href': '/articles/2'}],
            'first': {'href': '/articles/1'},
        },
    })
    server.route('GET', '/articles/1', body={
        '_links': {'author': {'href': '/people/evert', 'type': 'application/hal+json'}},
        'title': 'One',
    })
    server.route('GET', '/articles/2', body={'title': 'Two'})
    server.route('GET', '/people/evert', body={'name': 'Evert'})
    server.route('HEAD', '/articles', headers={'Link': '</articles/2>; rel="latest"'})
    return server


def test_follow(client, api):
    articles = asyncio.run(client.follow('articles'))

    assert articles is client.go('/articles')
    assert api.count('GET', '/articles') == 0


def test_follow_chain(client, api):
    author = asyncio.run(client.go().follow('articles').follow('first').follow('author'))

    assert author is client.go('/people/evert')
    assert author.content_type == 'application/hal+json'


def test_follow_templated(client, api):
    article = asyncio.run(client.go().follow('article', {'id': 2}))

    assert article.uri == API + '/articles/2'


def test_follow_all(client, api):
    items = asyncio.run(client.go().follow('articles').follow_all('item'))

    assert [item.uri for item in items] == [API + '/articles/1', API + '/articles/2']


def test_follow_missing_rel(client, api):
    with pytest.raises(LinkNotFound):
        asyncio.run(client.go().follow('nope'))
    with pytest.raises(LinkNotFound):
        asyncio.run(client.go().follow('articles').follow('nope').follow('author'))


def test_follow_all_missing_rel_is_empty(client, api):
    assert asyncio.run(client.go().follow_all('nope')) == []


def test_error_on_intermediate_hop(client, api):
    with pytest.raises(HttpError) as info:
        asyncio.run(client.go().follow('broken').follow('next'))

    assert info.value.status == 404


def test_awaiting_twice_gives_same_result(client, api):
    async def scenario():
        promise = client.go().follow('articles')
        return await promise, await promise

    first, second = asyncio.run(scenario())

    assert first is second
    assert api.count('GET', '/') == 1


def test_builders_after_await_raise(client, api):
    async def scenario():
        promise = client.go().follow('articles')
        await promise
        with pytest.raises(RuntimeError):
            promise.pre_fetch()
        with pytest.raises(RuntimeError):
            promise.prefer_push()

    asyncio.run(scenario())


def test_prefer_headers(client, api):
    asyncio.run(client.go().follow('articles').prefer_push().prefer_transclude())

    request = api.last('GET', '/')
    assert request.headers['Prefer-Push'] == 'articles'
    assert request.headers['Prefer'] == 'transclude=articles'


def test_use_head(client, api):
    latest = asyncio.run(client.go('/articles').follow('latest').use_head().prefer_transclude())

    assert latest is client.go('/articles/2')
    assert api.count('HEAD', '/articles') == 1
    assert api.count('GET', '/articles') == 0
    assert 'Prefer' not in api.last('HEAD', '/articles').headers


def test_pre_fetch(client, api):
    async def scenario():
        articles = await client.go().follow('articles').follow_all('item').pre_fetch()
        await asyncio.gather(*client._background)
        return articles

    asyncio.run(scenario())

    assert api.count('GET', '/articles/1') == 1
    assert api.count('GET', '/articles/2') == 1
    assert client.cache.has(API + '/articles/2')


def test_pre_fetch_failure_is_logged(client, api):
    async def scenario():
        broken = await client.go().follow('broken').pre_fetch()
        await asyncio.gather(*client._background)
        return broken

    with capture_logs() as logs:
        broken = asyncio.run(scenario())

    assert broken.uri == API + '/broken'
    failures = [log for log in logs if log['event'] == 'prefetch_failed']
    assert failures[0]['url'] == API + '/broken'
