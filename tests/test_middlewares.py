import asyncio
import json

from structlog.testing import capture_logs

API = "https://api.example.org"


def test_delete_invalidates_linked_resources(client, server):
    """DELETE expires the request uri and every rel=invalidates target."""
    server.route('GET', '/foo', body={'title': 'foo'})
    server.route('GET', '/bar', body={'title': 'bar'})
    server.route('DELETE', '/foo', status=204, headers={'Link': '</bar>; rel="invalidates"'})

    events = []

    async def scenario():
        foo = client.go('/foo')
        bar = client.go('/bar')
        await foo.get()
        await bar.get()
        assert client.cache.has(API + '/foo')
        assert client.cache.has(API + '/bar')

        foo.on('delete', lambda: events.append('foo deleted'))
        foo.on('stale', lambda: events.append('foo stale'))
        bar.on('stale', lambda: events.append('bar stale'))
        await foo.delete()

    asyncio.run(scenario())

    assert not client.cache.has(API + '/foo')
    assert not client.cache.has(API + '/bar')
    assert sorted(events) == ['bar stale', 'foo deleted']


def test_unsafe_request_marks_request_uri_stale(client, server):
    server.route('GET', '/foo', body={'title': 'foo'})
    server.route('POST', '/foo', status=204)

    events = []

    async def scenario():
        foo = client.go('/foo')
        await foo.get()
        foo.on('stale', lambda: events.append('stale'))
        await foo.post({'title': 'new'})

    asyncio.run(scenario())

    assert events == ['stale']
    assert not client.cache.has(API + '/foo')


def test_safe_and_failed_requests_keep_cache(client, server):
    server.route('GET', '/foo', body={'title': 'foo'})
    server.route('POST', '/foo', status=400, body='nope', content_type='text/plain')

    async def scenario():
        foo = client.go('/foo')
        await foo.get()
        await foo.fetch()
        await foo.fetch(method='POST', content=b'{}')

    asyncio.run(scenario())

    assert client.cache.has(API + '/foo')


def test_location_header_is_invalidated(client, server):
    server.route('GET', '/articles/3', body={'title': 'old'})
    server.route('POST', '/articles', status=201, headers={'Location': '/articles/3'})

    async def scenario():
        await client.go('/articles/3').get()
        return await client.go('/articles').post_follow({'title': 'new'})

    created = asyncio.run(scenario())

    assert created is client.go('/articles/3')
    assert not client.cache.has(API + '/articles/3')


def test_content_location_body_is_cached(client, server):
    server.route('PUT', '/foo', body={'title': 'stored'}, headers={'Content-Location': '/foo'})

    updates = []

    async def scenario():
        foo = client.go('/foo')
        foo.on('update', updates.append)
        await foo.put({'title': 'stored'})
        return await foo.get()

    state = asyncio.run(scenario())

    assert state.data == {'title': 'stored'}
    assert server.count('GET', '/foo') == 0
    assert [update.data for update in updates] == [{'title': 'stored'}]


def test_content_location_with_no_store_is_not_cached(client, server):
    server.route('GET', '/bar', body={'title': 'bar'})
    server.route('POST', '/foo', body={'title': 'result'},
                 headers={'Content-Location': '/bar', 'Cache-Control': 'no-store'})

    async def scenario():
        await client.go('/bar').get()
        await client.go('/foo').post({})

    asyncio.run(scenario())

    assert not client.cache.has(API + '/bar')


def test_inv_by_dependency(client, server):
    server.route('GET', '/parent', body={})
    server.route('GET', '/parent/child', body={}, headers={'Link': '</parent>; rel="inv-by"'})
    server.route('PATCH', '/parent', status=204)

    events = []

    async def scenario():
        child = client.go('/parent/child')
        await client.go('/parent').get()
        await child.get()
        child.on('stale', lambda: events.append('child stale'))
        await client.go('/parent').patch({'name': 'x'})

    asyncio.run(scenario())

    assert client.cache_dependencies[API + '/parent'] == {API + '/parent/child'}
    assert not client.cache.has(API + '/parent/child')
    assert events == ['child stale']


def test_put_state_does_not_stale_itself(client, server):
    server.route('GET', '/foo', body={'_links': {'self': {'href': '/foo'}}, 'title': 'foo'})
    server.route('PUT', '/foo', status=204)

    events = []

    async def scenario():
        foo = client.go('/foo')
        state = await foo.get()
        state.data['title'] = 'changed'
        foo.on('stale', lambda: events.append('stale'))
        await foo.put(state)
        return await foo.get()

    state = asyncio.run(scenario())

    request = server.last('PUT', '/foo')
    assert 'X-Hypernav-No-Stale' not in request.headers
    assert request.headers['Content-Type'] == 'application/hal+json'
    assert json.loads(request.content)['title'] == 'changed'
    assert events == []
    assert state.data['title'] == 'changed'
    assert server.count('GET', '/foo') == 1


def test_accept_header(client, server):
    server.route('GET', '/foo', body={})

    async def scenario():
        await client.go('/foo').fetch()
        await client.go('/foo').fetch(headers={'Accept': 'text/csv'})

    asyncio.run(scenario())

    assert server.requests[0].headers['Accept'] == client.accept_header()
    assert server.requests[1].headers['Accept'] == 'text/csv'


def test_deprecation_warning_is_logged(client, server):
    server.route('GET', '/old', body={}, headers={
        'Deprecation': 'true',
        'Sunset': 'Sat, 31 Dec 2026 23:59:59 GMT',
        'Link': '</docs/deprecation>; rel="deprecation"',
    })
    server.route('GET', '/new', body={})

    with capture_logs() as logs:
        asyncio.run(client.go('/old').get())
        asyncio.run(client.go('/new').get())

    deprecations = [log for log in logs if log['event'] == 'resource_deprecated']
    assert len(deprecations) == 1
    assert deprecations[0]['log_level'] == 'warning'
    assert deprecations[0]['url'] == API + '/old'
    assert deprecations[0]['sunset'] == 'Sat, 31 Dec 2026 23:59:59 GMT'
    assert deprecations[0]['info'] == [API + '/docs/deprecation']
