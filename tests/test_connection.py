import pytest
import requests

from restar import Connection, DeferredAuth, StaticAuth
from restar.errors import ConfigurationError, TransportError, URLResolutionError

from setups.shop import BASE_URI, FakeSession, make_response, query_of


def test_connection_requires_base_uri():
    with pytest.raises(ConfigurationError):
        Connection({})

    with pytest.raises(ConfigurationError):
        Connection({'base_uri': ''})

def test_handler_created_lazily_once():
    connection = Connection({'base_uri': BASE_URI, 'headers': {'X-Api': '1'}})
    assert connection.transport._handler is None

    handler = connection.handler
    assert isinstance(handler, requests.Session)
    assert handler.headers['X-Api'] == '1'
    assert connection.handler is handler

def test_injected_handler_is_used():
    session = FakeSession({'users': [{'id': 1}]})
    connection = Connection({'base_uri': BASE_URI}, handler=session)

    assert connection.handler is session
    assert connection.get('users') == [{'id': 1}]
    assert session.urls == ['https://api.test/users']

def test_static_auth_merged():
    session = FakeSession({'users': []})
    connection = Connection({'base_uri': BASE_URI}, auth={'token': 'abc'}, handler=session)

    connection.get('users', {'sort': 'name'})
    assert query_of(session.urls[0]) == {'token': ['abc'], 'sort': ['name']}

def test_explicit_param_overrides_auth():
    session = FakeSession({'users': []})
    connection = Connection({'base_uri': BASE_URI}, auth={'token': 'abc'}, handler=session)

    connection.get('users', {'token': 'override'})
    assert query_of(session.urls[0]) == {'token': ['override']}

def test_deferred_auth_resolved_once():
    calls = []
    def supplier(connection):
        calls.append(connection)
        return {'token': 'lazy'}

    session = FakeSession({'users': []})
    connection = Connection({'base_uri': BASE_URI}, auth=supplier, handler=session)
    assert isinstance(connection._auth, DeferredAuth)
    assert calls == []

    connection.get('users')
    connection.get('users')

    assert calls == [connection]
    assert all(query_of(url) == {'token': ['lazy']} for url in session.urls)

def test_auth_setter():
    connection = Connection({'base_uri': BASE_URI}, handler=FakeSession({}))
    assert connection.auth == {}

    connection.auth = {'key': 'k'}
    assert isinstance(connection._auth, StaticAuth)
    assert connection.auth == {'key': 'k'}

def test_json_decoded_case_insensitively():
    session = FakeSession({
        'users': make_response({'id': 1}, content_type='Application/JSON; charset=utf-8'),
    })
    connection = Connection({'base_uri': BASE_URI}, handler=session)

    assert connection.get('users') == {'id': 1}

def test_raw_and_non_json_bodies_returned_as_text():
    session = FakeSession({
        'users': make_response({'id': 1}),
        'report': make_response('a,b\n1,2', content_type='text/csv'),
    })
    connection = Connection({'base_uri': BASE_URI}, handler=session)

    assert connection.get('users', raw=True) == '{"id": 1}'
    assert connection.get('report') == 'a,b\n1,2'

def test_request_bodies():
    session = FakeSession({'users': {'id': 3}})
    connection = Connection({'base_uri': BASE_URI, 'timeout': 5}, handler=session)

    connection.post('users', body={'name': 'ann'})
    connection.put('users', body='{"name": "ann"}')
    connection.make_request('delete', 'users')

    (m1, _, o1), (m2, _, o2), (m3, _, o3) = session.calls
    assert (m1, o1) == ('POST', {'timeout': 5, 'data': {'name': 'ann'}})
    assert (m2, o2) == ('PUT',  {'timeout': 5, 'data': '{"name": "ann"}'})
    assert (m3, o3) == ('DELETE', {'timeout': 5})

def test_path_resolved_from_body():
    session = FakeSession({'users/9': {'id': 9}})
    connection = Connection({'base_uri': BASE_URI}, handler=session)

    assert connection.put('users/{id}', body={'id': 9, 'name': 'x'}) == {'id': 9}
    assert session.urls == ['https://api.test/users/9']

def test_head_returns_headers():
    response = make_response('', content_type='application/json')
    response.headers['X-Total-Count'] = '3'
    session = FakeSession({'users': response})
    connection = Connection({'base_uri': BASE_URI}, handler=session)

    headers = connection.head('users')
    assert headers['x-total-count'] == '3'
    assert session.calls[0][0] == 'HEAD'
    assert connection.response is response

def test_unresolved_placeholder_sends_nothing():
    session = FakeSession({})
    connection = Connection({'base_uri': BASE_URI}, handler=session)

    with pytest.raises(URLResolutionError):
        connection.get('users/{id}/phones', {'sort': 'number'})

    assert session.calls == []

def test_http_errors_raised():
    session = FakeSession({'missing': make_response({'error': 'nope'}, status=404)})
    connection = Connection({'base_uri': BASE_URI}, handler=session)

    with pytest.raises(requests.HTTPError):
        connection.get('missing')

def test_http_errors_disabled():
    session = FakeSession({'missing': make_response({'error': 'nope'}, status=404)})
    connection = Connection({'base_uri': BASE_URI, 'http_errors': False}, handler=session)

    assert connection.get('missing') == {'error': 'nope'}

def test_transport_errors_propagate_unchanged():
    error = requests.ConnectionError('down')

    class BrokenSession(FakeSession):
        def request(self, method, url, **options):
            self.calls.append((method, url, options))
            raise error

    session = BrokenSession({})
    connection = Connection({'base_uri': BASE_URI}, handler=session)

    with pytest.raises(TransportError) as exc_info:
        connection.get('users')

    assert exc_info.value is error
    assert len(session.calls) == 1
