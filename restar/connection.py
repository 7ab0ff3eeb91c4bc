'''
Connection

Central object for talking to a REST API. The connection wraps up the config, the auth
parameters merged into every request, and the Transport holding the HTTP handler. Queries
reach it through Commands (see `create_command`), but the HTTP verbs are public and can
be used directly:

.. code-block:: python

    api = Connection({'base_uri': 'https://api.site.com/'})
    api.auth = {'access-token': 'abc'}

    phones = api.get('users/{user_id}/phones', {'user_id': 123})
'''
import logging
from typing import Any
from collections.abc import Mapping

from restar import request
from restar.auth import AuthSpec, make_auth
from restar.builder import QueryBuilder
from restar.command import Command
from restar.errors import ConfigurationError
from restar.transport import Transport
from restar.transports import RequestsTransport


logger = logging.getLogger(__name__)

class Connection:
    transport_cls: type[Transport] = RequestsTransport

    def __init__(
        self,
        config  : Mapping[str, Any],
        auth                 = None,
        handler              = None,
    ):
        '''
        Parameters:
            config:  connection settings; ``base_uri`` is required, the remaining keys
                     (``timeout``, ``headers``, ``verify``, ``http_errors``) configure the
                     handler
            auth:    mapping of extra query parameters, or a callable taking this
                     connection and returning one (resolved once, on first use)
            handler: HTTP handler to use instead of a lazily created one
        '''
        self.config = dict(config or {})
        if not self.config.get('base_uri'):
            raise ConfigurationError('The `base_uri` config option must be set')

        self._auth = make_auth(auth)
        self._transport = self.transport_cls(self.config, handler=handler)

    @property
    def base_uri(self) -> str:
        return self.config['base_uri']

    @property
    def auth(self) -> dict[str, Any]:
        return self._auth.resolve(self)

    @auth.setter
    def auth(self, value: Mapping | AuthSpec | None):
        self._auth = make_auth(value)

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def handler(self):
        return self._transport.handler

    @property
    def response(self):
        return self._transport.response

    @property
    def query_builder(self) -> QueryBuilder:
        return QueryBuilder(self)

    def create_command(self, **kwargs) -> Command:
        return Command(self, **kwargs)

    def get(self, url, query=None, body=None, raw=False):
        return self.make_request('GET', url, query, body, raw)

    def head(self, url, query=None, body=None):
        '''
        Performs a HEAD request and returns the response headers.
        '''
        self.make_request('HEAD', url, query, body, raw=True)
        return self._transport.headers

    def post(self, url, query=None, body=None, raw=False):
        return self.make_request('POST', url, query, body, raw)

    def put(self, url, query=None, body=None, raw=False):
        return self.make_request('PUT', url, query, body, raw)

    def patch(self, url, query=None, body=None, raw=False):
        return self.make_request('PATCH', url, query, body, raw)

    def delete(self, url, query=None, body=None, raw=False):
        return self.make_request('DELETE', url, query, body, raw)

    def make_request(self, method, url, query=None, body=None, raw=False):
        '''
        Parameters:
            method: HTTP verb
            url:    path template, relative to ``base_uri``
            query:  query options (GET parameters)
            body:   request body (POST parameters when a mapping, raw payload otherwise)
            raw:    return the body undecoded even if it is JSON

        Raises:
            URLResolutionError: before sending anything, if the path cannot be resolved
        '''
        return self.handle_request(method, self.prepare_url(url, query, body), body, raw)

    def prepare_url(self, path, query=None, body=None) -> str:
        return request.build_url(
            path,
            query,
            body,
            auth=self.auth,
            base_uri=self.base_uri,
        )

    def handle_request(self, method, url, body=None, raw=False):
        return self._transport.execute(method, url, body, raw)
