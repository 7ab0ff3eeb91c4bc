'''
Command

A single prepared request against a Connection. Read commands are normally produced by
`Query.create_command()`; write commands are built through the CRUD helpers:

.. code-block:: python

    api.create_command().insert('users', {'name': 'bob'}).execute()
    api.create_command().update('users/{id}', {'id': 7, 'name': 'rob'}).execute()
'''
import logging
from typing import Any
from collections.abc import Mapping


logger = logging.getLogger(__name__)

class Command:
    def __init__(
        self,
        db,
        method : str                   = 'GET',
        path   : str | None            = None,
        params : dict[str, Any] | None = None,
        body                           = None,
        raw    : bool                  = False,
    ):
        self.db     = db
        self.method = method
        self.path   = path
        self.params = dict(params or {})
        self.body   = body
        self.raw    = raw

    def __repr__(self):
        return f'<Command {self.method} {self.path} {self.params}>'

    def _with(self, method, path, params=None, body=None):
        self.method = method
        self.path   = path
        self.params = dict(params or {})
        self.body   = body
        return self

    def insert(self, resource: str, data: Mapping[str, Any], params=None):
        return self._with('POST', resource, params, data)

    def update(self, path: str, data: Mapping[str, Any], params=None):
        return self._with('PUT', path, params, data)

    def delete(self, path: str, params=None, body=None):
        return self._with('DELETE', path, params, body)

    def head(self):
        '''
        Send the command as a HEAD request and return the response headers.
        '''
        return self.db.head(self.path, self.params, self.body)

    def execute(self):
        return self.db.make_request(
            self.method,
            self.path,
            self.params,
            self.body,
            self.raw,
        )

    def query_all(self) -> list:
        '''
        Execute and normalize the response to a list of rows. Empty responses give an
        empty list; a single mapping is treated as a one-row result.
        '''
        result = self.execute()

        if not result:
            return []

        if isinstance(result, Mapping):
            return [result]

        if isinstance(result, (str, bytes)):
            raise ValueError(
                f'Expected JSON rows from {self.method} {self.path}, got undecoded body'
            )

        return list(result)

    def query_one(self):
        '''
        Execute and return the row (or list of rows) as received, or None when the
        response is empty.
        '''
        result = self.execute()

        if not result:
            return None

        return result
