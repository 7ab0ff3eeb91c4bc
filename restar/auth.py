'''
Auth

Extra query parameters merged into every outgoing request. Two flavors exist: a static
mapping, used as given, and a deferred supplier, called once with the owning Connection
the first time parameters are needed and cached from then on.

.. code-block:: python

    connection.auth = {'access-token': 'abc'}
    connection.auth = lambda conn: {'access-token': fetch_token(conn.config)}
'''
import logging
import threading
from typing import Any, Callable
from collections.abc import Mapping


logger = logging.getLogger(__name__)

class AuthSpec:
    def resolve(self, connection) -> dict[str, Any]:
        raise NotImplementedError


class StaticAuth(AuthSpec):
    def __init__(self, params: Mapping[str, Any] | None = None):
        self.params = dict(params or {})

    def resolve(self, connection):
        return self.params


class DeferredAuth(AuthSpec):
    '''
    Single-assignment cache around a supplier. The lock only guards the first resolution;
    afterwards the cached mapping is returned directly.
    '''
    _unset = object()

    def __init__(self, supplier: Callable[[Any], Mapping[str, Any]]):
        self.supplier = supplier

        self._params = self._unset
        self._lock   = threading.Lock()

    @property
    def resolved(self):
        return self._params is not self._unset

    def resolve(self, connection):
        if self._params is self._unset:
            with self._lock:
                if self._params is self._unset:
                    logger.debug('Resolving deferred auth parameters')
                    self._params = dict(self.supplier(connection) or {})

        return self._params


def make_auth(value) -> AuthSpec:
    '''
    Coerce what a caller hands to ``Connection.auth`` into an AuthSpec.
    '''
    if isinstance(value, AuthSpec):
        return value

    if value is None or isinstance(value, Mapping):
        return StaticAuth(value)

    if callable(value):
        return DeferredAuth(value)

    raise TypeError(f'Unsupported auth value of type {type(value).__name__}')
