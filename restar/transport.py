'''
Transport

Wraps the HTTP handler that actually performs requests. A Transport owns exactly one
handler, created lazily on first use (see `Transport.handler`) unless one was injected,
and reuses it for every request so connections can be pooled by the handler.

Subtypes decide how the handler is built (`_create_handler`) and how a request body is
passed to it (`_request_options`); decoding and header bookkeeping happen here.
'''
import time
import logging
import threading
from collections.abc import Mapping
from typing import Generic, TypeVar

from restar.request import build_query_string


logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = 'application/json'

H = TypeVar('H')

class Transport(Generic[H]):
    '''
    Parameters:
        config:  connection config; subtypes read handler settings from it
        handler: pre-built handler to use instead of creating one
    '''
    def __init__(self, config: dict | None = None, handler: H | None = None):
        self.config = dict(config or {})

        self._handler  = handler
        self._response = None
        self._lock     = threading.Lock()

    @property
    def handler(self) -> H:
        '''
        Handler property providing a single instance for the Transport's lifetime,
        creating it on first access.
        '''
        if self._handler is None:
            with self._lock:
                if self._handler is None:
                    self._handler = self._create_handler()
        return self._handler

    @property
    def response(self):
        '''
        Most recent response object, or None before the first request.
        '''
        return self._response

    @property
    def headers(self):
        if self._response is None:
            return {}
        return self._response.headers

    def _create_handler(self) -> H:
        raise NotImplementedError

    def _request_options(self, body) -> dict:
        raise NotImplementedError

    def _send(self, method, url, options):
        return self.handler.request(method, url, **options)

    @staticmethod
    def is_json(response) -> bool:
        content_type = response.headers.get('Content-Type') or ''
        if isinstance(content_type, (list, tuple)):
            content_type = ', '.join(content_type)
        return JSON_CONTENT_TYPE in content_type.lower()

    def decode(self, response, raw=False):
        text = response.text
        if not raw and text and self.is_json(response):
            return response.json()
        return text

    def execute(self, method: str, url: str, body=None, raw: bool = False):
        '''
        Send a request and return its body.

        Parameters:
            method: HTTP verb, any case
            url:    fully resolved URL
            body:   mapping (sent form-encoded) or raw payload
            raw:    skip JSON decoding even if the response declares JSON

        Returns:
            decoded JSON data, or the body text
        '''
        method  = method.upper()
        options = self._request_options(body)

        encoded = build_query_string(body) if isinstance(body, Mapping) else body
        profile = f'{method} {url}#{encoded if encoded is not None else ""}'

        start = time.time()
        self._response = self._send(method, url, options)
        logger.debug(f'{profile} [{time.time()-start:.3f}s]')

        return self.decode(self._response, raw=raw)
