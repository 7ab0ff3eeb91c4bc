from collections.abc import Mapping

import requests

from restar.transport import Transport


class RequestsTransport(Transport[requests.Session]):
    '''
    Transport backed by a `requests.Session`.

    Config keys read: ``headers`` (session default headers), ``verify`` (TLS
    verification), ``timeout`` (per request) and ``http_errors`` (raise
    `requests.HTTPError` for 4xx/5xx responses, on by default).
    '''
    def _create_handler(self):
        session = requests.Session()
        session.headers.update(self.config.get('headers') or {})

        if 'verify' in self.config:
            session.verify = self.config['verify']

        return session

    def _request_options(self, body):
        options = {}
        if self.config.get('timeout') is not None:
            options['timeout'] = self.config['timeout']

        # mappings are form-encoded by requests, str/bytes go out as the raw body
        if isinstance(body, Mapping):
            options['data'] = dict(body)
        elif body is not None:
            options['data'] = body

        return options

    def _send(self, method, url, options):
        response = super()._send(method, url, options)

        if self.config.get('http_errors', True):
            response.raise_for_status()

        return response
