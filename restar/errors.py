'''
Errors

Exception hierarchy for restar. Handler failures are not wrapped: anything
the HTTP handler raises reaches the caller as is, and `TransportError` is simply the base
of those exceptions for convenient catching.
'''
import requests


TransportError = requests.RequestException


class RestarError(Exception):
    pass

class ConfigurationError(RestarError):
    '''
    Raised for unusable static setup, e.g. a Connection without `base_uri` or a record type
    without a primary key used in a de-duplicating join.
    '''

class URLResolutionError(RestarError):
    '''
    Raised when a `{placeholder}` in a path template has no value in either the query
    parameters or the body. Always raised before a request is sent.
    '''
    def __init__(self, url, missing):
        self.url = url
        self.missing = missing
        super().__init__(
            f'Not found attribute(s) {", ".join(missing)} for url: {url}'
        )

class QueryBuildError(RestarError):
    pass
