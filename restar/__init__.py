'''
restar: REST resources as relational records.

Queries describe what to fetch; Connections turn them into HTTP requests; Records and
RelationQueries map the responses back into typed, related data.
'''
from restar.auth import AuthSpec, StaticAuth, DeferredAuth
from restar.builder import QueryBuilder
from restar.command import Command
from restar.connection import Connection
from restar.errors import (
    RestarError,
    ConfigurationError,
    URLResolutionError,
    QueryBuildError,
    TransportError,
)
from restar.query import Query, RecordQuery, Execution
from restar.record import Record, relation
from restar.relation import RelationQuery
from restar.transport import Transport
from restar.transports import RequestsTransport
