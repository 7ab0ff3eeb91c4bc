'''
Query

Declarative description of what to fetch from one resource. Queries are built by
chaining and only talk to the API when executed with `all()` or `one()`:

.. code-block:: python

    rows = (
        Query('users')
        .where(status='active')
        .and_where(sa.column('group_id').in_([1, 2]))
        .index_by('id')
        .all(api)
    )

Execution always works on the result of `prepare()`, which subtypes use to derive the
effective query (e.g. relation filtering) without consuming the caller's query. A
prepared query marked `Execution.GUARANTEED_EMPTY` never reaches the transport.

`RecordQuery` binds a query to a `Record` type and materializes rows into records.
'''
import enum
import logging
from typing import Any, Callable, Generic, TypeVar
from collections.abc import Mapping

import sqlalchemy as sa

from restar import materializer
from restar.errors import ConfigurationError


logger = logging.getLogger(__name__)

class Execution(enum.Enum):
    NORMAL           = 'normal'
    GUARANTEED_EMPTY = 'guaranteed-empty'


def make_condition(condition=None, **equals):
    '''
    Normalize the forms accepted by `Query.where()` into one SQLAlchemy expression.

    Mappings (or keyword arguments) compare each attribute to a value: lists and tuples
    become membership tests, None becomes ``IS NULL``, anything else an equality.
    '''
    clauses = []
    if isinstance(condition, Mapping):
        equals = {**condition, **equals}
    elif condition is not None:
        clauses.append(condition)

    for name, value in equals.items():
        column = sa.column(name)
        if isinstance(value, (list, tuple, set)):
            clauses.append(column.in_(list(value)))
        elif value is None:
            clauses.append(column.is_(None))
        else:
            clauses.append(column == value)

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return sa.and_(*clauses)


class Query:
    '''
    Parameters:
        from_: resource path (template) to query
    '''
    def __init__(self, from_: str | None = None):
        self.from_     = from_
        self.criterion = None

        self.eager     : dict[str, Callable | None] = {}
        self.joins     : list[str]                  = []
        self.index_key : str | Callable | None      = None
        self.as_dicts  : bool | None                = None
        self.options   : dict[str, Any]             = {}
        self.execution : Execution                  = Execution.NORMAL

    def __repr__(self):
        return f'<{type(self).__name__} {self.resource()} where={self.criterion}>'

    def resource(self) -> str | None:
        return self.from_

    def select_from(self, resource: str):
        self.from_ = resource
        return self

    def where(self, condition=None, **equals):
        '''
        Replace the filter. Accepts a SQLAlchemy expression, a mapping of attribute values,
        keyword attribute values, or a combination.
        '''
        self.criterion = make_condition(condition, **equals)
        return self

    def and_where(self, condition=None, **equals):
        condition = make_condition(condition, **equals)
        if condition is None:
            return self

        if self.criterion is None:
            self.criterion = condition
        else:
            self.criterion = sa.and_(self.criterion, condition)
        return self

    def or_where(self, condition=None, **equals):
        condition = make_condition(condition, **equals)
        if condition is None:
            return self

        if self.criterion is None:
            self.criterion = condition
        else:
            self.criterion = sa.or_(self.criterion, condition)
        return self

    def with_(self, *relations, **callables):
        '''
        Request eager loading of relations. Names may be dotted (``'orders.items'``) to
        load nested relations; a mapping, or keyword arguments, attach a callable that
        receives the relation query for customization.
        '''
        for relation in relations:
            if isinstance(relation, Mapping):
                self.eager.update(relation)
            else:
                self.eager.setdefault(relation, None)

        self.eager.update(callables)
        return self

    def join_with(self, *relations):
        for relation in relations:
            if relation not in self.joins:
                self.joins.append(relation)
        return self

    def index_by(self, key: str | Callable | None):
        self.index_key = key
        return self

    def as_array(self, value: bool = True):
        self.as_dicts = value
        return self

    def params(self, **options):
        '''
        Extra query-string parameters sent alongside the compiled filter.
        '''
        self.options.update(options)
        return self

    def emulate_execution(self, value: bool = True):
        self.execution = Execution.GUARANTEED_EMPTY if value else Execution.NORMAL
        return self

    @property
    def is_empty(self) -> bool:
        return self.execution is Execution.GUARANTEED_EMPTY

    def prepare(self):
        '''
        Return the query to actually execute.
        '''
        return self

    def _get_db(self, db):
        if db is None:
            raise ConfigurationError(f'No connection given to execute {self!r}')
        return db

    def _build_command(self, db):
        path, params = db.query_builder.build(self)
        return db.create_command(path=path, params=params)

    def create_command(self, db=None):
        return self.prepare()._build_command(self._get_db(db))

    def all(self, db=None):
        query = self.prepare()
        return query.populate(query._fetch_all(db))

    def _fetch_all(self, db) -> list:
        if self.is_empty:
            logger.debug(f'Skipping request for guaranteed-empty {self!r}')
            return []

        return self._build_command(self._get_db(db)).query_all()

    def one(self, db=None):
        query = self.prepare()
        if query.is_empty:
            logger.debug(f'Skipping request for guaranteed-empty {query!r}')
            return None

        return query._fetch_one(self._get_db(db))

    def _fetch_one(self, db):
        row = self._build_command(db).query_one()
        if isinstance(row, list):
            return row[0] if row else None
        return row

    def populate(self, rows):
        return materializer.index_models(rows, self.index_key)


R = TypeVar('R', bound='Record')


class RecordQuery(Query, Generic[R]):
    '''
    Query bound to a record type. Results are `R` instances unless `as_array()` was
    requested, in which case the raw rows are returned (with any eager relations still
    attached under their names).
    '''
    def __init__(self, model_cls: type[R], from_: str | None = None):
        super().__init__(from_)
        self.model_cls = model_cls

    def resource(self):
        return self.from_ or self.model_cls.resource()

    def _get_db(self, db):
        if db is None:
            db = self.model_cls.get_db()
        return db

    def find_models(self, db=None) -> list[R]:
        '''
        Like `all()`, but always returns a list, ignoring `index_by`.
        '''
        query = self.prepare()
        return query._populate_models(query._fetch_all(db))

    def populate(self, rows) -> list[R] | dict[Any, R]:
        return materializer.index_models(self._populate_models(rows), self.index_key)

    def _populate_models(self, rows) -> list[R]:
        if not rows:
            return []

        models = materializer.create_models(self.model_cls, rows, self.as_dicts)

        if self.joins and self.index_key is None:
            models = materializer.remove_duplicated_models(
                models,
                self.model_cls.primary_key(),
                self.model_cls.__name__,
            )

        if self.eager:
            materializer.find_with(self.model_cls, self.eager, models, self.as_dicts)

        if not self.as_dicts:
            for model in models:
                model.after_find()

        return models

    def _fetch_one(self, db) -> R | None:
        row = self._build_command(db).query_one()
        if row is None:
            return None

        models = self._populate_models(row if isinstance(row, list) else [row])
        return models[0] if models else None
