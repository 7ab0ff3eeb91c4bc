'''
Record

Base class for typed views over REST resources. A Record subtype names its resource and
primary key through a SQLAlchemy table definition, and declares relations as methods
returning relation queries:

.. code-block:: python

    metadata = sa.MetaData()

    class Customer(Record):
        table = sa.Table(
            'customers',
            metadata,
            sa.Column('id',   sa.Integer, primary_key=True),
            sa.Column('name', sa.String),
        )

        @relation
        def orders(self):
            return self.has_many(Order, {'customer_id': 'id'})

    Customer.connection = Connection({'base_uri': 'https://api.shop.test/'})

    customer = Customer.find().where(id=7).one()
    customer.orders                              # lazy: one request, then cached
    Customer.find().with_('orders.items').all()  # eager: one request per relation

Attribute values are read with ``record.name``, ``record['name']`` or
``record.get('name')``; populated relations are readable the same way.
'''
import inspect
import logging
from typing import Any, Callable
from collections.abc import Mapping

import sqlalchemy as sa

from restar import materializer
from restar.errors import ConfigurationError
from restar.query import RecordQuery
from restar.relation import RelationQuery


logger = logging.getLogger(__name__)

def relation(name=None):
    '''
    Relation decorator for Record subtype relation registry.

    Can be used bare, registering the relation under the method's name, or with an
    explicit name:

    .. code-block:: python

        @relation
        def phones(self): ...

        @relation('primary_phone')
        def main_phone(self): ...
    '''
    func = None
    if inspect.isfunction(name):
        func = name
        name = None

    def decorator(f):
        f._relation_name = name or f.__name__
        return f

    if func is not None:
        return decorator(func)

    return decorator


class RelationAttribute:
    '''
    Installed in place of each ``@relation`` method. Reading it from a record lazy loads
    the relation once and caches the result on the record.
    '''
    def __init__(self, name: str, func: Callable):
        self.name = name
        self.func = func

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return instance.get_related(self.name)


class RelationRegistryMeta(type):
    '''
    Metaclass handling relation registry at the class level.
    '''
    def __new__(cls, name, bases, attrs):
        relation_registry = {}

        for base in bases:
            relation_registry.update(getattr(base, 'relation_registry', {}))

        for attr_name, attr_value in list(attrs.items()):
            if inspect.isfunction(attr_value) and hasattr(attr_value, '_relation_name'):
                relation_name = attr_value._relation_name
                relation_registry[relation_name] = attr_value
                attrs[attr_name] = RelationAttribute(relation_name, attr_value)

        attrs['relation_registry'] = relation_registry

        return super().__new__(cls, name, bases, attrs)


class Record(metaclass=RelationRegistryMeta):
    '''
    Class attributes:
        table:      SQLAlchemy table describing the resource; its name is the default
                    resource path and its primary key columns the record's primary key
        path:       resource path (template) overriding the table name
        connection: Connection used by queries of this type
    '''
    table      : sa.Table | None = None
    path       : str | None      = None
    connection                   = None

    def __init__(self, **attributes):
        self._attributes = dict(attributes)
        self._related    = {}

    def __repr__(self):
        return f'<{type(self).__name__} {self._attributes}>'

    @classmethod
    def resource(cls) -> str:
        if cls.path is not None:
            return cls.path
        if cls.table is not None:
            return cls.table.name
        raise ConfigurationError(f'{cls.__name__} defines neither a table nor a path')

    @classmethod
    def primary_key(cls) -> list[str]:
        if cls.table is None:
            return []
        return [column.name for column in cls.table.primary_key.columns]

    @classmethod
    def get_db(cls):
        if cls.connection is None:
            raise ConfigurationError(f'No connection set for {cls.__name__}')
        return cls.connection

    @classmethod
    def find(cls) -> RecordQuery:
        return RecordQuery(cls)

    @classmethod
    def instantiate(cls, row: Mapping[str, Any]):
        '''
        Create an empty record for ``row``; the row is applied by `populate_record`.
        '''
        return cls()

    @classmethod
    def populate_record(cls, record, row: Mapping[str, Any]) -> None:
        '''
        Apply ``row`` to ``record``. Values under a relation's name (embedded by the API,
        e.g. for ``join_with``) populate that relation instead of becoming attributes.
        '''
        attributes = dict(row)
        for name in cls.relation_registry:
            if isinstance(attributes.get(name), (Mapping, list)):
                record._related[name] = record._embedded_relation(name, attributes.pop(name))

        record._attributes = attributes

    def _embedded_relation(self, name, value):
        query = self.get_relation(name)
        rows  = value if isinstance(value, list) else [value]

        records = materializer.create_models(query.model_cls, rows, query.as_dicts)
        if query.multiple:
            return records
        return records[0] if records else None

    def after_find(self) -> None:
        '''
        Hook invoked once a record is fully populated, relations included.
        '''

    @property
    def attributes(self) -> dict[str, Any]:
        return self._attributes

    @property
    def related_records(self) -> dict[str, Any]:
        return self._related

    def get(self, name: str, default=None):
        if name in self._attributes:
            return self._attributes[name]
        return self._related.get(name, default)

    def __contains__(self, name):
        return name in self._attributes or name in self._related

    def __getitem__(self, name):
        if name in self._attributes:
            return self._attributes[name]
        if name in self._related or name in self.relation_registry:
            return self.get_related(name)
        raise KeyError(name)

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)

        attributes = self.__dict__.get('_attributes', {})
        if name in attributes:
            return attributes[name]

        related = self.__dict__.get('_related', {})
        if name in related:
            return related[name]

        raise AttributeError(f'{type(self).__name__} has no attribute "{name}"')

    def populate_relation(self, name: str, records) -> None:
        self._related[name] = records

    def is_relation_populated(self, name: str) -> bool:
        return name in self._related

    def get_relation(self, name: str) -> RelationQuery:
        func = self.relation_registry.get(name)
        if func is None:
            raise ValueError(f'{type(self).__name__} has no relation named "{name}"')

        query = func(self)
        if not isinstance(query, RelationQuery):
            raise TypeError(
                f'Relation "{name}" of {type(self).__name__} must return a RelationQuery'
            )
        return query

    def get_related(self, name: str):
        '''
        Return the relation ``name``, lazy loading it on first access.
        '''
        if name not in self._related:
            query = self.get_relation(name)
            self._related[name] = query.find_for(name, self)
        return self._related[name]

    def has_one(self, model_cls: type['Record'], link: Mapping[str, str]) -> RelationQuery:
        '''
        Parameters:
            model_cls: related record type
            link:      related attribute -> attribute of this record
        '''
        return RelationQuery(model_cls, link, primary_model=self, multiple=False)

    def has_many(self, model_cls: type['Record'], link: Mapping[str, str]) -> RelationQuery:
        return RelationQuery(model_cls, link, primary_model=self, multiple=True)
