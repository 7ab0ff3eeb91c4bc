'''
Relation

Queries bound to a relation between two record types. A relation is defined by a
``link`` mapping attributes of the related resource to attributes of the primary one,
optionally routed through an intermediate relation:

.. code-block:: python

    class Order(Record):
        @relation
        def customer(self):
            return self.has_one(Customer, {'id': 'customer_id'})

        @relation
        def items(self):
            return self.has_many(Item, {'id': 'item_id'}).via_table(
                'order_items', {'order_id': 'id'}
            )

        @relation
        def suppliers(self):
            return self.has_many(Supplier, {'id': 'supplier_id'}).via('items')

Two execution modes exist. *Lazy* loading (``primary_model`` set, e.g. ``order.items``)
rewrites the query in `prepare()` to fetch one record's related rows. *Eager* loading
(``Order.find().with_('items')``) runs `populate_relation()` once for a whole result set
and distributes the related rows over the primary models by link key.

In both modes a link with no usable values turns the query into a guaranteed-empty one:
no request is sent and nothing is returned, rather than the whole unfiltered resource.
'''
import copy
import json
import logging
from typing import Any, Callable, TypeVar
from collections import defaultdict
from collections.abc import Mapping

import sqlalchemy as sa

from restar.materializer import index_models
from restar.query import RecordQuery, make_condition
from restar.util.types import populate_related


logger = logging.getLogger(__name__)

R = TypeVar('R', bound='Record')

class RelationQuery(RecordQuery[R]):
    '''
    Parameters:
        model_cls:     related record type
        link:          related attribute -> primary attribute
        primary_model: record the relation belongs to (None in eager context)
        multiple:      whether the relation holds a list or at most one record
    '''
    def __init__(
        self,
        model_cls     : type[R],
        link          : Mapping[str, str],
        primary_model        = None,
        multiple      : bool = False,
        from_         : str | None = None,
    ):
        super().__init__(model_cls, from_)

        self.link          = dict(link)
        self.primary_model = primary_model
        self.multiple      = multiple

        self.via_query    = None
        self.on_condition = None

    def via(self, relation_name: str, callback: Callable | None = None):
        '''
        Route the relation through another relation of the primary model.
        '''
        relation = self.primary_model.get_relation(relation_name)
        if callback is not None:
            callback(relation)

        self.via_query = (relation_name, relation)
        return self

    def via_table(self, resource: str, link: Mapping[str, str], callback: Callable | None = None):
        '''
        Route the relation through a junction resource whose rows carry both keys.

        Parameters:
            resource: junction resource path
            link:     junction attribute -> primary model attribute
        '''
        junction = RelationQuery(
            type(self.primary_model),
            link,
            primary_model=self.primary_model,
            multiple=True,
            from_=resource,
        )
        junction.as_array()

        if callback is not None:
            callback(junction)

        self.via_query = junction
        return self

    def on(self, condition=None, **equals):
        '''
        Extra condition conjoined onto the link filter when the relation is resolved.
        '''
        self.on_condition = make_condition(condition, **equals)
        return self

    def prepare(self):
        query = copy.copy(self)

        if self.primary_model is not None:
            # lazy loading of a relation
            logger.debug(
                f'Resolving {self.model_cls.__name__} relation of '
                f'{type(self.primary_model).__name__} {self.link}'
            )
            if isinstance(self.via_query, RelationQuery):
                # via junction table
                junction = copy.copy(self.via_query)
                via_models = junction.find_junction_rows([self.primary_model])
                query.filter_by_models(via_models)
            elif isinstance(self.via_query, tuple):
                # via relation
                via_name, via_query = self.via_query
                if via_query.multiple:
                    via_models = via_query.find_models()
                    populate_related(
                        self.primary_model,
                        via_name,
                        index_models(via_models, via_query.index_key),
                    )
                else:
                    model = via_query.one()
                    populate_related(self.primary_model, via_name, model)
                    via_models = [] if model is None else [model]
                query.filter_by_models(via_models)
            else:
                query.filter_by_models([self.primary_model])

        if self.on_condition is not None:
            query.and_where(self.on_condition)

        return query

    def _key_columns(self):
        '''
        Local link attributes, prefixed with the resource name in joined contexts.
        '''
        attributes = list(self.link)
        if self.joins:
            alias = self.resource()
            attributes = [f'{alias}.{attribute}' for attribute in attributes]
        return attributes

    def filter_by_models(self, models: list):
        attributes = self._key_columns()

        if len(attributes) == 1:
            # single key
            link_value = next(iter(self.link.values()))
            values = []
            for model in models:
                value = model.get(link_value)
                if value is None:
                    continue
                if isinstance(value, (list, tuple, set)):
                    values.extend(value)
                else:
                    values.append(value)

            if not values:
                self.emulate_execution()

            distinct = []
            for value in values:
                if value not in distinct:
                    distinct.append(value)

            column = sa.column(attributes[0])
            if len(distinct) == 1:
                self.and_where(column == distinct[0])
            elif distinct:
                self.and_where(column.in_(distinct))
        else:
            # composite keys; keys of the prefixed link follow `attributes`
            prefixed_link = dict(zip(attributes, self.link.values()))

            values = []
            for model in models:
                value = {
                    attribute: model.get(link)
                    for attribute, link in prefixed_link.items()
                }
                # only complete keys contribute
                if any(v is None for v in value.values()):
                    continue
                if value not in values:
                    values.append(value)

            if not values:
                self.emulate_execution()
                return self

            self.and_where(sa.or_(*[
                sa.and_(*[sa.column(a) == v for a, v in value.items()])
                for value in values
            ]))

        return self

    def find_junction_rows(self, primary_models: list) -> list[dict]:
        if not primary_models:
            return []

        self.filter_by_models(primary_models)
        self.primary_model = None
        return self.as_array().all()

    def find_for(self, name: str, model):
        '''
        Lazy load the relation ``name`` of ``model``.
        '''
        if self.primary_model is None:
            self.primary_model = model

        return self.all() if self.multiple else self.one()

    def populate_relation(self, name: str, primary_models: list) -> list:
        '''
        Eager load this relation for all ``primary_models`` and attach the result to each
        of them under ``name``.

        Returns:
            the related models found
        '''
        via_models   = None
        via_name     = None
        via_multiple = False
        junction     = None

        if isinstance(self.via_query, RelationQuery):
            # via junction table
            junction = copy.copy(self.via_query)
            via_models = junction.find_junction_rows(primary_models)
            self.filter_by_models(via_models)
        elif isinstance(self.via_query, tuple):
            # via relation
            via_name, via_query = self.via_query
            via_query = copy.copy(via_query)
            via_query.primary_model = None
            if via_query.as_dicts is None:
                via_query.as_dicts = self.as_dicts

            via_multiple = via_query.multiple
            via_models = via_query.populate_relation(via_name, primary_models)
            self.filter_by_models(via_models)
        else:
            self.filter_by_models(primary_models)

        if not self.multiple and len(primary_models) == 1:
            model = self.one()
            for primary_model in primary_models:
                populate_related(primary_model, name, model)
            return [] if model is None else [model]

        models  = self.find_models()
        buckets = self._build_buckets(models)

        if junction is not None:
            buckets = self._map_buckets(buckets, via_models, junction.link)
            link_values = list(junction.link.values())
        else:
            link_values = list(self.link.values())

        for primary_model in primary_models:
            if via_name is not None:
                # keys come from the intermediate models already attached to the primary
                key_models = _as_list(primary_model.get(via_name), via_multiple)
                keys = [k for m in key_models for k in _model_keys(m, link_values)]
            else:
                keys = _model_keys(primary_model, link_values)

            related = []
            for key in keys:
                for model in buckets.get(key, []):
                    if not any(model is r for r in related):
                        related.append(model)

            if self.multiple:
                value = index_models(related, self.index_key)
            else:
                value = related[0] if related else None
            populate_related(primary_model, name, value)

        return models

    def _build_buckets(self, models) -> dict[Any, list]:
        buckets = defaultdict(list)
        for model in models:
            for key in _model_keys(model, list(self.link)):
                buckets[key].append(model)
        return buckets

    def _map_buckets(self, buckets, junction_rows, junction_link) -> dict[Any, list]:
        '''
        Re-key related-side buckets to primary-side keys through junction rows.
        '''
        link_values = list(self.link.values())

        key_map = defaultdict(dict)
        for row in junction_rows:
            for primary_key in _model_keys(row, list(junction_link)):
                for related_key in _model_keys(row, link_values):
                    key_map[related_key][primary_key] = True

        mapped = defaultdict(list)
        for related_key, primary_keys in key_map.items():
            for primary_key in primary_keys:
                mapped[primary_key].extend(buckets.get(related_key, []))

        return mapped


def _as_list(value, multiple):
    if value is None:
        return []
    if not multiple:
        return [value]
    if isinstance(value, Mapping):
        # relation populated with an index
        return list(value.values())
    return list(value)

def _normalize_key(value):
    if isinstance(value, (Mapping, list, tuple, set)):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)

def _model_keys(model, attributes: list[str]) -> list:
    '''
    Bucket keys of ``model`` over ``attributes``. A single attribute holding a list yields
    one key per element; values are normalized to strings so ``7`` and ``'7'`` match.
    '''
    if len(attributes) == 1:
        value = model.get(attributes[0])
        if value is None:
            return []
        if isinstance(value, (list, tuple, set)):
            return [_normalize_key(v) for v in value]
        return [_normalize_key(value)]

    return [tuple(_normalize_key(model.get(a)) for a in attributes)]
