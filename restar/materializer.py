'''
Materializer

Turns raw rows into the final result set of a `RecordQuery`: record construction,
primary-key de-duplication of joined results, eager relation loading and indexing.
Everything here reads models through `get()`/``in`` only, so records and plain rows
(``as_array`` mode) go through the same code.
'''
import json
import logging
from typing import Any, Callable
from collections.abc import Hashable, Mapping

from restar.errors import ConfigurationError


logger = logging.getLogger(__name__)

def create_models(model_cls, rows, as_dicts=False) -> list:
    if as_dicts:
        return [dict(row) for row in rows]

    models = []
    for row in rows:
        model = model_cls.instantiate(row)
        model_cls.populate_record(model, row)
        models.append(model)

    return models

def _hash_key(value):
    if isinstance(value, Hashable):
        return value
    return json.dumps(value, sort_keys=True, default=str)

def remove_duplicated_models(models: list, pks: list[str], name: str = '') -> list:
    '''
    Removes duplicated models by checking their primary key values. Joined (expanded)
    responses may repeat a row once per related row; the first occurrence is kept.

    As soon as a model lacks a primary key attribute altogether (the key is not part of
    the result set), checking stops: that model and all following ones are kept as is.

    Raises:
        ConfigurationError: if ``pks`` is empty
    '''
    seen = set()
    distinct = []

    if len(pks) > 1:
        # composite primary key
        for i, model in enumerate(models):
            if any(pk not in model for pk in pks):
                distinct.extend(models[i:])
                break

            key = json.dumps([model.get(pk) for pk in pks], default=str)
            if key in seen:
                continue

            seen.add(key)
            distinct.append(model)
    elif not pks:
        raise ConfigurationError(f'Primary key of "{name}" can not be empty.')
    else:
        # single column primary key
        pk = pks[0]
        for i, model in enumerate(models):
            if pk not in model:
                distinct.extend(models[i:])
                break

            key = _hash_key(model.get(pk))
            if key in seen:
                continue

            # null keys are never seen, so rows without a key value all survive
            if key is not None:
                seen.add(key)
            distinct.append(model)

    if len(distinct) < len(models):
        logger.debug(f'Removed {len(models) - len(distinct)} duplicated "{name}" models')

    return distinct

def index_models(models, key: str | Callable | None):
    if key is None:
        return models

    if callable(key):
        return {key(model): model for model in models}

    return {model.get(key): model for model in models}

def normalize_relations(model, with_: Mapping[str, Callable | None]) -> dict[str, Any]:
    '''
    Resolve eager-loading names against ``model`` into relation queries, nesting dotted
    names (``'orders.items'``) as eager loads of the first relation.
    '''
    relations = {}
    for name, callback in with_.items():
        name, _, child = name.partition('.')

        relation = relations.get(name)
        if relation is None:
            relation = model.get_relation(name)
            relation.primary_model = None
            relations[name] = relation

        if child:
            relation.with_({child: callback})
        elif callback is not None:
            callback(relation)

    return relations

def find_with(model_cls, with_: Mapping[str, Callable | None], models: list, as_dicts=None):
    '''
    Eager load the named relations onto every model, one relation after the other in
    declaration order.
    '''
    relations = normalize_relations(model_cls(), with_)

    for name, relation in relations.items():
        if relation.as_dicts is None:
            relation.as_dicts = as_dicts

        logger.debug(f'Eager loading "{name}" for {len(models)} {model_cls.__name__} models')
        relation.populate_relation(name, models)
