'''
QueryBuilder

Translates a Query into the (path, params) pair a GET Command is sent with. Filters are
ordinary SQLAlchemy boolean expressions over (possibly table-less) columns; only the
subset with a natural query-string form is supported:

================================  =================================
expression                        params
================================  =================================
``column('id') == 7``             ``{'id': 7}``
``column('id').in_([1, 2])``      ``{'id': [1, 2]}``
``column('id').is_(None)``        ``{'id': None}``
``table.c.id == 7``               ``{'table.id': 7}``
``and_(a, b)``                    ``{**a, **b}``
``or_(a, b)``                     ``{'or': [a, b]}``
``true()``                        ``{}``
================================  =================================

Join markers on the query are sent as ``expand=<name>,<name>`` so the API embeds the
related data in each row.
'''
import logging
from typing import Any

import sqlalchemy as sa
from sqlalchemy.sql import operators
from sqlalchemy.sql.elements import (
    BinaryExpression,
    BindParameter,
    BooleanClauseList,
    Grouping,
    True_,
)

from restar.errors import QueryBuildError


logger = logging.getLogger(__name__)

OR_KEY     = 'or'
EXPAND_KEY = 'expand'

class QueryBuilder:
    def __init__(self, db):
        self.db = db

    def build(self, query) -> tuple[str, dict[str, Any]]:
        params = dict(query.options)
        self._merge(params, self.build_where(query.criterion))

        if query.joins:
            params[EXPAND_KEY] = ','.join(query.joins)

        return query.resource(), params

    def build_where(self, condition) -> dict[str, Any]:
        if condition is None:
            return {}

        while isinstance(condition, Grouping):
            condition = condition.element

        if isinstance(condition, True_):
            return {}

        if isinstance(condition, BooleanClauseList):
            return self._build_clause_list(condition)

        if isinstance(condition, BinaryExpression):
            return self._build_binary(condition)

        raise QueryBuildError(f'Unsupported condition: {condition!r}')

    def _build_clause_list(self, condition):
        if condition.operator is operators.and_:
            params = {}
            for clause in condition.clauses:
                self._merge(params, self.build_where(clause))
            return params

        if condition.operator is operators.or_:
            return {OR_KEY: [self.build_where(c) for c in condition.clauses]}

        raise QueryBuildError(f'Unsupported clause list operator: {condition.operator}')

    def _build_binary(self, condition):
        column = condition.left
        if not isinstance(column, sa.ColumnClause):
            raise QueryBuildError(f'Left side of {condition!r} must be a column')

        name = self._name(column)
        op   = condition.operator
        if op is operators.eq:
            return {name: self._value(condition.right)}

        if op is operators.in_op:
            return {name: list(self._value(condition.right))}

        if op is operators.is_:
            return {name: None}

        raise QueryBuildError(f'Unsupported operator {op.__name__} on "{name}"')

    @staticmethod
    def _name(column):
        if column.table is not None:
            return f'{column.table.name}.{column.name}'
        return column.name

    @staticmethod
    def _value(element):
        if isinstance(element, BindParameter):
            return element.effective_value
        raise QueryBuildError(f'Expected a literal value, got {element!r}')

    @staticmethod
    def _merge(params, new):
        for key, value in new.items():
            if key in params and params[key] != value:
                raise QueryBuildError(
                    f'Conflicting conditions for "{key}": {params[key]!r} and {value!r}'
                )
            params[key] = value
