'''
Small shop schema served by an in-memory fake of the HTTP handler.

CUSTOMER -- ORDER -- (order_items) -- ITEM -- SUPPLIER
   |          |
 PHONE    ORDER_LINE -- SHIPMENT   (composite link)
'''
import json
from urllib.parse import urlsplit, parse_qs

import requests
import sqlalchemy as sa

from restar import Connection, Record, relation


BASE_URI = 'https://api.test/'

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

    @relation
    def phones(self):
        return self.has_many(Phone, {'customer_id': 'id'})


class Phone(Record):
    table = sa.Table(
        'phones',
        metadata,
        sa.Column('id',          sa.Integer, primary_key=True),
        sa.Column('customer_id', sa.Integer),
        sa.Column('number',      sa.String),
    )
    path = 'customers/{customer_id}/phones'


class Order(Record):
    table = sa.Table(
        'orders',
        metadata,
        sa.Column('id',          sa.Integer, primary_key=True),
        sa.Column('customer_id', sa.Integer),
    )

    found = 0

    def after_find(self):
        type(self).found += 1

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

    @relation
    def lines(self):
        return self.has_many(OrderLine, {'order_id': 'id'})

    @relation('big_lines')
    def lines_over_ten(self):
        return self.has_many(OrderLine, {'order_id': 'id'}).on(quantity=10)


class Item(Record):
    table = sa.Table(
        'items',
        metadata,
        sa.Column('id',          sa.Integer, primary_key=True),
        sa.Column('name',        sa.String),
        sa.Column('supplier_id', sa.Integer),
    )


class Supplier(Record):
    table = sa.Table(
        'suppliers',
        metadata,
        sa.Column('id',   sa.Integer, primary_key=True),
        sa.Column('name', sa.String),
    )


class OrderLine(Record):
    table = sa.Table(
        'order_lines',
        metadata,
        sa.Column('order_id', sa.Integer, primary_key=True),
        sa.Column('line_no',  sa.Integer, primary_key=True),
        sa.Column('quantity', sa.Integer),
    )

    @relation
    def shipments(self):
        return self.has_many(Shipment, {'order_id': 'order_id', 'line_no': 'line_no'})


class Shipment(Record):
    table = sa.Table(
        'shipments',
        metadata,
        sa.Column('id',       sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer),
        sa.Column('line_no',  sa.Integer),
    )


class Keyless(Record):
    table = sa.Table(
        'keyless',
        metadata,
        sa.Column('name', sa.String),
    )


DATA = {
    'customers': [
        {'id': 1, 'name': 'ann'},
        {'id': 2, 'name': 'bob'},
        {'id': 3, 'name': 'cid'},
    ],
    'customers/1/phones': [
        {'id': 10, 'customer_id': 1, 'number': '555-0101'},
        {'id': 11, 'customer_id': 1, 'number': '555-0102'},
    ],
    'orders': [
        {'id': 100, 'customer_id': 1},
        {'id': 101, 'customer_id': 1},
        {'id': 102, 'customer_id': 2},
    ],
    'order_items': [
        {'order_id': 100, 'item_id': 1000},
        {'order_id': 100, 'item_id': 1001},
        {'order_id': 101, 'item_id': 1001},
    ],
    'items': [
        {'id': 1000, 'name': 'tea',    'supplier_id': 7},
        {'id': 1001, 'name': 'coffee', 'supplier_id': 8},
    ],
    'suppliers': [
        {'id': 7, 'name': 'leafy'},
        {'id': 8, 'name': 'beany'},
    ],
    'order_lines': [
        {'order_id': 100, 'line_no': 1, 'quantity': 10},
        {'order_id': 100, 'line_no': 2, 'quantity': 3},
        {'order_id': 101, 'line_no': 1, 'quantity': 10},
    ],
    'shipments': [
        {'id': 5000, 'order_id': 100, 'line_no': 1},
        {'id': 5001, 'order_id': 100, 'line_no': 2},
        {'id': 5002, 'order_id': 101, 'line_no': 1},
    ],
}


def make_response(payload, url='', status=200, content_type='application/json'):
    response = requests.Response()
    response.status_code = status
    response.url = url
    response.encoding = 'utf-8'

    if content_type is not None:
        response.headers['Content-Type'] = content_type

    if isinstance(payload, bytes):
        response._content = payload
    elif isinstance(payload, str):
        response._content = payload.encode('utf-8')
    else:
        response._content = json.dumps(payload).encode('utf-8')

    return response

def query_of(url):
    return parse_qs(urlsplit(url).query)


class FakeSession:
    '''
    Stands in for `requests.Session`: records every call and answers from ``routes``
    (path -> rows, or a response object), filtering rows on plain query parameters the
    way a simple REST API would.
    '''
    def __init__(self, routes=None):
        self.routes = DATA if routes is None else routes
        self.calls  = []

    @property
    def urls(self):
        return [url for _, url, _ in self.calls]

    def request(self, method, url, **options):
        self.calls.append((method, url, options))

        parts = urlsplit(url)
        payload = self.routes.get(parts.path.lstrip('/'), [])
        if isinstance(payload, requests.Response):
            return payload

        if isinstance(payload, list):
            payload = self._filter(payload, parse_qs(parts.query))

        return make_response(payload, url)

    @staticmethod
    def _filter(rows, query):
        for key, values in query.items():
            name = key[:-2] if key.endswith('[]') else key
            rows = [
                row for row in rows
                if name not in row or str(row[name]) in values
            ]
        return rows


def connect(routes=None, **config):
    session = FakeSession(routes)
    connection = Connection({'base_uri': BASE_URI, **config}, handler=session)

    for record_cls in (Customer, Phone, Order, Item, Supplier, OrderLine, Shipment, Keyless):
        record_cls.connection = connection

    return connection, session
