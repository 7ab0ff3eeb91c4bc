'''
Request building

Turns a path template plus query/body parameters into the URL actually requested.
Placeholders take the form ``{name}`` and are filled from the query first, then from the
body:

.. code-block:: python

    build_url('users/{user_id}/phones', {'user_id': 123, 'sort': 'name'})
    # -> 'users/123/phones?sort=name'

Query keys are flattened before lookup, so both ``{'filter': {'user_id': 123}}`` and
``{'filter[user_id]': 123}`` satisfy ``{user_id}``. Parameters consumed by a placeholder are
dropped from the query string; the rest are merged over the auth parameters (explicit
values win) and appended PHP-style (``key[sub]=value``, ``key[]=value``).
'''
import re
from typing import Any
from urllib.parse import quote, urlencode, urljoin
from collections.abc import Mapping

from restar.errors import URLResolutionError


PLACEHOLDER = re.compile(r'{(\w+)}')
BRACKETS    = re.compile(r'^.*\[|\].*$')

def flatten_query(query: Mapping[str, Any] | None) -> dict[str, Any]:
    '''
    Build the placeholder lookup set from query parameters. Nested mappings have their
    keys merged in directly (later keys overwrite earlier ones); other values are
    registered under the innermost bracketed part of their key, e.g. ``filter[name]`` ->
    ``name``.
    '''
    return {
        name: value
        for name, (value, _) in _lookup_sources(query).items()
    }

def _lookup_sources(query):
    '''
    Same as ``flatten_query``, but remembers which query entry each name came from:
    ``name -> (value, (key, subkey))`` with ``subkey=None`` for top-level entries.
    '''
    sources = {}
    for key, value in (query or {}).items():
        if isinstance(value, Mapping):
            for subkey, subvalue in value.items():
                sources[subkey] = (subvalue, (key, subkey))
        else:
            sources[BRACKETS.sub('', str(key))] = (value, (key, None))

    return sources

def _path_value(value):
    if value is None or isinstance(value, (Mapping, list, tuple, set)):
        return None
    return quote(str(value), safe='')

def resolve_path(
    path  : str,
    query : Mapping[str, Any] | None = None,
    body        = None,
) -> tuple[str, dict[str, Any]]:
    '''
    Substitute every ``{name}`` token in ``path``. Values are percent-encoded as a single
    path segment, so ``a/b`` becomes ``a%2Fb``.

    Returns:
        the resolved path and a copy of ``query`` without the entries used for
        substitution

    Raises:
        URLResolutionError: if any token has no (scalar, non-null) value in either the
                            query or the body
    '''
    remaining = {
        k: dict(v) if isinstance(v, Mapping) else v
        for k, v in (query or {}).items()
    }
    if not isinstance(body, Mapping):
        body = {}

    names = PLACEHOLDER.findall(path)
    if not names:
        return path, remaining

    sources = _lookup_sources(query)
    missing = []
    for name in dict.fromkeys(names):
        value, origin = sources.get(name, (None, None))
        value = _path_value(value)

        if value is not None:
            key, subkey = origin
            if subkey is None:
                remaining.pop(key, None)
            elif key in remaining:
                remaining[key].pop(subkey, None)
                if not remaining[key]:
                    del remaining[key]
        else:
            value = _path_value(body.get(name))

        if value is None:
            missing.append(name)
            continue

        path = path.replace('{' + name + '}', value)

    if missing:
        raise URLResolutionError(path, missing)

    return path, remaining

def _query_pairs(prefix, value):
    if value is None:
        return

    if isinstance(value, Mapping):
        for key, item in value.items():
            yield from _query_pairs(f'{prefix}[{key}]', item)
    elif isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            if isinstance(item, (Mapping, list, tuple)):
                yield from _query_pairs(f'{prefix}[{i}]', item)
            else:
                yield from _query_pairs(f'{prefix}[]', item)
    elif isinstance(value, bool):
        yield prefix, int(value)
    else:
        yield prefix, value

def build_query_string(params: Mapping[str, Any]) -> str:
    pairs = []
    for key, value in params.items():
        pairs.extend(_query_pairs(str(key), value))

    return urlencode(pairs)

def build_url(
    path     : str,
    query    : Mapping[str, Any] | None = None,
    body                                = None,
    auth     : Mapping[str, Any] | None = None,
    base_uri : str | None               = None,
) -> str:
    '''
    Parameters:
        path:     path template, relative to ``base_uri`` when one is given
        query:    query parameters (GET parameters)
        body:     request body; only consulted for placeholder values when a mapping
        auth:     resolved auth parameters, overridden by explicit query parameters
        base_uri: root URI to join the resolved path onto
    '''
    url, remaining = resolve_path(path, query, body)

    params = {**(auth or {}), **remaining}
    if params:
        query_string = build_query_string(params)
        if query_string:
            url += ('&' if '?' in url else '?') + query_string

    if base_uri is not None:
        url = urljoin(base_uri, url)

    return url
