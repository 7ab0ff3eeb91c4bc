from typing import Any, Protocol, runtime_checkable
from collections.abc import MutableMapping


@runtime_checkable
class AttributeReadable(Protocol):
    '''
    Anything attributes can be read from by name: records and plain mapping rows alike.
    '''
    def get(self, name: str, default: Any = None) -> Any: ...

    def __contains__(self, name: object) -> bool: ...


def populate_related(model: AttributeReadable, name: str, value) -> None:
    '''
    Attach related data to either a record or a raw (``as_array``) row.
    '''
    if isinstance(model, MutableMapping):
        model[name] = value
    else:
        model.populate_relation(name, value)
