from __future__ import annotations

import base64
import logging
from abc import ABC
from typing import Any, Callable, Dict, Optional, Union

log = logging.getLogger("gyro.plugins.aws")


# General idea and basic implementation is taken from: https://github.com/Onyo/jsonbender
class Bender(ABC):
    """
    Base bending class: a bender extracts or transforms a value of a provider json response.
    """

    def __call__(self, source: Any) -> Any:
        return self.raw_execute(source).value

    def raw_execute(self, source: Any) -> Transport:
        transport = Transport.from_source(source)
        return Transport(self.execute(transport.value), transport.context)

    def execute(self, source: Any) -> Any:
        return source

    def or_else(self, other: Bender) -> Bender:
        return OrElse(self, other)

    def __rshift__(self, other: Any) -> Bender:
        return Compose(self, other)


class BendingError(Exception):
    pass


Mapping = Union[Bender, Dict[str, Bender]]


class Transport:
    def __init__(self, value: Any, context: Dict[str, Any]):
        self.value = value
        self.context = context

    @classmethod
    def from_source(cls, source: Any) -> Transport:
        if isinstance(source, cls):
            return source
        else:
            return cls(source, {})


class S(Bender):
    """
    Retrieve a value from a JSON object under given path.
    """

    def __init__(self, *path: Union[str, int], default: Optional[Any] = None):
        if not path:
            raise ValueError("No path given")
        self._path = path
        self._default = default

    def execute(self, source: Any) -> Any:
        try:
            for key in self._path:
                source = source[key]
            return source
        except (KeyError, TypeError, IndexError):
            return self._default


class F(Bender):
    """
    Lifts a python callable into a Bender, so it can be composed.
    The extra positional and named parameters are passed to the function at
    bending time after the given value.
    """

    def __init__(self, func: Callable[..., Any], *args: Any, **kwargs: Any):
        self._func = func
        self._args = args
        self._kwargs = kwargs

    def execute(self, value: Any) -> Any:
        return self._func(value, *self._args, **self._kwargs)


class OrElse(Bender):
    def __init__(self, source_bender: Bender, else_bender: Bender):
        self.source_bender = source_bender
        self.else_bender = else_bender

    def raw_execute(self, source: Any) -> Transport:
        first = self.source_bender.raw_execute(source)
        if first.value is not None:
            return first
        else:
            return self.else_bender.raw_execute(source)


class Compose(Bender):
    """
    Compose two benders: the second bender is only executed, if the first one yields a value.
    Use `>>` instead of calling `Compose` directly.
    """

    def __init__(self, first: Bender, second: Bender):
        self._first = first
        self._second = second

    def raw_execute(self, source: Any) -> Transport:
        first = self._first.raw_execute(source)
        return self._second.raw_execute(first) if first.value is not None else first


class ForallBend(Bender):
    """
    Bends each element of the list with the given mapping.
    """

    def __init__(self, mapping: Mapping, context: Optional[Dict[str, Any]] = None):
        self._mapping = mapping
        self._context = context

    def raw_execute(self, source: Any) -> Transport:
        transport = Transport.from_source(source)
        context = self._context or transport.context
        values = transport.value
        result = None if values is None else [bend(self._mapping, v, context) for v in values]
        return Transport(result, transport.context)


class Filter(Bender):
    """
    Keep only the list elements the predicate holds for.
    """

    def __init__(self, predicate: Callable[[Any], bool]):
        self._predicate = predicate

    def execute(self, source: Any) -> Any:
        return [e for e in source if self._predicate(e)] if isinstance(source, list) else source


class AsBool(Bender):
    def execute(self, source: Any) -> Any:
        if isinstance(source, bool):
            return source
        elif isinstance(source, str):
            return source.lower() in ("true", "yes", "1")
        else:
            return bool(source)


class Base64Decode(Bender):
    def execute(self, source: Any) -> Any:
        return base64.b64decode(source).decode("utf-8") if isinstance(source, str) else source


def bend(mapping: Mapping, source: Any, context: Optional[Dict[str, Any]] = None) -> Any:
    """
    The main bending function.

    mapping: the map of benders
    source: a dict to be bent

    returns a new dict according to the provided map.
    """

    def bend_with_context(inner: Mapping, transport: Transport) -> Any:
        if isinstance(inner, list):
            return [bend_with_context(v, transport) for v in inner]

        elif isinstance(inner, dict):
            res = {}
            for k, v in inner.items():
                try:
                    res[k] = bend_with_context(v, transport)
                except Exception as e:
                    log.error(e, exc_info=True)
                    raise BendingError(f"Error for key {k}: {e}") from e
            return res

        elif isinstance(inner, Bender):
            return inner(transport)

        else:
            return inner

    context = {} if context is None else context
    return bend_with_context(mapping, Transport(source, context))
