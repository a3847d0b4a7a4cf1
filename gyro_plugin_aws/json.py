import logging
import sys
from datetime import datetime, timezone
from typing import Any, Callable, List, Literal, Optional, Type, TypeVar, Union, get_args, get_origin

import attrs
import cattrs
from cattrs import override
from cattrs.gen import make_dict_unstructure_fn
from dateutil.parser import isoparse

from gyro_plugin_aws.types import Json, JsonElement

if sys.version_info >= (3, 10):
    from types import NoneType, UnionType
else:
    UnionType = Union
    NoneType = type(None)

log = logging.getLogger("gyro.plugins.aws")

AnyT = TypeVar("AnyT")
UTC_Date_Format = "%Y-%m-%dT%H:%M:%SZ"

# the global converter instance
__converter = cattrs.Converter()

# private attributes (graph, parent references) are never part of the json representation
__converter.register_unstructure_hook_factory(
    attrs.has,
    lambda cls: make_dict_unstructure_fn(
        cls,
        __converter,
        _cattrs_omit_if_default=False,
        _cattrs_use_alias=False,
        _cattrs_include_init_false=False,
        **{a.name: override(omit=True) for a in attrs.fields(cls) if a.name.startswith("_")},
    ),
)


# work around until this is solved: https://github.com/python-attrs/cattrs/issues/278
def is_primitive_or_primitive_union(t: Any) -> bool:
    if t in (str, bytes, int, float, bool, NoneType):
        return True
    origin = get_origin(t)
    if origin is Literal:
        return True
    if origin in (UnionType, Union):
        return all(is_primitive_or_primitive_union(ty) for ty in get_args(t))
    return False


__converter.register_structure_hook_func(is_primitive_or_primitive_union, lambda v, ty: v)


def utc_str(dt: datetime) -> str:
    if dt.tzinfo is not None and (offset := dt.utcoffset()) is not None and offset.total_seconds() != 0:
        dt = (dt - offset).replace(tzinfo=timezone.utc)
    return dt.strftime(UTC_Date_Format)


def register_json(
    cls: Type[AnyT],
    to_json_fn: Optional[Callable[[AnyT], JsonElement]] = None,
    from_json_fn: Optional[Callable[[Any], AnyT]] = None,
) -> None:
    if from_json_fn is not None:
        __converter.register_structure_hook(cls, lambda obj, _: from_json_fn(obj))
    if to_json_fn is not None:
        __converter.register_unstructure_hook(cls, to_json_fn)


register_json(datetime, utc_str, lambda js: js if isinstance(js, datetime) else isoparse(js))


def to_json(node: Any, strip_nulls: bool = False) -> Json:
    """
    Use this method, if the given node is known as complex object,
    so the result will be a json object.
    """
    unstructured: Json = __converter.unstructure(node)
    if strip_nulls:
        unstructured = strip_none_values(unstructured)
    return unstructured


def from_json(js: JsonElement, clazz: Type[AnyT]) -> AnyT:
    """
    Loads a json object into a python object.
    :param js: the json object to load.
    :param clazz: the type of the python object.
    :return: the loaded python object.
    """
    try:
        return __converter.structure(js, clazz)
    except Exception as e:
        log.debug(f"Can not deserialize json into class {clazz.__name__}: {js}. Error: {e}")
        raise


def strip_none_values(js: Json) -> Json:
    def walk(element: Any) -> Any:
        if isinstance(element, dict):
            return {k: walk(v) for k, v in element.items() if v is not None}
        elif isinstance(element, list):
            return [walk(v) for v in element]
        else:
            return element

    return walk(js)  # type: ignore


def value_in_path(element: JsonElement, path_or_name: Union[List[str], str]) -> Optional[Any]:
    """
    Access a value in a json object by a defined path.
    {"a": {"b": {"c": 1}}} -> value_in_path({"a": {"b": {"c": 1}}}, ["a", "b", "c"]) -> 1
    The path can be defined as a list of strings or as a string with dots as separator.
    """
    path = path_or_name if isinstance(path_or_name, list) else path_or_name.split(".")
    at = len(path)

    def at_idx(current: JsonElement, idx: int) -> Optional[Any]:
        if at == idx:
            return current
        elif current is None or not isinstance(current, dict) or path[idx] not in current:
            return None
        else:
            return at_idx(current[path[idx]], idx + 1)

    return at_idx(element, 0)
