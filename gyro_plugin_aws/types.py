from typing import Any, Dict, List, Union

# Json object as returned by the provider or sent as request
Json = Dict[str, Any]
JsonElement = Union[None, str, int, float, bool, List[Any], Dict[str, Any]]
