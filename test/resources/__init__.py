import json
import os
import re
from typing import Any, Callable, Dict, List, Union

from attrs import define
from botocore.exceptions import ClientError

from gyro_plugin_aws.types import Json

Response = Union[Json, Exception, Callable[[Json], Any], List[Any]]


def client_error(code: str, message: str = "", operation: str = "test") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


@define
class ProviderCall:
    service: str
    action: str
    kwargs: Json


class BotoDummyStsClient:
    def __getattr__(self, action_name: str) -> Callable[..., Any]:
        def call(*args: Any, **kwargs: Any) -> Any:
            return {
                "Account": "123456789012",
                "Credentials": {"AccessKeyId": "xxx", "SecretAccessKey": "xxx", "SessionToken": "xxx"},
            }

        return call


class FakePaginator:
    def __init__(self, client: "RecordingBotoClient", action: str) -> None:
        self.client = client
        self.action = action

    def paginate(self, **kwargs: Any) -> List[Json]:
        self.client.session.record(self.client.service, self.action, kwargs)
        return self.client.session.pages[self.action]


class RecordingBotoClient:
    def __init__(self, session: "RecordingSession", service: str) -> None:
        self.session = session
        self.service = service

    def can_paginate(self, action_name: str) -> bool:
        return action_name.replace("_", "-") in self.session.pages

    def get_paginator(self, action_name: str) -> FakePaginator:
        return FakePaginator(self, action_name.replace("_", "-"))

    def close(self) -> None:
        pass

    def __getattr__(self, action_name: str) -> Callable[..., Any]:
        if action_name.startswith("__"):
            raise AttributeError(action_name)

        def call_action(*args: Any, **kwargs: Any) -> Any:
            assert not args, "No arguments allowed!"
            return self.session.respond(self.service, action_name.replace("_", "-"), kwargs)

        return call_action


class RecordingSession:
    """
    Stands in for a boto3 session: use an instance as session_class_factory.

    Responses are resolved in this order:
    - a response registered via `on` (static json, exception, callable or list of sequential responses)
    - files/<service>/<action>__<args>.json
    - files/<service>/<action>.json
    - an empty json object
    Every call is recorded.
    """

    def __init__(self) -> None:
        self.calls: List[ProviderCall] = []
        self.responses: Dict[str, Response] = {}
        self.pages: Dict[str, List[Json]] = {}

    def __call__(self, *args: Any, **kwargs: Any) -> "RecordingSession":
        return self

    def client(self, service_name: str, **kwargs: Any) -> Any:
        return BotoDummyStsClient() if service_name == "sts" else RecordingBotoClient(self, service_name)

    def on(self, action: str, response: Response) -> "RecordingSession":
        self.responses[action] = response
        return self

    def fail(self, action: str, code: str, message: str = "") -> "RecordingSession":
        return self.on(action, client_error(code, message, action))

    def paginate(self, action: str, pages: List[Json]) -> "RecordingSession":
        self.pages[action] = pages
        return self

    def record(self, service: str, action: str, kwargs: Json) -> None:
        self.calls.append(ProviderCall(service, action, kwargs))

    def respond(self, service: str, action: str, kwargs: Json) -> Any:
        self.record(service, action, kwargs)
        response = self.responses.get(action)
        if isinstance(response, list):
            # sequential responses: the last one is repeated
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, Exception):
            raise response
        elif callable(response):
            return response(kwargs)
        elif response is not None:
            return response
        for path in (path_from(service, action, **kwargs), path_from(service, action)):
            if os.path.exists(path):
                with open(path) as f:
                    return json.load(f)
        return {}

    def actions(self) -> List[str]:
        return [c.action for c in self.calls]

    def mutations(self) -> List[str]:
        return [c.action for c in self.calls if not c.action.startswith("describe-")]

    def calls_of(self, action: str) -> List[Json]:
        return [c.kwargs for c in self.calls if c.action == action]

    def reset(self) -> None:
        self.calls.clear()


def path_from(service_name: str, action_name: str, **kwargs: Any) -> str:
    def arg_string(v: Any) -> str:
        if isinstance(v, list):
            return "_".join(arg_string(x) for x in v)
        elif isinstance(v, dict):
            return "_".join(arg_string(v) for k, v in v.items())
        else:
            return re.sub(r"[^a-zA-Z0-9]", "_", str(v))

    vals = "__" + ("_".join(arg_string(v) for _, v in sorted(kwargs.items()))) if kwargs else ""
    vals = vals[0:220] if len(vals) > 220 else vals
    path = os.path.dirname(__file__) + f"/files/{service_name.replace('-', '_')}/{action_name}{vals}.json"
    return os.path.abspath(path)


def load_json(service: str, action: str) -> Json:
    with open(path_from(service, action)) as f:
        return json.load(f)  # type: ignore


def provider_item(service: str, action: str, result_name: str, index: int = 0) -> Json:
    return load_json(service, action)[result_name][index]  # type: ignore
