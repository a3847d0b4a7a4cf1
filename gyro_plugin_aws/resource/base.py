from __future__ import annotations

import logging
from abc import ABC
from typing import Any, Callable, ClassVar, Dict, Generic, Iterable, List, Optional, Set, Tuple, Type, TypeVar

from attrs import define, field, fields, fields_dict
from botocore.exceptions import ClientError

from gyro_plugin_aws.aws_client import AwsClient, is_not_found_error
from gyro_plugin_aws.errors import ConfigurationError, GyroAwsError, ValidationError
from gyro_plugin_aws.graph import Graph
from gyro_plugin_aws.json import from_json, to_json
from gyro_plugin_aws.json_bender import Bender, bend
from gyro_plugin_aws.types import Json
from gyro_plugin_aws.utils import is_blank, never, wait_until

log = logging.getLogger("gyro.plugins.aws")

T = TypeVar("T")


def parse_json(json: Json, clazz: Type[T], mapping: Optional[Dict[str, Bender]] = None) -> T:
    """
    Use this method to parse provider json into a class.
    :param json: the json to parse.
    :param clazz: the class to parse into.
    :param mapping: the optional mapping to apply before parsing.
    :return: The parsed object.
    """
    try:
        mapped = bend(mapping, json) if mapping is not None else json
        return from_json(mapped, clazz)
    except Exception as e:
        log.error(f"Failed to parse json into {clazz.__name__}: {e}. Source: {json}")
        raise


@define
class AwsApiSpec:
    """
    Specifications for the AWS API to call and the expected response.
    """

    service: str
    api_action: str
    result_property: Optional[str] = None
    parameter: Optional[Dict[str, Any]] = None
    expected_errors: Optional[List[str]] = None
    # name of the request parameter that takes the id of the resource
    id_parameter: Optional[str] = None
    override_iam_permission: Optional[str] = None  # only set if the permission can not be derived

    def iam_permission(self) -> str:
        if self.override_iam_permission:
            return self.override_iam_permission
        else:
            action = "".join(word.title() for word in self.api_action.split("-"))
            return f"{self.service}:{action}"


def field_errors(obj: Any) -> List[str]:
    """
    Validate all fields of given attrs instance based on the field metadata:
    required, allowed (set of values) and range (inclusive numeric bounds).
    Groups of mutually exclusive fields are defined on class level.
    """
    errors: List[str] = []
    for attr in fields(type(obj)):
        meta = attr.metadata
        value = getattr(obj, attr.name)
        if meta.get("required") and is_blank(value):
            errors.append(f"{attr.name} is required.")
        elif value is not None:
            if (allowed := meta.get("allowed")) and value not in allowed:
                errors.append(f"{attr.name} must be one of {', '.join(str(a) for a in allowed)} but was {value}.")
            if (valid := meta.get("range")) and not valid[0] <= value <= valid[1]:
                errors.append(f"{attr.name} must be between {valid[0]} and {valid[1]} but was {value}.")
    for group in getattr(obj, "exclusive_fields", []):
        defined = [name for name in group if not is_blank(getattr(obj, name))]
        if len(defined) > 1:
            errors.append(f"Only one of {', '.join(group)} can be set, found: {', '.join(defined)}.")
    for group in getattr(obj, "required_one_of", []):
        if all(is_blank(getattr(obj, name)) for name in group):
            errors.append(f"One of {', '.join(group)} is required.")
    return errors


def config_values(obj: Any) -> Json:
    """
    The configured values of an attrs instance: all fields that are not provider output.
    """
    output = {a.name for a in fields(type(obj)) if a.metadata.get("output")}
    return {k: v for k, v in to_json(obj).items() if k not in output}


@define(eq=False, slots=False)
class AwsSubResource(ABC):
    """
    Configuration object owned by exactly one parent resource.
    It has no lifecycle of its own: it is created, updated and deleted as part of the parent's update cycle.
    """

    kind: ClassVar[str] = "aws_sub_resource"
    mapping: ClassVar[Dict[str, Bender]] = {}
    exclusive_fields: ClassVar[List[Tuple[str, ...]]] = []
    required_one_of: ClassVar[List[Tuple[str, ...]]] = []

    _parent: Optional[AwsResource] = field(default=None, init=False, repr=False)

    def attach(self, parent: AwsResource) -> None:
        self._parent = parent

    def parent(self) -> AwsResource:
        if self._parent is None:
            raise ConfigurationError(f"{self.kind} is not attached to a parent resource.")
        return self._parent

    def parent_id(self) -> str:
        parent = self.parent()
        if is_blank(parent.id):
            raise ConfigurationError(f"{self.kind}: parent {parent.kind} has no id.")
        return parent.id  # type: ignore

    def primary_key(self) -> Any:
        """
        Identity of this sub resource within its parent.
        """
        raise NotImplementedError

    def validation_errors(self) -> List[str]:
        return []


SubResourceType = TypeVar("SubResourceType", bound=AwsSubResource)


@define
class SubResourceDiff(Generic[SubResourceType]):
    added: List[SubResourceType]
    changed: List[Tuple[SubResourceType, SubResourceType]]
    removed: List[SubResourceType]

    @staticmethod
    def between(current: Iterable[SubResourceType], desired: Iterable[SubResourceType]) -> SubResourceDiff[Any]:
        existing = {s.primary_key(): s for s in current}
        wanted = {s.primary_key(): s for s in desired}
        return SubResourceDiff(
            added=[s for k, s in wanted.items() if k not in existing],
            changed=[
                (existing[k], s)
                for k, s in wanted.items()
                if k in existing and config_values(existing[k]) != config_values(s)
            ],
            removed=[s for k, s in existing.items() if k not in wanted],
        )


@define(eq=False, slots=False)
class AwsResource(ABC):
    """
    Base class for all AWS resources.
    Override kind, type_name, mapping and the api specs for every resource.
    The lifecycle is implemented here: resources only define how to create and update themselves.
    """

    # The kind of this resource. Needs to be globally unique.
    kind: ClassVar[str] = "aws_resource"
    # Name of the resource type in the configuration language.
    type_name: ClassVar[str] = "resource"
    # The mapping to transform the provider json into this resource.
    mapping: ClassVar[Dict[str, Bender]] = {}
    # Describe call used to refresh a single resource by id and to find resources.
    api_spec: ClassVar[Optional[AwsApiSpec]] = None
    # Delete call keyed by id.
    delete_spec: ClassVar[Optional[AwsApiSpec]] = None
    # Names of the fields that hold sub resources owned by this resource.
    sub_resources: ClassVar[List[str]] = []
    exclusive_fields: ClassVar[List[Tuple[str, ...]]] = []
    required_one_of: ClassVar[List[Tuple[str, ...]]] = []

    # The provider assigned identifier of the resource.
    id: Optional[str] = field(default=None, metadata={"output": True})
    _graph: Optional[Graph] = field(default=None, init=False, repr=False)

    def __attrs_post_init__(self) -> None:
        self.adopt_sub_resources()

    # region lifecycle

    def refresh(self, client: AwsClient) -> bool:
        """
        Load the current state from the provider.
        :return: False if the resource does not exist anymore. The state of this resource is unchanged in this case.
        """
        if is_blank(self.id):
            raise ConfigurationError(f"Can not refresh {self.kind}: id is not set.")
        if (js := self.describe_if_exists(client)) is None:
            log.info(f"{self.kind} {self.id} does not exist.")
            return False
        self.copy_from(js)
        return True

    def create(self, client: AwsClient) -> None:
        if not is_blank(self.id):
            raise ConfigurationError(f"{self.kind} {self.id} has already been created.")
        self.validate()
        log.info(f"Create {self.kind}")
        self._create(client)
        if is_blank(self.id):
            raise GyroAwsError(f"Creating {self.kind} did not yield an id.")
        log.info(f"Created {self.kind} {self.id}")

    def update(self, client: AwsClient, previous: AwsResource, changed_field_names: Iterable[str]) -> None:
        """
        Update the resource in place.
        :param client: the client to use.
        :param previous: the state of this resource before the change.
        :param changed_field_names: the names of all fields that differ from the previous state.
        """
        if is_blank(self.id):
            self.id = previous.id
        if is_blank(self.id):
            raise ConfigurationError(f"Can not update {self.kind}: id is not set.")
        changed = self.changed_fields(changed_field_names)
        if not changed:
            log.debug(f"{self.kind} {self.id}: nothing to update.")
            return
        immutable = sorted(name for name in changed if not fields_dict(type(self))[name].metadata.get("updatable"))
        if immutable:
            raise ConfigurationError(
                f"{self.kind} {self.id}: {', '.join(immutable)} can not be changed in place. "
                "Delete and create the resource instead."
            )
        self.validate()
        log.info(f"Update {self.kind} {self.id}: {', '.join(sorted(changed))}")
        self._update(client, previous, changed)

    def delete(self, client: AwsClient) -> None:
        if is_blank(self.id):
            raise ConfigurationError(f"Can not delete {self.kind}: id is not set.")
        log.info(f"Delete {self.kind} {self.id}")
        try:
            self._delete(client)
        except ClientError as e:
            if is_not_found_error(e):
                log.info(f"{self.kind} {self.id} is already deleted.")
                return
            raise

    # endregion

    # region strategy: override in resources

    def _create(self, client: AwsClient) -> None:
        raise NotImplementedError(f"Create is not supported for {self.kind}")

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        # no field is updatable by default
        pass

    def _delete(self, client: AwsClient) -> None:
        if (spec := self.delete_spec) is None or spec.id_parameter is None:
            raise NotImplementedError(f"Delete is not supported for {self.kind}")
        client.call(
            aws_service=spec.service,
            action=spec.api_action,
            result_name=spec.result_property,
            expected_errors=spec.expected_errors,
            **{**(spec.parameter or {}), spec.id_parameter: self.id},
        )

    def validation_errors(self) -> List[str]:
        """
        Resource specific validation rules, that can not be expressed via field metadata.
        """
        return []

    @classmethod
    def exists(cls, js: Json) -> bool:
        """
        Some resources stay visible for some time after deletion.
        """
        return True

    @classmethod
    def with_details(cls, client: AwsClient, js: Json) -> Json:
        """
        Some resources need additional calls to get the complete state.
        """
        return js

    @classmethod
    def provider_items(cls, result: List[Json]) -> List[Json]:
        """
        Some describe calls wrap the resources, e.g. instances are grouped by reservation.
        """
        return result

    # endregion

    def describe(self, client: AwsClient) -> Optional[Json]:
        if (spec := self.api_spec) is None or spec.id_parameter is None:
            raise NotImplementedError(f"Describe is not supported for {self.kind}")
        items = client.list(
            aws_service=spec.service,
            action=spec.api_action,
            result_name=spec.result_property,
            expected_errors=spec.expected_errors,
            **{**(spec.parameter or {}), spec.id_parameter: [self.id]},
        )
        found = next((item for item in self.provider_items(items) if self.exists(item)), None)
        return self.with_details(client, found) if found is not None else None

    def describe_if_exists(self, client: AwsClient) -> Optional[Json]:
        try:
            return self.describe(client)
        except ClientError as e:
            if is_not_found_error(e):
                return None
            raise

    def copy_from(self, js: Json) -> None:
        """
        Overwrite all mapped attributes with the values of the provider json.
        Sub resources are replaced, not merged.
        """
        fresh = parse_json(js, type(self), self.mapping)
        for name in self.mapping:
            setattr(self, name, getattr(fresh, name))
        self.adopt_sub_resources()

    def adopt_sub_resources(self) -> None:
        for name in self.sub_resources:
            for sub in getattr(self, name) or []:
                sub.attach(self)

    def validate(self) -> None:
        errors = field_errors(self) + self.validation_errors()
        for name in self.sub_resources:
            for sub in getattr(self, name) or []:
                errors.extend(f"{name}: {e}" for e in field_errors(sub) + sub.validation_errors())
        if errors:
            raise ValidationError(self.kind, errors)

    def changed_fields(self, names: Iterable[str]) -> Set[str]:
        available = fields_dict(type(self))
        changed = set()
        for name in names:
            py_name = name.replace("-", "_")
            if (attr := available.get(py_name)) is None or py_name.startswith("_"):
                raise ConfigurationError(f"{self.kind} has no field {name}.")
            # output values are never changed by configuration
            if not attr.metadata.get("output"):
                changed.add(py_name)
        return changed

    def resolve(self, clazz: Type[T], resource_id: Optional[str]) -> Optional[T]:
        """
        Find a referenced resource by id in the graph, if this resource is part of a graph.
        """
        return self._graph.find_by_id(clazz, resource_id) if self._graph is not None else None

    def wait_for(
        self,
        client: AwsClient,
        operation: str,
        condition: Callable[[], bool],
        description: str,
        *,
        timeout: float,
        interval: float,
        retry_on_exception: Callable[[Exception], bool] = never,
    ) -> None:
        wait_until(
            condition,
            description=f"{self.kind} {self.id} {description}",
            timeout=client.config.wait_timeout(self.kind, operation, timeout),
            interval=client.config.wait_interval(interval),
            retry_on_exception=retry_on_exception,
            kind=self.kind,
        )

    @classmethod
    def from_api(cls: Type[AwsResourceType], js: Json, graph: Optional[Graph] = None) -> AwsResourceType:
        instance = cls()
        instance.copy_from(js)
        if graph is not None:
            graph.add_resource(instance)
        return instance

    @classmethod
    def called_collect_apis(cls) -> List[AwsApiSpec]:
        return [cls.api_spec] if cls.api_spec else []

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return [cls.delete_spec] if cls.delete_spec else []

    def __str__(self) -> str:
        return f"{self.kind}:{self.id}"


AwsResourceType = TypeVar("AwsResourceType", bound=AwsResource)
