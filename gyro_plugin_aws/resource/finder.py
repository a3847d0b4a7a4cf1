import logging
from typing import Any, ClassVar, Dict, Generic, List, Mapping, Optional, Type

from botocore.exceptions import ClientError
from jsons import lispcase

from gyro_plugin_aws.aws_client import AwsClient, is_not_found_error
from gyro_plugin_aws.errors import ConfigurationError
from gyro_plugin_aws.graph import Graph
from gyro_plugin_aws.resource.base import AwsApiSpec, AwsResourceType
from gyro_plugin_aws.types import Json

log = logging.getLogger("gyro.plugins.aws")


def normalize_filters(query: Mapping[str, Any]) -> Dict[str, str]:
    """
    Flatten a finder query: nested maps are tag filters.
    {"tag": {"Name": "x"}, "vpc-id": "vpc-1"} -> {"tag:Name": "x", "vpc-id": "vpc-1"}
    """
    result: Dict[str, str] = {}
    for name, value in query.items():
        if isinstance(value, str):
            result[name] = value
        elif isinstance(value, Mapping):
            for key, tag_value in value.items():
                if not isinstance(tag_value, str):
                    raise ConfigurationError(f"Filter {name}: value of tag {key} must be a string, got {tag_value!r}")
                result[f"tag:{key}"] = tag_value
        else:
            raise ConfigurationError(f"Filter {name} must be a string or a map of tags, got {value!r}")
    return result


def filter_names(*names: str, **overrides: str) -> Dict[str, str]:
    """
    Query field name to provider filter name.
    By default, the filter name is the field name in kebab case.
    """
    return {**{name: lispcase(name) for name in names}, **overrides}


class AwsFinder(Generic[AwsResourceType]):
    """
    Finds existing resources by query.
    The query is translated to filters of the describe api of the resource.
    """

    resource: ClassVar[Type[Any]]
    # query field name -> provider filter name
    filters: ClassVar[Dict[str, str]] = {}
    supports_tags: ClassVar[bool] = False
    # name of the request parameter that takes the filter list
    filter_parameter: ClassVar[str] = "Filters"

    def __init__(self, graph: Optional[Graph] = None) -> None:
        self.graph = graph

    @property
    def api_spec(self) -> AwsApiSpec:
        spec = self.resource.api_spec
        if spec is None:
            raise ConfigurationError(f"{self.resource.kind} can not be queried.")
        return spec  # type: ignore

    def find_all_aws(self, client: AwsClient) -> List[Json]:
        spec = self.api_spec
        return self.__describe(client, spec.parameter or {})

    def find_aws(self, client: AwsClient, filters: Dict[str, str]) -> List[Json]:
        spec = self.api_spec
        provider_filters = [{"Name": name, "Values": [value]} for name, value in filters.items()]
        return self.__describe(client, {**(spec.parameter or {}), self.filter_parameter: provider_filters})

    def find_all(self, client: AwsClient) -> List[AwsResourceType]:
        return self.to_resources(client, self.find_all_aws(client))

    def find(self, client: AwsClient, query: Mapping[str, Any]) -> List[AwsResourceType]:
        if not query:
            return self.find_all(client)
        return self.to_resources(client, self.find_aws(client, self.provider_filters(query)))

    def provider_filters(self, query: Mapping[str, Any]) -> Dict[str, str]:
        result: Dict[str, str] = {}
        table = self.filter_table()
        for name, value in normalize_filters(query).items():
            if name.startswith("tag:"):
                if not self.supports_tags:
                    raise ConfigurationError(f"{self.resource.kind} can not be filtered by tags.")
                result[name] = value
            elif (provider_name := table.get(name.replace("-", "_"))) is not None:
                result[provider_name] = value
            else:
                available = ", ".join(sorted(table))
                raise ConfigurationError(f"Unknown filter {name} for {self.resource.kind}. Available: {available}")
        return result

    def filter_table(self) -> Dict[str, str]:
        return self.filters

    def to_resources(self, client: AwsClient, items: List[Json]) -> List[AwsResourceType]:
        resource = self.resource
        return [
            resource.from_api(resource.with_details(client, item), self.graph) for item in items if resource.exists(item)
        ]

    def __describe(self, client: AwsClient, parameter: Json) -> List[Json]:
        spec = self.api_spec
        try:
            result = client.list(
                aws_service=spec.service,
                action=spec.api_action,
                result_name=spec.result_property,
                expected_errors=spec.expected_errors,
                **parameter,
            )
            return self.resource.provider_items(result)  # type: ignore
        except ClientError as e:
            if is_not_found_error(e):
                log.info(f"No {self.resource.kind} found: {e}")
                return []
            raise


class AwsEc2TaggableFinder(AwsFinder[AwsResourceType]):
    supports_tags = True

    def filter_table(self) -> Dict[str, str]:
        # tag_key filters by existence of a tag, independent of the value
        return {**self.filters, "tag_key": "tag-key"}
