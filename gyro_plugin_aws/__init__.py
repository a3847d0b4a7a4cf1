import logging
from typing import Dict, List, Optional, Type

from prometheus_client import Summary

from gyro_plugin_aws.aws_client import AwsClient
from gyro_plugin_aws.configuration import AwsConfig
from gyro_plugin_aws.errors import ConfigurationError
from gyro_plugin_aws.graph import Graph
from gyro_plugin_aws.resource import ec2, ec2_finder
from gyro_plugin_aws.resource.base import AwsResource
from gyro_plugin_aws.resource.finder import AwsFinder
from gyro_plugin_aws.utils import global_region_by_partition

logging.getLogger("boto").setLevel(logging.CRITICAL)
log = logging.getLogger("gyro.plugins.aws")

metrics_find = Summary("gyro_plugin_aws_find_seconds", "Time it took the find() method")


class AwsEc2Plugin:
    """
    Entry point of the plugin: the registry of all EC2 resource types and their finders.
    Resource types are addressed by the type name of the configuration language, e.g. `vpc`.
    """

    cloud = "aws"

    def __init__(self, config: Optional[AwsConfig] = None, graph: Optional[Graph] = None) -> None:
        self.config = config or AwsConfig()
        self.graph = graph
        self.resources: Dict[str, Type[AwsResource]] = {r.type_name: r for r in ec2.resources}
        self.finders: Dict[str, Type[AwsFinder]] = {f.resource.type_name: f for f in ec2_finder.finders}  # type: ignore

    def current_account_id(self) -> str:
        region = self.config.region or global_region_by_partition(self.config.partition)
        sts = self.config.sessions().client(
            "", None, self.config.profile, "sts", region_name=region, aws_partition=self.config.partition
        )
        account_id: str = sts.get_caller_identity()["Account"]
        log.debug(f"Running in account {account_id}")
        return account_id

    def client(self, account_id: Optional[str] = None, region: Optional[str] = None) -> AwsClient:
        return AwsClient(self.config, account_id or self.current_account_id(), region=region)

    def type_names(self) -> List[str]:
        return sorted(self.resources)

    def resource_class(self, type_name: str) -> Type[AwsResource]:
        if (clazz := self.resources.get(type_name)) is None:
            raise ConfigurationError(f"Unknown resource type {type_name}. Available: {', '.join(self.type_names())}")
        return clazz

    def finder(self, type_name: str) -> AwsFinder:  # type: ignore
        if (clazz := self.finders.get(type_name)) is None:
            raise ConfigurationError(f"Resource type {type_name} can not be queried.")
        return clazz(self.graph)

    @metrics_find.time()
    def find(self, client: AwsClient, type_name: str, query: Dict[str, object]) -> List[AwsResource]:
        return self.finder(type_name).find(client, query)

    def iam_permissions(self) -> List[str]:
        """
        All IAM permissions needed to find and manage every resource type of this plugin.
        """
        permissions = set()
        for resource in self.resources.values():
            for spec in resource.called_collect_apis() + resource.called_mutator_apis():
                permissions.add(spec.iam_permission())
        return sorted(permissions)
