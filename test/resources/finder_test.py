from typing import ClassVar, Dict

import pytest
from botocore.exceptions import ClientError

from gyro_plugin_aws.aws_client import AwsClient
from gyro_plugin_aws.errors import ConfigurationError
from gyro_plugin_aws.graph import Graph
from gyro_plugin_aws.json import to_json
from gyro_plugin_aws.resource.ec2 import AwsEc2NatGateway, AwsEc2Volume
from gyro_plugin_aws.resource.ec2_finder import (
    AwsEc2EgressOnlyInternetGatewayFinder,
    AwsEc2InstanceFinder,
    AwsEc2NatGatewayFinder,
    AwsEc2NetworkInterfaceFinder,
    AwsEc2SecurityGroupFinder,
    AwsEc2SnapshotFinder,
    AwsEc2SubnetFinder,
    AwsEc2VpcFinder,
    AwsEc2VpcPeeringConnectionFinder,
    finders,
)
from gyro_plugin_aws.resource.finder import AwsFinder, filter_names, normalize_filters
from test import aws_client, aws_config, boto_session  # noqa: F401
from test.resources import RecordingSession


class AwsEc2VolumeUntaggedFinder(AwsFinder[AwsEc2Volume]):
    resource = AwsEc2Volume
    filters: ClassVar[Dict[str, str]] = filter_names("volume_id")


def test_normalize_filters() -> None:
    assert normalize_filters({"tag": {"Name": "x"}, "vpc-id": "vpc-1"}) == {"tag:Name": "x", "vpc-id": "vpc-1"}
    assert normalize_filters({}) == {}
    with pytest.raises(ConfigurationError):
        normalize_filters({"vpc-id": 42})
    with pytest.raises(ConfigurationError):
        normalize_filters({"tag": {"Name": ["x"]}})


def test_filter_names() -> None:
    assert filter_names("vpc_id", "is_default", state="vpc-state") == {
        "vpc_id": "vpc-id",
        "is_default": "is-default",
        "state": "vpc-state",
    }


def test_find_empty_query_equals_find_all(aws_client: AwsClient, boto_session: RecordingSession) -> None:
    for finder_class in finders:
        finder = finder_class()
        all_resources = [to_json(r) for r in finder.find_all(aws_client)]
        found = [to_json(r) for r in finder.find(aws_client, {})]
        assert found == all_resources, finder_class.__name__
        assert len(found) == 1, finder_class.__name__


def test_provider_filters(aws_client: AwsClient, boto_session: RecordingSession) -> None:
    finder = AwsEc2SubnetFinder()
    found = finder.find(aws_client, {"vpc-id": "vpc-0e9801d129EXAMPLE", "tag": {"Name": "public-a"}})
    assert [s.id for s in found] == ["subnet-0bb1c79de3EXAMPLE"]
    assert boto_session.calls_of("describe-subnets") == [
        {
            "Filters": [
                {"Name": "vpc-id", "Values": ["vpc-0e9801d129EXAMPLE"]},
                {"Name": "tag:Name", "Values": ["public-a"]},
            ]
        }
    ]


def test_dotted_filter_names() -> None:
    assert AwsEc2VpcFinder().provider_filters({"ipv4_cidr_block": "10.0.0.0/16", "tag_key": "Name"}) == {
        "cidr-block-association.cidr-block": "10.0.0.0/16",
        "tag-key": "Name",
    }
    assert AwsEc2SecurityGroupFinder().provider_filters({"egress_ip_permission_to_port": "443"}) == {
        "egress-ip-permission.to-port": "443"
    }


def test_unknown_filter() -> None:
    with pytest.raises(ConfigurationError) as ex:
        AwsEc2VpcFinder().provider_filters({"colour": "blue"})
    assert "vpc_id" in str(ex.value)


def test_tags_on_untagged_finder() -> None:
    finder = AwsEc2VolumeUntaggedFinder()
    assert finder.provider_filters({"volume_id": "vol-1"}) == {"volume-id": "vol-1"}
    with pytest.raises(ConfigurationError):
        finder.provider_filters({"tag": {"Name": "x"}})


def test_nat_gateway_filter_parameter(aws_client: AwsClient, boto_session: RecordingSession) -> None:
    boto_session.on(
        "describe-nat-gateways",
        {"NatGateways": [{"NatGatewayId": "nat-1", "State": "available"}, {"NatGatewayId": "nat-2", "State": "deleted"}]},
    )
    found = AwsEc2NatGatewayFinder().find(aws_client, {"subnet_id": "subnet-1"})
    # deleted gateways are still reported by the provider, but do not exist anymore
    assert [n.id for n in found] == ["nat-1"]
    assert boto_session.calls_of("describe-nat-gateways") == [
        {"Filter": [{"Name": "subnet-id", "Values": ["subnet-1"]}]}
    ]


def test_find_drains_all_pages(aws_client: AwsClient, boto_session: RecordingSession) -> None:
    boto_session.paginate(
        "describe-nat-gateways",
        [
            {"NatGateways": [{"NatGatewayId": "nat-1"}, {"NatGatewayId": "nat-2"}], "NextToken": "t1"},
            {"NatGateways": [{"NatGatewayId": "nat-3"}]},
        ],
    )
    found = AwsEc2NatGatewayFinder().find_all(aws_client)
    assert [n.id for n in found] == ["nat-1", "nat-2", "nat-3"]


def test_find_not_found_is_empty(aws_client: AwsClient, boto_session: RecordingSession) -> None:
    boto_session.fail("describe-nat-gateways", "NatGatewayNotFound", "The Nat Gateway nat-1 was not found")
    assert AwsEc2NatGatewayFinder().find(aws_client, {"nat_gateway_id": "nat-1"}) == []
    boto_session.fail("describe-nat-gateways", "UnauthorizedOperation")
    with pytest.raises(ClientError):
        AwsEc2NatGatewayFinder().find_all(aws_client)


def test_found_resources_are_added_to_graph(aws_client: AwsClient) -> None:
    graph = Graph()
    found = AwsEc2NatGatewayFinder(graph).find_all(aws_client)
    assert graph.find_by_id(AwsEc2NatGateway, "nat-0a93acc57881d4199") is found[0]


def test_instances_of_all_reservations(aws_client: AwsClient, boto_session: RecordingSession) -> None:
    boto_session.on(
        "describe-instances",
        {
            "Reservations": [
                {"Instances": [{"InstanceId": "i-1", "State": {"Name": "running"}}]},
                {
                    "Instances": [
                        {"InstanceId": "i-2", "State": {"Name": "stopped"}},
                        {"InstanceId": "i-3", "State": {"Name": "terminated"}},
                    ]
                },
            ]
        },
    )
    found = AwsEc2InstanceFinder().find(aws_client, {"instance_state_name": "running", "vpc_id": "vpc-1"})
    assert [i.id for i in found] == ["i-1", "i-2"]
    assert [i.status for i in found] == ["running", "stopped"]
    assert boto_session.calls_of("describe-instances") == [
        {
            "Filters": [
                {"Name": "instance-state-name", "Values": ["running"]},
                {"Name": "vpc-id", "Values": ["vpc-1"]},
            ]
        }
    ]


def test_dotted_filter_names_of_instances_and_interfaces() -> None:
    assert AwsEc2InstanceFinder().provider_filters({"network_interface_addresses_primary": "true"}) == {
        "network-interface.addresses.primary": "true"
    }
    assert AwsEc2NetworkInterfaceFinder().provider_filters({"attachment_attach_time": "2023-05-10"}) == {
        "attachment.attach.time": "2023-05-10"
    }
    assert AwsEc2VpcPeeringConnectionFinder().provider_filters({"accepter_vpc_info_vpc_id": "vpc-1"}) == {
        "accepter-vpc-info.vpc-id": "vpc-1"
    }


def test_snapshots_of_own_account(aws_client: AwsClient, boto_session: RecordingSession) -> None:
    found = AwsEc2SnapshotFinder().find(aws_client, {"volume_id": "vol-049df61146c4d7901"})
    assert [s.id for s in found] == ["snap-066877671789bd71b"]
    assert boto_session.calls_of("describe-snapshots") == [
        {"OwnerIds": ["self"], "Filters": [{"Name": "volume-id", "Values": ["vol-049df61146c4d7901"]}]}
    ]


def test_egress_only_internet_gateways_by_tag(aws_client: AwsClient) -> None:
    finder = AwsEc2EgressOnlyInternetGatewayFinder()
    assert [g.vpc_id for g in finder.find(aws_client, {"tag": {"Name": "ipv6-out"}})] == ["vpc-a01106c2"]
    with pytest.raises(ConfigurationError):
        finder.provider_filters({"vpc_id": "vpc-a01106c2"})
