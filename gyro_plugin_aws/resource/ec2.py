import base64
import logging
from datetime import datetime
from ipaddress import ip_network
from pathlib import Path
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Set, Tuple

from attrs import define, field
from botocore.exceptions import ClientError

from gyro_plugin_aws.aws_client import AwsClient, error_code, is_not_found_error
from gyro_plugin_aws.errors import ConfigurationError, ProviderStateError
from gyro_plugin_aws.json import value_in_path
from gyro_plugin_aws.json_bender import AsBool, Base64Decode, Bender, F, Filter, ForallBend, S, bend
from gyro_plugin_aws.resource.base import AwsApiSpec, AwsResource, AwsSubResource, SubResourceDiff, parse_json
from gyro_plugin_aws.types import Json
from gyro_plugin_aws.utils import AwsTagPrefix, UserTags, is_blank, strip_none, tags_as_dict, tags_as_list

log = logging.getLogger("gyro.plugins.aws")
service_name = "ec2"
# instances in these states do not hold attachments anymore
GoneInstanceStates = {"shutting-down", "terminated"}


def is_dependency_violation(e: Exception) -> bool:
    return isinstance(e, ClientError) and error_code(e) == "DependencyViolation"


# region Taggable


@define(eq=False, slots=False)
class EC2Taggable(AwsResource):
    """
    EC2 resource with tags.
    Tags are reconciled after create and on every update that changes the tags.
    """

    tags: Dict[str, str] = field(factory=dict, metadata={"updatable": True})

    def create(self, client: AwsClient) -> None:
        super().create(client)
        self.reconcile_tags(client)

    def update(self, client: AwsClient, previous: AwsResource, changed_field_names: Iterable[str]) -> None:
        names = list(changed_field_names)
        super().update(client, previous, names)
        if names and "tags" in self.changed_fields(names):
            self.reconcile_tags(client)

    def validation_errors(self) -> List[str]:
        return [f"Tag {key} uses the reserved prefix {AwsTagPrefix}." for key in self.tags if key.startswith(AwsTagPrefix)]

    def current_tags(self, client: AwsClient) -> Dict[str, str]:
        tags = client.list(
            aws_service=service_name,
            action="describe-tags",
            result_name="Tags",
            Filters=[{"Name": "resource-id", "Values": [self.id]}],
        )
        return tags_as_dict(tags)

    def reconcile_tags(self, client: AwsClient) -> None:
        current = self.current_tags(client)
        removed = [key for key in current if key not in self.tags]
        upserted = {key: value for key, value in self.tags.items() if current.get(key) != value}
        if removed:
            log.info(f"{self.kind} {self.id}: remove tags {', '.join(removed)}")
            client.call(
                aws_service=service_name,
                action="delete-tags",
                result_name=None,
                Resources=[self.id],
                Tags=[{"Key": key} for key in removed],
            )
        if upserted:
            log.info(f"{self.kind} {self.id}: set tags {', '.join(upserted)}")
            client.call(
                aws_service=service_name,
                action="create-tags",
                result_name=None,
                Resources=[self.id],
                Tags=tags_as_list(upserted),
            )

    @classmethod
    def called_collect_apis(cls) -> List[AwsApiSpec]:
        return super().called_collect_apis() + [AwsApiSpec(service_name, "describe-tags")]

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "create-tags"),
            AwsApiSpec(service_name, "delete-tags"),
        ]


# endregion

# region Vpc


@define(eq=False, slots=False)
class AwsEc2Vpc(EC2Taggable):
    kind: ClassVar[str] = "aws_vpc"
    kind_display: ClassVar[str] = "AWS VPC"
    type_name: ClassVar[str] = "vpc"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "describe-vpcs", "Vpcs", id_parameter="VpcIds")
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "delete-vpc", id_parameter="VpcId")
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("VpcId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "cidr_block": S("CidrBlock"),
        "instance_tenancy": S("InstanceTenancy"),
        "dhcp_options_id": S("DhcpOptionsId"),
        "enable_dns_support": S("EnableDnsSupport"),
        "enable_dns_hostnames": S("EnableDnsHostnames"),
        "provide_ipv6_cidr_block": S("Ipv6CidrBlockAssociationSet", default=[]) >> F(lambda assocs: len(assocs) > 0),
        "ipv6_cidr_block": S("Ipv6CidrBlockAssociationSet", 0, "Ipv6CidrBlock"),
        "vpc_state": S("State"),
        "owner_id": S("OwnerId"),
        "is_default": S("IsDefault"),
    }
    cidr_block: Optional[str] = field(default=None, metadata={"required": True})
    instance_tenancy: Optional[str] = field(
        default=None, metadata={"allowed": ["default", "dedicated"], "updatable": True}
    )
    dhcp_options_id: Optional[str] = field(default=None, metadata={"updatable": True})
    enable_dns_support: Optional[bool] = field(default=None, metadata={"updatable": True})
    enable_dns_hostnames: Optional[bool] = field(default=None, metadata={"updatable": True})
    provide_ipv6_cidr_block: Optional[bool] = field(default=None)
    ipv6_cidr_block: Optional[str] = field(default=None, metadata={"output": True})
    vpc_state: Optional[str] = field(default=None, metadata={"output": True})
    owner_id: Optional[str] = field(default=None, metadata={"output": True})
    is_default: Optional[bool] = field(default=None, metadata={"output": True})

    @classmethod
    def with_details(cls, client: AwsClient, js: Json) -> Json:
        details = dict(js)
        for attribute, key in (("enableDnsSupport", "EnableDnsSupport"), ("enableDnsHostnames", "EnableDnsHostnames")):
            value = client.get(service_name, "describe-vpc-attribute", key, VpcId=js["VpcId"], Attribute=attribute)
            details[key] = value.get("Value") if value else None
        return details

    def validation_errors(self) -> List[str]:
        errors = super().validation_errors()
        if self.cidr_block and not valid_cidr(self.cidr_block):
            errors.append(f"cidr_block {self.cidr_block} is not a valid cidr block.")
        return errors

    def create_request(self) -> Json:
        return strip_none(
            CidrBlock=self.cidr_block,
            AmazonProvidedIpv6CidrBlock=self.provide_ipv6_cidr_block,
            InstanceTenancy=self.instance_tenancy,
        )

    def _create(self, client: AwsClient) -> None:
        vpc = client.get(service_name, "create-vpc", "Vpc", **self.create_request())
        self.id = vpc["VpcId"]  # type: ignore
        self.modify_attributes(client, {"enable_dns_support", "enable_dns_hostnames", "dhcp_options_id"})

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        if "instance_tenancy" in changed and self.instance_tenancy != "default":
            raise ConfigurationError(f"{self.kind} {self.id}: instance_tenancy can only be changed to default.")
        self.modify_attributes(client, changed)
        if "instance_tenancy" in changed:
            client.call(service_name, "modify-vpc-tenancy", None, VpcId=self.id, InstanceTenancy="default")

    def modify_attributes(self, client: AwsClient, changed: Set[str]) -> None:
        # the api allows only one attribute per call
        if "enable_dns_support" in changed and self.enable_dns_support is not None:
            client.call(
                service_name,
                "modify-vpc-attribute",
                None,
                VpcId=self.id,
                EnableDnsSupport={"Value": self.enable_dns_support},
            )
        if "enable_dns_hostnames" in changed and self.enable_dns_hostnames is not None:
            client.call(
                service_name,
                "modify-vpc-attribute",
                None,
                VpcId=self.id,
                EnableDnsHostnames={"Value": self.enable_dns_hostnames},
            )
        if "dhcp_options_id" in changed and self.dhcp_options_id:
            client.call(
                service_name, "associate-dhcp-options", None, VpcId=self.id, DhcpOptionsId=self.dhcp_options_id
            )

    @classmethod
    def called_collect_apis(cls) -> List[AwsApiSpec]:
        return super().called_collect_apis() + [AwsApiSpec(service_name, "describe-vpc-attribute")]

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "create-vpc"),
            AwsApiSpec(service_name, "modify-vpc-attribute"),
            AwsApiSpec(service_name, "modify-vpc-tenancy"),
            AwsApiSpec(service_name, "associate-dhcp-options"),
        ]


def valid_cidr(cidr: str) -> bool:
    try:
        ip_network(cidr)
        return True
    except ValueError:
        return False


# endregion

# region Subnet


@define(eq=False, slots=False)
class AwsEc2Subnet(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_subnet"
    kind_display: ClassVar[str] = "AWS EC2 Subnet"
    type_name: ClassVar[str] = "subnet"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "describe-subnets", "Subnets", id_parameter="SubnetIds")
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "delete-subnet", id_parameter="SubnetId")
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("SubnetId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "vpc_id": S("VpcId"),
        "cidr_block": S("CidrBlock"),
        "availability_zone": S("AvailabilityZone"),
        "ipv6_cidr_block": S("Ipv6CidrBlockAssociationSet", 0, "Ipv6CidrBlock"),
        "ipv6_cidr_block_association_id": S("Ipv6CidrBlockAssociationSet", 0, "AssociationId"),
        "map_public_ip_on_launch": S("MapPublicIpOnLaunch"),
        "assign_ipv6_address_on_creation": S("AssignIpv6AddressOnCreation"),
        "enable_dns64": S("EnableDns64"),
        "subnet_state": S("State"),
        "available_ip_address_count": S("AvailableIpAddressCount"),
        "default_for_az": S("DefaultForAz"),
        "subnet_arn": S("SubnetArn"),
    }
    vpc_id: Optional[str] = field(default=None, metadata={"required": True})
    cidr_block: Optional[str] = field(default=None, metadata={"required": True})
    availability_zone: Optional[str] = field(default=None)
    ipv6_cidr_block: Optional[str] = field(default=None, metadata={"updatable": True})
    map_public_ip_on_launch: Optional[bool] = field(default=None, metadata={"updatable": True})
    assign_ipv6_address_on_creation: Optional[bool] = field(default=None, metadata={"updatable": True})
    enable_dns64: Optional[bool] = field(default=None, metadata={"updatable": True})
    ipv6_cidr_block_association_id: Optional[str] = field(default=None, metadata={"output": True})
    subnet_state: Optional[str] = field(default=None, metadata={"output": True})
    available_ip_address_count: Optional[int] = field(default=None, metadata={"output": True})
    default_for_az: Optional[bool] = field(default=None, metadata={"output": True})
    subnet_arn: Optional[str] = field(default=None, metadata={"output": True})

    # subnet attribute name -> request parameter
    attributes: ClassVar[Dict[str, str]] = {
        "map_public_ip_on_launch": "MapPublicIpOnLaunch",
        "assign_ipv6_address_on_creation": "AssignIpv6AddressOnCreation",
        "enable_dns64": "EnableDns64",
    }

    def validation_errors(self) -> List[str]:
        errors = super().validation_errors()
        if self.cidr_block and not valid_cidr(self.cidr_block):
            errors.append(f"cidr_block {self.cidr_block} is not a valid cidr block.")
        elif self.cidr_block and (vpc := self.resolve(AwsEc2Vpc, self.vpc_id)) and vpc.cidr_block:
            if not ip_network(self.cidr_block).subnet_of(ip_network(vpc.cidr_block)):  # type: ignore
                errors.append(f"cidr_block {self.cidr_block} is not part of vpc {vpc.id} ({vpc.cidr_block}).")
        return errors

    def create_request(self) -> Json:
        return strip_none(
            VpcId=self.vpc_id,
            CidrBlock=self.cidr_block,
            AvailabilityZone=self.availability_zone,
            Ipv6CidrBlock=self.ipv6_cidr_block,
        )

    def _create(self, client: AwsClient) -> None:
        subnet = client.get(service_name, "create-subnet", "Subnet", **self.create_request())
        self.id = subnet["SubnetId"]  # type: ignore
        self.modify_attributes(client, {name for name in self.attributes if getattr(self, name)})

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        self.modify_attributes(client, changed)
        if "ipv6_cidr_block" in changed:
            if isinstance(previous, AwsEc2Subnet) and previous.ipv6_cidr_block_association_id:
                client.call(
                    service_name,
                    "disassociate-subnet-cidr-block",
                    None,
                    AssociationId=previous.ipv6_cidr_block_association_id,
                )
            if self.ipv6_cidr_block:
                association = client.get(
                    service_name,
                    "associate-subnet-cidr-block",
                    "Ipv6CidrBlockAssociation",
                    SubnetId=self.id,
                    Ipv6CidrBlock=self.ipv6_cidr_block,
                )
                self.ipv6_cidr_block_association_id = association.get("AssociationId") if association else None

    def modify_attributes(self, client: AwsClient, changed: Set[str]) -> None:
        for name, parameter in self.attributes.items():
            if name in changed and (value := getattr(self, name)) is not None:
                client.call(
                    service_name, "modify-subnet-attribute", None, SubnetId=self.id, **{parameter: {"Value": value}}
                )

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "create-subnet"),
            AwsApiSpec(service_name, "modify-subnet-attribute"),
            AwsApiSpec(service_name, "associate-subnet-cidr-block"),
            AwsApiSpec(service_name, "disassociate-subnet-cidr-block"),
        ]


# endregion

# region Internet Gateway


@define(eq=False, slots=False)
class AwsEc2InternetGateway(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_internet_gateway"
    kind_display: ClassVar[str] = "AWS EC2 Internet Gateway"
    type_name: ClassVar[str] = "internet-gateway"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-internet-gateways", "InternetGateways", id_parameter="InternetGatewayIds"
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "delete-internet-gateway", id_parameter="InternetGatewayId"
    )
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("InternetGatewayId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "vpc_id": S("Attachments", 0, "VpcId"),
        "attachment_state": S("Attachments", 0, "State"),
        "owner_id": S("OwnerId"),
    }
    vpc_id: Optional[str] = field(default=None, metadata={"updatable": True})
    attachment_state: Optional[str] = field(default=None, metadata={"output": True})
    owner_id: Optional[str] = field(default=None, metadata={"output": True})

    def _create(self, client: AwsClient) -> None:
        gateway = client.get(service_name, "create-internet-gateway", "InternetGateway")
        self.id = gateway["InternetGatewayId"]  # type: ignore
        self.wait_for(
            client,
            "create",
            lambda: self.describe_if_exists(client) is not None,
            "to become visible",
            timeout=10,
            interval=2,
        )
        if self.vpc_id:
            self.attach(client, self.vpc_id)

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        if "vpc_id" in changed:
            if isinstance(previous, AwsEc2InternetGateway) and previous.vpc_id:
                self.detach(client, previous.vpc_id)
            if self.vpc_id:
                self.attach(client, self.vpc_id)

    def _delete(self, client: AwsClient) -> None:
        if (current := self.describe_if_exists(client)) is None:
            log.info(f"{self.kind} {self.id} is already deleted.")
            return
        for attachment in current.get("Attachments", []):
            self.detach(client, attachment["VpcId"])
        super()._delete(client)

    def attach(self, client: AwsClient, vpc_id: str) -> None:
        client.call(service_name, "attach-internet-gateway", None, InternetGatewayId=self.id, VpcId=vpc_id)

    def detach(self, client: AwsClient, vpc_id: str) -> None:
        def detached() -> bool:
            client.call(
                service_name,
                "detach-internet-gateway",
                None,
                expected_errors=["Gateway.NotAttached"],
                InternetGatewayId=self.id,
                VpcId=vpc_id,
            )
            return True

        # mapped public addresses in the vpc prevent the detach for some time
        self.wait_for(
            client,
            "detach",
            detached,
            f"to detach from {vpc_id}",
            timeout=60,
            interval=2,
            retry_on_exception=is_dependency_violation,
        )

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "create-internet-gateway"),
            AwsApiSpec(service_name, "attach-internet-gateway"),
            AwsApiSpec(service_name, "detach-internet-gateway"),
        ]


# endregion

# region Nat Gateway


@define(eq=False, slots=False)
class AwsEc2NatGateway(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_nat_gateway"
    kind_display: ClassVar[str] = "AWS EC2 NAT Gateway"
    type_name: ClassVar[str] = "nat-gateway"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-nat-gateways", "NatGateways", id_parameter="NatGatewayIds"
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "delete-nat-gateway", id_parameter="NatGatewayId")
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("NatGatewayId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "subnet_id": S("SubnetId"),
        "allocation_id": S("NatGatewayAddresses", 0, "AllocationId"),
        "connectivity_type": S("ConnectivityType"),
        "vpc_id": S("VpcId"),
        "nat_state": S("State"),
        "failure_message": S("FailureMessage"),
        "public_ip": S("NatGatewayAddresses", 0, "PublicIp"),
        "private_ip": S("NatGatewayAddresses", 0, "PrivateIp"),
        "network_interface_id": S("NatGatewayAddresses", 0, "NetworkInterfaceId"),
        "create_time": S("CreateTime"),
    }
    subnet_id: Optional[str] = field(default=None, metadata={"required": True})
    allocation_id: Optional[str] = field(default=None)
    connectivity_type: Optional[str] = field(default=None, metadata={"allowed": ["public", "private"]})
    # only used to validate, that subnet and internet gateway share the same vpc
    internet_gateway_id: Optional[str] = field(default=None)
    vpc_id: Optional[str] = field(default=None, metadata={"output": True})
    nat_state: Optional[str] = field(default=None, metadata={"output": True})
    failure_message: Optional[str] = field(default=None, metadata={"output": True})
    public_ip: Optional[str] = field(default=None, metadata={"output": True})
    private_ip: Optional[str] = field(default=None, metadata={"output": True})
    network_interface_id: Optional[str] = field(default=None, metadata={"output": True})
    create_time: Optional[datetime] = field(default=None, metadata={"output": True})

    @classmethod
    def exists(cls, js: Json) -> bool:
        # deleted gateways stay visible for about an hour
        return js.get("State") != "deleted"

    def validation_errors(self) -> List[str]:
        errors = super().validation_errors()
        if self.connectivity_type != "private" and not self.allocation_id:
            errors.append("allocation_id is required for a public nat gateway.")
        subnet = self.resolve(AwsEc2Subnet, self.subnet_id)
        gateway = self.resolve(AwsEc2InternetGateway, self.internet_gateway_id)
        if subnet and gateway and subnet.vpc_id and gateway.vpc_id and subnet.vpc_id != gateway.vpc_id:
            errors.append(
                f"subnet {subnet.id} (vpc {subnet.vpc_id}) and internet gateway {gateway.id} "
                f"(vpc {gateway.vpc_id}) need to be part of the same vpc."
            )
        return errors

    def create_request(self) -> Json:
        return strip_none(
            SubnetId=self.subnet_id,
            AllocationId=self.allocation_id,
            ConnectivityType=self.connectivity_type,
        )

    def _create(self, client: AwsClient) -> None:
        gateway = client.get(service_name, "create-nat-gateway", "NatGateway", **self.create_request())
        self.id = gateway["NatGatewayId"]  # type: ignore

        def available() -> bool:
            current = self.describe(client)
            state = current.get("State") if current else None
            if state == "failed":
                raise ProviderStateError(f"{self.kind} {self.id} failed: {current.get('FailureMessage')}")  # type: ignore
            return state == "available"

        self.wait_for(
            client,
            "create",
            available,
            "to become available",
            timeout=420,
            interval=10,
            retry_on_exception=is_not_found_error,
        )

    def _delete(self, client: AwsClient) -> None:
        super()._delete(client)
        self.wait_for(
            client,
            "delete",
            lambda: self.describe_if_exists(client) is None,
            "to be deleted",
            timeout=120,
            interval=10,
        )

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [AwsApiSpec(service_name, "create-nat-gateway")]


# endregion

# region Elastic IP


@define(eq=False, slots=False)
class AwsEc2ElasticIp(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_elastic_ip"
    kind_display: ClassVar[str] = "AWS EC2 Elastic IP"
    type_name: ClassVar[str] = "elastic-ip"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-addresses", "Addresses", id_parameter="AllocationIds"
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "release-address", id_parameter="AllocationId")
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("AllocationId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "domain": S("Domain"),
        "public_ipv4_pool": S("PublicIpv4Pool"),
        "network_border_group": S("NetworkBorderGroup"),
        "instance_id": S("InstanceId"),
        "network_interface_id": F(lambda js: None if js.get("InstanceId") else js.get("NetworkInterfaceId")),
        "private_ip_address": S("PrivateIpAddress"),
        "public_ip": S("PublicIp"),
        "association_id": S("AssociationId"),
    }
    exclusive_fields: ClassVar[List[Tuple[str, ...]]] = [("instance_id", "network_interface_id")]
    domain: Optional[str] = field(default=None, metadata={"allowed": ["vpc", "standard"]})
    public_ipv4_pool: Optional[str] = field(default=None)
    network_border_group: Optional[str] = field(default=None)
    instance_id: Optional[str] = field(default=None, metadata={"updatable": True})
    network_interface_id: Optional[str] = field(default=None, metadata={"updatable": True})
    private_ip_address: Optional[str] = field(default=None, metadata={"updatable": True})
    allow_reassociation: bool = field(default=False, metadata={"updatable": True})
    public_ip: Optional[str] = field(default=None, metadata={"output": True})
    association_id: Optional[str] = field(default=None, metadata={"output": True})

    def create_request(self) -> Json:
        return strip_none(
            Domain=self.domain,
            PublicIpv4Pool=self.public_ipv4_pool,
            NetworkBorderGroup=self.network_border_group,
        )

    def _create(self, client: AwsClient) -> None:
        address = client.get(service_name, "allocate-address", **self.create_request())
        self.id = address["AllocationId"]  # type: ignore
        self.public_ip = address.get("PublicIp")  # type: ignore
        if self.instance_id or self.network_interface_id:
            self.associate(client)

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        if changed & {"instance_id", "network_interface_id"} and not self.allow_reassociation:
            raise ConfigurationError(f"{self.kind} {self.id}: set allow_reassociation to change the association.")
        if changed & {"instance_id", "network_interface_id", "private_ip_address"}:
            if self.instance_id or self.network_interface_id:
                self.associate(client)
            elif isinstance(previous, AwsEc2ElasticIp) and previous.association_id:
                self.disassociate(client, previous.association_id)

    def _delete(self, client: AwsClient) -> None:
        if (current := self.describe_if_exists(client)) is None:
            log.info(f"{self.kind} {self.id} is already released.")
            return
        if association_id := current.get("AssociationId"):
            self.disassociate(client, association_id)
        super()._delete(client)

    def associate(self, client: AwsClient) -> None:
        association_id = client.get(
            service_name,
            "associate-address",
            "AssociationId",
            **strip_none(
                AllocationId=self.id,
                InstanceId=self.instance_id,
                NetworkInterfaceId=self.network_interface_id,
                PrivateIpAddress=self.private_ip_address,
                AllowReassociation=self.allow_reassociation,
            ),
        )
        self.association_id = association_id  # type: ignore

    def disassociate(self, client: AwsClient, association_id: str) -> None:
        client.call(
            service_name,
            "disassociate-address",
            None,
            expected_errors=["InvalidAssociationID.NotFound"],
            AssociationId=association_id,
        )
        self.association_id = None

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "allocate-address"),
            AwsApiSpec(service_name, "associate-address"),
            AwsApiSpec(service_name, "disassociate-address"),
        ]


# endregion

# region Security Group


def permission_rules(permissions: List[Json]) -> List[Json]:
    """
    One rule for every source of every ip permission.
    """
    rules: List[Json] = []
    for permission in permissions:
        base = {
            "protocol": permission.get("IpProtocol"),
            "from_port": permission.get("FromPort"),
            "to_port": permission.get("ToPort"),
        }
        for ip_range in permission.get("IpRanges", []):
            rules.append({**base, "cidr_block": ip_range.get("CidrIp"), "description": ip_range.get("Description")})
        for ip_range in permission.get("Ipv6Ranges", []):
            rules.append(
                {**base, "ipv6_cidr_block": ip_range.get("CidrIpv6"), "description": ip_range.get("Description")}
            )
        for pair in permission.get("UserIdGroupPairs", []):
            rules.append({**base, "security_group_id": pair.get("GroupId"), "description": pair.get("Description")})
        for prefix_list in permission.get("PrefixListIds", []):
            rules.append(
                {
                    **base,
                    "prefix_list_id": prefix_list.get("PrefixListId"),
                    "description": prefix_list.get("Description"),
                }
            )
    return rules


AllProtocols = "-1"


@define(eq=False, slots=False)
class AwsEc2SecurityGroupRule(AwsSubResource):
    kind: ClassVar[str] = "aws_ec2_security_group_rule"
    # ingress or egress
    direction: ClassVar[str] = "ingress"
    exclusive_fields: ClassVar[List[Tuple[str, ...]]] = [
        ("cidr_block", "ipv6_cidr_block", "security_group_id", "prefix_list_id")
    ]
    required_one_of: ClassVar[List[Tuple[str, ...]]] = exclusive_fields
    protocol: Optional[str] = field(default=None, metadata={"required": True})
    from_port: Optional[int] = field(default=None, metadata={"range": (-1, 65535)})
    to_port: Optional[int] = field(default=None, metadata={"range": (-1, 65535)})
    cidr_block: Optional[str] = field(default=None)
    ipv6_cidr_block: Optional[str] = field(default=None)
    security_group_id: Optional[str] = field(default=None)
    prefix_list_id: Optional[str] = field(default=None)
    description: Optional[str] = field(default=None)

    def primary_key(self) -> Any:
        return (
            self.protocol,
            self.from_port,
            self.to_port,
            self.cidr_block,
            self.ipv6_cidr_block,
            self.security_group_id,
            self.prefix_list_id,
        )

    def validation_errors(self) -> List[str]:
        if self.protocol == AllProtocols and (self.from_port is not None or self.to_port is not None):
            return ["Ports can not be defined, if all protocols (-1) are allowed."]
        if self.protocol in ("tcp", "udp") and (self.from_port is None or self.to_port is None):
            return [f"from_port and to_port are required for protocol {self.protocol}."]
        return []

    def is_default_egress(self) -> bool:
        return (
            self.protocol == AllProtocols
            and self.from_port is None
            and self.to_port is None
            and (self.cidr_block == "0.0.0.0/0" or self.ipv6_cidr_block == "::/0")
        )

    def ip_permission(self) -> Json:
        permission = strip_none(IpProtocol=self.protocol, FromPort=self.from_port, ToPort=self.to_port)
        if self.cidr_block:
            permission["IpRanges"] = [strip_none(CidrIp=self.cidr_block, Description=self.description)]
        elif self.ipv6_cidr_block:
            permission["Ipv6Ranges"] = [strip_none(CidrIpv6=self.ipv6_cidr_block, Description=self.description)]
        elif self.security_group_id:
            permission["UserIdGroupPairs"] = [strip_none(GroupId=self.security_group_id, Description=self.description)]
        elif self.prefix_list_id:
            permission["PrefixListIds"] = [strip_none(PrefixListId=self.prefix_list_id, Description=self.description)]
        return permission

    def create(self, client: AwsClient) -> None:
        client.call(
            service_name,
            f"authorize-security-group-{self.direction}",
            None,
            GroupId=self.parent_id(),
            IpPermissions=[self.ip_permission()],
        )

    def update(self, client: AwsClient) -> None:
        # only the description can change: all other fields are part of the primary key
        client.call(
            service_name,
            f"update-security-group-rule-descriptions-{self.direction}",
            None,
            GroupId=self.parent_id(),
            IpPermissions=[self.ip_permission()],
        )

    def delete(self, client: AwsClient) -> None:
        try:
            client.call(
                service_name,
                f"revoke-security-group-{self.direction}",
                None,
                GroupId=self.parent_id(),
                IpPermissions=[self.ip_permission()],
            )
        except ClientError as e:
            if is_not_found_error(e):
                log.info(f"{self.direction} rule {self.primary_key()} of {self.parent_id()} is already revoked.")
                return
            raise


@define(eq=False, slots=False)
class AwsEc2SecurityGroupIngressRule(AwsEc2SecurityGroupRule):
    kind: ClassVar[str] = "aws_ec2_security_group_ingress_rule"
    direction: ClassVar[str] = "ingress"


@define(eq=False, slots=False)
class AwsEc2SecurityGroupEgressRule(AwsEc2SecurityGroupRule):
    kind: ClassVar[str] = "aws_ec2_security_group_egress_rule"
    direction: ClassVar[str] = "egress"


def default_egress_rules() -> List[AwsEc2SecurityGroupEgressRule]:
    return [
        AwsEc2SecurityGroupEgressRule(protocol=AllProtocols, cidr_block="0.0.0.0/0"),
        AwsEc2SecurityGroupEgressRule(protocol=AllProtocols, ipv6_cidr_block="::/0"),
    ]


@define(eq=False, slots=False)
class AwsEc2SecurityGroup(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_security_group"
    kind_display: ClassVar[str] = "AWS EC2 Security Group"
    type_name: ClassVar[str] = "security-group"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-security-groups", "SecurityGroups", id_parameter="GroupIds"
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "delete-security-group", id_parameter="GroupId")
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("GroupId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "group_name": S("GroupName"),
        "description": S("Description"),
        "vpc_id": S("VpcId"),
        "owner_id": S("OwnerId"),
        "ingress": S("IpPermissions", default=[]) >> F(permission_rules),
        "egress": S("IpPermissionsEgress", default=[]) >> F(permission_rules),
    }
    sub_resources: ClassVar[List[str]] = ["ingress", "egress"]
    group_name: Optional[str] = field(default=None, metadata={"required": True})
    description: Optional[str] = field(default=None, metadata={"required": True})
    vpc_id: Optional[str] = field(default=None)
    # the default egress rules allow all outbound traffic
    keep_default_egress_rules: bool = field(default=False, metadata={"updatable": True})
    ingress: List[AwsEc2SecurityGroupIngressRule] = field(factory=list, metadata={"updatable": True})
    egress: List[AwsEc2SecurityGroupEgressRule] = field(factory=list, metadata={"updatable": True})
    owner_id: Optional[str] = field(default=None, metadata={"output": True})

    def copy_from(self, js: Json) -> None:
        super().copy_from(js)
        if self.keep_default_egress_rules:
            self.egress = [rule for rule in self.egress if not rule.is_default_egress()]

    def validation_errors(self) -> List[str]:
        errors = super().validation_errors()
        for name in self.sub_resources:
            keys = [rule.primary_key() for rule in getattr(self, name)]
            if len(keys) != len(set(keys)):
                errors.append(f"{name} contains duplicate rules.")
        return errors

    def create_request(self) -> Json:
        return strip_none(GroupName=self.group_name, Description=self.description, VpcId=self.vpc_id)

    def _create(self, client: AwsClient) -> None:
        self.id = client.get(service_name, "create-security-group", "GroupId", **self.create_request())  # type: ignore
        egress = self.egress
        if self.keep_default_egress_rules:
            # created by the provider together with the group
            egress = [rule for rule in egress if not rule.is_default_egress()]
        else:
            self.remove_default_egress_rules(client)
        for rule in self.ingress + egress:  # type: ignore
            rule.attach(self)
            rule.create(client)

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        if not isinstance(previous, AwsEc2SecurityGroup):
            raise ConfigurationError(f"Can not update {self.kind} from {previous.kind}")
        if "keep_default_egress_rules" in changed:
            if self.keep_default_egress_rules:
                existing = {rule.primary_key() for rule in previous.egress}
                for rule in default_egress_rules():
                    if rule.primary_key() in existing:
                        continue
                    rule.attach(self)
                    rule.create(client)
            else:
                self.remove_default_egress_rules(client)
        for name in ("ingress", "egress"):
            if name in changed:
                self.update_rules(client, getattr(previous, name), getattr(self, name))

    def update_rules(
        self, client: AwsClient, current: List[AwsEc2SecurityGroupRule], desired: List[AwsEc2SecurityGroupRule]
    ) -> None:
        diff = SubResourceDiff.between(current, desired)
        for rule in diff.removed:
            rule.attach(self)
            rule.delete(client)
        for _, rule in diff.changed:
            rule.attach(self)
            rule.update(client)
        for rule in diff.added:
            rule.attach(self)
            rule.create(client)

    def remove_default_egress_rules(self, client: AwsClient) -> None:
        for rule in default_egress_rules():
            rule.attach(self)
            rule.delete(client)

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "create-security-group"),
            AwsApiSpec(service_name, "authorize-security-group-ingress"),
            AwsApiSpec(service_name, "authorize-security-group-egress"),
            AwsApiSpec(service_name, "revoke-security-group-ingress"),
            AwsApiSpec(service_name, "revoke-security-group-egress"),
            AwsApiSpec(service_name, "update-security-group-rule-descriptions-ingress"),
            AwsApiSpec(service_name, "update-security-group-rule-descriptions-egress"),
        ]


# endregion

# region Network ACL

DefaultAclRuleNumber = 32767
# protocol numbers as used by network acl entries
PortProtocols = ("6", "17")
IcmpProtocols = ("1", "58")


@define(eq=False, slots=False)
class AwsEc2NetworkAclRule(AwsSubResource):
    kind: ClassVar[str] = "aws_ec2_network_acl_rule"
    mapping: ClassVar[Dict[str, Bender]] = {
        "rule_number": S("RuleNumber"),
        "egress": S("Egress"),
        "protocol": S("Protocol"),
        "rule_action": S("RuleAction"),
        "cidr_block": S("CidrBlock"),
        "ipv6_cidr_block": S("Ipv6CidrBlock"),
        "from_port": S("PortRange", "From"),
        "to_port": S("PortRange", "To"),
        "icmp_type": S("IcmpTypeCode", "Type"),
        "icmp_code": S("IcmpTypeCode", "Code"),
    }
    exclusive_fields: ClassVar[List[Tuple[str, ...]]] = [("cidr_block", "ipv6_cidr_block")]
    required_one_of: ClassVar[List[Tuple[str, ...]]] = [("cidr_block", "ipv6_cidr_block")]
    rule_number: Optional[int] = field(default=None, metadata={"required": True, "range": (1, 32766)})
    egress: bool = field(default=False)
    protocol: Optional[str] = field(default=None, metadata={"required": True})
    rule_action: Optional[str] = field(default=None, metadata={"required": True, "allowed": ["allow", "deny"]})
    cidr_block: Optional[str] = field(default=None)
    ipv6_cidr_block: Optional[str] = field(default=None)
    from_port: Optional[int] = field(default=None, metadata={"range": (0, 65535)})
    to_port: Optional[int] = field(default=None, metadata={"range": (0, 65535)})
    icmp_type: Optional[int] = field(default=None)
    icmp_code: Optional[int] = field(default=None)

    def primary_key(self) -> Any:
        return self.rule_number, self.egress

    def validation_errors(self) -> List[str]:
        errors = []
        has_ports = self.from_port is not None or self.to_port is not None
        if self.protocol in PortProtocols and (self.from_port is None or self.to_port is None):
            errors.append(f"Rule {self.rule_number}: from_port and to_port are required for protocol {self.protocol}.")
        elif self.protocol not in PortProtocols and has_ports:
            errors.append(f"Rule {self.rule_number}: ports are only allowed for tcp (6) and udp (17).")
        has_icmp = self.icmp_type is not None or self.icmp_code is not None
        if self.protocol in IcmpProtocols and (self.icmp_type is None or self.icmp_code is None):
            errors.append(f"Rule {self.rule_number}: icmp_type and icmp_code are required for icmp.")
        elif self.protocol not in IcmpProtocols and has_icmp:
            errors.append(f"Rule {self.rule_number}: icmp_type and icmp_code are only allowed for icmp (1, 58).")
        return errors

    def entry_request(self) -> Json:
        return strip_none(
            RuleNumber=self.rule_number,
            Egress=self.egress,
            Protocol=self.protocol,
            RuleAction=self.rule_action,
            CidrBlock=self.cidr_block,
            Ipv6CidrBlock=self.ipv6_cidr_block,
            PortRange={"From": self.from_port, "To": self.to_port} if self.protocol in PortProtocols else None,
            IcmpTypeCode={"Type": self.icmp_type, "Code": self.icmp_code} if self.protocol in IcmpProtocols else None,
        )

    def create(self, client: AwsClient) -> None:
        client.call(
            service_name, "create-network-acl-entry", None, NetworkAclId=self.parent_id(), **self.entry_request()
        )

    def update(self, client: AwsClient) -> None:
        client.call(
            service_name, "replace-network-acl-entry", None, NetworkAclId=self.parent_id(), **self.entry_request()
        )

    def delete(self, client: AwsClient) -> None:
        try:
            client.call(
                service_name,
                "delete-network-acl-entry",
                None,
                NetworkAclId=self.parent_id(),
                RuleNumber=self.rule_number,
                Egress=self.egress,
            )
        except ClientError as e:
            if is_not_found_error(e):
                log.info(f"Rule {self.rule_number} of {self.parent_id()} is already deleted.")
                return
            raise


@define(eq=False, slots=False)
class AwsEc2NetworkAcl(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_network_acl"
    kind_display: ClassVar[str] = "AWS EC2 Network ACL"
    type_name: ClassVar[str] = "network-acl"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-network-acls", "NetworkAcls", id_parameter="NetworkAclIds"
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "delete-network-acl", id_parameter="NetworkAclId")
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("NetworkAclId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "vpc_id": S("VpcId"),
        "rules": S("Entries", default=[])
        >> Filter(lambda entry: entry.get("RuleNumber") != DefaultAclRuleNumber)
        >> ForallBend(AwsEc2NetworkAclRule.mapping),
        "is_default": S("IsDefault"),
        "owner_id": S("OwnerId"),
    }
    sub_resources: ClassVar[List[str]] = ["rules"]
    vpc_id: Optional[str] = field(default=None, metadata={"required": True})
    rules: List[AwsEc2NetworkAclRule] = field(factory=list, metadata={"updatable": True})
    is_default: Optional[bool] = field(default=None, metadata={"output": True})
    owner_id: Optional[str] = field(default=None, metadata={"output": True})

    def validation_errors(self) -> List[str]:
        errors = super().validation_errors()
        keys = [rule.primary_key() for rule in self.rules]
        if len(keys) != len(set(keys)):
            errors.append("Rule numbers need to be unique per direction.")
        return errors

    def _create(self, client: AwsClient) -> None:
        acl = client.get(service_name, "create-network-acl", "NetworkAcl", VpcId=self.vpc_id)
        self.id = acl["NetworkAclId"]  # type: ignore
        for rule in self.rules:
            rule.attach(self)
            rule.create(client)

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        if "rules" in changed and isinstance(previous, AwsEc2NetworkAcl):
            diff = SubResourceDiff.between(previous.rules, self.rules)
            for rule in diff.removed:
                rule.attach(self)
                rule.delete(client)
            for _, rule in diff.changed:
                rule.attach(self)
                rule.update(client)
            for rule in diff.added:
                rule.attach(self)
                rule.create(client)

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "create-network-acl"),
            AwsApiSpec(service_name, "create-network-acl-entry"),
            AwsApiSpec(service_name, "replace-network-acl-entry"),
            AwsApiSpec(service_name, "delete-network-acl-entry"),
        ]


# endregion

# region Route Table


def is_managed_route(route: Json) -> bool:
    # local routes and propagated routes are maintained by AWS
    return route.get("GatewayId") != "local" and route.get("Origin") != "EnableVgwRoutePropagation"


@define(eq=False, slots=False)
class AwsEc2Route(AwsSubResource):
    kind: ClassVar[str] = "aws_ec2_route"
    mapping: ClassVar[Dict[str, Bender]] = {
        "destination_cidr_block": S("DestinationCidrBlock"),
        "destination_ipv6_cidr_block": S("DestinationIpv6CidrBlock"),
        "destination_prefix_list_id": S("DestinationPrefixListId"),
        "gateway_id": S("GatewayId"),
        "nat_gateway_id": S("NatGatewayId"),
        "instance_id": S("InstanceId"),
        # instance routes also report the network interface of the instance
        "network_interface_id": F(lambda js: None if js.get("InstanceId") else js.get("NetworkInterfaceId")),
        "vpc_peering_connection_id": S("VpcPeeringConnectionId"),
        "transit_gateway_id": S("TransitGatewayId"),
        "egress_only_internet_gateway_id": S("EgressOnlyInternetGatewayId"),
        "route_state": S("State"),
    }
    destinations: ClassVar[Tuple[str, ...]] = (
        "destination_cidr_block",
        "destination_ipv6_cidr_block",
        "destination_prefix_list_id",
    )
    targets: ClassVar[Tuple[str, ...]] = (
        "gateway_id",
        "nat_gateway_id",
        "instance_id",
        "network_interface_id",
        "vpc_peering_connection_id",
        "transit_gateway_id",
        "egress_only_internet_gateway_id",
    )
    exclusive_fields: ClassVar[List[Tuple[str, ...]]] = [destinations, targets]
    required_one_of: ClassVar[List[Tuple[str, ...]]] = [destinations, targets]
    destination_cidr_block: Optional[str] = field(default=None)
    destination_ipv6_cidr_block: Optional[str] = field(default=None)
    destination_prefix_list_id: Optional[str] = field(default=None)
    gateway_id: Optional[str] = field(default=None)
    nat_gateway_id: Optional[str] = field(default=None)
    instance_id: Optional[str] = field(default=None)
    network_interface_id: Optional[str] = field(default=None)
    vpc_peering_connection_id: Optional[str] = field(default=None)
    transit_gateway_id: Optional[str] = field(default=None)
    egress_only_internet_gateway_id: Optional[str] = field(default=None)
    route_state: Optional[str] = field(default=None, metadata={"output": True})

    def primary_key(self) -> Any:
        return self.destination_cidr_block, self.destination_ipv6_cidr_block, self.destination_prefix_list_id

    def destination_request(self) -> Json:
        return strip_none(
            DestinationCidrBlock=self.destination_cidr_block,
            DestinationIpv6CidrBlock=self.destination_ipv6_cidr_block,
            DestinationPrefixListId=self.destination_prefix_list_id,
        )

    def route_request(self) -> Json:
        return strip_none(
            **self.destination_request(),
            GatewayId=self.gateway_id,
            NatGatewayId=self.nat_gateway_id,
            InstanceId=self.instance_id,
            NetworkInterfaceId=self.network_interface_id,
            VpcPeeringConnectionId=self.vpc_peering_connection_id,
            TransitGatewayId=self.transit_gateway_id,
            EgressOnlyInternetGatewayId=self.egress_only_internet_gateway_id,
        )

    def create(self, client: AwsClient) -> None:
        client.call(service_name, "create-route", None, RouteTableId=self.parent_id(), **self.route_request())

    def update(self, client: AwsClient) -> None:
        client.call(service_name, "replace-route", None, RouteTableId=self.parent_id(), **self.route_request())

    def delete(self, client: AwsClient) -> None:
        try:
            client.call(service_name, "delete-route", None, RouteTableId=self.parent_id(), **self.destination_request())
        except ClientError as e:
            if is_not_found_error(e):
                log.info(f"Route {self.primary_key()} of {self.parent_id()} is already deleted.")
                return
            raise


@define(eq=False, slots=False)
class AwsEc2RouteTable(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_route_table"
    kind_display: ClassVar[str] = "AWS EC2 Route Table"
    type_name: ClassVar[str] = "route-table"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-route-tables", "RouteTables", id_parameter="RouteTableIds"
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "delete-route-table", id_parameter="RouteTableId")
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("RouteTableId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "vpc_id": S("VpcId"),
        "subnet_ids": S("Associations", default=[])
        >> F(lambda assocs: [a["SubnetId"] for a in assocs if a.get("SubnetId")]),
        "subnet_associations": S("Associations", default=[])
        >> F(lambda assocs: {a["SubnetId"]: a["RouteTableAssociationId"] for a in assocs if a.get("SubnetId")}),
        "routes": S("Routes", default=[]) >> Filter(is_managed_route) >> ForallBend(AwsEc2Route.mapping),
        "main": S("Associations", default=[]) >> F(lambda assocs: any(a.get("Main") for a in assocs)),
        "owner_id": S("OwnerId"),
    }
    sub_resources: ClassVar[List[str]] = ["routes"]
    vpc_id: Optional[str] = field(default=None, metadata={"required": True})
    subnet_ids: List[str] = field(factory=list, metadata={"updatable": True})
    routes: List[AwsEc2Route] = field(factory=list, metadata={"updatable": True})
    # subnet id -> association id
    subnet_associations: Dict[str, str] = field(factory=dict, metadata={"output": True})
    main: Optional[bool] = field(default=None, metadata={"output": True})
    owner_id: Optional[str] = field(default=None, metadata={"output": True})

    def validation_errors(self) -> List[str]:
        errors = super().validation_errors()
        keys = [route.primary_key() for route in self.routes]
        if len(keys) != len(set(keys)):
            errors.append("Route destinations need to be unique.")
        return errors

    def _create(self, client: AwsClient) -> None:
        table = client.get(service_name, "create-route-table", "RouteTable", VpcId=self.vpc_id)
        self.id = table["RouteTableId"]  # type: ignore
        for subnet_id in self.subnet_ids:
            self.associate(client, subnet_id)
        for route in self.routes:
            route.attach(self)
            route.create(client)

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        if not isinstance(previous, AwsEc2RouteTable):
            raise ConfigurationError(f"Can not update {self.kind} from {previous.kind}")
        self.subnet_associations = dict(previous.subnet_associations)
        if "subnet_ids" in changed:
            for subnet_id in previous.subnet_ids:
                if subnet_id not in self.subnet_ids and (association := self.subnet_associations.pop(subnet_id, None)):
                    self.disassociate(client, association)
            for subnet_id in self.subnet_ids:
                if subnet_id not in previous.subnet_ids:
                    self.associate(client, subnet_id)
        if "routes" in changed:
            diff = SubResourceDiff.between(previous.routes, self.routes)
            for route in diff.removed:
                route.attach(self)
                route.delete(client)
            for _, route in diff.changed:
                route.attach(self)
                route.update(client)
            for route in diff.added:
                route.attach(self)
                route.create(client)

    def _delete(self, client: AwsClient) -> None:
        if (current := self.describe_if_exists(client)) is None:
            log.info(f"{self.kind} {self.id} is already deleted.")
            return
        for association in current.get("Associations", []):
            if not association.get("Main"):
                self.disassociate(client, association["RouteTableAssociationId"])
        super()._delete(client)

    def associate(self, client: AwsClient, subnet_id: str) -> None:
        association = client.get(
            service_name, "associate-route-table", "AssociationId", RouteTableId=self.id, SubnetId=subnet_id
        )
        self.subnet_associations[subnet_id] = association  # type: ignore

    def disassociate(self, client: AwsClient, association_id: str) -> None:
        client.call(
            service_name,
            "disassociate-route-table",
            None,
            expected_errors=["InvalidAssociationID.NotFound"],
            AssociationId=association_id,
        )

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "create-route-table"),
            AwsApiSpec(service_name, "associate-route-table"),
            AwsApiSpec(service_name, "disassociate-route-table"),
            AwsApiSpec(service_name, "create-route"),
            AwsApiSpec(service_name, "replace-route"),
            AwsApiSpec(service_name, "delete-route"),
        ]


# endregion

# region Volume


@define(eq=False, slots=False)
class AwsEc2Volume(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_volume"
    kind_display: ClassVar[str] = "AWS EC2 Volume"
    type_name: ClassVar[str] = "ebs-volume"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "describe-volumes", "Volumes", id_parameter="VolumeIds")
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "delete-volume", id_parameter="VolumeId")
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("VolumeId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "availability_zone": S("AvailabilityZone"),
        "size": S("Size"),
        "snapshot_id": S("SnapshotId"),
        "volume_type": S("VolumeType"),
        "iops": S("Iops"),
        "throughput": S("Throughput"),
        "encrypted": S("Encrypted"),
        "kms_key_id": S("KmsKeyId"),
        "multi_attach_enabled": S("MultiAttachEnabled"),
        "auto_enable_io": S("AutoEnableIO") >> AsBool(),
        "volume_state": S("State"),
        "create_time": S("CreateTime"),
    }
    required_one_of: ClassVar[List[Tuple[str, ...]]] = [("size", "snapshot_id")]
    availability_zone: Optional[str] = field(default=None, metadata={"required": True})
    size: Optional[int] = field(default=None, metadata={"updatable": True, "range": (1, 65536)})
    snapshot_id: Optional[str] = field(default=None)
    volume_type: Optional[str] = field(
        default=None,
        metadata={"updatable": True, "allowed": ["standard", "io1", "io2", "gp2", "gp3", "sc1", "st1"]},
    )
    iops: Optional[int] = field(default=None, metadata={"updatable": True})
    throughput: Optional[int] = field(default=None, metadata={"updatable": True, "range": (125, 1000)})
    encrypted: Optional[bool] = field(default=None)
    kms_key_id: Optional[str] = field(default=None)
    multi_attach_enabled: Optional[bool] = field(default=None)
    auto_enable_io: Optional[bool] = field(default=None, metadata={"updatable": True})
    volume_state: Optional[str] = field(default=None, metadata={"output": True})
    create_time: Optional[datetime] = field(default=None, metadata={"output": True})

    # volume_type attributes that can be changed via modify-volume
    modifiable: ClassVar[Dict[str, str]] = {
        "size": "Size",
        "volume_type": "VolumeType",
        "iops": "Iops",
        "throughput": "Throughput",
    }

    @classmethod
    def exists(cls, js: Json) -> bool:
        return js.get("State") != "deleted"

    @classmethod
    def with_details(cls, client: AwsClient, js: Json) -> Json:
        auto_enable_io = client.get(
            service_name, "describe-volume-attribute", "AutoEnableIO", VolumeId=js["VolumeId"], Attribute="autoEnableIO"
        )
        return {**js, "AutoEnableIO": auto_enable_io.get("Value") if auto_enable_io else None}

    def validation_errors(self) -> List[str]:
        errors = super().validation_errors()
        if self.iops is not None and self.volume_type not in ("io1", "io2", "gp3"):
            errors.append("iops can only be set for volume types io1, io2 and gp3.")
        if self.volume_type in ("io1", "io2") and self.iops is None:
            errors.append(f"iops is required for volume type {self.volume_type}.")
        if self.throughput is not None and self.volume_type != "gp3":
            errors.append("throughput can only be set for volume type gp3.")
        return errors

    def create_request(self) -> Json:
        return strip_none(
            AvailabilityZone=self.availability_zone,
            Size=self.size,
            SnapshotId=self.snapshot_id,
            VolumeType=self.volume_type,
            Iops=self.iops,
            Throughput=self.throughput,
            Encrypted=self.encrypted,
            KmsKeyId=self.kms_key_id,
            MultiAttachEnabled=self.multi_attach_enabled,
        )

    def _create(self, client: AwsClient) -> None:
        self.id = client.get(service_name, "create-volume", "VolumeId", **self.create_request())  # type: ignore

        def available() -> bool:
            current = self.describe_if_exists(client)
            return current is not None and current.get("State") == "available"

        self.wait_for(client, "create", available, "to become available", timeout=40, interval=5)
        if self.auto_enable_io:
            self.modify_auto_enable_io(client)

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        modifications = {param: getattr(self, name) for name, param in self.modifiable.items() if name in changed}
        if modifications:
            client.call(service_name, "modify-volume", None, VolumeId=self.id, **strip_none(**modifications))
        if "auto_enable_io" in changed:
            self.modify_auto_enable_io(client)

    def modify_auto_enable_io(self, client: AwsClient) -> None:
        client.call(
            service_name,
            "modify-volume-attribute",
            None,
            VolumeId=self.id,
            AutoEnableIO={"Value": bool(self.auto_enable_io)},
        )

    @classmethod
    def called_collect_apis(cls) -> List[AwsApiSpec]:
        return super().called_collect_apis() + [AwsApiSpec(service_name, "describe-volume-attribute")]

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "create-volume"),
            AwsApiSpec(service_name, "modify-volume"),
            AwsApiSpec(service_name, "modify-volume-attribute"),
        ]


@define(eq=False, slots=False)
class AwsEc2VolumeAttachment(AwsResource):
    """
    Attachment of a volume to an instance.
    The provider does not assign an id: it is derived from instance id and device name.
    """

    kind: ClassVar[str] = "aws_ec2_volume_attachment"
    kind_display: ClassVar[str] = "AWS EC2 Volume Attachment"
    type_name: ClassVar[str] = "instance-volume-attachment"
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": F(lambda js: f"{js['InstanceId']}:{js['DeviceName']}"),
        "instance_id": S("InstanceId"),
        "volume_id": S("VolumeId"),
        "device_name": S("DeviceName"),
        "attachment_state": S("State"),
        "delete_on_termination": S("DeleteOnTermination"),
    }
    instance_id: Optional[str] = field(default=None, metadata={"required": True})
    volume_id: Optional[str] = field(default=None, metadata={"required": True})
    device_name: Optional[str] = field(default=None, metadata={"required": True})
    attachment_state: Optional[str] = field(default=None, metadata={"output": True})
    delete_on_termination: Optional[bool] = field(default=None, metadata={"output": True})

    def describe(self, client: AwsClient) -> Optional[Json]:
        reservations = client.list(service_name, "describe-instances", "Reservations", InstanceIds=[self.instance_id])
        instances = [i for r in reservations for i in r.get("Instances", [])]
        instance = next((i for i in instances if i.get("State", {}).get("Name") not in GoneInstanceStates), None)
        if instance is None:
            return None
        for mapping in instance.get("BlockDeviceMappings", []):
            ebs = mapping.get("Ebs", {})
            if mapping.get("DeviceName") == self.device_name and ebs.get("VolumeId") == self.volume_id:
                return {
                    "InstanceId": instance["InstanceId"],
                    "DeviceName": mapping["DeviceName"],
                    "VolumeId": ebs["VolumeId"],
                    "State": ebs.get("Status"),
                    "DeleteOnTermination": ebs.get("DeleteOnTermination"),
                }
        return None

    def attachment_state_of_volume(self, client: AwsClient) -> Optional[str]:
        volumes = client.list(
            service_name,
            "describe-volumes",
            "Volumes",
            expected_errors=["InvalidVolume.NotFound"],
            VolumeIds=[self.volume_id],
        )
        for volume in volumes:
            for attachment in volume.get("Attachments", []):
                if attachment.get("InstanceId") == self.instance_id:
                    return attachment.get("State")  # type: ignore
        return None

    def _create(self, client: AwsClient) -> None:
        client.call(
            service_name,
            "attach-volume",
            None,
            Device=self.device_name,
            InstanceId=self.instance_id,
            VolumeId=self.volume_id,
        )
        self.id = f"{self.instance_id}:{self.device_name}"
        self.wait_for(
            client,
            "create",
            lambda: self.attachment_state_of_volume(client) == "attached",
            "to be attached",
            timeout=120,
            interval=2,
        )

    def _delete(self, client: AwsClient) -> None:
        if self.attachment_state_of_volume(client) in (None, "detached"):
            log.info(f"{self.kind} {self.id} is already detached.")
            return
        try:
            client.call(
                service_name,
                "detach-volume",
                None,
                Device=self.device_name,
                InstanceId=self.instance_id,
                VolumeId=self.volume_id,
            )
        except ClientError as e:
            # the volume is not attached (anymore)
            if error_code(e) != "IncorrectState":
                raise
            log.info(f"{self.kind} {self.id} is already detached: {e}")
            return
        self.wait_for(
            client,
            "delete",
            lambda: self.attachment_state_of_volume(client) in (None, "detached"),
            "to be detached",
            timeout=120,
            interval=2,
        )

    @classmethod
    def called_collect_apis(cls) -> List[AwsApiSpec]:
        return [AwsApiSpec(service_name, "describe-instances"), AwsApiSpec(service_name, "describe-volumes")]

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return [AwsApiSpec(service_name, "attach-volume"), AwsApiSpec(service_name, "detach-volume")]


# endregion

# region Key Pair


@define(eq=False, slots=False)
class AwsEc2KeyPair(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_keypair"
    kind_display: ClassVar[str] = "AWS EC2 Keypair"
    type_name: ClassVar[str] = "key-pair"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-key-pairs", "KeyPairs", id_parameter="KeyPairIds"
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "delete-key-pair", id_parameter="KeyPairId")
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("KeyPairId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "key_name": S("KeyName"),
        "key_fingerprint": S("KeyFingerprint"),
        "key_type": S("KeyType"),
    }
    exclusive_fields: ClassVar[List[Tuple[str, ...]]] = [("public_key", "public_key_path")]
    required_one_of: ClassVar[List[Tuple[str, ...]]] = [("public_key", "public_key_path")]
    key_name: Optional[str] = field(default=None, metadata={"required": True})
    public_key: Optional[str] = field(default=None)
    public_key_path: Optional[str] = field(default=None)
    key_fingerprint: Optional[str] = field(default=None, metadata={"output": True})
    key_type: Optional[str] = field(default=None, metadata={"output": True})

    def validation_errors(self) -> List[str]:
        errors = super().validation_errors()
        if self.public_key_path and not Path(self.public_key_path).expanduser().is_file():
            errors.append(f"public_key_path {self.public_key_path} does not exist.")
        return errors

    def public_key_material(self) -> bytes:
        if self.public_key_path:
            return Path(self.public_key_path).expanduser().read_bytes()
        return (self.public_key or "").encode("utf-8")

    def _create(self, client: AwsClient) -> None:
        result = client.get(
            service_name,
            "import-key-pair",
            KeyName=self.key_name,
            PublicKeyMaterial=self.public_key_material(),
        )
        self.id = result["KeyPairId"]  # type: ignore
        self.key_fingerprint = result.get("KeyFingerprint")  # type: ignore

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [AwsApiSpec(service_name, "import-key-pair")]


# endregion

# region DHCP Options


def dhcp_values(configurations: List[Json], key: str) -> Optional[List[str]]:
    for configuration in configurations:
        if configuration.get("Key") == key:
            return [v["Value"] for v in configuration.get("Values", [])]
    return None


def dhcp_value(configurations: List[Json], key: str) -> Optional[str]:
    values = dhcp_values(configurations, key)
    return values[0] if values else None


@define(eq=False, slots=False)
class AwsEc2DhcpOptions(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_dhcp_options"
    kind_display: ClassVar[str] = "AWS EC2 DHCP Options"
    type_name: ClassVar[str] = "dhcp-option"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-dhcp-options", "DhcpOptions", id_parameter="DhcpOptionsIds"
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "delete-dhcp-options", id_parameter="DhcpOptionsId")
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("DhcpOptionsId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "domain_name": S("DhcpConfigurations") >> F(dhcp_value, "domain-name"),
        "domain_name_servers": S("DhcpConfigurations") >> F(dhcp_values, "domain-name-servers"),
        "ntp_servers": S("DhcpConfigurations") >> F(dhcp_values, "ntp-servers"),
        "netbios_name_servers": S("DhcpConfigurations") >> F(dhcp_values, "netbios-name-servers"),
        "netbios_node_type": S("DhcpConfigurations") >> F(dhcp_value, "netbios-node-type"),
        "owner_id": S("OwnerId"),
    }
    required_one_of: ClassVar[List[Tuple[str, ...]]] = [
        ("domain_name", "domain_name_servers", "ntp_servers", "netbios_name_servers", "netbios_node_type")
    ]
    domain_name: Optional[str] = field(default=None)
    domain_name_servers: Optional[List[str]] = field(default=None)
    ntp_servers: Optional[List[str]] = field(default=None)
    netbios_name_servers: Optional[List[str]] = field(default=None)
    netbios_node_type: Optional[str] = field(default=None, metadata={"allowed": ["1", "2", "4", "8"]})
    owner_id: Optional[str] = field(default=None, metadata={"output": True})

    def dhcp_configurations(self) -> List[Json]:
        values: Dict[str, Optional[List[str]]] = {
            "domain-name": [self.domain_name] if self.domain_name else None,
            "domain-name-servers": self.domain_name_servers,
            "ntp-servers": self.ntp_servers,
            "netbios-name-servers": self.netbios_name_servers,
            "netbios-node-type": [self.netbios_node_type] if self.netbios_node_type else None,
        }
        return [{"Key": key, "Values": value} for key, value in values.items() if value]

    def _create(self, client: AwsClient) -> None:
        options = client.get(
            service_name, "create-dhcp-options", "DhcpOptions", DhcpConfigurations=self.dhcp_configurations()
        )
        self.id = options["DhcpOptionsId"]  # type: ignore

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [AwsApiSpec(service_name, "create-dhcp-options")]


# endregion

# region Launch Template


@define(eq=False, slots=False)
class AwsEc2LaunchTemplateBlockDeviceMapping(AwsSubResource):
    kind: ClassVar[str] = "aws_ec2_launch_template_block_device_mapping"
    mapping: ClassVar[Dict[str, Bender]] = {
        "device_name": S("DeviceName"),
        "volume_size": S("Ebs", "VolumeSize"),
        "volume_type": S("Ebs", "VolumeType"),
        "iops": S("Ebs", "Iops"),
        "throughput": S("Ebs", "Throughput"),
        "snapshot_id": S("Ebs", "SnapshotId"),
        "encrypted": S("Ebs", "Encrypted"),
        "kms_key_id": S("Ebs", "KmsKeyId"),
        "delete_on_termination": S("Ebs", "DeleteOnTermination"),
    }
    device_name: Optional[str] = field(default=None, metadata={"required": True})
    volume_size: Optional[int] = field(default=None, metadata={"range": (1, 65536)})
    volume_type: Optional[str] = field(
        default=None, metadata={"allowed": ["standard", "io1", "io2", "gp2", "gp3", "sc1", "st1"]}
    )
    iops: Optional[int] = field(default=None)
    throughput: Optional[int] = field(default=None)
    snapshot_id: Optional[str] = field(default=None)
    encrypted: Optional[bool] = field(default=None)
    kms_key_id: Optional[str] = field(default=None)
    delete_on_termination: Optional[bool] = field(default=None)

    def primary_key(self) -> Any:
        return self.device_name

    def mapping_request(self) -> Json:
        ebs = strip_none(
            VolumeSize=self.volume_size,
            VolumeType=self.volume_type,
            Iops=self.iops,
            Throughput=self.throughput,
            SnapshotId=self.snapshot_id,
            Encrypted=self.encrypted,
            KmsKeyId=self.kms_key_id,
            DeleteOnTermination=self.delete_on_termination,
        )
        return strip_none(DeviceName=self.device_name, Ebs=ebs or None)


@define(eq=False, slots=False)
class AwsEc2LaunchTemplate(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_launch_template"
    kind_display: ClassVar[str] = "AWS EC2 Launch Template"
    type_name: ClassVar[str] = "launch-template"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-launch-templates", "LaunchTemplates", id_parameter="LaunchTemplateIds"
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "delete-launch-template", id_parameter="LaunchTemplateId"
    )
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("LaunchTemplateId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "launch_template_name": S("LaunchTemplateName"),
        "image_id": S("LaunchTemplateData", "ImageId"),
        "instance_type": S("LaunchTemplateData", "InstanceType"),
        "key_name": S("LaunchTemplateData", "KeyName"),
        "security_group_ids": S("LaunchTemplateData", "SecurityGroupIds", default=[]),
        "user_data": S("LaunchTemplateData", "UserData") >> Base64Decode(),
        "ebs_optimized": S("LaunchTemplateData", "EbsOptimized"),
        "disable_api_termination": S("LaunchTemplateData", "DisableApiTermination"),
        "shutdown_behavior": S("LaunchTemplateData", "InstanceInitiatedShutdownBehavior"),
        "enable_monitoring": S("LaunchTemplateData", "Monitoring", "Enabled"),
        "instance_profile_arn": S("LaunchTemplateData", "IamInstanceProfile", "Arn"),
        "core_count": S("LaunchTemplateData", "CpuOptions", "CoreCount"),
        "threads_per_core": S("LaunchTemplateData", "CpuOptions", "ThreadsPerCore"),
        "capacity_reservation_preference": S(
            "LaunchTemplateData", "CapacityReservationSpecification", "CapacityReservationPreference"
        ),
        "block_device_mappings": S("LaunchTemplateData", "BlockDeviceMappings", default=[])
        >> ForallBend(AwsEc2LaunchTemplateBlockDeviceMapping.mapping),
        "default_version_number": S("DefaultVersionNumber"),
        "latest_version_number": S("LatestVersionNumber"),
        "created_by": S("CreatedBy"),
        "create_time": S("CreateTime"),
    }
    sub_resources: ClassVar[List[str]] = ["block_device_mappings"]
    launch_template_name: Optional[str] = field(default=None, metadata={"required": True})
    image_id: Optional[str] = field(default=None, metadata={"updatable": True})
    instance_type: Optional[str] = field(default=None, metadata={"updatable": True})
    key_name: Optional[str] = field(default=None, metadata={"updatable": True})
    security_group_ids: List[str] = field(factory=list, metadata={"updatable": True})
    user_data: Optional[str] = field(default=None, metadata={"updatable": True})
    ebs_optimized: Optional[bool] = field(default=None, metadata={"updatable": True})
    disable_api_termination: Optional[bool] = field(default=None, metadata={"updatable": True})
    shutdown_behavior: Optional[str] = field(
        default=None, metadata={"updatable": True, "allowed": ["stop", "terminate"]}
    )
    enable_monitoring: Optional[bool] = field(default=None, metadata={"updatable": True})
    instance_profile_arn: Optional[str] = field(default=None, metadata={"updatable": True})
    core_count: Optional[int] = field(default=None, metadata={"updatable": True})
    threads_per_core: Optional[int] = field(default=None, metadata={"updatable": True, "range": (1, 2)})
    capacity_reservation_preference: Optional[str] = field(
        default=None, metadata={"updatable": True, "allowed": ["open", "none"]}
    )
    block_device_mappings: List[AwsEc2LaunchTemplateBlockDeviceMapping] = field(
        factory=list, metadata={"updatable": True}
    )
    default_version_number: Optional[int] = field(default=None, metadata={"output": True})
    latest_version_number: Optional[int] = field(default=None, metadata={"output": True})
    created_by: Optional[str] = field(default=None, metadata={"output": True})
    create_time: Optional[datetime] = field(default=None, metadata={"output": True})

    @classmethod
    def with_details(cls, client: AwsClient, js: Json) -> Json:
        versions = client.list(
            service_name,
            "describe-launch-template-versions",
            "LaunchTemplateVersions",
            LaunchTemplateId=js["LaunchTemplateId"],
            Versions=["$Default"],
        )
        data = versions[0].get("LaunchTemplateData", {}) if versions else {}
        return {**js, "LaunchTemplateData": data}

    def validation_errors(self) -> List[str]:
        errors = super().validation_errors()
        if (self.core_count is None) != (self.threads_per_core is None):
            errors.append("core_count and threads_per_core need to be defined together.")
        devices = [m.device_name for m in self.block_device_mappings]
        if len(devices) != len(set(devices)):
            errors.append("Device names of block device mappings need to be unique.")
        return errors

    def template_data(self) -> Json:
        return strip_none(
            ImageId=self.image_id,
            InstanceType=self.instance_type,
            KeyName=self.key_name,
            SecurityGroupIds=self.security_group_ids or None,
            UserData=base64.b64encode(self.user_data.encode("utf-8")).decode("utf-8") if self.user_data else None,
            EbsOptimized=self.ebs_optimized,
            DisableApiTermination=self.disable_api_termination,
            InstanceInitiatedShutdownBehavior=self.shutdown_behavior,
            Monitoring={"Enabled": self.enable_monitoring} if self.enable_monitoring is not None else None,
            IamInstanceProfile={"Arn": self.instance_profile_arn} if self.instance_profile_arn else None,
            CpuOptions=strip_none(CoreCount=self.core_count, ThreadsPerCore=self.threads_per_core) or None,
            CapacityReservationSpecification=(
                {"CapacityReservationPreference": self.capacity_reservation_preference}
                if self.capacity_reservation_preference
                else None
            ),
            BlockDeviceMappings=[m.mapping_request() for m in self.block_device_mappings] or None,
        )

    def _create(self, client: AwsClient) -> None:
        template = client.get(
            service_name,
            "create-launch-template",
            "LaunchTemplate",
            LaunchTemplateName=self.launch_template_name,
            LaunchTemplateData=self.template_data(),
        )
        self.id = template["LaunchTemplateId"]  # type: ignore
        self.default_version_number = template.get("DefaultVersionNumber")  # type: ignore
        self.latest_version_number = template.get("LatestVersionNumber")  # type: ignore

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        if not changed - {"tags"}:
            return
        # every change of the template data creates a new version, which becomes the default
        version = client.get(
            service_name,
            "create-launch-template-version",
            "LaunchTemplateVersion",
            LaunchTemplateId=self.id,
            LaunchTemplateData=self.template_data(),
        )
        number = version["VersionNumber"]  # type: ignore
        client.call(service_name, "modify-launch-template", None, LaunchTemplateId=self.id, DefaultVersion=str(number))
        self.default_version_number = number
        self.latest_version_number = number

    @classmethod
    def called_collect_apis(cls) -> List[AwsApiSpec]:
        return super().called_collect_apis() + [AwsApiSpec(service_name, "describe-launch-template-versions")]

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "create-launch-template"),
            AwsApiSpec(service_name, "create-launch-template-version"),
            AwsApiSpec(service_name, "modify-launch-template"),
        ]


# endregion

# region Instance


def capacity_reservation_of(specification: Json) -> Optional[str]:
    if target := specification.get("CapacityReservationTarget"):
        return target.get("CapacityReservationId")  # type: ignore
    return specification.get("CapacityReservationPreference")  # type: ignore


def is_instance_profile_propagating(e: Exception) -> bool:
    # a new instance profile is not visible to ec2 for some seconds
    return (
        isinstance(e, ClientError)
        and error_code(e) == "InvalidParameterValue"
        and "iamInstanceProfile" in e.response.get("Error", {}).get("Message", "")
    )


@define(eq=False, slots=False)
class AwsEc2Instance(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_instance"
    kind_display: ClassVar[str] = "AWS EC2 Instance"
    type_name: ClassVar[str] = "instance"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-instances", "Reservations", id_parameter="InstanceIds"
    )
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("InstanceId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "image_id": S("ImageId"),
        "instance_type": S("InstanceType"),
        "key_name": S("KeyName"),
        "subnet_id": S("SubnetId"),
        "security_group_ids": S("SecurityGroups", default=[]) >> ForallBend(S("GroupId")),
        "private_ip_address": S("PrivateIpAddress"),
        "core_count": S("CpuOptions", "CoreCount"),
        "threads_per_core": S("CpuOptions", "ThreadsPerCore"),
        "ebs_optimized": S("EbsOptimized"),
        "configure_hibernate_option": S("HibernationOptions", "Configured"),
        "enable_monitoring": S("Monitoring", "State") >> F(lambda state: state == "enabled"),
        "source_dest_check": S("SourceDestCheck"),
        "capacity_reservation": S("CapacityReservationSpecification") >> F(capacity_reservation_of),
        "instance_profile_arn": S("IamInstanceProfile", "Arn"),
        # the next three are provided by describe-instance-attribute
        "shutdown_behavior": S("InstanceInitiatedShutdownBehavior"),
        "disable_api_termination": S("DisableApiTermination") >> AsBool(),
        "user_data": S("UserData") >> Base64Decode(),
        "status": S("State", "Name") >> F(lambda state: "running" if state == "running" else "stopped"),
        "instance_state": S("State", "Name"),
        "vpc_id": S("VpcId"),
        "network_interface_id": S("NetworkInterfaces", 0, "NetworkInterfaceId"),
        "public_ip_address": S("PublicIpAddress"),
        "public_dns_name": S("PublicDnsName"),
        "private_dns_name": S("PrivateDnsName"),
        "launch_time": S("LaunchTime"),
    }
    sub_resources: ClassVar[List[str]] = ["block_device_mappings"]
    exclusive_fields: ClassVar[List[Tuple[str, ...]]] = [("launch_template_id", "launch_template_name")]
    # attribute name of describe-instance-attribute -> key in the provider json
    attributes: ClassVar[Dict[str, str]] = {
        "instanceInitiatedShutdownBehavior": "InstanceInitiatedShutdownBehavior",
        "disableApiTermination": "DisableApiTermination",
        "userData": "UserData",
    }
    image_id: Optional[str] = field(default=None)
    instance_type: Optional[str] = field(default=None, metadata={"updatable": True})
    key_name: Optional[str] = field(default=None)
    subnet_id: Optional[str] = field(default=None)
    security_group_ids: List[str] = field(factory=list, metadata={"updatable": True})
    private_ip_address: Optional[str] = field(default=None)
    core_count: Optional[int] = field(default=None)
    threads_per_core: Optional[int] = field(default=None, metadata={"range": (1, 2)})
    ebs_optimized: Optional[bool] = field(default=None, metadata={"updatable": True})
    configure_hibernate_option: Optional[bool] = field(default=None)
    enable_monitoring: Optional[bool] = field(default=None)
    source_dest_check: Optional[bool] = field(default=None, metadata={"updatable": True})
    # open, none or the id of a capacity reservation
    capacity_reservation: Optional[str] = field(default=None, metadata={"updatable": True})
    instance_profile_arn: Optional[str] = field(default=None)
    shutdown_behavior: Optional[str] = field(
        default=None, metadata={"updatable": True, "allowed": ["stop", "terminate"]}
    )
    disable_api_termination: Optional[bool] = field(default=None, metadata={"updatable": True})
    user_data: Optional[str] = field(default=None, metadata={"updatable": True})
    launch_template_id: Optional[str] = field(default=None)
    launch_template_name: Optional[str] = field(default=None)
    launch_template_version: Optional[str] = field(default=None)
    block_device_mappings: List[AwsEc2LaunchTemplateBlockDeviceMapping] = field(factory=list)
    status: Optional[str] = field(default=None, metadata={"updatable": True, "allowed": ["running", "stopped"]})
    instance_state: Optional[str] = field(default=None, metadata={"output": True})
    vpc_id: Optional[str] = field(default=None, metadata={"output": True})
    network_interface_id: Optional[str] = field(default=None, metadata={"output": True})
    public_ip_address: Optional[str] = field(default=None, metadata={"output": True})
    public_dns_name: Optional[str] = field(default=None, metadata={"output": True})
    private_dns_name: Optional[str] = field(default=None, metadata={"output": True})
    launch_time: Optional[datetime] = field(default=None, metadata={"output": True})

    @classmethod
    def provider_items(cls, result: List[Json]) -> List[Json]:
        return [instance for reservation in result for instance in reservation.get("Instances", [])]

    @classmethod
    def exists(cls, js: Json) -> bool:
        return js.get("State", {}).get("Name") not in GoneInstanceStates  # type: ignore

    @classmethod
    def with_details(cls, client: AwsClient, js: Json) -> Json:
        details = {
            key: client.get(
                service_name,
                "describe-instance-attribute",
                f"{key}.Value",
                InstanceId=js["InstanceId"],
                Attribute=attribute,
            )
            for attribute, key in cls.attributes.items()
        }
        return {**js, **details}

    def validation_errors(self) -> List[str]:
        errors = super().validation_errors()
        if not (self.launch_template_id or self.launch_template_name):
            for name in ("image_id", "instance_type"):
                if is_blank(getattr(self, name)):
                    errors.append(f"{name} is required if no launch template is given.")
        reservation = self.capacity_reservation
        if reservation and reservation not in ("open", "none") and not reservation.startswith("cr-"):
            errors.append(f"capacity_reservation must be open, none or a reservation id but was {reservation}.")
        if self.security_group_ids and not self.subnet_id:
            errors.append("subnet_id is required if security_group_ids are defined.")
        if (self.core_count is None) != (self.threads_per_core is None):
            errors.append("core_count and threads_per_core need to be defined together.")
        return errors

    def capacity_reservation_specification(self) -> Optional[Json]:
        if self.capacity_reservation is None:
            return None
        elif self.capacity_reservation in ("open", "none"):
            return {"CapacityReservationPreference": self.capacity_reservation}
        else:
            return {"CapacityReservationTarget": {"CapacityReservationId": self.capacity_reservation}}

    def run_request(self) -> Json:
        launch_template = strip_none(
            LaunchTemplateId=self.launch_template_id,
            LaunchTemplateName=self.launch_template_name,
            Version=self.launch_template_version,
        )
        return strip_none(
            ImageId=self.image_id,
            InstanceType=self.instance_type,
            KeyName=self.key_name,
            SubnetId=self.subnet_id,
            SecurityGroupIds=self.security_group_ids or None,
            PrivateIpAddress=self.private_ip_address,
            MinCount=1,
            MaxCount=1,
            EbsOptimized=self.ebs_optimized,
            HibernationOptions=(
                {"Configured": self.configure_hibernate_option} if self.configure_hibernate_option is not None else None
            ),
            CpuOptions=strip_none(CoreCount=self.core_count, ThreadsPerCore=self.threads_per_core) or None,
            Monitoring={"Enabled": self.enable_monitoring} if self.enable_monitoring is not None else None,
            InstanceInitiatedShutdownBehavior=self.shutdown_behavior,
            DisableApiTermination=self.disable_api_termination,
            # boto encodes the user data of run-instances
            UserData=self.user_data or None,
            CapacityReservationSpecification=self.capacity_reservation_specification(),
            IamInstanceProfile={"Arn": self.instance_profile_arn} if self.instance_profile_arn else None,
            BlockDeviceMappings=[m.mapping_request() for m in self.block_device_mappings] or None,
            LaunchTemplate=launch_template or None,
        )

    def current_state(self, client: AwsClient) -> Optional[str]:
        reservations = client.list(
            service_name,
            "describe-instances",
            "Reservations",
            expected_errors=["InvalidInstanceID.NotFound"],
            InstanceIds=[self.id],
        )
        instances = self.provider_items(reservations)
        return instances[0].get("State", {}).get("Name") if instances else None  # type: ignore

    def wait_for_state(self, client: AwsClient, operation: str, *states: Optional[str]) -> None:
        self.wait_for(
            client,
            operation,
            lambda: self.current_state(client) in states,
            f"to be {' or '.join(s for s in states if s)}",
            timeout=180,
            interval=10,
        )

    def _create(self, client: AwsClient) -> None:
        request = self.run_request()

        def run() -> bool:
            instances = client.list(service_name, "run-instances", "Instances", **request)
            self.id = instances[0]["InstanceId"]
            self.network_interface_id = bend(S("NetworkInterfaces", 0, "NetworkInterfaceId"), instances[0])
            return True

        self.wait_for(
            client,
            "create",
            run,
            "to launch",
            timeout=60,
            interval=10,
            retry_on_exception=is_instance_profile_propagating,
        )
        if self.source_dest_check is False:
            self.modify_source_dest_check(client)
        self.wait_for_state(client, "create", "running")
        if self.status == "stopped":
            self.stop(client)
        if current := self.describe_if_exists(client):
            fresh = parse_json(current, AwsEc2Instance, self.mapping)
            for name in ("instance_state", "status", "vpc_id", "network_interface_id", "launch_time"):
                setattr(self, name, getattr(fresh, name))
            for name in ("public_ip_address", "public_dns_name", "private_dns_name", "private_ip_address"):
                setattr(self, name, getattr(fresh, name))

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        if not isinstance(previous, AwsEc2Instance):
            raise ConfigurationError(f"Can not update {self.kind} from {previous.kind}")
        self.network_interface_id = self.network_interface_id or previous.network_interface_id
        if "shutdown_behavior" in changed:
            self.modify_attribute(client, InstanceInitiatedShutdownBehavior={"Value": self.shutdown_behavior})
        if "disable_api_termination" in changed:
            self.modify_attribute(client, DisableApiTermination={"Value": bool(self.disable_api_termination)})
        if "source_dest_check" in changed:
            self.modify_source_dest_check(client)
        if "security_group_ids" in changed:
            self.modify_attribute(client, Groups=self.security_group_ids)
        if "status" in changed and self.status == "stopped":
            self.stop(client)
        # these attributes can only be changed while the instance is stopped
        while_stopped = changed & {"instance_type", "ebs_optimized", "user_data", "capacity_reservation"}
        if while_stopped and self.current_state(client) != "stopped":
            log.warning(
                f"{self.kind} {self.id}: {', '.join(sorted(while_stopped))} can only be changed "
                "while the instance is stopped. Skipped."
            )
        elif while_stopped:
            if "instance_type" in while_stopped:
                self.modify_attribute(client, InstanceType={"Value": self.instance_type})
            if "ebs_optimized" in while_stopped:
                self.modify_attribute(client, EbsOptimized={"Value": bool(self.ebs_optimized)})
            if "user_data" in while_stopped:
                self.modify_attribute(client, UserData={"Value": (self.user_data or "").encode("utf-8")})
            if "capacity_reservation" in while_stopped:
                client.call(
                    service_name,
                    "modify-instance-capacity-reservation-attributes",
                    None,
                    InstanceId=self.id,
                    CapacityReservationSpecification=self.capacity_reservation_specification(),
                )
        if "status" in changed and self.status == "running":
            client.call(service_name, "start-instances", None, InstanceIds=[self.id])
            self.wait_for_state(client, "update", "running")

    def _delete(self, client: AwsClient) -> None:
        if self.disable_api_termination:
            raise ConfigurationError(
                f"{self.kind} {self.id} can not be terminated while disable_api_termination is set."
            )
        client.call(service_name, "terminate-instances", None, InstanceIds=[self.id])
        self.wait_for_state(client, "delete", "terminated", None)

    def stop(self, client: AwsClient) -> None:
        client.call(service_name, "stop-instances", None, InstanceIds=[self.id], Force=True)
        self.wait_for_state(client, "update", "stopped")

    def modify_attribute(self, client: AwsClient, **attribute: Any) -> None:
        client.call(service_name, "modify-instance-attribute", None, InstanceId=self.id, **attribute)

    def modify_source_dest_check(self, client: AwsClient) -> None:
        if self.network_interface_id is None and (current := self.describe_if_exists(client)):
            self.network_interface_id = bend(S("NetworkInterfaces", 0, "NetworkInterfaceId"), current)
        client.call(
            service_name,
            "modify-network-interface-attribute",
            None,
            NetworkInterfaceId=self.network_interface_id,
            SourceDestCheck={"Value": bool(self.source_dest_check)},
        )

    @classmethod
    def called_collect_apis(cls) -> List[AwsApiSpec]:
        return super().called_collect_apis() + [AwsApiSpec(service_name, "describe-instance-attribute")]

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "run-instances"),
            AwsApiSpec(service_name, "terminate-instances"),
            AwsApiSpec(service_name, "start-instances"),
            AwsApiSpec(service_name, "stop-instances"),
            AwsApiSpec(service_name, "modify-instance-attribute"),
            AwsApiSpec(service_name, "modify-instance-capacity-reservation-attributes"),
            AwsApiSpec(service_name, "modify-network-interface-attribute"),
        ]


# endregion

# region Network Interface


@define(eq=False, slots=False)
class AwsEc2NetworkInterface(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_network_interface"
    kind_display: ClassVar[str] = "AWS EC2 Network Interface"
    type_name: ClassVar[str] = "network-interface"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-network-interfaces", "NetworkInterfaces", id_parameter="NetworkInterfaceIds"
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "delete-network-interface", id_parameter="NetworkInterfaceId"
    )
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("NetworkInterfaceId"),
        "tags": S("TagSet", default=[]) >> UserTags(),
        "description": S("Description"),
        "subnet_id": S("SubnetId"),
        "security_group_ids": S("Groups", default=[]) >> ForallBend(S("GroupId")),
        "instance_id": S("Attachment", "InstanceId"),
        "device_index": S("Attachment", "DeviceIndex"),
        "delete_on_termination": S("Attachment", "DeleteOnTermination"),
        "primary_ipv4_address": S("PrivateIpAddress"),
        "ipv4_addresses": S("PrivateIpAddresses", default=[])
        >> Filter(lambda address: not address.get("Primary"))
        >> ForallBend(S("PrivateIpAddress")),
        "ipv6_addresses": S("Ipv6Addresses", default=[]) >> ForallBend(S("Ipv6Address")),
        "source_dest_check": S("SourceDestCheck"),
        "attachment_id": S("Attachment", "AttachmentId"),
        "vpc_id": S("VpcId"),
        "interface_status": S("Status"),
        "mac_address": S("MacAddress"),
    }
    description: Optional[str] = field(default=None, metadata={"updatable": True})
    subnet_id: Optional[str] = field(default=None, metadata={"required": True})
    security_group_ids: List[str] = field(factory=list, metadata={"updatable": True})
    instance_id: Optional[str] = field(default=None, metadata={"updatable": True})
    device_index: Optional[int] = field(default=None, metadata={"updatable": True})
    delete_on_termination: Optional[bool] = field(default=None, metadata={"updatable": True})
    primary_ipv4_address: Optional[str] = field(default=None)
    # secondary private ipv4 addresses
    ipv4_addresses: List[str] = field(factory=list, metadata={"updatable": True})
    ipv6_addresses: List[str] = field(factory=list, metadata={"updatable": True})
    source_dest_check: Optional[bool] = field(default=None, metadata={"updatable": True})
    attachment_id: Optional[str] = field(default=None, metadata={"output": True})
    vpc_id: Optional[str] = field(default=None, metadata={"output": True})
    interface_status: Optional[str] = field(default=None, metadata={"output": True})
    mac_address: Optional[str] = field(default=None, metadata={"output": True})

    def validation_errors(self) -> List[str]:
        errors = super().validation_errors()
        if self.instance_id and self.device_index is None:
            errors.append("device_index is required to attach the interface to an instance.")
        return errors

    def create_request(self) -> Json:
        return strip_none(
            SubnetId=self.subnet_id,
            Description=self.description,
            Groups=self.security_group_ids or None,
            PrivateIpAddress=self.primary_ipv4_address,
            Ipv6Addresses=[{"Ipv6Address": address} for address in self.ipv6_addresses] or None,
        )

    def _create(self, client: AwsClient) -> None:
        interface = client.get(service_name, "create-network-interface", "NetworkInterface", **self.create_request())
        self.id = interface["NetworkInterfaceId"]  # type: ignore
        if self.ipv4_addresses:
            self.assign_ipv4_addresses(client, self.ipv4_addresses)
        if self.instance_id:
            try:
                self.attach(client)
            except ClientError as e:
                if not is_not_found_error(e):
                    raise
                super()._delete(client)
                raise ConfigurationError(f"Attaching {self.kind} to instance {self.instance_id} failed: {e}") from e
            if self.delete_on_termination:
                self.modify_delete_on_termination(client)
        if self.source_dest_check is False:
            self.modify_interface_attribute(client, SourceDestCheck={"Value": False})

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        if not isinstance(previous, AwsEc2NetworkInterface):
            raise ConfigurationError(f"Can not update {self.kind} from {previous.kind}")
        self.attachment_id = previous.attachment_id
        if changed & {"instance_id", "device_index"}:
            if previous.attachment_id:
                self.detach(client, previous.attachment_id, "update")
                self.attachment_id = None
            if self.instance_id:
                self.attach(client)
        if "delete_on_termination" in changed and self.attachment_id:
            self.modify_delete_on_termination(client)
        if "ipv4_addresses" in changed:
            if removed := [a for a in previous.ipv4_addresses if a not in self.ipv4_addresses]:
                client.call(
                    service_name,
                    "unassign-private-ip-addresses",
                    None,
                    NetworkInterfaceId=self.id,
                    PrivateIpAddresses=removed,
                )
            if added := [a for a in self.ipv4_addresses if a not in previous.ipv4_addresses]:
                self.assign_ipv4_addresses(client, added)
        if "ipv6_addresses" in changed:
            if removed := [a for a in previous.ipv6_addresses if a not in self.ipv6_addresses]:
                client.call(
                    service_name, "unassign-ipv6-addresses", None, NetworkInterfaceId=self.id, Ipv6Addresses=removed
                )
            if added := [a for a in self.ipv6_addresses if a not in previous.ipv6_addresses]:
                client.call(
                    service_name, "assign-ipv6-addresses", None, NetworkInterfaceId=self.id, Ipv6Addresses=added
                )
        if "security_group_ids" in changed:
            self.modify_interface_attribute(client, Groups=self.security_group_ids)
        if "source_dest_check" in changed:
            self.modify_interface_attribute(client, SourceDestCheck={"Value": bool(self.source_dest_check)})
        if "description" in changed:
            self.modify_interface_attribute(client, Description={"Value": self.description or ""})

    def _delete(self, client: AwsClient) -> None:
        if (current := self.describe_if_exists(client)) is None:
            log.info(f"{self.kind} {self.id} is already deleted.")
            return
        if attachment_id := value_in_path(current, ["Attachment", "AttachmentId"]):
            self.detach(client, attachment_id, "delete")
        super()._delete(client)
        self.wait_for(
            client,
            "delete",
            lambda: self.describe_if_exists(client) is None,
            "to be deleted",
            timeout=120,
            interval=2,
        )

    def attach(self, client: AwsClient) -> None:
        self.attachment_id = client.get(
            service_name,
            "attach-network-interface",
            "AttachmentId",
            NetworkInterfaceId=self.id,
            InstanceId=self.instance_id,
            DeviceIndex=self.device_index,
        )  # type: ignore

    def detach(self, client: AwsClient, attachment_id: str, operation: str) -> None:
        client.call(
            service_name,
            "detach-network-interface",
            None,
            expected_errors=["InvalidAttachmentID.NotFound"],
            AttachmentId=attachment_id,
        )

        def detached() -> bool:
            current = self.describe_if_exists(client)
            return current is None or value_in_path(current, ["Attachment", "Status"]) in (None, "detached")

        self.wait_for(client, operation, detached, "to be detached", timeout=120, interval=3)

    def assign_ipv4_addresses(self, client: AwsClient, addresses: List[str]) -> None:
        client.call(
            service_name,
            "assign-private-ip-addresses",
            None,
            NetworkInterfaceId=self.id,
            PrivateIpAddresses=addresses,
            AllowReassignment=True,
        )

    def modify_delete_on_termination(self, client: AwsClient) -> None:
        self.modify_interface_attribute(
            client,
            Attachment={"AttachmentId": self.attachment_id, "DeleteOnTermination": bool(self.delete_on_termination)},
        )

    def modify_interface_attribute(self, client: AwsClient, **attribute: Any) -> None:
        client.call(
            service_name, "modify-network-interface-attribute", None, NetworkInterfaceId=self.id, **attribute
        )

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "create-network-interface"),
            AwsApiSpec(service_name, "attach-network-interface"),
            AwsApiSpec(service_name, "detach-network-interface"),
            AwsApiSpec(service_name, "modify-network-interface-attribute"),
            AwsApiSpec(service_name, "assign-private-ip-addresses"),
            AwsApiSpec(service_name, "unassign-private-ip-addresses"),
            AwsApiSpec(service_name, "assign-ipv6-addresses"),
            AwsApiSpec(service_name, "unassign-ipv6-addresses"),
        ]


# endregion

# region Snapshot


@define(eq=False, slots=False)
class AwsEc2Snapshot(EC2Taggable):
    kind: ClassVar[str] = "aws_ec2_snapshot"
    kind_display: ClassVar[str] = "AWS EC2 Snapshot"
    type_name: ClassVar[str] = "ebs-snapshot"
    # only snapshots of this account: the public snapshots are not of interest
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "describe-snapshots", "Snapshots", dict(OwnerIds=["self"]), id_parameter="SnapshotIds"
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(service_name, "delete-snapshot", id_parameter="SnapshotId")
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("SnapshotId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "volume_id": S("VolumeId"),
        "description": S("Description"),
        "encrypted": S("Encrypted"),
        "kms_key_id": S("KmsKeyId"),
        "data_encryption_key_id": S("DataEncryptionKeyId"),
        "owner_alias": S("OwnerAlias"),
        "owner_id": S("OwnerId"),
        "progress": S("Progress"),
        "start_time": S("StartTime"),
        "snapshot_state": S("State"),
        "state_message": S("StateMessage"),
        "volume_size": S("VolumeSize"),
    }
    volume_id: Optional[str] = field(default=None, metadata={"required": True})
    description: Optional[str] = field(default=None)
    encrypted: Optional[bool] = field(default=None, metadata={"output": True})
    kms_key_id: Optional[str] = field(default=None, metadata={"output": True})
    data_encryption_key_id: Optional[str] = field(default=None, metadata={"output": True})
    owner_alias: Optional[str] = field(default=None, metadata={"output": True})
    owner_id: Optional[str] = field(default=None, metadata={"output": True})
    progress: Optional[str] = field(default=None, metadata={"output": True})
    start_time: Optional[datetime] = field(default=None, metadata={"output": True})
    snapshot_state: Optional[str] = field(default=None, metadata={"output": True})
    state_message: Optional[str] = field(default=None, metadata={"output": True})
    volume_size: Optional[int] = field(default=None, metadata={"output": True})

    def _create(self, client: AwsClient) -> None:
        snapshot = client.get(
            service_name, "create-snapshot", **strip_none(VolumeId=self.volume_id, Description=self.description)
        )
        self.id = snapshot["SnapshotId"]  # type: ignore
        self.snapshot_state = snapshot.get("State")  # type: ignore
        self.progress = snapshot.get("Progress")  # type: ignore

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [AwsApiSpec(service_name, "create-snapshot")]


# endregion

# region Peering Connection

# peering connections stay visible for some time in these states
GonePeeringStates = {"deleted", "rejected", "expired"}


@define(eq=False, slots=False)
class AwsEc2VpcPeeringConnection(EC2Taggable):
    kind: ClassVar[str] = "aws_vpc_peering_connection"
    kind_display: ClassVar[str] = "AWS VPC Peering Connection"
    type_name: ClassVar[str] = "vpc-peering-connection"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name,
        "describe-vpc-peering-connections",
        "VpcPeeringConnections",
        id_parameter="VpcPeeringConnectionIds",
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "delete-vpc-peering-connection", id_parameter="VpcPeeringConnectionId"
    )
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("VpcPeeringConnectionId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "vpc_id": S("RequesterVpcInfo", "VpcId"),
        "peer_vpc_id": S("AccepterVpcInfo", "VpcId"),
        "peer_owner_id": S("AccepterVpcInfo", "OwnerId"),
        "peer_region": S("AccepterVpcInfo", "Region"),
        "allow_dns_resolution_from_remote_vpc": S(
            "RequesterVpcInfo", "PeeringOptions", "AllowDnsResolutionFromRemoteVpc"
        ),
        "peer_allow_dns_resolution_from_remote_vpc": S(
            "AccepterVpcInfo", "PeeringOptions", "AllowDnsResolutionFromRemoteVpc"
        ),
        "status_code": S("Status", "Code"),
        "status_message": S("Status", "Message"),
        "expiration_time": S("ExpirationTime"),
    }
    vpc_id: Optional[str] = field(default=None, metadata={"required": True})
    peer_vpc_id: Optional[str] = field(default=None, metadata={"required": True})
    peer_owner_id: Optional[str] = field(default=None)
    peer_region: Optional[str] = field(default=None)
    allow_dns_resolution_from_remote_vpc: Optional[bool] = field(default=None, metadata={"updatable": True})
    peer_allow_dns_resolution_from_remote_vpc: Optional[bool] = field(default=None, metadata={"updatable": True})
    status_code: Optional[str] = field(default=None, metadata={"output": True})
    status_message: Optional[str] = field(default=None, metadata={"output": True})
    expiration_time: Optional[datetime] = field(default=None, metadata={"output": True})

    @classmethod
    def exists(cls, js: Json) -> bool:
        return js.get("Status", {}).get("Code") not in GonePeeringStates  # type: ignore

    def create_request(self) -> Json:
        return strip_none(
            VpcId=self.vpc_id, PeerVpcId=self.peer_vpc_id, PeerOwnerId=self.peer_owner_id, PeerRegion=self.peer_region
        )

    def _create(self, client: AwsClient) -> None:
        connection = client.get(
            service_name, "create-vpc-peering-connection", "VpcPeeringConnection", **self.create_request()
        )
        self.id = connection["VpcPeeringConnectionId"]  # type: ignore
        self.wait_for_status(client, "pending-acceptance")
        if self.peer_region and self.peer_region != client.region:
            # accepted in the region of the peer: options can be set once the connection is active
            client.for_region(self.peer_region).call(
                service_name, "accept-vpc-peering-connection", None, VpcPeeringConnectionId=self.id
            )
        else:
            client.call(service_name, "accept-vpc-peering-connection", None, VpcPeeringConnectionId=self.id)
            self.wait_for_status(client, "active")
            if self.peering_options():
                self.modify_options(client)

    def _update(self, client: AwsClient, previous: AwsResource, changed: Set[str]) -> None:
        if changed & {"allow_dns_resolution_from_remote_vpc", "peer_allow_dns_resolution_from_remote_vpc"}:
            self.modify_options(client)

    def wait_for_status(self, client: AwsClient, status: str) -> None:
        def reached() -> bool:
            current = self.describe_if_exists(client)
            return current is not None and value_in_path(current, ["Status", "Code"]) == status

        self.wait_for(
            client,
            "create",
            reached,
            f"to be {status}",
            timeout=120,
            interval=5,
            retry_on_exception=is_not_found_error,
        )

    def peering_options(self) -> Json:
        def options(allow_dns_resolution: Optional[bool]) -> Optional[Json]:
            if allow_dns_resolution is None:
                return None
            return {"AllowDnsResolutionFromRemoteVpc": allow_dns_resolution}

        return strip_none(
            RequesterPeeringConnectionOptions=options(self.allow_dns_resolution_from_remote_vpc),
            AccepterPeeringConnectionOptions=options(self.peer_allow_dns_resolution_from_remote_vpc),
        )

    def modify_options(self, client: AwsClient) -> None:
        client.call(
            service_name,
            "modify-vpc-peering-connection-options",
            None,
            VpcPeeringConnectionId=self.id,
            **self.peering_options(),
        )

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [
            AwsApiSpec(service_name, "create-vpc-peering-connection"),
            AwsApiSpec(service_name, "accept-vpc-peering-connection"),
            AwsApiSpec(service_name, "modify-vpc-peering-connection-options"),
        ]


# endregion

# region Egress Only Internet Gateway


@define(eq=False, slots=False)
class AwsEc2EgressOnlyInternetGateway(EC2Taggable):
    """
    Outbound only ipv6 traffic for a vpc.
    The gateway is bound to its vpc for its whole lifetime.
    """

    kind: ClassVar[str] = "aws_ec2_egress_only_internet_gateway"
    kind_display: ClassVar[str] = "AWS EC2 Egress Only Internet Gateway"
    type_name: ClassVar[str] = "egress-only-internet-gateway"
    api_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name,
        "describe-egress-only-internet-gateways",
        "EgressOnlyInternetGateways",
        id_parameter="EgressOnlyInternetGatewayIds",
    )
    delete_spec: ClassVar[AwsApiSpec] = AwsApiSpec(
        service_name, "delete-egress-only-internet-gateway", id_parameter="EgressOnlyInternetGatewayId"
    )
    mapping: ClassVar[Dict[str, Bender]] = {
        "id": S("EgressOnlyInternetGatewayId"),
        "tags": S("Tags", default=[]) >> UserTags(),
        "vpc_id": S("Attachments", 0, "VpcId"),
        "attachment_state": S("Attachments", 0, "State"),
    }
    vpc_id: Optional[str] = field(default=None, metadata={"required": True})
    attachment_state: Optional[str] = field(default=None, metadata={"output": True})

    def _create(self, client: AwsClient) -> None:
        gateway = client.get(
            service_name, "create-egress-only-internet-gateway", "EgressOnlyInternetGateway", VpcId=self.vpc_id
        )
        self.id = gateway["EgressOnlyInternetGatewayId"]  # type: ignore

    @classmethod
    def called_mutator_apis(cls) -> List[AwsApiSpec]:
        return super().called_mutator_apis() + [AwsApiSpec(service_name, "create-egress-only-internet-gateway")]


# endregion


resources: List[type] = [
    AwsEc2Vpc,
    AwsEc2Subnet,
    AwsEc2InternetGateway,
    AwsEc2NatGateway,
    AwsEc2ElasticIp,
    AwsEc2SecurityGroup,
    AwsEc2NetworkAcl,
    AwsEc2RouteTable,
    AwsEc2Volume,
    AwsEc2VolumeAttachment,
    AwsEc2KeyPair,
    AwsEc2DhcpOptions,
    AwsEc2LaunchTemplate,
    AwsEc2Instance,
    AwsEc2NetworkInterface,
    AwsEc2Snapshot,
    AwsEc2VpcPeeringConnection,
    AwsEc2EgressOnlyInternetGateway,
]
