from typing import ClassVar, Dict, List, Type

from gyro_plugin_aws.resource.ec2 import (
    AwsEc2DhcpOptions,
    AwsEc2EgressOnlyInternetGateway,
    AwsEc2ElasticIp,
    AwsEc2Instance,
    AwsEc2InternetGateway,
    AwsEc2KeyPair,
    AwsEc2LaunchTemplate,
    AwsEc2NatGateway,
    AwsEc2NetworkAcl,
    AwsEc2NetworkInterface,
    AwsEc2RouteTable,
    AwsEc2SecurityGroup,
    AwsEc2Snapshot,
    AwsEc2Subnet,
    AwsEc2Volume,
    AwsEc2Vpc,
    AwsEc2VpcPeeringConnection,
)
from gyro_plugin_aws.resource.finder import AwsEc2TaggableFinder, AwsFinder, filter_names


class AwsEc2VpcFinder(AwsEc2TaggableFinder[AwsEc2Vpc]):
    resource = AwsEc2Vpc
    filters: ClassVar[Dict[str, str]] = filter_names(
        "cidr",
        "dhcp_options_id",
        "is_default",
        "owner_id",
        "state",
        "vpc_id",
        ipv4_cidr_block="cidr-block-association.cidr-block",
        ipv4_association_id="cidr-block-association.association-id",
        ipv4_association_state="cidr-block-association.state",
        ipv6_cidr_block="ipv6-cidr-block-association.ipv6-cidr-block",
        ipv6_cidr_block_association_id="ipv6-cidr-block-association.association-id",
        ipv6_cidr_block_association_state="ipv6-cidr-block-association.state",
    )


class AwsEc2SubnetFinder(AwsEc2TaggableFinder[AwsEc2Subnet]):
    resource = AwsEc2Subnet
    filters: ClassVar[Dict[str, str]] = filter_names(
        "availability_zone",
        "availability_zone_id",
        "available_ip_address_count",
        "cidr_block",
        "default_for_az",
        "owner_id",
        "state",
        "subnet_arn",
        "subnet_id",
        "vpc_id",
        ipv6_cidr_block="ipv6-cidr-block-association.ipv6-cidr-block",
        ipv6_cidr_block_association_id="ipv6-cidr-block-association.association-id",
        ipv6_cidr_block_association_state="ipv6-cidr-block-association.state",
    )


class AwsEc2InternetGatewayFinder(AwsEc2TaggableFinder[AwsEc2InternetGateway]):
    resource = AwsEc2InternetGateway
    filters: ClassVar[Dict[str, str]] = filter_names(
        "internet_gateway_id",
        "owner_id",
        attachment_state="attachment.state",
        attachment_vpc_id="attachment.vpc-id",
    )


class AwsEc2NatGatewayFinder(AwsEc2TaggableFinder[AwsEc2NatGateway]):
    resource = AwsEc2NatGateway
    # describe-nat-gateways is the only ec2 describe call with a singular parameter name
    filter_parameter = "Filter"
    filters: ClassVar[Dict[str, str]] = filter_names("nat_gateway_id", "state", "subnet_id", "vpc_id")


class AwsEc2ElasticIpFinder(AwsEc2TaggableFinder[AwsEc2ElasticIp]):
    resource = AwsEc2ElasticIp
    filters: ClassVar[Dict[str, str]] = filter_names(
        "allocation_id",
        "association_id",
        "domain",
        "instance_id",
        "network_border_group",
        "network_interface_id",
        "network_interface_owner_id",
        "private_ip_address",
        "public_ip",
    )


class AwsEc2SecurityGroupFinder(AwsEc2TaggableFinder[AwsEc2SecurityGroup]):
    resource = AwsEc2SecurityGroup
    filters: ClassVar[Dict[str, str]] = filter_names(
        "description",
        "group_id",
        "group_name",
        "owner_id",
        "vpc_id",
        **{
            f"{prefix}_{name}": f"{prefix.replace('_', '-')}.{name.replace('_', '-')}"
            for prefix in ("ip_permission", "egress_ip_permission")
            for name in (
                "cidr",
                "from_port",
                "group_id",
                "group_name",
                "ipv6_cidr",
                "prefix_list_id",
                "protocol",
                "to_port",
                "user_id",
            )
        },
    )


class AwsEc2NetworkAclFinder(AwsEc2TaggableFinder[AwsEc2NetworkAcl]):
    resource = AwsEc2NetworkAcl
    filters: ClassVar[Dict[str, str]] = filter_names(
        "network_acl_id",
        "owner_id",
        "vpc_id",
        default_acl="default",
        association_id="association.association-id",
        association_network_acl_id="association.network-acl-id",
        association_subnet_id="association.subnet-id",
        entry_cidr="entry.cidr",
        entry_icmp_code="entry.icmp.code",
        entry_icmp_type="entry.icmp.type",
        entry_ipv6_cidr="entry.ipv6-cidr",
        entry_port_range_from="entry.port-range.from",
        entry_port_range_to="entry.port-range.to",
        entry_protocol="entry.protocol",
        entry_rule_action="entry.rule-action",
        entry_rule_number="entry.rule-number",
        entry_egress="entry.egress",
    )


class AwsEc2RouteTableFinder(AwsEc2TaggableFinder[AwsEc2RouteTable]):
    resource = AwsEc2RouteTable
    filters: ClassVar[Dict[str, str]] = filter_names(
        "owner_id",
        "route_table_id",
        "vpc_id",
        association_route_table_association_id="association.route-table-association-id",
        association_route_table_id="association.route-table-id",
        association_subnet_id="association.subnet-id",
        association_main="association.main",
        **{
            f"route_{name}": f"route.{name.replace('_', '-')}"
            for name in (
                "destination_cidr_block",
                "destination_ipv6_cidr_block",
                "destination_prefix_list_id",
                "egress_only_internet_gateway_id",
                "gateway_id",
                "instance_id",
                "nat_gateway_id",
                "transit_gateway_id",
                "origin",
                "state",
                "vpc_peering_connection_id",
            )
        },
    )


class AwsEc2VolumeFinder(AwsEc2TaggableFinder[AwsEc2Volume]):
    resource = AwsEc2Volume
    filters: ClassVar[Dict[str, str]] = filter_names(
        "availability_zone",
        "create_time",
        "encrypted",
        "multi_attach_enabled",
        "size",
        "snapshot_id",
        "status",
        "volume_id",
        "volume_type",
        attachment_attach_time="attachment.attach-time",
        attachment_delete_on_termination="attachment.delete-on-termination",
        attachment_device="attachment.device",
        attachment_instance_id="attachment.instance-id",
        attachment_status="attachment.status",
    )


class AwsEc2KeyPairFinder(AwsEc2TaggableFinder[AwsEc2KeyPair]):
    resource = AwsEc2KeyPair
    filters: ClassVar[Dict[str, str]] = filter_names("key_pair_id", "fingerprint", "key_name")


class AwsEc2DhcpOptionsFinder(AwsEc2TaggableFinder[AwsEc2DhcpOptions]):
    resource = AwsEc2DhcpOptions
    filters: ClassVar[Dict[str, str]] = filter_names("dhcp_options_id", "key", "value", "owner_id")


class AwsEc2LaunchTemplateFinder(AwsEc2TaggableFinder[AwsEc2LaunchTemplate]):
    resource = AwsEc2LaunchTemplate
    filters: ClassVar[Dict[str, str]] = filter_names("create_time", "launch_template_name")


class AwsEc2InstanceFinder(AwsEc2TaggableFinder[AwsEc2Instance]):
    resource = AwsEc2Instance
    filters: ClassVar[Dict[str, str]] = filter_names(
        "affinity",
        "architecture",
        "availability_zone",
        "client_token",
        "dns_name",
        "host_id",
        "hypervisor",
        "image_id",
        "instance_id",
        "instance_lifecycle",
        "instance_state_code",
        "instance_state_name",
        "instance_type",
        "ip_address",
        "kernel_id",
        "key_name",
        "launch_index",
        "launch_time",
        "monitoring_state",
        "owner_id",
        "placement_group_name",
        "platform",
        "private_dns_name",
        "private_ip_address",
        "product_code",
        "ramdisk_id",
        "reason",
        "requester_id",
        "reservation_id",
        "root_device_name",
        "root_device_type",
        "source_dest_check",
        "spot_instance_request_id",
        "state_reason_code",
        "state_reason_message",
        "subnet_id",
        "tenancy",
        "virtualization_type",
        "vpc_id",
        block_device_mapping_attach_time="block-device-mapping.attach-time",
        block_device_mapping_delete_on_termination="block-device-mapping.delete-on-termination",
        block_device_mapping_device_name="block-device-mapping.device-name",
        block_device_mapping_status="block-device-mapping.status",
        block_device_mapping_volume_id="block-device-mapping.volume-id",
        hibernation_options_configured="hibernation-options.configured",
        iam_instance_profile_arn="iam-instance-profile.arn",
        instance_group_id="instance.group-id",
        instance_group_name="instance.group-name",
        network_interface_addresses_private_ip_address="network-interface.addresses.private-ip-address",
        network_interface_addresses_primary="network-interface.addresses.primary",
        network_interface_addresses_association_public_ip="network-interface.addresses.association.public-ip",
        network_interface_association_public_ip="network-interface.association.public-ip",
        network_interface_association_ip_owner_id="network-interface.association.ip-owner-id",
        network_interface_association_allocation_id="network-interface.association.allocation-id",
        network_interface_association_association_id="network-interface.association.association-id",
        network_interface_attachment_attachment_id="network-interface.attachment.attachment-id",
        network_interface_attachment_instance_id="network-interface.attachment.instance-id",
        network_interface_attachment_device_index="network-interface.attachment.device-index",
        network_interface_attachment_status="network-interface.attachment.status",
        network_interface_attachment_delete_on_termination="network-interface.attachment.delete-on-termination",
        network_interface_availability_zone="network-interface.availability-zone",
        network_interface_description="network-interface.description",
        network_interface_group_id="network-interface.group-id",
        network_interface_group_name="network-interface.group-name",
        network_interface_ipv6_address="network-interface.ipv6-addresses.ipv6-address",
        network_interface_mac_address="network-interface.mac-address",
        network_interface_network_interface_id="network-interface.network-interface-id",
        network_interface_owner_id="network-interface.owner-id",
        network_interface_private_dns_name="network-interface.private-dns-name",
        network_interface_requester_managed="network-interface.requester-managed",
        network_interface_source_dest_check="network-interface.source-dest-check",
        network_interface_status="network-interface.status",
        network_interface_subnet_id="network-interface.subnet-id",
        network_interface_vpc_id="network-interface.vpc-id",
        product_code_type="product-code.type",
    )


class AwsEc2NetworkInterfaceFinder(AwsEc2TaggableFinder[AwsEc2NetworkInterface]):
    resource = AwsEc2NetworkInterface
    filters: ClassVar[Dict[str, str]] = filter_names(
        "availability_zone",
        "description",
        "group_id",
        "group_name",
        "mac_address",
        "network_interface_id",
        "owner_id",
        "private_ip_address",
        "private_dns_name",
        "requester_id",
        "requester_managed",
        "source_dest_check",
        "status",
        "subnet_id",
        "vpc_id",
        addresses_private_ip_address="addresses.private-ip-address",
        addresses_primary="addresses.primary",
        addresses_association_public_ip="addresses.association.public-ip",
        addresses_association_owner_id="addresses.association.owner-id",
        association_association_id="association.association-id",
        association_allocation_id="association.allocation-id",
        association_ip_owner_id="association.ip-owner-id",
        association_public_ip="association.public-ip",
        association_public_dns_name="association.public-dns-name",
        attachment_attachment_id="attachment.attachment-id",
        attachment_attach_time="attachment.attach.time",
        attachment_delete_on_termination="attachment.delete-on-termination",
        attachment_device_index="attachment.device-index",
        attachment_instance_id="attachment.instance-id",
        attachment_instance_owner_id="attachment.instance-owner-id",
        attachment_nat_gateway_id="attachment.nat-gateway-id",
        attachment_status="attachment.status",
        ipv6_address="ipv6-addresses.ipv6-address",
    )


class AwsEc2SnapshotFinder(AwsEc2TaggableFinder[AwsEc2Snapshot]):
    resource = AwsEc2Snapshot
    filters: ClassVar[Dict[str, str]] = filter_names(
        "description",
        "encrypted",
        "owner_alias",
        "owner_id",
        "progress",
        "snapshot_id",
        "start_time",
        "status",
        "volume_id",
        "volume_size",
    )


class AwsEc2VpcPeeringConnectionFinder(AwsEc2TaggableFinder[AwsEc2VpcPeeringConnection]):
    resource = AwsEc2VpcPeeringConnection
    filters: ClassVar[Dict[str, str]] = filter_names(
        "expiration_time",
        "status_code",
        "status_message",
        "vpc_peering_connection_id",
        accepter_vpc_info_cidr_block="accepter-vpc-info.cidr-block",
        accepter_vpc_info_owner_id="accepter-vpc-info.owner-id",
        accepter_vpc_info_vpc_id="accepter-vpc-info.vpc-id",
        requester_vpc_info_cidr_block="requester-vpc-info.cidr-block",
        requester_vpc_info_owner_id="requester-vpc-info.owner-id",
        requester_vpc_info_vpc_id="requester-vpc-info.vpc-id",
    )


class AwsEc2EgressOnlyInternetGatewayFinder(AwsEc2TaggableFinder[AwsEc2EgressOnlyInternetGateway]):
    # only tags can be used to filter egress only internet gateways
    resource = AwsEc2EgressOnlyInternetGateway


finders: List[Type[AwsFinder]] = [  # type: ignore
    AwsEc2VpcFinder,
    AwsEc2SubnetFinder,
    AwsEc2InternetGatewayFinder,
    AwsEc2NatGatewayFinder,
    AwsEc2ElasticIpFinder,
    AwsEc2SecurityGroupFinder,
    AwsEc2NetworkAclFinder,
    AwsEc2RouteTableFinder,
    AwsEc2VolumeFinder,
    AwsEc2KeyPairFinder,
    AwsEc2DhcpOptionsFinder,
    AwsEc2LaunchTemplateFinder,
    AwsEc2InstanceFinder,
    AwsEc2NetworkInterfaceFinder,
    AwsEc2SnapshotFinder,
    AwsEc2VpcPeeringConnectionFinder,
    AwsEc2EgressOnlyInternetGatewayFinder,
]
