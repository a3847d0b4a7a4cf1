import json
import logging
import sys
from argparse import ArgumentParser, Namespace
from typing import Dict, List, Optional

from botocore.exceptions import ClientError

from gyro_plugin_aws import AwsEc2Plugin
from gyro_plugin_aws.configuration import AwsConfig
from gyro_plugin_aws.errors import GyroAwsError
from gyro_plugin_aws.json import to_json
from gyro_plugin_aws.logger import setup_logger

log = logging.getLogger("gyro.cmd")


def key_values(values: Optional[List[str]], option: str) -> Dict[str, str]:
    result = {}
    for value in values or []:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise GyroAwsError(f"{option} expects key=value, got: {value}")
        result[key] = val
    return result


def parse_args(argv: List[str]) -> Namespace:
    parser = ArgumentParser(description="Find existing AWS EC2 resources")
    parser.add_argument("type_name", help="Resource type to find, e.g. vpc or security-group")
    parser.add_argument(
        "--filter",
        help="Filter by field: name=value (can be repeated)",
        dest="filters",
        action="append",
        default=[],
    )
    parser.add_argument(
        "--tag",
        help="Filter by tag: key=value (can be repeated)",
        dest="tags",
        action="append",
        default=[],
    )
    parser.add_argument("--region", help="AWS region (default: from env)", dest="region", default=None)
    parser.add_argument("--profile", help="AWS profile (default: None)", dest="profile", default=None)
    parser.add_argument("--role", help="IAM role to assume (default: None)", dest="role", default=None)
    parser.add_argument("--account", help="AWS account id (default: current)", dest="account", default=None)
    parser.add_argument("--verbose", "-v", help="Verbose logging", dest="verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logger("gyro-aws-find", verbose=args.verbose, json_format=False)
    try:
        query: Dict[str, object] = dict(key_values(args.filters, "--filter"))
        if tags := key_values(args.tags, "--tag"):
            query["tag"] = tags
        plugin = AwsEc2Plugin(AwsConfig(region=args.region, profile=args.profile, role=args.role))
        client = plugin.client(args.account)
        for resource in plugin.find(client, args.type_name, query):
            print(json.dumps({"type": args.type_name, **to_json(resource, strip_nulls=True)}))
    except (GyroAwsError, ClientError) as e:
        log.error(f"Failed to find {args.type_name}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
