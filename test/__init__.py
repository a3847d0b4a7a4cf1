from pytest import fixture

from gyro_plugin_aws.aws_client import AwsClient
from gyro_plugin_aws.configuration import AwsConfig
from gyro_plugin_aws.graph import Graph
from test.resources import RecordingSession


@fixture
def boto_session() -> RecordingSession:
    return RecordingSession()


@fixture
def aws_config(boto_session: RecordingSession) -> AwsConfig:
    # never sleep while waiting for a provider state
    config = AwsConfig(access_key_id="foo", secret_access_key="bar", region="us-east-1", wait_interval_override=0)
    config.sessions().session_class_factory = boto_session  # type: ignore
    return config


@fixture
def aws_client(aws_config: AwsConfig) -> AwsClient:
    return AwsClient(aws_config, "123456789012", region="us-east-1")


@fixture
def graph() -> Graph:
    return Graph()
