import json
from logging import INFO, LogRecord

from gyro_plugin_aws.logger import JsonFormatter


def test_json_format() -> None:
    formatter = JsonFormatter({"level": "levelname", "message": "message"}, static_values={"process": "gyro-aws-find"})
    record = LogRecord("gyro.plugins.aws", INFO, __file__, 1, "Created %s", ("vpc-1",), None)
    assert json.loads(formatter.format(record)) == {"level": "INFO", "message": "Created vpc-1", "process": "gyro-aws-find"}
    assert not formatter.usesTime()
