import json
import os
import sys
from logging import (
    CRITICAL,
    DEBUG,
    WARNING,
    Formatter,
    LogRecord,
    StreamHandler,
    basicConfig,
    getLogger,
)
from typing import Dict, Mapping, Optional

from gyro_plugin_aws.types import Json

# all loggers of this package are children of this one
log = getLogger("gyro")


class JsonFormatter(Formatter):
    """
    Simple json log formatter: every record is rendered as one json object per line.
    """

    def __init__(
        self,
        fmt_dict: Mapping[str, str],
        time_format: str = "%Y-%m-%dT%H:%M:%S",
        static_values: Optional[Dict[str, str]] = None,
    ):
        super().__init__()
        self.fmt_dict = fmt_dict
        self.time_format = time_format
        self.static_values = static_values or {}
        self.__use_time = "asctime" in self.fmt_dict.values()

    def usesTime(self) -> bool:  # noqa: N802
        return self.__use_time

    def format_json(self, record: LogRecord) -> Json:
        record.message = record.getMessage()
        if self.__use_time:
            record.asctime = self.formatTime(record, self.time_format)

        message = {key: record.__dict__[attr] for key, attr in self.fmt_dict.items()}
        message.update(self.static_values)

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            message["exception"] = record.exc_text
        if record.stack_info:
            message["stack_info"] = self.formatStack(record.stack_info)
        return message

    def format(self, record: LogRecord) -> str:
        return json.dumps(self.format_json(record), default=str)


def env_flag(name: str) -> bool:
    return os.environ.get(name, "false").lower() == "true"


def setup_logger(
    proc: str,
    *,
    force: bool = True,
    verbose: bool = False,
    quiet: bool = False,
    level: Optional[str] = None,
    json_format: bool = True,
) -> None:
    # plain text output can be enforced via env var
    if json_format and not env_flag("GYRO_LOG_TEXT"):
        handler = StreamHandler()
        handler.setFormatter(
            JsonFormatter(
                {
                    "timestamp": "asctime",
                    "level": "levelname",
                    "message": "message",
                    "pid": "process",
                    "thread": "threadName",
                },
                static_values={"process": proc},
            )
        )
        basicConfig(handlers=[handler], force=force, level=level)
    else:
        log_format = f"%(asctime)s|{proc}|%(levelname)5s|%(process)d|%(threadName)10s  %(message)s"
        log_format = os.environ.get("GYRO_LOG_FORMAT", log_format)
        basicConfig(format=log_format, datefmt="%y-%m-%d %H:%M:%S", force=force)

    argv = sys.argv[1:]
    if level:
        log.setLevel(level)
    elif verbose or "-v" in argv or "--verbose" in argv or env_flag("GYRO_VERBOSE"):
        log.setLevel(DEBUG)
    elif quiet or "--quiet" in argv or env_flag("GYRO_QUIET"):
        getLogger().setLevel(WARNING)
        log.setLevel(CRITICAL)
