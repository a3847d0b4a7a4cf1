import logging
import time
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, TypeVar

from botocore.exceptions import ConnectionClosedError, CredentialRetrievalError
from prometheus_client import Counter
from retrying import RetryError, Retrying

from gyro_plugin_aws.errors import WaitTimeoutError
from gyro_plugin_aws.json_bender import Bender
from gyro_plugin_aws.types import Json

log = logging.getLogger("gyro.plugins.aws")

metrics_session_exceptions = Counter(
    "gyro_plugin_aws_session_exceptions_total",
    "Unhandled AWS Plugin Session Exceptions",
)
metrics_wait_timeouts = Counter(
    "gyro_plugin_aws_wait_timeouts_total",
    "Number of waits for a provider state that timed out",
    ["kind"],
)

DecoratedFn = TypeVar("DecoratedFn", bound=Callable[..., Any])

# tags with this prefix are maintained by AWS and can not be changed
AwsTagPrefix = "aws:"


def retry_on_session_error(e: Exception) -> bool:
    if isinstance(e, (ConnectionClosedError, CredentialRetrievalError)):
        metrics_session_exceptions.inc()
        return True
    return False


def global_region_by_partition(partition: str) -> str:
    if partition == "aws-us-gov":
        return "us-gov-west-1"
    elif partition == "aws-cn":
        return "cn-north-1"
    else:
        return "us-east-1"


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    elif isinstance(value, str):
        return value.strip() == ""
    elif isinstance(value, (list, dict, set)):
        return len(value) == 0
    return False


def strip_none(**kwargs: Any) -> Json:
    """
    Build request parameters: None values are not sent to the provider.
    """
    return {k: v for k, v in kwargs.items() if v is not None}


def tags_as_dict(tags: Optional[List[Json]]) -> Dict[str, str]:
    return {tag["Key"]: tag.get("Value", "") for tag in tags or [] if not tag["Key"].startswith(AwsTagPrefix)}


def tags_as_list(tags: Dict[str, str]) -> List[Json]:
    return [{"Key": k, "Value": v} for k, v in tags.items()]


class UserTags(Bender):
    """
    Tags as dictionary, without the tags maintained by AWS.
    """

    def execute(self, source: List[Json]) -> Dict[str, str]:
        return tags_as_dict(source)


def never(_: Exception) -> bool:
    return False


def wait_until(
    condition: Callable[[], bool],
    *,
    description: str,
    timeout: float,
    interval: float,
    retry_on_exception: Callable[[Exception], bool] = never,
    kind: str = "",
) -> None:
    """
    Poll the given condition with a fixed interval until it holds.
    :param condition: called until it returns True.
    :param description: what we are waiting for - used in logs and errors.
    :param timeout: maximum number of seconds to wait.
    :param interval: number of seconds between two polls.
    :param retry_on_exception: exceptions raised by the condition are retried, if this function returns True.
    :param kind: the resource kind, used as metric label.
    :raises WaitTimeoutError: if the condition does not hold within the given timeout.
    """
    log.info(f"Wait for {description} (timeout {timeout}s, check every {interval}s)")
    retrying = Retrying(
        stop_max_delay=int(timeout * 1000),
        wait_fixed=int(interval * 1000),
        retry_on_result=lambda result: result is not True,
        retry_on_exception=retry_on_exception,
        wrap_exception=True,
    )
    try:
        retrying.call(condition)
    except RetryError as e:
        attempt = e.last_attempt
        if attempt.has_exception and not retry_on_exception(attempt.value[1]):
            raise attempt.value[1].with_traceback(attempt.value[2])
        metrics_wait_timeouts.labels(kind=kind).inc()
        raise WaitTimeoutError(description, timeout) from e


def log_runtime(f: DecoratedFn) -> DecoratedFn:
    @wraps(f)
    def timer(*args: Any, **kwargs: Any) -> Any:
        start = time.time()
        ret = f(*args, **kwargs)
        runtime = time.time() - start
        log.debug(f"Runtime of {f.__name__}: {runtime:.3f} seconds")
        return ret

    return timer  # type: ignore
