from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Optional

from botocore.config import Config
from botocore.exceptions import ClientError
from retrying import retry

from gyro_plugin_aws.configuration import AwsConfig
from gyro_plugin_aws.json import utc_str, value_in_path
from gyro_plugin_aws.types import Json, JsonElement
from gyro_plugin_aws.utils import log_runtime

log = logging.getLogger("gyro.plugins.aws")

ThrottlingErrors = {
    "EC2ThrottledException",
    "RequestThrottled",
    "RequestThrottledException",
    "ThrottledException",
    "Throttling",
    "ThrottlingException",
}
RetryableErrors = ThrottlingErrors | {
    "LimitExceededException",
    "RequestLimitExceeded",
    "RequestTimeout",
    "RequestTimeoutException",
    "TooManyRequestsException",
}
AuthErrors = {"AuthorizationError", "AuthFailure", "AuthFailureException", "UnauthorizedOperation"}


def error_code(e: ClientError) -> str:
    return e.response.get("Error", {}).get("Code") or "Unknown Code"


def is_retryable_exception(e: Exception) -> bool:
    if isinstance(e, ClientError) and error_code(e) in RetryableErrors:
        log.debug("AWS API request limit exceeded or throttling, retrying with exponential backoff")
        return True
    return False


def is_not_found_error(e: Exception) -> bool:
    """
    The provider signals that the targeted entity does not exist (anymore).
    EC2 uses codes like InvalidVpcID.NotFound, InvalidPermission.NotFound or InvalidNatGatewayID.NotFound.
    """
    if not isinstance(e, ClientError):
        return False
    code = error_code(e)
    message = e.response.get("Error", {}).get("Message") or ""
    return code.endswith("NotFound") or code.endswith("NotFoundException") or "does not exist" in message


class AwsClient:
    def __init__(
        self,
        config: AwsConfig,
        account_id: str,
        *,
        role: Optional[str] = None,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        partition: Optional[str] = None,
    ) -> None:
        self.config = config
        self.account_id = account_id
        self.role = role or config.role
        self.profile = profile or config.profile
        self.region = region or config.region
        self.partition = partition or config.partition

    def __to_json(self, node: Any, **kwargs: Any) -> JsonElement:
        if node is None or isinstance(node, (str, int, float, bool)):
            return node
        elif isinstance(node, list):
            return [self.__to_json(item, **kwargs) for item in node]
        elif isinstance(node, dict):
            return {key: self.__to_json(value, **kwargs) for key, value in node.items()}
        elif isinstance(node, datetime):
            return utc_str(node)
        elif isinstance(node, bytes):
            return node.decode("utf-8")
        else:
            raise AttributeError(f"Unsupported type: {type(node)}")

    def call_single(self, aws_service: str, action: str, result_name: Optional[str] = None, **kwargs: Any) -> Any:
        arg_info = ""
        if kwargs:
            arg_info += " with args " + ", ".join([f"{key}={value}" for key, value in kwargs.items()])
        log.debug(f"[Aws] calling service={aws_service} action={action}{arg_info}")
        py_action = action.replace("-", "_")
        # adaptive mode allows automated client-side throttling
        config = Config(retries={"max_attempts": self.config.max_attempts, "mode": "adaptive"})
        client = self.config.sessions().client(
            aws_account=self.account_id,
            aws_role=self.role,
            aws_profile=self.profile,
            aws_service=aws_service,
            region_name=self.region,
            config=config,
            aws_partition=self.partition,
        )

        try:
            if client.can_paginate(py_action):
                paginator = client.get_paginator(py_action)
                result: List[Json] = []
                for page in paginator.paginate(**kwargs):
                    log.debug(f"[Aws] Next page for service={aws_service} action={action}{arg_info}")
                    next_page: Json = self.__to_json(page)  # type: ignore
                    if result_name is None:
                        # the whole object is appended
                        result.append(next_page)
                    else:
                        child = value_in_path(next_page, result_name)
                        if isinstance(child, list):
                            result.extend(child)
                        elif child is not None:
                            result.append(child)
                log.debug(f"[Aws] called service={aws_service} action={action}{arg_info}: {len(result)} results.")
                return result
            else:
                response = getattr(client, py_action)(**kwargs)
                single: Json = self.__to_json(response)  # type: ignore
                log.debug(f"[Aws] called service={aws_service} action={action}{arg_info}: single result")
                return value_in_path(single, result_name) if result_name else single
        finally:
            client.close()

    @log_runtime
    @retry(  # type: ignore
        stop_max_attempt_number=10,  # 10 attempts: 1000 max 60000: max wait time is 5 minutes
        wait_exponential_multiplier=1000,
        wait_exponential_max=60000,
        retry_on_exception=is_retryable_exception,
    )
    def call(
        self,
        aws_service: str,
        action: str,
        result_name: Optional[str] = None,
        expected_errors: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> Any:
        """
        Call the given action of the given service.
        Errors with a code listed in expected_errors are logged and yield None, all other errors are raised.
        """
        try:
            return self.call_single(aws_service, action, result_name, **kwargs)
        except ClientError as e:
            code = error_code(e)
            if code in (expected_errors or []):
                log.debug(f"Expected error: {code}")
                return None
            elif code in AuthErrors or code.lower().startswith("accessdenied"):
                log.warning(
                    f"Access denied to call service {aws_service} with action {action} code {code} "
                    f"in account {self.account_id} region {self.region}: {e}"
                )
            raise

    def list(
        self,
        aws_service: str,
        action: str,
        result_name: Optional[str] = None,
        expected_errors: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> List[Any]:
        res = self.call(aws_service, action, result_name, expected_errors, **kwargs)
        if res is None:
            return []
        elif isinstance(res, list):
            return res
        else:
            return [res]

    def get(
        self,
        aws_service: str,
        action: str,
        result_name: Optional[str] = None,
        expected_errors: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> Optional[Json]:
        return self.call(aws_service, action, result_name, expected_errors, **kwargs)  # type: ignore

    def for_region(self, region: str) -> AwsClient:
        return AwsClient(
            self.config,
            self.account_id,
            role=self.role,
            profile=self.profile,
            region=region,
            partition=self.partition,
        )

