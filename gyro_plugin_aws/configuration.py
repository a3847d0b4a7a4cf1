import logging
import threading
import time
import uuid
from functools import lru_cache
from typing import Any, ClassVar, Dict, Optional, Type

from attrs import define, field
from boto3.session import Session as BotoSession
from botocore.client import BaseClient
from botocore.config import Config as BotoConfig
from retrying import retry

from gyro_plugin_aws.json import from_json as from_js
from gyro_plugin_aws.types import Json
from gyro_plugin_aws.utils import global_region_by_partition, retry_on_session_error

log = logging.getLogger("gyro.plugins.aws")


@define(hash=True, slots=False)
class AwsSessionHolder:
    access_key_id: Optional[str]
    secret_access_key: Optional[str]
    role: Optional[str] = None
    role_override: bool = False
    endpoint_url: Optional[str] = None
    # Only here to override in tests
    session_class_factory: Type[BotoSession] = BotoSession
    kind: ClassVar[str] = "aws_session_holder"
    session_lock: threading.Lock = threading.Lock()

    # noinspection PyUnusedLocal
    @lru_cache(maxsize=128)
    def __direct_session(self, profile: Optional[str], partition: str) -> BotoSession:
        global_region = global_region_by_partition(partition)
        if profile:
            return self.session_class_factory(profile_name=profile, region_name=global_region)
        else:
            return self.session_class_factory(
                aws_access_key_id=self.access_key_id,
                aws_secret_access_key=self.secret_access_key,
                region_name=global_region,
            )

    # noinspection PyUnusedLocal
    @lru_cache(maxsize=128)
    @retry(  # type: ignore
        stop_max_attempt_number=10,
        wait_random_min=1000,
        wait_random_max=6000,
        retry_on_exception=retry_on_session_error,
    )
    def __sts_session(
        self, aws_account: str, aws_role: str, profile: Optional[str], partition: str, cache_key: int
    ) -> BotoSession:
        role = self.role if self.role_override and self.role else aws_role
        role_arn = f"arn:{partition}:iam::{aws_account}:role/{role}"
        session = self.__direct_session(profile, partition)
        sts = session.client("sts")
        log.info(f"Create AWS session by assuming role: {role_arn}.")
        token = sts.assume_role(
            RoleArn=role_arn,
            RoleSessionName=f"gyro-{aws_account}-{str(uuid.uuid4())}",
            DurationSeconds=3600,  # 1 hour
        )
        credentials = token["Credentials"]
        return self.session_class_factory(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=global_region_by_partition(partition),
        )

    def _session(
        self,
        aws_account: str,
        aws_role: Optional[str] = None,
        aws_profile: Optional[str] = None,
        aws_partition: str = "aws",
    ) -> BotoSession:
        """
        Note: the session is not thread safe - caller needs to synchronize access.
        Use the client() method instead.
        """
        if aws_role is None:
            return self.__direct_session(aws_profile, aws_partition)
        else:
            # the assumed role session is valid for one hour: renew it every 10 minutes
            return self.__sts_session(aws_account, aws_role, aws_profile, aws_partition, int(time.time() / 600))

    def client(
        self,
        aws_account: str,
        aws_role: Optional[str],
        aws_profile: Optional[str],
        aws_service: str,
        region_name: Optional[str] = None,
        config: Optional[BotoConfig] = None,
        aws_partition: str = "aws",
    ) -> BaseClient:
        with self.session_lock:
            session = self._session(aws_account, aws_role, aws_profile, aws_partition)
            return session.client(
                aws_service, region_name=region_name, config=config, endpoint_url=self.endpoint_url
            )

    def purge_caches(self) -> None:
        self.__direct_session.cache_clear()
        self.__sts_session.cache_clear()


@define(slots=False)
class AwsConfig:
    kind: ClassVar[str] = "aws"
    access_key_id: Optional[str] = field(
        default=None,
        metadata={"description": "AWS Access Key ID (null to load from env - recommended)"},
    )
    secret_access_key: Optional[str] = field(
        default=None,
        metadata={"description": "AWS Secret Access Key (null to load from env - recommended)"},
    )
    role: Optional[str] = field(default=None, metadata={"description": "IAM role name to assume"})
    role_override: bool = field(
        default=False,
        metadata={"description": "Use the configured role, even if a client asks for a different one"},
    )
    profile: Optional[str] = field(default=None, metadata={"description": "AWS profile to use"})
    region: Optional[str] = field(
        default=None, metadata={"description": "AWS region used by default (null to load from env)"}
    )
    partition: str = field(default="aws", metadata={"description": "AWS partition: aws, aws-cn or aws-us-gov"})
    endpoint_url: Optional[str] = field(
        default=None, metadata={"description": "Use this endpoint instead of the AWS default endpoint"}
    )
    max_attempts: int = field(
        default=5,
        metadata={"description": "Number of attempts of the SDK, before a throttled call is given up."},
    )
    wait_interval_override: Optional[float] = field(
        default=None,
        metadata={"description": "Seconds between two polls while waiting for a resource state (null: default)."},
    )
    wait_timeout_overrides: Dict[str, float] = field(
        factory=dict,
        metadata={
            "description": "Maximum seconds to wait for a resource state by kind and operation.\n"
            'Example: {"aws_ec2_nat_gateway:create": 900}'
        },
    )
    _lock: threading.RLock = field(factory=threading.RLock, init=False, repr=False)
    _holder: Optional[AwsSessionHolder] = field(default=None, init=False, repr=False)

    def sessions(self) -> AwsSessionHolder:
        if self._holder is None:
            with self._lock:
                if self._holder is None:
                    log.debug("Creating a new AWS session holder")
                    self._holder = AwsSessionHolder(
                        access_key_id=self.access_key_id,
                        secret_access_key=self.secret_access_key,
                        role=self.role,
                        role_override=self.role_override,
                        endpoint_url=self.endpoint_url,
                    )
        return self._holder

    def wait_timeout(self, kind: str, operation: str, default: float) -> float:
        return self.wait_timeout_overrides.get(f"{kind}:{operation}", default)

    def wait_interval(self, default: float) -> float:
        return default if self.wait_interval_override is None else self.wait_interval_override

    @staticmethod
    def from_json(json: Json) -> "AwsConfig":
        return from_js(json, AwsConfig)

    def __getstate__(self) -> Dict[str, Any]:
        d = self.__dict__.copy()
        d.pop("_lock", None)
        d.pop("_holder", None)
        return d

    def __setstate__(self, d: Dict[str, Any]) -> None:
        d["_lock"] = threading.RLock()
        d["_holder"] = None
        self.__dict__.update(d)
