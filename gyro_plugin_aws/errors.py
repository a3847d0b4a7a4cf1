from typing import List


class GyroAwsError(Exception):
    """
    Base class of all errors raised by this plugin.
    Errors reported by the provider are not wrapped: they surface as botocore ClientError.
    """


class ConfigurationError(GyroAwsError):
    """
    The configuration of a resource or finder can not be used for the requested operation.
    Raised before any provider call is issued.
    """


class ValidationError(ConfigurationError):
    def __init__(self, kind: str, errors: List[str]) -> None:
        self.kind = kind
        self.errors = errors
        super().__init__(f"Invalid configuration of {kind}: " + " ".join(errors))


class WaitTimeoutError(GyroAwsError):
    def __init__(self, description: str, timeout: float) -> None:
        self.description = description
        self.timeout = timeout
        super().__init__(f"Waited {timeout:.0f} seconds for {description} without success.")


class ProviderStateError(GyroAwsError):
    """
    The provider reports a terminal failure state for a resource we are waiting for.
    """
