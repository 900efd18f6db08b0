from typing import Optional


class ProvisioningError(Exception):
    """Base class for every error surfaced by the provisioning client"""

    retryable: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(ProvisioningError, ValueError):
    """Invalid or contradictory configuration, never retried"""


class MissingHandleError(ConfigError, LookupError):
    """An operation handle was required but empty or unset"""


class TransportError(ProvisioningError):
    """The remote API could not be reached or answered garbage"""

    retryable = True


class HandleNotFoundError(TransportError):
    """The remote API does not know the handle yet (eventual consistency)"""


class SubmissionError(ProvisioningError):
    """The mutating request itself was rejected or never reached the API"""


class RemoteFailure(ProvisioningError):
    """The remote system reported the operation as FAILED"""


class WaitTimeoutError(ProvisioningError, TimeoutError):
    def __init__(self, elapsed: float, last_status: Optional[str]):
        self.elapsed = elapsed
        self.last_status = last_status
        super().__init__(
            f"Operation did not complete within {elapsed:.1f}s "
            f"(last status: {last_status or 'unknown'})"
        )


class WaitCancelledError(ProvisioningError):
    """The caller abandoned the wait, the remote operation may still be running"""


class OperationAbortedError(ProvisioningError):
    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        self.last_error = last_error
        super().__init__(message)


def describe_validation_error(error) -> str:
    """Flattens a pydantic ValidationError into one readable line"""
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc']) or 'config'}: {err['msg']}"
        for err in error.errors()
    )
