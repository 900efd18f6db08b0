from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from provisioning_client.errors import ConfigError, describe_validation_error

PENDING_STATUSES = frozenset({"RUNNING", "QUEUED"})
TARGET_STATUSES = frozenset({"DONE"})
FAILED_STATUS = "FAILED"


class OperationPhase(str, Enum):
    pending = "pending"
    succeeded = "succeeded"
    failed = "failed"


class OperationKind(str, Enum):
    create = "create"
    update = "update"
    delete = "delete"
    default = "default"


class RequestStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str
    message: Optional[str] = None
    payload: Optional[dict[str, Any]] = None


class StatusSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: OperationPhase
    raw_status: str
    message: Optional[str] = None
    payload: Optional[dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase != OperationPhase.pending


class WaitPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    timeout: float = Field(default=3600.0, gt=0)  # 60 minutes
    min_poll_interval: float = Field(default=10.0, ge=0)
    initial_delay: float = Field(default=10.0, ge=0)
    not_found_tolerance: int = Field(default=600, ge=1)

    @classmethod
    def build(cls, **kwargs) -> "WaitPolicy":
        """Same as the constructor but raises ConfigError on invalid input"""
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise ConfigError(describe_validation_error(e)) from e


class WaitPolicies(BaseModel):
    model_config = ConfigDict(frozen=True)

    create: WaitPolicy = WaitPolicy()
    update: WaitPolicy = WaitPolicy()
    delete: WaitPolicy = WaitPolicy()
    default: WaitPolicy = WaitPolicy()

    @classmethod
    def build(cls, **kwargs) -> "WaitPolicies":
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise ConfigError(describe_validation_error(e)) from e

    def for_kind(self, kind: Union[OperationKind, str]) -> WaitPolicy:
        """Returns the policy configured for an operation kind"""
        try:
            kind = OperationKind(kind)
        except ValueError as e:
            raise ConfigError(f"Unknown operation kind: {kind!r}") from e
        return getattr(self, kind.value)


class ResourceSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: str = Field(default="POST", pattern="^(POST|PUT|PATCH|DELETE)$")
    path: str
    body: Optional[dict[str, Any]] = None
