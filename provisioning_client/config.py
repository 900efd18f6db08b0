import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from provisioning_client.errors import ConfigError, describe_validation_error
from provisioning_client.models import OperationKind, WaitPolicies, WaitPolicy

ENV_PREFIX = "IAAS_"

_POLICY_FIELDS = {
    "TIMEOUT": "timeout",
    "POLL_INTERVAL": "min_poll_interval",
    "INITIAL_DELAY": "initial_delay",
    "NOT_FOUND_TOLERANCE": "not_found_tolerance",
}


def clean_url(url: str) -> str:
    """Strips a single trailing slash so handles built from the endpoint stay stable"""
    if len(url) > 1 and url.endswith("/"):
        return url[:-1]
    return url


class ClientConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    endpoint: str
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    request_timeout: float = 60.0

    @field_validator("endpoint")
    @classmethod
    def _clean_endpoint(cls, value: str) -> str:
        return clean_url(value)

    @model_validator(mode="after")
    def _check_credentials(self) -> "ClientConfig":
        if not self.endpoint:
            raise ValueError("API endpoint must be provided")
        if self.token:
            if self.username or self.password:
                raise ValueError("Only provide a token OR a username/password")
        elif not self.username:
            raise ValueError("Neither a token nor a username has been provided")
        elif not self.password:
            raise ValueError("Neither a token nor a password has been provided")
        return self

    @classmethod
    def build(cls, **kwargs) -> "ClientConfig":
        """Same as the constructor but raises ConfigError on invalid input"""
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise ConfigError(describe_validation_error(e)) from e

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        env = os.environ if env is None else env
        return cls.build(
            endpoint=env.get(f"{ENV_PREFIX}API_URL", ""),
            username=env.get(f"{ENV_PREFIX}USERNAME") or None,
            password=env.get(f"{ENV_PREFIX}PASSWORD") or None,
            token=env.get(f"{ENV_PREFIX}TOKEN") or None,
            request_timeout=env.get(f"{ENV_PREFIX}REQUEST_TIMEOUT", "60"),
        )


def load_wait_policies(env: Optional[Mapping[str, str]] = None) -> WaitPolicies:
    """Builds per operation kind wait policies from environment variables.

    ``IAAS_<KIND>_<FIELD>`` wins over ``IAAS_DEFAULT_<FIELD>``, which wins
    over the built-in defaults.
    """
    env = os.environ if env is None else env

    def settings_for(kind: OperationKind) -> dict[str, str]:
        settings = {}
        for suffix, field in _POLICY_FIELDS.items():
            value = env.get(f"{ENV_PREFIX}{kind.value.upper()}_{suffix}") or env.get(
                f"{ENV_PREFIX}DEFAULT_{suffix}"
            )
            if value:
                settings[field] = value
        return settings

    return WaitPolicies.build(
        **{kind.value: WaitPolicy.build(**settings_for(kind)) for kind in OperationKind}
    )

