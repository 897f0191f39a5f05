"""Tunnel configuration models and validation."""

from collections.abc import Mapping
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .exceptions import ConfigurationError
from .logging import get_logger
from .utils import is_blank, sanitize_log_data

logger = get_logger(__name__)

DEFAULT_SSH_PORT = 22
DEFAULT_LOCAL_PORT = 33006

# Order matters: missing fields are reported in this order.
REQUIRED_FIELDS = (
    "user",
    "sshHost",
    "sshPort",
    "localPort",
    "remoteHost",
    "remotePort",
    "privateKey",
)

DEFAULTS: dict[str, Any] = {
    "sshPort": DEFAULT_SSH_PORT,
    "localPort": DEFAULT_LOCAL_PORT,
    "compression": False,
}


def _field(alias: str, name: str, **kwargs: Any) -> Any:
    return Field(
        validation_alias=AliasChoices(alias, name),
        serialization_alias=alias,
        **kwargs,
    )


class TunnelConfig(BaseModel):
    """Validated configuration of a single local -> remote forward."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    user: str = Field(min_length=1, description="Login user on the bastion")
    ssh_host: str = _field("sshHost", "ssh_host", min_length=1)
    ssh_port: int = _field(
        "sshPort", "ssh_port", default=DEFAULT_SSH_PORT, ge=1, le=65535
    )
    local_port: int = _field(
        "localPort", "local_port", default=DEFAULT_LOCAL_PORT, ge=1, le=65535
    )
    remote_host: str = _field("remoteHost", "remote_host", min_length=1)
    remote_port: int = _field("remotePort", "remote_port", ge=1, le=65535)
    private_key: str = _field(
        "privateKey", "private_key", min_length=1, repr=False
    )
    compression: bool = Field(default=False)
    strict_host_key_checking: bool = _field(
        "strictHostKeyChecking",
        "strict_host_key_checking",
        default=False,
        description="Verify the bastion host key; off by default",
    )

    @field_validator("ssh_port", "local_port", "remote_port", mode="before")
    @classmethod
    def reject_bool_ports(cls, v: Any) -> Any:
        """Booleans are ints to Python but never a port number."""
        if isinstance(v, bool):
            raise ValueError("Port must be a number")
        return v

    @property
    def forward_spec(self) -> str:
        """Local forward spec in ``localPort:remoteHost:remotePort`` form."""
        return f"{self.local_port}:{self.remote_host}:{self.remote_port}"

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.ssh_host}"


class SupervisorSettings(BaseModel):
    """Settings of the process supervisor, independent from any tunnel."""

    model_config = ConfigDict(
        str_strip_whitespace=True, validate_assignment=True, extra="forbid"
    )

    ssh_binary: str = Field(default="ssh", min_length=1, description="ssh client")
    settle_delay: float = Field(
        default=1.0, gt=0, le=30.0, description="Wait after spawn before checking"
    )
    drain_timeout: float = Field(
        default=2.0, gt=0, le=30.0, description="Time allowed to collect output"
    )
    key_dir: str | None = Field(
        default=None, description="Directory for transient key files"
    )


def _canonical_name(name: str) -> str:
    for field_name, info in TunnelConfig.model_fields.items():
        if name == field_name and isinstance(info.serialization_alias, str):
            return info.serialization_alias
    return name


def validate_config(config: Mapping[str, Any] | TunnelConfig) -> TunnelConfig:
    """Apply defaults and validate a tunnel configuration mapping.

    Keys may be given in camelCase (``sshHost``) or snake_case
    (``ssh_host``). A field counts as missing when it is absent, ``None``
    or a blank string.

    Args:
        config: Field -> value mapping, or an already validated config

    Returns:
        Normalized TunnelConfig

    Raises:
        ConfigurationError: Naming every missing required field, or
            wrapping any other validation failure
    """
    if isinstance(config, TunnelConfig):
        return config

    merged: dict[str, Any] = dict(DEFAULTS)
    for key, value in config.items():
        merged[_canonical_name(key)] = value

    missing = tuple(name for name in REQUIRED_FIELDS if is_blank(merged.get(name)))
    if missing:
        logger.debug("Tunnel configuration incomplete", missing=missing)
        raise ConfigurationError(
            f"Missing parameters '{','.join(missing)}'", missing=missing
        )

    try:
        validated = TunnelConfig.model_validate(merged)
    except ValidationError as e:
        logger.debug(
            "Tunnel configuration rejected", config=sanitize_log_data(merged)
        )
        raise ConfigurationError(f"Invalid tunnel configuration: {e}") from e

    return validated
