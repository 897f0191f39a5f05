"""ssh-bastion-tunnel - supervise an ssh client holding a local port forward."""

from .command import SERVER_ALIVE_INTERVAL, build_ssh_command, format_command
from .config import (
    DEFAULT_LOCAL_PORT,
    DEFAULT_SSH_PORT,
    SupervisorSettings,
    TunnelConfig,
    validate_config,
)
from .exceptions import (
    AlreadyRunningError,
    BinaryNotFoundError,
    ConfigurationError,
    KeyFileError,
    KeyGenerationError,
    TunnelError,
    TunnelEstablishmentError,
)
from .keyfile import key_file, remove_key_file, write_key_to_file
from .keygen import KeyPair, generate_key_pair
from .logging import get_logger, setup_logging
from .process import ProcessStatus, ProcessSupervisor, SupervisorState
from .tunnel import Tunnel

__version__ = "0.1.0"


__all__ = [
    # High-level API
    "Tunnel",
    "generate_key_pair",
    "KeyPair",
    # Configuration
    "TunnelConfig",
    "SupervisorSettings",
    "validate_config",
    "DEFAULT_SSH_PORT",
    "DEFAULT_LOCAL_PORT",
    # Building blocks
    "build_ssh_command",
    "format_command",
    "SERVER_ALIVE_INTERVAL",
    "write_key_to_file",
    "remove_key_file",
    "key_file",
    "ProcessSupervisor",
    "ProcessStatus",
    "SupervisorState",
    # Exceptions
    "TunnelError",
    "ConfigurationError",
    "KeyFileError",
    "AlreadyRunningError",
    "TunnelEstablishmentError",
    "BinaryNotFoundError",
    "KeyGenerationError",
    # Logging
    "get_logger",
    "setup_logging",
]
