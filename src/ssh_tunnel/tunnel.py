"""Public Tunnel API tying validation, key handling and supervision together."""

from collections.abc import Mapping
from types import TracebackType
from typing import Any, Literal

from .command import build_ssh_command
from .config import SupervisorSettings, TunnelConfig, validate_config
from .exceptions import (
    AlreadyRunningError,
    BinaryNotFoundError,
    TunnelEstablishmentError,
)
from .keyfile import key_file
from .keygen import KeyPair, generate_key_pair
from .logging import get_logger
from .process import ProcessStatus, ProcessSupervisor
from .utils import find_binary

logger = get_logger(__name__)


class Tunnel:
    """A local port forwarded to a remote host through an ssh bastion.

    Example:
        >>> with Tunnel({
        ...     "user": "deploy",
        ...     "sshHost": "bastion.example.com",
        ...     "remoteHost": "db.internal",
        ...     "remotePort": 3306,
        ...     "privateKey": key,
        ... }) as tunnel:
        ...     connect("127.0.0.1", 33006)
    """

    def __init__(
        self,
        config: Mapping[str, Any] | TunnelConfig | None = None,
        *,
        settings: SupervisorSettings | None = None,
    ):
        """Create a tunnel, opening it right away when config is given.

        Args:
            config: Tunnel configuration (see ``TunnelConfig``)
            settings: Supervisor settings (ssh binary, settle delay, ...)

        Raises:
            ConfigurationError, AlreadyRunningError, TunnelEstablishmentError:
                When ``config`` is given and opening fails
        """
        self.settings = settings or SupervisorSettings()
        self.config: TunnelConfig | None = None
        self._supervisor = ProcessSupervisor(
            settle_delay=self.settings.settle_delay,
            drain_timeout=self.settings.drain_timeout,
        )

        if config:
            self.open(config)

    def open(self, config: Mapping[str, Any] | TunnelConfig) -> bool:
        """Establish the tunnel.

        The private key is written to a transient file for the duration of
        the spawn only and removed whatever the outcome.

        Returns:
            True once the ssh process is running

        Raises:
            AlreadyRunningError: If this tunnel is already open
            ConfigurationError: If configuration or key material is invalid
            TunnelEstablishmentError: If the ssh client cannot be found or
                exits during the settle delay
        """
        if self.is_open:
            raise AlreadyRunningError(
                f"Tunnel already established (pid {self._supervisor.pid})"
            )

        validated = validate_config(config)
        try:
            ssh_binary = find_binary(self.settings.ssh_binary)
        except BinaryNotFoundError as e:
            raise TunnelEstablishmentError(f"Couldn't open SSH tunnel: {e}") from e

        with key_file(validated.private_key, self.settings.key_dir) as key_path:
            argv = build_ssh_command(validated, key_path, ssh_binary=ssh_binary)
            self._supervisor.spawn(argv)

        self.config = validated
        logger.info(
            "Tunnel established",
            local_port=validated.local_port,
            remote=f"{validated.remote_host}:{validated.remote_port}",
            bastion=validated.destination,
            pid=self._supervisor.pid,
        )
        return True

    def status(self) -> ProcessStatus | None:
        """Current status of the ssh process, None when never opened or closed."""
        return self._supervisor.status()

    @property
    def is_open(self) -> bool:
        return self._supervisor.is_running()

    @property
    def pid(self) -> int | None:
        return self._supervisor.pid

    def close(self) -> None:
        """Tear the tunnel down. Safe to call any number of times."""
        try:
            self._supervisor.terminate()
        except Exception as e:
            logger.error("Error closing tunnel", error=str(e))
        finally:
            self.config = None

    @staticmethod
    def generate_key_pair(
        bits: int = 2048,
        key_type: str = "rsa",
        keygen_binary: str = "ssh-keygen",
    ) -> KeyPair:
        """Generate a fresh key pair, see :func:`ssh_tunnel.keygen.generate_key_pair`."""
        return generate_key_pair(
            bits=bits, key_type=key_type, keygen_binary=keygen_binary
        )

    def __enter__(self) -> "Tunnel":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> Literal[False]:
        self.close()
        return False

    def __del__(self) -> None:
        if hasattr(self, "_supervisor"):
            self.close()

    def __repr__(self) -> str:
        if self.config is None:
            return "Tunnel(closed)"
        return (
            f"Tunnel({self.config.local_port} -> "
            f"{self.config.remote_host}:{self.config.remote_port} "
            f"via {self.config.destination}, pid={self.pid})"
        )
