"""Construction of the ssh command line for a local forward."""

import shlex
from collections.abc import Sequence

from .config import TunnelConfig

SERVER_ALIVE_INTERVAL = 15


def build_ssh_command(
    config: TunnelConfig, key_file: str, ssh_binary: str = "ssh"
) -> list[str]:
    """Build the argv of an ssh client holding a single local forward.

    The client runs without a pseudo-terminal or remote command, never
    prompts (BatchMode) and only offers the given public key.

    Args:
        config: Validated tunnel configuration
        key_file: Path of the private key file
        ssh_binary: ssh executable (name or path)

    Returns:
        Argument list suitable for ``subprocess.Popen``
    """
    host_key_checking = "yes" if config.strict_host_key_checking else "no"

    argv = [
        ssh_binary,
        "-p",
        str(config.ssh_port),
        config.destination,
        "-L",
        config.forward_spec,
        "-i",
        key_file,
        "-N",
        "-n",
        "-T",
        "-o",
        f"ServerAliveInterval={SERVER_ALIVE_INTERVAL}",
        "-o",
        f"StrictHostKeyChecking={host_key_checking}",
        "-o",
        "BatchMode=yes",
        "-o",
        "PreferredAuthentications=publickey",
    ]

    if config.compression:
        argv.append("-C")

    return argv


def format_command(argv: Sequence[str]) -> str:
    """Render argv as a shell-quoted string for logs."""
    return " ".join(shlex.quote(arg) for arg in argv)
