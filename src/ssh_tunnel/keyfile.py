"""Transient on-disk storage of private key material."""

import os
import stat
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager

from .exceptions import ConfigurationError, KeyFileError
from .logging import get_logger

logger = get_logger(__name__)

KEY_FILE_PREFIX = "ssh-key-"
KEY_FILE_MODE = stat.S_IRUSR | stat.S_IWUSR


def write_key_to_file(key_material: str, directory: str | None = None) -> str:
    """Write private key material to a uniquely named, owner-only file.

    Args:
        key_material: Private key contents (PEM/OpenSSH format)
        directory: Target directory (system temp dir when None)

    Returns:
        Canonical absolute path of the key file; the caller must remove it

    Raises:
        ConfigurationError: If key material is empty
        KeyFileError: If the file cannot be written
    """
    if not key_material or not key_material.strip():
        raise ConfigurationError("Key must not be empty")

    # OpenSSH rejects keys without a trailing newline
    if not key_material.endswith("\n"):
        key_material += "\n"

    try:
        fd, temp_path = tempfile.mkstemp(prefix=KEY_FILE_PREFIX, dir=directory)
    except OSError as e:
        raise KeyFileError(f"Failed to create key file: {e}") from e

    try:
        with os.fdopen(fd, "w") as f:
            os.chmod(temp_path, KEY_FILE_MODE)
            f.write(key_material)
    except OSError as e:
        remove_key_file(temp_path)
        raise KeyFileError(f"Failed to write key file: {e}") from e

    path = os.path.realpath(temp_path)
    logger.debug("Key file written", path=path)
    return path


def remove_key_file(path: str | None) -> None:
    """Delete a key file, ignoring every error."""
    if not path:
        return

    try:
        os.unlink(path)
        logger.debug("Key file removed", path=path)
    except FileNotFoundError:
        logger.debug("Key file already gone", path=path)
    except OSError as e:
        logger.warning("Failed to remove key file", path=path, error=str(e))


@contextmanager
def key_file(key_material: str, directory: str | None = None) -> Iterator[str]:
    """Context manager yielding a key file path that is removed on exit."""
    path = write_key_to_file(key_material, directory)
    try:
        yield path
    finally:
        remove_key_file(path)
