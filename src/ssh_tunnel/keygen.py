"""Key pair generation through ssh-keygen."""

import os
import shutil
import subprocess
import tempfile

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import KeyGenerationError
from .logging import get_logger
from .utils import find_binary

logger = get_logger(__name__)

KEY_FILE_NAME = "ssh.key"
KEYGEN_TIMEOUT = 60.0


class KeyPair(BaseModel):
    """Private and public halves of a freshly generated key."""

    model_config = ConfigDict(frozen=True)

    private: str = Field(min_length=1, repr=False, description="Private key")
    public: str = Field(min_length=1, description="OpenSSH public key line")


def generate_key_pair(
    bits: int = 2048,
    key_type: str = "rsa",
    keygen_binary: str = "ssh-keygen",
) -> KeyPair:
    """Generate a passphrase-less key pair without leaving files behind.

    Args:
        bits: Key size, only passed for key types that take one
        key_type: ssh-keygen key type (rsa, ecdsa, ed25519)
        keygen_binary: ssh-keygen executable (name or path)

    Returns:
        KeyPair with both keys read into memory

    Raises:
        BinaryNotFoundError: If ssh-keygen cannot be found
        KeyGenerationError: If ssh-keygen fails
    """
    binary = find_binary(keygen_binary)
    work_dir = tempfile.mkdtemp(prefix="ssh-keygen-")
    key_path = os.path.join(work_dir, KEY_FILE_NAME)
    pub_path = key_path + ".pub"

    argv = [binary]
    if key_type != "ed25519":
        argv += ["-b", str(bits)]
    argv += ["-t", key_type, "-f", key_path, "-N", "", "-q"]

    logger.debug("Generating key pair", key_type=key_type, bits=bits)

    try:
        try:
            result = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=KEYGEN_TIMEOUT,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise KeyGenerationError(f"Failed to run ssh-keygen: {e}") from e

        if result.returncode != 0:
            raise KeyGenerationError(
                f"ssh-keygen exited with {result.returncode}: {result.stderr.strip()}"
            )

        try:
            with open(key_path) as f:
                private = f.read()
            with open(pub_path) as f:
                public = f.read()
        except OSError as e:
            raise KeyGenerationError(f"ssh-keygen produced no key files: {e}") from e

        if not private.strip() or not public.strip():
            raise KeyGenerationError("ssh-keygen produced empty key files")
    finally:
        _remove_work_dir(work_dir, (key_path, pub_path))

    logger.info("Key pair generated", key_type=key_type)
    return KeyPair(private=private, public=public)


def _remove_work_dir(work_dir: str, paths: tuple[str, ...]) -> None:
    """Best-effort removal of generated key files and their directory."""
    for path in paths:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to remove key file", path=path, error=str(e))

    shutil.rmtree(work_dir, ignore_errors=True)
