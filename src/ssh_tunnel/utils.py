"""Utility helpers shared by the tunnel modules."""

import os
import shutil
from collections.abc import Iterable
from typing import Any

from .exceptions import BinaryNotFoundError

SENSITIVE_FIELDS = frozenset(
    {
        "private_key",
        "privatekey",
        "key_material",
        "passphrase",
        "password",
        "secret",
        "token",
    }
)

COMMON_BINARY_DIRS = (
    "/usr/bin",
    "/usr/local/bin",
    "/bin",
    "/opt/homebrew/bin",
)


def is_blank(value: Any) -> bool:
    """True for None and for strings holding nothing but whitespace."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def mask_sensitive_data(
    value: str | None, mask_char: str = "*", show_chars: int = 4
) -> str:
    """Mask sensitive data for logging while keeping a short tail visible.

    Key material is masked completely since its tail is the PEM footer and
    carries no debugging value.
    """
    if not value:
        return "<None>"

    if "PRIVATE KEY" in value:
        return "<private key>"

    if len(value) <= show_chars:
        return mask_char * len(value)

    masked_length = len(value) - show_chars
    return mask_char * masked_length + value[-show_chars:]


def sanitize_log_data(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive fields masked."""
    sanitized = {}
    for key, value in data.items():
        normalized = str(key).lower().replace("-", "_")
        if normalized in SENSITIVE_FIELDS or normalized.endswith("_key"):
            sanitized[key] = mask_sensitive_data(str(value) if value else None)
        else:
            sanitized[key] = value

    return sanitized


def find_binary(name: str, extra_paths: Iterable[str] = ()) -> str:
    """Find an executable in PATH or in common install locations.

    Args:
        name: Binary name (``ssh``, ``ssh-keygen``) or an explicit path
        extra_paths: Additional directories to search after PATH

    Returns:
        Absolute path to the executable

    Raises:
        BinaryNotFoundError: If no executable can be found
    """
    if os.sep in name:
        expanded = os.path.expanduser(name)
        if os.path.isfile(expanded) and os.access(expanded, os.X_OK):
            return os.path.abspath(expanded)
        raise BinaryNotFoundError(f"Binary is not an executable file: {name}")

    binary_path = shutil.which(name)
    if binary_path:
        return binary_path

    for directory in (*extra_paths, *COMMON_BINARY_DIRS):
        candidate = os.path.join(os.path.expanduser(directory), name)
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate

    raise BinaryNotFoundError(f"{name} binary not found in PATH or common locations")
