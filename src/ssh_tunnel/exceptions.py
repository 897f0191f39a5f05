"""Custom exceptions for the SSH tunnel supervisor."""


class TunnelError(Exception):
    """Base exception for all SSH tunnel errors."""

    pass


class ConfigurationError(TunnelError, ValueError):
    """Raised when tunnel configuration or key material is invalid."""

    def __init__(self, message: str, missing: tuple[str, ...] = ()):
        super().__init__(message)
        self.missing = missing


class KeyFileError(ConfigurationError):
    """Raised when the private key cannot be written to disk."""

    pass


class AlreadyRunningError(TunnelError):
    """Raised when opening a tunnel that is already established."""

    pass


class TunnelEstablishmentError(TunnelError):
    """Raised when the ssh process exits or cannot be confirmed alive."""

    def __init__(
        self,
        message: str,
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code


class BinaryNotFoundError(TunnelError):
    """Raised when the ssh or ssh-keygen binary is not found."""

    pass


class KeyGenerationError(TunnelError):
    """Raised when ssh-keygen fails to produce a key pair."""

    pass
