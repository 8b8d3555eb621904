"""
Error taxonomy for Envii.

Every failure the backup and restore pipeline can produce maps to one of
the classes below. Errors raised before the matching phase of a restore
(input, network, authentication, format) are fatal to the whole command.
Filesystem errors and integrity warnings are scoped to a single file and
never abort a batch.
"""

from __future__ import annotations

from enum import Enum


class EnviiError(Exception):
    """Base exception for all Envii errors."""

    pass


class InputError(EnviiError):
    """
    Raised when user input is malformed.

    Currently this means a recovery phrase that is not exactly 12 words
    or fails the BIP-39 checksum. Always raised before any cryptographic
    or network work starts.
    """

    pass


class NetworkError(EnviiError):
    """
    Raised when the remote vault store is unreachable or answers with a
    non-success status.

    Attributes:
        status_code: HTTP status code, if a response was received.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(EnviiError):
    """
    Raised when an envelope cannot be opened.

    Wrong key, wrong phrase, truncated or corrupted blobs and undecodable
    plaintext all raise this same class with the same message, so callers
    cannot tell corruption apart from a wrong key.
    """

    pass


class UnsupportedFormatError(EnviiError):
    """Raised when a decrypted backup document has an unknown version."""

    pass


class FilesystemError(EnviiError):
    """
    Raised when a single file cannot be read or written.

    Attributes:
        path: The path that failed.
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


class ConfigurationError(EnviiError):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


class IntegrityWarning(UserWarning):
    """Content checksum does not match the recorded digest."""

    pass


class ErrorKind(str, Enum):
    """Error category attached to result values instead of raising."""

    INPUT = "input"
    NETWORK = "network"
    AUTHENTICATION = "authentication"
    FORMAT = "format"
    FILESYSTEM = "filesystem"
    CONFIGURATION = "configuration"

    @classmethod
    def from_exception(cls, exc: BaseException) -> ErrorKind:
        """Map an exception onto its taxonomy entry."""
        if isinstance(exc, InputError):
            return cls.INPUT
        if isinstance(exc, NetworkError):
            return cls.NETWORK
        if isinstance(exc, AuthenticationError):
            return cls.AUTHENTICATION
        if isinstance(exc, UnsupportedFormatError):
            return cls.FORMAT
        if isinstance(exc, ConfigurationError):
            return cls.CONFIGURATION
        return cls.FILESYSTEM
