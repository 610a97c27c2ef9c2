"""Exceptions raised by Encrypted Config."""
from typing import Any, Optional


class EncryptedConfigError(Exception):
    """Base class for all Encrypted Config errors."""


class DecryptionError(EncryptedConfigError):
    """The decrypt operation failed for at least one encrypted value.

    The original exception is available as ``__cause__``. ``paths`` lists
    the keys holding the value that failed; the message never includes
    ciphertext or plaintext.
    """

    def __init__(
        self,
        message: str,
        encrypted: Any = None,
        paths: Optional[list[str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.encrypted = encrypted
        self.paths = paths or []

    def __str__(self) -> str:
        if self.paths:
            return f"{self.message} (at {', '.join(self.paths)})"
        return self.message


class ConsistencyError(EncryptedConfigError):
    """An encrypted value has no entry in the decryption map."""


class ConfigTreeError(EncryptedConfigError):
    """A configuration tree cannot be edited or fingerprinted."""
