"""
Vault Configuration: Master key loading and validated settings.

Reads master keys from environment variables in the format:
    ENCRYPTED_CONFIG_KEY_v{N} = <base64-encoded 32-byte key>
    ENCRYPTED_CONFIG_ACTIVE_KEY_ID = <integer>   (optional, encrypt side)
    ENCRYPTED_CONFIG_CIPHER = aesgcm | chacha20

Decrypting only needs the master keys: every token names the key version
it was encrypted with. The active key id selects which version operators
encrypt new values with; it defaults to the newest loaded version.

Security Note:
    Never log key material. Only log key IDs and version numbers.
"""
import os
import re
import base64
import secrets
import logging
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .crypto import KEY_LENGTH, encrypt_value, get_cipher_cls

logger = logging.getLogger("encrypted_config.vault")

_KEY_ENV_PATTERN = re.compile(r"^ENCRYPTED_CONFIG_KEY_v(\d+)$")


def load_master_keys() -> dict[int, bytes]:
    """Load master keys from ENCRYPTED_CONFIG_KEY_v{N} environment variables.

    Each env var value must be base64-encoded and decode to exactly 32 bytes.

    Returns:
        Mapping of key version (int) to raw 32-byte key.

    Raises:
        RuntimeError: If no master keys are found in the environment.
        ValueError: If a key does not decode to exactly 32 bytes.
    """
    keys: dict[int, bytes] = {}
    for name, value in os.environ.items():
        match = _KEY_ENV_PATTERN.match(name)
        if not match:
            continue
        key_bytes = base64.b64decode(value)
        if len(key_bytes) != KEY_LENGTH:
            raise ValueError(
                f"{name} must decode to exactly {KEY_LENGTH} bytes, "
                f"got {len(key_bytes)}"
            )
        keys[int(match.group(1))] = key_bytes
    if not keys:
        raise RuntimeError(
            "No configuration master keys found in environment. "
            "Set ENCRYPTED_CONFIG_KEY_v1=<base64-encoded-32-byte-key>"
        )
    logger.debug("Loaded %d master key version(s): %s", len(keys), sorted(keys))
    return keys


def get_active_key_id() -> Optional[int]:
    """Active master key version from ENCRYPTED_CONFIG_ACTIVE_KEY_ID, if set.

    Raises:
        ValueError: If the value is not a valid integer.
    """
    raw = os.environ.get("ENCRYPTED_CONFIG_ACTIVE_KEY_ID")
    return int(raw) if raw else None


def generate_master_key() -> str:
    """Generate a random 32-byte master key and return as base64 string.

    This is a utility for operators to generate new keys.
    """
    return base64.b64encode(secrets.token_bytes(KEY_LENGTH)).decode("ascii")


class VaultConfig(BaseModel):
    """Validated vault configuration.

    ``master_keys`` is all a decryptor needs. ``active_key_id`` only
    matters to ``encrypt()``; when unset, the newest key version is used.
    """

    master_keys: dict[int, bytes]
    active_key_id: Optional[int] = None
    cipher_backend: str = Field(default="aesgcm")

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        v = v.lower()
        get_cipher_cls(v)
        return v

    @field_validator("master_keys")
    @classmethod
    def validate_key_length(cls, v: dict[int, bytes]) -> dict[int, bytes]:
        if not v:
            raise ValueError("at least one master key is required")
        for key_id, key in v.items():
            if len(key) != KEY_LENGTH:
                raise ValueError(
                    f"master key v{key_id} must be {KEY_LENGTH} bytes"
                )
        return v

    @model_validator(mode="after")
    def validate_active_key_exists(self) -> "VaultConfig":
        """Ensure a given active_key_id is present in master_keys."""
        if (
            self.active_key_id is not None
            and self.active_key_id not in self.master_keys
        ):
            raise ValueError(
                f"active_key_id {self.active_key_id} not found in "
                f"master_keys (available: {sorted(self.master_keys)})"
            )
        return self

    @property
    def encryption_key_id(self) -> int:
        """Key version new values are encrypted with."""
        if self.active_key_id is not None:
            return self.active_key_id
        return max(self.master_keys)

    def encrypt(self, value: Any) -> str:
        """Encrypt a configuration value with the active master key.

        Returns:
            Token to store under a prefixed key of a configuration file.
        """
        key_id = self.encryption_key_id
        return encrypt_value(
            value, key_id, self.master_keys[key_id], self.cipher_backend
        )

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment.

        Returns:
            Populated VaultConfig instance.
        """
        return cls(
            master_keys=load_master_keys(),
            active_key_id=get_active_key_id(),
            cipher_backend=os.environ.get("ENCRYPTED_CONFIG_CIPHER", "aesgcm"),
        )
