"""
VaultDecryptor: decrypt operation for tokens produced by ``encrypt_value``.

Usage:
    from encrypted_config import EncryptedConfig
    from encrypted_config.vault import VaultDecryptor

    config = EncryptedConfig.create(data, VaultDecryptor.from_env())
    password = await config.read_path("database.password")
"""
import asyncio
import logging
from typing import Any, Optional

from .config import VaultConfig
from .crypto import decrypt_value

logger = logging.getLogger("encrypted_config.vault")


class VaultDecryptor:
    """Async callable decrypting configuration value tokens.

    AEAD decryption runs in the default executor so the event loop is not
    blocked while many values are decrypted in parallel.
    """

    def __init__(
        self,
        master_keys: dict[int, bytes],
        cipher: Optional[str] = None,
    ):
        if not master_keys:
            raise ValueError("VaultDecryptor requires at least one master key")
        self._master_keys = dict(master_keys)
        self._cipher = cipher

    @classmethod
    def from_config(cls, config: VaultConfig) -> "VaultDecryptor":
        return cls(config.master_keys, config.cipher_backend)

    @classmethod
    def from_env(cls) -> "VaultDecryptor":
        """Build a decryptor from the ENCRYPTED_CONFIG_* environment."""
        return cls.from_config(VaultConfig.from_env())

    @property
    def key_ids(self) -> list[int]:
        return sorted(self._master_keys)

    def decrypt(self, token: Any) -> Any:
        """Synchronous decryption of one token."""
        return decrypt_value(token, self._master_keys, self._cipher)

    async def __call__(self, token: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.decrypt, token)

    def __repr__(self) -> str:
        return f'<VaultDecryptor keys={self.key_ids}>'
