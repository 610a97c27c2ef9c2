"""Configuration Vault: AEAD tokens for encrypted configuration values.

Security Note (Threat Model):
    Decrypted configuration values live in process memory once read.
    A memory dump of the application process could expose them, as well
    as the master keys loaded from the environment.
    This is an accepted limitation; mitigation requires HSM/secure
    enclave integration which is out of scope.
"""

from .config import VaultConfig, load_master_keys, get_active_key_id, generate_master_key
from .crypto import encrypt_value, decrypt_value
from .decryptor import VaultDecryptor

__all__ = [
    "VaultDecryptor",
    "VaultConfig",
    "load_master_keys",
    "get_active_key_id",
    "generate_master_key",
    "encrypt_value",
    "decrypt_value",
]
