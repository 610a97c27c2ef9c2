"""
Vault Crypto Core: Key derivation, value encryption/decryption, serialization.

Encrypted configuration values are text tokens:
    urlsafe_b64( [key_id 2B uint16 BE][nonce 12B][encrypted_payload + tag 16B] )

The payload is the orjson encoding of the value, so any JSON value (and
bytes) can be stored encrypted. The AEAD key is
HKDF(MASTER_KEY_vN, "encrypted-config-vN").

Security Note:
    Never log plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import struct
import base64
import binascii
import logging
from typing import Any, Optional, Union

import orjson
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

logger = logging.getLogger("encrypted_config.vault")

NONCE_SIZE = 12  # 96-bit nonce
KEY_ID_SIZE = 2  # uint16 big-endian
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256

_BYTES_WRAPPER_KEY = "__config_bytes_b64__"

_CIPHERS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}


def get_cipher_cls(backend: Optional[str] = None) -> type:
    """Return the AEAD cipher class for a backend name.

    Falls back to the ENCRYPTED_CONFIG_CIPHER env var, then AES-GCM.
    """
    if backend is None:
        backend = os.environ.get("ENCRYPTED_CONFIG_CIPHER", "aesgcm")
    try:
        return _CIPHERS[backend.lower()]
    except KeyError:
        raise ValueError(f"Unsupported cipher backend: {backend}") from None


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(seed: bytes, context: str) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        seed: Input key material (master key bytes).
        context: Context string for domain separation.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,  # deterministic derivation per key version
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


def _context(key_id: int) -> str:
    return f"encrypted-config-v{key_id}"


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to bytes for encryption.

    Supports: str, int, float, dict, list, bytes, bool, None.
    bytes values are wrapped as {"__config_bytes_b64__": "<base64>"}.
    """
    if isinstance(value, bytes):
        wrapped = {_BYTES_WRAPPER_KEY: base64.b64encode(value).decode("ascii")}
        return orjson.dumps(wrapped)
    return orjson.dumps(value)


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes produced by serialize_value back to a Python value."""
    parsed = orjson.loads(data)
    if isinstance(parsed, dict) and _BYTES_WRAPPER_KEY in parsed and len(parsed) == 1:
        return base64.b64decode(parsed[_BYTES_WRAPPER_KEY])
    return parsed


# ---------------------------------------------------------------------------
# Value tokens
# ---------------------------------------------------------------------------

def encrypt_value(
    value: Any,
    key_id: int,
    master_key: bytes,
    cipher: Optional[str] = None,
) -> str:
    """Encrypt a configuration value into a text token.

    Args:
        value: Value to encrypt.
        key_id: Master key version identifier, embedded in the token.
        master_key: Raw 32-byte master key for this version.
        cipher: AEAD backend name; defaults to ENCRYPTED_CONFIG_CIPHER.

    Returns:
        urlsafe base64 token, suitable as the value of a prefixed key.
    """
    derived = derive_key(master_key, _context(key_id))
    aead = get_cipher_cls(cipher)(derived)
    nonce = os.urandom(NONCE_SIZE)
    ct = aead.encrypt(nonce, serialize_value(value), None)
    raw = struct.pack("!H", key_id) + nonce + ct
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decrypt_value(
    token: Union[str, bytes],
    master_keys: dict[int, bytes],
    cipher: Optional[str] = None,
) -> Any:
    """Decrypt a token produced by encrypt_value.

    Args:
        token: urlsafe base64 token.
        master_keys: Mapping of key_id to raw 32-byte master key.
        cipher: AEAD backend name; defaults to ENCRYPTED_CONFIG_CIPHER.

    Returns:
        The original value.

    Raises:
        ValueError: If the token is not a well-formed token.
        KeyError: If the key_id of the token is not in master_keys.
        cryptography.exceptions.InvalidTag: If authentication fails.
    """
    if not isinstance(token, (str, bytes)):
        raise ValueError(
            f"Encrypted value must be a text token, got {type(token).__name__}"
        )
    try:
        raw = base64.urlsafe_b64decode(token)
    except (binascii.Error, ValueError) as err:
        raise ValueError("Encrypted value is not valid base64") from err
    _min = KEY_ID_SIZE + NONCE_SIZE + TAG_SIZE
    if len(raw) < _min:
        raise ValueError(
            f"Encrypted value too short: {len(raw)} bytes (minimum {_min})"
        )
    key_id = struct.unpack("!H", raw[:KEY_ID_SIZE])[0]
    if key_id not in master_keys:
        raise KeyError(
            f"Master key version {key_id} not found in provided keys"
        )
    derived = derive_key(master_keys[key_id], _context(key_id))
    aead = get_cipher_cls(cipher)(derived)
    nonce = raw[KEY_ID_SIZE:KEY_ID_SIZE + NONCE_SIZE]
    ct = raw[KEY_ID_SIZE + NONCE_SIZE:]
    return deserialize_value(aead.decrypt(nonce, ct, None))
