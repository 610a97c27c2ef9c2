"""Encrypted Config.

Configuration trees whose prefixed keys hold encrypted values, decrypted
once on first read and memoized.
"""
from .version import __version__
from .conf import ConfigOptions, resolve_options
from .encrypted import EncryptedConfig, State
from .exceptions import (
    EncryptedConfigError,
    DecryptionError,
    ConsistencyError,
    ConfigTreeError,
)
from .tree import MISSING, get_path

__all__ = [
    "__version__",
    "EncryptedConfig",
    "State",
    "ConfigOptions",
    "resolve_options",
    "EncryptedConfigError",
    "DecryptionError",
    "ConsistencyError",
    "ConfigTreeError",
    "MISSING",
    "get_path",
]
