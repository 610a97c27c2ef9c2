"""
EncryptedConfig: a configuration tree decrypted once, on first read.

Provides the public API of Encrypted Config:
- ``read()``: the fully decrypted configuration tree
- ``read_path(path, default)``: a value of the decrypted tree by dotted path
- ``create(data, decrypt, opts)``: factory

Keys starting with the configured prefix (``_`` by default) hold encrypted
values. The first ``read()`` decrypts every distinct encrypted value with
the given ``decrypt`` operation, renames the prefixed keys and memoizes the
result; concurrent readers share that single decryption pass.

Security Note:
    Never log plaintext or ciphertext values. Only log key paths and counts.
    The decrypted tree lives in process memory for the lifetime of the
    EncryptedConfig instance.
"""
import asyncio
import time
import logging
from enum import Enum
from typing import Any, Callable, Optional, Union
from collections.abc import Mapping

from .conf import ConfigOptions, resolve_options
from .decryption import (
    build_decryption_map,
    collect_encrypted_values,
    encrypted_nodes,
    fingerprint,
    rewrite_tree,
)
from .exceptions import DecryptionError
from .tree import MISSING, format_path, get_path

logger = logging.getLogger("encrypted_config")


class State(Enum):
    EMPTY = "empty"
    DECRYPTING = "decrypting"
    READY = "ready"


class EncryptedConfig:
    """Configuration tree with encrypted values, decrypted lazily.

    The instance moves from EMPTY to DECRYPTING on the first ``read()`` and
    to READY once a decryption pass succeeds; READY is final. A failed pass
    puts it back to EMPTY so the next ``read()`` starts over.

    The raw tree is never modified. An instance belongs to the event loop
    running its first decryption pass.
    """

    def __init__(
        self,
        data: Any,
        decrypt: Callable,
        opts: Union[ConfigOptions, Mapping[str, Any], None] = None,
    ):
        if not callable(decrypt):
            raise TypeError("decrypt must be callable")
        self.data = data
        self.decrypt = decrypt
        self._options = resolve_options(opts)
        self._plaintext: Any = None
        self._ready: bool = False
        self._decrypting: Optional[asyncio.Task] = None

    @classmethod
    def create(
        cls,
        data: Any,
        decrypt: Callable,
        opts: Union[ConfigOptions, Mapping[str, Any], None] = None,
    ) -> "EncryptedConfig":
        """Build an EncryptedConfig.

        Args:
            data: raw configuration tree, already loaded in memory.
            decrypt: ``value -> plaintext``; a coroutine function, or a plain
                callable (run in the default executor). Callback-style
                functions taking ``(value, callback)`` are not supported;
                wrap them in a coroutine first.
            opts: options overriding the defaults, e.g. ``{"prefix": "$"}``.

        Returns:
            EncryptedConfig instance; nothing is decrypted until ``read()``.
        """
        return cls(data, decrypt, opts)

    def __repr__(self) -> str:
        return (
            f'<EncryptedConfig [state:{self.state.value}, '
            f'prefix:{self.prefix!r}]>'
        )

    # --- Properties ---

    @property
    def options(self) -> ConfigOptions:
        return self._options

    @property
    def prefix(self) -> str:
        return self._options.prefix

    @property
    def state(self) -> State:
        if self._ready:
            return State.READY
        if self._decrypting is not None:
            return State.DECRYPTING
        return State.EMPTY

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_decrypting(self) -> bool:
        return self._decrypting is not None

    # --- Public API ---

    async def read(self) -> Any:
        """Return the decrypted configuration tree.

        The first call starts a decryption pass; calls made while it runs
        wait for the same pass; later calls return the memoized tree.

        Raises:
            DecryptionError: If the decrypt operation failed for any value.
                Every caller waiting on that pass gets the same error.
            ConsistencyError: If an encrypted value was left undecrypted.
        """
        if self._ready:
            return self._plaintext
        # a cancelled reader must not cancel the pass shared with others
        return await asyncio.shield(self._get_or_start())

    async def read_path(self, path: str, default: Any = MISSING) -> Any:
        """Return the decrypted value at a dotted path.

        Args:
            path: dotted path, e.g. ``"database.password"``; use the
                unprefixed key names.
            default: returned when the path does not exist.

        Returns:
            The value at ``path``, or ``default`` (``MISSING`` unless given).
        """
        config = await self.read()
        return get_path(config, path, default)

    # --- Decryption pass ---

    def _get_or_start(self) -> asyncio.Task:
        """Return the running decryption pass, starting one if needed.

        Must not await: checking and publishing the pass is a single step
        on the event loop.
        """
        if self._decrypting is None:
            self._decrypting = asyncio.ensure_future(
                self._decrypt_configuration()
            )
        return self._decrypting

    async def _decrypt_configuration(self) -> Any:
        started = time.monotonic()
        prefix = self.prefix
        try:
            values = collect_encrypted_values(self.data, prefix)
            logger.debug(
                "Decrypting configuration: %d distinct encrypted value(s)",
                len(values),
            )
            decryption_map = await build_decryption_map(
                values, self.decrypt, self._options.max_concurrency,
            )
            plaintext = rewrite_tree(self.data, decryption_map, prefix)
        except DecryptionError as err:
            err.paths = self._paths_of(err.encrypted)
            logger.error(
                "Configuration decryption failed at %s: %s",
                ", ".join(err.paths), type(err.__cause__).__name__,
            )
            raise
        finally:
            self._decrypting = None
        self._plaintext = plaintext
        self._ready = True
        logger.info(
            "Configuration decrypted: %d value(s) in %.3fs",
            len(decryption_map), time.monotonic() - started,
        )
        return plaintext

    def _paths_of(self, encrypted: Any) -> list[str]:
        """Dotted paths of every encrypted key holding ``encrypted``."""
        target = fingerprint(encrypted)
        return [
            format_path(visit.path)
            for visit in encrypted_nodes(self.data, self.prefix)
            if fingerprint(visit.value) == target
        ]
