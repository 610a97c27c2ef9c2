"""
Decryption pass: collect encrypted values, decrypt them, rewrite the tree.

A key is encrypted when it is a string starting with the configured prefix.
Its value is opaque: it is decrypted as a whole and never walked into.
Equal encrypted values are decrypted once (see ``fingerprint``).

Security Note:
    Never log encrypted or plaintext values. Only log key paths and counts.
"""
import math
import asyncio
import inspect
import logging
from typing import Any, Callable, Optional
from collections.abc import Hashable, Iterable, Iterator, Mapping

from .exceptions import ConfigTreeError, ConsistencyError, DecryptionError
from .tree import Visit, clone, format_path, rename_keys, walk

logger = logging.getLogger("encrypted_config.decryption")


def is_encrypted_key(key: Any, prefix: str) -> bool:
    """True if ``key`` marks an encrypted value under ``prefix``."""
    return isinstance(key, str) and key.startswith(prefix)


def strip_prefix(key: str, prefix: str) -> str:
    return key[len(prefix):]


def fingerprint(value: Any) -> Hashable:
    """Type-tagged structural key of a value, used for value-equality lookups.

    ``1``, ``"1"``, ``1.0`` and ``True`` have different fingerprints; every
    NaN shares one fingerprint distinct from ``None``; dicts with the same
    items have the same fingerprint regardless of key order.

    Raises:
        ConfigTreeError: If the value is an unhashable leaf object.
    """
    if isinstance(value, Mapping):
        return (Mapping, frozenset(
            (fingerprint(k), fingerprint(v)) for k, v in value.items()
        ))
    if isinstance(value, (list, tuple)):
        return (type(value), tuple(fingerprint(item) for item in value))
    if isinstance(value, (set, frozenset)):
        return (frozenset, frozenset(fingerprint(item) for item in value))
    if isinstance(value, float) and math.isnan(value):
        return (float, "nan")
    try:
        hash(value)
    except TypeError:
        raise ConfigTreeError(
            f"Encrypted value of type {type(value).__name__} is not supported"
        ) from None
    return (type(value), value)


def encrypted_nodes(tree: Any, prefix: str) -> Iterator[Visit]:
    """Yield every node whose key marks an encrypted value."""
    def descend(visit: Visit) -> bool:
        return not is_encrypted_key(visit.key, prefix)

    for visit in walk(tree, descend=descend):
        if is_encrypted_key(visit.key, prefix):
            yield visit


def collect_encrypted_values(tree: Any, prefix: str) -> list:
    """Return the distinct encrypted values of a tree, in first-seen order."""
    seen: dict[Hashable, Any] = {}
    for visit in encrypted_nodes(tree, prefix):
        seen.setdefault(fingerprint(visit.value), visit.value)
    return list(seen.values())


class DecryptionMap(Mapping):
    """Mapping of encrypted value to plaintext value, by value equality."""

    def __init__(self):
        self._items: dict[Hashable, tuple[Any, Any]] = {}

    def __setitem__(self, encrypted: Any, plaintext: Any) -> None:
        self._items[fingerprint(encrypted)] = (encrypted, plaintext)

    def __getitem__(self, encrypted: Any) -> Any:
        return self._items[fingerprint(encrypted)][1]

    def __contains__(self, encrypted: object) -> bool:
        try:
            return fingerprint(encrypted) in self._items
        except ConfigTreeError:
            return False

    def __iter__(self) -> Iterator[Any]:
        for encrypted, _ in self._items.values():
            yield encrypted

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f'<DecryptionMap entries={len(self)}>'


async def _call_decrypt(decrypt: Callable, value: Any) -> Any:
    """Run the decrypt operation for one value.

    Coroutine functions are awaited; plain callables run in the default
    executor, and an awaitable they return is awaited too.
    """
    if inspect.iscoroutinefunction(decrypt) or inspect.iscoroutinefunction(
        getattr(decrypt, "__call__", None)
    ):
        return await decrypt(value)
    loop = asyncio.get_running_loop()
    result = await loop.run_in_executor(None, decrypt, value)
    if inspect.isawaitable(result):
        result = await result
    return result


async def build_decryption_map(
    values: Iterable[Any],
    decrypt: Callable,
    max_concurrency: Optional[int] = None,
) -> DecryptionMap:
    """Decrypt every value concurrently and map it to its plaintext.

    Args:
        values: distinct encrypted values.
        decrypt: the decrypt operation, ``value -> plaintext``.
        max_concurrency: maximum number of decrypt calls in flight at once;
            unbounded when None.

    Returns:
        DecryptionMap with one entry per value.

    Raises:
        DecryptionError: On the first decrypt failure observed. Pending
            calls are cancelled and their results discarded.
    """
    values = list(values)
    result = DecryptionMap()
    if not values:
        return result

    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def run(value: Any) -> Any:
        if semaphore is None:
            return await _call_decrypt(decrypt, value)
        async with semaphore:
            return await _call_decrypt(decrypt, value)

    tasks = [asyncio.ensure_future(run(value)) for value in values]
    logger.debug("Dispatched %d decrypt call(s)", len(tasks))
    try:
        done, _ = await asyncio.wait(
            tasks, return_when=asyncio.FIRST_EXCEPTION
        )
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()

    failures = [
        task for task in tasks
        if task in done and not task.cancelled() and task.exception() is not None
    ]
    if failures:
        err = failures[0].exception()
        raise DecryptionError(
            f"Decryption failed: {type(err).__name__}",
            encrypted=values[tasks.index(failures[0])],
        ) from err

    for value, task in zip(values, tasks):
        result[value] = task.result()
    return result


def rewrite_tree(tree: Any, decryption_map: Mapping, prefix: str) -> Any:
    """Return a copy of ``tree`` with every encrypted node decrypted.

    Each encrypted key is renamed to its unprefixed form, at the same
    position, holding the plaintext of its original value.

    Raises:
        ConsistencyError: If an encrypted value has no map entry.
    """
    mutable = clone(tree)
    # parent id -> (parent, {old key: (new key, plaintext)})
    renames: dict[int, tuple[Any, dict]] = {}
    for visit in encrypted_nodes(mutable, prefix):
        encrypted = visit.value
        if encrypted not in decryption_map:
            raise ConsistencyError(
                f"No decrypted value for '{format_path(visit.path)}'"
            )
        _, edits = renames.setdefault(id(visit.parent), (visit.parent, {}))
        edits[visit.key] = (
            strip_prefix(visit.key, prefix), decryption_map[encrypted]
        )
    for parent, edits in renames.values():
        rename_keys(parent, edits)
    return mutable
