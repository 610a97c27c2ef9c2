"""
Configuration Tree: traversal, editing and path lookup.

A configuration node is one of three kinds:
- **scalar**: str, int, float, bool, None (or any other leaf object)
- **sequence**: list or tuple of nodes
- **mapping**: mapping of key to node

Trees must not contain cycles.
"""
import copy
from enum import Enum
from typing import Any, Callable, NamedTuple, Optional, Union
from collections.abc import Iterator, Mapping, MutableMapping

from .exceptions import ConfigTreeError


class NodeKind(Enum):
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"


class _Missing:
    """Sentinel for a path that does not exist in a tree."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


class Visit(NamedTuple):
    """A node reached while walking a tree."""
    parent: Any
    key: Union[str, int, Any]
    value: Any
    path: tuple


def node_kind(node: Any) -> NodeKind:
    """Return the kind of a configuration node."""
    if isinstance(node, Mapping):
        return NodeKind.MAPPING
    if isinstance(node, (list, tuple)):
        return NodeKind.SEQUENCE
    return NodeKind.SCALAR


def children(node: Any) -> list[tuple[Any, Any]]:
    """Snapshot of the (key, value) pairs directly under a node."""
    kind = node_kind(node)
    if kind is NodeKind.MAPPING:
        return list(node.items())
    if kind is NodeKind.SEQUENCE:
        return list(enumerate(node))
    return []


def walk(
    tree: Any,
    descend: Optional[Callable[[Visit], bool]] = None,
) -> Iterator[Visit]:
    """Walk every node below the root in pre-order.

    Children are snapshotted before they are yielded, so the consumer may
    edit a visited node's parent while walking. A replaced value is not
    descended into; the walk continues with the value seen at snapshot time.

    Args:
        tree: root node.
        descend: optional predicate; when it returns False for a visit,
            the walk does not enter that node's children.

    Yields:
        Visit(parent, key, value, path) tuples.
    """
    yield from _walk(tree, descend, ())


def _walk(node: Any, descend, path: tuple) -> Iterator[Visit]:
    for key, value in children(node):
        visit = Visit(node, key, value, path + (key,))
        yield visit
        if node_kind(value) is not NodeKind.SCALAR and (
            descend is None or descend(visit)
        ):
            yield from _walk(value, descend, visit.path)


def clone(tree: Any) -> Any:
    """Deep copy of a configuration tree."""
    return copy.deepcopy(tree)


def _mutable(parent: Any) -> MutableMapping:
    if not isinstance(parent, MutableMapping):
        raise ConfigTreeError(
            f"Cannot edit a node of type {type(parent).__name__}"
        )
    return parent


def delete_key(parent: Any, key: Any) -> Any:
    """Remove a key from a mapping node and return its value."""
    node = _mutable(parent)
    try:
        return node.pop(key)
    except KeyError:
        raise ConfigTreeError(f"Key {key!r} not found") from None


def insert_key(
    parent: Any, key: Any, value: Any, index: Optional[int] = None
) -> None:
    """Insert a key into a mapping node.

    Args:
        parent: mapping node to edit.
        key: key to insert; an existing entry with this key is replaced.
        value: value for the key.
        index: position among the mapping entries; appended when None.
    """
    node = _mutable(parent)
    if index is None:
        node.pop(key, None)
        node[key] = value
        return
    items = [(k, v) for k, v in node.items() if k != key]
    items.insert(index, (key, value))
    node.clear()
    node.update(items)


def rename_key(parent: Any, old: Any, new: Any, value: Any) -> None:
    """Replace ``old`` by ``new`` holding ``value``, at the same position."""
    rename_keys(parent, {old: (new, value)})


def rename_keys(parent: Any, renames: Mapping) -> None:
    """Apply several renames to one mapping node, rebuilding it once.

    Args:
        parent: mapping node to edit.
        renames: ``{old key: (new key, value)}``. Each new entry takes the
            position of its old key; an existing entry under a new key is
            dropped.
    """
    node = _mutable(parent)
    for old in renames:
        if old not in node:
            raise ConfigTreeError(f"Key {old!r} not found")
    replaced = {new for new, _ in renames.values()}
    items = []
    for k, v in node.items():
        if k in renames:
            items.append(renames[k])
        elif k not in replaced:
            items.append((k, v))
    node.clear()
    node.update(items)


def format_path(path: tuple) -> str:
    """Dotted form of a path tuple."""
    return ".".join(str(p) for p in path)


def _child(node: Any, segment: str) -> Any:
    kind = node_kind(node)
    if kind is NodeKind.MAPPING:
        return node.get(segment, MISSING)
    if kind is NodeKind.SEQUENCE:
        if not segment.isdecimal():
            return MISSING
        index = int(segment)
        return node[index] if index < len(node) else MISSING
    return MISSING


def get_path(tree: Any, path: str, default: Any = MISSING) -> Any:
    """Resolve a dotted path into a tree.

    Args:
        tree: root node.
        path: dotted path, e.g. ``"database.credentials.password"``.
            Sequence items are addressed by their decimal index.
        default: returned when any segment of the path does not exist.

    Returns:
        The node at the path, or ``default``.
    """
    node = tree
    for segment in path.split("."):
        node = _child(node, segment)
        if node is MISSING:
            return default
    return node
