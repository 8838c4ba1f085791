"""Recursive traversal over a key's subtree.

Every function here is best-effort: a key that cannot be opened or read
(missing, access denied, a store hiccup) contributes nothing, and the walk
carries on with its siblings. Partial results are returned rather than an
error, so one locked-down branch never hides the rest of the tree.

Each key is opened, read, and closed before the walk descends into its
children; no handle is held across a recursive call.

``max_depth`` counts levels below the start key and only applies to
recursive walks: 1 reaches direct children, 0 reaches nothing below the
start key, None is unbounded.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .backends.base import StorageBackend
from .exceptions import RegistryError
from .matching import matches
from .paths import SEPARATOR, join, resolve
from .values import RegistryValue, ValueKind, from_native

logger = logging.getLogger(__name__)


@dataclass
class NodeListing:
    """Everything read from one key in a single open/close cycle."""

    path: str
    values: List[Tuple[str, Any, ValueKind]] = field(default_factory=list)
    children: List[str] = field(default_factory=list)


def read_node(
    backend: StorageBackend,
    path: str,
    values: bool = True,
    children: bool = True,
) -> Optional[NodeListing]:
    """Read a key's values and child names.

    Args:
        backend: Store to read from
        path: Hive-qualified key path
        values: Read value names, data and kinds
        children: Read child key names

    Returns:
        NodeListing, or None if the key could not be opened or read
    """
    try:
        hive, subpath = resolve(path)
        with backend.key(hive, subpath) as handle:
            listing = NodeListing(path)
            if values:
                for name in backend.list_value_names(handle):
                    raw = backend.get_value(handle, name)
                    kind = backend.get_value_kind(handle, name)
                    listing.values.append((name, raw, kind))
            if children:
                listing.children = list(backend.list_child_names(handle))
            return listing
    except (RegistryError, OSError) as e:
        logger.debug("Skipping unreadable key %s: %s", path, e)
        return None


def _deeper(recursive: bool, max_depth: Optional[int]) -> Tuple[bool, Optional[int]]:
    """Whether to list children's children, and the depth budget left below them."""
    if not recursive:
        return False, None
    if max_depth is None:
        return True, None
    return max_depth > 1, max_depth - 1


def _read_children(recursive: bool, max_depth: Optional[int]) -> Tuple[bool, Optional[int]]:
    """Whether to read the children themselves, and the budget they get."""
    if not recursive:
        return False, None
    if max_depth is None:
        return True, None
    return max_depth > 0, max_depth - 1


def enumerate_subkeys(
    backend: StorageBackend,
    path: str,
    recursive: bool = False,
    max_depth: Optional[int] = None,
) -> List[str]:
    """List the full paths of a key's children.

    With ``recursive``, descendants are listed depth-first, each key
    before its own children. ``max_depth`` limits how many levels below
    ``path`` are listed (1 = direct children only).
    """
    results: List[str] = []
    if recursive and max_depth is not None and max_depth < 1:
        return results
    listing = read_node(backend, path, values=False)
    if listing is None:
        return results

    descend, remaining = _deeper(recursive, max_depth)
    for name in listing.children:
        child_path = join(path, name)
        results.append(child_path)
        if descend:
            results.extend(enumerate_subkeys(backend, child_path, True, remaining))
    return results


def search_keys(
    backend: StorageBackend,
    path: str,
    pattern: str,
    recursive: bool = False,
    max_depth: Optional[int] = None,
) -> List[str]:
    """Find child keys whose bare name matches ``pattern``.

    Returns full paths. Non-matching keys are still descended into when
    recursive, so matches deeper down are found.
    """
    results: List[str] = []
    if recursive and max_depth is not None and max_depth < 1:
        return results
    listing = read_node(backend, path, values=False)
    if listing is None:
        return results

    descend, remaining = _deeper(recursive, max_depth)
    for name in listing.children:
        child_path = join(path, name)
        if matches(name, pattern):
            results.append(child_path)
        if descend:
            results.extend(search_keys(backend, child_path, pattern, True, remaining))
    return results


def search_values(
    backend: StorageBackend,
    path: str,
    pattern: str,
    recursive: bool = False,
    max_depth: Optional[int] = None,
) -> List[RegistryValue]:
    """Find values whose name matches ``pattern``.

    Each result's name is the full ``key\\value`` path of the match.
    """
    results: List[RegistryValue] = []
    listing = read_node(backend, path, children=recursive)
    if listing is None:
        return results

    for name, raw, kind in listing.values:
        if matches(name, pattern):
            results.append(RegistryValue(path + SEPARATOR + name, raw, from_native(kind)))

    descend, remaining = _read_children(recursive, max_depth)
    if descend:
        for child in listing.children:
            results.extend(
                search_values(backend, join(path, child), pattern, True, remaining)
            )
    return results


def collect_values(
    backend: StorageBackend,
    path: str,
    include_subkeys: bool = False,
    max_depth: Optional[int] = None,
) -> Dict[str, Any]:
    """Flatten a key's values into a name -> data mapping.

    With ``include_subkeys``, each child's values are added under
    ``child\\name`` (``child\\grandchild\\name`` further down). On a name
    collision the value read last wins. Values with no data are left out.
    """
    collected: Dict[str, Any] = {}
    listing = read_node(backend, path, children=include_subkeys)
    if listing is None:
        return collected

    for name, raw, _ in listing.values:
        if raw is not None:
            collected[name] = raw

    descend, remaining = _read_children(include_subkeys, max_depth)
    if descend:
        for child in listing.children:
            nested = collect_values(backend, join(path, child), True, remaining)
            for name, raw in nested.items():
                collected[child + SEPARATOR + name] = raw
    return collected
