"""In-memory storage backend for testing."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

from ..exceptions import (
    AccessDeniedError,
    KeyNotFoundError,
    StoreError,
    ValueNotFoundError,
)
from ..paths import Hive, join, split
from ..values import ValueKind, check_raw
from .base import KeyHandle, StorageBackend


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _MemoryKey:
    """One node of the in-memory tree.

    Children and values are keyed by lower-cased name; the original
    spelling is kept alongside for enumeration.
    """

    name: str
    children: Dict[str, "_MemoryKey"] = field(default_factory=dict)
    values: Dict[str, Tuple[str, Any, ValueKind]] = field(default_factory=dict)
    last_write: datetime = field(default_factory=_now)


@dataclass
class MemoryKeyHandle(KeyHandle):
    node: Optional[_MemoryKey] = None


class MemoryBackend(StorageBackend):
    """In-memory storage backend.

    Useful for testing and temporary storage. Data is lost when the
    backend is closed or the process ends. Key and value names are
    case-insensitive, like the native registry.

    Individual keys can be made inaccessible with ``deny_access`` to
    exercise the failure paths of callers.

    Example:
        backend = MemoryBackend()
        backend.connect()

        with backend.created_key(Hive.CURRENT_USER, "Software\\Test") as key:
            backend.set_value(key, "Answer", 42, ValueKind.DWORD)
    """

    def __init__(self):
        self._roots: Dict[Hive, _MemoryKey] = {}
        self._denied: Set[Tuple[Hive, str]] = set()
        self._connected = False

    def connect(self, **kwargs) -> None:
        """Initialize the in-memory store with five empty hives."""
        self._roots = {hive: _MemoryKey(hive.value) for hive in Hive}
        self._denied = set()
        self._connected = True

    def close(self) -> None:
        """Clear the in-memory store."""
        self._roots.clear()
        self._denied.clear()
        self._connected = False

    # Access control for tests

    def deny_access(self, hive: Hive, subpath: str) -> None:
        """Make a key refuse to open (and refuse creation at that path)."""
        self._denied.add((hive, subpath.lower()))

    def allow_access(self, hive: Hive, subpath: str) -> None:
        """Undo ``deny_access``."""
        self._denied.discard((hive, subpath.lower()))

    def _check_access(self, hive: Hive, subpath: str) -> None:
        if (hive, subpath.lower()) in self._denied:
            raise AccessDeniedError(join(hive.value, subpath))

    # Tree navigation

    def _find(self, hive: Hive, subpath: str) -> Optional[_MemoryKey]:
        if not self._connected:
            raise StoreError("Memory backend is not connected")
        node = self._roots[hive]
        for segment in split(subpath):
            node = node.children.get(segment.lower())
            if node is None:
                return None
        return node

    def _node(self, handle: KeyHandle) -> _MemoryKey:
        if handle.closed:
            raise StoreError(f"Key handle is closed: {handle.path}")
        return handle.node

    # Keys

    def open_key(self, hive: Hive, subpath: str, writable: bool = False) -> KeyHandle:
        """Open an existing key."""
        self._check_access(hive, subpath)
        node = self._find(hive, subpath)
        if node is None:
            raise KeyNotFoundError(join(hive.value, subpath))
        return MemoryKeyHandle(hive, subpath, writable=writable, node=node)

    def close_key(self, handle: KeyHandle) -> None:
        """Release a handle."""
        handle.closed = True

    def create_key(self, hive: Hive, subpath: str) -> KeyHandle:
        """Create a key and any missing parents."""
        self._check_access(hive, subpath)
        node = self._find(hive, "")
        for segment in split(subpath):
            child = node.children.get(segment.lower())
            if child is None:
                child = _MemoryKey(segment)
                node.children[segment.lower()] = child
                node.last_write = _now()
            node = child
        return MemoryKeyHandle(hive, subpath, writable=True, node=node)

    def delete_key(self, hive: Hive, subpath: str, recursive: bool = False) -> bool:
        """Delete a key, optionally with all its descendants."""
        segments = split(subpath)
        if not segments:
            raise StoreError(f"Cannot delete hive root: {hive.value}")
        self._check_access(hive, subpath)
        parent = self._find(hive, "\\".join(segments[:-1]))
        if parent is None:
            return False
        node = parent.children.get(segments[-1].lower())
        if node is None:
            return False
        if node.children and not recursive:
            raise StoreError(
                f"Cannot delete key with subkeys: {join(hive.value, subpath)}",
                key_path=join(hive.value, subpath),
            )
        del parent.children[segments[-1].lower()]
        parent.last_write = _now()
        return True

    def list_child_names(self, handle: KeyHandle) -> List[str]:
        """Bare names of direct children, in creation order."""
        return [child.name for child in self._node(handle).children.values()]

    def last_write_time(self, handle: KeyHandle) -> Optional[datetime]:
        """When the key or its value set last changed."""
        return self._node(handle).last_write

    # Values

    def get_value(self, handle: KeyHandle, name: str) -> Optional[Any]:
        """Read a value's data."""
        entry = self._node(handle).values.get(name.lower())
        if entry is None:
            return None
        raw = entry[1]
        return list(raw) if isinstance(raw, list) else raw

    def get_value_kind(self, handle: KeyHandle, name: str) -> ValueKind:
        """Read a value's native kind."""
        entry = self._node(handle).values.get(name.lower())
        if entry is None:
            raise ValueNotFoundError(handle.path, name)
        return entry[2]

    def set_value(self, handle: KeyHandle, name: str, raw: Any, kind: ValueKind) -> None:
        """Create or replace a value."""
        node = self._node(handle)
        if not handle.writable:
            raise AccessDeniedError(handle.path)
        data = check_raw(raw, kind)
        existing = node.values.get(name.lower())
        # replacing a value keeps its original spelling
        stored_name = existing[0] if existing else name
        node.values[name.lower()] = (stored_name, data, ValueKind(kind))
        node.last_write = _now()

    def delete_value(self, handle: KeyHandle, name: str) -> bool:
        """Delete a value."""
        node = self._node(handle)
        if not handle.writable:
            raise AccessDeniedError(handle.path)
        if node.values.pop(name.lower(), None) is None:
            return False
        node.last_write = _now()
        return True

    def list_value_names(self, handle: KeyHandle) -> List[str]:
        """Names of the key's values, in creation order."""
        return [entry[0] for entry in self._node(handle).values.values()]
