"""Core Registry class: the public API over a storage backend."""

import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union
from urllib.parse import urlparse

from .backends.base import StorageBackend
from .backends.memory import MemoryBackend
from .exceptions import (
    KeyNotFoundError,
    RegistryError,
    SerializationError,
    TypeMismatchError,
    ValueNotFoundError,
)
from .paths import resolve, validate_value_name
from .snapshot import SnapshotEngine, SnapshotNode
from .values import (
    KeyInfo,
    RegistryValue,
    ValueType,
    coerce_value,
    from_native,
    to_native,
)
from . import walker

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORE_URL_ENV = "REGTREE_STORE"

# Failures a permissive call turns into its default. OSError covers the
# native backend, which can surface raw Windows errors.
_RECOVERABLE = (RegistryError, OSError)


class Registry:
    """Hive-qualified access to a hierarchical key/value store.

    Most operations come in two flavours. The plain method is permissive:
    it never raises for registry problems (bad path, missing key or value,
    access denied, bad snapshot text) and returns a default instead. The
    ``*_strict`` method raises the matching RegistryError subclass.

    Bulk operations (enumerate, search, collect, snapshot, copy) skip keys
    they cannot read and return whatever they could gather.

    Example:
        from regtree import connect, ValueType

        reg = connect("memory://")
        reg.create_key(r"HKCU\\Software\\Vendor\\App")
        reg.write_value(r"HKCU\\Software\\Vendor\\App", "Retries", 3, ValueType.DWORD)

        reg.read_value(r"HKCU\\Software\\Vendor\\App", "Retries")       # 3
        reg.read_value(r"HKCU\\Software\\Vendor\\App", "Missing", 0)    # 0
        reg.read_value_strict(r"HKCU\\Software\\Vendor\\App", "Missing")
        # raises ValueNotFoundError

        reg.backup_key_to_json(r"HKCU\\Software\\Vendor", "vendor.json")
    """

    def __init__(self, backend: StorageBackend):
        """Create a Registry over a connected backend.

        Use connect() for convenient URL-based connection.

        Args:
            backend: Storage backend instance
        """
        self._backend = backend
        self._snapshots = SnapshotEngine(backend)

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    def _permissive(self, default: T, func: Callable[..., T], *args, **kwargs) -> T:
        try:
            return func(*args, **kwargs)
        except _RECOVERABLE as e:
            logger.debug("%s failed: %s", func.__name__, e)
            return default

    # Values

    def read_value_strict(
        self,
        path: str,
        name: str,
        expected: Union[type, ValueType, None] = None,
    ) -> Any:
        """Read a value.

        Args:
            path: Key path (e.g., ``HKCU\\Software\\Vendor``)
            name: Value name ("" for the key's default value)
            expected: Python type or ValueType the value must have

        Raises:
            InvalidPathError, InvalidValueNameError, KeyNotFoundError,
            AccessDeniedError, ValueNotFoundError, TypeMismatchError
        """
        validate_value_name(name)
        hive, subpath = resolve(path)
        with self._backend.key(hive, subpath) as handle:
            try:
                kind = self._backend.get_value_kind(handle, name)
            except ValueNotFoundError:
                raise ValueNotFoundError(path, name) from None
            value = self._backend.get_value(handle, name)

        if value is None:
            raise ValueNotFoundError(path, name)

        if isinstance(expected, ValueType):
            if from_native(kind) is not expected:
                raise TypeMismatchError(
                    f"Value '{name}' in {path} is {from_native(kind).value}, not {expected.value}",
                    key_path=path,
                    value_name=name,
                )
        elif expected is not None and not isinstance(value, expected):
            raise TypeMismatchError(
                f"Cannot convert value '{name}' of type {type(value).__name__} "
                f"to {expected.__name__}",
                key_path=path,
                value_name=name,
            )
        return value

    def read_value(
        self,
        path: str,
        name: str,
        default: Any = None,
        expected: Union[type, ValueType, None] = None,
    ) -> Any:
        """Read a value, or return ``default`` on any registry error."""
        return self._permissive(default, self.read_value_strict, path, name, expected)

    def write_value_strict(
        self,
        path: str,
        name: str,
        value: Any,
        value_type: ValueType = ValueType.STRING,
    ) -> None:
        """Create or replace a value in an existing key.

        Raises:
            InvalidPathError, InvalidValueNameError, KeyNotFoundError,
            AccessDeniedError, TypeMismatchError
        """
        validate_value_name(name)
        data = coerce_value(value, value_type)
        hive, subpath = resolve(path)
        with self._backend.key(hive, subpath, writable=True) as handle:
            self._backend.set_value(handle, name, data, to_native(value_type))

    def write_value(
        self,
        path: str,
        name: str,
        value: Any,
        value_type: ValueType = ValueType.STRING,
    ) -> bool:
        """Write a value; True on success."""
        return self._permissive(
            False, self._succeeded(self.write_value_strict), path, name, value, value_type
        )

    def delete_value_strict(self, path: str, name: str) -> None:
        """Delete a value.

        Raises:
            InvalidPathError, InvalidValueNameError, KeyNotFoundError,
            AccessDeniedError, ValueNotFoundError
        """
        validate_value_name(name)
        hive, subpath = resolve(path)
        with self._backend.key(hive, subpath, writable=True) as handle:
            deleted = self._backend.delete_value(handle, name)
        if not deleted:
            raise ValueNotFoundError(path, name)

    def delete_value(self, path: str, name: str) -> bool:
        """Delete a value; True if it existed and was deleted."""
        return self._permissive(False, self._succeeded(self.delete_value_strict), path, name)

    def value_exists(self, path: str, name: str) -> bool:
        """Check if a key holds a value with this name."""

        def check() -> bool:
            hive, subpath = resolve(path)
            with self._backend.key(hive, subpath) as handle:
                names = self._backend.list_value_names(handle)
            return name.lower() in (n.lower() for n in names)

        return self._permissive(False, check)

    # Keys

    def create_key_strict(self, path: str) -> None:
        """Create a key and any missing parents.

        Raises:
            InvalidPathError, AccessDeniedError
        """
        hive, subpath = resolve(path)
        with self._backend.created_key(hive, subpath):
            pass

    def create_key(self, path: str) -> bool:
        """Create a key; True on success (including when it already existed)."""
        return self._permissive(False, self._succeeded(self.create_key_strict), path)

    def delete_key_strict(self, path: str, recursive: bool = False) -> None:
        """Delete a key.

        Raises:
            InvalidPathError, KeyNotFoundError, AccessDeniedError,
            StoreError (key has subkeys and not recursive, or is a hive root)
        """
        hive, subpath = resolve(path)
        if not self._backend.delete_key(hive, subpath, recursive=recursive):
            raise KeyNotFoundError(path)

    def delete_key(self, path: str, recursive: bool = False) -> bool:
        """Delete a key; True if it existed and was deleted."""
        return self._permissive(False, self._succeeded(self.delete_key_strict), path, recursive)

    def key_exists(self, path: str) -> bool:
        """Check if a key exists (False if it cannot be opened at all)."""

        def check() -> bool:
            hive, subpath = resolve(path)
            return self._backend.key_exists(hive, subpath)

        return self._permissive(False, check)

    def get_key_info_strict(self, path: str) -> KeyInfo:
        """Describe a key: child names, values, last-write time.

        Raises:
            InvalidPathError, KeyNotFoundError, AccessDeniedError
        """
        hive, subpath = resolve(path)
        with self._backend.key(hive, subpath) as handle:
            info = KeyInfo(
                path=path,
                subkeys=list(self._backend.list_child_names(handle)),
                last_write_time=self._backend.last_write_time(handle),
            )
            for name in self._backend.list_value_names(handle):
                info.values.append(
                    RegistryValue(
                        name=name,
                        value=self._backend.get_value(handle, name),
                        type=from_native(self._backend.get_value_kind(handle, name)),
                    )
                )
        return info

    def get_key_info(self, path: str) -> Optional[KeyInfo]:
        """Describe a key, or None if it cannot be read."""
        return self._permissive(None, self.get_key_info_strict, path)

    # Traversal and search

    def enumerate_subkeys(
        self, path: str, recursive: bool = False, max_depth: Optional[int] = None
    ) -> List[str]:
        """Full paths of a key's children (all descendants if recursive)."""
        return walker.enumerate_subkeys(self._backend, path, recursive, max_depth)

    def search_keys(
        self,
        path: str,
        pattern: str,
        recursive: bool = False,
        max_depth: Optional[int] = None,
    ) -> List[str]:
        """Full paths of child keys whose name matches ``pattern``."""
        return walker.search_keys(self._backend, path, pattern, recursive, max_depth)

    def search_values(
        self,
        path: str,
        pattern: str,
        recursive: bool = False,
        max_depth: Optional[int] = None,
    ) -> List[RegistryValue]:
        """Values whose name matches ``pattern``, named by full path."""
        return walker.search_values(self._backend, path, pattern, recursive, max_depth)

    def get_all_values(
        self,
        path: str,
        include_subkeys: bool = False,
        max_depth: Optional[int] = None,
    ) -> Dict[str, Any]:
        """All values of a key as a flat mapping (``child\\name`` for subkeys)."""
        return walker.collect_values(self._backend, path, include_subkeys, max_depth)

    # Snapshots

    def snapshot_strict(self, path: str, max_depth: Optional[int] = None) -> SnapshotNode:
        """Capture a key and its subtree.

        Descendants that cannot be read are captured as empty placeholders.

        Raises:
            InvalidPathError, KeyNotFoundError, AccessDeniedError
        """
        hive, subpath = resolve(path)
        with self._backend.key(hive, subpath):
            pass
        node = self._snapshots.build(path, max_depth)
        if node.is_empty:
            # removed or locked between the check and the capture
            raise KeyNotFoundError(path)
        return node

    def snapshot(self, path: str, max_depth: Optional[int] = None) -> Optional[SnapshotNode]:
        """Capture a key and its subtree, or None if the key cannot be read."""
        return self._permissive(None, self.snapshot_strict, path, max_depth)

    def restore_snapshot(
        self,
        node: SnapshotNode,
        overwrite: bool = False,
        target_path: Optional[str] = None,
        reconstruct_types: bool = False,
    ) -> bool:
        """Write a snapshot back into the store.

        See SnapshotEngine.restore for the overwrite and typing rules.
        """
        return self._snapshots.restore(node, overwrite, target_path, reconstruct_types)

    def backup_key_to_json_strict(self, path: str, file_path: Union[str, Path]) -> None:
        """Capture a key and write the snapshot to a UTF-8 JSON file.

        Raises:
            InvalidPathError, KeyNotFoundError, AccessDeniedError, OSError
        """
        node = self.snapshot_strict(path)
        Path(file_path).write_text(node.to_json(), encoding="utf-8")
        logger.info("Backed up %s (%d keys) to %s", path, node.count_keys(), file_path)

    def backup_key_to_json(self, path: str, file_path: Union[str, Path]) -> bool:
        """Capture a key to a JSON file; True on success."""
        return self._permissive(
            False, self._succeeded(self.backup_key_to_json_strict), path, file_path
        )

    def restore_key_from_json_strict(
        self,
        file_path: Union[str, Path],
        overwrite: bool = False,
        target_path: Optional[str] = None,
        reconstruct_types: bool = False,
    ) -> bool:
        """Restore a snapshot file written by ``backup_key_to_json``.

        Returns:
            Whether the top-level key was restored (False when it already
            existed and ``overwrite`` is False)

        Raises:
            SerializationError: If the file is not valid snapshot JSON
            InvalidPathError: If the restore path is malformed
            OSError: If the file cannot be read
        """
        try:
            text = Path(file_path).read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise SerializationError(f"Snapshot file is not UTF-8: {file_path}") from e
        node = SnapshotNode.from_json(text)
        resolve(target_path or node.key_path)
        return self._snapshots.restore(node, overwrite, target_path, reconstruct_types)

    def restore_key_from_json(
        self,
        file_path: Union[str, Path],
        overwrite: bool = False,
        target_path: Optional[str] = None,
        reconstruct_types: bool = False,
    ) -> bool:
        """Restore a snapshot file; True if the top-level key was restored."""
        return self._permissive(
            False,
            self.restore_key_from_json_strict,
            file_path,
            overwrite,
            target_path,
            reconstruct_types,
        )

    def copy_key(self, source: str, target: str) -> bool:
        """Copy a key and its subtree, keeping native value types."""
        return self._snapshots.copy_key(source, target)

    def backup_key_to_registry(self, source: str, backup_path: Optional[str] = None) -> bool:
        """Copy a key to ``backup_path`` (default ``<source>_Backup``).

        Any earlier backup at that path is deleted first.
        """
        return self._permissive(False, self._snapshots.backup_to_key, source, backup_path)

    def restore_key_from_registry(
        self, backup_path: str, target: str, overwrite: bool = False
    ) -> bool:
        """Copy a backup key over ``target``.

        An existing target is left alone unless ``overwrite`` is True, in
        which case it is deleted with its subtree before the copy.
        """
        return self._permissive(
            False, self._snapshots.restore_from_key, backup_path, target, overwrite
        )

    # Lifecycle

    def close(self) -> None:
        """Close the registry and release backend resources."""
        self._backend.close()

    def __enter__(self) -> "Registry":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()

    @staticmethod
    def _succeeded(func: Callable[..., Any]) -> Callable[..., bool]:
        """Turn a strict call that returns nothing into one returning True."""

        def call(*args, **kwargs) -> bool:
            func(*args, **kwargs)
            return True

        call.__name__ = func.__name__
        return call


def default_store_url() -> str:
    """Store URL from ``REGTREE_STORE``, else the platform default."""
    url = os.environ.get(STORE_URL_ENV)
    if url:
        return url
    return "winreg://" if sys.platform == "win32" else "sqlite:///regtree.db"


def connect(url: Optional[str] = None) -> Registry:
    """Connect to a store using a URL.

    Supported URL schemes:
        - memory://          In-memory store (testing)
        - sqlite:///path.db  SQLite file store
        - sqlite:///:memory: SQLite in-memory
        - winreg://          The live Windows registry

    Args:
        url: Connection URL; defaults to default_store_url()

    Returns:
        Connected Registry instance

    Example:
        reg = connect("sqlite:///hives.db")
        reg = connect("memory://")
    """
    if url is None:
        url = default_store_url()
    parsed = urlparse(url)
    scheme = parsed.scheme

    if scheme == "memory":
        backend = MemoryBackend()
        backend.connect()
        return Registry(backend)

    elif scheme == "sqlite":
        from .backends.sqlite import SQLiteBackend

        # Handle sqlite:///path and sqlite:///:memory:
        path = parsed.path
        if path.startswith("/"):
            path = path[1:]  # Remove leading slash from file path

        backend = SQLiteBackend()
        backend.connect(path=path if path else ":memory:")
        return Registry(backend)

    elif scheme == "winreg":
        try:
            from .backends.native import WinregBackend
        except ImportError as e:
            raise RuntimeError(
                "The winreg:// store needs the Windows winreg module; "
                "use sqlite:// or memory:// on this platform"
            ) from e

        backend = WinregBackend()
        backend.connect()
        return Registry(backend)

    else:
        raise ValueError(f"Unknown storage scheme: {scheme}")
