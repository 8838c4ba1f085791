"""Native Windows registry backend.

Only importable on Windows; ``connect("winreg://")`` imports it lazily.
"""

import winreg
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

from ..exceptions import (
    AccessDeniedError,
    KeyNotFoundError,
    StoreError,
    TypeMismatchError,
    ValueNotFoundError,
)
from ..paths import Hive, join, split
from ..values import ValueKind
from .base import KeyHandle, StorageBackend

_HIVE_HANDLES = {
    Hive.CLASSES_ROOT: winreg.HKEY_CLASSES_ROOT,
    Hive.CURRENT_USER: winreg.HKEY_CURRENT_USER,
    Hive.LOCAL_MACHINE: winreg.HKEY_LOCAL_MACHINE,
    Hive.USERS: winreg.HKEY_USERS,
    Hive.CURRENT_CONFIG: winreg.HKEY_CURRENT_CONFIG,
}

# FILETIME counts 100ns intervals since 1601-01-01
_FILETIME_EPOCH = datetime(1601, 1, 1, tzinfo=timezone.utc)


@dataclass
class WinregKeyHandle(KeyHandle):
    native: Any = None


class WinregBackend(StorageBackend):
    """Storage backend over the live Windows registry.

    Example:
        backend = WinregBackend()
        backend.connect(access=winreg.KEY_WOW64_64KEY)
    """

    def __init__(self):
        self._view = 0

    def connect(self, access: int = 0, **kwargs) -> None:
        """Nothing to open; remembers the registry view flags.

        Args:
            access: Extra access flags for every open (e.g. KEY_WOW64_64KEY)
        """
        self._view = access

    def close(self) -> None:
        """Nothing to release; hive handles are predefined."""
        pass

    def _native(self, handle: KeyHandle) -> Any:
        if handle.closed:
            raise StoreError(f"Key handle is closed: {handle.path}")
        return handle.native

    def open_key(self, hive: Hive, subpath: str, writable: bool = False) -> KeyHandle:
        """Open an existing key."""
        access = winreg.KEY_READ | self._view
        if writable:
            access |= winreg.KEY_WRITE
        try:
            native = winreg.OpenKeyEx(_HIVE_HANDLES[hive], subpath, 0, access)
        except FileNotFoundError:
            raise KeyNotFoundError(join(hive.value, subpath)) from None
        except PermissionError:
            raise AccessDeniedError(join(hive.value, subpath)) from None
        return WinregKeyHandle(hive, subpath, writable=writable, native=native)

    def close_key(self, handle: KeyHandle) -> None:
        """Release a handle."""
        if not handle.closed:
            handle.native.Close()
            handle.closed = True

    def create_key(self, hive: Hive, subpath: str) -> KeyHandle:
        """Create a key and any missing parents."""
        try:
            native = winreg.CreateKeyEx(
                _HIVE_HANDLES[hive], subpath, 0, winreg.KEY_ALL_ACCESS | self._view
            )
        except PermissionError:
            raise AccessDeniedError(join(hive.value, subpath)) from None
        return WinregKeyHandle(hive, subpath, writable=True, native=native)

    def delete_key(self, hive: Hive, subpath: str, recursive: bool = False) -> bool:
        """Delete a key, children first when recursive."""
        segments = split(subpath)
        if not segments:
            raise StoreError(f"Cannot delete hive root: {hive.value}")
        if not self.key_exists(hive, subpath):
            return False
        with self.key(hive, subpath) as handle:
            children = self.list_child_names(handle)
        if children and not recursive:
            raise StoreError(
                f"Cannot delete key with subkeys: {join(hive.value, subpath)}",
                key_path=join(hive.value, subpath),
            )
        if recursive:
            for child in children:
                self.delete_key(hive, join(subpath, child), recursive=True)
        try:
            winreg.DeleteKeyEx(_HIVE_HANDLES[hive], subpath, self._view, 0)
        except PermissionError:
            raise AccessDeniedError(join(hive.value, subpath)) from None
        except OSError as e:
            raise StoreError(
                f"Cannot delete key {join(hive.value, subpath)}: {e}",
                key_path=join(hive.value, subpath),
            ) from e
        return True

    def list_child_names(self, handle: KeyHandle) -> List[str]:
        """Bare names of direct children."""
        native = self._native(handle)
        count = winreg.QueryInfoKey(native)[0]
        return [winreg.EnumKey(native, i) for i in range(count)]

    def last_write_time(self, handle: KeyHandle) -> Optional[datetime]:
        """Last-write FILETIME reported by the registry."""
        ticks = winreg.QueryInfoKey(self._native(handle))[2]
        return _FILETIME_EPOCH + timedelta(microseconds=ticks // 10)

    def get_value(self, handle: KeyHandle, name: str) -> Optional[Any]:
        """Read a value's data."""
        try:
            return winreg.QueryValueEx(self._native(handle), name)[0]
        except FileNotFoundError:
            return None

    def get_value_kind(self, handle: KeyHandle, name: str) -> ValueKind:
        """Read a value's native kind."""
        try:
            kind = winreg.QueryValueEx(self._native(handle), name)[1]
        except FileNotFoundError:
            raise ValueNotFoundError(handle.path, name) from None
        try:
            return ValueKind(kind)
        except ValueError:
            return ValueKind.NONE

    def set_value(self, handle: KeyHandle, name: str, raw: Any, kind: ValueKind) -> None:
        """Create or replace a value."""
        native = self._native(handle)
        if not handle.writable:
            raise AccessDeniedError(handle.path)
        try:
            winreg.SetValueEx(native, name, 0, int(kind), raw)
        except (TypeError, ValueError) as e:
            raise TypeMismatchError(
                f"Cannot write {name!r} as {ValueKind(kind).name}: {e}",
                key_path=handle.path,
                value_name=name,
            ) from e
        except PermissionError:
            raise AccessDeniedError(handle.path) from None

    def delete_value(self, handle: KeyHandle, name: str) -> bool:
        """Delete a value."""
        native = self._native(handle)
        if not handle.writable:
            raise AccessDeniedError(handle.path)
        try:
            winreg.DeleteValue(native, name)
        except FileNotFoundError:
            return False
        except PermissionError:
            raise AccessDeniedError(handle.path) from None
        return True

    def list_value_names(self, handle: KeyHandle) -> List[str]:
        """Names of the key's values."""
        native = self._native(handle)
        count = winreg.QueryInfoKey(native)[1]
        return [winreg.EnumValue(native, i)[0] for i in range(count)]
