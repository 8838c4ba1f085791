"""Abstract base class for storage backends."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator, List, Optional

from ..exceptions import KeyNotFoundError
from ..paths import Hive, join
from ..values import ValueKind


@dataclass
class KeyHandle:
    """An open key.

    Backends subclass this to attach whatever native handle they need.
    A handle is valid until passed to ``close_key``.
    """

    hive: Hive
    subpath: str
    writable: bool = False
    closed: bool = False

    @property
    def path(self) -> str:
        """Full hive-qualified path of the key."""
        return join(self.hive.value, self.subpath)


class StorageBackend(ABC):
    """Abstract base class for storage backends.

    Backends implement the actual key/value hierarchy (memory, SQLite, the
    native registry) while the Registry class handles path parsing, value
    coercion, traversal, and the public API.

    Handles are meant to be short-lived: open a key, read or write it,
    close it. ``key()`` wraps that pattern in a context manager.
    """

    @abstractmethod
    def connect(self, **kwargs) -> None:
        """Establish connection to storage.

        Args:
            **kwargs: Backend-specific connection parameters
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close connection and release resources."""
        pass

    @abstractmethod
    def open_key(self, hive: Hive, subpath: str, writable: bool = False) -> KeyHandle:
        """Open an existing key.

        Args:
            hive: The hive the key lives in
            subpath: Backslash-separated path below the hive ("" for the hive)
            writable: Open for writing as well as reading

        Returns:
            An open KeyHandle

        Raises:
            KeyNotFoundError: If the key does not exist
            AccessDeniedError: If the store refuses access
        """
        pass

    @abstractmethod
    def close_key(self, handle: KeyHandle) -> None:
        """Release a handle. Closing twice is a no-op."""
        pass

    @abstractmethod
    def get_value(self, handle: KeyHandle, name: str) -> Optional[Any]:
        """Read a value's raw data.

        Returns:
            The stored data, or None if the key holds no such value
        """
        pass

    @abstractmethod
    def get_value_kind(self, handle: KeyHandle, name: str) -> ValueKind:
        """Read a value's native kind.

        Raises:
            ValueNotFoundError: If the key holds no such value
        """
        pass

    @abstractmethod
    def set_value(self, handle: KeyHandle, name: str, raw: Any, kind: ValueKind) -> None:
        """Create or replace a value.

        Raises:
            AccessDeniedError: If the handle was not opened writable
            TypeMismatchError: If the data does not fit the kind
        """
        pass

    @abstractmethod
    def delete_value(self, handle: KeyHandle, name: str) -> bool:
        """Delete a value.

        Returns:
            True if the value existed and was deleted, False if not found
        """
        pass

    @abstractmethod
    def list_value_names(self, handle: KeyHandle) -> List[str]:
        """Names of the values stored directly under the key."""
        pass

    @abstractmethod
    def list_child_names(self, handle: KeyHandle) -> List[str]:
        """Bare names of the key's direct children."""
        pass

    @abstractmethod
    def create_key(self, hive: Hive, subpath: str) -> KeyHandle:
        """Create a key (and any missing parents) and open it writable.

        Opening a key that already exists is not an error.
        """
        pass

    @abstractmethod
    def delete_key(self, hive: Hive, subpath: str, recursive: bool = False) -> bool:
        """Delete a key.

        Args:
            hive: The hive the key lives in
            subpath: Path below the hive; must not be empty
            recursive: Also delete all descendants

        Returns:
            True if the key existed and was deleted, False if not found

        Raises:
            StoreError: If the key has children and recursive is False,
                or if subpath names the hive itself
        """
        pass

    def last_write_time(self, handle: KeyHandle) -> Optional[datetime]:
        """When the key was last modified, if the backend tracks it."""
        return None

    def key_exists(self, hive: Hive, subpath: str) -> bool:
        """Check if a key exists."""
        try:
            handle = self.open_key(hive, subpath)
        except KeyNotFoundError:
            return False
        self.close_key(handle)
        return True

    @contextmanager
    def key(self, hive: Hive, subpath: str, writable: bool = False) -> Iterator[KeyHandle]:
        """Open a key for the duration of a ``with`` block.

        Example:
            with backend.key(Hive.CURRENT_USER, "Software") as handle:
                names = backend.list_child_names(handle)
        """
        handle = self.open_key(hive, subpath, writable=writable)
        try:
            yield handle
        finally:
            self.close_key(handle)

    @contextmanager
    def created_key(self, hive: Hive, subpath: str) -> Iterator[KeyHandle]:
        """Like ``key()``, but creates the key first if needed."""
        handle = self.create_key(hive, subpath)
        try:
            yield handle
        finally:
            self.close_key(handle)
