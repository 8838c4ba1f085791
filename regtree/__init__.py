"""Structured access to a hive-qualified hierarchical key/value store.

This package provides read, write, enumerate, search, and snapshot
operations over registry-style paths like ``HKCU\\Software\\Vendor\\App``.

Quick Start:
    from regtree import connect, ValueType

    # Connect to a store
    reg = connect("sqlite:///hives.db")

    # Keys and values
    reg.create_key(r"HKCU\\Software\\Vendor\\App")
    reg.write_value(r"HKCU\\Software\\Vendor\\App", "Retries", 3, ValueType.DWORD)
    print(reg.read_value(r"HKCU\\Software\\Vendor\\App", "Retries"))  # 3

    # Search
    for path in reg.search_keys(r"HKCU\\Software", "Vend*", recursive=True):
        print(path)

    # Snapshot a subtree to JSON and back
    reg.backup_key_to_json(r"HKCU\\Software\\Vendor", "vendor.json")
    reg.restore_key_from_json("vendor.json", overwrite=True)

Supported backends:
    - memory://           In-memory store (testing)
    - sqlite:///path.db   SQLite file store
    - sqlite:///:memory:  SQLite in-memory
    - winreg://           The live Windows registry

Key Classes:
    - Registry: Main interface, permissive and ``*_strict`` methods
    - connect(): Create a Registry from a URL
    - SnapshotNode / SnapshotEngine: Subtree capture, restore, and copy
"""

from .core import Registry, connect, default_store_url
from .backends import KeyHandle, StorageBackend, MemoryBackend, SQLiteBackend
from .paths import Hive, resolve, validate_path, validate_value_name
from .values import (
    KeyInfo,
    RegistryValue,
    ValueKind,
    ValueType,
    from_native,
    to_native,
)
from .matching import matches
from .snapshot import SnapshotEngine, SnapshotNode, SnapshotValue
from .exceptions import (
    RegistryError,
    StoreError,
    InvalidPathError,
    InvalidValueNameError,
    KeyNotFoundError,
    ValueNotFoundError,
    AccessDeniedError,
    TypeMismatchError,
    SerializationError,
)

__all__ = [
    # Main API
    "Registry",
    "connect",
    "default_store_url",
    # Backends
    "KeyHandle",
    "StorageBackend",
    "MemoryBackend",
    "SQLiteBackend",
    # Paths and values
    "Hive",
    "resolve",
    "validate_path",
    "validate_value_name",
    "KeyInfo",
    "RegistryValue",
    "ValueKind",
    "ValueType",
    "from_native",
    "to_native",
    "matches",
    # Snapshots
    "SnapshotEngine",
    "SnapshotNode",
    "SnapshotValue",
    # Exceptions
    "RegistryError",
    "StoreError",
    "InvalidPathError",
    "InvalidValueNameError",
    "KeyNotFoundError",
    "ValueNotFoundError",
    "AccessDeniedError",
    "TypeMismatchError",
    "SerializationError",
]

__version__ = "0.1.0"
