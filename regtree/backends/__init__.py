"""Storage backends for regtree.

The native Windows backend lives in ``regtree.backends.native`` and is not
imported here, since it needs the ``winreg`` module.
"""

from .base import KeyHandle, StorageBackend
from .memory import MemoryBackend
from .sqlite import SQLiteBackend

__all__ = [
    "KeyHandle",
    "StorageBackend",
    "MemoryBackend",
    "SQLiteBackend",
]
