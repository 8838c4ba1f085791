"""SQLite storage backend."""

import json
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

from ..exceptions import (
    AccessDeniedError,
    KeyNotFoundError,
    StoreError,
    ValueNotFoundError,
)
from ..paths import Hive, join, split
from ..values import ValueKind, check_raw
from .base import KeyHandle, StorageBackend

# Kinds whose data is kept as-is in the JSON column; everything else is bytes
_JSON_NATIVE_KINDS = frozenset(
    {
        ValueKind.SZ,
        ValueKind.EXPAND_SZ,
        ValueKind.LINK,
        ValueKind.DWORD,
        ValueKind.DWORD_BIG_ENDIAN,
        ValueKind.QWORD,
        ValueKind.MULTI_SZ,
    }
)


def _encode(raw: Any, kind: ValueKind) -> str:
    if kind not in _JSON_NATIVE_KINDS and raw is not None:
        raw = raw.hex()
    return json.dumps(raw, ensure_ascii=False)


def _decode(data: str, kind: ValueKind) -> Any:
    raw = json.loads(data)
    if kind not in _JSON_NATIVE_KINDS and raw is not None:
        return bytes.fromhex(raw)
    return raw


@dataclass
class SQLiteKeyHandle(KeyHandle):
    key_id: Optional[int] = None


class SQLiteBackend(StorageBackend):
    """SQLite storage backend.

    Keeps a complete hive tree in a SQLite database file. Zero
    configuration required, and it works on any platform, which makes it
    the default store away from Windows.

    Example:
        backend = SQLiteBackend()
        backend.connect(path="hives.db")

        # Or in-memory
        backend.connect(path=":memory:")
    """

    def __init__(self):
        self._conn: Optional[sqlite3.Connection] = None
        self._path: Optional[str] = None

    def connect(self, path: str = ":memory:", **kwargs) -> None:
        """Connect to SQLite database.

        Args:
            path: Database file path, or ":memory:" for in-memory database
        """
        self._path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._create_tables()

    def _create_tables(self) -> None:
        """Create the tables and hive root rows if they don't exist."""
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS keys (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                hive TEXT NOT NULL,
                parent_id INTEGER REFERENCES keys(id) ON DELETE CASCADE,
                name TEXT NOT NULL COLLATE NOCASE,
                last_write REAL NOT NULL,
                UNIQUE (parent_id, name)
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS key_values (
                key_id INTEGER NOT NULL REFERENCES keys(id) ON DELETE CASCADE,
                name TEXT NOT NULL COLLATE NOCASE,
                kind INTEGER NOT NULL,
                data TEXT NOT NULL,
                PRIMARY KEY (key_id, name)
            )
            """
        )
        now = time.time()
        for hive in Hive:
            row = self._conn.execute(
                "SELECT id FROM keys WHERE hive = ? AND parent_id IS NULL",
                (hive.value,),
            ).fetchone()
            if row is None:
                self._conn.execute(
                    "INSERT INTO keys (hive, parent_id, name, last_write) VALUES (?, NULL, ?, ?)",
                    (hive.value, hive.value, now),
                )
        self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    # Tree navigation

    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("SQLite backend is not connected")
        return self._conn

    def _lookup(self, hive: Hive, subpath: str) -> Optional[int]:
        conn = self._db()
        row = conn.execute(
            "SELECT id FROM keys WHERE hive = ? AND parent_id IS NULL", (hive.value,)
        ).fetchone()
        key_id = row["id"]
        for segment in split(subpath):
            row = conn.execute(
                "SELECT id FROM keys WHERE parent_id = ? AND name = ?", (key_id, segment)
            ).fetchone()
            if row is None:
                return None
            key_id = row["id"]
        return key_id

    def _key_id(self, handle: KeyHandle) -> int:
        if handle.closed:
            raise StoreError(f"Key handle is closed: {handle.path}")
        return handle.key_id

    def _touch(self, key_id: int) -> None:
        self._db().execute(
            "UPDATE keys SET last_write = ? WHERE id = ?", (time.time(), key_id)
        )

    # Keys

    def open_key(self, hive: Hive, subpath: str, writable: bool = False) -> KeyHandle:
        """Open an existing key."""
        key_id = self._lookup(hive, subpath)
        if key_id is None:
            raise KeyNotFoundError(join(hive.value, subpath))
        return SQLiteKeyHandle(hive, subpath, writable=writable, key_id=key_id)

    def close_key(self, handle: KeyHandle) -> None:
        """Release a handle."""
        handle.closed = True

    def create_key(self, hive: Hive, subpath: str) -> KeyHandle:
        """Create a key and any missing parents."""
        conn = self._db()
        key_id = self._lookup(hive, "")
        for segment in split(subpath):
            row = conn.execute(
                "SELECT id FROM keys WHERE parent_id = ? AND name = ?", (key_id, segment)
            ).fetchone()
            if row is None:
                cursor = conn.execute(
                    "INSERT INTO keys (hive, parent_id, name, last_write) VALUES (?, ?, ?, ?)",
                    (hive.value, key_id, segment, time.time()),
                )
                self._touch(key_id)
                key_id = cursor.lastrowid
            else:
                key_id = row["id"]
        conn.commit()
        return SQLiteKeyHandle(hive, subpath, writable=True, key_id=key_id)

    def delete_key(self, hive: Hive, subpath: str, recursive: bool = False) -> bool:
        """Delete a key; descendants go with it through ON DELETE CASCADE."""
        if not subpath:
            raise StoreError(f"Cannot delete hive root: {hive.value}")
        conn = self._db()
        key_id = self._lookup(hive, subpath)
        if key_id is None:
            return False
        if not recursive:
            child = conn.execute(
                "SELECT 1 FROM keys WHERE parent_id = ? LIMIT 1", (key_id,)
            ).fetchone()
            if child is not None:
                raise StoreError(
                    f"Cannot delete key with subkeys: {join(hive.value, subpath)}",
                    key_path=join(hive.value, subpath),
                )
        parent = conn.execute(
            "SELECT parent_id FROM keys WHERE id = ?", (key_id,)
        ).fetchone()
        conn.execute("DELETE FROM keys WHERE id = ?", (key_id,))
        self._touch(parent["parent_id"])
        conn.commit()
        return True

    def list_child_names(self, handle: KeyHandle) -> List[str]:
        """Bare names of direct children, in creation order."""
        cursor = self._db().execute(
            "SELECT name FROM keys WHERE parent_id = ? ORDER BY id",
            (self._key_id(handle),),
        )
        return [row["name"] for row in cursor]

    def last_write_time(self, handle: KeyHandle) -> Optional[datetime]:
        """When the key or its value set last changed."""
        row = self._db().execute(
            "SELECT last_write FROM keys WHERE id = ?", (self._key_id(handle),)
        ).fetchone()
        if row is None:
            return None
        return datetime.fromtimestamp(row["last_write"], tz=timezone.utc)

    # Values

    def _value_row(self, handle: KeyHandle, name: str) -> Optional[sqlite3.Row]:
        return self._db().execute(
            "SELECT kind, data FROM key_values WHERE key_id = ? AND name = ?",
            (self._key_id(handle), name),
        ).fetchone()

    def get_value(self, handle: KeyHandle, name: str) -> Optional[Any]:
        """Read a value's data."""
        row = self._value_row(handle, name)
        if row is None:
            return None
        return _decode(row["data"], ValueKind(row["kind"]))

    def get_value_kind(self, handle: KeyHandle, name: str) -> ValueKind:
        """Read a value's native kind."""
        row = self._value_row(handle, name)
        if row is None:
            raise ValueNotFoundError(handle.path, name)
        return ValueKind(row["kind"])

    def set_value(self, handle: KeyHandle, name: str, raw: Any, kind: ValueKind) -> None:
        """Create or replace a value; a replaced value keeps its position and spelling."""
        key_id = self._key_id(handle)
        if not handle.writable:
            raise AccessDeniedError(handle.path)
        kind = ValueKind(kind)
        data = _encode(check_raw(raw, kind), kind)
        conn = self._db()
        conn.execute(
            """
            INSERT INTO key_values (key_id, name, kind, data)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (key_id, name) DO UPDATE SET
                kind = excluded.kind,
                data = excluded.data
            """,
            (key_id, name, int(kind), data),
        )
        self._touch(key_id)
        conn.commit()

    def delete_value(self, handle: KeyHandle, name: str) -> bool:
        """Delete a value."""
        key_id = self._key_id(handle)
        if not handle.writable:
            raise AccessDeniedError(handle.path)
        conn = self._db()
        cursor = conn.execute(
            "DELETE FROM key_values WHERE key_id = ? AND name = ?", (key_id, name)
        )
        if cursor.rowcount > 0:
            self._touch(key_id)
        conn.commit()
        return cursor.rowcount > 0

    def list_value_names(self, handle: KeyHandle) -> List[str]:
        """Names of the key's values, in creation order."""
        cursor = self._db().execute(
            "SELECT name FROM key_values WHERE key_id = ? ORDER BY rowid",
            (self._key_id(handle),),
        )
        return [row["name"] for row in cursor]
