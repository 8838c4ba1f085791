"""Subtree snapshots: capture, JSON round-trip, restore, and key-to-key copy.

A snapshot is a nested structure mirroring a key and everything below it::

    {
      "_KeyPath": "HKEY_CURRENT_USER\\\\Software\\\\Vendor",
      "_BackupDate": "2024-05-01T09:30:00+00:00",
      "Values": {
        "Version": {"Value": "3", "Type": "DWORD"}
      },
      "SubKeys": {
        "Settings": { ...same shape... }
      }
    }

``Type`` holds the store's native kind name, not the caller-facing
ValueType; restore parses it back and derives the ValueType from it.
``Value`` is always the text form of the data.

Restoring from a snapshot writes that text. Only the text value types come
back with their original type; every other value is restored as a STRING
holding its captured text unless ``reconstruct_types=True`` asks for the
text to be parsed back into the original type. Key-to-key copies do not go
through text and keep every value's native type.

Example:
    engine = SnapshotEngine(backend)
    node = engine.build(r"HKCU\\Software\\Vendor")
    text = node.to_json()

    engine.restore(SnapshotNode.from_json(text), overwrite=True)
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .backends.base import StorageBackend
from .exceptions import (
    InvalidValueNameError,
    RegistryError,
    SerializationError,
    TypeMismatchError,
)
from .paths import is_same_or_descendant, join, resolve, validate_value_name
from .values import (
    TEXT_TYPES,
    ValueType,
    format_value,
    from_native,
    parse_kind,
    parse_value,
    to_native,
)
from .walker import read_node

logger = logging.getLogger(__name__)

KEY_PATH_FIELD = "_KeyPath"
BACKUP_DATE_FIELD = "_BackupDate"
VALUES_FIELD = "Values"
SUBKEYS_FIELD = "SubKeys"
VALUE_FIELD = "Value"
TYPE_FIELD = "Type"

BACKUP_SUFFIX = "_Backup"

_FRACTION = re.compile(r"\.(\d+)")


@dataclass
class SnapshotValue:
    """One captured value: its data and its native kind name."""

    value: Any
    kind: str

    @property
    def text(self) -> str:
        """The data as written to snapshot text."""
        return format_value(self.value)

    def to_dict(self) -> Dict[str, str]:
        return {VALUE_FIELD: self.text, TYPE_FIELD: self.kind}


@dataclass
class SnapshotNode:
    """A captured key and its subtree.

    A node without a key path is an empty placeholder, left where a key
    could not be read during capture. Restore skips placeholders.
    """

    key_path: Optional[str] = None
    captured_at: Optional[datetime] = None
    # _BackupDate text that could not be parsed, written back unchanged
    date_text: Optional[str] = None
    values: Dict[str, SnapshotValue] = field(default_factory=dict)
    children: Dict[str, "SnapshotNode"] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.key_path is None

    def count_keys(self) -> int:
        """Number of non-empty nodes in this subtree, this one included."""
        own = 0 if self.is_empty else 1
        return own + sum(child.count_keys() for child in self.children.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the nested, JSON-compatible snapshot structure."""
        if self.is_empty:
            return {}
        return {
            KEY_PATH_FIELD: self.key_path,
            BACKUP_DATE_FIELD: self._date_text(),
            VALUES_FIELD: {name: value.to_dict() for name, value in self.values.items()},
            SUBKEYS_FIELD: {name: child.to_dict() for name, child in self.children.items()},
        }

    @classmethod
    def from_dict(cls, data: Any, _nested: bool = False) -> "SnapshotNode":
        """Rebuild a node from its structure.

        Value entries lacking ``Value`` or ``Type`` are dropped. Nested
        nodes lacking ``_KeyPath`` become empty placeholders.

        Raises:
            SerializationError: If the structure is not an object, or the
                top-level object has no ``_KeyPath``
        """
        if not isinstance(data, dict):
            raise SerializationError(
                f"Snapshot node must be an object, got {type(data).__name__}"
            )

        key_path = data.get(KEY_PATH_FIELD)
        if not isinstance(key_path, str):
            if _nested:
                return cls()
            raise SerializationError(f"Snapshot is missing the {KEY_PATH_FIELD} field")

        date = data.get(BACKUP_DATE_FIELD)
        node = cls(key_path=key_path, captured_at=_parse_date(date))
        if node.captured_at is None and isinstance(date, str):
            node.date_text = date

        values = data.get(VALUES_FIELD) or {}
        if not isinstance(values, dict):
            raise SerializationError(f"{VALUES_FIELD} of {key_path} must be an object")
        for name, entry in values.items():
            if not isinstance(entry, dict) or VALUE_FIELD not in entry or TYPE_FIELD not in entry:
                logger.debug("Dropping malformed value %r in %s", name, key_path)
                continue
            raw = entry[VALUE_FIELD]
            text = raw if isinstance(raw, str) else json.dumps(raw, ensure_ascii=False)
            kind = entry[TYPE_FIELD]
            node.values[name] = SnapshotValue(text, kind if isinstance(kind, str) else "")

        subkeys = data.get(SUBKEYS_FIELD) or {}
        if not isinstance(subkeys, dict):
            raise SerializationError(f"{SUBKEYS_FIELD} of {key_path} must be an object")
        for name, child in subkeys.items():
            node.children[name] = cls.from_dict(child, _nested=True)

        return node

    def _date_text(self) -> str:
        if self.captured_at is not None:
            return self.captured_at.isoformat()
        if self.date_text:
            return self.date_text
        return datetime.now(timezone.utc).isoformat()

    def to_json(self, indent: int = 2) -> str:
        """Serialize to JSON text; non-ASCII characters are written as-is."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> "SnapshotNode":
        """Parse JSON text produced by ``to_json``.

        Raises:
            SerializationError: If the text is not valid snapshot JSON
        """
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Snapshot is not valid JSON: {e}") from e
        return cls.from_dict(data)


def _parse_date(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp, including 7-digit fractions and a Z suffix."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # fromisoformat wants exactly microseconds
    text = _FRACTION.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _overlaps(first: str, second: str) -> bool:
    """True if either key is the other or lies beneath it."""
    return is_same_or_descendant(first, second) or is_same_or_descendant(second, first)

class SnapshotEngine:
    """Capture, restore, and copy subtrees against a storage backend.

    All operations are best-effort per key: a key that fails is logged and
    skipped, and its siblings carry on. Nothing here is atomic; the store
    may change while a subtree is being walked.
    """

    def __init__(self, backend: StorageBackend):
        self._backend = backend

    # Capture

    def build(self, path: str, max_depth: Optional[int] = None) -> SnapshotNode:
        """Capture a key and its subtree.

        Args:
            path: Hive-qualified key path
            max_depth: Levels of children to capture (None = all)

        Returns:
            The captured node; an empty placeholder if the key was unreadable
        """
        listing = read_node(self._backend, path)
        if listing is None:
            return SnapshotNode()

        node = SnapshotNode(key_path=path, captured_at=datetime.now(timezone.utc))
        for name, raw, kind in listing.values:
            node.values[name] = SnapshotValue(raw, kind.name)

        if max_depth is None or max_depth > 0:
            remaining = None if max_depth is None else max_depth - 1
            for child in listing.children:
                node.children[child] = self.build(join(path, child), remaining)
        return node

    # Restore

    def restore(
        self,
        node: SnapshotNode,
        overwrite: bool = False,
        target_path: Optional[str] = None,
        reconstruct_types: bool = False,
    ) -> bool:
        """Write a snapshot back into the store.

        Args:
            node: Snapshot to restore
            overwrite: Write into keys that already exist. When False, an
                existing key is left alone along with its whole subtree.
            target_path: Restore here instead of the captured key path;
                children go to ``target_path\\child``
            reconstruct_types: Parse captured text back into each value's
                original type instead of restoring non-text values as text

        Returns:
            True if this node was restored. Children that fail are logged
            and do not affect the result.
        """
        if node.is_empty:
            return False
        path = target_path or node.key_path

        try:
            if not self._restore_key(node, path, overwrite, reconstruct_types):
                return False
        except (RegistryError, OSError) as e:
            logger.warning("Failed to restore %s: %s", path, e)
            return False

        for name, child in node.children.items():
            self.restore(child, overwrite, join(path, name), reconstruct_types)
        return True

    def _restore_key(
        self,
        node: SnapshotNode,
        path: str,
        overwrite: bool,
        reconstruct_types: bool,
    ) -> bool:
        hive, subpath = resolve(path)
        if not overwrite and self._backend.key_exists(hive, subpath):
            logger.info("Not overwriting existing key %s", path)
            return False

        with self._backend.created_key(hive, subpath) as handle:
            for name, value in node.values.items():
                kind = parse_kind(value.kind)
                if kind is None:
                    logger.debug("Skipping %s\\%s: unknown type %r", path, name, value.kind)
                    continue
                value_type = from_native(kind)
                try:
                    validate_value_name(name)
                    if reconstruct_types:
                        data = parse_value(value.text, value_type)
                    else:
                        data = value.text
                        if value_type not in TEXT_TYPES:
                            value_type = ValueType.STRING
                    self._backend.set_value(handle, name, data, to_native(value_type))
                except (InvalidValueNameError, TypeMismatchError) as e:
                    logger.debug("Skipping %s\\%s: %s", path, name, e)
        return True

    # Key-to-key copy

    def copy_key(self, source: str, target: str) -> bool:
        """Copy a key and its subtree to another path, keeping value types.

        Values of native kinds outside the six ValueTypes (LINK,
        DWORD_BIG_ENDIAN, NONE, the resource lists) are written as STRING
        holding their text form.

        Returns:
            True if the top-level key was copied
        """
        try:
            if is_same_or_descendant(target, source):
                logger.warning("Refusing to copy %s into its own subtree %s", source, target)
                return False
            return self._copy(source, target)
        except (RegistryError, OSError) as e:
            logger.warning("Failed to copy %s to %s: %s", source, target, e)
            return False

    def _copy(self, source: str, target: str) -> bool:
        listing = read_node(self._backend, source)
        if listing is None:
            return False

        hive, subpath = resolve(target)
        with self._backend.created_key(hive, subpath) as handle:
            for name, raw, kind in listing.values:
                value_type = from_native(kind)
                data = raw if raw is not None else ""
                if to_native(value_type) != kind:
                    data = format_value(raw)
                try:
                    self._backend.set_value(handle, name, data, to_native(value_type))
                except TypeMismatchError as e:
                    logger.debug("Skipping %s\\%s: %s", source, name, e)

        for child in listing.children:
            self.copy_key(join(source, child), join(target, child))
        return True

    def backup_to_key(self, source: str, backup_path: Optional[str] = None) -> bool:
        """Copy a key to a backup key, replacing any earlier backup.

        A backup path inside the source, or one containing it, is refused
        before anything is deleted.

        Args:
            source: Key to back up
            backup_path: Where to put the copy; defaults to the sibling
                ``<source>_Backup``

        Raises:
            InvalidPathError: If either path is malformed
            AccessDeniedError: If an earlier backup cannot be removed
        """
        backup_path = backup_path or source + BACKUP_SUFFIX
        source_hive, source_subpath = resolve(source)
        hive, subpath = resolve(backup_path)
        if _overlaps(source, backup_path):
            logger.warning("Refusing to back up %s to overlapping key %s", source, backup_path)
            return False
        if not self._backend.key_exists(source_hive, source_subpath):
            logger.info("Nothing to back up at %s", source)
            return False

        if self._backend.key_exists(hive, subpath):
            self._backend.delete_key(hive, subpath, recursive=True)

        copied = self.copy_key(source, backup_path)
        if copied:
            logger.info("Backed up %s to %s", source, backup_path)
        return copied

    def restore_from_key(self, backup_path: str, target: str, overwrite: bool = False) -> bool:
        """Copy a backup key over a target key.

        With ``overwrite`` False an existing target is left untouched and
        False is returned. With ``overwrite`` True an existing target is
        deleted, subtree and all, before the copy.
        A backup inside the target, or one containing it, is refused
        before anything is deleted.

        Raises:
            InvalidPathError: If either path is malformed
            AccessDeniedError: If the existing target cannot be removed
        """
        backup_hive, backup_subpath = resolve(backup_path)
        hive, subpath = resolve(target)
        if _overlaps(backup_path, target):
            logger.warning("Refusing to restore %s from overlapping key %s", target, backup_path)
            return False
        if not self._backend.key_exists(backup_hive, backup_subpath):
            logger.info("No backup found at %s", backup_path)
            return False

        if self._backend.key_exists(hive, subpath):
            if not overwrite:
                logger.info("Not overwriting existing key %s", target)
                return False
            self._backend.delete_key(hive, subpath, recursive=True)

        copied = self.copy_key(backup_path, target)
        if copied:
            logger.info("Restored %s from %s", target, backup_path)
        return copied
