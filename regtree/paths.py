"""Hive-qualified path parsing and validation.

Registry paths look like ``HKEY_CURRENT_USER\\Software\\Vendor\\App``. The
first segment names one of five hives, either by its long name or by its
short alias (``HKCU``); the alias is case-insensitive. The rest is the
sub-path inside that hive, which is empty when the path names a hive itself.

Example:
    hive, subpath = resolve(r"hkcu\\Software\\Vendor")
    # (Hive.CURRENT_USER, "Software\\Vendor")
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from .exceptions import InvalidPathError, InvalidValueNameError

SEPARATOR = "\\"

INVALID_VALUE_NAME_CHARS = frozenset('\\/:*?"<>|')


class Hive(Enum):
    """The five top-level partitions of the store."""

    CLASSES_ROOT = "HKEY_CLASSES_ROOT"
    CURRENT_USER = "HKEY_CURRENT_USER"
    LOCAL_MACHINE = "HKEY_LOCAL_MACHINE"
    USERS = "HKEY_USERS"
    CURRENT_CONFIG = "HKEY_CURRENT_CONFIG"


HIVE_ALIASES: Dict[str, Hive] = {
    "HKEY_CLASSES_ROOT": Hive.CLASSES_ROOT,
    "HKCR": Hive.CLASSES_ROOT,
    "HKEY_CURRENT_USER": Hive.CURRENT_USER,
    "HKCU": Hive.CURRENT_USER,
    "HKEY_LOCAL_MACHINE": Hive.LOCAL_MACHINE,
    "HKLM": Hive.LOCAL_MACHINE,
    "HKEY_USERS": Hive.USERS,
    "HKU": Hive.USERS,
    "HKEY_CURRENT_CONFIG": Hive.CURRENT_CONFIG,
    "HKCC": Hive.CURRENT_CONFIG,
}


def lookup_hive(alias: str) -> Optional[Hive]:
    """Return the hive for a root alias, or None if it is not recognized."""
    return HIVE_ALIASES.get(alias.upper())


def validate_path(path: str) -> None:
    """Check that a path is well formed.

    Raises:
        InvalidPathError: If the path is empty or whitespace, its first
            segment is not a known hive alias, or it contains an empty
            segment (doubled or trailing separator).
    """
    if not isinstance(path, str) or not path.strip():
        raise InvalidPathError(str(path), "Registry path cannot be empty")

    root, _, subpath = path.partition(SEPARATOR)
    if lookup_hive(root) is None:
        raise InvalidPathError(path, f"Invalid root key {root.upper()!r}")

    if "\\\\" in path or "//" in path:
        raise InvalidPathError(path, "Registry path contains a doubled separator")

    if SEPARATOR in path and any(not segment for segment in subpath.split(SEPARATOR)):
        raise InvalidPathError(path, "Registry path contains an empty segment")


def resolve(path: str) -> Tuple[Hive, str]:
    """Split a path into its hive and the sub-path below it.

    Args:
        path: Hive-qualified path (e.g., ``HKLM\\SOFTWARE\\Vendor``)

    Returns:
        Tuple of (hive, subpath); subpath is "" for a bare hive alias

    Raises:
        InvalidPathError: If the path fails validation
    """
    validate_path(path)
    root, _, subpath = path.partition(SEPARATOR)
    return HIVE_ALIASES[root.upper()], subpath


def validate_value_name(name: str) -> None:
    """Reject value names that contain a reserved character.

    The empty string is a valid name (it addresses a key's default value).

    Raises:
        InvalidValueNameError: If the name contains ``\\ / : * ? " < > |``
    """
    if name is None:
        raise InvalidValueNameError("None")
    if any(ch in INVALID_VALUE_NAME_CHARS for ch in name):
        raise InvalidValueNameError(name)


def join(parent: str, *children: str) -> str:
    """Append child segments to a path."""
    parts = [parent] if parent else []
    parts.extend(child for child in children if child)
    return SEPARATOR.join(parts)


def split(subpath: str) -> List[str]:
    """Split a sub-path into its segments; an empty sub-path has none."""
    return subpath.split(SEPARATOR) if subpath else []


def is_same_or_descendant(path: str, ancestor: str) -> bool:
    """True if ``path`` is ``ancestor`` or lies anywhere beneath it.

    Both paths are compared by hive and case-insensitively by segment,
    so ``HKCU\\A`` and ``hkey_current_user\\a`` are the same key.
    """
    hive, subpath = resolve(path)
    ancestor_hive, ancestor_subpath = resolve(ancestor)
    if hive is not ancestor_hive:
        return False
    segments = [s.lower() for s in split(subpath)]
    ancestor_segments = [s.lower() for s in split(ancestor_subpath)]
    return segments[: len(ancestor_segments)] == ancestor_segments
