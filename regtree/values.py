"""Value types and the codec between them and the store's native kinds.

``ValueType`` is the closed set of types callers work with. ``ValueKind``
is the store's own kind enumeration; its members carry the native ``REG_*``
numbers so adapters can pass them straight through.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, List, Optional, Union

from .exceptions import TypeMismatchError


class ValueType(Enum):
    """Caller-facing value types."""

    STRING = "String"
    DWORD = "DWord"
    QWORD = "QWord"
    BINARY = "Binary"
    MULTI_STRING = "MultiString"
    EXPAND_STRING = "ExpandString"


class ValueKind(IntEnum):
    """Native value kinds as the store reports them."""

    NONE = 0
    SZ = 1
    EXPAND_SZ = 2
    BINARY = 3
    DWORD = 4
    DWORD_BIG_ENDIAN = 5
    LINK = 6
    MULTI_SZ = 7
    RESOURCE_LIST = 8
    FULL_RESOURCE_DESCRIPTOR = 9
    RESOURCE_REQUIREMENTS_LIST = 10
    QWORD = 11


_TYPE_TO_KIND = {
    ValueType.STRING: ValueKind.SZ,
    ValueType.DWORD: ValueKind.DWORD,
    ValueType.QWORD: ValueKind.QWORD,
    ValueType.BINARY: ValueKind.BINARY,
    ValueType.MULTI_STRING: ValueKind.MULTI_SZ,
    ValueType.EXPAND_STRING: ValueKind.EXPAND_SZ,
}

_KIND_TO_TYPE = {kind: value_type for value_type, kind in _TYPE_TO_KIND.items()}

TEXT_TYPES = frozenset({ValueType.STRING, ValueType.EXPAND_STRING})

_INT_BITS = {ValueType.DWORD: 32, ValueType.QWORD: 64}


def to_native(value_type: ValueType) -> ValueKind:
    """Map a ValueType to the native kind used to store it."""
    return _TYPE_TO_KIND[value_type]


def from_native(kind: Union[ValueKind, int]) -> ValueType:
    """Map a native kind to a ValueType.

    Kinds outside the six recognized ones read as STRING.
    """
    try:
        return _KIND_TO_TYPE.get(ValueKind(kind), ValueType.STRING)
    except ValueError:
        return ValueType.STRING


def parse_kind(text: Any) -> Optional[ValueKind]:
    """Parse a stored kind tag back into a ValueKind.

    Accepts member names in any case (``"DWORD"``, ``"dword"``) and decimal
    kind numbers (``"4"``). Returns None for anything else.
    """
    if not isinstance(text, str):
        return None
    tag = text.strip()
    member = ValueKind.__members__.get(tag.upper())
    if member is not None:
        return member
    if tag.isdigit():
        try:
            return ValueKind(int(tag))
        except ValueError:
            return None
    return None


def coerce_value(value: Any, value_type: ValueType) -> Any:
    """Normalize a Python value for storage as ``value_type``.

    Raises:
        TypeMismatchError: If the value cannot be stored as that type
    """
    if value is None:
        raise TypeMismatchError(f"Cannot store None as {value_type.value}")

    if value_type in TEXT_TYPES:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)

    elif value_type in _INT_BITS:
        bits = _INT_BITS[value_type]
        number = None
        if isinstance(value, int) and not isinstance(value, bool):
            number = value
        elif isinstance(value, str):
            try:
                number = int(value.strip(), 10)
            except ValueError:
                number = None
        if number is not None and -(1 << (bits - 1)) <= number < (1 << bits):
            # negative values are stored as their two's complement
            return number & ((1 << bits) - 1)

    elif value_type is ValueType.BINARY:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)

    elif value_type is ValueType.MULTI_STRING:
        if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
            return list(value)

    raise TypeMismatchError(
        f"Cannot store {type(value).__name__} value {value!r} as {value_type.value}"
    )


def format_value(raw: Any) -> str:
    """Render a stored value as the text captured in snapshots."""
    if raw is None:
        return ""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (bytes, bytearray, memoryview)):
        return bytes(raw).hex()
    if isinstance(raw, (list, tuple)):
        return json.dumps(list(raw), ensure_ascii=False)
    return str(raw)


def parse_value(text: str, value_type: ValueType) -> Any:
    """Inverse of format_value for a known target type.

    Raises:
        TypeMismatchError: If the text is not a valid rendering for the type
    """
    if value_type is ValueType.BINARY:
        try:
            return bytes.fromhex(text)
        except ValueError:
            raise TypeMismatchError(f"Not a hex byte string: {text!r}") from None
    if value_type is ValueType.MULTI_STRING:
        try:
            items = json.loads(text) if text else []
        except json.JSONDecodeError:
            raise TypeMismatchError(f"Not a JSON string list: {text!r}") from None
        return coerce_value(items, value_type)
    return coerce_value(text, value_type)


def check_raw(raw: Any, kind: ValueKind) -> Any:
    """Validate data a backend is asked to store under a native kind.

    Returns a private copy of the data, safe to keep.

    Raises:
        TypeMismatchError: If the data does not fit the kind
    """
    kind = ValueKind(kind)
    if kind in (ValueKind.SZ, ValueKind.EXPAND_SZ, ValueKind.LINK):
        ok = isinstance(raw, str)
    elif kind in (ValueKind.DWORD, ValueKind.DWORD_BIG_ENDIAN):
        ok = isinstance(raw, int) and not isinstance(raw, bool) and 0 <= raw < (1 << 32)
    elif kind is ValueKind.QWORD:
        ok = isinstance(raw, int) and not isinstance(raw, bool) and 0 <= raw < (1 << 64)
    elif kind is ValueKind.MULTI_SZ:
        ok = isinstance(raw, (list, tuple)) and all(isinstance(v, str) for v in raw)
        if ok:
            raw = list(raw)
    else:
        ok = raw is None or isinstance(raw, (bytes, bytearray, memoryview))
        if ok and raw is not None:
            raw = bytes(raw)
    if not ok:
        raise TypeMismatchError(
            f"{type(raw).__name__} value {raw!r} does not fit native kind {kind.name}"
        )
    return raw


@dataclass
class RegistryValue:
    """A named, typed value read from a key."""

    name: str
    value: Any
    type: ValueType = ValueType.STRING


@dataclass
class KeyInfo:
    """Description of a single key: its children and values."""

    path: str
    subkeys: List[str] = field(default_factory=list)
    values: List[RegistryValue] = field(default_factory=list)
    last_write_time: Optional[datetime] = None
