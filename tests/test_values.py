"""Tests for value types and the native kind codec."""

import pytest

from regtree import TypeMismatchError, ValueKind, ValueType, from_native, to_native
from regtree.values import check_raw, coerce_value, format_value, parse_kind, parse_value


class TestCodec:
    """Tests for to_native / from_native."""

    @pytest.mark.parametrize("value_type", list(ValueType))
    def test_round_trip(self, value_type):
        """Every ValueType survives a trip through its native kind."""
        assert from_native(to_native(value_type)) is value_type

    def test_native_numbers(self):
        """Native kinds carry the store's own numbers."""
        assert to_native(ValueType.STRING) == 1
        assert to_native(ValueType.DWORD) == 4
        assert to_native(ValueType.QWORD) == 11

    @pytest.mark.parametrize(
        "kind",
        [ValueKind.NONE, ValueKind.LINK, ValueKind.DWORD_BIG_ENDIAN, ValueKind.RESOURCE_LIST, 99, -1],
    )
    def test_unknown_kinds_read_as_string(self, kind):
        """Kinds outside the recognized six fall back to STRING."""
        assert from_native(kind) is ValueType.STRING

    def test_parse_kind(self):
        """Kind tags parse by name in any case, or by number."""
        assert parse_kind("DWORD") is ValueKind.DWORD
        assert parse_kind("multi_sz") is ValueKind.MULTI_SZ
        assert parse_kind("4") is ValueKind.DWORD
        assert parse_kind(" SZ ") is ValueKind.SZ

    @pytest.mark.parametrize("tag", ["", "DWord32", "99", "-1", None, 4])
    def test_parse_kind_rejects_garbage(self, tag):
        """Unparseable tags give None."""
        assert parse_kind(tag) is None


class TestCoerceValue:
    """Tests for coerce_value()."""

    def test_strings(self):
        """Text types take strings and stringify numbers."""
        assert coerce_value("x", ValueType.STRING) == "x"
        assert coerce_value(5, ValueType.EXPAND_STRING) == "5"

    def test_dword(self):
        """DWORD takes ints and decimal text within 32 bits."""
        assert coerce_value(7, ValueType.DWORD) == 7
        assert coerce_value("42", ValueType.DWORD) == 42
        assert coerce_value(0xFFFFFFFF, ValueType.DWORD) == 0xFFFFFFFF

    def test_negative_integers_wrap(self):
        """Negative values are stored as two's complement."""
        assert coerce_value(-1, ValueType.DWORD) == 0xFFFFFFFF
        assert coerce_value(-1, ValueType.QWORD) == 0xFFFFFFFFFFFFFFFF

    @pytest.mark.parametrize(
        "value,value_type",
        [
            (2**32, ValueType.DWORD),
            (-(2**31) - 1, ValueType.DWORD),
            (2**64, ValueType.QWORD),
            (True, ValueType.DWORD),
            ("abc", ValueType.DWORD),
            (1.5, ValueType.QWORD),
            ("text", ValueType.BINARY),
            ("a", ValueType.MULTI_STRING),
            (["a", 1], ValueType.MULTI_STRING),
            (b"x", ValueType.STRING),
            (None, ValueType.STRING),
        ],
    )
    def test_mismatches(self, value, value_type):
        """Values that do not fit the type raise TypeMismatchError."""
        with pytest.raises(TypeMismatchError):
            coerce_value(value, value_type)

    def test_binary_and_lists(self):
        """Bytes-like values become bytes; tuples become lists."""
        assert coerce_value(bytearray(b"\x00\x01"), ValueType.BINARY) == b"\x00\x01"
        assert coerce_value(("a", "b"), ValueType.MULTI_STRING) == ["a", "b"]


class TestTextForm:
    """Tests for format_value / parse_value."""

    def test_format(self):
        """Each kind of data has a stable text form."""
        assert format_value("plain") == "plain"
        assert format_value(42) == "42"
        assert format_value(b"\x01\xff") == "01ff"
        assert format_value(["a", "ü"]) == '["a", "ü"]'
        assert format_value(None) == ""

    def test_parse_back(self):
        """Text parses back into the typed value."""
        assert parse_value("42", ValueType.DWORD) == 42
        assert parse_value("01ff", ValueType.BINARY) == b"\x01\xff"
        assert parse_value('["a", "b"]', ValueType.MULTI_STRING) == ["a", "b"]
        assert parse_value("x", ValueType.STRING) == "x"

    @pytest.mark.parametrize(
        "text,value_type",
        [("zz", ValueType.BINARY), ("[1, 2]", ValueType.MULTI_STRING), ("{", ValueType.MULTI_STRING), ("x", ValueType.QWORD)],
    )
    def test_parse_failures(self, text, value_type):
        """Text that is not a valid rendering raises TypeMismatchError."""
        with pytest.raises(TypeMismatchError):
            parse_value(text, value_type)


class TestCheckRaw:
    """Tests for check_raw(), used by backends before storing data."""

    def test_accepts_matching_data(self):
        """Data of the right shape is returned as a private copy."""
        tags = ["a"]
        copied = check_raw(tags, ValueKind.MULTI_SZ)
        assert copied == tags and copied is not tags
        assert check_raw(memoryview(b"ab"), ValueKind.BINARY) == b"ab"
        assert check_raw(None, ValueKind.NONE) is None

    @pytest.mark.parametrize(
        "raw,kind",
        [("5", ValueKind.DWORD), (-1, ValueKind.DWORD), (b"x", ValueKind.SZ), ("x", ValueKind.BINARY)],
    )
    def test_rejects_mismatched_data(self, raw, kind):
        """Data that does not fit the kind raises TypeMismatchError."""
        with pytest.raises(TypeMismatchError):
            check_raw(raw, kind)
