"""Tests for path parsing and validation."""

import pytest

from regtree import Hive, InvalidPathError, InvalidValueNameError, resolve, validate_value_name
from regtree.paths import HIVE_ALIASES, is_same_or_descendant, join, split

ALIAS_PAIRS = [
    ("HKEY_CLASSES_ROOT", "HKCR"),
    ("HKEY_CURRENT_USER", "HKCU"),
    ("HKEY_LOCAL_MACHINE", "HKLM"),
    ("HKEY_USERS", "HKU"),
    ("HKEY_CURRENT_CONFIG", "HKCC"),
]


class TestResolve:
    """Tests for resolve()."""

    @pytest.mark.parametrize("long_name,short_name", ALIAS_PAIRS)
    def test_long_and_short_alias_same_hive(self, long_name, short_name):
        """Both spellings of a hive resolve to the same root."""
        assert resolve(long_name)[0] is resolve(short_name)[0]
        assert resolve(long_name + r"\Software")[0] is resolve(short_name + r"\Software")[0]

    def test_ten_aliases_five_hives(self):
        """The alias table covers every hive twice."""
        assert len(HIVE_ALIASES) == 10
        assert set(HIVE_ALIASES.values()) == set(Hive)

    def test_alias_case_insensitive(self):
        """Root aliases match in any case."""
        assert resolve(r"hkcu\Software") == (Hive.CURRENT_USER, "Software")
        assert resolve(r"Hkey_Local_Machine\SOFTWARE")[0] is Hive.LOCAL_MACHINE

    def test_subpath_returned_verbatim(self):
        """Everything after the first separator is the sub-path."""
        hive, subpath = resolve(r"HKLM\SOFTWARE\Vendor\App")
        assert hive is Hive.LOCAL_MACHINE
        assert subpath == r"SOFTWARE\Vendor\App"

    def test_bare_root_has_empty_subpath(self):
        """A path naming only a hive has an empty sub-path."""
        assert resolve("HKU") == (Hive.USERS, "")

    @pytest.mark.parametrize(
        "path",
        [
            "",
            "   ",
            r"HKXX\Software",
            r"Software\Vendor",
            r"HKCU\\Software",
            r"HKCU\Software\\Vendor",
            r"HKCU\Software//Vendor",
            "HKCU//Software",
            "HKCU\\Software\\",
            "HKCU\\",
        ],
    )
    def test_invalid_paths(self, path):
        """Empty, unknown-root, and doubled-separator paths are rejected."""
        with pytest.raises(InvalidPathError):
            resolve(path)

    def test_invalid_path_is_value_error(self):
        """InvalidPathError can be caught as ValueError."""
        with pytest.raises(ValueError):
            resolve("nope")


class TestValueNames:
    """Tests for validate_value_name()."""

    @pytest.mark.parametrize("char", list('\\/:*?"<>|'))
    def test_reserved_characters_rejected(self, char):
        """Any reserved character makes the name invalid."""
        with pytest.raises(InvalidValueNameError):
            validate_value_name(f"bad{char}name")

    @pytest.mark.parametrize("name", ["", "Version", "Install-Log", "with space", "dots.and_underscores", "Müller"])
    def test_other_names_accepted(self, name):
        """Empty and ordinary names pass."""
        validate_value_name(name)


class TestHelpers:
    """Tests for join, split and ancestry checks."""

    def test_join(self):
        """Children are appended with single separators."""
        assert join("HKCU", "Software", "Vendor") == r"HKCU\Software\Vendor"
        assert join("", "Software") == "Software"

    def test_split(self):
        """Sub-paths split into segments; empty has none."""
        assert split(r"Software\Vendor") == ["Software", "Vendor"]
        assert split("") == []

    def test_is_same_or_descendant(self):
        """Ancestry ignores alias spelling and case."""
        assert is_same_or_descendant(r"HKCU\A\B", r"HKEY_CURRENT_USER\a")
        assert is_same_or_descendant(r"HKCU\A", r"hkcu\A")
        assert not is_same_or_descendant(r"HKCU\A_Backup", r"HKCU\A")
        assert not is_same_or_descendant(r"HKLM\A\B", r"HKCU\A")
        assert is_same_or_descendant(r"HKCU\A", "HKCU")
