"""Tests for the regtree command line."""

import json

import pytest

from regtree.cli import main

VENDOR = r"HKCU\Software\Vendor"


@pytest.fixture
def run(tmp_path, capsys):
    """Run the CLI against a SQLite store in a temp dir; returns (code, stdout)."""
    store = f"sqlite:///{tmp_path / 'hives.db'}"

    def invoke(*argv):
        code = main(["--store", store, *argv])
        return code, capsys.readouterr().out

    return invoke


@pytest.fixture
def populated(run):
    run("set", VENDOR, "Name", "Vendor Inc", "--create")
    run("set", VENDOR + r"\App1", "Retries", "3", "--type", "DWord", "--create")
    run("set", VENDOR + r"\App1", "Flags", "01ff", "--type", "Binary")
    run("set", VENDOR + r"\App2", "Tags", '["a", "b"]', "--type", "MultiString", "--create")
    return run


class TestValueCommands:
    """Tests for get and set."""

    def test_set_and_get(self, populated):
        """Values print in their text form."""
        assert populated("get", VENDOR + r"\App1", "Retries") == (0, "3\n")
        assert populated("get", VENDOR + r"\App1", "Flags") == (0, "01ff\n")
        assert populated("get", VENDOR + r"\App2", "Tags") == (0, '["a", "b"]\n')

    def test_get_missing(self, populated):
        """Missing values exit with 1."""
        code, out = populated("get", VENDOR, "Missing")
        assert code == 1
        assert out == ""

    def test_set_without_key(self, run):
        """Without --create the key must already exist."""
        assert run("set", VENDOR, "Name", "x")[0] == 1

    def test_set_bad_data(self, populated):
        """Data that does not parse for the type is an error."""
        assert populated("set", VENDOR, "N", "many", "--type", "DWord")[0] == 1

    def test_bad_type_choice(self, run):
        """Unknown types are rejected by argument parsing."""
        with pytest.raises(SystemExit):
            run("set", VENDOR, "N", "1", "--type", "Float")


class TestTreeCommands:
    """Tests for ls and find."""

    def test_ls(self, populated):
        """ls prints child paths, recursively with -r."""
        code, out = populated("ls", VENDOR)
        assert code == 0
        assert out.splitlines() == [VENDOR + r"\App1", VENDOR + r"\App2"]

        code, out = populated("ls", "HKCU", "-r", "--depth", "2")
        assert out.splitlines() == [r"HKCU\Software", VENDOR]

    def test_find_keys(self, populated):
        """find matches key names."""
        code, out = populated("find", "HKCU", "app*", "-r")
        assert code == 0
        assert out.splitlines() == [VENDOR + r"\App1", VENDOR + r"\App2"]

    def test_find_values(self, populated):
        """find --values prints path, type, and text."""
        code, out = populated("find", VENDOR, "retr*", "-r", "--values")
        assert code == 0
        assert out.splitlines() == [VENDOR + "\\App1\\Retries\tDWord\t3"]


class TestBackupCommands:
    """Tests for backup, restore, copy, backup-key, and restore-key."""

    def test_backup_and_restore(self, populated, tmp_path):
        """A JSON backup restores over the live key with --overwrite."""
        file_path = str(tmp_path / "vendor.json")
        assert populated("backup", VENDOR, file_path)[0] == 0
        with open(file_path, encoding="utf-8") as f:
            assert json.load(f)["_KeyPath"] == VENDOR

        populated("set", VENDOR, "Name", "changed")
        assert populated("restore", file_path)[0] == 1
        assert populated("restore", file_path, "--overwrite")[0] == 0
        assert populated("get", VENDOR, "Name") == (0, "Vendor Inc\n")

    def test_restore_to_target(self, populated, tmp_path):
        """--target and --typed restore elsewhere with original types."""
        file_path = str(tmp_path / "vendor.json")
        populated("backup", VENDOR, file_path)

        target = r"HKCU\Software\Restored"
        assert populated("restore", file_path, "--target", target, "--typed")[0] == 0
        assert populated("find", target, "retries", "-r", "--values")[1] == (
            target + "\\App1\\Retries\tDWord\t3\n"
        )

    def test_restore_bad_file(self, run, tmp_path):
        """A file that is not a snapshot exits with 1."""
        file_path = tmp_path / "bad.json"
        file_path.write_text("[]", encoding="utf-8")
        assert run("restore", str(file_path))[0] == 1

    def test_copy(self, populated):
        """copy duplicates a subtree."""
        target = r"HKCU\Software\Copy"
        assert populated("copy", VENDOR, target)[0] == 0
        assert populated("get", target + r"\App1", "Retries") == (0, "3\n")
        assert populated("copy", VENDOR + r"\Nope", target)[0] == 1

    def test_backup_key_and_restore_key(self, populated):
        """Registry-side backups round trip through restore-key."""
        backup = VENDOR + "_Backup"
        assert populated("backup-key", VENDOR)[0] == 0
        assert populated("ls", backup)[1].splitlines() == [backup + r"\App1", backup + r"\App2"]

        populated("set", VENDOR, "Name", "changed")
        assert populated("restore-key", backup, VENDOR)[0] == 1
        assert populated("restore-key", backup, VENDOR, "--overwrite")[0] == 0
        assert populated("get", VENDOR, "Name") == (0, "Vendor Inc\n")


class TestStoreOption:
    """Tests for --store."""

    def test_unknown_scheme(self, capsys):
        """An unusable store URL exits with 2."""
        assert main(["--store", "redis://x", "ls", "HKCU"]) == 2

    def test_memory_store(self, capsys):
        """memory:// works for one-shot commands."""
        assert main(["--store", "memory://", "ls", "HKLM"]) == 0
        assert capsys.readouterr().out == ""
