#!/usr/bin/env python3
"""
Quick Start - Write a small key tree, search it, and snapshot it.

Usage:
    python examples/quick_start.py
"""

from regtree import SnapshotNode, ValueType, connect

VENDOR = r"HKCU\Software\Vendor"


def main():
    # In-memory store; use "sqlite:///hives.db" to keep the data
    reg = connect("memory://")

    reg.create_key(VENDOR + r"\App\Settings")
    reg.write_value(VENDOR + r"\App", "InstallPath", r"C:\Program Files\App")
    reg.write_value(VENDOR + r"\App\Settings", "Retries", 3, ValueType.DWORD)
    reg.write_value(VENDOR + r"\App\Settings", "Theme", "dark")

    print("Keys:")
    for path in reg.enumerate_subkeys(VENDOR, recursive=True):
        print(f"  {path}")

    print("Values matching 'ret*':")
    for value in reg.search_values(VENDOR, "ret*", recursive=True):
        print(f"  {value.name} = {value.value} ({value.type.value})")

    print(f"Missing value with default: {reg.read_value(VENDOR, 'Nope', default='n/a')}")

    # Snapshot to JSON, wipe the tree, and bring it back
    text = reg.snapshot(VENDOR).to_json()
    reg.delete_key(VENDOR, recursive=True)
    reg.restore_snapshot(SnapshotNode.from_json(text))

    print("Restored:")
    for name, value in reg.get_all_values(VENDOR, include_subkeys=True).items():
        print(f"  {name} = {value!r}")

    reg.close()


if __name__ == "__main__":
    main()
