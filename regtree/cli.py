"""Command-line interface for regtree.

Usage:
    # List a key's children, recursively
    regtree ls "HKCU\\Software\\Vendor" -r

    # Read and write values
    regtree get "HKCU\\Software\\Vendor\\App" Retries
    regtree set "HKCU\\Software\\Vendor\\App" Retries 3 --type DWord

    # Search key names, or value names with --values
    regtree find "HKCU\\Software" "Vend*" -r

    # Snapshot to JSON and back
    regtree backup "HKCU\\Software\\Vendor" vendor.json
    regtree restore vendor.json --overwrite

    # Pick a store other than the platform default
    regtree --store sqlite:///hives.db ls HKCU
"""

import argparse
import logging
import sys
from typing import List, Optional

from .core import Registry, connect, default_store_url
from .exceptions import RegistryError
from .values import ValueType, format_value, parse_value

logger = logging.getLogger(__name__)


def _cmd_ls(reg: Registry, args: argparse.Namespace) -> int:
    for path in reg.enumerate_subkeys(args.path, recursive=args.recursive, max_depth=args.depth):
        print(path)
    return 0


def _cmd_get(reg: Registry, args: argparse.Namespace) -> int:
    print(format_value(reg.read_value_strict(args.path, args.name)))
    return 0


def _cmd_set(reg: Registry, args: argparse.Namespace) -> int:
    value_type = ValueType(args.type)
    if args.create:
        reg.create_key_strict(args.path)
    reg.write_value_strict(args.path, args.name, parse_value(args.value, value_type), value_type)
    return 0


def _cmd_find(reg: Registry, args: argparse.Namespace) -> int:
    if args.values:
        for value in reg.search_values(args.path, args.pattern, recursive=args.recursive):
            print(f"{value.name}\t{value.type.value}\t{format_value(value.value)}")
    else:
        for path in reg.search_keys(args.path, args.pattern, recursive=args.recursive):
            print(path)
    return 0


def _cmd_backup(reg: Registry, args: argparse.Namespace) -> int:
    reg.backup_key_to_json_strict(args.path, args.file)
    return 0


def _cmd_restore(reg: Registry, args: argparse.Namespace) -> int:
    restored = reg.restore_key_from_json_strict(
        args.file,
        overwrite=args.overwrite,
        target_path=args.target,
        reconstruct_types=args.typed,
    )
    if not restored:
        logger.error("Nothing restored; the target key exists (use --overwrite)")
        return 1
    return 0


def _cmd_copy(reg: Registry, args: argparse.Namespace) -> int:
    return 0 if reg.copy_key(args.source, args.target) else 1


def _cmd_backup_key(reg: Registry, args: argparse.Namespace) -> int:
    return 0 if reg.backup_key_to_registry(args.source, args.to) else 1


def _cmd_restore_key(reg: Registry, args: argparse.Namespace) -> int:
    restored = reg.restore_key_from_registry(args.backup, args.target, overwrite=args.overwrite)
    return 0 if restored else 1


def build_parser() -> argparse.ArgumentParser:
    """Argument parser for the ``regtree`` command."""
    parser = argparse.ArgumentParser(
        prog="regtree",
        description="Read, search, and snapshot hive-qualified registry keys",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--store",
        default=default_store_url(),
        help="Store URL (memory://, sqlite:///file.db, winreg://)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="List subkeys")
    ls.add_argument("path")
    ls.add_argument("-r", "--recursive", action="store_true")
    ls.add_argument("--depth", type=int, default=None, help="Levels to descend with -r")
    ls.set_defaults(handler=_cmd_ls)

    get = commands.add_parser("get", help="Print a value")
    get.add_argument("path")
    get.add_argument("name")
    get.set_defaults(handler=_cmd_get)

    set_ = commands.add_parser("set", help="Write a value")
    set_.add_argument("path")
    set_.add_argument("name")
    set_.add_argument(
        "value",
        help="Text; decimal for DWord/QWord, hex for Binary, JSON list for MultiString",
    )
    set_.add_argument("--type", default=ValueType.STRING.value, choices=[t.value for t in ValueType])
    set_.add_argument("--create", action="store_true", help="Create the key if missing")
    set_.set_defaults(handler=_cmd_set)

    find = commands.add_parser("find", help="Search key or value names")
    find.add_argument("path")
    find.add_argument("pattern", help="Substring, or glob with *")
    find.add_argument("-r", "--recursive", action="store_true")
    find.add_argument("--values", action="store_true", help="Search value names")
    find.set_defaults(handler=_cmd_find)

    backup = commands.add_parser("backup", help="Snapshot a key to a JSON file")
    backup.add_argument("path")
    backup.add_argument("file")
    backup.set_defaults(handler=_cmd_backup)

    restore = commands.add_parser("restore", help="Restore a JSON snapshot")
    restore.add_argument("file")
    restore.add_argument("--overwrite", action="store_true")
    restore.add_argument("--target", default=None, help="Restore under this path instead")
    restore.add_argument("--typed", action="store_true", help="Rebuild non-text value types")
    restore.set_defaults(handler=_cmd_restore)

    copy = commands.add_parser("copy", help="Copy a key and its subtree")
    copy.add_argument("source")
    copy.add_argument("target")
    copy.set_defaults(handler=_cmd_copy)

    backup_key = commands.add_parser("backup-key", help="Copy a key to a backup key")
    backup_key.add_argument("source")
    backup_key.add_argument("--to", default=None, help="Backup path (default <source>_Backup)")
    backup_key.set_defaults(handler=_cmd_backup_key)

    restore_key = commands.add_parser("restore-key", help="Copy a backup key over a key")
    restore_key.add_argument("backup")
    restore_key.add_argument("target")
    restore_key.add_argument("--overwrite", action="store_true")
    restore_key.set_defaults(handler=_cmd_restore_key)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the ``regtree`` command."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        with connect(args.store) as reg:
            return args.handler(reg, args)
    except (RegistryError, OSError) as e:
        logger.error("%s", e)
        return 1
    except (RuntimeError, ValueError) as e:
        # unusable store URL
        logger.error("%s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
