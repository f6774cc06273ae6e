#!/usr/bin/env python3
"""
matstore CLI - Thin entrypoint for inspecting the material catalog.

Commands:
- list      List catalog entries (optionally one type)
- show      Print one entry as JSON
- delete    Delete a custom entry
- status    Report persistence health

Design Principles:
==================
- CLI is a dispatcher only
- No catalog logic inside CLI
- Surface store errors verbatim
- Exit non-zero on failure
- No interactive prompts

Exit Codes:
===========
- 0: Success
- 1: Domain error (entry not found, built-in material)
- 4: System error (storage unavailable, write failed)
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from .config import StoreConfig
from .errors import CatalogError, MaterialStoreError
from .store import MaterialStore

EXIT_OK = 0
EXIT_DOMAIN_ERROR = 1
EXIT_SYSTEM_ERROR = 4


def _config(args: argparse.Namespace) -> StoreConfig:
    if args.data_dir:
        return StoreConfig.for_directory(Path(args.data_dir).expanduser(), background_writes=False)
    config = StoreConfig.from_env()
    return config.model_copy(update={"background_writes": False})


def _finish(store: MaterialStore) -> NoReturn:
    """Close the store and exit 4 if any write failed."""
    store.close()
    notices = store.notices
    if notices:
        for notice in notices:
            print(f"ERROR: {notice.operation} for {notice.entity} failed: {notice.message}", file=sys.stderr)
        sys.exit(EXIT_SYSTEM_ERROR)
    sys.exit(EXIT_OK)


def cmd_list(args: argparse.Namespace, store: MaterialStore) -> NoReturn:
    entries = store.list_entries(args.type)
    if args.json:
        print(json.dumps([entry.to_record() for entry in entries], indent=2))
    else:
        for entry in entries:
            marker = "*" if entry.is_preset else " "
            print(f"{marker} {entry.id:<24} {entry.type:<10} {entry.name}")
        print(f"\n{len(entries)} entries (* = built-in)")
    _finish(store)


def cmd_show(args: argparse.Namespace, store: MaterialStore) -> NoReturn:
    entry = store.get_entry(args.entry_id)
    print(json.dumps(entry.to_record(), indent=2))
    _finish(store)


def cmd_delete(args: argparse.Namespace, store: MaterialStore) -> NoReturn:
    if store.degraded:
        print("ERROR: Durable catalog unavailable; nothing deleted", file=sys.stderr)
        store.close()
        sys.exit(EXIT_SYSTEM_ERROR)
    store.delete_entry(args.entry_id)
    print(f"Deleted {args.entry_id}")
    _finish(store)


def cmd_status(args: argparse.Namespace, store: MaterialStore) -> NoReturn:
    status = store.status()
    if args.json:
        print(json.dumps(status, indent=2))
    else:
        print(f"Catalog:   {status['db_path']}")
        print(f"Snapshot:  {status['snapshot_path']}")
        if status["snapshot_set_aside"]:
            print(f"Set aside: {status['snapshot_set_aside']}")
        print(f"Entries:   {status['entries']} ({status['presets']} built-in, {status['custom']} custom)")
        print(f"Degraded:  {'yes' if status['degraded'] else 'no'}")
        for message in status["notices"]:
            print(f"Notice:    {message}")
    _finish(store)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='matstore',
        description='Material configuration store - inspect and manage the material catalog',
    )
    parser.add_argument(
        '--data-dir',
        default=None,
        help='Directory holding materials.db and snapshot.json (default: MATSTORE_* env or ~/.matstore)'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable debug logging'
    )

    subparsers = parser.add_subparsers(dest='command', required=True, help='Command to execute')

    parser_list = subparsers.add_parser('list', help='List catalog entries')
    parser_list.add_argument('--type', default=None, help='Only list entries of this type')
    parser_list.add_argument('--json', action='store_true', help='Print records as JSON')
    parser_list.set_defaults(func=cmd_list)

    parser_show = subparsers.add_parser('show', help='Print one entry as JSON')
    parser_show.add_argument('entry_id', help='Entry id')
    parser_show.set_defaults(func=cmd_show)

    parser_delete = subparsers.add_parser('delete', help='Delete a custom entry')
    parser_delete.add_argument('entry_id', help='Entry id')
    parser_delete.set_defaults(func=cmd_delete)

    parser_status = subparsers.add_parser('status', help='Report persistence health')
    parser_status.add_argument('--json', action='store_true', help='Print status as JSON')
    parser_status.set_defaults(func=cmd_status)

    return parser


def main(argv: Optional[List[str]] = None) -> NoReturn:
    """
    Main CLI entrypoint.

    Parses arguments, opens the store and dispatches to subcommands.
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        store = MaterialStore(_config(args)).open()
    except MaterialStoreError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(EXIT_SYSTEM_ERROR)

    try:
        args.func(args, store)
    except CatalogError as e:
        store.close()
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(EXIT_DOMAIN_ERROR)
    except MaterialStoreError as e:
        store.close()
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(EXIT_SYSTEM_ERROR)


if __name__ == '__main__':
    main()
