#!/usr/bin/env python3
"""Create, list, restore, delete and prune JSON database backups.

Usage:
    python scripts/backup_db.py create
    python scripts/backup_db.py list
    python scripts/backup_db.py restore backup_2025-01-31T12-00-00-000000Z.json
    python scripts/backup_db.py delete backup_2025-01-31T12-00-00-000000Z.json
    python scripts/backup_db.py prune --keep 5
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pdv.config import SessionLocal, settings  # noqa: E402
from pdv.core.logging import configure_logging  # noqa: E402
from pdv.services import backup as backup_service  # noqa: E402
from pdv.services.backup_store import BackupError, BackupStore  # noqa: E402


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--dir", default=None, help=f"Backup directory (default: {settings.backup_dir})")
    subcommands = parser.add_subparsers(dest="command", required=True)

    subcommands.add_parser("create", help="Snapshot every table into a new backup file")
    subcommands.add_parser("list", help="List backups, newest first")

    restore = subcommands.add_parser("restore", help="Replace live data with a backup")
    restore.add_argument("filename")
    restore.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    delete = subcommands.add_parser("delete", help="Delete a backup file")
    delete.add_argument("filename")

    prune = subcommands.add_parser("prune", help="Keep only the newest N backups")
    prune.add_argument("--keep", type=int, default=5)
    return parser


def run(args: argparse.Namespace) -> int:
    store = BackupStore(Path(args.dir) if args.dir else settings.backup_path)

    if args.command == "list":
        backups = store.list_backups()
        if not backups:
            print("No backups found.")
        for backup in backups:
            print(f"{backup.filename}\t{backup.size_label}\t{backup.created_at.isoformat()}")
        return 0

    if args.command == "delete":
        store.delete_backup(args.filename)
        print(f"Deleted {args.filename}")
        return 0

    if args.command == "prune":
        removed = store.prune(args.keep)
        print(f"Removed {len(removed)} backup(s).")
        return 0

    with SessionLocal() as db:
        if args.command == "create":
            backup = backup_service.create_snapshot(db, store, keep_last=settings.backup_keep_last)
            print(f"Backup created at {backup.path}")
            return 0

        if not args.yes:
            answer = input(f"Restore {args.filename}? All current data will be replaced [y/N]: ")
            if answer.strip().lower() not in {"y", "yes"}:
                print("Restore cancelled.")
                return 1
        counts = backup_service.restore_snapshot(db, store, args.filename)
        for table_name, count in counts.items():
            print(f"  {table_name}: {count}")
        print("Backup restored.")
        return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging(settings.log_level, settings.log_format)
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except (BackupError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
