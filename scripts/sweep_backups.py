#!/usr/bin/env python3
"""
Backup retention sweep.

Removes date partitions of the SiteGate backup store that are older than
the retention window. Meant to run from cron (or any scheduler) instead of
sampling the sweep inside requests.

Usage:
    python scripts/sweep_backups.py [--env-file PATH] [--retention-days N] [--dry-run]

Options:
    --env-file PATH       .env file to load (default: .env in the working directory)
    --config PATH         Optional JSON config file
    --retention-days N    Override SITEGATE_BACKUP_RETENTION_DAYS
    --dry-run             List what would be removed without deleting anything
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root))

from sitegate import Config
from sitegate.FileSystemGate import FileSystemGate
from sitegate.FileSystemGate.backup import BackupManager


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Remove expired SiteGate backups")
    parser.add_argument("--env-file", default=None, help="Path to .env file")
    parser.add_argument("--config", default=None, help="Path to JSON config file")
    parser.add_argument("--retention-days", type=int, default=None, help="Override retention window (days)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be removed without changes")
    args = parser.parse_args(argv)

    manager = Config.reload(args.env_file, args.config)
    manager.apply_log_level()
    if args.retention_days is not None:
        manager.set("SITEGATE_BACKUP_RETENTION_DAYS", args.retention_days)

    try:
        guard_config = manager.build_guard_config()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    print(f"Backup store: {guard_config.backup_root}")
    print(f"Retention:    {guard_config.retention_days} days")

    if args.dry_run:
        backups = BackupManager(guard_config.backup_root, guard_config.retention_days)
        expired = backups.expired_partitions()
        print(f"\n*** DRY RUN - {len(expired)} partition(s) would be removed ***")
        for path in expired:
            print(f"  {path}")
        return 0

    if not FileSystemGate.initialize(guard_config):
        print("FileSystemGate initialization failed", file=sys.stderr)
        return 1

    result = FileSystemGate.sweep_backups()
    if not result.success:
        print(f"Sweep failed: {result.error}", file=sys.stderr)
        return 1

    print(result.message)
    return 0


if __name__ == "__main__":
    sys.exit(main())
