"""
FileSystemGate backup management.

Copies files into a date-partitioned backup store before they are
overwritten, moved or deleted, and prunes partitions past the retention
window.
"""

import os
import shutil
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from sitegate.shared.gate import GateLogger

from .models import BackupRecord
from .security import BackupError

_log = GateLogger.get("FileSystemGate")

PARTITION_FORMAT = "%Y-%m-%d"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BackupManager:
    """Manages file backups for FileSystemGate."""

    def __init__(
        self,
        backup_root: str,
        retention_days: int = 7,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the backup manager.

        Args:
            backup_root: Root directory for backups
            retention_days: Partitions older than this are removed by sweep()
            clock: Returns the current UTC time (injectable for tests)
        """
        self.backup_root = backup_root
        self.retention_days = retention_days
        self._clock = clock or utc_now

    def _now(self) -> datetime:
        return self._clock().astimezone(timezone.utc)

    def _claim_name(self, directory: str, basename: str, stamp: str):
        """
        Reserve a free backup filename with exclusive create.

        Returns the open file object and its path.
        """
        candidate = os.path.join(directory, f"{basename}.bak.{stamp}")
        counter = 0
        while True:
            try:
                return open(candidate, "xb"), candidate
            except FileExistsError:
                counter += 1
                candidate = os.path.join(directory, f"{basename}.bak.{stamp}.{counter}")

    def backup(self, source_path: str) -> BackupRecord:
        """
        Copy a file into today's partition of the backup store.

        Args:
            source_path: Canonical path of the file about to change

        Returns:
            BackupRecord for the new copy

        Raises:
            BackupError: The copy could not be made; the caller must not
                proceed with the mutation
        """
        now = self._now()
        directory = os.path.join(self.backup_root, now.strftime(PARTITION_FORMAT))
        backup_path = None

        try:
            os.makedirs(directory, exist_ok=True)
            dst, backup_path = self._claim_name(
                directory, os.path.basename(source_path), now.strftime("%H%M%S")
            )
            with dst, open(source_path, "rb") as src:
                shutil.copyfileobj(src, dst)
            shutil.copystat(source_path, backup_path)
            size = os.path.getsize(backup_path)
        except OSError as e:
            if backup_path and os.path.exists(backup_path):
                try:
                    os.remove(backup_path)
                except OSError:
                    _log.warning(f"Could not remove partial backup {backup_path}")
            _log.error(f"Failed to create backup of {source_path}: {e}")
            raise BackupError(f"Failed to create backup: {e}") from e

        _log.debug(f"Backed up {source_path} to {backup_path}")
        return BackupRecord(
            source_path=source_path,
            backup_path=backup_path,
            size_bytes=size,
            created_at=now,
        )

    def _partitions(self) -> List[tuple]:
        """Date-named partition directories as (date, path), oldest first."""
        if not os.path.isdir(self.backup_root):
            return []

        partitions = []
        for entry in os.listdir(self.backup_root):
            path = os.path.join(self.backup_root, entry)
            if not os.path.isdir(path):
                continue
            try:
                day = datetime.strptime(entry, PARTITION_FORMAT).date()
            except ValueError:
                continue
            partitions.append((day, path))
        partitions.sort()
        return partitions

    def expired_partitions(self, now: Optional[datetime] = None) -> List[str]:
        """
        Partitions dated more than ``retention_days`` before today.

        Entries whose names are not dates are never included.
        """
        today = (now or self._now()).astimezone(timezone.utc).date()
        cutoff = today - timedelta(days=self.retention_days)
        return [path for day, path in self._partitions() if day < cutoff]

    def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Remove partitions older than the retention window.

        Returns:
            Number of partitions removed
        """
        removed = 0
        for path in self.expired_partitions(now):
            try:
                shutil.rmtree(path)
                removed += 1
            except OSError as e:
                _log.warning(f"Could not remove backup partition {path}: {e}")

        if removed:
            _log.info(f"Backup sweep removed {removed} partition(s) older than {self.retention_days} days")
        return removed

    def list_backups(self, limit: int = 50) -> List[BackupRecord]:
        """
        List backups, newest first.

        Args:
            limit: Maximum records to return

        Returns:
            List of BackupRecord (source_path holds the original basename)
        """
        records: List[BackupRecord] = []
        for _, path in reversed(self._partitions()):
            entries = []
            for name in os.listdir(path):
                full = os.path.join(path, name)
                if not os.path.isfile(full) or ".bak." not in name:
                    continue
                stat = os.stat(full)
                entries.append(BackupRecord(
                    source_path=name.split(".bak.", 1)[0],
                    backup_path=full,
                    size_bytes=stat.st_size,
                    created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                ))
            entries.sort(key=lambda r: r.backup_path, reverse=True)
            records.extend(entries)
            if len(records) >= limit:
                break

        return records[:limit]

    def get_stats(self) -> dict:
        """Get backup statistics."""
        partitions = self._partitions()
        count = 0
        total_size = 0
        for _, path in partitions:
            for name in os.listdir(path):
                full = os.path.join(path, name)
                if os.path.isfile(full):
                    count += 1
                    total_size += os.path.getsize(full)

        return {
            "total_backups": count,
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "partitions": len(partitions),
            "oldest_partition": partitions[0][0].isoformat() if partitions else None,
            "newest_partition": partitions[-1][0].isoformat() if partitions else None,
            "retention_days": self.retention_days,
        }
