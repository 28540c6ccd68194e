"""
Tests for FileSystemGate backup management.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

from sitegate.FileSystemGate.backup import BackupManager
from sitegate.FileSystemGate.security import BackupError


@pytest.fixture
def store(tmp_path):
    return str(tmp_path / "backups")


@pytest.fixture
def manager(store, frozen_clock):
    return BackupManager(store, retention_days=7, clock=frozen_clock)


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "page.txt"
    path.write_bytes(b"original content")
    return str(path)


def make_partition(store: str, day: str, files=("a.txt.bak.120000",)) -> str:
    path = os.path.join(store, day)
    os.makedirs(path, exist_ok=True)
    for name in files:
        with open(os.path.join(path, name), "wb") as f:
            f.write(b"x")
    return path


class TestBackup:
    """Tests for BackupManager.backup()."""

    def test_backup_layout(self, manager, store, source):
        """Backups land in a UTC date partition with a time-stamped name."""
        record = manager.backup(source)

        assert record.backup_path == os.path.join(store, "2026-10-18", "page.txt.bak.120000")
        assert record.source_path == source
        assert record.size_bytes == len(b"original content")

    def test_backup_is_byte_identical(self, manager, source):
        record = manager.backup(source)
        with open(record.backup_path, "rb") as f:
            assert f.read() == b"original content"

    def test_same_second_collision(self, manager, store, source):
        """Two backups in the same second get distinct names."""
        first = manager.backup(source)
        second = manager.backup(source)
        third = manager.backup(source)

        assert first.backup_path.endswith("page.txt.bak.120000")
        assert second.backup_path.endswith("page.txt.bak.120000.1")
        assert third.backup_path.endswith("page.txt.bak.120000.2")
        assert len(os.listdir(os.path.join(store, "2026-10-18"))) == 3

    def test_missing_source_raises(self, manager, store, tmp_path):
        """A failed copy raises and leaves no partial file."""
        with pytest.raises(BackupError) as exc_info:
            manager.backup(str(tmp_path / "missing.txt"))

        assert "Failed to create backup" in exc_info.value.message
        assert os.listdir(os.path.join(store, "2026-10-18")) == []

    def test_unwritable_store_raises(self, tmp_path, source, frozen_clock):
        """A backup root that is a regular file cannot hold partitions."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        manager = BackupManager(str(blocker), clock=frozen_clock)

        with pytest.raises(BackupError):
            manager.backup(source)


class TestSweep:
    """Tests for retention sweeping."""

    def test_sweep_removes_expired(self, manager, store):
        """Partitions more than retention_days before today are removed."""
        old = make_partition(store, "2026-10-10")
        edge = make_partition(store, "2026-10-11")
        today = make_partition(store, "2026-10-18")

        assert manager.sweep() == 1

        assert not os.path.exists(old)
        assert os.path.isdir(edge)
        assert os.path.isdir(today)

    def test_sweep_ignores_other_entries(self, manager, store):
        """Non-date directories and stray files are left alone."""
        other = os.path.join(store, "keep-me")
        os.makedirs(other)
        with open(os.path.join(store, "README"), "w") as f:
            f.write("x")

        assert manager.sweep() == 0
        assert os.path.isdir(other)
        assert os.path.exists(os.path.join(store, "README"))

    def test_sweep_with_explicit_now(self, manager, store):
        make_partition(store, "2026-10-18")
        later = datetime(2026, 11, 1, tzinfo=timezone.utc)
        assert manager.expired_partitions(later) == [os.path.join(store, "2026-10-18")]
        assert manager.sweep(later) == 1

    def test_sweep_missing_store(self, tmp_path):
        manager = BackupManager(str(tmp_path / "nothing"))
        assert manager.sweep() == 0

    def test_sweep_follows_clock(self, manager, store, frozen_clock):
        make_partition(store, "2026-10-18")
        frozen_clock.set(frozen_clock.now + timedelta(days=8))
        assert manager.sweep() == 1


class TestListing:
    """Tests for list_backups() and get_stats()."""

    def test_list_newest_first(self, manager, store):
        make_partition(store, "2026-10-16", ["old.txt.bak.090000"])
        make_partition(store, "2026-10-18", ["a.txt.bak.100000", "b.txt.bak.110000"])

        records = manager.list_backups()

        assert [os.path.basename(r.backup_path) for r in records] == [
            "b.txt.bak.110000",
            "a.txt.bak.100000",
            "old.txt.bak.090000",
        ]
        assert records[0].source_path == "b.txt"

    def test_list_limit(self, manager, store):
        make_partition(store, "2026-10-18", [f"f{i}.txt.bak.10000{i}" for i in range(5)])
        assert len(manager.list_backups(limit=2)) == 2

    def test_stats(self, manager, store, source):
        make_partition(store, "2026-10-15")
        manager.backup(source)

        stats = manager.get_stats()

        assert stats["total_backups"] == 2
        assert stats["partitions"] == 2
        assert stats["oldest_partition"] == "2026-10-15"
        assert stats["newest_partition"] == "2026-10-18"
        assert stats["retention_days"] == 7
        assert stats["total_size_bytes"] == 1 + len(b"original content")

    def test_stats_empty(self, tmp_path):
        stats = BackupManager(str(tmp_path / "none")).get_stats()
        assert stats["total_backups"] == 0
        assert stats["oldest_partition"] is None
