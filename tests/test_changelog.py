"""
Tests for the FileSystemGate change log.
"""

from datetime import datetime, timedelta, timezone

import pytest

from sitegate.FileSystemGate.changelog import ChangeLogger, clamp_lines
from sitegate.FileSystemGate.models import AuditEntry, ChangeKind


@pytest.fixture
def log_path(tmp_path):
    return str(tmp_path / "logs" / "changes.log")


@pytest.fixture
def logger(log_path):
    return ChangeLogger(log_path)


def entry(admin_actor, kind=ChangeKind.WRITE, path="/site/readme.txt", minute=0, **fields) -> AuditEntry:
    return AuditEntry(
        timestamp=datetime(2026, 10, 18, 12, minute, 5, tzinfo=timezone.utc),
        kind=kind,
        path=path,
        actor=admin_actor,
        **fields,
    )


class TestRender:
    """Tests for AuditEntry.render()."""

    def test_minimal_block(self, admin_actor):
        text = entry(admin_actor).render()
        assert text == (
            "[2026-10-18 12:00:05 UTC] WRITE\n"
            "File: /site/readme.txt\n"
            "User: admin@example.com (ID: 1) from 203.0.113.7\n"
            "\n"
        )

    def test_full_block(self, admin_actor):
        text = entry(
            admin_actor,
            kind=ChangeKind.MOVE,
            backup_path="/b/readme.txt.bak.120005",
            destination="/site/moved.txt",
            size_before=10,
            size_after=12,
            context="rename\nafter review",
        ).render()

        lines = text.splitlines()
        assert lines[0] == "[2026-10-18 12:00:05 UTC] MOVE"
        assert "Backup: /b/readme.txt.bak.120005" in lines
        assert "Destination: /site/moved.txt" in lines
        assert "Size: 10 -> 12 bytes" in lines
        assert "Context: rename after review" in lines
        assert text.endswith("\n\n")

    def test_partial_size(self, admin_actor):
        text = entry(admin_actor, kind=ChangeKind.DELETE, size_before=7).render()
        assert "Size: 7 -> - bytes" in text

    def test_timestamp_rendered_in_utc(self, admin_actor):
        offset = timezone(timedelta(hours=2))
        record = AuditEntry(
            timestamp=datetime(2026, 10, 18, 14, 0, 0, tzinfo=offset),
            kind=ChangeKind.COPY,
            path="/x",
            actor=admin_actor,
        )
        assert record.render().startswith("[2026-10-18 12:00:00 UTC] COPY")


class TestChangeLogger:
    """Tests for ChangeLogger."""

    def test_log_creates_file(self, logger, log_path, admin_actor):
        assert logger.log(entry(admin_actor))
        with open(log_path) as f:
            assert f.read().startswith("[2026-10-18 12:00:05 UTC] WRITE")

    def test_entries_in_order(self, logger, admin_actor):
        """Entries appear in the order they were logged."""
        logger.log(entry(admin_actor, path="/site/one.txt", minute=1))
        logger.log(entry(admin_actor, path="/site/two.txt", minute=2))
        logger.log(entry(admin_actor, path="/site/three.txt", minute=3))

        text = logger.tail(500)
        assert text.index("one.txt") < text.index("two.txt") < text.index("three.txt")
        assert text.count("\n\n") == 3

    def test_tail_returns_last_lines(self, logger, admin_actor):
        for minute in range(10):
            logger.log(entry(admin_actor, path=f"/site/f{minute}.txt", minute=minute))

        text = logger.tail(4)
        # Each minimal block is three lines plus the blank separator
        assert text.splitlines() == [
            "[2026-10-18 12:09:05 UTC] WRITE",
            "File: /site/f9.txt",
            "User: admin@example.com (ID: 1) from 203.0.113.7",
            "",
        ]

    def test_tail_missing_log(self, logger):
        assert logger.tail() == ""

    def test_log_failure_is_not_raised(self, tmp_path, admin_actor):
        """An unwritable log path only produces a warning."""
        blocker = tmp_path / "file"
        blocker.write_text("x")
        logger = ChangeLogger(str(blocker / "changes.log"))

        assert logger.log(entry(admin_actor)) is False


class TestClampLines:
    """Tests for clamp_lines()."""

    @pytest.mark.parametrize("requested,expected", [
        (5, 5),
        (0, 1),
        (-3, 1),
        (500, 500),
        (10000, 500),
        ("20", 20),
        ("lots", 100),
        (None, 100),
    ])
    def test_clamp(self, requested, expected):
        assert clamp_lines(requested) == expected
