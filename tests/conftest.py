"""
Pytest configuration and fixtures for SiteGate tests.
"""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from sitegate.FileSystemGate import FileSystemGate
from sitegate.FileSystemGate.models import Actor, GuardConfig
from sitegate.FileSystemGate.operations import FileOperations


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


@pytest.fixture
def site_root(tmp_path) -> Path:
    """
    Build a small installation tree.

    Layout (under a canonical temp dir):
        www/site/                 installation root
        www/site/wp-includes/     core subtree
        www/site/wp-admin/        core subtree
        www/site/wp-content/      user content
        www/private/.env          outer sibling (inside the allowed base)
        elsewhere/secret.txt      outside the allowed base
    """
    base = Path(os.path.realpath(tmp_path))
    root = base / "www" / "site"

    (root / "wp-includes").mkdir(parents=True)
    (root / "wp-includes" / "version.txt").write_text("6.6")
    (root / "wp-admin").mkdir()
    (root / "wp-admin" / "admin.txt").write_text("admin")
    (root / "wp-content" / "uploads").mkdir(parents=True)
    (root / "wp-content" / "notes.txt").write_text("original notes")

    (root / "wp-config.php").write_text("<?php define('DB_NAME', 'site');")
    (root / "index.php").write_text("<?php require 'wp-blog-header.php';")
    (root / ".htaccess").write_text("RewriteEngine On\n")
    (root / "readme.txt").write_text("Hello World")

    (base / "www" / "private").mkdir(parents=True)
    (base / "www" / "private" / ".env").write_text("SECRET=1\n")

    (base / "elsewhere").mkdir()
    (base / "elsewhere" / "secret.txt").write_text("do not touch")

    return root


@pytest.fixture
def outside_dir(site_root) -> Path:
    """A directory outside the installation's parent."""
    return site_root.parent.parent / "elsewhere"


@pytest.fixture
def guard_config(site_root) -> GuardConfig:
    """Default guard configuration for the test installation."""
    return GuardConfig(install_root=str(site_root))


@pytest.fixture
def frozen_clock() -> FrozenClock:
    """Clock frozen at 2026-10-18 12:00:00 UTC."""
    return FrozenClock(datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def admin_actor() -> Actor:
    """Administrator holding manage_options."""
    return Actor(
        user_id=1,
        email="admin@example.com",
        ip="203.0.113.7",
        capabilities=frozenset({"manage_options", "edit_posts"}),
    )


@pytest.fixture
def subscriber_actor() -> Actor:
    """Logged-in user without administrative capabilities."""
    return Actor(
        user_id=42,
        email="reader@example.com",
        ip="198.51.100.9",
        capabilities=frozenset({"read"}),
    )


@pytest.fixture
def operations(guard_config, frozen_clock, admin_actor) -> FileOperations:
    """FileOperations acting as the administrator with a frozen clock."""
    return FileOperations(
        guard_config,
        actor_provider=lambda: admin_actor,
        clock=frozen_clock,
    )


@pytest.fixture
def gate(guard_config, frozen_clock, admin_actor):
    """Initialized FileSystemGate acting as the administrator."""
    assert FileSystemGate.initialize(
        guard_config,
        actor_provider=lambda: admin_actor,
        clock=frozen_clock,
    )
    return FileSystemGate


@pytest.fixture
def backup_files(guard_config):
    """Callable returning every file currently in the backup store."""
    def _files():
        found = []
        for dirpath, _, filenames in os.walk(guard_config.backup_root):
            found.extend(os.path.join(dirpath, name) for name in filenames)
        return sorted(found)
    return _files


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep SITEGATE_* variables (including ones a .env load adds) out of other tests."""
    from sitegate.Config.schema import CONFIG_SCHEMA

    for field in CONFIG_SCHEMA:
        # setenv records the original state so teardown restores it
        monkeypatch.setenv(field.env_var, "")
        monkeypatch.delenv(field.env_var)


@pytest.fixture(autouse=True)
def reset_module_state():
    """Reset module-level state between tests."""
    yield

    FileSystemGate.reset()

    try:
        import sitegate.AbilityGate as ability_gate
        ability_gate.reset()
    except (ImportError, AttributeError):
        pass

    try:
        import sitegate.Config as config_module
        config_module._manager = None
    except (ImportError, AttributeError):
        pass
