"""
Tests for scripts/sweep_backups.py.
"""

import importlib.util
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture
def sweep_script():
    spec = importlib.util.spec_from_file_location(
        "sweep_backups", PROJECT_ROOT / "scripts" / "sweep_backups.py"
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def env_file(tmp_path, site_root):
    path = tmp_path / "sweep.env"
    path.write_text(f"SITEGATE_INSTALL_ROOT={site_root}\n")
    return path


@pytest.fixture
def old_partition(site_root):
    path = site_root / "wp-content" / "sitegate-backups" / "2020-01-01"
    path.mkdir(parents=True)
    (path / "notes.txt.bak.120000").write_text("old")
    return path


class TestSweepScript:
    """Tests for the retention sweep script."""

    def test_dry_run_keeps_files(self, sweep_script, env_file, old_partition, capsys):
        assert sweep_script.main(["--env-file", str(env_file), "--dry-run"]) == 0

        out = capsys.readouterr().out
        assert "DRY RUN - 1 partition(s)" in out
        assert str(old_partition) in out
        assert old_partition.exists()

    def test_sweep_removes_partition(self, sweep_script, env_file, old_partition, capsys):
        assert sweep_script.main(["--env-file", str(env_file)]) == 0

        assert not old_partition.exists()
        assert "Removed 1 expired backup directories" in capsys.readouterr().out

    def test_retention_override(self, sweep_script, env_file, capsys):
        assert sweep_script.main(["--env-file", str(env_file), "--retention-days", "1", "--dry-run"]) == 0
        assert "Retention:    1 days" in capsys.readouterr().out

    def test_missing_configuration(self, sweep_script, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert sweep_script.main(["--env-file", str(tmp_path / "none.env")]) == 2
        assert "Configuration error" in capsys.readouterr().err
