"""Tests for configuration management."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from droidsched.config import DroidSchedConfig, SchedulerConfig, load_config, save_config
from droidsched.runtime import build_runner
from droidsched.schedule.errors import StorageLocationNotConfiguredError
from droidsched.schedule.guard import WAKELOCK_CEILING
from droidsched.schedule.models import ActionKind, RunContext


class TestDroidSchedConfig:
    """Test configuration defaults and derived paths."""

    def test_defaults(self, tmp_path):
        config = DroidSchedConfig(config_dir=tmp_path)

        assert config.backup_root is None
        assert config.scheduler.acquire_wakelock is True
        assert config.scheduler.wakelock_timeout_minutes == 60
        assert config.schedules_path == tmp_path / "schedules.yaml"
        assert config.blacklist_path == tmp_path / "blacklists.db"
        assert config.failure_log_dir == tmp_path / "logs"

    def test_failure_log_next_to_backups(self, tmp_path):
        """Test that the failure log follows the backup root."""
        config = DroidSchedConfig(config_dir=tmp_path, backup_root=tmp_path / "backups")

        assert config.failure_log_dir == tmp_path / "backups" / "logs"

    def test_invalid_timeout(self):
        """Test that a zero wake lock timeout is rejected."""
        with pytest.raises(ValidationError):
            SchedulerConfig(wakelock_timeout_minutes=0)


class TestLoadSave:
    """Test YAML persistence of the configuration."""

    def test_missing_file_creates_default(self, tmp_path):
        """Test that loading a missing file writes the defaults."""
        config_path = tmp_path / "config.yaml"

        config = load_config(config_path)

        assert config_path.exists()
        assert config.config_dir == tmp_path

    def test_round_trip(self, tmp_path):
        """Test that saved values are loaded back."""
        config_path = tmp_path / "config.yaml"
        config = DroidSchedConfig(
            config_dir=tmp_path,
            backup_root=tmp_path / "backups",
            serial="ABC123",
            scheduler=SchedulerConfig(acquire_wakelock=False, poll_interval_seconds=5),
        )

        save_config(config, config_path)
        loaded = load_config(config_path)

        assert loaded.backup_root == tmp_path / "backups"
        assert loaded.serial == "ABC123"
        assert loaded.scheduler.acquire_wakelock is False
        assert loaded.scheduler.poll_interval_seconds == 5


class TestBuildRunner:
    """Test wiring a runner from configuration."""

    def test_requires_backup_root(self, tmp_path):
        """Test that an unconfigured backup root is refused up front."""
        with pytest.raises(StorageLocationNotConfiguredError):
            build_runner(DroidSchedConfig(config_dir=tmp_path), MagicMock(serial="S"))

    def test_wiring(self, tmp_path):
        """Test that configuration reaches the guard and reporters."""
        config = DroidSchedConfig(
            config_dir=tmp_path,
            backup_root=tmp_path / "backups",
            scheduler=SchedulerConfig(wakelock_timeout_minutes=600, device_notifications=False),
        )

        runner = build_runner(config, MagicMock(serial="S"))

        assert runner.guard.enabled
        assert runner.guard.timeout == WAKELOCK_CEILING
        lock = runner.guard.wakelock_factory(RunContext(schedule_id=3, run_id=99, action=ActionKind.BACKUP))
        assert lock.name == "droidsched_S_3_99"
        assert len(runner.reporter.reporters) == 1
        assert runner.storage_ready()
        assert Path(runner.log_sink.log_dir) == tmp_path / "backups" / "logs"
