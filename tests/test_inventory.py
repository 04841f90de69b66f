"""Tests for the application inventory."""

from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from droidsched.adb.device import ADBError
from droidsched.adb.package import PackageInfo
from droidsched.backup.inventory import AdbInventoryProvider, build_record
from droidsched.backup.storage import BackupProperties, BackupStorage
from droidsched.schedule.errors import StorageLocationNotConfiguredError, StorageUnavailableError
from droidsched.schedule.guard import ResourceGuard
from droidsched.schedule.models import RunState, ScheduleConfig, SubMode
from droidsched.schedule.orchestrator import ScheduledRunner


def props(package_name, version_code, label=""):
    return BackupProperties(package_name=package_name, label=label, version_code=version_code, sub_mode=SubMode.BOTH)


class TestBuildRecord:
    """Test joining device state with backup history."""

    def test_installed_without_backup(self):
        """Test a fresh app."""
        record = build_record(PackageInfo("com.a", 3, "/data/app/a.apk"), None, "com.a")

        assert record.installed
        assert not record.has_backup
        assert not record.updated
        assert record.label == "com.a"
        assert record.version_code == 3

    def test_backup_current(self):
        """Test an app whose backup matches the installed version."""
        record = build_record(PackageInfo("com.a", 3), props("com.a", 3, "App A"), "com.a")

        assert record.has_backup
        assert not record.updated
        assert record.label == "App A"

    def test_updated_since_backup(self):
        """Test that a newer installed version marks the app as updated."""
        record = build_record(PackageInfo("com.a", 4), props("com.a", 3), "com.a")

        assert record.updated

    def test_uninstalled_with_backup(self):
        """Test an app that only exists as a backup."""
        record = build_record(None, props("com.a", 3), "com.a")

        assert not record.installed
        assert record.has_backup
        assert not record.updated
        assert not record.system

    def test_system_flag(self):
        """Test that the system flag comes from the device."""
        record = build_record(PackageInfo("com.android.x", 1, "/system/app/x.apk", True), None, "com.android.x")

        assert record.system


class TestAdbInventoryProvider:
    """Test listing the inventory."""

    def make_provider(self, backup_root, installed=None, error=None):
        provider = AdbInventoryProvider(MagicMock(serial="SERIAL"), backup_root)
        provider.package_manager = MagicMock()
        if error is not None:
            provider.package_manager.list_installed.side_effect = error
        else:
            provider.package_manager.list_installed.return_value = installed or []
        return provider

    def test_unconfigured_location(self):
        """Test that a missing backup root raises."""
        provider = self.make_provider(None)

        with pytest.raises(StorageLocationNotConfiguredError):
            provider.list_applications()

    def test_location_is_a_file(self, tmp_path):
        """Test that an unusable backup root raises."""
        root = tmp_path / "file"
        root.write_text("x")

        with pytest.raises(StorageUnavailableError):
            self.make_provider(root).list_applications()

    def test_device_error(self, tmp_path):
        """Test that a failing package listing raises StorageUnavailableError."""
        provider = self.make_provider(tmp_path, error=ADBError("offline"))

        with pytest.raises(StorageUnavailableError):
            provider.list_applications()

    def test_merges_installed_and_backed_up(self, tmp_path):
        """Test that uninstalled backed-up apps are included, sorted by name."""
        storage = BackupStorage(tmp_path)
        for name, version in (("com.a", 1), ("com.gone", 5)):
            backup_dir = storage.create_backup_session(name, datetime(2024, 1, 1))
            storage.save_properties(backup_dir, props(name, version))
        provider = self.make_provider(tmp_path, installed=[
            PackageInfo("com.b", 1),
            PackageInfo("com.a", 2),
        ])

        records = provider.list_applications()

        assert [r.package_name for r in records] == ["com.a", "com.b", "com.gone"]
        by_name = {r.package_name: r for r in records}
        assert by_name["com.a"].updated
        assert not by_name["com.b"].has_backup
        assert not by_name["com.gone"].installed

    def test_unreadable_backup_tree(self, tmp_path):
        """Test that a permission error while walking backups becomes StorageUnavailableError."""
        provider = self.make_provider(tmp_path, installed=[PackageInfo("com.a", 1)])

        with patch.object(BackupStorage, "list_packages", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(StorageUnavailableError):
                provider.list_applications()

    def test_unreadable_backup_aborts_run(self, tmp_path):
        """Test that the run is aborted, logged and reported to listeners."""
        provider = self.make_provider(tmp_path, installed=[PackageInfo("com.a", 1)])
        log_sink = MagicMock()
        reports = []
        runner = ScheduledRunner(
            inventory=provider,
            blacklist_store=MagicMock(),
            executor=MagicMock(),
            reporter=MagicMock(),
            log_sink=log_sink,
            guard=ResourceGuard(None),
        )
        runner.on_run_complete(reports.append)

        with patch.object(BackupStorage, "list_packages", side_effect=PermissionError(13, "Permission denied")):
            report = runner.run(ScheduleConfig(id=1))

        assert report.state == RunState.ABORTED
        log_sink.append.assert_called_once()
        assert "Permission denied" in log_sink.append.call_args.args[0]
        assert reports == [report]
