"""Assembly of a ready-to-use scheduled runner from configuration."""

from datetime import timedelta
from typing import Optional

from rich.console import Console

from .adb.device import ADBDevice
from .adb.shell import ShellCommand
from .backup.executor import BackupExecutor
from .backup.inventory import AdbInventoryProvider
from .backup.storage import BackupStorage
from .config import DroidSchedConfig
from .schedule.blacklist import BlacklistStore
from .schedule.errors import StorageLocationNotConfiguredError, StorageUnavailableError
from .schedule.guard import ResourceGuard, per_run_wakelock
from .schedule.orchestrator import ScheduledRunner
from .schedule.progress import CompositeReporter, ConsoleReporter, DeviceNotificationReporter
from .schedule.results import FileLogSink
from .util.paths import is_writable_directory


def build_runner(
    config: DroidSchedConfig,
    device: ADBDevice,
    console: Optional[Console] = None
) -> ScheduledRunner:
    """Wire the scheduler components for one device.

    Raises:
        StorageLocationNotConfiguredError: If ``backup_root`` is not set
        StorageUnavailableError: If ``backup_root`` cannot be created
    """
    if config.backup_root is None:
        raise StorageLocationNotConfiguredError(
            "Backup location is not configured; set backup_root in the configuration"
        )

    try:
        storage = BackupStorage(config.backup_root)
    except OSError as e:
        raise StorageUnavailableError(f"Backup location {config.backup_root} is not accessible: {e}") from e

    shell = ShellCommand(device)
    settings = config.scheduler

    reporters = []
    if settings.console_notifications:
        reporters.append(ConsoleReporter(console))
    if settings.device_notifications:
        reporters.append(DeviceNotificationReporter(shell))

    guard = ResourceGuard(
        per_run_wakelock(shell, prefix=f"droidsched_{device.serial}"),
        enabled=settings.acquire_wakelock,
        timeout=timedelta(minutes=settings.wakelock_timeout_minutes),
    )

    return ScheduledRunner(
        inventory=AdbInventoryProvider(device, config.backup_root),
        blacklist_store=BlacklistStore(config.blacklist_path),
        executor=BackupExecutor(device, storage),
        reporter=CompositeReporter(reporters),
        log_sink=FileLogSink(config.failure_log_dir),
        guard=guard,
        storage_ready=lambda: is_writable_directory(storage.base_path),
    )
