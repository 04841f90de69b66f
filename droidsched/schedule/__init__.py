"""Scheduled backup orchestration."""

from .models import (
    GLOBAL_BLACKLIST_ID,
    ActionKind,
    ActionOutcome,
    AppRecord,
    BackupMode,
    RunContext,
    RunReport,
    RunState,
    ScheduleConfig,
    SubMode,
)
from .errors import (
    InventoryError,
    ScheduleAlreadyRunningError,
    ScheduleNotFoundError,
    StorageLocationNotConfiguredError,
    StorageUnavailableError,
)
from .blacklist import BlacklistError, BlacklistHandle, BlacklistStore
from .guard import DeviceWakeLock, ResourceGuard, per_run_wakelock
from .progress import CompositeReporter, ConsoleReporter, DeviceNotificationReporter
from .results import FileLogSink, aggregate
from .selection import build_predicate, select_apps
from .orchestrator import ScheduledRunner
from .store import ScheduleStore, is_due, next_run_time
from .daemon import ScheduleDaemon

__all__ = [
    # models
    "GLOBAL_BLACKLIST_ID",
    "ActionKind",
    "ActionOutcome",
    "AppRecord",
    "BackupMode",
    "RunContext",
    "RunReport",
    "RunState",
    "ScheduleConfig",
    "SubMode",
    # errors
    "InventoryError",
    "ScheduleAlreadyRunningError",
    "ScheduleNotFoundError",
    "StorageLocationNotConfiguredError",
    "StorageUnavailableError",
    # blacklist
    "BlacklistError",
    "BlacklistHandle",
    "BlacklistStore",
    # guard
    "DeviceWakeLock",
    "ResourceGuard",
    "per_run_wakelock",
    # progress
    "CompositeReporter",
    "ConsoleReporter",
    "DeviceNotificationReporter",
    # results
    "FileLogSink",
    "aggregate",
    # selection
    "build_predicate",
    "select_apps",
    # orchestration
    "ScheduledRunner",
    "ScheduleStore",
    "is_due",
    "next_run_time",
    "ScheduleDaemon",
]
