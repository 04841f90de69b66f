"""Backup module initialization."""

from .executor import ActionFailed, BackupExecutor
from .inventory import AdbInventoryProvider, build_record
from .storage import BackupProperties, BackupStorage

__all__ = [
    # executor
    "ActionFailed",
    "BackupExecutor",
    # inventory
    "AdbInventoryProvider",
    "build_record",
    # storage
    "BackupProperties",
    "BackupStorage",
]
