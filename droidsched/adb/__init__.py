"""ADB module initialization."""

from .device import (
    ADBDevice,
    ADBError,
    ADBTimeoutError,
    DeviceInfo,
    PrivilegedChannelError,
    check_adb_available,
    list_devices,
    resolve_device,
)
from .package import PackageInfo, PackageManager, parse_package_line
from .shell import ShellCommand

__all__ = [
    # device
    "ADBDevice",
    "ADBError",
    "ADBTimeoutError",
    "DeviceInfo",
    "PrivilegedChannelError",
    "check_adb_available",
    "list_devices",
    "resolve_device",
    # shell
    "ShellCommand",
    # package
    "PackageInfo",
    "PackageManager",
    "parse_package_line",
]
