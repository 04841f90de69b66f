"""ADB device management and communication."""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..util.logging import get_logger

logger = get_logger(__name__)


@dataclass
class DeviceInfo:
    """Information about an Android device."""

    serial: str
    model: str
    brand: str
    android_version: str
    sdk_version: str
    state: str = "device"

    @property
    def display_name(self) -> str:
        """Get a human-readable device name."""
        return f"{self.brand} {self.model} ({self.serial})"


class ADBError(Exception):
    """ADB command execution error."""
    pass


class ADBTimeoutError(ADBError):
    """ADB command did not finish in time."""
    pass


class PrivilegedChannelError(ADBError):
    """The device or its root shell cannot be reached at all.

    Unlike a failing command, this leaves nothing useful to do for the
    remaining apps of a batch.
    """
    pass


_transient = retry(
    retry=retry_if_exception_type(ADBTimeoutError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    reraise=True,
)


class ADBDevice:
    """Represents an ADB-connected Android device."""

    def __init__(self, serial: str, adb_path: str = "adb"):
        self.serial = serial
        self.adb_path = adb_path
        self._device_info: Optional[DeviceInfo] = None

    def _base_command(self) -> List[str]:
        return [self.adb_path, "-s", self.serial]

    @_transient
    def _run_command(self, command: List[str], timeout: int = 30) -> str:
        """Run an ADB command, retrying when it times out."""
        cmd = self._base_command() + command

        try:
            logger.debug(f"Running ADB command: {' '.join(cmd)}")
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=True
            )
            return result.stdout.strip()
        except subprocess.CalledProcessError as e:
            error_msg = f"ADB command failed: {' '.join(cmd)}\nError: {(e.stderr or e.stdout or '').strip()}"
            logger.debug(error_msg)
            raise ADBError(error_msg) from e
        except subprocess.TimeoutExpired as e:
            error_msg = f"ADB command timed out: {' '.join(cmd)}"
            logger.warning(error_msg)
            raise ADBTimeoutError(error_msg) from e
        except FileNotFoundError as e:
            raise PrivilegedChannelError(f"ADB binary not found: {self.adb_path}") from e

    def exec_out(self, command: str, output_path: Path, timeout: int = 3600) -> int:
        """Stream the raw stdout of a device command into ``output_path``.

        Returns the number of bytes written.
        """
        cmd = self._base_command() + ["exec-out", command]
        logger.debug(f"Streaming ADB command: {' '.join(cmd)} -> {output_path}")

        try:
            with open(output_path, "wb") as out:
                result = subprocess.run(cmd, stdout=out, stderr=subprocess.PIPE, timeout=timeout)
        except subprocess.TimeoutExpired as e:
            raise ADBTimeoutError(f"ADB command timed out: {' '.join(cmd)}") from e
        except FileNotFoundError as e:
            raise PrivilegedChannelError(f"ADB binary not found: {self.adb_path}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode(errors="replace").strip()
            raise ADBError(f"ADB command failed: {' '.join(cmd)}\nError: {stderr}")

        return output_path.stat().st_size

    def shell(self, command: str, timeout: int = 30) -> str:
        """Run a shell command on the device."""
        return self._run_command(["shell", command], timeout=timeout)

    def pull(self, device_path: str, local_path: Path, timeout: int = 600) -> None:
        """Pull a file from the device."""
        local_path.parent.mkdir(parents=True, exist_ok=True)
        self._run_command(["pull", device_path, str(local_path)], timeout=timeout)

    def push(self, local_path: Path, device_path: str, timeout: int = 600) -> None:
        """Push a file to the device."""
        self._run_command(["push", str(local_path), device_path], timeout=timeout)

    def install(self, apk_files: List[Path], timeout: int = 600) -> str:
        """Install (or replace) an app from one or more split APK files."""
        if not apk_files:
            raise ADBError("No APK files to install")
        args = ["install-multiple", "-r"] + [str(apk) for apk in apk_files]
        output = self._run_command(args, timeout=timeout)
        if "Success" not in output:
            raise ADBError(f"Installation failed: {output}")
        return output

    def get_device_info(self) -> DeviceInfo:
        """Get detailed device information."""
        if self._device_info is not None:
            return self._device_info

        props = {
            "model": self.shell("getprop ro.product.model"),
            "brand": self.shell("getprop ro.product.brand"),
            "android_version": self.shell("getprop ro.build.version.release"),
            "sdk_version": self.shell("getprop ro.build.version.sdk"),
        }

        self._device_info = DeviceInfo(serial=self.serial, **props)
        logger.info(f"Device info: {self._device_info.display_name}")
        return self._device_info

    def is_online(self) -> bool:
        """Check if device is online and accessible."""
        try:
            self._run_command(["shell", "echo", "test"], timeout=10)
            return True
        except ADBError:
            return False

    def has_root(self) -> bool:
        """Check if the device grants a root shell through ``su``."""
        try:
            output = self._run_command(["shell", "su -c id"], timeout=10)
            return "uid=0(root)" in output
        except ADBError:
            return False


def check_adb_available(adb_path: str = "adb") -> bool:
    """Check if ADB is available and working."""
    try:
        result = subprocess.run(
            [adb_path, "version"],
            capture_output=True,
            text=True,
            timeout=10
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return False


def list_devices(adb_path: str = "adb") -> List[ADBDevice]:
    """List all connected ADB devices."""
    if not check_adb_available(adb_path):
        raise ADBError("ADB is not available or not in PATH")

    try:
        result = subprocess.run(
            [adb_path, "devices"],
            capture_output=True,
            text=True,
            timeout=10,
            check=True
        )
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired) as e:
        raise ADBError(f"Failed to list devices: {e}") from e

    devices = []
    for line in result.stdout.strip().split("\n")[1:]:  # Skip header
        parts = line.split("\t")
        if len(parts) >= 2 and parts[1] == "device":
            devices.append(ADBDevice(parts[0], adb_path))

    return devices


def resolve_device(serial: Optional[str] = None, adb_path: str = "adb") -> ADBDevice:
    """Pick the device to drive: the given serial, or the only one connected."""
    devices = list_devices(adb_path)

    if serial:
        for device in devices:
            if device.serial == serial:
                return device
        raise ADBError(f"Device with serial {serial} not found")

    if not devices:
        raise ADBError("No devices found")
    if len(devices) > 1:
        serials = ", ".join(d.serial for d in devices)
        raise ADBError(f"Multiple devices found ({serials}); set a serial")

    return devices[0]
