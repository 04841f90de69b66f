"""ADB shell command execution utilities."""

import shlex
from typing import Optional

from .device import ADBDevice, ADBError, PrivilegedChannelError
from ..util.logging import get_logger

logger = get_logger(__name__)


class ShellCommand:
    """Utility for executing shell commands on Android device."""

    def __init__(self, device: ADBDevice):
        self.device = device
        self._root_checked = False

    def execute(self, command: str, timeout: int = 30) -> str:
        """Execute a shell command on the device."""
        return self.device.shell(command, timeout=timeout)

    def ensure_privileged(self) -> None:
        """Make sure the device is reachable and grants root.

        Raises:
            PrivilegedChannelError: If the device is offline or ``su`` is refused.
        """
        if not self.device.is_online():
            self._root_checked = False
            raise PrivilegedChannelError(f"Device {self.device.serial} is not reachable")

        if not self._root_checked:
            if not self.device.has_root():
                raise PrivilegedChannelError(f"Root access not available on {self.device.serial}")
            self._root_checked = True

    def execute_as_root(self, command: str, timeout: int = 30) -> str:
        """Execute a command through ``su``."""
        return self.execute(f"su -c {shlex.quote(command)}", timeout)

    def root_command(self, command: str) -> str:
        """The device-side command line that runs ``command`` as root."""
        return f"su -c {shlex.quote(command)}"

    def file_exists(self, path: str, as_root: bool = False) -> bool:
        """Check if a file or directory exists on the device."""
        check = f"test -e {shlex.quote(path)} && echo exists"
        try:
            result = self.execute_as_root(check) if as_root else self.execute(check)
            return "exists" in result
        except ADBError:
            return False

    def file_size(self, path: str) -> Optional[int]:
        """Size of a device file in bytes, or None if it cannot be read."""
        try:
            output = self.execute(f"stat -c %s {shlex.quote(path)}")
            return int(output.strip())
        except (ADBError, ValueError):
            return None

    def directory_size(self, path: str) -> int:
        """Disk usage of a directory in bytes (root view)."""
        output = self.execute_as_root(f"du -sk {shlex.quote(path)}", timeout=120)
        try:
            return int(output.split()[0]) * 1024
        except (IndexError, ValueError) as e:
            raise ADBError(f"Could not parse disk usage of {path}: {output!r}") from e

    def owner_uid(self, path: str) -> str:
        """Numeric owner uid of a path (root view)."""
        output = self.execute_as_root(f"stat -c %u {shlex.quote(path)}").strip()
        if not output.isdigit():
            raise ADBError(f"Could not read owner of {path}: {output!r}")
        return output
