"""ADB package management utilities."""

import shlex
from dataclasses import dataclass
from typing import Dict, List, Set

from .device import ADBDevice, ADBError
from .shell import ShellCommand
from ..util.logging import get_logger

logger = get_logger(__name__)

SYSTEM_PATHS = (
    "/system/",
    "/system_ext/",
    "/product/",
    "/vendor/",
    "/oem/",
    "/apex/",
)


@dataclass
class PackageInfo:
    """Information about an installed package."""

    package_name: str
    version_code: int = 0
    apk_path: str = ""
    is_system: bool = False


def parse_package_line(line: str) -> PackageInfo:
    """Parse one line of ``pm list packages -f --show-versioncode``.

    Lines look like ``package:/data/app/com.foo-1/base.apk=com.foo versionCode:42``.
    The APK path may itself contain ``=`` so the name is split off the right.
    """
    body = line.strip()[len("package:"):]
    version_code = 0
    if " versionCode:" in body:
        body, code = body.rsplit(" versionCode:", 1)
        try:
            version_code = int(code.strip())
        except ValueError:
            logger.debug(f"Unparsable version code in {line!r}")

    if "=" in body:
        apk_path, package_name = body.rsplit("=", 1)
    else:
        apk_path, package_name = "", body

    return PackageInfo(
        package_name=package_name.strip(),
        version_code=version_code,
        apk_path=apk_path,
        is_system=apk_path.startswith(SYSTEM_PATHS),
    )


class PackageManager:
    """Utility for querying packages on an Android device."""

    def __init__(self, device: ADBDevice):
        self.device = device
        self.shell = ShellCommand(device)

    def list_installed(self) -> List[PackageInfo]:
        """List every installed package with version code and system flag.

        Raises:
            ADBError: If the package manager cannot be queried.
        """
        output = self.shell.execute("pm list packages -f --show-versioncode", timeout=60)
        system_packages = self._system_package_names()

        packages: Dict[str, PackageInfo] = {}
        for line in output.split("\n"):
            if not line.startswith("package:"):
                continue
            info = parse_package_line(line)
            if info.package_name in system_packages:
                info.is_system = True
            packages[info.package_name] = info

        logger.debug(f"Found {len(packages)} installed packages")
        return sorted(packages.values(), key=lambda p: p.package_name)

    def _system_package_names(self) -> Set[str]:
        output = self.shell.execute("pm list packages -s", timeout=60)
        return {
            line.replace("package:", "").strip()
            for line in output.split("\n")
            if line.startswith("package:")
        }

    def get_apk_paths(self, package_name: str) -> List[str]:
        """All APK paths of a package (base plus splits)."""
        output = self.shell.execute(f"pm path {shlex.quote(package_name)}")
        paths = [
            line.replace("package:", "").strip()
            for line in output.split("\n")
            if line.startswith("package:")
        ]
        if not paths:
            raise ADBError(f"No APK found for {package_name}")
        return paths

    def is_package_installed(self, package_name: str) -> bool:
        """Check if a package is installed."""
        try:
            output = self.shell.execute(f"pm list packages {shlex.quote(package_name)}")
        except ADBError:
            return False
        return any(line.strip() == f"package:{package_name}" for line in output.split("\n"))
