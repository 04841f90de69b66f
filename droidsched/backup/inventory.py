"""Application inventory: installed packages joined with backup history."""

from pathlib import Path
from typing import Dict, List, Optional

from ..adb.device import ADBDevice, ADBError
from ..adb.package import PackageInfo, PackageManager
from ..schedule.errors import StorageLocationNotConfiguredError, StorageUnavailableError
from ..schedule.models import AppRecord
from ..util.logging import get_logger
from ..util.paths import is_writable_directory
from .storage import BackupProperties, BackupStorage

logger = get_logger(__name__)


def build_record(
    installed: Optional[PackageInfo],
    properties: Optional[BackupProperties],
    package_name: str
) -> AppRecord:
    """Combine what the device reports with the latest backup of a package."""
    has_backup = properties is not None
    updated = (
        installed is not None
        and properties is not None
        and installed.version_code > properties.version_code
    )
    label = properties.label if properties is not None and properties.label else package_name

    return AppRecord(
        package_name=package_name,
        label=label,
        installed=installed is not None,
        system=installed.is_system if installed is not None else False,
        has_backup=has_backup,
        updated=updated,
        version_code=installed.version_code if installed is not None else 0,
        apk_path=installed.apk_path if installed is not None else "",
    )


class AdbInventoryProvider:
    """Lists the apps of a device together with their backup state.

    Apps that are backed up but no longer installed are part of the
    inventory with ``installed=False``.
    """

    def __init__(self, device: ADBDevice, backup_root: Optional[Path]):
        self.device = device
        self.backup_root = backup_root
        self.package_manager = PackageManager(device)

    def _storage(self) -> BackupStorage:
        if self.backup_root is None:
            raise StorageLocationNotConfiguredError("Backup location is not configured")

        try:
            storage = BackupStorage(self.backup_root)
        except OSError as e:
            raise StorageUnavailableError(f"Backup location {self.backup_root} is not accessible: {e}") from e

        if not is_writable_directory(storage.base_path):
            raise StorageUnavailableError(f"Backup location {self.backup_root} is not writable")

        return storage

    def list_applications(self) -> List[AppRecord]:
        """Enumerate the inventory, sorted by package name.

        Raises:
            StorageLocationNotConfiguredError: If no backup root is set
            StorageUnavailableError: If the backup root or the device cannot be read
        """
        storage = self._storage()

        try:
            installed: Dict[str, PackageInfo] = {
                info.package_name: info for info in self.package_manager.list_installed()
            }
        except ADBError as e:
            raise StorageUnavailableError(f"Cannot list packages on {self.device.serial}: {e}") from e

        try:
            package_names = sorted(set(installed) | set(storage.list_packages()))
            records = [
                build_record(installed.get(name), storage.latest_properties(name), name)
                for name in package_names
            ]
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read backups under {self.backup_root}: {e}") from e

        logger.info(
            f"Inventory: {len(installed)} installed apps, "
            f"{sum(1 for r in records if r.has_backup)} with backups"
        )
        return records
