"""Backup and restore of a single app through the device's root shell."""

import shlex
from pathlib import Path
from typing import List, Optional

from ..adb.device import ADBDevice, ADBError, PrivilegedChannelError
from ..adb.package import PackageManager
from ..adb.shell import ShellCommand
from ..schedule.models import ActionKind, ActionOutcome, AppRecord, SubMode
from ..util.hashing import calculate_file_hash, verify_file_integrity
from ..util.logging import get_logger
from ..util.paths import ensure_directory, format_size
from .storage import APK_DIR, DATA_ARCHIVE, BackupProperties, BackupStorage

logger = get_logger(__name__)

DATA_ROOT = "/data/data"
DEVICE_TMP = "/data/local/tmp"


class ActionFailed(Exception):
    """An expected failure of one app's action."""
    pass


class BackupExecutor:
    """Performs one backup or restore for one app.

    Expected failures come back as an unsuccessful :class:`ActionOutcome`.
    Only :class:`PrivilegedChannelError` escapes, because without the device
    or its root shell no further app can be handled.
    """

    def __init__(self, device: ADBDevice, storage: BackupStorage) -> None:
        """Initialize backup executor.

        Args:
            device: Device to back up from and restore to
            storage: Backup storage manager
        """
        self.device = device
        self.storage = storage
        self.shell = ShellCommand(device)
        self.package_manager = PackageManager(device)

    def perform(self, app: AppRecord, kind: ActionKind, sub_mode: SubMode) -> ActionOutcome:
        """Back up or restore ``app``.

        Raises:
            PrivilegedChannelError: If the device or root shell is unavailable
        """
        self.shell.ensure_privileged()

        try:
            if kind == ActionKind.BACKUP:
                artifact = self._backup(app, sub_mode)
            else:
                artifact = self._restore(app, sub_mode)
        except PrivilegedChannelError:
            raise
        except (ActionFailed, ADBError, OSError) as e:
            message = f"{app.package_name}: {kind.value} failed: {e}"
            logger.error(message)
            return ActionOutcome(app=app, artifact=None, message=message, succeeded=False)

        logger.info(f"{kind.value.capitalize()} of {app.package_name} done")
        return ActionOutcome(app=app, artifact=artifact, message="", succeeded=True)

    def _backup(self, app: AppRecord, sub_mode: SubMode) -> Path:
        if not app.installed:
            raise ActionFailed("app is not installed")

        apk_paths = self.package_manager.get_apk_paths(app.package_name) if sub_mode.includes_apk else []
        data_dir = f"{DATA_ROOT}/{app.package_name}"
        if sub_mode.includes_data and not self.shell.file_exists(data_dir, as_root=True):
            raise ActionFailed(f"app not found: {data_dir} does not exist")

        self._check_space(apk_paths, data_dir if sub_mode.includes_data else None)

        backup_dir = self.storage.create_backup_session(app.package_name)
        try:
            properties = BackupProperties(
                package_name=app.package_name,
                label=app.label,
                version_code=app.version_code,
                sub_mode=sub_mode,
            )
            if sub_mode.includes_apk:
                self._backup_apks(apk_paths, backup_dir, properties)
            if sub_mode.includes_data:
                self._backup_data(app.package_name, backup_dir, properties)
            self.storage.save_properties(backup_dir, properties)
        except BaseException:
            self.storage.discard(backup_dir)
            raise

        return backup_dir

    def _check_space(self, apk_paths: List[str], data_dir: Optional[str]) -> None:
        required = 0
        for apk_path in apk_paths:
            required += self.shell.file_size(apk_path) or 0
        if data_dir is not None:
            required += self.shell.directory_size(data_dir)

        available = self.storage.available_space()
        if required > available:
            raise ActionFailed(
                f"insufficient storage: {format_size(required)} needed, {format_size(available)} available"
            )

    def _backup_apks(self, apk_paths: List[str], backup_dir: Path, properties: BackupProperties) -> None:
        apk_dir = ensure_directory(backup_dir / APK_DIR)
        for apk_path in apk_paths:
            target = apk_dir / Path(apk_path).name
            self.device.pull(apk_path, target)
            digest = calculate_file_hash(target)
            if digest is None:
                raise ActionFailed(f"could not read pulled APK {target.name}")
            properties.apk_files.append(target.name)
            properties.apk_sha256[target.name] = digest

    def _backup_data(self, package_name: str, backup_dir: Path, properties: BackupProperties) -> None:
        archive = backup_dir / DATA_ARCHIVE
        # cache and code_cache are left out
        tar = (
            f"tar -cf - -C {DATA_ROOT} --exclude={shlex.quote(package_name + '/cache')} "
            f"--exclude={shlex.quote(package_name + '/code_cache')} {shlex.quote(package_name)}"
        )
        size = self.device.exec_out(self.shell.root_command(tar), archive)
        if size == 0:
            raise ActionFailed("data archive is empty")
        properties.data_archive = archive.name
        properties.data_size = size

    def _restore(self, app: AppRecord, sub_mode: SubMode) -> Path:
        backup_dir = self.storage.get_latest_backup(app.package_name)
        if backup_dir is None:
            raise ActionFailed("no backup to restore")
        properties = self.storage.load_properties(backup_dir)
        if properties is None:
            raise ActionFailed(f"backup {backup_dir.name} has unreadable properties")

        if sub_mode.includes_apk and properties.apk_files:
            self._restore_apks(backup_dir, properties)

        if sub_mode.includes_data and properties.data_archive:
            if not self.package_manager.is_package_installed(app.package_name):
                raise ActionFailed("app is not installed, cannot restore its data")
            self._restore_data(app.package_name, backup_dir / properties.data_archive)

        return backup_dir

    def _restore_apks(self, backup_dir: Path, properties: BackupProperties) -> None:
        apk_files = []
        for name in properties.apk_files:
            apk = backup_dir / APK_DIR / name
            expected = properties.apk_sha256.get(name)
            if expected and not verify_file_integrity(apk, expected):
                raise ActionFailed(f"APK {name} does not match its recorded checksum")
            apk_files.append(apk)
        self.device.install(apk_files)

    def _restore_data(self, package_name: str, archive: Path) -> None:
        remote_archive = f"{DEVICE_TMP}/{package_name}.tar"
        data_dir = f"{DATA_ROOT}/{package_name}"
        quoted_dir = shlex.quote(data_dir)

        self.device.push(archive, remote_archive)
        try:
            self.shell.execute_as_root(f"am force-stop {shlex.quote(package_name)}")
            self.shell.execute_as_root(
                f"tar -xf {shlex.quote(remote_archive)} -C {DATA_ROOT}", timeout=1800
            )
            uid = self.shell.owner_uid(data_dir)
            self.shell.execute_as_root(f"chown -R {uid}:{uid} {quoted_dir}", timeout=300)
            self.shell.execute_as_root(f"restorecon -R {quoted_dir}", timeout=300)
        finally:
            self.shell.execute_as_root(f"rm -f {shlex.quote(remote_archive)}")
