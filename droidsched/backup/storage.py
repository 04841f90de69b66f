"""Backup storage layout management.

Backups are kept per package, one timestamped directory per backup::

    <root>/<package>/<YYYYMMDD_HHMMSS>/
        backup.properties.json
        apk/base.apk, apk/split_*.apk
        data.tar
"""

import shutil
import typing as t
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from ..schedule.models import SubMode
from ..util.logging import get_logger
from ..util.paths import get_available_space, safe_filename
from ..util.timeutil import now_iso, session_name

logger = get_logger(__name__)

PROPERTIES_FILE = "backup.properties.json"
APK_DIR = "apk"
DATA_ARCHIVE = "data.tar"


class BackupProperties(BaseModel):
    """Metadata written next to every app backup."""

    package_name: str = Field(description="Package name")
    label: str = Field(default="", description="Display label")
    version_code: int = Field(default=0, description="Version code at backup time")
    sub_mode: SubMode = Field(description="What the backup contains")
    created_at: str = Field(default_factory=now_iso, description="Backup timestamp")
    apk_files: t.List[str] = Field(default_factory=list, description="APK file names")
    apk_sha256: t.Dict[str, str] = Field(default_factory=dict, description="APK hashes by file name")
    data_archive: t.Optional[str] = Field(default=None, description="Data archive file name")
    data_size: int = Field(default=0, description="Data archive size in bytes")


class BackupStorage:
    """Manages backup storage layout and organization."""

    def __init__(self, base_path: Path) -> None:
        """Initialize backup storage.

        Args:
            base_path: Base directory for all backups
        """
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def get_app_dir(self, package_name: str) -> Path:
        return self.base_path / safe_filename(package_name)

    def create_backup_session(self, package_name: str, timestamp: t.Optional[datetime] = None) -> Path:
        """Create a new, empty backup directory for a package."""
        session_dir = self.get_app_dir(package_name) / session_name(timestamp)
        # Two backups of one package in the same second would collide
        suffix = 1
        while session_dir.exists():
            session_dir = session_dir.with_name(f"{session_name(timestamp)}_{suffix}")
            suffix += 1
        session_dir.mkdir(parents=True)
        return session_dir

    def discard(self, backup_dir: Path) -> None:
        """Remove an incomplete backup."""
        shutil.rmtree(backup_dir, ignore_errors=True)
        logger.debug(f"Discarded incomplete backup {backup_dir}")

    def list_backups(self, package_name: str) -> t.List[Path]:
        """Complete backups of a package, newest first."""
        app_dir = self.get_app_dir(package_name)
        if not app_dir.is_dir():
            return []
        backups = [d for d in app_dir.iterdir() if (d / PROPERTIES_FILE).is_file()]
        return sorted(backups, key=lambda d: d.name, reverse=True)

    def get_latest_backup(self, package_name: str) -> t.Optional[Path]:
        backups = self.list_backups(package_name)
        return backups[0] if backups else None

    def list_packages(self) -> t.List[str]:
        """Package names that have at least one complete backup."""
        if not self.base_path.is_dir():
            return []
        packages = []
        for app_dir in sorted(self.base_path.iterdir()):
            if app_dir.is_dir() and self.list_backups(app_dir.name):
                packages.append(app_dir.name)
        return packages

    def save_properties(self, backup_dir: Path, properties: BackupProperties) -> Path:
        path = backup_dir / PROPERTIES_FILE
        path.write_text(properties.model_dump_json(indent=2), encoding="utf-8")
        return path

    def load_properties(self, backup_dir: Path) -> t.Optional[BackupProperties]:
        path = backup_dir / PROPERTIES_FILE
        try:
            return BackupProperties.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable backup properties {path}: {e}")
            return None

    def latest_properties(self, package_name: str) -> t.Optional[BackupProperties]:
        latest = self.get_latest_backup(package_name)
        return self.load_properties(latest) if latest else None

    def available_space(self) -> int:
        return get_available_space(self.base_path)
