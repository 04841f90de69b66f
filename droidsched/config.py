"""Configuration management for DroidSched."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field
from ruamel.yaml import YAML

DEFAULT_CONFIG_DIR = Path.home() / ".config/droidsched"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "config.yaml"


class SchedulerConfig(BaseModel):
    """Configuration for unattended scheduled runs."""

    acquire_wakelock: bool = Field(default=True, description="Hold a partial wake lock on the device during a run")
    wakelock_timeout_minutes: int = Field(default=60, ge=1, description="Upper bound for the wake lock")
    device_notifications: bool = Field(default=True, description="Post progress notifications on the device")
    console_notifications: bool = Field(default=True, description="Print progress notifications on the host")
    poll_interval_seconds: int = Field(default=60, ge=1, description="Daemon polling interval")


class DroidSchedConfig(BaseModel):
    """Main configuration for DroidSched."""

    backup_root: Optional[Path] = Field(
        default=None,
        description="Directory that receives app backups; must be set before any run"
    )
    config_dir: Path = Field(
        default_factory=lambda: DEFAULT_CONFIG_DIR,
        description="Configuration directory"
    )
    schedules_file: Optional[Path] = Field(default=None, description="Schedule definitions (YAML)")
    blacklist_db: Optional[Path] = Field(default=None, description="Blacklist database (SQLite)")
    log_dir: Optional[Path] = Field(default=None, description="Directory for the failure log")

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    adb_path: str = Field(default="adb", description="Path to ADB binary")
    serial: Optional[str] = Field(default=None, description="Serial of the device to drive")
    log_level: str = Field(default="INFO", description="Logging level")

    class Config:
        """Pydantic configuration."""

        validate_assignment = True

    @property
    def schedules_path(self) -> Path:
        return self.schedules_file or self.config_dir / "schedules.yaml"

    @property
    def blacklist_path(self) -> Path:
        return self.blacklist_db or self.config_dir / "blacklists.db"

    @property
    def failure_log_dir(self) -> Path:
        """Failure logs live next to the backups, like the app's own log files."""
        if self.log_dir is not None:
            return self.log_dir
        if self.backup_root is not None:
            return self.backup_root / "logs"
        return self.config_dir / "logs"


def load_config(config_path: Optional[Path] = None) -> DroidSchedConfig:
    """Load configuration from file or create default."""

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if config_path.exists():
        yaml = YAML(typ="safe")
        with open(config_path, "r") as f:
            data = yaml.load(f) or {}
        return DroidSchedConfig(**data)
    else:
        config = DroidSchedConfig(config_dir=config_path.parent)
        save_config(config, config_path)
        return config


def save_config(config: DroidSchedConfig, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    config_path.parent.mkdir(parents=True, exist_ok=True)

    yaml = YAML()
    yaml.default_flow_style = False

    with open(config_path, "w") as f:
        yaml.dump(config.model_dump(mode="json"), f)
