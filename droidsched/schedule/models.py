"""Data model shared by the scheduler components."""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

GLOBAL_BLACKLIST_ID = -1


class BackupMode(str, Enum):
    """Which part of the inventory a schedule selects."""

    ALL = "all"
    USER = "user"
    SYSTEM = "system"
    NEW_OR_UPDATED = "new_or_updated"


class SubMode(str, Enum):
    """What a single backup or restore action includes."""

    APK = "apk"
    DATA = "data"
    BOTH = "both"

    @property
    def includes_apk(self) -> bool:
        return self in (SubMode.APK, SubMode.BOTH)

    @property
    def includes_data(self) -> bool:
        return self in (SubMode.DATA, SubMode.BOTH)


class ActionKind(str, Enum):
    BACKUP = "backup"
    RESTORE = "restore"


class RunState(str, Enum):
    """Lifecycle of one orchestration run."""

    IDLE = "idle"
    DISCOVERING = "discovering"
    FILTERING = "filtering"
    EXECUTING = "executing"
    REPORTING = "reporting"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class AppRecord:
    """Snapshot of one application as seen at the start of a run."""

    package_name: str
    label: str
    installed: bool = True
    system: bool = False
    has_backup: bool = False
    updated: bool = False
    version_code: int = 0
    apk_path: str = ""


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one backup or restore action.

    ``message`` is empty on success. ``app`` is None only for the
    aggregated outcome of a whole batch.
    """

    app: Optional[AppRecord]
    artifact: Optional[Path]
    message: str
    succeeded: bool


class ScheduleConfig(BaseModel):
    """A stored schedule: when it fires and what it backs up."""

    id: int = Field(description="Schedule identifier")
    name: str = Field(default="", description="Human readable name")
    enabled: bool = Field(default=True, description="Whether the daemon fires this schedule")
    hour: int = Field(default=0, ge=0, le=23, description="Hour of day the run starts")
    interval_days: int = Field(default=1, ge=1, description="Days between two runs")
    mode: BackupMode = Field(default=BackupMode.ALL, description="Selection policy")
    sub_mode: SubMode = Field(default=SubMode.BOTH, description="What each action includes")
    exclude_system: bool = Field(default=False, description="Skip system apps in new/updated mode")
    enable_custom_list: bool = Field(default=False, description="Restrict selection to custom_list")
    custom_list: List[str] = Field(default_factory=list, description="Allowed package names")
    time_placed: float = Field(default_factory=time.time, description="Creation time (epoch seconds)")
    last_run: Optional[float] = Field(default=None, description="Last firing (epoch seconds)")

    class Config:
        """Pydantic configuration."""

        validate_assignment = True


@dataclass
class RunReport:
    """What a finished run hands to its caller and listeners."""

    schedule_id: int
    run_id: int
    action: ActionKind
    state: RunState
    outcomes: List[ActionOutcome] = field(default_factory=list)
    overall: Optional[ActionOutcome] = None
    skipped: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.overall is not None and self.overall.succeeded


@dataclass
class RunContext:
    """Mutable state owned by a single orchestration run."""

    schedule_id: int
    run_id: int
    action: ActionKind
    state: RunState = RunState.IDLE
    history: List[RunState] = field(default_factory=lambda: [RunState.IDLE])
    index: int = 0
    total: int = 0
    wakelock: Optional[object] = None

    def advance(self, state: RunState) -> None:
        self.state = state
        self.history.append(state)
