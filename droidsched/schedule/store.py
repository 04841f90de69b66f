"""Persistent schedule definitions and their firing times."""

import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ruamel.yaml import YAML

from ..util.logging import get_logger
from ..util.timeutil import next_occurrence
from .errors import ScheduleNotFoundError
from .models import ScheduleConfig

logger = get_logger(__name__)


def next_run_time(schedule: ScheduleConfig) -> datetime:
    """When a schedule fires next, counted from its last run or creation."""
    reference = schedule.last_run if schedule.last_run is not None else schedule.time_placed
    return next_occurrence(datetime.fromtimestamp(reference), schedule.hour, schedule.interval_days)


def is_due(schedule: ScheduleConfig, now: Optional[datetime] = None) -> bool:
    if not schedule.enabled:
        return False
    if now is None:
        now = datetime.now()
    return next_run_time(schedule) <= now


class ScheduleStore:
    """Schedules kept in a YAML file.

    Every mutation rewrites the whole file; the file is small and written
    only by the CLI and the daemon.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> List[ScheduleConfig]:
        if not self.path.exists():
            return []
        yaml = YAML(typ="safe")
        with open(self.path, "r") as f:
            data = yaml.load(f) or {}
        return [ScheduleConfig(**entry) for entry in data.get("schedules", [])]

    def _save(self, schedules: List[ScheduleConfig]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        yaml = YAML()
        yaml.default_flow_style = False

        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w") as f:
            yaml.dump({"schedules": [s.model_dump(mode="json") for s in schedules]}, f)
        tmp_path.replace(self.path)

    def get(self, schedule_id: int) -> ScheduleConfig:
        for schedule in self.load():
            if schedule.id == schedule_id:
                return schedule
        raise ScheduleNotFoundError(schedule_id)

    def next_id(self) -> int:
        return max((s.id for s in self.load()), default=0) + 1

    def add(self, schedule: ScheduleConfig) -> ScheduleConfig:
        with self._lock:
            schedules = self.load()
            if any(s.id == schedule.id for s in schedules):
                raise ValueError(f"Schedule {schedule.id} already exists")
            schedules.append(schedule)
            self._save(schedules)
        logger.info(f"Added schedule {schedule.id}")
        return schedule

    def update(self, schedule: ScheduleConfig) -> ScheduleConfig:
        with self._lock:
            schedules = self.load()
            for i, existing in enumerate(schedules):
                if existing.id == schedule.id:
                    schedules[i] = schedule
                    self._save(schedules)
                    return schedule
        raise ScheduleNotFoundError(schedule.id)

    def remove(self, schedule_id: int) -> None:
        with self._lock:
            schedules = self.load()
            remaining = [s for s in schedules if s.id != schedule_id]
            if len(remaining) == len(schedules):
                raise ScheduleNotFoundError(schedule_id)
            self._save(remaining)
        logger.info(f"Removed schedule {schedule_id}")

    def mark_run(self, schedule_id: int, when: float) -> ScheduleConfig:
        """Record that a schedule fired at ``when`` (epoch seconds)."""
        with self._lock:
            schedules = self.load()
            for schedule in schedules:
                if schedule.id == schedule_id:
                    schedule.last_run = when
                    self._save(schedules)
                    return schedule
        raise ScheduleNotFoundError(schedule_id)

    def due_schedules(self, now: Optional[datetime] = None) -> List[ScheduleConfig]:
        return [s for s in self.load() if is_due(s, now)]
