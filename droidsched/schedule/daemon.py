"""Polling loop that fires due schedules."""

import threading
import time
from datetime import datetime
from typing import Callable, List, Optional

from ..util.logging import get_logger
from .errors import ScheduleAlreadyRunningError
from .orchestrator import ScheduledRunner
from .store import ScheduleStore

logger = get_logger(__name__)


class ScheduleDaemon:
    """Fires every due schedule on its own worker thread.

    A schedule is marked as run when it is fired, not when it finishes, so a
    failed run is not retried before its next regular time.
    """

    def __init__(
        self,
        store: ScheduleStore,
        runner: ScheduledRunner,
        poll_interval: float = 60.0,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.runner = runner
        self.poll_interval = poll_interval
        self.now = now
        self._stop = threading.Event()

    def tick(self) -> List[threading.Thread]:
        """Fire the schedules that are due right now."""
        current = self.now()
        started = []
        for schedule in self.store.due_schedules(current):
            try:
                thread = self.runner.start(schedule)
            except ScheduleAlreadyRunningError:
                logger.debug(f"Schedule {schedule.id} still running, not firing again")
                continue
            self.store.mark_run(schedule.id, current.timestamp())
            logger.info(f"Fired schedule {schedule.id} ({schedule.name or schedule.mode.value})")
            started.append(thread)
        return started

    def run_forever(self, max_ticks: Optional[int] = None) -> None:
        ticks = 0
        while not self._stop.is_set():
            self.tick()
            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            self._stop.wait(self.poll_interval)

    def stop(self) -> None:
        self._stop.set()

    def join_running(self, threads: List[threading.Thread], timeout: Optional[float] = None) -> None:
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
