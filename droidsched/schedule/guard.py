"""Partial wake lock held on the device for the duration of a run."""

import shlex
from contextlib import contextmanager
from datetime import timedelta
from typing import Callable, Iterator, Optional

from ..adb.device import ADBError
from ..adb.shell import ShellCommand
from ..util.logging import get_logger
from .models import RunContext

logger = get_logger(__name__)

WAKELOCK_CEILING = timedelta(minutes=60)


class DeviceWakeLock:
    """Kernel wake lock driven through ``/sys/power`` with a root shell.

    Writing ``"<name> <timeout_ns>"`` to ``wake_lock`` keeps the CPU awake
    without turning the display on; the kernel drops the lock by itself once
    the timeout expires.
    """

    def __init__(self, shell: ShellCommand, name: str = "droidsched"):
        self.shell = shell
        self.name = name
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self, timeout: timedelta) -> None:
        timeout_ns = int(timeout.total_seconds() * 1_000_000_000)
        value = shlex.quote(f"{self.name} {timeout_ns}")
        self.shell.execute_as_root(f"echo {value} > /sys/power/wake_lock")
        self._held = True

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.shell.execute_as_root(f"echo {shlex.quote(self.name)} > /sys/power/wake_unlock")
        finally:
            self._held = False


WakeLockFactory = Callable[[RunContext], DeviceWakeLock]


def per_run_wakelock(shell: ShellCommand, prefix: str = "droidsched") -> WakeLockFactory:
    """Factory giving every run a lock of its own, named after schedule and run."""
    return lambda context: DeviceWakeLock(shell, name=f"{prefix}_{context.schedule_id}_{context.run_id}")


class ResourceGuard:
    """Brackets the execution loop of a run with a wake lock.

    Each :meth:`hold` asks the factory for a fresh lock, so overlapping runs
    of different schedules never release each other's lock. When disabled
    the guard never touches a lock.
    """

    def __init__(
        self,
        wakelock_factory: Optional[WakeLockFactory],
        enabled: bool = True,
        timeout: timedelta = WAKELOCK_CEILING
    ):
        self.wakelock_factory = wakelock_factory
        self.enabled = enabled and wakelock_factory is not None
        self.timeout = min(timeout, WAKELOCK_CEILING)

    @contextmanager
    def hold(self, context: RunContext) -> Iterator[None]:
        """Hold the run's wake lock while the block runs and release it on any exit."""
        if self.enabled:
            wakelock = self.wakelock_factory(context)
            try:
                wakelock.acquire(self.timeout)
                context.wakelock = wakelock
                logger.info(f"wakelock {wakelock.name} acquired")
            except ADBError as e:
                logger.warning(f"Could not acquire wakelock, continuing without it: {e}")

        try:
            yield
        finally:
            wakelock = context.wakelock
            if wakelock is not None:
                try:
                    wakelock.release()
                    logger.info(f"wakelock {wakelock.name} released")
                except ADBError as e:
                    # Expires on its own at the timeout
                    logger.warning(f"Could not release wakelock: {e}")
                finally:
                    context.wakelock = None
