"""Orchestration of one scheduled backup or restore run.

A run walks ``IDLE -> DISCOVERING -> FILTERING -> EXECUTING -> REPORTING ->
DONE`` and ends in ``ABORTED`` when the inventory is unavailable, the backup
location is not usable, or the device's root shell goes away mid-batch.
Failures of single apps never end a run; they are folded into its result.
"""

import threading
from typing import Callable, List, Optional, Protocol, Sequence, Set

from ..adb.device import PrivilegedChannelError
from ..util.logging import get_logger
from ..util.timeutil import current_millis
from .blacklist import BlacklistError
from .errors import InventoryError, ScheduleAlreadyRunningError
from .guard import ResourceGuard
from .models import (
    GLOBAL_BLACKLIST_ID,
    ActionKind,
    ActionOutcome,
    AppRecord,
    RunContext,
    RunReport,
    RunState,
    ScheduleConfig,
    SubMode,
)
from .progress import (
    FETCHING_TITLE,
    FINISHED_BODY,
    notify_safely,
    progress_title,
    terminal_title,
)
from .results import aggregate, write_log_safely
from .selection import select_apps

logger = get_logger(__name__)

RunListener = Callable[[RunReport], None]


class InventoryProvider(Protocol):
    def list_applications(self) -> List[AppRecord]: ...


class ActionExecutor(Protocol):
    def perform(self, app: AppRecord, kind: ActionKind, sub_mode: SubMode) -> ActionOutcome: ...


class ProgressReporter(Protocol):
    def notify(self, run_id: int, title: str, body: str, ongoing: bool) -> None: ...


class LogSink(Protocol):
    def append(self, text: str) -> None: ...


class ScheduledRunner:
    """Runs schedules against injected collaborators.

    Runs of the same schedule never overlap; runs of different schedules
    are independent of each other.
    """

    def __init__(
        self,
        inventory: InventoryProvider,
        blacklist_store,
        executor: ActionExecutor,
        reporter: ProgressReporter,
        log_sink: LogSink,
        guard: ResourceGuard,
        storage_ready: Optional[Callable[[], bool]] = None,
        clock: Callable[[], int] = current_millis,
    ):
        self.inventory = inventory
        self.blacklist_store = blacklist_store
        self.executor = executor
        self.reporter = reporter
        self.log_sink = log_sink
        self.guard = guard
        self.storage_ready = storage_ready or (lambda: True)
        self.clock = clock

        self._listeners: List[RunListener] = []
        self._running: Set[int] = set()
        self._running_lock = threading.Lock()

    def on_run_complete(self, callback: RunListener) -> None:
        """Register a callback invoked once after every run."""
        self._listeners.append(callback)

    def is_running(self, schedule_id: int) -> bool:
        with self._running_lock:
            return schedule_id in self._running

    def _claim(self, schedule_id: int) -> None:
        with self._running_lock:
            if schedule_id in self._running:
                raise ScheduleAlreadyRunningError(f"Schedule {schedule_id} is already running")
            self._running.add(schedule_id)

    def _release(self, schedule_id: int) -> None:
        with self._running_lock:
            self._running.discard(schedule_id)

    def run(self, schedule: ScheduleConfig, action: ActionKind = ActionKind.BACKUP) -> RunReport:
        """Run a schedule on the calling thread.

        Raises:
            ScheduleAlreadyRunningError: If the schedule is already running
        """
        self._claim(schedule.id)
        try:
            return self._run(schedule, action)
        finally:
            self._release(schedule.id)

    def start(self, schedule: ScheduleConfig, action: ActionKind = ActionKind.BACKUP) -> threading.Thread:
        """Run a schedule on a dedicated worker thread.

        The schedule is claimed before the thread starts, so a conflicting
        run is rejected on the caller's side.
        """
        self._claim(schedule.id)

        def worker() -> None:
            try:
                self._run(schedule, action)
            except Exception:
                logger.exception(f"Scheduled run of schedule {schedule.id} crashed")
            finally:
                self._release(schedule.id)

        thread = threading.Thread(target=worker, name=f"schedule-{schedule.id}", daemon=True)
        thread.start()
        return thread

    def _notify(self, context: RunContext, title: str, body: str, ongoing: bool) -> None:
        notify_safely(self.reporter, context.run_id, title, body, ongoing)

    def _abort(self, context: RunContext, message: str) -> RunReport:
        logger.error(f"Scheduled {context.action.value} of schedule {context.schedule_id} aborted: {message}")
        write_log_safely(self.log_sink, message)
        context.advance(RunState.ABORTED)
        return RunReport(
            schedule_id=context.schedule_id,
            run_id=context.run_id,
            action=context.action,
            state=RunState.ABORTED,
            error=message,
        )

    def _complete(self, report: RunReport) -> RunReport:
        for listener in self._listeners:
            try:
                listener(report)
            except Exception:
                logger.exception("Run listener failed")
        return report

    def _run(self, schedule: ScheduleConfig, action: ActionKind) -> RunReport:
        context = RunContext(schedule_id=schedule.id, run_id=self.clock(), action=action)

        context.advance(RunState.DISCOVERING)
        self._notify(context, FETCHING_TITLE, "", ongoing=True)
        try:
            inventory = self.inventory.list_applications()
        except InventoryError as e:
            return self._complete(self._abort(context, f"{type(e).__name__}: {e}"))

        context.advance(RunState.FILTERING)
        selected = select_apps(inventory, schedule)

        context.advance(RunState.EXECUTING)
        if not self.storage_ready():
            return self._complete(self._abort(context, "Backup location is not writable"))

        try:
            handle = self.blacklist_store.open(read_only=True)
        except BlacklistError as e:
            return self._complete(self._abort(context, str(e)))

        with handle:
            try:
                blacklisted = handle.get_blacklisted(GLOBAL_BLACKLIST_ID) | handle.get_blacklisted(schedule.id)
            except BlacklistError as e:
                return self._complete(self._abort(context, str(e)))

            logger.info(f"Starting scheduled {action.value} for {len(selected)} items")
            outcomes, skipped, fatal = self._execute(context, schedule, selected, blacklisted)

            context.advance(RunState.REPORTING)
            overall = aggregate(outcomes)
            if fatal is not None:
                message = "\n".join(m for m in (overall.message, f"Aborted: {fatal}") if m)
                overall = ActionOutcome(app=None, artifact=None, message=message, succeeded=False)

            self._notify(context, terminal_title(action, overall.succeeded), FINISHED_BODY, ongoing=False)
            if not overall.succeeded:
                write_log_safely(self.log_sink, overall.message or "No app was processed")

            final_state = RunState.ABORTED if fatal is not None else RunState.DONE
            context.advance(final_state)
            return self._complete(RunReport(
                schedule_id=schedule.id,
                run_id=context.run_id,
                action=action,
                state=final_state,
                outcomes=outcomes,
                overall=overall,
                skipped=skipped,
                error=str(fatal) if fatal is not None else None,
            ))

    def _execute(
        self,
        context: RunContext,
        schedule: ScheduleConfig,
        selected: Sequence[AppRecord],
        blacklisted: Set[str],
    ):
        outcomes: List[ActionOutcome] = []
        skipped: List[str] = []
        fatal: Optional[PrivilegedChannelError] = None
        context.total = len(selected)

        with self.guard.hold(context):
            for app in selected:
                context.index += 1
                if app.package_name in blacklisted:
                    logger.info(f"{app.package_name} ignored")
                    skipped.append(app.package_name)
                    continue

                title = progress_title(context.action, context.index, context.total)
                self._notify(context, title, app.label, ongoing=False)
                try:
                    outcome = self.executor.perform(app, context.action, schedule.sub_mode)
                except PrivilegedChannelError as e:
                    logger.error(f"Privileged channel lost at {app.package_name}, stopping batch: {e}")
                    fatal = e
                    break
                outcomes.append(outcome)

        return outcomes, skipped, fatal
