"""Progress notifications for scheduled runs."""

import shlex
from typing import Iterable, List, Optional

from rich.console import Console

from ..adb.shell import ShellCommand
from ..util.logging import get_logger
from .models import ActionKind

logger = get_logger(__name__)

FETCHING_TITLE = "Fetching backup list"
FINISHED_BODY = "Scheduled run finished, see the log for details"

_PROGRESS_TITLES = {
    ActionKind.BACKUP: "Backup progress",
    ActionKind.RESTORE: "Restore progress",
}

_TERMINAL_TITLES = {
    (ActionKind.BACKUP, True): "Batch backup succeeded",
    (ActionKind.BACKUP, False): "Batch backup failed",
    (ActionKind.RESTORE, True): "Batch restore succeeded",
    (ActionKind.RESTORE, False): "Batch restore failed",
}


def progress_title(action: ActionKind, index: int, total: int) -> str:
    return f"{_PROGRESS_TITLES[action]} ({index}/{total})"


def terminal_title(action: ActionKind, succeeded: bool) -> str:
    return _TERMINAL_TITLES[(action, succeeded)]


class ConsoleReporter:
    """Prints notifications on the host console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def notify(self, run_id: int, title: str, body: str, ongoing: bool) -> None:
        style = "yellow" if ongoing else "cyan"
        text = f"[{style}]{title}[/{style}]"
        if body:
            text += f" {body}"
        self.console.print(text)


class DeviceNotificationReporter:
    """Posts notifications on the device with ``cmd notification``.

    The tag is derived from the run id so later posts replace earlier ones.
    """

    def __init__(self, shell: ShellCommand, tag_prefix: str = "droidsched"):
        self.shell = shell
        self.tag_prefix = tag_prefix

    def notify(self, run_id: int, title: str, body: str, ongoing: bool) -> None:
        tag = f"{self.tag_prefix}_{run_id}"
        command = (
            f"cmd notification post -S bigtext -t {shlex.quote(title)} "
            f"{shlex.quote(tag)} {shlex.quote(body or title)}"
        )
        self.shell.execute(command, timeout=10)


class CompositeReporter:
    """Fans a notification out to several reporters.

    A failing reporter does not keep the others from being called.
    """

    def __init__(self, reporters: Iterable[object]):
        self.reporters: List[object] = list(reporters)

    def notify(self, run_id: int, title: str, body: str, ongoing: bool) -> None:
        for reporter in self.reporters:
            notify_safely(reporter, run_id, title, body, ongoing)


def notify_safely(reporter, run_id: int, title: str, body: str, ongoing: bool) -> None:
    """Deliver a notification; failures are logged and dropped."""
    try:
        reporter.notify(run_id, title, body, ongoing)
    except Exception as e:
        logger.debug(f"Notification {title!r} for run {run_id} not delivered: {e}")
