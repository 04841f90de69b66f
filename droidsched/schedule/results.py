"""Aggregation of per-app outcomes and the failure log."""

from pathlib import Path
from typing import List, Sequence

from ..util.logging import get_logger
from ..util.paths import ensure_directory
from ..util.timeutil import now_iso
from .models import ActionOutcome

logger = get_logger(__name__)

LOG_FILE_NAME = "droidsched.log"
ENTRY_SEPARATOR = "\n\n"


def aggregate(outcomes: Sequence[ActionOutcome]) -> ActionOutcome:
    """Fold per-app outcomes into the outcome of the whole batch.

    The batch counts as succeeded as soon as one app succeeded. An empty
    batch did not succeed.
    """
    message = "\n".join(outcome.message for outcome in outcomes if outcome.message)
    succeeded = any(outcome.succeeded for outcome in outcomes)
    return ActionOutcome(app=None, artifact=None, message=message, succeeded=succeeded)


class FileLogSink:
    """Append-only text log of failed runs."""

    def __init__(self, log_dir: Path, file_name: str = LOG_FILE_NAME):
        self.log_dir = Path(log_dir)
        self.log_path = self.log_dir / file_name

    def append(self, text: str) -> None:
        """Append an entry.

        Raises:
            OSError: If the log cannot be written.
        """
        ensure_directory(self.log_dir)
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(f"{now_iso()}\n{text}{ENTRY_SEPARATOR}")

    def entries(self, limit: int = 20) -> List[str]:
        """The most recent ``limit`` entries, oldest first."""
        if not self.log_path.exists():
            return []
        content = self.log_path.read_text(encoding="utf-8")
        chunks = [chunk.strip() for chunk in content.split(ENTRY_SEPARATOR) if chunk.strip()]
        return chunks[-limit:]


def write_log_safely(sink, text: str) -> bool:
    """Append to the failure log; an unwritable log is only reported."""
    try:
        sink.append(text)
        return True
    except OSError as e:
        logger.warning(f"Could not write failure log: {e}")
        return False
