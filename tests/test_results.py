"""Tests for outcome aggregation and the failure log."""

from unittest.mock import MagicMock

import pytest

from droidsched.schedule.models import ActionOutcome, AppRecord
from droidsched.schedule.results import FileLogSink, aggregate, write_log_safely

APP = AppRecord("com.example.app", "App")


def ok() -> ActionOutcome:
    return ActionOutcome(APP, None, "", True)


def failed(message: str) -> ActionOutcome:
    return ActionOutcome(APP, None, message, False)


class TestAggregate:
    """Test folding outcomes into a batch result."""

    def test_messages_joined_in_order(self):
        """Test that messages keep outcome order."""
        overall = aggregate([failed("first"), failed("second"), failed("third")])

        assert overall.message == "first\nsecond\nthird"

    def test_empty_messages_leave_no_blank_lines(self):
        """Test that successful outcomes contribute nothing to the message."""
        overall = aggregate([ok(), failed("broken"), ok(), failed("also broken"), ok()])

        assert overall.message == "broken\nalso broken"

    def test_any_success_makes_batch_succeed(self):
        """Test the permissive policy: one success is enough."""
        overall = aggregate([failed("a"), failed("b"), ok(), failed("c")])

        assert overall.succeeded is True
        assert overall.message == "a\nb\nc"

    def test_all_failed(self):
        """Test that a batch without successes fails."""
        assert aggregate([failed("a"), failed("b")]).succeeded is False

    def test_empty_batch(self):
        """Test that an empty batch has no message and did not succeed."""
        overall = aggregate([])

        assert overall.message == ""
        assert overall.succeeded is False
        assert overall.app is None


class TestFileLogSink:
    """Test the append-only failure log."""

    def test_append_creates_directory(self, tmp_path):
        """Test that the log directory is created on first write."""
        sink = FileLogSink(tmp_path / "logs")

        sink.append("something failed")

        assert sink.log_path.exists()
        assert "something failed" in sink.log_path.read_text()

    def test_entries_are_appended(self, tmp_path):
        """Test that earlier entries are kept."""
        sink = FileLogSink(tmp_path)

        sink.append("first")
        sink.append("second\nwith two lines")

        entries = sink.entries()
        assert len(entries) == 2
        assert entries[0].endswith("first")
        assert entries[1].endswith("second\nwith two lines")

    def test_entries_limit(self, tmp_path):
        """Test that only the most recent entries are returned."""
        sink = FileLogSink(tmp_path)
        for i in range(5):
            sink.append(f"entry {i}")

        entries = sink.entries(limit=2)

        assert [e.splitlines()[-1] for e in entries] == ["entry 3", "entry 4"]

    def test_entries_without_log(self, tmp_path):
        """Test reading a log that was never written."""
        assert FileLogSink(tmp_path).entries() == []


class TestWriteLogSafely:
    """Test best-effort log writes."""

    def test_io_error_is_swallowed(self):
        """Test that an unwritable log does not raise."""
        sink = MagicMock()
        sink.append.side_effect = OSError("disk full")

        assert write_log_safely(sink, "text") is False

    def test_successful_write(self):
        """Test the normal path."""
        sink = MagicMock()

        assert write_log_safely(sink, "text") is True
        sink.append.assert_called_once_with("text")
