"""Tests for schedule persistence, firing times and the daemon."""

import threading
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from droidsched.schedule.daemon import ScheduleDaemon
from droidsched.schedule.errors import ScheduleAlreadyRunningError, ScheduleNotFoundError
from droidsched.schedule.models import BackupMode, ScheduleConfig, SubMode
from droidsched.schedule.store import ScheduleStore, is_due, next_run_time

PLACED = datetime(2024, 3, 1, 15, 30).timestamp()


@pytest.fixture
def store(tmp_path):
    return ScheduleStore(tmp_path / "schedules.yaml")


class TestNextRunTime:
    """Test firing time computation."""

    def test_counts_from_creation(self):
        """Test that a schedule that never ran counts from time_placed."""
        schedule = ScheduleConfig(id=1, hour=3, interval_days=1, time_placed=PLACED)

        assert next_run_time(schedule) == datetime(2024, 3, 2, 3, 0)

    def test_counts_from_last_run(self):
        """Test that last_run takes precedence over time_placed."""
        schedule = ScheduleConfig(
            id=1,
            hour=22,
            interval_days=7,
            time_placed=PLACED,
            last_run=datetime(2024, 3, 10, 22, 0).timestamp(),
        )

        assert next_run_time(schedule) == datetime(2024, 3, 17, 22, 0)

    def test_next_day_at_hour_can_be_sooner_than_a_full_interval(self):
        """Test that the next run snaps to the hour on the following day."""
        schedule = ScheduleConfig(
            id=1,
            hour=2,
            interval_days=1,
            time_placed=PLACED,
            last_run=datetime(2024, 3, 10, 23, 0).timestamp(),
        )

        assert next_run_time(schedule) == datetime(2024, 3, 11, 2, 0)

    def test_is_due(self):
        """Test due detection around the firing time."""
        schedule = ScheduleConfig(id=1, hour=3, time_placed=PLACED)

        assert not is_due(schedule, datetime(2024, 3, 2, 2, 59))
        assert is_due(schedule, datetime(2024, 3, 2, 3, 0))

    def test_disabled_schedule_is_never_due(self):
        """Test that disabled schedules are skipped."""
        schedule = ScheduleConfig(id=1, hour=3, time_placed=PLACED, enabled=False)

        assert not is_due(schedule, datetime(2030, 1, 1))


class TestScheduleStore:
    """Test the YAML schedule file."""

    def test_empty_store(self, store):
        """Test that a missing file means no schedules."""
        assert store.load() == []
        assert store.next_id() == 1

    def test_add_and_reload(self, store):
        """Test that schedules survive a reload with all fields."""
        schedule = ScheduleConfig(
            id=1,
            name="nightly",
            hour=2,
            mode=BackupMode.NEW_OR_UPDATED,
            sub_mode=SubMode.APK,
            exclude_system=True,
            enable_custom_list=True,
            custom_list=["com.example.a"],
            time_placed=PLACED,
        )
        store.add(schedule)

        loaded = ScheduleStore(store.path).get(1)

        assert loaded == schedule
        assert store.next_id() == 2

    def test_duplicate_id_rejected(self, store):
        """Test that ids are unique."""
        store.add(ScheduleConfig(id=1))

        with pytest.raises(ValueError):
            store.add(ScheduleConfig(id=1))

    def test_get_missing(self, store):
        """Test that an unknown id raises."""
        with pytest.raises(ScheduleNotFoundError):
            store.get(9)

    def test_update(self, store):
        """Test replacing a stored schedule."""
        store.add(ScheduleConfig(id=1, enabled=True))
        schedule = store.get(1)
        schedule.enabled = False

        store.update(schedule)

        assert store.get(1).enabled is False

    def test_remove(self, store):
        """Test removing schedules."""
        store.add(ScheduleConfig(id=1))
        store.add(ScheduleConfig(id=2))

        store.remove(1)

        assert [s.id for s in store.load()] == [2]
        with pytest.raises(ScheduleNotFoundError):
            store.remove(1)

    def test_mark_run(self, store):
        """Test that mark_run records the firing time."""
        store.add(ScheduleConfig(id=1, time_placed=PLACED))

        store.mark_run(1, 1700000000.0)

        assert store.get(1).last_run == 1700000000.0

    def test_mark_run_unknown(self, store):
        with pytest.raises(ScheduleNotFoundError):
            store.mark_run(5, 1700000000.0)

    def test_mark_run_keeps_concurrent_update(self, store):
        """Test that mark_run waits for the store lock and keeps other changes."""
        store.add(ScheduleConfig(id=1, time_placed=PLACED))
        store._lock.acquire()
        marker = threading.Thread(target=store.mark_run, args=(1, 1700000000.0))
        try:
            marker.start()
            marker.join(0.2)
            assert marker.is_alive()

            schedules = store.load()
            schedules[0].name = "renamed"
            store._save(schedules)
        finally:
            store._lock.release()
        marker.join(5)

        stored = store.get(1)
        assert stored.name == "renamed"
        assert stored.last_run == 1700000000.0

    def test_due_schedules(self, store):
        """Test that only enabled, due schedules are returned."""
        store.add(ScheduleConfig(id=1, hour=3, time_placed=PLACED))
        store.add(ScheduleConfig(id=2, hour=3, time_placed=PLACED, enabled=False))
        store.add(ScheduleConfig(id=3, hour=3, interval_days=5, time_placed=PLACED))

        due = store.due_schedules(datetime(2024, 3, 2, 4, 0))

        assert [s.id for s in due] == [1]


class TestScheduleDaemon:
    """Test the polling loop."""

    NOW = datetime(2024, 3, 2, 4, 0)

    def make_daemon(self, store, runner):
        return ScheduleDaemon(store, runner, poll_interval=0, now=lambda: self.NOW)

    def test_tick_fires_due_schedule(self, store):
        """Test that a due schedule is started and marked as run."""
        store.add(ScheduleConfig(id=1, hour=3, time_placed=PLACED))
        runner = MagicMock()

        started = self.make_daemon(store, runner).tick()

        runner.start.assert_called_once()
        assert runner.start.call_args.args[0].id == 1
        assert started == [runner.start.return_value]
        assert store.get(1).last_run == self.NOW.timestamp()

    def test_tick_does_not_refire(self, store):
        """Test that a fired schedule is not due again in the same window."""
        store.add(ScheduleConfig(id=1, hour=3, time_placed=PLACED))
        runner = MagicMock()
        daemon = self.make_daemon(store, runner)

        daemon.tick()
        daemon.tick()

        assert runner.start.call_count == 1

    def test_running_schedule_is_skipped(self, store):
        """Test that a schedule still running is not marked or restarted."""
        store.add(ScheduleConfig(id=1, hour=3, time_placed=PLACED))
        runner = MagicMock()
        runner.start.side_effect = ScheduleAlreadyRunningError("busy")

        started = self.make_daemon(store, runner).tick()

        assert started == []
        assert store.get(1).last_run is None

    def test_run_forever_stops_after_max_ticks(self, store):
        """Test the bounded loop used by --once."""
        runner = MagicMock()
        daemon = self.make_daemon(store, runner)
        daemon.tick = MagicMock(return_value=[])

        daemon.run_forever(max_ticks=3)

        assert daemon.tick.call_count == 3

    def test_stop(self, store):
        """Test that a stopped daemon does not tick."""
        daemon = self.make_daemon(store, MagicMock())
        daemon.tick = MagicMock(return_value=[])
        daemon.stop()

        daemon.run_forever()

        daemon.tick.assert_not_called()
