"""Tests for the tracking loop."""
from __future__ import annotations

import io
import threading
from datetime import timedelta

import pytest

from conftest import FakeSnapshotSource, FixedClock
from screen_time_tracker.config import TrackerSettings
from screen_time_tracker.models import IDLE_APP
from screen_time_tracker.tracker import (
    ConsoleStopListener,
    TrackerStatus,
    TrackingSession,
    UsageTracker,
)
from screen_time_tracker.idle import new_idle_state


def make_tracker(log_path, script, now, **settings):
    settings.setdefault("sample_interval", timedelta(0))
    source = FakeSnapshotSource(script)
    tracker = UsageTracker(
        log_path,
        TrackerSettings(**settings),
        snapshot_source=source,
        clock=FixedClock(now),
    )
    return tracker, source


class TestTick:
    def test_writes_snapshot_and_collapses_to_idle(self, log_path, now):
        tracker, _ = make_tracker(
            log_path, [{"bash", "vim"}] * 3, now, idle_threshold_ticks=2
        )
        tracker.start()

        assert [tracker.tick() for _ in range(3)] == [2, 2, 1]

        apps = [record.app for record in tracker.usage_log.read().records]
        assert apps == ["bash", "vim", "bash", "vim", IDLE_APP]

    def test_snapshot_failure_skips_tick(self, log_path, now, snapshot_error):
        tracker, _ = make_tracker(log_path, [{"bash"}, snapshot_error, {"bash"}], now)
        session = tracker.start()

        tracker.tick()
        state_before = session.idle_state
        assert tracker.tick() is None
        assert session.idle_state == state_before
        assert session.skipped_ticks == 1

        tracker.tick()
        assert len(tracker.usage_log.read().records) == 2
        assert session.idle_state.consecutive_idle_ticks == 1

    def test_write_failure_does_not_stop_tracking(self, tmp_path, now):
        tracker, _ = make_tracker(tmp_path, [{"bash"}], now)
        session = tracker.start()

        assert tracker.tick() is None
        assert tracker.tick() is None
        assert session.failed_writes == 2
        assert session.ticks == 2
        assert session.idle_state.consecutive_idle_ticks == 1

    def test_live_report_goes_to_sink(self, log_path, now):
        reports = []
        tracker = UsageTracker(
            log_path,
            TrackerSettings(sample_interval=timedelta(0), live_report=True),
            snapshot_source=FakeSnapshotSource([{"bash"}]),
            report_sink=reports.append,
            clock=FixedClock(now),
        )
        tracker.start()
        tracker.tick()
        tracker.tick()

        assert [[(e.app, e.total) for e in r.entries] for r in reports] == [
            [("bash", 1)],
            [("bash", 2)],
        ]

    def test_live_report_without_sink_skips_the_scan(self, log_path, now, monkeypatch):
        def fail(*args, **kwargs):
            raise AssertionError("report built with nowhere to send it")

        monkeypatch.setattr("screen_time_tracker.tracker.build_report", fail)
        tracker = UsageTracker(
            log_path,
            TrackerSettings(sample_interval=timedelta(0), live_report=True),
            snapshot_source=FakeSnapshotSource([{"bash"}]),
            clock=FixedClock(now),
        )
        tracker.start()

        assert tracker.tick() == 1

    def test_tick_requires_started_session(self, log_path, now):
        tracker, _ = make_tracker(log_path, [{"bash"}], now)
        with pytest.raises(RuntimeError):
            tracker.tick()


class TestLifecycle:
    def test_status_transitions(self, log_path, now):
        tracker, source = make_tracker(log_path, [{"bash"}], now)
        assert tracker.status is TrackerStatus.IDLE

        session = tracker.start()
        assert tracker.status is TrackerStatus.RUNNING
        assert log_path.read_text(encoding="utf-8") == "timestamp,app,minutes\n"

        session.request_stop()
        tracker.run(session)
        assert tracker.status is TrackerStatus.STOPPED
        assert source.calls == 0

    def test_stop_lets_in_flight_tick_finish(self, log_path, now):
        tracker, source = make_tracker(log_path, [{"bash"}], now)

        def stopping_source():
            if source.calls == 2:
                tracker.stop()
            return source()

        tracker._snapshot_source = stopping_source
        tracker.run_until_stopped()

        assert source.calls == 3
        assert len(tracker.usage_log.read().records) == 3
        assert tracker.status is TrackerStatus.STOPPED

    def test_stop_interrupts_the_wait(self, log_path, now):
        first_tick = threading.Event()
        source = FakeSnapshotSource([{"bash"}])

        def signalling_source():
            first_tick.set()
            return source()

        tracker = UsageTracker(
            log_path,
            TrackerSettings(sample_interval=timedelta(hours=1)),
            snapshot_source=signalling_source,
            clock=FixedClock(now),
        )
        thread = threading.Thread(target=tracker.run_until_stopped, daemon=True)
        thread.start()
        assert first_tick.wait(5)

        tracker.stop()
        thread.join(5)

        assert not thread.is_alive()
        assert source.calls == 1

    def test_cannot_start_twice(self, log_path, now):
        tracker, _ = make_tracker(log_path, [{"bash"}], now)
        tracker.start()
        with pytest.raises(RuntimeError):
            tracker.start()

    def test_restart_uses_fresh_idle_state(self, log_path, now):
        tracker, _ = make_tracker(log_path, [{"bash"}], now, idle_threshold_ticks=1)
        first = tracker.start()
        tracker.tick()
        tracker.tick()
        first.request_stop()
        tracker.run(first)

        second = tracker.start()
        assert second is not first
        assert second.idle_state.last_snapshot == frozenset()
        assert second.idle_state.consecutive_idle_ticks == 0


class TestConsoleStopListener:
    def test_stop_command_requests_stop(self):
        session = TrackingSession(idle_state=new_idle_state(5))
        listener = ConsoleStopListener(session, io.StringIO("status\n  STOP \n"))
        listener.start()
        listener.join(5)
        assert session.stop_requested

    def test_end_of_input_does_not_stop(self):
        session = TrackingSession(idle_state=new_idle_state(5))
        listener = ConsoleStopListener(session, io.StringIO("hello\n"))
        listener.start()
        listener.join(5)
        assert not session.stop_requested
