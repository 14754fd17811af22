"""Tracking loop: sample, classify, log, repeat."""

from __future__ import annotations

import logging
import signal
import sys
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, TextIO

from .config import ReportSettings, TrackerSettings
from .errors import LogWriteError, SnapshotError, UsageLogError
from .idle import classify, new_idle_state
from .models import IdleRunState, ReportWindow
from .reporting import UsageReport, build_report
from .snapshot import ProcessSnapshotSource, SnapshotProvider
from .usage_log import UsageLog

logger = logging.getLogger(__name__)


class TrackerStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(slots=True)
class TrackingSession:
    """State owned by one run of the tracker."""

    idle_state: IdleRunState
    stop_event: threading.Event = field(default_factory=threading.Event)
    started_at: datetime = field(default_factory=datetime.now)
    ticks: int = 0
    skipped_ticks: int = 0
    failed_writes: int = 0

    def request_stop(self) -> None:
        self.stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self.stop_event.is_set()


class UsageTracker:
    """Samples running processes at a fixed interval and appends them to the usage log."""

    def __init__(
        self,
        log_path: Path,
        settings: Optional[TrackerSettings] = None,
        *,
        snapshot_source: Optional[SnapshotProvider] = None,
        report_sink: Optional[Callable[[UsageReport], None]] = None,
        report_settings: Optional[ReportSettings] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.usage_log = UsageLog(log_path)
        self.settings = settings or TrackerSettings()
        self.report_settings = report_settings or ReportSettings()
        self._snapshot_source = snapshot_source or ProcessSnapshotSource()
        self._report_sink = report_sink
        self._clock = clock
        self._status = TrackerStatus.IDLE
        self._session: Optional[TrackingSession] = None
        self._lock = threading.Lock()

    @property
    def status(self) -> TrackerStatus:
        return self._status

    @property
    def session(self) -> Optional[TrackingSession]:
        return self._session

    def start(self, stop_event: Optional[threading.Event] = None) -> TrackingSession:
        """Begin a new session with fresh idle state."""
        with self._lock:
            if self._status is TrackerStatus.RUNNING:
                raise RuntimeError("Tracker is already running.")
            session = TrackingSession(
                idle_state=new_idle_state(self.settings.idle_threshold_ticks),
                stop_event=stop_event or threading.Event(),
                started_at=self._clock(),
            )
            self._session = session
            self._status = TrackerStatus.RUNNING
        try:
            self.usage_log.ensure_exists()
        except LogWriteError:
            logger.exception("Usage log could not be created; will retry on first write.")
        logger.info(
            "Tracking started; writing to %s every %.1f minute(s), idle after %d unchanged tick(s).",
            self.usage_log.path,
            self.settings.interval_minutes,
            self.settings.idle_threshold_ticks,
        )
        return session

    def stop(self) -> None:
        """Ask the running session to finish after its current tick."""
        session = self._session
        if session is not None:
            session.request_stop()

    def run(self, session: TrackingSession) -> None:
        """Run ticks for a started session until its stop event is set."""
        try:
            self._run_loop(session)
        finally:
            self._finish(session)

    def run_until_stopped(self, stop_event: Optional[threading.Event] = None) -> None:
        self.run(self.start(stop_event))

    def run_forever(self) -> None:
        try:
            self.run_until_stopped()
        except KeyboardInterrupt:
            logger.info("Tracker interrupted.")

    def tick(self) -> Optional[int]:
        """Run one sample/classify/append cycle.

        Returns the number of records written, or ``None`` when the tick was
        skipped or its write failed.
        """
        session = self._session
        if session is None:
            raise RuntimeError("Tracker has not been started.")

        try:
            current = frozenset(self._snapshot_source())
        except SnapshotError:
            logger.warning("Skipping tick; process list unavailable.", exc_info=True)
            session.skipped_ticks += 1
            return None

        timestamp = self._clock()
        effective, next_state = classify(current, session.idle_state)
        written: Optional[int]
        try:
            written = self.usage_log.append(timestamp, effective)
        except LogWriteError:
            logger.exception("Failed to write usage for tick at %s.", timestamp)
            session.failed_writes += 1
            written = None
        session.idle_state = next_state
        session.ticks += 1
        logger.debug(
            "Tick %d: %d app(s), idle ticks=%d, written=%s",
            session.ticks,
            len(effective),
            next_state.consecutive_idle_ticks,
            written,
        )

        if self.settings.live_report and self._report_sink is not None:
            self._emit_live_report(timestamp)
        return written

    def _emit_live_report(self, now: datetime) -> None:
        try:
            report = build_report(
                self.usage_log, ReportWindow.today(), now, self.report_settings
            )
        except UsageLogError:
            logger.exception("Live report failed.")
            return
        self._report_sink(report)  # type: ignore[misc]

    def _run_loop(self, session: TrackingSession) -> None:
        interval = self.settings.sample_interval.total_seconds()
        while not session.stop_requested:
            self.tick()
            # Sleep in an interruptible manner.
            session.stop_event.wait(interval)

    def _finish(self, session: TrackingSession) -> None:
        with self._lock:
            if self._session is session:
                self._status = TrackerStatus.STOPPED
        logger.info(
            "Tracking stopped after %d tick(s) (%d skipped, %d failed writes).",
            session.ticks,
            session.skipped_ticks,
            session.failed_writes,
        )


class ConsoleStopListener:
    """Waits for a ``stop`` line on a text stream and stops the session."""

    def __init__(
        self,
        session: TrackingSession,
        stream: Optional[TextIO] = None,
        command: str = "stop",
    ) -> None:
        self._session = session
        self._stream = stream if stream is not None else sys.stdin
        self._command = command.lower()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> threading.Thread:
        thread = threading.Thread(target=self._listen, name="stop-listener", daemon=True)
        self._thread = thread
        thread.start()
        return thread

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _listen(self) -> None:
        for line in self._stream:
            if self._session.stop_requested:
                return
            if line.strip().lower() == self._command:
                logger.info("Stop requested from console.")
                self._session.request_stop()
                return


def install_signal_handlers(session: TrackingSession) -> dict[int, object]:
    """Route SIGINT/SIGTERM to the session's stop event.

    Returns the previous handlers so they can be restored.
    """
    previous: dict[int, object] = {}

    def _handler(signum: int, _frame: object) -> None:
        logger.info("Shutdown signal %s received.", signum)
        session.request_stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            previous[sig] = signal.signal(sig, _handler)
        except ValueError:
            # Only the main thread may install signal handlers.
            pass
    return previous


def restore_signal_handlers(previous: dict[int, object]) -> None:
    for sig, handler in previous.items():
        signal.signal(sig, handler)  # type: ignore[arg-type]
