"""FastAPI application exposing usage reports and tracker control."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .config import ReportSettings, TrackerSettings
from .errors import ArgumentError, UsageLogError
from .models import ReportWindow
from .paths import get_usage_log_path
from .pidfile import PIDFile
from .reporting import UsageReport, build_report
from .snapshot import SnapshotProvider
from .tracker import UsageTracker
from .usage_log import UsageLog

logger = logging.getLogger(__name__)


class TrackerRunner:
    """Manage a usage tracker in a background thread.

    When a PID file is given the runner holds it while tracking, so a tracker
    started with ``screen-time start`` and this one never write at the same
    time, and ``screen-time stop`` reaches this process.
    """

    def __init__(
        self,
        log_path: Path,
        settings: TrackerSettings,
        snapshot_source: Optional[SnapshotProvider] = None,
        pid_file: Optional[PIDFile] = None,
        report_settings: Optional[ReportSettings] = None,
    ) -> None:
        self._log_path = Path(log_path)
        self._snapshot_source = snapshot_source
        self.pid_file = pid_file
        self._report_settings = report_settings
        self.settings = settings
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._tracker: Optional[UsageTracker] = None
        self._latest_report: Optional[UsageReport] = None

    def start(self, settings: Optional[TrackerSettings] = None) -> bool:
        """Start tracking; returns ``False`` if a tracker is already running."""
        with self._lock:
            if self._thread and self._thread.is_alive():
                return False
            if self.pid_file is not None and not self.pid_file.acquire():
                return False
            if settings is not None:
                self.settings = settings
            self._latest_report = None
            tracker = UsageTracker(
                self._log_path,
                self.settings,
                snapshot_source=self._snapshot_source,
                report_sink=self._store_report,
                report_settings=self._report_settings,
            )
            session = tracker.start()
            thread = threading.Thread(
                target=tracker.run, args=(session,), name="usage-tracker", daemon=True
            )
            self._tracker = tracker
            self._thread = thread
            thread.start()
            logger.info("Tracker background thread started.")
            return True

    def stop(self) -> bool:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._thread.is_alive() or not self._tracker:
                return False
            self._tracker.stop()
            thread = self._thread
            self._thread = None
            self._tracker = None
        thread.join(timeout=10)
        if self.pid_file is not None:
            self.pid_file.release()
        logger.info("Tracker background thread stopped.")
        return True

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    @property
    def latest_report(self) -> Optional[UsageReport]:
        """Today's report from the most recent tick, when live reports are on."""
        with self._lock:
            return self._latest_report

    def _store_report(self, report: UsageReport) -> None:
        with self._lock:
            self._latest_report = report


class TrackerStartPayload(BaseModel):
    interval_minutes: float = Field(default=1.0, gt=0)
    idle_threshold_ticks: int = Field(default=5, ge=1)
    live_report: bool = False

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    log_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    report_settings: Optional[ReportSettings] = None,
    snapshot_source: Optional[SnapshotProvider] = None,
    pid_path: Optional[Path] = None,
    autostart: bool = True,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_log_path = Path(log_path or get_usage_log_path())
    resolved_report_settings = report_settings or ReportSettings()
    runner = TrackerRunner(
        resolved_log_path,
        settings or TrackerSettings(),
        snapshot_source,
        pid_file=PIDFile(pid_path) if pid_path is not None else None,
        report_settings=resolved_report_settings,
    )

    app = FastAPI(title="Screen Time Tracker", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.log_path = resolved_log_path
    app.state.tracker_runner = runner

    @app.on_event("startup")
    async def _startup() -> None:
        if autostart and not runner.start():
            logger.warning("Autostart skipped; another tracker holds the PID file.")

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        runner.stop()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        tracker_runner = request.app.state.tracker_runner
        current = tracker_runner.settings
        latest = tracker_runner.latest_report
        return {
            "tracker_running": tracker_runner.is_running(),
            "log_path": str(request.app.state.log_path),
            "interval_minutes": current.interval_minutes,
            "idle_threshold_ticks": current.idle_threshold_ticks,
            "live_report": _report_payload(latest) if latest is not None else None,
        }

    @app.get("/api/report")
    def report(
        request: Request,
        window: str = Query(default="day", description="Either 'day' or 'week'."),
        days: Optional[int] = Query(
            default=None, ge=0, description="Window length for 'week' reports."
        ),
    ) -> Dict[str, Any]:
        report_window = _parse_window(window, days, resolved_report_settings)
        try:
            result = build_report(
                UsageLog(request.app.state.log_path),
                report_window,
                settings=resolved_report_settings,
            )
        except UsageLogError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return _report_payload(result)

    @app.post("/api/tracker/start")
    def start_tracker(
        request: Request, payload: Optional[TrackerStartPayload] = None
    ) -> Dict[str, Any]:
        payload = payload or TrackerStartPayload()
        try:
            new_settings = TrackerSettings.from_arguments(
                interval_minutes=payload.interval_minutes,
                idle_threshold_ticks=payload.idle_threshold_ticks,
                live_report=payload.live_report,
            )
        except ArgumentError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        started = request.app.state.tracker_runner.start(new_settings)
        if not started:
            raise HTTPException(status_code=409, detail="A tracker is already running.")
        return {"tracker_running": True}

    @app.post("/api/tracker/stop")
    def stop_tracker(request: Request) -> Dict[str, Any]:
        stopped = request.app.state.tracker_runner.stop()
        return {"tracker_running": False, "stopped": stopped}

    return app


def _parse_window(
    value: str, days: Optional[int], settings: ReportSettings
) -> ReportWindow:
    lowered = value.strip().lower()
    if lowered == "day":
        return ReportWindow.today()
    if lowered == "week":
        return ReportWindow.last_n_days(settings.week_days if days is None else days)
    raise HTTPException(status_code=400, detail="window must be 'day' or 'week'")


def _report_payload(report: UsageReport) -> Dict[str, Any]:
    return {
        "window": report.window.kind.value,
        "days": report.window.days,
        "title": report.window.title,
        "generated_at": report.generated_at.isoformat(timespec="seconds"),
        "max_total": report.max_total,
        "skipped_rows": report.skipped_rows,
        "entries": [
            {"app": entry.app, "total": entry.total, "bar_length": entry.bar_length}
            for entry in report.entries
        ],
        "lines": report.lines,
    }
