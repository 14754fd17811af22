"""PID file used to stop a tracker running in another shell."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import psutil

logger = logging.getLogger(__name__)

TRACKER_MARKERS = ("screen_time_tracker", "screen-time")
# Filesystem timestamps can trail the process clock slightly.
CREATE_TIME_SLACK = 2.0


class PIDFile:
    """Records the PID of the running tracker."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> Optional[int]:
        try:
            return int(self.path.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            return None
        except (ValueError, OSError):
            logger.warning("Corrupt PID file at %s", self.path)
            return None

    def running_pid(self) -> Optional[int]:
        """Return the recorded PID if it still belongs to a live tracker.

        A PID that was reused by an unrelated process after a crash is not
        reported.
        """
        pid = self.read()
        if pid is None or not psutil.pid_exists(pid):
            return None
        if pid == os.getpid():
            return pid
        try:
            process = psutil.Process(pid)
            started = process.create_time()
            written = self.path.stat().st_mtime
        except (psutil.Error, OSError):
            return None
        if started > written + CREATE_TIME_SLACK:
            logger.warning("PID %d was started after %s was written; ignoring it.", pid, self.path)
            return None
        if not _looks_like_tracker(process):
            logger.warning("PID %d in %s is not a tracker; ignoring it.", pid, self.path)
            return None
        return pid

    def acquire(self) -> bool:
        """Write our PID; ``False`` if another live tracker already holds the file."""
        existing = self.running_pid()
        if existing is not None and existing != os.getpid():
            logger.error("Another tracker is running (PID %d)", existing)
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(str(os.getpid()), encoding="utf-8")
        except OSError as exc:
            logger.error("Failed to create PID file: %s", exc)
            return False
        return True

    def release(self) -> None:
        try:
            if self.read() == os.getpid():
                self.path.unlink()
        except OSError as exc:
            logger.error("Failed to remove PID file: %s", exc)


def _looks_like_tracker(process: psutil.Process) -> bool:
    try:
        command = " ".join(process.cmdline())
    except psutil.Error:
        return False
    return any(marker in command for marker in TRACKER_MARKERS)


def terminate_tracker(pid_file: PIDFile, timeout: float = 10.0) -> Optional[int]:
    """Send SIGTERM to the recorded tracker and wait for it to exit.

    Returns the PID that was stopped, or ``None`` when no tracker was running.
    A stale PID file is removed.
    """
    pid = pid_file.running_pid()
    if pid is None:
        pid_file.path.unlink(missing_ok=True)
        return None
    try:
        process = psutil.Process(pid)
        process.terminate()
        process.wait(timeout=timeout)
    except psutil.NoSuchProcess:
        pass
    except psutil.TimeoutExpired:
        logger.warning("Tracker (PID %d) did not exit within %.0f seconds.", pid, timeout)
    return pid
