"""Where the tracker keeps its files."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import PlatformDirs


APP_NAME = "ScreenTimeTracker"
APP_AUTHOR = "ScreenTimeTracker"
USAGE_LOG_NAME = "usage_logs.csv"
PID_FILE_NAME = "tracker.pid"
DATA_DIR_ENV = "SCREEN_TIME_DATA_DIR"


def get_data_dir() -> Path:
    """Directory holding the usage log and PID file.

    $SCREEN_TIME_DATA_DIR overrides the per-user platform location.
    """
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        path = Path(override).expanduser()
    else:
        dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
        path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_usage_log_path() -> Path:
    return get_data_dir() / USAGE_LOG_NAME


def get_pid_path() -> Path:
    return get_data_dir() / PID_FILE_NAME
