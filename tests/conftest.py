"""Shared pytest fixtures."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Iterable, Union

import pytest

from screen_time_tracker.errors import SnapshotError
from screen_time_tracker.usage_log import UsageLog


class FakeSnapshotSource:
    """Replays scripted snapshots; exceptions in the script are raised."""

    def __init__(self, script: Iterable[Union[Iterable[str], Exception]]) -> None:
        self._script = list(script)
        self.calls = 0

    def __call__(self) -> frozenset[str]:
        index = min(self.calls, len(self._script) - 1)
        self.calls += 1
        item = self._script[index]
        if isinstance(item, Exception):
            raise item
        return frozenset(item)


class FixedClock:
    def __init__(self, moment: datetime) -> None:
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "usage_logs.csv"


@pytest.fixture
def usage_log(log_path: Path) -> UsageLog:
    return UsageLog(log_path)


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 3, 8, 12, 0, 0)


@pytest.fixture
def snapshot_error() -> SnapshotError:
    return SnapshotError("ps unavailable")


def write_lines(path: Path, lines: list[str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
