"""Tests for the psutil-backed snapshot source."""
from __future__ import annotations

from types import SimpleNamespace

import psutil
import pytest

from screen_time_tracker import snapshot
from screen_time_tracker.errors import SnapshotError
from screen_time_tracker.snapshot import ProcessSnapshotSource


def fake_process(name):
    return SimpleNamespace(info={"name": name})


def test_collects_distinct_names_as_reported(monkeypatch):
    processes = [fake_process(n) for n in ["bash", "bash", "Firefox", None, "", "code "]]
    monkeypatch.setattr(snapshot.psutil, "process_iter", lambda attrs: iter(processes))

    assert ProcessSnapshotSource().list_active_applications() == frozenset(
        {"bash", "Firefox", "code "}
    )


def test_enumeration_failure_raises_snapshot_error(monkeypatch):
    def broken(attrs):
        raise psutil.AccessDenied(pid=1)

    monkeypatch.setattr(snapshot.psutil, "process_iter", broken)

    with pytest.raises(SnapshotError):
        ProcessSnapshotSource()()


def test_real_process_list_contains_this_process():
    names = ProcessSnapshotSource().list_active_applications()
    assert psutil.Process().name() in names
