"""Tests for the tracker PID file."""
from __future__ import annotations

import os
import subprocess
import sys
import time

import pytest

from screen_time_tracker.pidfile import PIDFile, terminate_tracker


def spawn_sleeper(*extra_args):
    return subprocess.Popen(
        [sys.executable, "-c", "import time; time.sleep(60)", *extra_args]
    )


@pytest.fixture
def children():
    spawned = []
    yield spawned
    for child in spawned:
        if child.poll() is None:
            child.kill()
            child.wait()


def test_acquire_and_release(tmp_path):
    pid_file = PIDFile(tmp_path / "tracker.pid")

    assert pid_file.acquire()
    assert pid_file.read() == os.getpid()

    pid_file.release()
    assert not pid_file.path.exists()


def test_stale_pid_file_is_replaced(tmp_path, monkeypatch):
    pid_file = PIDFile(tmp_path / "tracker.pid")
    pid_file.path.write_text("999999", encoding="utf-8")
    monkeypatch.setattr("screen_time_tracker.pidfile.psutil.pid_exists", lambda pid: False)

    assert pid_file.running_pid() is None
    assert pid_file.acquire()
    assert pid_file.read() == os.getpid()


def test_corrupt_pid_file_reads_as_none(tmp_path):
    pid_file = PIDFile(tmp_path / "tracker.pid")
    pid_file.path.write_text("not-a-pid", encoding="utf-8")
    assert pid_file.read() is None


def test_terminate_without_tracker(tmp_path):
    assert terminate_tracker(PIDFile(tmp_path / "tracker.pid")) is None


def test_terminate_running_tracker(tmp_path, children):
    child = spawn_sleeper("screen_time_tracker")
    children.append(child)
    pid_file = PIDFile(tmp_path / "tracker.pid")
    pid_file.path.write_text(str(child.pid), encoding="utf-8")

    assert terminate_tracker(pid_file, timeout=10) == child.pid
    assert child.wait(timeout=10) is not None


def test_unrelated_process_with_recorded_pid_is_left_alone(tmp_path, children):
    child = spawn_sleeper()
    children.append(child)
    pid_file = PIDFile(tmp_path / "tracker.pid")
    pid_file.path.write_text(str(child.pid), encoding="utf-8")

    assert pid_file.running_pid() is None
    assert terminate_tracker(pid_file, timeout=1) is None
    assert child.poll() is None
    assert not pid_file.path.exists()


def test_process_started_after_pid_file_is_ignored(tmp_path, children):
    pid_file = PIDFile(tmp_path / "tracker.pid")
    old = time.time() - 3600
    child = spawn_sleeper("screen_time_tracker")
    children.append(child)
    pid_file.path.write_text(str(child.pid), encoding="utf-8")
    os.utime(pid_file.path, (old, old))

    assert pid_file.running_pid() is None
    assert child.poll() is None
