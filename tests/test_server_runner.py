"""Tests for launching the report API."""
from __future__ import annotations

import pytest
from typer.testing import CliRunner

from screen_time_tracker import cli, server_runner
from screen_time_tracker.paths import DATA_DIR_ENV


@pytest.fixture
def served(monkeypatch):
    calls = []
    monkeypatch.setattr(
        server_runner.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs))
    )
    return calls


@pytest.mark.parametrize(
    "host, expected",
    [
        ("127.0.0.1", "http://127.0.0.1:8765/docs"),
        ("0.0.0.0", "http://127.0.0.1:8765/docs"),
        ("::1", "http://[::1]:8765/docs"),
        ("localhost", "http://localhost:8765/docs"),
    ],
)
def test_docs_url(host, expected):
    assert server_runner.docs_url(host, 8765) == expected


def test_web_tracker_shares_the_pid_file(tmp_path, monkeypatch, served):
    monkeypatch.setenv(DATA_DIR_ENV, str(tmp_path))

    server_runner.serve_report_api(port=9000, autostart=False)

    app, kwargs = served[0]
    assert kwargs["port"] == 9000
    runner = app.state.tracker_runner
    assert runner.pid_file.path == tmp_path / "tracker.pid"
    assert app.state.log_path == tmp_path / "usage_logs.csv"


def test_browser_stays_closed_by_default(tmp_path, monkeypatch):
    launches = []
    monkeypatch.setattr(cli, "serve_report_api", lambda **kwargs: launches.append(kwargs))

    result = CliRunner().invoke(cli.app, ["web", "--log", str(tmp_path / "log.csv")])

    assert result.exit_code == 0
    assert launches[0]["open_browser"] is False
