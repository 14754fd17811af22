"""Serve the report API with uvicorn."""

from __future__ import annotations

import logging
import threading
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .config import TrackerSettings
from .paths import get_pid_path, get_usage_log_path
from .webapp import create_app

logger = logging.getLogger(__name__)

BROWSER_DELAY_SECONDS = 1.0
WILDCARD_HOSTS = ("0.0.0.0", "::", "")


def docs_url(host: str, port: int) -> str:
    """Address of the interactive API docs as reachable from this machine."""
    if host in WILDCARD_HOSTS:
        host = "127.0.0.1"
    elif ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}/docs"


def serve_report_api(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    log_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    autostart: bool = True,
    open_browser: bool = False,
    pid_path: Optional[Path] = None,
    log_level: str = "info",
) -> None:
    """Run the report API until uvicorn is shut down.

    The background tracker holds the same PID file as ``screen-time start``,
    so only one tracker writes the log and ``screen-time stop`` ends this
    server.
    """
    app = create_app(
        log_path=log_path or get_usage_log_path(),
        settings=settings or TrackerSettings(),
        pid_path=pid_path or get_pid_path(),
        autostart=autostart,
    )

    if open_browser:
        timer = threading.Timer(
            BROWSER_DELAY_SECONDS, _open_docs, args=(docs_url(host, port),)
        )
        timer.daemon = True
        timer.start()

    logger.info("Serving usage reports on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _open_docs(url: str) -> None:
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        logger.exception("Failed to launch browser for %s", url)
