"""Command-line interface for the screen time tracker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .config import (
    TrackerSettings,
    parse_idle_threshold,
    parse_interval,
    parse_live_flag,
)
from .paths import get_pid_path, get_usage_log_path
from .server_runner import serve_report_api

app = typer.Typer(help="Screen time tracker: sample running apps and report usage.")

LOG_OPTION_HELP = "Location of the usage log CSV."


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def start(
    interval: Optional[str] = typer.Argument(
        None, help="Sampling interval in minutes (default 1)."
    ),
    idle_threshold: Optional[str] = typer.Argument(
        None, help="Unchanged ticks before the session counts as idle (default 5)."
    ),
    live: Optional[str] = typer.Argument(
        None, help="Print today's report after every tick: true or false."
    ),
    log_path: Optional[Path] = typer.Option(
        None, "--log", path_type=Path, envvar="SCREEN_TIME_LOG", help=LOG_OPTION_HELP
    ),
) -> None:
    """Start tracking until 'stop' is typed or the process is signalled."""
    from .pidfile import PIDFile
    from .reporting import ReportPrinter
    from .tracker import (
        ConsoleStopListener,
        UsageTracker,
        install_signal_handlers,
        restore_signal_handlers,
    )

    interval_minutes, warning = parse_interval(interval)
    _warn(warning)
    idle_ticks, warning = parse_idle_threshold(idle_threshold)
    _warn(warning)
    live_report, warning = parse_live_flag(live)
    _warn(warning)

    log_path = log_path or get_usage_log_path()
    settings = TrackerSettings.from_arguments(
        interval_minutes=interval_minutes,
        idle_threshold_ticks=idle_ticks,
        live_report=live_report,
    )
    pid_file = PIDFile(get_pid_path())
    if not pid_file.acquire():
        typer.echo("A tracker is already running. Use 'stop' to end it.", err=True)
        raise typer.Exit(code=1)

    printer = ReportPrinter(log_path, echo=typer.echo)
    tracker = UsageTracker(log_path, settings, report_sink=printer.show)
    try:
        session = tracker.start()
        typer.echo("tracking started....(type 'stop' to end)")
        ConsoleStopListener(session).start()
        previous_handlers = install_signal_handlers(session)
        try:
            tracker.run(session)
        finally:
            restore_signal_handlers(previous_handlers)
    finally:
        pid_file.release()
    typer.echo("tracking stopped.")


@app.command("report_day")
def report_day(
    log_path: Optional[Path] = typer.Option(
        None, "--log", path_type=Path, envvar="SCREEN_TIME_LOG", help=LOG_OPTION_HELP
    ),
) -> None:
    """Show today's report."""
    from .reporting import ReportPrinter

    printer = ReportPrinter(log_path or get_usage_log_path(), echo=typer.echo)
    _note_skipped(printer.print_daily_report().skipped_rows)


@app.command("report_week")
def report_week(
    log_path: Optional[Path] = typer.Option(
        None, "--log", path_type=Path, envvar="SCREEN_TIME_LOG", help=LOG_OPTION_HELP
    ),
) -> None:
    """Show the report for the last 7 days."""
    from .reporting import ReportPrinter

    printer = ReportPrinter(log_path or get_usage_log_path(), echo=typer.echo)
    _note_skipped(printer.print_weekly_report().skipped_rows)


@app.command()
def stop() -> None:
    """Stop a tracker started from another shell."""
    from .pidfile import PIDFile, terminate_tracker

    pid = terminate_tracker(PIDFile(get_pid_path()))
    if pid is None:
        typer.echo("No running tracker found.", err=True)
        raise typer.Exit(code=1)
    typer.echo("tracking stopped.")


@app.command("help")
def show_help(ctx: typer.Context) -> None:
    """Show the available commands."""
    typer.echo(ctx.find_root().get_help())


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    log_path: Optional[Path] = typer.Option(
        None, "--log", path_type=Path, envvar="SCREEN_TIME_LOG", help=LOG_OPTION_HELP
    ),
    interval_minutes: float = typer.Option(
        1.0, "--interval", min=0.05, help="Sampling interval in minutes."
    ),
    idle_threshold: int = typer.Option(
        5, "--idle-threshold", min=1, help="Unchanged ticks before counting as idle."
    ),
    autostart: bool = typer.Option(
        True,
        "--autostart/--no-autostart",
        help="Start tracking as soon as the dashboard is up.",
    ),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the interactive API docs in your default browser.",
    ),
) -> None:
    """Serve the JSON report API with a background tracker."""
    settings = TrackerSettings.from_arguments(
        interval_minutes=interval_minutes, idle_threshold_ticks=idle_threshold
    )
    serve_report_api(
        host=host,
        port=port,
        log_path=log_path or get_usage_log_path(),
        settings=settings,
        autostart=autostart,
        open_browser=open_browser,
    )


def _warn(message: Optional[str]) -> None:
    if message:
        typer.secho(f"Warning: {message}", fg=typer.colors.YELLOW, err=True)


def _note_skipped(skipped_rows: int) -> None:
    if skipped_rows:
        typer.echo(f"({skipped_rows} malformed row(s) skipped)", err=True)
