"""Aggregation of the usage log into ranked reports."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from .config import ReportSettings
from .models import AggregationResult, RankedEntry, ReportWindow, UsageRecord
from .usage_log import UsageLog


@dataclass(slots=True)
class UsageReport:
    """Ranked top entries for a window, with their rendered lines."""

    window: ReportWindow
    generated_at: datetime
    entries: list[RankedEntry] = field(default_factory=list)
    lines: list[str] = field(default_factory=list)
    skipped_rows: int = 0

    @property
    def max_total(self) -> int:
        return self.entries[0].total if self.entries else 0


def aggregate(
    records: Iterable[UsageRecord],
    window: ReportWindow,
    now: datetime,
    *,
    skipped_rows: int = 0,
) -> AggregationResult:
    """Sum counts per app for records inside ``window`` and rank them."""
    totals: defaultdict[str, int] = defaultdict(int)
    included = 0
    for record in records:
        if not window.contains(record.timestamp, now):
            continue
        totals[record.app] += record.count
        included += 1
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return AggregationResult(
        ranked=ranked, included_rows=included, skipped_rows=skipped_rows
    )


def rank_entries(
    ranked: list[tuple[str, int]], top_n: int = 5, bar_width: int = 30
) -> list[RankedEntry]:
    top = ranked[:top_n]
    max_total = top[0][1] if top else 0
    return [
        RankedEntry(app=app, total=total, bar_length=bar_length(total, max_total, bar_width))
        for app, total in top
    ]


def bar_length(total: int, max_total: int, width: int = 30) -> int:
    if max_total <= 0:
        return 0
    return total * width // max_total


def render_report(window: ReportWindow, entries: list[RankedEntry]) -> list[str]:
    # Totals are tick counts; "min" only matches wall-clock minutes at a 1 minute interval.
    lines = [f"{window.title} report:", "-" * 25]
    for entry in entries:
        lines.append(f"{entry.app:<20} : {entry.total:3d} min |{'#' * entry.bar_length}")
    lines.append("")
    return lines


def build_report(
    usage_log: UsageLog,
    window: ReportWindow,
    now: Optional[datetime] = None,
    settings: Optional[ReportSettings] = None,
) -> UsageReport:
    """Scan the whole log and build the report for ``window``."""
    settings = settings or ReportSettings()
    now = now or datetime.now()
    scan = usage_log.read()
    result = aggregate(scan.records, window, now, skipped_rows=scan.skipped_rows)
    entries = rank_entries(result.ranked, settings.top_n, settings.bar_width)
    return UsageReport(
        window=window,
        generated_at=now,
        entries=entries,
        lines=render_report(window, entries),
        skipped_rows=result.skipped_rows,
    )


class ReportPrinter:
    """Render usage reports in the console."""

    def __init__(
        self,
        log_path: Path,
        settings: Optional[ReportSettings] = None,
        echo: Callable[[str], None] = print,
    ) -> None:
        self.usage_log = UsageLog(log_path)
        self.settings = settings or ReportSettings()
        self._echo = echo

    def print_daily_report(self, now: Optional[datetime] = None) -> UsageReport:
        return self.print_report(ReportWindow.today(), now)

    def print_weekly_report(self, now: Optional[datetime] = None) -> UsageReport:
        return self.print_report(ReportWindow.last_n_days(self.settings.week_days), now)

    def print_report(
        self, window: ReportWindow, now: Optional[datetime] = None
    ) -> UsageReport:
        report = build_report(self.usage_log, window, now, self.settings)
        self.show(report)
        return report

    def show(self, report: UsageReport) -> None:
        for line in report.lines:
            self._echo(line)
