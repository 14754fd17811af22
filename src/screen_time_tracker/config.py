"""Configuration models and helpers for the tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .errors import ArgumentError

DEFAULT_INTERVAL_MINUTES = 1
DEFAULT_IDLE_THRESHOLD_TICKS = 5


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for a tracking session."""

    sample_interval: timedelta = timedelta(minutes=DEFAULT_INTERVAL_MINUTES)
    idle_threshold_ticks: int = DEFAULT_IDLE_THRESHOLD_TICKS
    live_report: bool = False

    @classmethod
    def from_arguments(
        cls,
        interval_minutes: float = DEFAULT_INTERVAL_MINUTES,
        idle_threshold_ticks: int = DEFAULT_IDLE_THRESHOLD_TICKS,
        live_report: bool = False,
    ) -> "TrackerSettings":
        if interval_minutes <= 0:
            raise ArgumentError("interval must be a positive number of minutes")
        if idle_threshold_ticks < 1:
            raise ArgumentError("idle threshold must be at least one tick")
        return cls(
            sample_interval=timedelta(minutes=interval_minutes),
            idle_threshold_ticks=idle_threshold_ticks,
            live_report=live_report,
        )

    @property
    def interval_minutes(self) -> float:
        return self.sample_interval.total_seconds() / 60.0


@dataclass(slots=True)
class ReportSettings:
    top_n: int = 5
    bar_width: int = 30
    week_days: int = 7


def parse_interval(value: Optional[str]) -> tuple[int, Optional[str]]:
    """Parse the interval argument, falling back to the default with a warning."""
    return _parse_positive_int(value, DEFAULT_INTERVAL_MINUTES, "interval")


def parse_idle_threshold(value: Optional[str]) -> tuple[int, Optional[str]]:
    return _parse_positive_int(value, DEFAULT_IDLE_THRESHOLD_TICKS, "idle threshold")


def parse_live_flag(value: Optional[str]) -> tuple[bool, Optional[str]]:
    if value is None:
        return False, None
    lowered = value.strip().lower()
    if lowered == "true":
        return True, None
    if lowered == "false":
        return False, None
    return False, f"Invalid live report flag {value!r}; using false."


def strict_positive_int(value: str, name: str) -> int:
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise ArgumentError(f"{name} must be a whole number, got {value!r}") from exc
    if parsed < 1:
        raise ArgumentError(f"{name} must be at least 1, got {parsed}")
    return parsed


def _parse_positive_int(
    value: Optional[str], default: int, name: str
) -> tuple[int, Optional[str]]:
    if value is None:
        return default, None
    try:
        return strict_positive_int(value, name), None
    except ArgumentError as exc:
        return default, f"{exc}; using default {default}."
