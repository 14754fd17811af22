"""Domain models for sampled usage."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import FrozenSet, Optional

Snapshot = FrozenSet[str]

IDLE_APP = "IDLE"
IDLE_SNAPSHOT: Snapshot = frozenset({IDLE_APP})
EMPTY_SNAPSHOT: Snapshot = frozenset()


@dataclass(frozen=True, slots=True)
class UsageRecord:
    """One app seen during one sampling tick."""

    timestamp: datetime
    app: str
    count: int = 1


@dataclass(frozen=True, slots=True)
class IdleRunState:
    """Idle bookkeeping carried from one tick to the next."""

    idle_threshold_ticks: int
    last_snapshot: Snapshot = EMPTY_SNAPSHOT
    consecutive_idle_ticks: int = 0

    def __post_init__(self) -> None:
        if self.idle_threshold_ticks < 1:
            raise ValueError("idle_threshold_ticks must be at least 1")
        if self.consecutive_idle_ticks < 0:
            raise ValueError("consecutive_idle_ticks cannot be negative")

    @property
    def is_idle(self) -> bool:
        return self.consecutive_idle_ticks >= self.idle_threshold_ticks


class WindowKind(str, Enum):
    TODAY = "today"
    LAST_N_DAYS = "last_n_days"


@dataclass(frozen=True, slots=True)
class ReportWindow:
    """Time range a report sums over."""

    kind: WindowKind
    days: Optional[int] = None

    @classmethod
    def today(cls) -> "ReportWindow":
        return cls(WindowKind.TODAY)

    @classmethod
    def last_n_days(cls, days: int) -> "ReportWindow":
        if days < 0:
            raise ValueError("days cannot be negative")
        return cls(WindowKind.LAST_N_DAYS, days)

    @property
    def title(self) -> str:
        if self.kind is WindowKind.TODAY:
            return "daily"
        if self.days == 7:
            return "weekly"
        return f"last {self.days} days"

    def contains(self, timestamp: datetime, now: datetime) -> bool:
        if self.kind is WindowKind.TODAY:
            return timestamp.date() == now.date()
        start = now - timedelta(days=self.days or 0)
        return start <= timestamp <= now


@dataclass(frozen=True, slots=True)
class RankedEntry:
    app: str
    total: int
    bar_length: int = 0


@dataclass(slots=True)
class AggregationResult:
    """Totals per app, ranked, plus scan bookkeeping."""

    ranked: list[tuple[str, int]] = field(default_factory=list)
    included_rows: int = 0
    skipped_rows: int = 0

    @property
    def totals(self) -> dict[str, int]:
        return dict(self.ranked)
