"""Idle detection over consecutive process snapshots."""

from __future__ import annotations

from dataclasses import replace

from .models import IDLE_SNAPSHOT, IdleRunState, Snapshot


def new_idle_state(idle_threshold_ticks: int) -> IdleRunState:
    """Return the state a fresh tracking session starts from."""
    return IdleRunState(idle_threshold_ticks=idle_threshold_ticks)


def classify(current: Snapshot, state: IdleRunState) -> tuple[Snapshot, IdleRunState]:
    """Classify one tick.

    An unchanged process set counts towards the idle run; once the run reaches
    the threshold the tick is reported as the ``IDLE`` sentinel instead of the
    real snapshot. ``last_snapshot`` always keeps the real snapshot so the next
    tick compares against actual activity.
    """
    current = frozenset(current)
    if current == state.last_snapshot:
        idle_ticks = state.consecutive_idle_ticks + 1
        effective = IDLE_SNAPSHOT if idle_ticks >= state.idle_threshold_ticks else current
    else:
        idle_ticks = 0
        effective = current
    return effective, replace(
        state, last_snapshot=current, consecutive_idle_ticks=idle_ticks
    )
