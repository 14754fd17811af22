"""Process snapshot source backed by psutil."""

from __future__ import annotations

import logging
from typing import Callable, Iterable

import psutil

from .errors import SnapshotError
from .models import Snapshot

logger = logging.getLogger(__name__)

SnapshotProvider = Callable[[], Iterable[str]]


class ProcessSnapshotSource:
    """Lists the names of every process running on this host."""

    def list_active_applications(self) -> Snapshot:
        names: set[str] = set()
        try:
            for process in psutil.process_iter(["name"]):
                name = process.info.get("name")
                if name:
                    names.add(name)
        except (psutil.Error, OSError) as exc:
            raise SnapshotError(f"Failed to enumerate processes: {exc}") from exc
        logger.debug("Sampled %d distinct process names.", len(names))
        return frozenset(names)

    def __call__(self) -> Snapshot:
        return self.list_active_applications()
