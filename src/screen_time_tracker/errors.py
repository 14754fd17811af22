"""Exception types raised by the tracker."""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for tracker failures."""


class SnapshotError(TrackerError):
    """The running processes could not be enumerated."""


class UsageLogError(TrackerError):
    """The usage log could not be accessed."""


class LogWriteError(UsageLogError):
    """Appending to the usage log failed."""


class LogReadError(UsageLogError):
    """Reading the usage log failed."""


class ArgumentError(TrackerError, ValueError):
    """A command-line value could not be interpreted."""
