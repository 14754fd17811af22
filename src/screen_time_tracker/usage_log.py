"""Append-only CSV usage log.

Every record occupies exactly one physical line so that a torn write only
damages the line it was cut off in. Line breaks inside app names are written
as ``\\n``/``\\r`` escapes and backslashes are doubled.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .errors import LogReadError, LogWriteError
from .models import Snapshot, UsageRecord

logger = logging.getLogger(__name__)

TIMESTAMP_FMT = "%Y-%m-%d %H:%M:%S"
HEADER = ("timestamp", "app", "minutes")

_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r"}
_UNESCAPES = {"\\": "\\", "n": "\n", "r": "\r"}
_ESCAPE_PATTERN = re.compile(r"\\(\\|n|r)")


@dataclass(slots=True)
class LogScan:
    """Records read from the log and the number of rows that were unusable."""

    records: list[UsageRecord] = field(default_factory=list)
    skipped_rows: int = 0


def escape_app(app: str) -> str:
    return "".join(_ESCAPES.get(char, char) for char in app)


def unescape_app(text: str) -> str:
    return _ESCAPE_PATTERN.sub(lambda match: _UNESCAPES[match.group(1)], text)


def encode_records(records: Iterable[UsageRecord]) -> str:
    """Serialize records as CSV data lines, one line per record.

    Text fields are always quoted with embedded quotes doubled; the count is
    written bare.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    for record in records:
        writer.writerow(
            [
                record.timestamp.strftime(TIMESTAMP_FMT),
                escape_app(record.app),
                int(record.count),
            ]
        )
    return buffer.getvalue()


def decode_row(row: Sequence[str]) -> Optional[UsageRecord]:
    """Turn one parsed CSV row into a record, or ``None`` if it is malformed."""
    if len(row) != len(HEADER):
        return None
    timestamp_text, app, count_text = row
    try:
        timestamp = datetime.strptime(timestamp_text, TIMESTAMP_FMT)
        count = int(count_text)
    except ValueError:
        return None
    if count < 1:
        return None
    return UsageRecord(timestamp=timestamp, app=unescape_app(app), count=count)


def parse_line(line: str) -> Optional[list[str]]:
    """Split one physical line into fields; ``None`` if the CSV is unreadable."""
    try:
        return next(csv.reader([line]), [])
    except csv.Error:
        return None


class UsageLog:
    """The durable log of per-tick, per-app activity."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def ensure_exists(self) -> bool:
        """Create the log with its header row. Returns ``True`` if it was created."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("x", encoding="utf-8", newline="") as handle:
                handle.write(",".join(HEADER) + "\n")
        except FileExistsError:
            return False
        except OSError as exc:
            raise LogWriteError(f"Could not create usage log {self.path}: {exc}") from exc
        logger.info("Created usage log at %s", self.path)
        return True

    def append(self, timestamp: datetime, snapshot: Snapshot) -> int:
        """Append one record per app in ``snapshot``; returns the number written."""
        moment = timestamp.replace(microsecond=0)
        records = [UsageRecord(timestamp=moment, app=app) for app in sorted(snapshot)]
        return self.append_records(records)

    def append_records(self, records: Sequence[UsageRecord]) -> int:
        if not records:
            return 0
        payload = encode_records(records)
        if not self.path.exists():
            self.ensure_exists()
        try:
            if not self._ends_with_newline():
                # Close off a line torn by an earlier interrupted write.
                payload = "\n" + payload
            with self.path.open("a", encoding="utf-8", newline="") as handle:
                handle.write(payload)
                handle.flush()
        except OSError as exc:
            raise LogWriteError(f"Could not append to {self.path}: {exc}") from exc
        logger.debug("Appended %d records to %s", len(records), self.path)
        return len(records)

    def read(self) -> LogScan:
        """Read every record from the start of the log.

        Each physical line is parsed on its own. Malformed lines are skipped
        and counted. A log that does not exist yet reads as empty.
        """
        scan = LogScan()
        try:
            with self.path.open("r", encoding="utf-8", errors="replace") as handle:
                for line in handle:
                    line = line.rstrip("\n")
                    if not line.strip():
                        continue
                    row = parse_line(line)
                    if row is not None and tuple(row) == HEADER:
                        continue
                    record = decode_row(row) if row is not None else None
                    if record is None:
                        scan.skipped_rows += 1
                        continue
                    scan.records.append(record)
        except FileNotFoundError:
            return scan
        except OSError as exc:
            raise LogReadError(f"Could not read usage log {self.path}: {exc}") from exc
        if scan.skipped_rows:
            logger.debug("Skipped %d malformed rows in %s", scan.skipped_rows, self.path)
        return scan

    def _ends_with_newline(self) -> bool:
        with self.path.open("rb") as handle:
            handle.seek(0, 2)
            if handle.tell() == 0:
                return True
            handle.seek(-1, 2)
            return handle.read(1) == b"\n"
