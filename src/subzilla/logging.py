from __future__ import annotations

import csv
import json
import threading
from dataclasses import asdict, dataclass
from io import StringIO
from pathlib import Path
from typing import Any

from .utils import atomic_write

SUMMARY_HEADER = [
    "batch_id",
    "timestamp",
    "total",
    "successful",
    "failed",
    "skipped",
    "time_taken_s",
    "directories",
]


@dataclass(slots=True)
class StageTimings:
    read_ms: float = 0.0
    detect_ms: float = 0.0
    convert_ms: float = 0.0
    write_ms: float = 0.0


@dataclass(slots=True)
class RunLogEntry:
    source: str
    status: str
    encoding: str | None
    error_code: str | None
    timings: StageTimings
    output_path: str | None
    backup_path: str | None
    size_bytes: int
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class RunLogger:
    """Appends one JSON line per conversion; safe to share between worker threads."""

    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._log_file

    def append(self, entry: RunLogEntry) -> None:
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._lock:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            with self._log_file.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


def write_summary_csv(path: Path, header: list[str], rows: list[list[str]]) -> None:
    buffer = StringIO()
    writer = csv.writer(buffer)
    writer.writerow(header)
    writer.writerows(rows)
    atomic_write(path, buffer.getvalue())


def append_summary_row(path: Path, row: list[str]) -> None:
    header = SUMMARY_HEADER
    rows: list[list[str]] = []
    if path.exists():
        with path.open("r", encoding="utf-8", newline="") as handle:
            existing = list(csv.reader(handle))
        if existing:
            header = existing[0]
            rows = existing[1:]
    rows.append(row)
    write_summary_csv(path, header, rows)


__all__ = [
    "RunLogEntry",
    "RunLogger",
    "SUMMARY_HEADER",
    "StageTimings",
    "append_summary_row",
    "write_summary_csv",
]
