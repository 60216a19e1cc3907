"""Domain models for subtitle conversion services."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Literal

LineEnding = Literal["lf", "crlf", "auto"]


@dataclass(slots=True)
class StripOptions:
    """Content categories removed or replaced by the formatting stripper."""

    html: bool = False
    colors: bool = False
    styles: bool = False
    urls: bool = False
    timestamps: bool = False
    numbers: bool = False
    punctuation: bool = False
    emojis: bool = False
    brackets: bool = False
    bidi_control: bool = False

    def any(self) -> bool:
        return any(getattr(self, item.name) for item in fields(self))

    def enabled(self) -> list[str]:
        return [item.name for item in fields(self) if getattr(self, item.name)]

    @classmethod
    def all_enabled(cls) -> StripOptions:
        return cls(**{item.name: True for item in fields(cls)})


@dataclass(slots=True)
class ConversionOptions:
    """Configuration for a single file conversion."""

    strip: StripOptions | None = None
    backup_original: bool = False
    overwrite_backup: bool = True
    bom: bool = False
    line_endings: LineEnding = "lf"
    overwrite_existing: bool = False
    overwrite_input: bool = False
    source_encoding: str | None = None


@dataclass(frozen=True, slots=True)
class ConversionResult:
    """Result metadata for an individual conversion."""

    output_path: Path
    backup_path: Path | None = None
    encoding: str = "utf-8"


@dataclass(slots=True)
class BatchOptions:
    """Options for a batch run; ``common`` is handed to every file conversion."""

    common: ConversionOptions = field(default_factory=ConversionOptions)
    recursive: bool = False
    parallel: bool = False
    skip_existing: bool = False
    preserve_structure: bool = False
    chunk_size: int | None = None
    max_depth: int | None = None
    include_directories: list[str] = field(default_factory=list)
    exclude_directories: list[str] = field(default_factory=list)
    retry_count: int = 0
    retry_delay: int = 1000
    fail_fast: bool = False
    output_dir: Path | None = None


@dataclass(slots=True)
class DirectoryStats:
    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0


@dataclass(frozen=True, slots=True)
class FileError:
    file: str
    error: str


@dataclass(slots=True)
class BatchStats:
    """Aggregate statistics for one batch run."""

    total: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[FileError] = field(default_factory=list)
    directories_processed: int = 0
    files_by_directory: dict[str, DirectoryStats] = field(default_factory=dict)
    start_time: float = field(default_factory=time.time)
    end_time: float = 0.0
    time_taken: float = 0.0
    average_time_per_file: float = 0.0

    @property
    def settled(self) -> int:
        return self.successful + self.failed + self.skipped

    def as_row(self, batch_id: str) -> list[str]:
        directories = {
            name: [bucket.total, bucket.successful, bucket.failed, bucket.skipped]
            for name, bucket in self.files_by_directory.items()
        }
        return [
            batch_id,
            time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.start_time)),
            str(self.total),
            str(self.successful),
            str(self.failed),
            str(self.skipped),
            f"{self.time_taken:.3f}",
            json.dumps(directories, sort_keys=True, ensure_ascii=False),
        ]


@dataclass(slots=True)
class FileTask:
    path: Path
    directory: str
    attempts: int = 0


@dataclass(frozen=True, slots=True)
class BatchProgress:
    completed: int
    total: int
    file: Path
    status: Literal["successful", "failed", "skipped"]


__all__ = [
    "BatchOptions",
    "BatchProgress",
    "BatchStats",
    "ConversionOptions",
    "ConversionResult",
    "DirectoryStats",
    "FileError",
    "FileTask",
    "LineEnding",
    "StripOptions",
]
