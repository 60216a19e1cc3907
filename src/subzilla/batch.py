from __future__ import annotations

import concurrent.futures
import glob
import logging
import os
import re
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Sequence, TypeVar

from .core import SubtitleProcessor
from .errors import BatchAbortedError
from .logging import append_summary_row
from .models import (
    BatchOptions,
    BatchProgress,
    BatchStats,
    DirectoryStats,
    FileError,
    FileTask,
)
from .strategies import OutputStrategy, with_suffix_marker
from .utils import chunked, generate_run_id

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchProgress], None]
T = TypeVar("T")

DEFAULT_DIRECTORY_CHUNK = 3
DEFAULT_FILE_CHUNK = 5

_MAGIC_RE = re.compile(r"[*?[]")


class BatchState(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    GROUPING = "grouping"
    PROCESSING = "processing"
    FINALIZED = "finalized"


def pattern_base(pattern: str) -> Path:
    """Return the leading directory of ``pattern`` that holds no wildcards."""

    parts = Path(pattern).parts
    literal: list[str] = []
    for part in parts:
        if _MAGIC_RE.search(part):
            break
        literal.append(part)
    if len(literal) == len(parts):
        return Path(pattern).parent
    return Path(*literal) if literal else Path(".")


def relative_depth(file: Path, base: Path) -> int | None:
    """Directories between ``base`` and ``file``; ``None`` when outside ``base``."""

    try:
        relative = Path(os.path.abspath(file)).relative_to(os.path.abspath(base))
    except ValueError:
        return None
    return max(len(relative.parts) - 1, 0)


def expand_pattern(pattern: str, recursive: bool) -> str:
    if recursive and "**" not in pattern:
        head, tail = os.path.split(pattern)
        return os.path.join(head, "**", tail)
    return pattern


class BatchProcessor:
    """Runs ``SubtitleProcessor`` over every file matching a glob pattern."""

    def __init__(
        self,
        processor: SubtitleProcessor | None = None,
        *,
        summary_csv: Path | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._processor = processor or SubtitleProcessor()
        self._summary_csv = summary_csv
        self._sleep = sleep
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._progress: ProgressCallback | None = None
        self._completed = 0
        self.state = BatchState.IDLE
        self.stats = BatchStats()

    def stop(self) -> None:
        """Ask the current run to stop after the files already in flight."""

        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def process_batch(
        self,
        pattern: str,
        options: BatchOptions,
        progress: ProgressCallback | None = None,
    ) -> BatchStats:
        self._stop.clear()
        self._progress = progress
        self._completed = 0
        self.stats = BatchStats()
        started = time.perf_counter()

        self.state = BatchState.DISCOVERING
        files = self.find_files(pattern, options)
        if not files:
            logger.info("No files found matching pattern: %s", pattern)
            self.state = BatchState.FINALIZED
            return self.stats

        self.stats.total = len(files)
        self.state = BatchState.GROUPING
        groups = self._group_by_directory(files)
        self.stats.directories_processed = len(groups)
        logger.info("Found %d files in %d directories", len(files), len(groups))

        self.state = BatchState.PROCESSING
        if options.output_dir is not None:
            options.output_dir.mkdir(parents=True, exist_ok=True)
        base = pattern_base(expand_pattern(pattern, options.recursive))
        directories = list(groups.items())
        try:
            if options.parallel:
                width = options.chunk_size or DEFAULT_DIRECTORY_CHUNK
                self._run_chunked(
                    directories,
                    width,
                    lambda item: self._process_directory(item[0], item[1], options, base),
                )
            else:
                for directory, paths in directories:
                    if self._stop.is_set():
                        break
                    self._process_directory(directory, paths, options, base)
        finally:
            self._finalize(started)
        return self.stats

    def find_files(self, pattern: str, options: BatchOptions) -> list[Path]:
        expanded = expand_pattern(pattern, options.recursive)
        base = pattern_base(expanded)
        matches = sorted(set(glob.glob(expanded, recursive=True)))
        files: list[Path] = []
        for match in matches:
            path = Path(match)
            if not path.is_file():
                continue
            if options.max_depth is not None:
                depth = relative_depth(path, base)
                if depth is None or depth > options.max_depth:
                    continue
            directory = str(path.parent)
            if options.include_directories and not any(
                entry in directory for entry in options.include_directories
            ):
                continue
            if any(entry in directory for entry in options.exclude_directories):
                continue
            files.append(path)
        return files

    def output_path_for(self, file: Path, options: BatchOptions, base: Path) -> Path | None:
        if options.output_dir is None:
            return None
        name = with_suffix_marker(Path(file.name)).name
        if options.preserve_structure:
            try:
                relative = Path(os.path.abspath(file.parent)).relative_to(os.path.abspath(base))
            except ValueError:
                relative = Path(file.parent.name)
            return options.output_dir / relative / name
        return options.output_dir / name

    def _group_by_directory(self, files: Sequence[Path]) -> dict[str, list[Path]]:
        groups: dict[str, list[Path]] = {}
        for file in files:
            directory = str(file.parent)
            groups.setdefault(directory, []).append(file)
            self.stats.files_by_directory[directory] = DirectoryStats()
        return groups

    def _run_chunked(self, items: Sequence[T], width: int, worker: Callable[[T], None]) -> None:
        width = max(1, width)
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=width, thread_name_prefix="subzilla-batch"
        ) as executor:
            for chunk in chunked(items, width):
                if self._stop.is_set():
                    break
                futures = [executor.submit(worker, item) for item in chunk]
                concurrent.futures.wait(futures)
                for future in futures:
                    future.result()

    def _process_directory(
        self, directory: str, files: list[Path], options: BatchOptions, base: Path
    ) -> None:
        if self._stop.is_set():
            return
        tasks = [FileTask(path=file, directory=directory) for file in files]
        if options.parallel:
            width = options.chunk_size or DEFAULT_FILE_CHUNK
            self._run_chunked(tasks, width, lambda task: self._process_file(task, options, base))
            return
        for task in tasks:
            if self._stop.is_set():
                break
            self._process_file(task, options, base)

    def _process_file(self, task: FileTask, options: BatchOptions, base: Path) -> None:
        if self._stop.is_set():
            return
        with self._lock:
            self.stats.files_by_directory[task.directory].total += 1

        output = self.output_path_for(task.path, options, base)
        if options.skip_existing and self._output_exists(task.path, output, options):
            logger.debug("Skipping %s, output already exists", task.path)
            self._settle(task, "skipped")
            return

        max_attempts = max(0, options.retry_count) + 1
        while True:
            task.attempts += 1
            try:
                self._processor.process(task.path, output, options.common)
            except Exception as exc:
                if task.attempts < max_attempts and not self._stop.is_set():
                    logger.warning(
                        "Retrying %s (%d/%d): %s",
                        task.path.name,
                        task.attempts,
                        options.retry_count,
                        exc,
                    )
                    self._sleep(options.retry_delay / 1000)
                    continue
                self._settle(task, "failed", str(exc))
                if options.fail_fast:
                    self._stop.set()
                    raise BatchAbortedError(task.path, str(exc)) from exc
                return
            self._settle(task, "successful")
            return

    def _output_exists(self, file: Path, output: Path | None, options: BatchOptions) -> bool:
        if output is None:
            if options.common.overwrite_input:
                return False
            output = OutputStrategy.SUFFIX.output_path(file)
        return output.exists()

    def _settle(self, task: FileTask, status: str, error: str | None = None) -> None:
        with self._lock:
            bucket = self.stats.files_by_directory[task.directory]
            if status == "successful":
                bucket.successful += 1
                self.stats.successful += 1
            elif status == "skipped":
                bucket.skipped += 1
                self.stats.skipped += 1
            else:
                bucket.failed += 1
                self.stats.failed += 1
                self.stats.errors.append(FileError(file=str(task.path), error=error or ""))
            self._completed += 1
            snapshot = BatchProgress(
                completed=self._completed,
                total=self.stats.total,
                file=task.path,
                status=status,  # type: ignore[arg-type]
            )
        if self._progress is not None:
            self._progress(snapshot)

    def _finalize(self, started: float) -> None:
        stats = self.stats
        stats.end_time = time.time()
        stats.time_taken = time.perf_counter() - started
        processed = stats.successful + stats.failed
        stats.average_time_per_file = stats.time_taken / processed if processed else 0.0
        self.state = BatchState.FINALIZED
        if self._summary_csv is not None:
            append_summary_row(self._summary_csv, stats.as_row(generate_run_id("batch")))


__all__ = [
    "BatchProcessor",
    "BatchState",
    "DEFAULT_DIRECTORY_CHUNK",
    "DEFAULT_FILE_CHUNK",
    "expand_pattern",
    "pattern_base",
    "relative_depth",
]
