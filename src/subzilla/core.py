from __future__ import annotations

import logging
import os
import re
import shutil
import time
from pathlib import Path

from .detection import convert_to_utf8, detect_encoding_bytes, read_bytes
from .errors import (
    BackupRestoreError,
    ConversionError,
    FileAccessError,
    OutputExistsError,
    ProcessingError,
    SourceNotFoundError,
)
from .logging import RunLogEntry, RunLogger, StageTimings
from .models import ConversionOptions, ConversionResult, LineEnding
from .sanitizer import FormattingStripper
from .strategies import OutputStrategy
from .utils import UTF8_BOM, atomic_write_bytes, normalize_newlines

logger = logging.getLogger(__name__)

LINE_ENDINGS: dict[str, str] = {
    "lf": "\n",
    "crlf": "\r\n",
    "auto": os.linesep,
}

TIMING_PATTERN = r"\d{2}:\d{2}:\d{2},\d{3}[ \t]*-->[ \t]*\d{2}:\d{2}:\d{2},\d{3}"
TIMING_RE = re.compile(TIMING_PATTERN)
SEQUENCE_LINE_RE = re.compile(rf"^[ \t]*\d+[ \t]*(?=\n[ \t]*{TIMING_PATTERN})", re.MULTILINE)
CORRUPTED_TIMING_RE = re.compile(r"^([ \t]*)(\d{9})[ \t]+(\d{9})([ \t]*)$", re.MULTILINE)
BLOCK_SEPARATOR_RE = re.compile(r"\n\s*\n")

# Private-use delimiters around a letters-only index: nothing the stripper
# matches (digits, punctuation, brackets, tags, emoji, whitespace) occurs in a token.
_TOKEN_OPEN = "\uE010"
_TOKEN_CLOSE = "\uE011"
_TOKEN_RE = re.compile(f"{_TOKEN_OPEN}([A-Z]+){_TOKEN_CLOSE}")


def _encode_index(index: int) -> str:
    letters = ""
    while True:
        index, remainder = divmod(index, 26)
        letters = chr(ord("A") + remainder) + letters
        if index == 0:
            return letters


def _decode_index(letters: str) -> int:
    value = 0
    for letter in letters:
        value = value * 26 + (ord(letter) - ord("A"))
    return value


def protect_structure(content: str) -> tuple[str, list[str]]:
    """Swap sequence-number lines and timing spans for opaque tokens."""

    originals: list[str] = []

    def _substitute(match: re.Match[str]) -> str:
        originals.append(match.group(0))
        return f"{_TOKEN_OPEN}{_encode_index(len(originals) - 1)}{_TOKEN_CLOSE}"

    content = SEQUENCE_LINE_RE.sub(_substitute, content)
    content = TIMING_RE.sub(_substitute, content)
    return content, originals


def restore_structure(content: str, originals: list[str]) -> str:
    if not originals:
        return content

    def _original(match: re.Match[str]) -> str:
        index = _decode_index(match.group(1))
        return originals[index] if index < len(originals) else match.group(0)

    return _TOKEN_RE.sub(_original, content)


def _valid_timing(digits: str) -> bool:
    hours, minutes, seconds, millis = (
        int(digits[0:2]),
        int(digits[2:4]),
        int(digits[4:6]),
        int(digits[6:9]),
    )
    return hours <= 99 and minutes <= 59 and seconds <= 59 and millis <= 999


def _format_timing(digits: str) -> str:
    return f"{digits[0:2]}:{digits[2:4]}:{digits[4:6]},{digits[6:9]}"


def repair_corrupted_timings(content: str) -> str:
    """Rebuild ``HHMMSSmmm HHMMSSmmm`` lines left behind by punctuation stripping."""

    def _repair(match: re.Match[str]) -> str:
        start, end = match.group(2), match.group(3)
        if not (_valid_timing(start) and _valid_timing(end)):
            return match.group(0)
        return f"{match.group(1)}{_format_timing(start)} --> {_format_timing(end)}{match.group(4)}"

    return CORRUPTED_TIMING_RE.sub(_repair, content)


def rebuild_blocks(content: str) -> str:
    """Lay blocks out as number, timing, text with one blank line between blocks.

    A segment that does not open with a sequence number or timing line is
    text that drifted behind a blank line, so it is folded into the block
    before it. Every line is trimmed; blocks that hold nothing but
    whitespace disappear.
    """

    blocks: list[list[str]] = []
    for segment in BLOCK_SEPARATOR_RE.split(content):
        lines = [line.strip() for line in segment.split("\n") if line.strip()]
        if not lines:
            continue
        if blocks and not _opens_block(lines):
            blocks[-1].extend(lines)
        else:
            blocks.append(lines)
    if not blocks:
        return ""
    return "\n\n".join("\n".join(lines) for lines in blocks) + "\n"


def _opens_block(lines: list[str]) -> bool:
    if TIMING_RE.match(lines[0]) or CORRUPTED_TIMING_RE.match(lines[0]):
        return True
    return lines[0].isdigit() and (len(lines) == 1 or TIMING_RE.match(lines[1]) is not None)


def normalize_line_endings(content: str, mode: LineEnding) -> str:
    return normalize_newlines(content, LINE_ENDINGS[mode])


def strip_leading_bom(content: str) -> str:
    if content.startswith("\ufeff"):
        return content[1:]
    return content


def create_backup(path: Path, *, overwrite: bool = True) -> Path:
    backup_path = path.with_name(f"{path.name}.bak")
    if not overwrite:
        candidate = backup_path
        counter = 1
        while candidate.exists():
            candidate = path.with_name(f"{path.name}.bak.{counter}")
            counter += 1
        backup_path = candidate
    try:
        shutil.copy2(path, backup_path)
    except OSError as exc:
        raise FileAccessError(f"Cannot create backup {backup_path}: {exc.strerror or exc}") from exc
    return backup_path


class SubtitleProcessor:
    def __init__(
        self,
        *,
        stripper: FormattingStripper | None = None,
        run_logger: RunLogger | None = None,
    ) -> None:
        self._stripper = stripper or FormattingStripper()
        self._run_logger = run_logger

    def process(
        self,
        input_path: Path | str,
        output_path: Path | str | None = None,
        options: ConversionOptions | None = None,
    ) -> ConversionResult:
        opts = options or ConversionOptions()
        source = Path(input_path)
        timings = StageTimings()
        backup_path: Path | None = None
        encoding: str | None = None
        target: Path | None = None
        try:
            self._validate_source(source)
            strategy = OutputStrategy.for_options(opts.overwrite_input)
            target = Path(output_path) if output_path is not None else strategy.output_path(source)
            if target.exists() and not opts.overwrite_existing and not opts.overwrite_input:
                raise OutputExistsError(
                    f"Output file {target} already exists and overwrite is disabled"
                )
            if opts.backup_original and strategy.requires_backup:
                backup_path = create_backup(source, overwrite=opts.overwrite_backup)

            started = time.perf_counter()
            data = read_bytes(source)
            timings.read_ms = (time.perf_counter() - started) * 1000

            started = time.perf_counter()
            encoding = opts.source_encoding or detect_encoding_bytes(data)
            timings.detect_ms = (time.perf_counter() - started) * 1000

            started = time.perf_counter()
            payload = self.render(convert_to_utf8(data, encoding), opts)
            timings.convert_ms = (time.perf_counter() - started) * 1000

            started = time.perf_counter()
            self._write_output(target, payload)
            timings.write_ms = (time.perf_counter() - started) * 1000
        except Exception as exc:
            try:
                if backup_path is not None and opts.overwrite_input:
                    self._restore_backup(source, backup_path, exc)
            finally:
                self._log(source, "failure", encoding, timings, target, backup_path, exc)
            if isinstance(exc, ProcessingError):
                raise
            raise ProcessingError(f"Failed to process file: {exc}", cause=exc) from exc

        self._log(source, "success", encoding, timings, target, backup_path, None)
        return ConversionResult(output_path=target, backup_path=backup_path, encoding=encoding)

    def render(self, content: str, options: ConversionOptions) -> bytes:
        """Turn decoded text into the final output bytes."""

        content = strip_leading_bom(content)
        content = normalize_newlines(content)
        content = repair_corrupted_timings(content)
        if options.strip is not None and options.strip.any():
            protected, originals = protect_structure(content)
            stripped = self._stripper.strip(protected, options.strip)
            content = restore_structure(stripped, originals)
        content = rebuild_blocks(content)
        content = normalize_line_endings(content, options.line_endings)
        encoded = content.encode("utf-8")
        if options.bom:
            return UTF8_BOM + encoded
        return encoded

    def _validate_source(self, path: Path) -> None:
        if not path.exists():
            raise SourceNotFoundError(f"Source file does not exist: {path}")
        if not path.is_file():
            raise FileAccessError(f"Source is not a regular file: {path}")
        if not os.access(path, os.R_OK):
            raise FileAccessError(f"Source file is not readable: {path}")

    def _write_output(self, target: Path, payload: bytes) -> None:
        try:
            atomic_write_bytes(target, payload)
        except OSError as exc:
            raise FileAccessError(f"Cannot write {target}: {exc.strerror or exc}") from exc

    def _restore_backup(self, source: Path, backup_path: Path, error: Exception) -> None:
        try:
            shutil.copy2(backup_path, source)
            backup_path.unlink()
        except OSError as restore_error:
            raise BackupRestoreError(error, restore_error, backup_path=backup_path) from error
        logger.warning("Restored %s from %s after failure: %s", source, backup_path, error)

    def _log(
        self,
        source: Path,
        status: str,
        encoding: str | None,
        timings: StageTimings,
        target: Path | None,
        backup_path: Path | None,
        error: Exception | None,
    ) -> None:
        if self._run_logger is None:
            return
        try:
            size_bytes = source.stat().st_size if source.exists() else 0
            self._run_logger.append(
                RunLogEntry(
                    source=str(source),
                    status=status,
                    encoding=encoding,
                    error_code=error.code if isinstance(error, ConversionError) else None,
                    timings=timings,
                    output_path=str(target) if target is not None else None,
                    backup_path=str(backup_path) if backup_path is not None else None,
                    size_bytes=size_bytes,
                    error_message=str(error) if error is not None else None,
                )
            )
        except OSError as exc:
            logger.warning("Cannot write run log %s: %s", self._run_logger.path, exc)


__all__ = [
    "LINE_ENDINGS",
    "SubtitleProcessor",
    "create_backup",
    "normalize_line_endings",
    "protect_structure",
    "rebuild_blocks",
    "repair_corrupted_timings",
    "restore_structure",
]
