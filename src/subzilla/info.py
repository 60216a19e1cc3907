from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Literal

from .detection import convert_to_utf8, detect_encoding_bytes, read_bytes
from .utils import UTF8_BOM

_ENTRY_SEPARATOR_RE = re.compile(r"\r?\n\r?\n")


@dataclass(frozen=True, slots=True)
class FileInfo:
    path: Path
    size_bytes: int
    modified: datetime
    encoding: str
    has_bom: bool
    line_endings: Literal["CRLF", "LF", "CR", "none"]
    total_lines: int
    entries: int


def _line_endings(text: str) -> Literal["CRLF", "LF", "CR", "none"]:
    if "\r\n" in text:
        return "CRLF"
    if "\n" in text:
        return "LF"
    if "\r" in text:
        return "CR"
    return "none"


def inspect_file(path: Path) -> FileInfo:
    data = read_bytes(path)
    encoding = detect_encoding_bytes(data)
    text = convert_to_utf8(data, encoding)
    stat = path.stat()
    entries = [entry for entry in _ENTRY_SEPARATOR_RE.split(text) if entry.strip()]
    return FileInfo(
        path=path,
        size_bytes=stat.st_size,
        modified=datetime.fromtimestamp(stat.st_mtime),
        encoding=encoding,
        has_bom=data.startswith(UTF8_BOM),
        line_endings=_line_endings(text),
        total_lines=len(text.splitlines()),
        entries=len(entries),
    )


__all__ = ["FileInfo", "inspect_file"]
