from __future__ import annotations

import codecs
from pathlib import Path

from charset_normalizer import from_bytes

from .errors import EncodingError, FileAccessError, SourceNotFoundError

DEFAULT_ENCODING = "utf-8"


def read_bytes(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except FileNotFoundError as exc:
        raise SourceNotFoundError(f"Source file does not exist: {path}") from exc
    except OSError as exc:
        raise FileAccessError(f"Cannot read {path}: {exc.strerror or exc}") from exc


def detect_encoding_bytes(data: bytes) -> str:
    if not data:
        return DEFAULT_ENCODING
    match = from_bytes(data).best()
    if match is None:
        return DEFAULT_ENCODING
    return match.encoding


def detect_encoding(path: Path) -> str:
    """Return the most likely codec name for the file, falling back to UTF-8."""

    return detect_encoding_bytes(read_bytes(path))


def convert_to_utf8(data: bytes, encoding: str) -> str:
    try:
        codec = codecs.lookup(encoding)
    except LookupError as exc:
        raise EncodingError(f"Unsupported source encoding: {encoding}") from exc
    if codec.name == "utf-16" and not data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        # Without a BOM Python assumes native order; subtitles are almost always LE.
        codec = codecs.lookup("utf-16-le")
    return data.decode(codec.name, errors="replace")


__all__ = [
    "DEFAULT_ENCODING",
    "convert_to_utf8",
    "detect_encoding",
    "detect_encoding_bytes",
    "read_bytes",
]
