import os
import stat

import pytest

from subzilla.utils import (
    DEFAULT_FILE_MODE,
    atomic_write_bytes,
    chunked,
    format_size,
    generate_run_id,
    normalize_newlines,
)


def test_normalize_newlines() -> None:
    text = "line1\r\nline2\rline3\n"
    assert normalize_newlines(text) == "line1\nline2\nline3\n"
    assert normalize_newlines(text, "\r\n") == "line1\r\nline2\r\nline3\r\n"


def test_generate_run_id_unique() -> None:
    first = generate_run_id("test")
    second = generate_run_id("test")
    assert first != second
    assert first.startswith("test-")


def test_chunked_splits_in_order() -> None:
    assert [list(chunk) for chunk in chunked([1, 2, 3, 4, 5], 2)] == [[1, 2], [3, 4], [5]]
    assert [list(chunk) for chunk in chunked([1, 2], 0)] == [[1], [2]]


def test_atomic_write_bytes_creates_parent(tmp_path) -> None:
    target = tmp_path / "nested" / "out.srt"
    atomic_write_bytes(target, b"payload")
    assert target.read_bytes() == b"payload"
    assert [p.name for p in target.parent.iterdir()] == ["out.srt"]


def test_format_size() -> None:
    assert format_size(512) == "512.00 B"
    assert format_size(2048) == "2.00 KB"


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_atomic_write_bytes_file_modes(tmp_path) -> None:
    fresh = tmp_path / "fresh.srt"
    atomic_write_bytes(fresh, b"new")
    assert stat.S_IMODE(fresh.stat().st_mode) == DEFAULT_FILE_MODE

    existing = tmp_path / "existing.srt"
    existing.write_bytes(b"old")
    existing.chmod(0o640)
    atomic_write_bytes(existing, b"new")
    assert stat.S_IMODE(existing.stat().st_mode) == 0o640
