from __future__ import annotations

import tomllib
from pathlib import Path

import pytest
from typer.testing import CliRunner

from subzilla.cli import app
from subzilla.utils import UTF8_BOM

SRT = "1\n00:00:01,000 --> 00:00:02,000\n<b>Hello</b> there\n\n2\n00:00:03,000 --> 00:00:04,000\nBye\n"

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    for name in ("SUBZILLA_OUTPUT_BOM", "SUBZILLA_OUTPUT_LINE_ENDINGS", "SUBZILLA_OUTPUT_DIRECTORY"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


def test_convert_command(tmp_path: Path) -> None:
    (tmp_path / "movie.srt").write_text(SRT, encoding="utf-8")
    result = runner.invoke(app, ["convert", "movie.srt", "--strip-html", "--line-endings", "lf"])
    assert result.exit_code == 0, result.output
    assert "Success" in result.output
    data = (tmp_path / "movie.subzilla.srt").read_bytes()
    assert data.startswith(UTF8_BOM)
    assert data[len(UTF8_BOM):].decode("utf-8") == SRT.replace("<b>Hello</b>", "Hello")


def test_convert_command_without_bom_and_crlf(tmp_path: Path) -> None:
    (tmp_path / "movie.srt").write_text(SRT, encoding="utf-8")
    result = runner.invoke(
        app, ["convert", "movie.srt", "--no-bom", "--line-endings", "crlf", "-o", "out.srt"]
    )
    assert result.exit_code == 0, result.output
    assert (tmp_path / "out.srt").read_bytes() == SRT.replace("\n", "\r\n").encode("utf-8")


def test_convert_command_reports_failure() -> None:
    result = runner.invoke(app, ["convert", "missing.srt"])
    assert result.exit_code == 1
    assert "Conversion failed" in result.output
    assert "NOT_FOUND" in result.output


def test_convert_command_rejects_bad_config(tmp_path: Path) -> None:
    (tmp_path / "movie.srt").write_text(SRT, encoding="utf-8")
    (tmp_path / "bad.toml").write_text("[batch]\nchunk_size = -1\n", encoding="utf-8")
    result = runner.invoke(app, ["convert", "movie.srt", "--config", "bad.toml"])
    assert result.exit_code == 1
    assert "Configuration error" in result.output


def test_batch_command(tmp_path: Path) -> None:
    for name in ("a.srt", "b.srt"):
        (tmp_path / name).write_text(SRT, encoding="utf-8")
    result = runner.invoke(app, ["batch", "*.srt", "--output-dir", "out", "--no-bom"])
    assert result.exit_code == 0, result.output
    assert "Processed 2 files" in result.output
    assert sorted(p.name for p in (tmp_path / "out").iterdir()) == ["a.subzilla.srt", "b.subzilla.srt"]


def test_batch_command_without_matches() -> None:
    result = runner.invoke(app, ["batch", "*.srt"])
    assert result.exit_code == 0
    assert "No files found" in result.output


def test_info_command(tmp_path: Path) -> None:
    (tmp_path / "movie.srt").write_bytes(SRT.replace("\n", "\r\n").encode("utf-8"))
    result = runner.invoke(app, ["info", "movie.srt"])
    assert result.exit_code == 0, result.output
    assert "Subtitle entries" in result.output
    assert "CRLF" in result.output


def test_init_command(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init"])
    assert result.exit_code == 0, result.output
    config_file = tmp_path / ".subzilla.toml"
    assert "batch" in tomllib.loads(config_file.read_text(encoding="utf-8"))

    again = runner.invoke(app, ["init"])
    assert again.exit_code == 1
    forced = runner.invoke(app, ["init", "--force"])
    assert forced.exit_code == 0
