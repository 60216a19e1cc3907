from __future__ import annotations

import tomllib
from pathlib import Path

import pytest

from subzilla.config import SubzillaConfig, dump_config, load_config, load_env
from subzilla.errors import ConfigError


def write_config(directory: Path, body: str, name: str = ".subzilla.toml") -> Path:
    path = directory / name
    path.write_text(body, encoding="utf-8")
    return path


def test_defaults_without_config_file(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    result = load_config(environ={})
    assert result.source == "default"
    assert result.file_path is None
    assert result.config.output.bom is True
    assert result.config.output.line_endings == "auto"
    assert result.config.batch.chunk_size is None
    assert result.config.batch.retry_delay == 1000
    assert result.config.strip_options() is None


def test_config_file_is_discovered(tmp_path: Path, monkeypatch) -> None:
    write_config(
        tmp_path,
        "[output]\nbom = false\n\n[strip]\nhtml = true\n\n[batch]\nretry_count = 3\n",
    )
    monkeypatch.chdir(tmp_path)
    result = load_config(environ={})
    assert result.source == "file"
    assert result.file_path is not None
    assert result.file_path.name == ".subzilla.toml"
    assert result.config.output.bom is False
    assert result.config.strip.html is True
    assert result.config.batch.retry_count == 3


def test_environment_overrides_file_and_overrides_win(tmp_path: Path) -> None:
    path = write_config(tmp_path, "[batch]\nretry_count = 3\nparallel = true\n", "custom.toml")
    environ = {
        "SUBZILLA_BATCH_RETRY_COUNT": "5",
        "SUBZILLA_STRIP_EMOJIS": "true",
        "SUBZILLA_BATCH_EXCLUDE_DIRECTORIES": "extras, samples",
        "SUBZILLA_OUTPUT_LINE_ENDINGS": "crlf",
        "UNRELATED": "1",
    }
    result = load_config(path, environ=environ)
    config = result.config
    assert config.batch.retry_count == 5
    assert config.batch.parallel is True
    assert config.strip.emojis is True
    assert config.batch.exclude_directories == ["extras", "samples"]
    assert config.output.line_endings == "crlf"

    overridden = load_config(
        path, environ=environ, overrides={"batch": {"retry_count": 1, "parallel": None}}
    )
    assert overridden.config.batch.retry_count == 1
    assert overridden.config.batch.parallel is True


def test_load_env_ignores_unknown_keys() -> None:
    overlay = load_env(
        {
            "SUBZILLA_BATCH_UNKNOWN": "x",
            "SUBZILLA_NOPE_KEY": "y",
            "SUBZILLA_INPUT_ENCODING": "cp1256",
        }
    )
    assert overlay == {"input": {"encoding": "cp1256"}}


def test_invalid_values_raise_config_error(tmp_path: Path) -> None:
    path = write_config(tmp_path, "[batch]\nchunk_size = 0\n\n[output]\nline_endings = \"mac\"\n")
    with pytest.raises(ConfigError) as exc:
        load_config(path, environ={})
    assert any(issue.startswith("batch.chunk_size") for issue in exc.value.issues)
    assert any(issue.startswith("output.line_endings") for issue in exc.value.issues)


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    path = write_config(tmp_path, "[strip]\nsparkles = true\n")
    with pytest.raises(ConfigError):
        load_config(path, environ={})


def test_broken_or_missing_file(tmp_path: Path) -> None:
    broken = write_config(tmp_path, "[output\nbom = yes\n")
    with pytest.raises(ConfigError):
        load_config(broken, environ={})
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.toml", environ={})


def test_dump_config_is_loadable() -> None:
    text = dump_config()
    assert "[output]" in text
    assert "# directory =" in text
    assert SubzillaConfig.model_validate(tomllib.loads(text)) == SubzillaConfig()


def test_config_maps_onto_runtime_options(tmp_path: Path) -> None:
    path = write_config(
        tmp_path,
        "[output]\ndirectory = \"out\"\ncreate_backup = true\noverwrite_input = true\n"
        "line_endings = \"lf\"\n\n[strip]\nhtml = true\nbidi_control = true\n\n"
        "[batch]\nrecursive = true\nmax_depth = 2\ninclude_directories = [\"season\"]\n",
    )
    config = load_config(path, environ={}).config
    options = config.to_batch_options()
    assert options.output_dir == Path("out")
    assert options.recursive is True
    assert options.max_depth == 2
    assert options.include_directories == ["season"]
    assert options.chunk_size is None
    common = options.common
    assert common.backup_original is True
    assert common.overwrite_input is True
    assert common.bom is True
    assert common.line_endings == "lf"
    assert common.strip is not None
    assert common.strip.enabled() == ["html", "bidi_control"]


def test_unset_overrides_fall_back_to_defaults(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    overrides = {
        "output": {"bom": None, "line_endings": None, "directory": None},
        "batch": {"chunk_size": None, "retry_count": None, "include_directories": None},
        "strip": {},
    }
    config = load_config(environ={}, overrides=overrides).config
    assert config.output.bom is True
    assert config.output.line_endings == "auto"
    assert config.output.directory is None
    assert config.batch.retry_count == 0
    assert config.batch.include_directories == []
