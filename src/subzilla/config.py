from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError
from .models import BatchOptions, ConversionOptions, StripOptions

CONFIG_FILE_NAMES = (".subzilla.toml", "subzilla.toml")
ENV_PREFIX = "SUBZILLA_"


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class InputConfig(_Section):
    encoding: str = "auto"


class OutputConfig(_Section):
    directory: Path | None = None
    create_backup: bool = False
    overwrite_backup: bool = True
    bom: bool = True
    line_endings: Literal["lf", "crlf", "auto"] = "auto"
    overwrite_input: bool = False
    overwrite_existing: bool = False


class StripConfig(_Section):
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


class BatchConfig(_Section):
    recursive: bool = False
    parallel: bool = False
    skip_existing: bool = False
    preserve_structure: bool = False
    chunk_size: int | None = Field(default=None, ge=1)
    max_depth: int | None = Field(default=None, ge=0)
    include_directories: list[str] = Field(default_factory=list)
    exclude_directories: list[str] = Field(default_factory=list)
    retry_count: int = Field(default=0, ge=0)
    retry_delay: int = Field(default=1000, ge=0)
    fail_fast: bool = False


class LoggingConfig(_Section):
    run_log: Path | None = None
    summary_csv: Path | None = None


class SubzillaConfig(_Section):
    input: InputConfig = Field(default_factory=InputConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    strip: StripConfig = Field(default_factory=StripConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def strip_options(self) -> StripOptions | None:
        options = StripOptions(**self.strip.model_dump())
        return options if options.any() else None

    def to_conversion_options(self) -> ConversionOptions:
        return ConversionOptions(
            strip=self.strip_options(),
            backup_original=self.output.create_backup,
            overwrite_backup=self.output.overwrite_backup,
            bom=self.output.bom,
            line_endings=self.output.line_endings,
            overwrite_existing=self.output.overwrite_existing,
            overwrite_input=self.output.overwrite_input,
            source_encoding=None if self.input.encoding == "auto" else self.input.encoding,
        )

    def to_batch_options(self) -> BatchOptions:
        batch = self.batch
        return BatchOptions(
            common=self.to_conversion_options(),
            recursive=batch.recursive,
            parallel=batch.parallel,
            skip_existing=batch.skip_existing,
            preserve_structure=batch.preserve_structure,
            chunk_size=batch.chunk_size,
            max_depth=batch.max_depth,
            include_directories=list(batch.include_directories),
            exclude_directories=list(batch.exclude_directories),
            retry_count=batch.retry_count,
            retry_delay=batch.retry_delay,
            fail_fast=batch.fail_fast,
            output_dir=self.output.directory,
        )


_SECTIONS: dict[str, type[BaseModel]] = {
    "input": InputConfig,
    "output": OutputConfig,
    "strip": StripConfig,
    "batch": BatchConfig,
    "logging": LoggingConfig,
}
_LIST_FIELDS = {"include_directories", "exclude_directories"}


@dataclass(frozen=True, slots=True)
class ConfigResult:
    config: SubzillaConfig
    source: Literal["default", "file"]
    file_path: Path | None = None


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc


def find_config_file(directory: Path | None = None) -> Path | None:
    root = directory or Path.cwd()
    for name in CONFIG_FILE_NAMES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None


def _env_value(key: str, value: str) -> object:
    if key in _LIST_FIELDS:
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


def load_env(environ: Mapping[str, str] | None = None) -> dict[str, dict[str, object]]:
    """Map ``SUBZILLA_<SECTION>_<KEY>`` variables onto config sections."""

    env = os.environ if environ is None else environ
    overlay: dict[str, dict[str, object]] = {}
    for name, value in env.items():
        if not name.startswith(ENV_PREFIX) or value == "":
            continue
        remainder = name[len(ENV_PREFIX) :].lower()
        for section, model in _SECTIONS.items():
            if not remainder.startswith(f"{section}_"):
                continue
            key = remainder[len(section) + 1 :]
            if key in model.model_fields:
                overlay.setdefault(section, {})[key] = _env_value(key, value)
            break
    return overlay


def _merge(base: dict[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overlay.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            current = merged.get(key)
            merged[key] = _merge(dict(current) if isinstance(current, Mapping) else {}, value)
        else:
            merged[key] = value
    return merged


def validate_config(raw: Mapping[str, Any]) -> SubzillaConfig:
    try:
        return SubzillaConfig.model_validate(raw)
    except ValidationError as exc:
        issues = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        raise ConfigError("Invalid configuration: " + "; ".join(issues), issues) from exc


def load_config(
    path: Path | None = None,
    *,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> ConfigResult:
    """Resolve defaults < file < environment < overrides into a validated config."""

    file_path = path if path is not None else find_config_file()
    raw: dict[str, Any] = {}
    if file_path is not None:
        raw = _read_toml(file_path)
    raw = _merge(raw, load_env(environ))
    if overrides:
        raw = _merge(raw, overrides)
    config = validate_config(raw)
    return ConfigResult(
        config=config,
        source="file" if file_path is not None else "default",
        file_path=file_path,
    )


def _toml_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def dump_config(config: SubzillaConfig | None = None) -> str:
    config = config or SubzillaConfig()
    lines: list[str] = []
    for section in _SECTIONS:
        values = getattr(config, section).model_dump()
        lines.append(f"[{section}]")
        for key, value in values.items():
            if value is None:
                lines.append(f"# {key} =")
                continue
            lines.append(f"{key} = {_toml_value(value)}")
        lines.append("")
    return "\n".join(lines)


__all__ = [
    "BatchConfig",
    "CONFIG_FILE_NAMES",
    "ConfigResult",
    "ENV_PREFIX",
    "InputConfig",
    "LoggingConfig",
    "OutputConfig",
    "StripConfig",
    "SubzillaConfig",
    "dump_config",
    "find_config_file",
    "load_config",
    "load_env",
    "validate_config",
]
