from __future__ import annotations

from enum import Enum
from pathlib import Path

OUTPUT_SUFFIX = ".subzilla"


def with_suffix_marker(path: Path, marker: str = OUTPUT_SUFFIX) -> Path:
    name = path.name
    dot = name.rfind(".")
    if dot == -1:
        return path.with_name(f"{name}{marker}")
    return path.with_name(f"{name[:dot]}{marker}{name[dot:]}")


class OutputStrategy(str, Enum):
    SUFFIX = "suffix"
    OVERWRITE = "overwrite"

    @classmethod
    def for_options(cls, overwrite_input: bool) -> OutputStrategy:
        return cls.OVERWRITE if overwrite_input else cls.SUFFIX

    def output_path(self, input_path: Path) -> Path:
        if self is OutputStrategy.OVERWRITE:
            return input_path
        return with_suffix_marker(input_path)

    @property
    def requires_backup(self) -> bool:
        return self is OutputStrategy.OVERWRITE


__all__ = ["OUTPUT_SUFFIX", "OutputStrategy", "with_suffix_marker"]
