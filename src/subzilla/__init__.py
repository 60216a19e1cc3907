"""Subtitle to clean UTF-8 conversion toolkit."""

from .batch import BatchProcessor, BatchState
from .config import SubzillaConfig, load_config
from .core import SubtitleProcessor
from .errors import (
    BackupRestoreError,
    BatchAbortedError,
    ConversionError,
    OutputExistsError,
    ProcessingError,
)
from .models import BatchOptions, BatchStats, ConversionOptions, ConversionResult, StripOptions
from .sanitizer import FormattingStripper

__all__ = [
    "BackupRestoreError",
    "BatchAbortedError",
    "BatchOptions",
    "BatchProcessor",
    "BatchState",
    "BatchStats",
    "ConversionError",
    "ConversionOptions",
    "ConversionResult",
    "FormattingStripper",
    "OutputExistsError",
    "ProcessingError",
    "StripOptions",
    "SubtitleProcessor",
    "SubzillaConfig",
    "load_config",
]
