"""Error taxonomy shared by the converter and the batch runner."""

from __future__ import annotations

from pathlib import Path


class ConversionError(RuntimeError):
    code = "CONVERSION_FAILED"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class FileAccessError(ConversionError):
    code = "IO_ERROR"


class SourceNotFoundError(FileAccessError):
    code = "NOT_FOUND"


class OutputExistsError(ConversionError):
    code = "ALREADY_EXISTS"


class EncodingError(ConversionError):
    code = "ENCODING"


class ProcessingError(ConversionError):
    """Raised by ``SubtitleProcessor.process`` around any failure."""

    code = "PROCESSING_FAILED"

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        cause_code = getattr(cause, "code", None)
        super().__init__(message, code=cause_code if isinstance(cause_code, str) else None)
        self.cause = cause


class BackupRestoreError(ProcessingError):
    """Processing failed and the input could not be restored from its backup."""

    code = "RESTORE_FAILED"

    def __init__(
        self,
        original: BaseException,
        restore: BaseException,
        *,
        backup_path: Path,
    ) -> None:
        self.original_message = str(original)
        self.restore_message = str(restore)
        self.backup_path = backup_path
        super().__init__(
            "Processing failed and backup restoration failed. "
            f"Original error: {self.original_message}. "
            f"Restore error: {self.restore_message}",
            cause=original,
        )
        self.code = BackupRestoreError.code


class BatchAbortedError(ConversionError):
    code = "FAIL_FAST"

    def __init__(self, file: Path, message: str) -> None:
        super().__init__(f"Failed to process {file}: {message}")
        self.file = file


class ConfigError(ValueError):
    def __init__(self, message: str, issues: list[str] | None = None) -> None:
        super().__init__(message)
        self.issues = issues or []


__all__ = [
    "BackupRestoreError",
    "BatchAbortedError",
    "ConfigError",
    "ConversionError",
    "EncodingError",
    "FileAccessError",
    "OutputExistsError",
    "ProcessingError",
    "SourceNotFoundError",
]
