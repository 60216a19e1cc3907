from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from ..batch import BatchProcessor
from ..config import ConfigResult, dump_config, load_config
from ..core import SubtitleProcessor
from ..errors import ConfigError, ConversionError
from ..info import inspect_file
from ..logging import RunLogger
from ..models import BatchProgress, BatchStats
from ..utils import format_size

console = Console()

app = typer.Typer(help="Convert subtitle files to clean UTF-8")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show retry and skip diagnostics"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _strip_overrides(
    strip_all: bool,
    html: bool,
    colors: bool,
    styles: bool,
    urls: bool,
    timestamps: bool,
    numbers: bool,
    punctuation: bool,
    emojis: bool,
    brackets: bool,
    bidi_control: bool,
) -> dict[str, bool]:
    requested = {
        "html": html,
        "colors": colors,
        "styles": styles,
        "urls": urls,
        "timestamps": timestamps,
        "numbers": numbers,
        "punctuation": punctuation,
        "emojis": emojis,
        "brackets": brackets,
        "bidi_control": bidi_control,
    }
    if strip_all:
        return {key: True for key in requested}
    return {key: True for key, value in requested.items() if value}


def _load(config: Path | None, overrides: dict[str, Any]) -> ConfigResult:
    try:
        return load_config(config, overrides=overrides)
    except ConfigError as exc:
        console.print(f"[red]Configuration error[/red]: {exc}")
        raise typer.Exit(1) from exc


def _run_logger(result: ConfigResult) -> RunLogger | None:
    run_log = result.config.logging.run_log
    return RunLogger(run_log) if run_log is not None else None


StripAll = typer.Option(False, "--strip-all", help="Enable every strip category")
StripHtml = typer.Option(False, "--strip-html", help="Remove HTML tags")
StripColors = typer.Option(False, "--strip-colors", help="Remove colour codes")
StripStyles = typer.Option(False, "--strip-styles", help="Remove style toggles")
StripUrls = typer.Option(False, "--strip-urls", help="Replace URLs with [URL]")
StripTimestamps = typer.Option(False, "--strip-timestamps", help="Replace inline timestamps")
StripNumbers = typer.Option(False, "--strip-numbers", help="Replace digits in text with #")
StripPunctuation = typer.Option(False, "--strip-punctuation", help="Remove punctuation")
StripEmojis = typer.Option(False, "--strip-emojis", help="Replace emoji with [EMOJI]")
StripBrackets = typer.Option(False, "--strip-brackets", help="Remove bracket characters")
StripBidi = typer.Option(False, "--strip-bidi-control", help="Remove bidi control characters")
ConfigOption = typer.Option(None, "--config", "-c", help="Path to a subzilla TOML config")
BomOption = typer.Option(None, "--bom/--no-bom", help="Write a UTF-8 byte order mark")
LineEndingsOption = typer.Option(None, "--line-endings", help="lf, crlf or auto")


def _output_overrides(
    bom: Optional[bool],
    line_endings: Optional[str],
    backup: bool,
    overwrite_input: bool,
    overwrite_existing: bool,
) -> dict[str, Any]:
    output: dict[str, Any] = {"bom": bom, "line_endings": line_endings}
    if backup:
        output["create_backup"] = True
    if overwrite_input:
        output["overwrite_input"] = True
    if overwrite_existing:
        output["overwrite_existing"] = True
    return output


@app.command()
def convert(
    file: Path,
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Explicit output path"),
    bom: Optional[bool] = BomOption,
    line_endings: Optional[str] = LineEndingsOption,
    backup: bool = typer.Option(False, "--backup", help="Back up the input before overwriting it"),
    overwrite_input: bool = typer.Option(False, "--overwrite-input", help="Write over the input file"),
    overwrite_existing: bool = typer.Option(False, "--overwrite-existing", help="Replace an existing output"),
    strip_all: bool = StripAll,
    strip_html: bool = StripHtml,
    strip_colors: bool = StripColors,
    strip_styles: bool = StripStyles,
    strip_urls: bool = StripUrls,
    strip_timestamps: bool = StripTimestamps,
    strip_numbers: bool = StripNumbers,
    strip_punctuation: bool = StripPunctuation,
    strip_emojis: bool = StripEmojis,
    strip_brackets: bool = StripBrackets,
    strip_bidi_control: bool = StripBidi,
    config: Optional[Path] = ConfigOption,
) -> None:
    overrides = {
        "output": _output_overrides(bom, line_endings, backup, overwrite_input, overwrite_existing),
        "strip": _strip_overrides(
            strip_all,
            strip_html,
            strip_colors,
            strip_styles,
            strip_urls,
            strip_timestamps,
            strip_numbers,
            strip_punctuation,
            strip_emojis,
            strip_brackets,
            strip_bidi_control,
        ),
    }
    result = _load(config, overrides)
    processor = SubtitleProcessor(run_logger=_run_logger(result))
    try:
        converted = processor.process(file, output, result.config.to_conversion_options())
    except ConversionError as exc:
        console.print(f"[red]Conversion failed[/red]: {exc.code} - {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Success[/green]: {file} -> {converted.output_path} ({converted.encoding})")
    if converted.backup_path:
        console.print(f"Backup: {converted.backup_path}")


def _print_stats(stats: BatchStats) -> None:
    table = Table(title="Batch summary")
    table.add_column("Directory")
    table.add_column("Total", justify="right")
    table.add_column("Succeeded", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Skipped", justify="right")
    for directory, bucket in stats.files_by_directory.items():
        table.add_row(
            directory,
            str(bucket.total),
            str(bucket.successful),
            str(bucket.failed),
            str(bucket.skipped),
        )
    console.print(table)
    console.print(
        f"Processed {stats.total} files in {stats.directories_processed} directories: "
        f"{stats.successful} succeeded, {stats.failed} failed, {stats.skipped} skipped "
        f"in {stats.time_taken:.2f}s ({stats.average_time_per_file:.2f}s/file)."
    )
    for error in stats.errors:
        console.print(f"[red]{Path(error.file).name}[/red]: {error.error}")


@app.command()
def batch(
    pattern: str,
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Directory for converted files"),
    recursive: Optional[bool] = typer.Option(None, "--recursive/--no-recursive"),
    parallel: Optional[bool] = typer.Option(None, "--parallel/--sequential"),
    skip_existing: Optional[bool] = typer.Option(None, "--skip-existing/--no-skip-existing"),
    preserve_structure: Optional[bool] = typer.Option(None, "--preserve-structure/--flatten"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", min=1),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", min=0),
    include_dir: Optional[list[str]] = typer.Option(None, "--include-dir"),
    exclude_dir: Optional[list[str]] = typer.Option(None, "--exclude-dir"),
    retry_count: Optional[int] = typer.Option(None, "--retry-count", min=0),
    retry_delay: Optional[int] = typer.Option(None, "--retry-delay", min=0, help="Milliseconds"),
    fail_fast: Optional[bool] = typer.Option(None, "--fail-fast/--keep-going"),
    bom: Optional[bool] = BomOption,
    line_endings: Optional[str] = LineEndingsOption,
    backup: bool = typer.Option(False, "--backup"),
    overwrite_input: bool = typer.Option(False, "--overwrite-input"),
    overwrite_existing: bool = typer.Option(False, "--overwrite-existing"),
    strip_all: bool = StripAll,
    strip_html: bool = StripHtml,
    strip_colors: bool = StripColors,
    strip_styles: bool = StripStyles,
    strip_urls: bool = StripUrls,
    strip_timestamps: bool = StripTimestamps,
    strip_numbers: bool = StripNumbers,
    strip_punctuation: bool = StripPunctuation,
    strip_emojis: bool = StripEmojis,
    strip_brackets: bool = StripBrackets,
    strip_bidi_control: bool = StripBidi,
    config: Optional[Path] = ConfigOption,
) -> None:
    output = _output_overrides(bom, line_endings, backup, overwrite_input, overwrite_existing)
    output["directory"] = output_dir
    overrides = {
        "output": output,
        "strip": _strip_overrides(
            strip_all,
            strip_html,
            strip_colors,
            strip_styles,
            strip_urls,
            strip_timestamps,
            strip_numbers,
            strip_punctuation,
            strip_emojis,
            strip_brackets,
            strip_bidi_control,
        ),
        "batch": {
            "recursive": recursive,
            "parallel": parallel,
            "skip_existing": skip_existing,
            "preserve_structure": preserve_structure,
            "chunk_size": chunk_size,
            "max_depth": max_depth,
            "include_directories": include_dir or None,
            "exclude_directories": exclude_dir or None,
            "retry_count": retry_count,
            "retry_delay": retry_delay,
            "fail_fast": fail_fast,
        },
    }
    result = _load(config, overrides)
    cfg = result.config
    runner = BatchProcessor(
        SubtitleProcessor(run_logger=_run_logger(result)),
        summary_csv=cfg.logging.summary_csv,
    )
    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    )
    task_id = progress.add_task("Converting", total=None)

    def _on_progress(update: BatchProgress) -> None:
        progress.update(
            task_id,
            total=update.total,
            completed=update.completed,
            description=update.file.name[:40],
        )

    try:
        with progress:
            stats = runner.process_batch(pattern, cfg.to_batch_options(), progress=_on_progress)
    except ConversionError as exc:
        _print_stats(runner.stats)
        console.print(f"[red]Batch aborted[/red]: {exc}")
        raise typer.Exit(1) from exc
    if stats.total == 0:
        console.print(f"No files found matching pattern: {pattern}")
        raise typer.Exit()
    _print_stats(stats)
    if stats.failed:
        raise typer.Exit(1)


@app.command()
def info(file: Path) -> None:
    try:
        details = inspect_file(file)
    except ConversionError as exc:
        console.print(f"[red]Error analyzing subtitle file[/red]: {exc}")
        raise typer.Exit(1) from exc
    table = Table(title=str(details.path), show_header=False)
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Size", format_size(details.size_bytes))
    table.add_row("Modified", details.modified.isoformat(sep=" ", timespec="seconds"))
    table.add_row("Detected encoding", details.encoding)
    table.add_row("BOM", "yes" if details.has_bom else "no")
    table.add_row("Line endings", details.line_endings)
    table.add_row("Total lines", str(details.total_lines))
    table.add_row("Subtitle entries", str(details.entries))
    console.print(table)


@app.command()
def init(
    path: Path = typer.Argument(Path(".subzilla.toml")),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    if path.exists() and not force:
        console.print(f"[red]{path} already exists[/red]; pass --force to replace it.")
        raise typer.Exit(1)
    path.write_text(dump_config(), encoding="utf-8")
    console.print(f"Created default config file at: {path}")


if __name__ == "__main__":
    app()
