"""
Music library scanning.

Walks the configured library roots, extracts metadata for every supported
file and builds a LibraryIndex. Per-path failures are collected as
ScanError values and never abort the scan.
"""

import os
import threading
from pathlib import Path
from typing import Callable, Iterable, NamedTuple, Optional

from loguru import logger

from music_player.core.exceptions import ScanError

from .index import LibraryIndex
from .metadata import extract_metadata
from .models import MetadataRecord

DEFAULT_FORMATS = [".mp3", ".m4a", ".ogg", ".opus", ".wav", ".flac"]

ProgressCallback = Callable[[str, MetadataRecord], None]


class ScanResult(NamedTuple):
    """Outcome of one library scan."""

    index: LibraryIndex
    errors: list[ScanError]
    cancelled: bool = False


def is_supported_format(local_path: Path, supported_formats: Iterable[str]) -> bool:
    """Check if file format is supported."""
    return local_path.suffix.lower() in {ext.lower() for ext in supported_formats}


def _collect_files(
    directory: Path,
    supported_formats: list[str],
    recursive: bool,
    errors: list[ScanError],
) -> list[Path]:
    """List supported files under ``directory``.

    Directories that cannot be listed are appended to ``errors`` and skipped.
    """

    def _on_error(error: OSError) -> None:
        failed = error.filename or str(directory)
        errors.append(ScanError(str(failed), error.strerror or str(error)))
        logger.error(f"Error scanning directory {failed}: {error}")

    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(directory, onerror=_on_error):
        # Sorted so repeated scans visit files in the same order
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if is_supported_format(path, supported_formats):
                files.append(path)
        if not recursive:
            break
    return sorted(files)


def scan(
    root_paths: Iterable[str],
    supported_formats: Optional[list[str]] = None,
    recursive: bool = True,
    cancel: Optional[threading.Event] = None,
    progress: Optional[ProgressCallback] = None,
) -> ScanResult:
    """Scan library roots and build a LibraryIndex.

    Args:
        root_paths: Directories (or single files) to scan
        supported_formats: File extensions to include
        recursive: Descend into subdirectories
        cancel: Optional event; when set, scanning stops before the next file
        progress: Optional callback(local_path, record) per parsed file

    Returns:
        ScanResult with the index of successfully parsed records and the
        collected per-path errors. A cancelled scan returns an empty index.
    """
    formats = supported_formats or DEFAULT_FORMATS
    records: list[MetadataRecord] = []
    errors: list[ScanError] = []

    for root in root_paths:
        path = Path(root).expanduser()
        if not path.exists():
            errors.append(ScanError(str(path), "path does not exist"))
            logger.warning(f"Library path does not exist: {path}")
            continue

        if path.is_file():
            files = [path] if is_supported_format(path, formats) else []
        else:
            files = _collect_files(path, formats, recursive, errors)

        logger.info(f"Scanning {len(files)} files in {path}")

        for file_path in files:
            if cancel is not None and cancel.is_set():
                logger.info("Library scan cancelled")
                return ScanResult(LibraryIndex(), errors, cancelled=True)

            try:
                record = extract_metadata(str(file_path))
            except OSError as e:
                errors.append(ScanError(str(file_path), str(e)))
                logger.error(f"Error processing {file_path}: {e}")
                continue

            records.append(record)
            if progress:
                progress(str(file_path), record)

    logger.info(f"Library scan complete: {len(records)} tracks, {len(errors)} errors")
    return ScanResult(LibraryIndex(records), errors)


def start_background_scan(
    root_paths: list[str],
    on_complete: Callable[[ScanResult], None],
    supported_formats: Optional[list[str]] = None,
    recursive: bool = True,
    cancel: Optional[threading.Event] = None,
) -> threading.Thread:
    """Run a scan on a daemon thread and hand the result to ``on_complete``.

    Cancelled scans do not call ``on_complete``.

    Returns:
        The started thread
    """

    def _worker() -> None:
        threading.current_thread().silent_logging = True
        try:
            result = scan(
                root_paths,
                supported_formats=supported_formats,
                recursive=recursive,
                cancel=cancel,
            )
        except Exception:
            logger.exception("Background library scan failed")
            return
        if not result.cancelled:
            on_complete(result)

    thread = threading.Thread(target=_worker, daemon=True, name="LibraryScanThread")
    thread.start()
    return thread
