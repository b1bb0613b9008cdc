"""
Music Player - application wiring.

Builds the library, the mpv pipeline, the orchestrator thread, the control
socket and the terminal UI, then tears them down in order.
"""

import os
import signal
import threading
from pathlib import Path
from typing import Optional

from loguru import logger

from music_player.core import config as config_module
from music_player.core.config import Config
from music_player.core.exceptions import PipelineError
from music_player.core.output import log, setup_loguru
from music_player.domain import library
from music_player.domain.library.cache import CACHE_FILENAME
from music_player.domain.library.stats import STATS_FILENAME
from music_player.domain.playback import (
    LibraryUpdated,
    MpvBackend,
    PlayTrack,
    PlaybackOrchestrator,
    PlaybackPolicy,
    SessionState,
    check_mpv_available,
    load_session,
    mode_from_config,
    save_session,
)
from music_player.domain.playback.session import SESSION_FILENAME
from music_player.protocol import ProtocolAdapter, SocketProtocolBackend

LOG_FILENAME = "music-player.log"


def get_cache_path() -> Path:
    return config_module.get_data_dir() / CACHE_FILENAME


def get_session_path() -> Path:
    return config_module.get_data_dir() / SESSION_FILENAME


def get_stats_path() -> Path:
    return config_module.get_data_dir() / STATS_FILENAME


def setup_logging(cfg: Config, headless: bool = False) -> None:
    """Install loguru sinks from the [logging] section."""
    log_file = (
        Path(cfg.logging.log_file)
        if cfg.logging.log_file
        else config_module.get_data_dir() / LOG_FILENAME
    )
    setup_loguru(
        log_file,
        level=cfg.logging.level,
        max_file_size_mb=cfg.logging.max_file_size_mb,
        backup_count=cfg.logging.backup_count,
        console_output=cfg.logging.console_output or headless,
    )


def scan_library(cfg: Config) -> library.ScanResult:
    """Scan the configured roots and refresh the on-disk cache."""
    result = library.scan(
        cfg.music.library_paths,
        supported_formats=cfg.music.supported_formats,
        recursive=cfg.music.scan_recursive,
    )
    if cfg.library.use_cache and not result.cancelled:
        library.save_library(result.index, get_cache_path())
    return result


def load_initial_library(cfg: Config) -> tuple[library.LibraryIndex, bool]:
    """
    Get the library to start with.

    Returns:
        (index, from_cache) - from_cache is True when the index came from the
        cache and may be stale
    """
    if cfg.library.use_cache:
        cached = library.load_library(get_cache_path())
        if cached is not None:
            return cached, True

    log("Scanning music library...")
    result = scan_library(cfg)
    log(f"Found {len(result.index)} tracks")
    if result.errors:
        log(f"{len(result.errors)} paths could not be read (see log)", "warning")
    return result.index, False


def _restore_session(
    orchestrator: PlaybackOrchestrator, index: library.LibraryIndex, resume: bool = True
) -> None:
    session = load_session(get_session_path())
    if session is None:
        return
    commands = session.restore_commands(index, resume=resume)
    for command in commands:
        orchestrator.submit(command)
    logger.info(f"Restored session with {len(session.queue)} queued tracks")


def resolve_start_file(
    file: str, index: library.LibraryIndex
) -> Optional[library.MetadataRecord]:
    """
    Find or read the record for a file given on the command line.

    Files outside the library are read with mutagen like a scanned file.

    Returns:
        The record, or None if the file cannot be played
    """
    path = Path(os.path.abspath(os.path.expanduser(file)))
    if not path.is_file():
        log(f"No such file: {file}", "error")
        return None

    record = index.lookup(library.track_id_for_path(str(path)))
    if record is not None:
        return record

    try:
        return library.extract_metadata(str(path))
    except OSError as e:
        log(f"Cannot read {file}: {e}", "error")
        return None


def _wait_for_signal(shutdown_event: threading.Event) -> None:
    def _handler(signum, frame) -> None:
        logger.info(f"Received signal {signum}")
        shutdown_event.set()

    previous = {
        sig: signal.signal(sig, _handler) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        log("Running headless - press Ctrl+C to exit")
        while not shutdown_event.wait(timeout=0.5):
            pass
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def run_player(cfg: Config, headless: bool = False, file: Optional[str] = None) -> int:
    """
    Run the player until the user quits.

    Args:
        cfg: Loaded configuration
        headless: Skip the terminal UI and wait for SIGINT/SIGTERM
        file: Audio file to play at startup instead of resuming the session

    Returns:
        Process exit code
    """
    config_module.ensure_directories()
    setup_logging(cfg, headless)

    if not check_mpv_available():
        log("mpv is not installed or not on PATH", "error")
        return 1

    index, from_cache = load_initial_library(cfg)

    # Tracks played from the command line but living outside the library roots
    extra_records: list[library.MetadataRecord] = []
    start_record = None
    if file is not None:
        start_record = resolve_start_file(file, index)
        if start_record is None:
            return 1
        if start_record.id not in index:
            extra_records.append(start_record)
            index = index.with_records(extra_records)

    backend = MpvBackend(socket_path=cfg.player.mpv_socket_path, volume=cfg.player.volume)
    orchestrator = PlaybackOrchestrator(
        backend,
        index,
        policy=PlaybackPolicy.from_config(cfg.player),
        volume=cfg.player.volume,
        mode=mode_from_config(cfg.player),
        stats=library.load_stats(get_stats_path()),
    )
    try:
        orchestrator.pipeline.start()
    except PipelineError as e:
        log(f"Could not start audio pipeline: {e}", "error")
        return 1

    shutdown_event = threading.Event()
    orchestrator.start()

    adapter: Optional[ProtocolAdapter] = None
    if cfg.ipc.enabled:
        adapter = ProtocolAdapter(orchestrator.publisher, orchestrator.submit)
        socket_path = Path(cfg.ipc.socket_path) if cfg.ipc.socket_path else None
        adapter.attach(SocketProtocolBackend(socket_path))

    if cfg.player.restore_session:
        _restore_session(orchestrator, index, resume=start_record is None)
    if start_record is not None:
        log(f"Playing {library.display_name(start_record)}")
        orchestrator.submit(PlayTrack(start_record.id))

    if from_cache and cfg.library.rescan_on_start:

        def _on_scan_complete(result: library.ScanResult) -> None:
            orchestrator.submit(LibraryUpdated(result.index.with_records(extra_records)))
            if cfg.library.use_cache:
                library.save_library(result.index, get_cache_path())

        library.start_background_scan(
            cfg.music.library_paths,
            _on_scan_complete,
            supported_formats=cfg.music.supported_formats,
            recursive=cfg.music.scan_recursive,
            cancel=shutdown_event,
        )

    try:
        if headless:
            _wait_for_signal(shutdown_event)
        else:
            from music_player.ui.blessed import run_interactive_ui

            run_interactive_ui(
                orchestrator.publisher,
                orchestrator.submit,
                refresh_rate=cfg.ui.refresh_rate,
                use_colors=cfg.ui.use_colors,
                score_cutoff=cfg.search.score_cutoff,
                shutdown_event=shutdown_event,
            )
    finally:
        shutdown_event.set()
        snapshot = orchestrator.publisher.current()
        if cfg.player.restore_session:
            save_session(SessionState.from_snapshot(snapshot), get_session_path())
        library.save_stats(snapshot.stats, get_stats_path())
        if adapter is not None:
            adapter.detach()
        orchestrator.request_shutdown()
        orchestrator.join(timeout=cfg.player.shutdown_timeout + 1.0)
        logger.info("Music Player exited")

    return 0
