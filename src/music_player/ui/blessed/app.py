"""Main event loop and entry point for the blessed UI."""

import sys
import threading
from typing import Callable, Optional

from blessed import Terminal
from loguru import logger

from music_player.core.output import clear_ui_mode, drain_pending_messages, set_ui_mode
from music_player.domain.playback.commands import Command
from music_player.domain.playback.state import SnapshotPublisher

from .keys import handle_key, parse_key
from .rendering import list_rows, render
from .state import (
    UIState,
    absorb_snapshot_notice,
    expire_notice,
    refresh_search,
    scroll_into_view,
    show_notice,
    visible_track_ids,
)


def run_interactive_ui(
    publisher: SnapshotPublisher,
    submit: Callable[[Command], None],
    refresh_rate: int = 10,
    use_colors: bool = True,
    score_cutoff: float = 60.0,
    shutdown_event: Optional[threading.Event] = None,
) -> None:
    """
    Run the interactive UI until the user quits or shutdown is signalled.

    Args:
        publisher: Source of player snapshots
        submit: Sends a Command to the orchestrator
        refresh_rate: Frames per second (also the key polling rate)
        use_colors: Style output with terminal colors
        score_cutoff: Minimum fuzzy score for search results
        shutdown_event: Broadcast shutdown signal
    """
    term = Terminal()
    set_ui_mode()
    try:
        with term.fullscreen(), term.cbreak(), term.hidden_cursor():
            main_loop(
                term,
                publisher,
                submit,
                UIState(score_cutoff=score_cutoff),
                refresh_rate,
                use_colors,
                shutdown_event,
            )
    except KeyboardInterrupt:
        logger.info("Ctrl+C detected - leaving UI")
    finally:
        clear_ui_mode()


def main_loop(
    term: Terminal,
    publisher: SnapshotPublisher,
    submit: Callable[[Command], None],
    ui_state: UIState,
    refresh_rate: int,
    use_colors: bool,
    shutdown_event: Optional[threading.Event],
) -> UIState:
    """
    Render, read one key, repeat.

    Returns:
        Final UI state
    """
    frame_timeout = 1.0 / max(1, refresh_rate)
    last_frame = None
    last_size = None

    while shutdown_event is None or not shutdown_event.is_set():
        snapshot = publisher.current()

        for message, level in drain_pending_messages():
            ui_state = show_notice(ui_state, message, level)
        ui_state = absorb_snapshot_notice(ui_state, snapshot)
        ui_state = expire_notice(ui_state)
        if ui_state.view == "search":
            ui_state = refresh_search(ui_state, snapshot.library)
        ui_state = scroll_into_view(
            ui_state, list_rows(term), len(visible_track_ids(ui_state, snapshot))
        )

        size = (term.width, term.height)
        if (snapshot, ui_state) != last_frame or size != last_size:
            if size != last_size:
                sys.stdout.write(term.clear)
            render(term, snapshot, ui_state, use_colors)
            sys.stdout.flush()
            last_frame = (snapshot, ui_state)
            last_size = size

        key = term.inkey(timeout=frame_timeout)
        if not key:
            continue

        ui_state, command, should_quit = handle_key(ui_state, parse_key(key), snapshot)
        if command is not None:
            submit(command)
        if should_quit:
            break

    return ui_state
