"""Keyboard handling: keystrokes to UI state changes and playback commands."""

from dataclasses import replace
from typing import Any, Optional

from blessed.keyboard import Keystroke

from music_player.domain.playback.commands import (
    Command,
    EnqueueTrack,
    Next,
    PlayQueueEntry,
    PlayTrack,
    Previous,
    RateTrack,
    RemoveFromQueue,
    Reorder,
    SeekTo,
    SetMode,
    SetVolume,
    Stop,
    TogglePause,
)
from music_player.domain.playback.state import PlayerSnapshot

from .state import (
    UIState,
    cycle_view,
    move,
    run_search,
    select_current_track,
    selected_track_id,
    set_sort,
    start_search,
    visible_track_ids,
)

SEEK_STEP = 5.0
VOLUME_STEP = 5
PAGE_SIZE = 10

KEY_HELP = (
    "space play/pause  n/p next/prev  s stop  +/- vol  ←/→ seek  r repeat  z shuffle  "
    "enter play  a add  d remove  J/K move  g current  0-5 rate  "
    "S/T/D/R/L sort score/title/date/rating/played  tab view  / search  q quit"
)

# Uppercase keys choose a sort; repeating one flips its direction
SORT_KEYS = {"S": "score", "T": "title", "D": "date", "R": "rating", "L": "last_played"}
RATING_KEYS = ("0", "1", "2", "3", "4", "5")


def parse_key(key: Keystroke) -> dict[str, Any]:
    """
    Parse keystroke into event dictionary.

    Args:
        key: blessed Keystroke

    Returns:
        Event dictionary with ``type`` and, for printable keys, ``char``
    """
    event = {
        "type": "unknown",
        "name": key.name if hasattr(key, "name") else None,
        "char": str(key) if key and key.isprintable() else None,
    }

    if key.name == "KEY_ENTER" or key == "\n" or key == "\r":
        event["type"] = "enter"
    elif key.name == "KEY_ESCAPE":
        event["type"] = "escape"
    elif key.name == "KEY_BACKSPACE" or key == "\x7f":
        event["type"] = "backspace"
    elif key.name == "KEY_TAB" or key == "\t":
        event["type"] = "tab"
    elif key.name == "KEY_UP":
        event["type"] = "arrow_up"
    elif key.name == "KEY_DOWN":
        event["type"] = "arrow_down"
    elif key.name == "KEY_LEFT":
        event["type"] = "arrow_left"
    elif key.name == "KEY_RIGHT":
        event["type"] = "arrow_right"
    elif key.name == "KEY_PGUP":
        event["type"] = "page_up"
    elif key.name == "KEY_PGDOWN":
        event["type"] = "page_down"
    elif key == "\x03":  # Ctrl+C
        event["type"] = "ctrl_c"
    elif key and key.isprintable():
        event["type"] = "char"

    return event


def handle_key(
    ui_state: UIState, event: dict[str, Any], snapshot: PlayerSnapshot
) -> tuple[UIState, Optional[Command], bool]:
    """
    Map one parsed key event to a UI change and/or a playback command.

    Args:
        ui_state: Current UI state
        event: Output of parse_key
        snapshot: Latest published player snapshot

    Returns:
        (new_ui_state, command_or_None, should_quit)
    """
    event_type = event["type"]

    if event_type == "ctrl_c":
        return ui_state, None, True

    total = len(visible_track_ids(ui_state, snapshot))
    if event_type == "arrow_up":
        return move(ui_state, -1, total), None, False
    if event_type == "arrow_down":
        return move(ui_state, 1, total), None, False
    if event_type == "page_up":
        return move(ui_state, -PAGE_SIZE, total), None, False
    if event_type == "page_down":
        return move(ui_state, PAGE_SIZE, total), None, False

    if ui_state.search_typing:
        return _handle_search_input(ui_state, event, snapshot), None, False

    state = snapshot.state

    if event_type == "tab":
        return cycle_view(ui_state), None, False
    if event_type == "enter":
        if ui_state.view == "queue":
            if not total:
                return ui_state, None, False
            return ui_state, PlayQueueEntry(min(ui_state.selected, total - 1)), False
        track_id = selected_track_id(ui_state, snapshot)
        return ui_state, PlayTrack(track_id) if track_id else None, False
    if event_type == "arrow_left":
        if not state.is_loaded:
            return ui_state, None, False
        return ui_state, SeekTo(max(0.0, state.position - SEEK_STEP)), False
    if event_type == "arrow_right":
        if not state.is_loaded:
            return ui_state, None, False
        return ui_state, SeekTo(state.position + SEEK_STEP), False
    if event_type != "char":
        return ui_state, None, False

    char = event["char"]
    if char == "q":
        return ui_state, None, True
    if char == " ":
        return ui_state, TogglePause(), False
    if char == "n":
        return ui_state, Next(), False
    if char == "p":
        return ui_state, Previous(), False
    if char == "s":
        return ui_state, Stop(), False
    if char in ("+", "="):
        return ui_state, SetVolume(min(100, state.volume + VOLUME_STEP)), False
    if char == "-":
        return ui_state, SetVolume(max(0, state.volume - VOLUME_STEP)), False
    if char == "r":
        return ui_state, SetMode(state.mode.next_repeat()), False
    if char == "z":
        return ui_state, SetMode(state.mode.toggle_shuffle()), False
    if char == "j":
        return move(ui_state, 1, total), None, False
    if char == "k":
        return move(ui_state, -1, total), None, False
    if char == "/":
        return start_search(ui_state), None, False
    if char == "g":
        return select_current_track(ui_state, snapshot), None, False
    if char in SORT_KEYS:
        return set_sort(ui_state, SORT_KEYS[char]), None, False
    if char in RATING_KEYS:
        track_id = selected_track_id(ui_state, snapshot)
        return ui_state, RateTrack(track_id, int(char)) if track_id else None, False
    if char == "a":
        if ui_state.view == "queue":
            return ui_state, None, False
        track_id = selected_track_id(ui_state, snapshot)
        return ui_state, EnqueueTrack(track_id) if track_id else None, False

    if ui_state.view == "queue" and total:
        selected = min(ui_state.selected, total - 1)
        if char == "d":
            return ui_state, RemoveFromQueue(selected), False
        if char == "J" and selected + 1 < total:
            return replace(ui_state, selected=selected + 1), Reorder(selected, selected + 1), False
        if char == "K" and selected > 0:
            return replace(ui_state, selected=selected - 1), Reorder(selected, selected - 1), False

    return ui_state, None, False


def _handle_search_input(
    ui_state: UIState, event: dict[str, Any], snapshot: PlayerSnapshot
) -> UIState:
    event_type = event["type"]
    if event_type in ("enter", "escape", "tab"):
        return replace(ui_state, search_typing=False)
    if event_type == "backspace":
        return run_search(ui_state, snapshot.library, ui_state.search_query[:-1])
    if event_type == "char":
        # New text ranks by score again
        ui_state = replace(ui_state, sort_field="score", sort_direction="desc")
        return run_search(ui_state, snapshot.library, ui_state.search_query + event["char"])
    return ui_state
