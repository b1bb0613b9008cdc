"""UI state management - immutable state updates.

UIState holds only what the terminal needs between frames (view, selection,
search text, the visible notice). Player facts always come from the
published snapshot.
"""

from dataclasses import dataclass, replace
from time import time
from typing import Optional

from music_player.domain.library.index import DEFAULT_SCORE_CUTOFF, LibraryIndex
from music_player.domain.library.stats import SORT_FIELDS, sort_track_ids
from music_player.domain.playback.state import PlayerSnapshot

from .helpers.scrolling import calculate_scroll_offset, clamp_selection, move_selection

VIEWS = ("library", "queue", "search")

# Seconds a notice stays on screen
NOTICE_DURATION = 4.0


@dataclass(frozen=True)
class UIState:
    """UI-only state, replaced wholesale on every change."""

    view: str = "library"
    selected: int = 0
    scroll: int = 0
    search_query: str = ""
    search_typing: bool = False
    search_results: tuple[str, ...] = ()
    search_library: Optional[LibraryIndex] = None
    score_cutoff: float = DEFAULT_SCORE_CUTOFF
    sort_field: str = "score"
    sort_direction: str = "desc"  # 'asc' or 'desc'
    notice: Optional[str] = None
    notice_level: str = "info"
    notice_until: float = 0.0
    last_notice_seq: int = 0


def visible_track_ids(ui_state: UIState, snapshot: PlayerSnapshot) -> list[str]:
    """Track ids listed in the current view, top to bottom.

    The queue always shows play order; library and search follow the
    selected sort.
    """
    if ui_state.view == "queue":
        return [entry.track_id for entry in snapshot.queue]
    if ui_state.view == "search":
        track_ids = list(ui_state.search_results)
    else:
        track_ids = [record.id for record in snapshot.library.records_sorted()]
    return sort_track_ids(
        track_ids, ui_state.sort_field, ui_state.sort_direction, snapshot.library, snapshot.stats
    )


def selected_track_id(ui_state: UIState, snapshot: PlayerSnapshot) -> Optional[str]:
    items = visible_track_ids(ui_state, snapshot)
    if not items:
        return None
    return items[clamp_selection(ui_state.selected, len(items))]


def cycle_view(ui_state: UIState) -> UIState:
    view = VIEWS[(VIEWS.index(ui_state.view) + 1) % len(VIEWS)]
    return replace(ui_state, view=view, selected=0, scroll=0, search_typing=False)


def move(ui_state: UIState, delta: int, total_items: int) -> UIState:
    return replace(ui_state, selected=move_selection(ui_state.selected, delta, total_items))


def scroll_into_view(ui_state: UIState, visible_rows: int, total_items: int) -> UIState:
    """Clamp the selection and adjust the scroll offset for ``visible_rows``."""
    selected = clamp_selection(ui_state.selected, total_items)
    scroll = calculate_scroll_offset(selected, ui_state.scroll, visible_rows, total_items)
    if selected == ui_state.selected and scroll == ui_state.scroll:
        return ui_state
    return replace(ui_state, selected=selected, scroll=scroll)


def start_search(ui_state: UIState) -> UIState:
    return replace(ui_state, view="search", search_typing=True, selected=0, scroll=0)


def run_search(ui_state: UIState, library: LibraryIndex, query: str) -> UIState:
    """Set the query and recompute results against ``library``."""
    results = tuple(library.search(query, score_cutoff=ui_state.score_cutoff))
    return replace(
        ui_state,
        search_query=query,
        search_results=results,
        search_library=library,
        selected=0,
        scroll=0,
    )


def refresh_search(ui_state: UIState, library: LibraryIndex) -> UIState:
    """Re-run the query when a rescan replaced the library."""
    if ui_state.search_library is library:
        return ui_state
    results = tuple(library.search(ui_state.search_query, score_cutoff=ui_state.score_cutoff))
    return replace(ui_state, search_results=results, search_library=library)


def show_notice(ui_state: UIState, message: str, level: str = "info") -> UIState:
    return replace(
        ui_state, notice=message, notice_level=level, notice_until=time() + NOTICE_DURATION
    )


def absorb_snapshot_notice(ui_state: UIState, snapshot: PlayerSnapshot) -> UIState:
    """Show the orchestrator's notice once per sequence number."""
    notice = snapshot.notice
    if notice is None or notice.seq <= ui_state.last_notice_seq:
        return ui_state
    ui_state = show_notice(ui_state, notice.message, notice.level)
    return replace(ui_state, last_notice_seq=notice.seq)


def expire_notice(ui_state: UIState, now: Optional[float] = None) -> UIState:
    if ui_state.notice is None or (now if now is not None else time()) < ui_state.notice_until:
        return ui_state
    return replace(ui_state, notice=None)


def set_sort(ui_state: UIState, field: str) -> UIState:
    """Sort by ``field``; choosing the current field again flips direction."""
    if field not in SORT_FIELDS:
        return ui_state
    if field == ui_state.sort_field:
        direction = "asc" if ui_state.sort_direction == "desc" else "desc"
    else:
        direction = "desc"
    return replace(ui_state, sort_field=field, sort_direction=direction, selected=0, scroll=0)


def select_current_track(ui_state: UIState, snapshot: PlayerSnapshot) -> UIState:
    """Move the selection onto the playing track if the view lists it."""
    if ui_state.view == "queue":
        index = snapshot.current_position
    else:
        current = snapshot.state.current_track
        items = visible_track_ids(ui_state, snapshot)
        index = items.index(current) if current in items else None
    if index is None:
        return show_notice(ui_state, "Current track is not in this view")
    return replace(ui_state, selected=index)
