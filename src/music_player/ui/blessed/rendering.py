"""Dashboard and list rendering functions."""

from typing import Optional

from blessed import Terminal

from music_player.domain.library.metadata import display_name, format_time
from music_player.domain.library.models import MetadataRecord
from music_player.domain.library.stats import MAX_RATING, TrackStats
from music_player.domain.playback.state import PlayerSnapshot, PlayerStatus

from .helpers import paint, write_at
from .keys import KEY_HELP
from .state import VIEWS, UIState, visible_track_ids

# Rows used above and below the track list
HEADER_ROWS = 5
FOOTER_ROWS = 2

STATUS_COLORS = {
    PlayerStatus.PLAYING: "green",
    PlayerStatus.PAUSED: "yellow",
    PlayerStatus.LOADING: "cyan",
    PlayerStatus.SEEKING: "cyan",
    PlayerStatus.ERROR: "red",
}

NOTICE_COLORS = {"warning": "yellow", "error": "red"}


def list_rows(term: Terminal) -> int:
    """Rows available for the track list."""
    return max(1, term.height - HEADER_ROWS - FOOTER_ROWS)


def create_progress_bar(
    position: float, duration: Optional[float], width: int, term: Terminal, colors: bool = True
) -> str:
    """Progress bar followed by ``elapsed / total``."""
    times = f" {format_time(position)} / {format_time(duration)}"
    bar_width = max(10, width - len(times) - 2)
    filled = 0
    if duration:
        filled = int(bar_width * min(position / duration, 1.0))
    return (
        paint(term, "green", "█" * filled, colors)
        + paint(term, "white", "░" * (bar_width - filled), colors)
        + times
    )


def format_status_line(snapshot: PlayerSnapshot) -> str:
    state = snapshot.state
    status = state.status.value
    if state.error is not None:
        status = f"{status} ({state.error.value.replace('_', ' ')})"
    queue_info = ""
    if snapshot.current_position is not None:
        queue_info = f"  [{snapshot.current_position + 1}/{len(snapshot.queue)}]"
    return (
        f"{status}  vol {state.volume}%  repeat {state.mode.repeat.value}"
        f"  shuffle {state.mode.shuffle.value}{queue_info}"
    )


def format_rating(rating: Optional[int]) -> str:
    if rating is None:
        return ""
    return "★" * rating + "☆" * (MAX_RATING - rating)


def format_row(
    record: Optional[MetadataRecord],
    track_id: str,
    width: int,
    stats: Optional[TrackStats] = None,
) -> str:
    if record is None:
        return f"<missing {track_id}>"[:width]
    suffix = format_time(record.duration)
    if stats is not None and stats.rating is not None:
        suffix = f"{format_rating(stats.rating)}  {suffix}"
    name = display_name(record)
    album = f"  ({record.album})" if record.album else ""
    text = f"{name}{album}"
    room = max(0, width - len(suffix) - 2)
    return f"{text[:room]:<{room}}  {suffix}"


def format_sort(ui_state: UIState) -> str:
    arrow = "↓" if ui_state.sort_direction == "desc" else "↑"
    return f"sort: {ui_state.sort_field.replace('_', ' ')} {arrow}"


def render(term: Terminal, snapshot: PlayerSnapshot, ui_state: UIState, colors: bool = True) -> None:
    """Draw a full frame."""
    width = term.width
    state = snapshot.state
    record = snapshot.current_record

    header = paint(term, "bold_cyan", "♪ Music Player", colors)
    write_at(term, 0, 0, header)

    if record is not None:
        now_playing = display_name(record)
        if record.album:
            now_playing += f" · {record.album}"
    else:
        now_playing = "Nothing playing"
    write_at(term, 0, 1, now_playing[:width])

    duration = record.duration if record else None
    write_at(term, 0, 2, create_progress_bar(state.position, duration, width, term, colors))

    status_color = STATUS_COLORS.get(state.status, "white")
    write_at(term, 0, 3, paint(term, status_color, format_status_line(snapshot)[:width], colors))

    tabs = []
    for view in VIEWS:
        label = f" {view} "
        if view == "search" and ui_state.search_query:
            label = f" search: {ui_state.search_query} "
        if view == ui_state.view:
            label = paint(term, "reverse", label, colors)
        tabs.append(label)
    cursor = "▏" if ui_state.search_typing else ""
    sort = "" if ui_state.view == "queue" else "  " + format_sort(ui_state)
    write_at(term, 0, 4, " ".join(tabs) + cursor + sort)

    render_list(term, snapshot, ui_state, HEADER_ROWS, list_rows(term), colors)

    notice = ""
    if ui_state.notice:
        notice = paint(
            term, NOTICE_COLORS.get(ui_state.notice_level, "white"), ui_state.notice[:width], colors
        )
    write_at(term, 0, term.height - 2, notice)
    write_at(term, 0, term.height - 1, paint(term, "dim", KEY_HELP[:width], colors))


def render_list(
    term: Terminal,
    snapshot: PlayerSnapshot,
    ui_state: UIState,
    y_start: int,
    rows: int,
    colors: bool = True,
) -> None:
    """Draw the library, queue or search list with the selection highlighted."""
    items = visible_track_ids(ui_state, snapshot)
    library = snapshot.library
    width = term.width

    for row in range(rows):
        index = ui_state.scroll + row
        y = y_start + row
        if index >= len(items):
            write_at(term, 0, y, "")
            continue

        track_id = items[index]
        playing = (
            index == snapshot.current_position
            if ui_state.view == "queue"
            else track_id == snapshot.state.current_track
        )
        marker = "▶ " if playing else "  "
        line = marker + format_row(
            library.lookup(track_id), track_id, width - len(marker), snapshot.stats.get(track_id)
        )
        if index == ui_state.selected:
            line = paint(term, "reverse", line, colors)
        elif playing:
            line = paint(term, "green", line, colors)
        write_at(term, 0, y, line)

    if not items:
        empty = {
            "library": "Library is empty",
            "queue": "Queue is empty (press a on a track to add it)",
            "search": "No matches" if ui_state.search_query else "Type to search",
        }[ui_state.view]
        write_at(term, 2, y_start, paint(term, "dim", empty, colors))
