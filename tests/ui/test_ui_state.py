"""Tests for UI state transitions and list scrolling helpers."""

from dataclasses import replace

from music_player.domain.library.index import LibraryIndex
from music_player.domain.library.stats import LibraryStats
from music_player.domain.playback.state import (
    Notice,
    PlayerSnapshot,
    PlayerState,
    PlayerStatus,
    QueueEntry,
)
from music_player.ui.blessed.helpers.scrolling import (
    calculate_scroll_offset,
    clamp_selection,
    move_selection,
)
from music_player.ui.blessed.state import (
    UIState,
    absorb_snapshot_notice,
    expire_notice,
    refresh_search,
    run_search,
    scroll_into_view,
    select_current_track,
    selected_track_id,
    set_sort,
    visible_track_ids,
)


class TestScrolling:
    """Scroll offset and selection helpers."""

    def test_no_scroll_when_everything_fits(self):
        assert calculate_scroll_offset(4, 0, 10, 5) == 0

    def test_scroll_down_to_selection(self):
        assert calculate_scroll_offset(15, 0, 10, 20) == 6

    def test_scroll_up_to_selection(self):
        assert calculate_scroll_offset(2, 10, 10, 20) == 2

    def test_no_blank_rows_at_bottom(self):
        assert calculate_scroll_offset(19, 15, 10, 20) == 10

    def test_move_selection(self):
        assert move_selection(9, 1, 10) == 9
        assert move_selection(9, 1, 10, wrap=True) == 0
        assert move_selection(0, -5, 0) == 0

    def test_clamp_selection(self):
        assert clamp_selection(7, 3) == 2
        assert clamp_selection(-1, 3) == 0


class TestViews:
    def test_library_view_lists_sorted_records(self, library, records):
        snapshot = PlayerSnapshot(state=PlayerState(), library=library)
        assert visible_track_ids(UIState(), snapshot) == [record.id for record in records]

    def test_selection_is_clamped(self, library, records):
        snapshot = PlayerSnapshot(state=PlayerState(), library=library)
        assert selected_track_id(UIState(selected=10), snapshot) == records[2].id

    def test_empty_queue_has_no_selection(self, library):
        snapshot = PlayerSnapshot(state=PlayerState(), library=library)
        assert selected_track_id(UIState(view="queue"), snapshot) is None

    def test_scroll_into_view_returns_same_state_when_unchanged(self):
        ui_state = UIState(selected=1)
        assert scroll_into_view(ui_state, 10, 3) is ui_state


class TestSearch:
    def test_rescan_reruns_query(self, library, records):
        ui_state = run_search(UIState(), library, "beta")
        assert records[1].id in ui_state.search_results

        smaller = LibraryIndex([records[0], records[2]])
        refreshed = refresh_search(ui_state, smaller)
        assert records[1].id not in refreshed.search_results
        assert refreshed.search_library is smaller

    def test_same_library_is_not_searched_again(self, library):
        ui_state = run_search(UIState(), library, "beta")
        assert refresh_search(ui_state, library) is ui_state


class TestNotices:
    def test_snapshot_notice_shown_once(self, library):
        snapshot = PlayerSnapshot(
            state=PlayerState(), library=library, notice=Notice(1, "warning", "Queue is empty")
        )
        ui_state = absorb_snapshot_notice(UIState(), snapshot)
        assert ui_state.notice == "Queue is empty"
        assert ui_state.notice_level == "warning"

        dismissed = replace(ui_state, notice=None)
        assert absorb_snapshot_notice(dismissed, snapshot).notice is None

    def test_notice_expires(self):
        ui_state = UIState(notice="hello", notice_until=100.0)
        assert expire_notice(ui_state, now=99.0).notice == "hello"
        assert expire_notice(ui_state, now=100.0).notice is None


class TestSorting:
    def test_new_field_starts_descending(self):
        ui_state = set_sort(UIState(selected=2), "rating")
        assert (ui_state.sort_field, ui_state.sort_direction) == ("rating", "desc")
        assert ui_state.selected == 0

    def test_same_field_flips_direction(self):
        ui_state = set_sort(set_sort(UIState(), "title"), "title")
        assert ui_state.sort_direction == "asc"
        assert set_sort(ui_state, "title").sort_direction == "desc"

    def test_unknown_field_is_ignored(self):
        ui_state = UIState()
        assert set_sort(ui_state, "bpm") is ui_state

    def test_library_view_follows_sort(self, library, records):
        stats = LibraryStats().with_rating(records[1].id, 5).with_rating(records[2].id, 1)
        snapshot = PlayerSnapshot(state=PlayerState(), library=library, stats=stats)
        ui_state = UIState(sort_field="rating")
        assert visible_track_ids(ui_state, snapshot) == [records[1].id, records[2].id, records[0].id]

    def test_queue_view_keeps_play_order(self, library, records):
        snapshot = PlayerSnapshot(
            state=PlayerState(),
            queue=tuple(QueueEntry(r.id, i) for i, r in enumerate(reversed(records))),
            library=library,
        )
        ui_state = UIState(view="queue", sort_field="title", sort_direction="asc")
        assert visible_track_ids(ui_state, snapshot) == [r.id for r in reversed(records)]


class TestJumpToCurrent:
    def test_library_view(self, library, records):
        snapshot = PlayerSnapshot(
            state=PlayerState(status=PlayerStatus.PLAYING, current_track=records[2].id),
            library=library,
        )
        assert select_current_track(UIState(), snapshot).selected == 2

    def test_queue_view_uses_entry_position(self, library, records):
        a, b = records[0], records[1]
        snapshot = PlayerSnapshot(
            state=PlayerState(status=PlayerStatus.PLAYING, current_track=a.id),
            queue=(QueueEntry(a.id, 0), QueueEntry(b.id, 1), QueueEntry(a.id, 2)),
            current_position=2,
            library=library,
        )
        assert select_current_track(UIState(view="queue"), snapshot).selected == 2

    def test_track_missing_from_view(self, library, records):
        snapshot = PlayerSnapshot(
            state=PlayerState(status=PlayerStatus.PLAYING, current_track=records[0].id),
            library=library,
        )
        ui_state = UIState(view="search", search_results=(records[1].id,), selected=0)
        ui_state = select_current_track(ui_state, snapshot)
        assert ui_state.selected == 0
        assert ui_state.notice == "Current track is not in this view"
