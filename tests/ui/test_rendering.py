"""Tests for pure rendering helpers."""

from music_player.domain.library.stats import TrackStats
from music_player.domain.playback.state import (
    ErrorKind,
    PlayerSnapshot,
    PlayerState,
    PlayerStatus,
    QueueEntry,
)
from music_player.ui.blessed.rendering import format_row, format_sort, format_status_line
from music_player.ui.blessed.state import UIState


class TestFormatRow:
    def test_duration_is_right_aligned(self, records):
        row = format_row(records[0], records[0].id, 40)
        assert len(row) == 40
        assert row.startswith("Band X - Alpha  (First)")
        assert row.endswith("03:20")

    def test_long_names_are_truncated(self, records):
        row = format_row(records[0], records[0].id, 12)
        assert row.endswith("03:20")
        assert len(row) == 12

    def test_missing_record(self):
        assert format_row(None, "abc", 40) == "<missing abc>"

    def test_rating_stars_before_duration(self, records):
        row = format_row(records[0], records[0].id, 60, TrackStats(rating=3))
        assert len(row) == 60
        assert row.endswith("★★★☆☆  03:20")

    def test_unrated_row_is_unchanged(self, records):
        assert format_row(records[0], records[0].id, 40, TrackStats()) == format_row(
            records[0], records[0].id, 40
        )


class TestStatusLine:
    def test_idle(self):
        line = format_status_line(PlayerSnapshot(state=PlayerState()))
        assert line.startswith("idle  vol 50%")

    def test_error_kind_and_queue_position(self, records):
        snapshot = PlayerSnapshot(
            state=PlayerState(
                status=PlayerStatus.ERROR,
                current_track=records[1].id,
                error=ErrorKind.DECODE_FAILURE,
            ),
            queue=(QueueEntry(records[0].id, 0), QueueEntry(records[1].id, 1)),
            current_position=1,
        )
        line = format_status_line(snapshot)
        assert line.startswith("error (decode failure)")
        assert line.endswith("[2/2]")


class TestSortIndicator:
    def test_default(self):
        assert format_sort(UIState()) == "sort: score ↓"

    def test_ascending_last_played(self):
        assert format_sort(UIState(sort_field="last_played", sort_direction="asc")) == "sort: last played ↑"
