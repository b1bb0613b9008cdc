"""Tests for the media-control protocol adapter."""

import pytest

from music_player.core.exceptions import ProtocolFault
from music_player.domain.library.stats import LibraryStats
from music_player.domain.playback.commands import (
    Next,
    Pause,
    PlayTrack,
    SeekTo,
    SetMode,
    SetVolume,
    TogglePause,
)
from music_player.domain.playback.state import (
    PlaybackMode,
    PlayerSnapshot,
    PlayerState,
    PlayerStatus,
    QueueEntry,
    RepeatMode,
    ShuffleMode,
    SnapshotPublisher,
)
from music_player.protocol.adapter import (
    NO_TRACK_PATH,
    ProtocolAdapter,
    playback_status,
    track_id_from_uri,
    track_object_path,
)


class FakeProtocolBackend:
    def __init__(self):
        self.started = False
        self.stopped = False
        self.changes = []

    def start(self, adapter):
        self.started = True

    def stop(self):
        self.stopped = True

    def properties_changed(self, changed):
        self.changes.append(changed)


def playing_snapshot(library, record, position=50.0, status=PlayerStatus.PLAYING):
    return PlayerSnapshot(
        state=PlayerState(
            status=status,
            current_track=record.id,
            position=position,
            volume=40,
            mode=PlaybackMode(RepeatMode.QUEUE),
        ),
        queue=(QueueEntry(record.id, 0),),
        current_position=0,
        current_record=record,
        library=library,
    )


@pytest.fixture
def sent():
    return []


@pytest.fixture
def publisher(library):
    return SnapshotPublisher(PlayerSnapshot(state=PlayerState(), library=library))


@pytest.fixture
def adapter(publisher, sent):
    return ProtocolAdapter(publisher, sent.append)


class TestProperties:
    def test_idle_properties(self, adapter):
        properties = adapter.properties()
        assert properties["PlaybackStatus"] == "Stopped"
        assert properties["Metadata"] == {}
        assert properties["CanPause"] is False
        assert properties["CanPlay"] is False
        assert properties["Volume"] == 0.5

    def test_playing_properties(self, adapter, publisher, library, records):
        publisher.publish(playing_snapshot(library, records[0]))
        properties = adapter.properties()
        assert properties["PlaybackStatus"] == "Playing"
        assert properties["LoopStatus"] == "Playlist"
        assert properties["Position"] == 50_000_000
        assert properties["Metadata"]["mpris:trackid"] == track_object_path(records[0].id)
        assert properties["Metadata"]["mpris:length"] == 200_000_000
        assert properties["Metadata"]["xesam:artist"] == ["Band X"]
        assert properties["CanSeek"] is True

    def test_rating_and_play_count_in_metadata(self, adapter, publisher, library, records):
        stats = LibraryStats().with_rating(records[0].id, 4).with_play(records[0].id, 5.0)
        publisher.publish(playing_snapshot(library, records[0])._replace(stats=stats))
        metadata = adapter.properties()["Metadata"]
        assert metadata["xesam:userRating"] == 0.8
        assert metadata["xesam:useCount"] == 1

    def test_unrated_track_has_no_rating(self, adapter, publisher, library, records):
        publisher.publish(playing_snapshot(library, records[0]))
        assert "xesam:userRating" not in adapter.properties()["Metadata"]

    def test_unknown_property(self, adapter):
        with pytest.raises(ProtocolFault):
            adapter.get_property("Colour")

    def test_status_mapping(self):
        assert playback_status(PlayerStatus.LOADING) == "Playing"
        assert playback_status(PlayerStatus.SEEKING) == "Playing"
        assert playback_status(PlayerStatus.PAUSED) == "Paused"
        assert playback_status(PlayerStatus.ERROR) == "Stopped"
        assert playback_status(PlayerStatus.IDLE) == "Stopped"


class TestChangeSignals:
    def test_changes_are_forwarded(self, adapter, publisher, library, records):
        backend = FakeProtocolBackend()
        adapter.attach(backend)
        publisher.publish(playing_snapshot(library, records[0]))
        assert backend.started
        assert backend.changes[-1]["PlaybackStatus"] == "Playing"

    def test_position_only_updates_are_not_signalled(self, adapter, publisher, library, records):
        backend = FakeProtocolBackend()
        adapter.attach(backend)
        publisher.publish(playing_snapshot(library, records[0], position=10.0))
        count = len(backend.changes)
        publisher.publish(playing_snapshot(library, records[0], position=11.0))
        assert len(backend.changes) == count

    def test_detach_stops_backend(self, adapter, publisher, library, records):
        backend = FakeProtocolBackend()
        adapter.attach(backend)
        adapter.detach()
        publisher.publish(playing_snapshot(library, records[0]))
        assert backend.stopped
        assert backend.changes == []

    def test_failing_backend_does_not_raise(self, adapter, publisher, library, records):
        backend = FakeProtocolBackend()

        def _boom(changed):
            raise RuntimeError("bus gone")

        backend.properties_changed = _boom
        adapter.attach(backend)
        publisher.publish(playing_snapshot(library, records[0]))
        assert publisher.current().state.status is PlayerStatus.PLAYING


class TestMethods:
    def test_simple_methods_become_commands(self, adapter, sent):
        adapter.call("PlayPause")
        adapter.call("Pause")
        adapter.call("Next")
        assert sent == [TogglePause(), Pause(), Next()]

    def test_unknown_method(self, adapter):
        with pytest.raises(ProtocolFault):
            adapter.call("Explode")

    def test_bad_argument_count(self, adapter):
        with pytest.raises(ProtocolFault):
            adapter.call("Seek", [])

    def test_relative_seek(self, adapter, publisher, sent, library, records):
        publisher.publish(playing_snapshot(library, records[0], position=50.0))
        adapter.call("Seek", [10_000_000])
        adapter.call("Seek", [-80_000_000])
        assert sent == [SeekTo(60.0), SeekTo(0.0)]

    def test_seek_past_end_goes_to_next(self, adapter, publisher, sent, library, records):
        publisher.publish(playing_snapshot(library, records[0], position=190.0))
        adapter.call("Seek", [20_000_000])
        assert sent == [Next()]

    def test_seek_while_idle_is_ignored(self, adapter, sent):
        adapter.call("Seek", [1_000_000])
        assert sent == []

    def test_set_position_for_stale_track_is_ignored(self, adapter, publisher, sent, library, records):
        publisher.publish(playing_snapshot(library, records[0]))
        adapter.call("SetPosition", [track_object_path(records[1].id), 5_000_000])
        adapter.call("SetPosition", [NO_TRACK_PATH, 5_000_000])
        assert sent == []

    def test_set_position(self, adapter, publisher, sent, library, records):
        publisher.publish(playing_snapshot(library, records[0]))
        adapter.call("SetPosition", [track_object_path(records[0].id), 5_000_000])
        adapter.call("SetPosition", [track_object_path(records[0].id), 500_000_000])
        assert sent == [SeekTo(5.0)]

    def test_non_numeric_offset(self, adapter, publisher, library, records):
        publisher.publish(playing_snapshot(library, records[0]))
        with pytest.raises(ProtocolFault):
            adapter.call("Seek", ["ten"])

    def test_open_uri(self, adapter, sent, records):
        adapter.call("OpenUri", [f"file://{records[2].path}"])
        assert sent == [PlayTrack(records[2].id)]

    def test_open_unknown_uri(self, adapter):
        with pytest.raises(ProtocolFault):
            adapter.call("OpenUri", ["file:///nowhere/missing.mp3"])

    def test_set_volume_is_scaled_and_clamped(self, adapter, sent):
        adapter.call("SetVolume", [0.25])
        adapter.call("SetVolume", [3])
        assert sent == [SetVolume(25), SetVolume(100)]

    def test_loop_status_and_shuffle(self, adapter, sent):
        adapter.call("SetLoopStatus", ["Track"])
        adapter.call("SetShuffle", [True])
        assert sent == [
            SetMode(PlaybackMode(RepeatMode.TRACK)),
            SetMode(PlaybackMode(shuffle=ShuffleMode.ON)),
        ]

    def test_invalid_loop_status(self, adapter):
        with pytest.raises(ProtocolFault):
            adapter.call("SetLoopStatus", ["Forever"])


class TestUris:
    def test_track_path_and_bare_id(self, records):
        assert track_id_from_uri(track_object_path(records[0].id)) == records[0].id
        assert track_id_from_uri(records[0].id) == records[0].id

    def test_escaped_file_uri(self):
        assert track_id_from_uri("file:///m/a%20b.mp3") == track_id_from_uri("file:///m/a b.mp3")
