"""Tests for session save/restore."""

import json

from music_player.domain.playback.commands import EnqueueTrack, PlayTrack, SetMode, SetVolume
from music_player.domain.playback.session import (
    SESSION_VERSION,
    SessionState,
    clear_session,
    load_session,
    save_session,
)
from music_player.domain.playback.state import (
    PlaybackMode,
    PlayerSnapshot,
    PlayerState,
    PlayerStatus,
    QueueEntry,
    RepeatMode,
    ShuffleMode,
)


class TestSessionState:
    def test_from_snapshot(self, records):
        snapshot = PlayerSnapshot(
            state=PlayerState(
                status=PlayerStatus.PAUSED,
                current_track=records[1].id,
                position=42.0,
                volume=70,
                mode=PlaybackMode(RepeatMode.TRACK, ShuffleMode.ON),
            ),
            queue=(QueueEntry(records[0].id, 0), QueueEntry(records[1].id, 1)),
            current_position=1,
        )
        session = SessionState.from_snapshot(snapshot)
        assert session.queue == [records[0].id, records[1].id]
        assert session.current_track == records[1].id
        assert session.position == 42.0
        assert session.repeat == "track"
        assert session.shuffle is True

    def test_restore_commands_skip_missing_tracks(self, library, records):
        session = SessionState(
            queue=[records[0].id, "gone", records[2].id],
            current_track=records[2].id,
            position=12.0,
            volume=30,
            repeat="off",
        )
        assert session.restore_commands(library) == [
            SetVolume(30),
            SetMode(PlaybackMode()),
            EnqueueTrack(records[0].id),
            EnqueueTrack(records[2].id),
            PlayTrack(records[2].id, start=12.0),
        ]

    def test_missing_current_track_is_not_played(self, library, records):
        session = SessionState(queue=[records[0].id], current_track="gone")
        commands = session.restore_commands(library)
        assert not any(isinstance(command, PlayTrack) for command in commands)

    def test_restore_without_resuming(self, library, records):
        session = SessionState(queue=[records[0].id], current_track=records[0].id, position=5.0)
        commands = session.restore_commands(library, resume=False)
        assert EnqueueTrack(records[0].id) in commands
        assert not any(isinstance(command, PlayTrack) for command in commands)


class TestSessionFile:
    def test_save_and_load(self, tmp_path, records):
        path = tmp_path / "session.json"
        session = SessionState(queue=[records[0].id], current_track=records[0].id, position=5.5)
        assert save_session(session, path)
        assert load_session(path) == session

    def test_missing_file(self, tmp_path):
        assert load_session(tmp_path / "nope.json") is None

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        assert load_session(path) is None

    def test_wrong_version(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"version": SESSION_VERSION + 1, "queue": []}))
        assert load_session(path) is None

    def test_bad_repeat_value(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text(json.dumps({"version": SESSION_VERSION, "repeat": "sometimes"}))
        assert load_session(path) is None

    def test_clear(self, tmp_path):
        path = tmp_path / "session.json"
        save_session(SessionState(), path)
        assert clear_session(path) is True
        assert not path.exists()
        assert clear_session(path) is False
