"""
Media-control protocol adapter.

Exposes the MPRIS-style property and method surface on top of published
snapshots. Every read is served from a single snapshot, and every method
becomes a Command on the orchestrator channel; the adapter never touches
PlayerState itself.
"""

from typing import Any, Callable, Optional, Protocol
from urllib.parse import unquote, urlparse

from loguru import logger

from music_player.core.exceptions import ProtocolFault
from music_player.domain.library.models import MetadataRecord, track_id_for_path
from music_player.domain.library.stats import MAX_RATING, TrackStats
from music_player.domain.playback.commands import (
    Command,
    Next,
    Pause,
    Play,
    PlayTrack,
    Previous,
    SeekTo,
    SetMode,
    SetVolume,
    Stop,
    TogglePause,
)
from music_player.domain.playback.state import (
    PlayerSnapshot,
    PlayerStatus,
    RepeatMode,
    ShuffleMode,
    SnapshotPublisher,
)

IDENTITY = "Music Player"
TRACK_PATH_PREFIX = "/org/musicplayer/track/"
NO_TRACK_PATH = "/org/mpris/MediaPlayer2/TrackList/NoTrack"

MICROSECONDS = 1_000_000

# Position moves continuously; clients poll it instead of receiving changes
UNSIGNALLED_PROPERTIES = frozenset({"Position"})

LOOP_STATUS = {
    RepeatMode.OFF: "None",
    RepeatMode.TRACK: "Track",
    RepeatMode.QUEUE: "Playlist",
}

_PLAYING_STATUSES = frozenset({PlayerStatus.LOADING, PlayerStatus.PLAYING, PlayerStatus.SEEKING})


class ProtocolBackend(Protocol):
    """Transport that carries the property/method surface to clients."""

    def start(self, adapter: "ProtocolAdapter") -> None: ...

    def stop(self) -> None: ...

    def properties_changed(self, changed: dict[str, Any]) -> None: ...


def playback_status(status: PlayerStatus) -> str:
    """Map a PlayerStatus onto the protocol's Playing/Paused/Stopped."""
    if status in _PLAYING_STATUSES:
        return "Playing"
    if status is PlayerStatus.PAUSED:
        return "Paused"
    return "Stopped"


def track_object_path(track_id: Optional[str]) -> str:
    return f"{TRACK_PATH_PREFIX}{track_id}" if track_id else NO_TRACK_PATH


def to_microseconds(seconds: Optional[float]) -> int:
    return int(round((seconds or 0.0) * MICROSECONDS))


def metadata_for(
    record: Optional[MetadataRecord], stats: Optional[TrackStats] = None
) -> dict[str, Any]:
    """Protocol Metadata map for the current track (empty when none)."""
    if record is None:
        return {}
    metadata: dict[str, Any] = {
        "mpris:trackid": track_object_path(record.id),
        "xesam:title": record.title,
        "xesam:artist": [record.artist] if record.artist else [],
        "xesam:url": f"file://{record.path}",
    }
    if record.duration is not None:
        metadata["mpris:length"] = to_microseconds(record.duration)
    if record.album:
        metadata["xesam:album"] = record.album
    if record.track_no is not None:
        metadata["xesam:trackNumber"] = record.track_no
    if stats is not None:
        if stats.rating is not None:
            metadata["xesam:userRating"] = stats.rating / MAX_RATING
        if stats.play_count:
            metadata["xesam:useCount"] = stats.play_count
    return metadata


def track_id_from_uri(uri: str) -> str:
    """Resolve an OpenUri argument to a track id.

    Accepts ``file://`` URIs, track object paths and bare track ids.
    """
    if uri.startswith("file://"):
        return track_id_for_path(unquote(urlparse(uri).path))
    if uri.startswith(TRACK_PATH_PREFIX):
        return uri[len(TRACK_PATH_PREFIX):]
    return uri


class ProtocolAdapter:
    """Bridge between the snapshot publisher and a ProtocolBackend."""

    def __init__(self, publisher: SnapshotPublisher, submit: Callable[[Command], None]):
        self._publisher = publisher
        self._submit = submit
        self._backend: Optional[ProtocolBackend] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._last_properties: dict[str, Any] = self.properties()
        self._methods: dict[str, Callable[..., str]] = {
            "Play": self.play,
            "Pause": self.pause,
            "PlayPause": self.play_pause,
            "Stop": self.stop,
            "Next": self.next,
            "Previous": self.previous,
            "Seek": self.seek,
            "SetPosition": self.set_position,
            "OpenUri": self.open_uri,
            "SetVolume": self.set_volume,
            "SetLoopStatus": self.set_loop_status,
            "SetShuffle": self.set_shuffle,
        }

    @property
    def methods(self) -> list[str]:
        return sorted(self._methods)

    def attach(self, backend: ProtocolBackend) -> None:
        """Start ``backend`` and forward property changes to it."""
        self._backend = backend
        backend.start(self)
        self._unsubscribe = self._publisher.subscribe(self._on_snapshot)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._backend is not None:
            self._backend.stop()
            self._backend = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    def snapshot(self) -> PlayerSnapshot:
        return self._publisher.current()

    def properties(self, snapshot: Optional[PlayerSnapshot] = None) -> dict[str, Any]:
        """Every property, computed from one snapshot."""
        snapshot = snapshot or self._publisher.current()
        state = snapshot.state
        record = snapshot.current_record
        has_queue = len(snapshot.queue) > 0
        return {
            "Identity": IDENTITY,
            "PlaybackStatus": playback_status(state.status),
            "LoopStatus": LOOP_STATUS[state.mode.repeat],
            "Shuffle": state.mode.shuffled,
            "Volume": state.volume / 100,
            "Position": to_microseconds(state.position),
            "Metadata": metadata_for(
                record, snapshot.stats.get(record.id) if record is not None else None
            ),
            "CanGoNext": state.is_loaded and has_queue,
            "CanGoPrevious": state.is_loaded and has_queue,
            "CanPlay": has_queue or state.is_loaded,
            "CanPause": state.is_loaded,
            "CanSeek": state.is_loaded and record is not None and record.duration is not None,
            "CanControl": True,
        }

    def get_property(self, name: str) -> Any:
        properties = self.properties()
        if not isinstance(name, str) or name not in properties:
            raise ProtocolFault(f"Unknown property: {name}")
        return properties[name]

    def _on_snapshot(self, snapshot: PlayerSnapshot) -> None:
        properties = self.properties(snapshot)
        changed = {
            name: value
            for name, value in properties.items()
            if name not in UNSIGNALLED_PROPERTIES and self._last_properties.get(name) != value
        }
        self._last_properties = properties
        if not changed or self._backend is None:
            return
        try:
            self._backend.properties_changed(changed)
        except Exception as e:
            fault = ProtocolFault(f"Failed to publish {sorted(changed)}: {e}")
            logger.error(str(fault))

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------

    def call(self, method: str, args: Optional[list[Any]] = None) -> str:
        """Invoke a protocol method by name.

        Raises:
            ProtocolFault: Unknown method or unusable arguments
        """
        handler = self._methods.get(method) if isinstance(method, str) else None
        if handler is None:
            raise ProtocolFault(f"Unknown method: {method}")
        try:
            return handler(*(args or []))
        except TypeError as e:
            raise ProtocolFault(f"Bad arguments for {method}: {e}") from e

    def _send(self, command: Command) -> None:
        logger.debug(f"Protocol command: {command}")
        self._submit(command)

    def play(self) -> str:
        self._send(Play())
        return "Playing"

    def pause(self) -> str:
        self._send(Pause())
        return "Paused"

    def play_pause(self) -> str:
        self._send(TogglePause())
        return "Toggled playback"

    def stop(self) -> str:
        self._send(Stop())
        return "Stopped"

    def next(self) -> str:
        self._send(Next())
        return "Next track"

    def previous(self) -> str:
        self._send(Previous())
        return "Previous track"

    def seek(self, offset: int) -> str:
        """Relative seek by ``offset`` microseconds."""
        snapshot = self.snapshot()
        if not snapshot.state.is_loaded:
            return "Nothing playing"
        target = snapshot.state.position + _as_number(offset, "offset") / MICROSECONDS
        record = snapshot.current_record
        if record is not None and record.duration is not None and target > record.duration:
            self._send(Next())
            return "Seek past end, next track"
        self._send(SeekTo(max(0.0, target)))
        return f"Seek to {max(0.0, target):.1f}s"

    def set_position(self, track_path: str, position: int) -> str:
        """Absolute seek, ignored unless ``track_path`` is the current track."""
        snapshot = self.snapshot()
        current = snapshot.state.current_track
        if current is None or track_path != track_object_path(current):
            logger.debug(f"SetPosition ignored for stale track {track_path}")
            return "Ignored: not the current track"
        seconds = _as_number(position, "position") / MICROSECONDS
        record = snapshot.current_record
        if seconds < 0 or (record is not None and record.duration is not None and seconds > record.duration):
            return "Ignored: position out of range"
        self._send(SeekTo(seconds))
        return f"Position set to {seconds:.1f}s"

    def open_uri(self, uri: str) -> str:
        track_id = track_id_from_uri(str(uri))
        if track_id not in self.snapshot().library:
            raise ProtocolFault(f"Unknown track: {uri}")
        self._send(PlayTrack(track_id))
        return f"Opening {track_id}"

    def set_volume(self, volume: float) -> str:
        level = int(round(max(0.0, min(1.0, _as_number(volume, "volume"))) * 100))
        self._send(SetVolume(level))
        return f"Volume {level}"

    def set_loop_status(self, loop_status: str) -> str:
        repeat = {label: mode for mode, label in LOOP_STATUS.items()}.get(loop_status)
        if repeat is None:
            raise ProtocolFault(f"Invalid LoopStatus: {loop_status}")
        mode = self.snapshot().state.mode.with_repeat(repeat)
        self._send(SetMode(mode))
        return f"LoopStatus {loop_status}"

    def set_shuffle(self, shuffle: bool) -> str:
        mode = self.snapshot().state.mode.with_shuffle(
            ShuffleMode.ON if shuffle else ShuffleMode.OFF
        )
        self._send(SetMode(mode))
        return f"Shuffle {'on' if shuffle else 'off'}"


def _as_number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProtocolFault(f"{name} must be a number, got {value!r}")
    return float(value)
