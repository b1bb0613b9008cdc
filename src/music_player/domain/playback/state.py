"""
Player state, playback modes and snapshot publishing.

The orchestrator owns the only live PlayerState; every other component reads
immutable snapshots handed out by a SnapshotPublisher.
"""

import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, NamedTuple, Optional

from loguru import logger

from music_player.domain.library.index import LibraryIndex
from music_player.domain.library.models import MetadataRecord
from music_player.domain.library.stats import LibraryStats


class PlayerStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    SEEKING = "seeking"
    ERROR = "error"


class ErrorKind(Enum):
    DECODE_FAILURE = "decode_failure"
    RUNTIME_PIPELINE_FAULT = "runtime_pipeline_fault"


class RepeatMode(Enum):
    OFF = "off"
    TRACK = "track"
    QUEUE = "queue"


class ShuffleMode(Enum):
    OFF = "off"
    ON = "on"


# Statuses in which no track is loaded
UNLOADED_STATUSES = frozenset({PlayerStatus.IDLE, PlayerStatus.STOPPED})


@dataclass(frozen=True)
class PlaybackMode:
    """Repeat and shuffle, two independent axes."""

    repeat: RepeatMode = RepeatMode.OFF
    shuffle: ShuffleMode = ShuffleMode.OFF

    @property
    def shuffled(self) -> bool:
        return self.shuffle is ShuffleMode.ON

    def with_repeat(self, repeat: RepeatMode) -> "PlaybackMode":
        return replace(self, repeat=repeat)

    def with_shuffle(self, shuffle: ShuffleMode) -> "PlaybackMode":
        return replace(self, shuffle=shuffle)

    def next_repeat(self) -> "PlaybackMode":
        """Cycle off -> queue -> track -> off."""
        order = [RepeatMode.OFF, RepeatMode.QUEUE, RepeatMode.TRACK]
        return self.with_repeat(order[(order.index(self.repeat) + 1) % len(order)])

    def toggle_shuffle(self) -> "PlaybackMode":
        return self.with_shuffle(ShuffleMode.OFF if self.shuffled else ShuffleMode.ON)


@dataclass(frozen=True)
class PlayerState:
    """Authoritative playback state.

    Raises:
        ValueError: If ``current_track`` disagrees with ``status``
    """

    status: PlayerStatus = PlayerStatus.IDLE
    current_track: Optional[str] = None
    position: float = 0.0
    volume: int = 50
    mode: PlaybackMode = field(default_factory=PlaybackMode)
    error: Optional[ErrorKind] = None

    def __post_init__(self) -> None:
        unloaded = self.status in UNLOADED_STATUSES
        if unloaded and self.current_track is not None:
            raise ValueError(f"{self.status.value} state cannot hold a current track")
        if not unloaded and self.current_track is None:
            raise ValueError(f"{self.status.value} state requires a current track")
        if (self.status is PlayerStatus.ERROR) != (self.error is not None):
            raise ValueError("error kind must be set exactly when status is ERROR")

    @property
    def is_loaded(self) -> bool:
        return self.status not in UNLOADED_STATUSES


class QueueEntry(NamedTuple):
    """One slot of the play queue."""

    track_id: str
    queue_position: int


class Notice(NamedTuple):
    """Transient user-facing message; ``seq`` increases with every notice."""

    seq: int
    level: str
    message: str


class PlayerSnapshot(NamedTuple):
    """Immutable view published after every orchestrator cycle."""

    state: PlayerState
    queue: tuple[QueueEntry, ...] = ()
    current_position: Optional[int] = None
    current_record: Optional[MetadataRecord] = None
    library: LibraryIndex = LibraryIndex()
    notice: Optional[Notice] = None
    stats: LibraryStats = LibraryStats()


SnapshotListener = Callable[[PlayerSnapshot], None]


class SnapshotPublisher:
    """Copy-on-publish holder for the latest PlayerSnapshot.

    Publishing swaps a single reference, so readers always see a complete
    snapshot. Listeners are called on the publishing thread.
    """

    def __init__(self, initial: Optional[PlayerSnapshot] = None):
        self._snapshot = initial or PlayerSnapshot(state=PlayerState())
        self._listeners: list[SnapshotListener] = []
        self._lock = threading.Lock()

    def current(self) -> PlayerSnapshot:
        return self._snapshot

    def publish(self, snapshot: PlayerSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception(f"Snapshot listener {listener!r} failed")

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe
