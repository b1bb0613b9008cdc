"""
Typed values carried on the orchestrator's single event channel.

Commands come from the UI, the protocol adapter, or the orchestrator itself.
PipelineEvents come from the pipeline adapter and carry the generation of
the load they belong to.
"""

from dataclasses import dataclass
from typing import Literal, Optional, Union

from music_player.domain.library.index import LibraryIndex

from .state import PlaybackMode

PipelineState = Literal["playing", "paused", "buffering"]


@dataclass(frozen=True)
class Command:
    """Marker base type for playback commands."""

    pass


@dataclass(frozen=True)
class PlayTrack(Command):
    track_id: str
    start: float = 0.0


@dataclass(frozen=True)
class PlayQueueEntry(Command):
    """Play the queue entry at `position`, even when its track repeats."""

    position: int
    start: float = 0.0


@dataclass(frozen=True)
class TogglePause(Command):
    pass


@dataclass(frozen=True)
class Play(Command):
    """Resume or start playback; no-op while already playing."""

    pass


@dataclass(frozen=True)
class Pause(Command):
    """Pause playback; no-op unless playing."""

    pass


@dataclass(frozen=True)
class Stop(Command):
    pass


@dataclass(frozen=True)
class Next(Command):
    pass


@dataclass(frozen=True)
class Previous(Command):
    pass


@dataclass(frozen=True)
class SeekTo(Command):
    position: float


@dataclass(frozen=True)
class SetVolume(Command):
    level: int


@dataclass(frozen=True)
class SetMode(Command):
    mode: PlaybackMode


@dataclass(frozen=True)
class EnqueueTrack(Command):
    track_id: str


@dataclass(frozen=True)
class RemoveFromQueue(Command):
    position: int


@dataclass(frozen=True)
class Reorder(Command):
    from_position: int
    to_position: int


@dataclass(frozen=True)
class RateTrack(Command):
    """Set the 0-5 rating of a library track."""

    track_id: str
    rating: int


@dataclass(frozen=True)
class PipelineEvent:
    """Marker base type for pipeline-originated events."""

    pass


@dataclass(frozen=True)
class PositionChanged(PipelineEvent):
    """Playback position report.

    ``confirmed`` marks the report that follows a completed seek; plain
    periodic ticks leave it False.
    """

    position: float
    confirmed: bool = False
    generation: int = 0


@dataclass(frozen=True)
class EndOfTrack(PipelineEvent):
    generation: int = 0


@dataclass(frozen=True)
class DecodeError(PipelineEvent):
    track_id: Optional[str]
    detail: str
    generation: int = 0


@dataclass(frozen=True)
class StateChanged(PipelineEvent):
    state: PipelineState
    generation: int = 0


@dataclass(frozen=True)
class LibraryUpdated:
    """A completed scan's index, to be swapped in by the orchestrator."""

    index: LibraryIndex


@dataclass(frozen=True)
class Shutdown:
    """Sentinel that ends the orchestrator loop."""

    pass


ChannelItem = Union[Command, PipelineEvent, LibraryUpdated, Shutdown]
