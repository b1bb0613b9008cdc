"""Playback domain - queue, pipeline bridge and the orchestrator.

This domain handles:
- Player state, modes and snapshot publishing
- The play queue with repeat/shuffle navigation
- The generation-tagging pipeline adapter and the mpv backend
- The orchestrator state machine
- Session save/restore
"""

from .commands import (
    ChannelItem,
    Command,
    DecodeError,
    EndOfTrack,
    EnqueueTrack,
    LibraryUpdated,
    Next,
    Pause,
    PipelineEvent,
    Play,
    PlayQueueEntry,
    PlayTrack,
    PositionChanged,
    Previous,
    RateTrack,
    RemoveFromQueue,
    Reorder,
    SeekTo,
    SetMode,
    SetVolume,
    Shutdown,
    StateChanged,
    Stop,
    TogglePause,
)
from .orchestrator import PlaybackOrchestrator, PlaybackPolicy, mode_from_config
from .pipeline import PipelineAdapter, PipelineBackend
from .player import MpvBackend, check_mpv_available
from .queue import QueueModel
from .session import SessionState, clear_session, load_session, save_session
from .state import (
    ErrorKind,
    Notice,
    PlaybackMode,
    PlayerSnapshot,
    PlayerState,
    PlayerStatus,
    QueueEntry,
    RepeatMode,
    ShuffleMode,
    SnapshotPublisher,
)

__all__ = [
    # Commands and events
    "ChannelItem",
    "Command",
    "PlayTrack",
    "PlayQueueEntry",
    "TogglePause",
    "Play",
    "Pause",
    "Stop",
    "Next",
    "Previous",
    "SeekTo",
    "SetVolume",
    "SetMode",
    "EnqueueTrack",
    "RemoveFromQueue",
    "Reorder",
    "RateTrack",
    "PipelineEvent",
    "PositionChanged",
    "EndOfTrack",
    "DecodeError",
    "StateChanged",
    "LibraryUpdated",
    "Shutdown",
    # State
    "PlayerStatus",
    "ErrorKind",
    "RepeatMode",
    "ShuffleMode",
    "PlaybackMode",
    "PlayerState",
    "PlayerSnapshot",
    "QueueEntry",
    "Notice",
    "SnapshotPublisher",
    # Components
    "QueueModel",
    "PipelineAdapter",
    "PipelineBackend",
    "MpvBackend",
    "check_mpv_available",
    "PlaybackOrchestrator",
    "PlaybackPolicy",
    "mode_from_config",
    # Session
    "SessionState",
    "save_session",
    "load_session",
    "clear_session",
]
