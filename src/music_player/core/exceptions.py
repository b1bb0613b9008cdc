"""Exception hierarchy for Music Player."""

from typing import Optional


class MusicPlayerError(Exception):
    """Base exception for Music Player operations."""

    pass


class ConfigError(MusicPlayerError):
    """Raised when a configuration value is invalid."""

    pass


class ScanError(MusicPlayerError):
    """Raised (and collected) when a library path or file cannot be read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class QueueError(MusicPlayerError):
    """Base exception for caller mistakes on queue operations."""

    pass


class UnknownTrack(QueueError):
    """Raised when a track id is not present in the library index."""

    def __init__(self, track_id: str, message: Optional[str] = None):
        self.track_id = track_id
        super().__init__(message or f"Unknown track: {track_id}")


class OutOfRange(QueueError):
    """Raised when a queue position does not exist."""

    def __init__(self, position: int, size: int):
        self.position = position
        self.size = size
        super().__init__(f"Queue position {position} out of range (size={size})")


class PipelineError(MusicPlayerError):
    """Raised when the audio pipeline cannot be started."""

    pass


class ProtocolFault(MusicPlayerError):
    """Raised when the media-control bridge fails to publish or dispatch."""

    pass
