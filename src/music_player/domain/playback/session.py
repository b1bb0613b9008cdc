"""
Session persistence: remember what was playing between runs.

The session is written from the last published snapshot on exit and
replayed on start as ordinary commands, so restoring never bypasses the
orchestrator.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from music_player.domain.library.index import LibraryIndex

from .commands import Command, EnqueueTrack, PlayTrack, SetMode, SetVolume
from .state import PlaybackMode, PlayerSnapshot, RepeatMode, ShuffleMode

SESSION_FILENAME = "session.json"
SESSION_VERSION = 1


@dataclass
class SessionState:
    """Serializable subset of a PlayerSnapshot."""

    queue: list[str] = field(default_factory=list)
    current_track: Optional[str] = None
    position: float = 0.0
    volume: int = 50
    repeat: str = RepeatMode.QUEUE.value
    shuffle: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: PlayerSnapshot) -> "SessionState":
        state = snapshot.state
        return cls(
            queue=[entry.track_id for entry in snapshot.queue],
            current_track=state.current_track,
            position=state.position,
            volume=state.volume,
            repeat=state.mode.repeat.value,
            shuffle=state.mode.shuffled,
        )

    @property
    def mode(self) -> PlaybackMode:
        return PlaybackMode(
            repeat=RepeatMode(self.repeat),
            shuffle=ShuffleMode.ON if self.shuffle else ShuffleMode.OFF,
        )

    def restore_commands(self, library: LibraryIndex, resume: bool = True) -> list[Command]:
        """Commands that rebuild this session; ids missing from ``library`` are skipped.

        With ``resume`` False the queue and modes come back but nothing
        starts playing.
        """
        commands: list[Command] = [SetVolume(self.volume), SetMode(self.mode)]
        skipped = 0
        for track_id in self.queue:
            if track_id in library:
                commands.append(EnqueueTrack(track_id))
            else:
                skipped += 1
        if skipped:
            logger.info(f"Skipped {skipped} session tracks missing from library")

        if resume and self.current_track and self.current_track in library:
            commands.append(PlayTrack(self.current_track, start=self.position))
        return commands


def save_session(session: SessionState, path: Path) -> bool:
    """Write the session atomically.

    Returns:
        True if the file was written
    """
    payload: dict[str, Any] = {"version": SESSION_VERSION, **asdict(session)}
    tmp_path = path.with_suffix(".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_path, path)
    except OSError as e:
        logger.error(f"Failed to save session to {path}: {e}")
        return False
    logger.debug(f"Session saved: {len(session.queue)} queued, track={session.current_track}")
    return True


def load_session(path: Path) -> Optional[SessionState]:
    """Read a saved session.

    Returns:
        SessionState, or None when the file is missing or unusable
    """
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable session file {path}: {e}")
        return None

    if not isinstance(data, dict) or data.get("version") != SESSION_VERSION:
        logger.warning(f"Ignoring session file with unsupported version: {path}")
        return None

    try:
        session = SessionState(
            queue=[str(t) for t in data.get("queue", [])],
            current_track=data.get("current_track"),
            position=float(data.get("position", 0.0)),
            volume=int(data.get("volume", 50)),
            repeat=RepeatMode(data.get("repeat", RepeatMode.QUEUE.value)).value,
            shuffle=bool(data.get("shuffle", False)),
        )
    except (TypeError, ValueError) as e:
        logger.warning(f"Ignoring malformed session file {path}: {e}")
        return None
    return session


def clear_session(path: Path) -> bool:
    """Delete the session file; returns True if one was removed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.error(f"Failed to remove session file {path}: {e}")
        return False
    logger.info(f"Session cleared: {path}")
    return True
