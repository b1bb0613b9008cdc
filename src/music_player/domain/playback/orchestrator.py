"""
Playback orchestrator: the single writer of player state.

UI input, pipeline notifications and protocol commands all arrive on one
``queue.Queue``. The orchestrator thread takes one item at a time, applies
the state machine step and publishes a fresh snapshot. Nothing it calls
blocks on the audio pipeline; results come back later as events.
"""

import queue
import random
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from loguru import logger

from music_player.core.config import PlayerConfig
from music_player.core.exceptions import OutOfRange, QueueError, UnknownTrack
from music_player.domain.library.index import LibraryIndex
from music_player.domain.library.metadata import display_name
from music_player.domain.library.stats import LibraryStats

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
from .pipeline import PipelineAdapter, PipelineBackend
from .queue import QueueModel, position_after_remove, position_after_reorder
from .state import (
    ErrorKind,
    Notice,
    PlaybackMode,
    PlayerSnapshot,
    PlayerState,
    PlayerStatus,
    RepeatMode,
    ShuffleMode,
    SnapshotPublisher,
    UNLOADED_STATUSES,
)

# Statuses in which the pipeline holds a decodable track
ACTIVE_STATUSES = frozenset({PlayerStatus.PLAYING, PlayerStatus.PAUSED, PlayerStatus.SEEKING})


@dataclass(frozen=True)
class PlaybackPolicy:
    """Failure-handling knobs for the orchestrator."""

    auto_skip_on_decode_error: bool = True
    max_fault_retries: int = 1
    shutdown_timeout: float = 2.0

    @classmethod
    def from_config(cls, player: PlayerConfig) -> "PlaybackPolicy":
        return cls(
            auto_skip_on_decode_error=player.auto_skip_on_decode_error,
            max_fault_retries=player.max_fault_retries,
            shutdown_timeout=player.shutdown_timeout,
        )


def mode_from_config(player: PlayerConfig) -> PlaybackMode:
    """Initial PlaybackMode from the [player] config section."""
    return PlaybackMode(
        repeat=RepeatMode(player.repeat),
        shuffle=ShuffleMode.ON if player.shuffle else ShuffleMode.OFF,
    )


def _clamp_volume(level: int) -> int:
    return max(0, min(100, int(level)))


class PlaybackOrchestrator:
    """State machine and event fan-in loop for playback.

    Owns the QueueModel and the only live PlayerState. Other threads talk to
    it exclusively through ``submit`` and read it through the publisher.
    """

    def __init__(
        self,
        backend: PipelineBackend,
        library: LibraryIndex,
        publisher: Optional[SnapshotPublisher] = None,
        policy: Optional[PlaybackPolicy] = None,
        volume: int = 50,
        mode: Optional[PlaybackMode] = None,
        seed: Optional[int] = None,
        stats: Optional[LibraryStats] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.channel: queue.Queue = queue.Queue()
        self.pipeline = PipelineAdapter(backend, self.channel)
        self.publisher = publisher or SnapshotPublisher()
        self.policy = policy or PlaybackPolicy()

        if seed is None:
            seed = random.getrandbits(32)
        self._queue = QueueModel(library, seed=seed)
        self._clock = clock
        self._stats = (stats or LibraryStats()).with_first_seen(
            (record.id for record in library), clock()
        )
        self._state = PlayerState(volume=_clamp_volume(volume), mode=mode or PlaybackMode())
        self._current_position: Optional[int] = None
        self._pre_seek_status = PlayerStatus.PLAYING
        self._decode_skips = 0
        self._fault_track: Optional[str] = None
        self._fault_count = 0
        self._notice: Optional[Notice] = None
        self._notice_seq = 0
        self._thread: Optional[threading.Thread] = None

        self._publish()

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def queue(self) -> QueueModel:
        return self._queue

    @property
    def current_position(self) -> Optional[int]:
        return self._current_position

    @property
    def stats(self) -> LibraryStats:
        return self._stats

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def submit(self, item: ChannelItem) -> None:
        """Queue a command or event; safe to call from any thread."""
        self.channel.put(item)

    def request_shutdown(self) -> None:
        self.channel.put(Shutdown())

    def start(self) -> threading.Thread:
        """Run the loop on a dedicated thread."""
        self._thread = threading.Thread(target=self.run, daemon=True, name="PlaybackOrchestrator")
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run(self) -> None:
        """Consume the channel until a Shutdown item arrives."""
        logger.info("Playback orchestrator started")
        while True:
            item = self.channel.get()
            try:
                if not self.step(item):
                    break
            except Exception:
                logger.exception(f"Orchestrator failed to process {item!r}")
        logger.info("Playback orchestrator stopped")

    def drain(self) -> int:
        """Process every queued item without blocking.

        Returns:
            Number of items processed
        """
        processed = 0
        while True:
            try:
                item = self.channel.get_nowait()
            except queue.Empty:
                return processed
            processed += 1
            if not self.step(item):
                return processed

    def step(self, item: ChannelItem) -> bool:
        """Apply one channel item and publish the resulting snapshot.

        Returns:
            False once a Shutdown item has been processed
        """
        match item:
            case Shutdown():
                self._shutdown()
                return False
            case PipelineEvent():
                if item.generation != self.pipeline.generation:
                    logger.debug(
                        f"Discarding stale {type(item).__name__} "
                        f"generation={item.generation} current={self.pipeline.generation}"
                    )
                    return True
                self._on_pipeline_event(item)
            case LibraryUpdated(index=index):
                self._on_library_updated(index)
            case Command():
                self._on_command(item)
            case _:
                logger.warning(f"Ignoring unknown channel item: {item!r}")
                return True

        self._publish()
        return True

    def _shutdown(self) -> None:
        logger.info("Orchestrator shutting down")
        if self._state.is_loaded:
            self.pipeline.stop()
        self.pipeline.shutdown(self.policy.shutdown_timeout)

    # ------------------------------------------------------------------
    # Snapshot and notices
    # ------------------------------------------------------------------

    def _publish(self) -> None:
        library = self._queue.library
        current = self._state.current_track
        self.publisher.publish(
            PlayerSnapshot(
                state=self._state,
                queue=self._queue.entries(),
                current_position=self._current_position if self._state.is_loaded else None,
                current_record=library.lookup(current) if current else None,
                library=library,
                notice=self._notice,
                stats=self._stats,
            )
        )

    def _notify(self, level: str, message: str) -> None:
        self._notice_seq += 1
        self._notice = Notice(self._notice_seq, level, message)
        logger.log(level.upper(), message)

    def _track_label(self, track_id: Optional[str]) -> str:
        record = self._queue.library.lookup(track_id) if track_id else None
        return display_name(record) if record else str(track_id)

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _clamp_position(self, track_id: Optional[str], position: float) -> float:
        position = max(0.0, position)
        record = self._queue.library.lookup(track_id) if track_id else None
        if record is not None and record.duration is not None:
            position = min(position, record.duration)
        return position

    def _load(self, position: int, start: float = 0.0, auto: bool = False) -> None:
        """Start loading the queue entry at ``position``."""
        track_id = self._queue.track_at(position)
        record = self._queue.library.lookup(track_id)
        if not auto:
            self._decode_skips = 0
        if track_id != self._fault_track:
            self._fault_track = None
            self._fault_count = 0

        start = self._clamp_position(track_id, start)
        self._current_position = position
        self.pipeline.load(record.path, track_id, start)
        self._state = replace(
            self._state,
            status=PlayerStatus.LOADING,
            current_track=track_id,
            position=start,
            error=None,
        )
        logger.info(f"Loading [{position}] {self._track_label(track_id)}")

    def _stop(self) -> None:
        if self._state.is_loaded:
            self.pipeline.stop()
        self._current_position = None
        self._state = replace(
            self._state,
            status=PlayerStatus.STOPPED,
            current_track=None,
            position=0.0,
            error=None,
        )

    def _enter_error(self, kind: ErrorKind) -> None:
        self._state = replace(self._state, status=PlayerStatus.ERROR, error=kind)

    def _start_queue(self) -> None:
        position = self._queue.first_position(self._state.mode)
        if position is None:
            self._notify("info", "Queue is empty")
            return
        self._load(position)

    def _retry_current(self) -> None:
        position = self._current_position
        if position is not None and position < len(self._queue):
            self._load(position)
        else:
            self._stop()

    def _advance(self, mode: PlaybackMode, anchor: Optional[int], auto: bool = False) -> None:
        """Load the entry after ``anchor`` under ``mode``, or stop."""
        target = self._queue.next_position(mode, anchor)
        if target is None:
            logger.info("End of queue reached")
            self._stop()
        else:
            self._load(target, auto=auto)

    def _advance_after_removal(self, survivors_before: int) -> None:
        """The current entry left the queue; play whatever followed it."""
        if not self._state.is_loaded:
            self._current_position = None
            return
        mode = self._state.mode
        if mode.repeat is RepeatMode.TRACK:
            mode = mode.with_repeat(RepeatMode.OFF)
        anchor = survivors_before - 1 if survivors_before > 0 else None
        if anchor is None and not mode.shuffled:
            # Nothing precedes the removed entry: the new head follows it
            if len(self._queue):
                self._load(0)
            else:
                self._stop()
            return
        self._advance(mode, anchor)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _on_command(self, command: Command) -> None:
        status = self._state.status
        match command:
            case PlayTrack(track_id=track_id, start=start):
                self._play_track(track_id, start)

            case PlayQueueEntry(position=position, start=start):
                if 0 <= position < len(self._queue):
                    self._load(position, start)
                else:
                    self._notify("warning", str(OutOfRange(position, len(self._queue))))

            case TogglePause():
                if status is PlayerStatus.PLAYING:
                    self.pipeline.pause()
                    self._state = replace(self._state, status=PlayerStatus.PAUSED)
                elif status is PlayerStatus.PAUSED:
                    self.pipeline.play()
                    self._state = replace(self._state, status=PlayerStatus.PLAYING)
                elif status is PlayerStatus.SEEKING:
                    self._toggle_pre_seek()
                elif status in UNLOADED_STATUSES:
                    self._start_queue()
                elif status is PlayerStatus.ERROR:
                    self._retry_current()

            case Play():
                if status is PlayerStatus.PAUSED:
                    self.pipeline.play()
                    self._state = replace(self._state, status=PlayerStatus.PLAYING)
                elif status is PlayerStatus.SEEKING and self._pre_seek_status is PlayerStatus.PAUSED:
                    self._toggle_pre_seek()
                elif status in UNLOADED_STATUSES:
                    self._start_queue()
                elif status is PlayerStatus.ERROR:
                    self._retry_current()

            case Pause():
                if status is PlayerStatus.PLAYING:
                    self.pipeline.pause()
                    self._state = replace(self._state, status=PlayerStatus.PAUSED)
                elif status is PlayerStatus.SEEKING and self._pre_seek_status is PlayerStatus.PLAYING:
                    self._toggle_pre_seek()

            case Stop():
                if status not in UNLOADED_STATUSES:
                    self._stop()

            case Next():
                if status in UNLOADED_STATUSES:
                    logger.debug("Next ignored: nothing loaded")
                else:
                    self._advance(self._state.mode, self._current_position)

            case Previous():
                if status in UNLOADED_STATUSES:
                    logger.debug("Previous ignored: nothing loaded")
                else:
                    target = self._queue.previous_position(self._state.mode, self._current_position)
                    if target is None:
                        self._stop()
                    else:
                        self._load(target)

            case SeekTo(position=position):
                self._seek(position)

            case SetVolume(level=level):
                level = _clamp_volume(level)
                self.pipeline.set_volume(level)
                self._state = replace(self._state, volume=level)

            case SetMode(mode=mode):
                if mode.shuffled and not self._state.mode.shuffled:
                    self._queue.reshuffle()
                self._state = replace(self._state, mode=mode)
                logger.info(f"Mode: repeat={mode.repeat.value} shuffle={mode.shuffle.value}")

            case RateTrack(track_id=track_id, rating=rating):
                self._rate_track(track_id, rating)

            case EnqueueTrack() | RemoveFromQueue() | Reorder():
                try:
                    self._mutate_queue(command)
                except QueueError as e:
                    self._notify("warning", str(e))

            case _:
                logger.warning(f"Unhandled command: {command!r}")

    def _play_track(self, track_id: str, start: float) -> None:
        if track_id not in self._queue.library:
            self._notify("warning", str(UnknownTrack(track_id)))
            return

        position = self._current_position
        if position is None or position >= len(self._queue) or self._queue.track_at(position) != track_id:
            position = self._queue.position_of(track_id)
        if position is None:
            position = self._queue.enqueue(track_id).queue_position
        self._load(position, start)

    def _rate_track(self, track_id: str, rating: int) -> None:
        if track_id not in self._queue.library:
            self._notify("warning", str(UnknownTrack(track_id)))
            return
        try:
            self._stats = self._stats.with_rating(track_id, rating)
        except ValueError as e:
            self._notify("warning", str(e))
            return
        self._notify("info", f"Rated {self._track_label(track_id)}: {rating}/5")

    def _toggle_pre_seek(self) -> None:
        if self._pre_seek_status is PlayerStatus.PLAYING:
            self.pipeline.pause()
            self._pre_seek_status = PlayerStatus.PAUSED
        else:
            self.pipeline.play()
            self._pre_seek_status = PlayerStatus.PLAYING

    def _seek(self, position: float) -> None:
        status = self._state.status
        if status not in ACTIVE_STATUSES:
            logger.debug(f"Seek ignored in {status.value} state")
            return
        if status is not PlayerStatus.SEEKING:
            self._pre_seek_status = status
        position = self._clamp_position(self._state.current_track, position)
        self.pipeline.seek(position)
        self._state = replace(self._state, status=PlayerStatus.SEEKING, position=position)

    def _mutate_queue(self, command: Command) -> None:
        match command:
            case EnqueueTrack(track_id=track_id):
                entry = self._queue.enqueue(track_id)
                logger.info(f"Enqueued {self._track_label(track_id)} at {entry.queue_position}")

            case RemoveFromQueue(position=position):
                entry = self._queue.remove(position)
                logger.info(f"Removed {self._track_label(entry.track_id)} from {position}")
                if self._current_position is not None and position == self._current_position:
                    self._advance_after_removal(position)
                else:
                    self._current_position = position_after_remove(self._current_position, position)

            case Reorder(from_position=from_position, to_position=to_position):
                self._queue.reorder(from_position, to_position)
                self._current_position = position_after_reorder(
                    self._current_position, from_position, to_position
                )

    # ------------------------------------------------------------------
    # Library
    # ------------------------------------------------------------------

    def _on_library_updated(self, index: LibraryIndex) -> None:
        removed = self._queue.replace_library(index)
        self._stats = self._stats.with_first_seen((record.id for record in index), self._clock())
        logger.info(f"Library updated: {len(index)} tracks")
        if removed:
            self._notify("info", f"Removed {len(removed)} missing tracks from the queue")

        current = self._current_position
        if current is None:
            return
        removed_positions = {entry.queue_position for entry in removed}
        survivors_before = sum(1 for p in range(current) if p not in removed_positions)
        if current in removed_positions:
            self._advance_after_removal(survivors_before)
        else:
            self._current_position = survivors_before

    # ------------------------------------------------------------------
    # Pipeline events
    # ------------------------------------------------------------------

    def _on_pipeline_event(self, event: PipelineEvent) -> None:
        status = self._state.status
        match event:
            case StateChanged(state=pipeline_state):
                self._on_state_changed(pipeline_state)

            case PositionChanged(position=position, confirmed=confirmed):
                if status is PlayerStatus.SEEKING:
                    # Ticks queued before the seek landed would undo the target
                    if confirmed:
                        position = self._clamp_position(self._state.current_track, position)
                        self._state = replace(
                            self._state, status=self._pre_seek_status, position=position
                        )
                elif status in ACTIVE_STATUSES:
                    position = self._clamp_position(self._state.current_track, position)
                    self._state = replace(self._state, position=position)

            case EndOfTrack():
                if status in ACTIVE_STATUSES or status is PlayerStatus.LOADING:
                    self._stats = self._stats.with_play(self._state.current_track, self._clock())
                    self._fault_track = None
                    self._fault_count = 0
                    self._advance(self._state.mode, self._current_position, auto=True)

            case DecodeError():
                if status is PlayerStatus.LOADING:
                    self._on_load_failure(event)
                elif status in ACTIVE_STATUSES:
                    self._on_runtime_fault(event)
                else:
                    logger.debug(f"Ignoring decode error in {status.value} state: {event.detail}")

    def _on_state_changed(self, pipeline_state: str) -> None:
        status = self._state.status
        if status is PlayerStatus.LOADING:
            if pipeline_state == "playing":
                self._state = replace(self._state, status=PlayerStatus.PLAYING)
                self._decode_skips = 0
            elif pipeline_state == "paused":
                self._state = replace(self._state, status=PlayerStatus.PAUSED)
                self._decode_skips = 0
        elif status is PlayerStatus.PLAYING and pipeline_state == "paused":
            self._state = replace(self._state, status=PlayerStatus.PAUSED)
        elif status is PlayerStatus.PAUSED and pipeline_state == "playing":
            self._state = replace(self._state, status=PlayerStatus.PLAYING)
        elif status is PlayerStatus.SEEKING and pipeline_state != "buffering":
            self._pre_seek_status = (
                PlayerStatus.PLAYING if pipeline_state == "playing" else PlayerStatus.PAUSED
            )

    def _on_load_failure(self, event: DecodeError) -> None:
        label = self._track_label(event.track_id or self._state.current_track)
        self._notify("warning", f"Cannot play {label}: {event.detail}")
        self._decode_skips += 1

        mode = self._state.mode
        if (
            self.policy.auto_skip_on_decode_error
            and mode.repeat is not RepeatMode.TRACK
            and self._decode_skips < len(self._queue)
        ):
            target = self._queue.next_position(mode, self._current_position)
            if target is not None:
                self._load(target, auto=True)
                return

        self._decode_skips = 0
        self._enter_error(ErrorKind.DECODE_FAILURE)

    def _on_runtime_fault(self, event: DecodeError) -> None:
        track_id = self._state.current_track
        if track_id != self._fault_track:
            self._fault_track = track_id
            self._fault_count = 0
        self._fault_count += 1

        label = self._track_label(track_id)
        self._enter_error(ErrorKind.RUNTIME_PIPELINE_FAULT)
        self.pipeline.stop()

        if self._fault_count <= self.policy.max_fault_retries:
            self._notify("warning", f"Playback fault on {label}: {event.detail}; stopping")
            # Observers see the fault before the recovery stop
            self._publish()
            self._current_position = None
            self._state = replace(
                self._state,
                status=PlayerStatus.STOPPED,
                current_track=None,
                position=0.0,
                error=None,
            )
        else:
            self._notify("error", f"Playback fault on {label}: {event.detail}")
