"""
Play queue model.

An ordered sequence of track ids with dense positions, plus next/previous
navigation under the current repeat and shuffle modes.
"""

import random
from typing import Optional

from loguru import logger

from music_player.core.exceptions import OutOfRange, UnknownTrack
from music_player.domain.library.index import LibraryIndex

from .state import PlaybackMode, QueueEntry, RepeatMode


def position_after_remove(current: Optional[int], removed: int) -> Optional[int]:
    """Map a queue position across the removal of ``removed``.

    Returns None when ``current`` itself was removed.
    """
    if current is None or current == removed:
        return None
    return current - 1 if removed < current else current


def position_after_reorder(
    current: Optional[int], from_position: int, to_position: int
) -> Optional[int]:
    """Map a queue position across moving ``from_position`` to ``to_position``."""
    if current is None:
        return None
    if current == from_position:
        return to_position
    if from_position < current <= to_position:
        return current - 1
    if to_position <= current < from_position:
        return current + 1
    return current


class QueueModel:
    """Ordered, mutable play sequence over a LibraryIndex.

    Positions are list indices, so they are always dense and start at 0.
    The shuffle permutation is derived from a seed and a revision counter
    that only structural mutations bump, which keeps navigation
    deterministic between mutations.
    """

    def __init__(self, library: LibraryIndex, seed: int | str = 0):
        self._library = library
        self._track_ids: list[str] = []
        self._seed = seed
        self._revision = 0
        self._shuffle_order: Optional[list[int]] = None

    @property
    def library(self) -> LibraryIndex:
        return self._library

    def __len__(self) -> int:
        return len(self._track_ids)

    def entries(self) -> tuple[QueueEntry, ...]:
        return tuple(
            QueueEntry(track_id, position)
            for position, track_id in enumerate(self._track_ids)
        )

    def track_ids(self) -> list[str]:
        return list(self._track_ids)

    def track_at(self, position: int) -> str:
        self._check_position(position)
        return self._track_ids[position]

    def position_of(self, track_id: str) -> Optional[int]:
        """First position holding ``track_id``, or None."""
        try:
            return self._track_ids.index(track_id)
        except ValueError:
            return None

    def _check_position(self, position: int) -> None:
        if not 0 <= position < len(self._track_ids):
            raise OutOfRange(position, len(self._track_ids))

    def _mutated(self) -> None:
        self._revision += 1
        self._shuffle_order = None

    def enqueue(self, track_id: str) -> QueueEntry:
        """Append a track.

        Raises:
            UnknownTrack: If ``track_id`` is not in the library index
        """
        if track_id not in self._library:
            raise UnknownTrack(track_id)
        self._track_ids.append(track_id)
        self._mutated()
        return QueueEntry(track_id, len(self._track_ids) - 1)

    def remove(self, position: int) -> QueueEntry:
        """Remove the entry at ``position``; later entries shift up by one.

        Raises:
            OutOfRange: If ``position`` does not exist
        """
        self._check_position(position)
        track_id = self._track_ids.pop(position)
        self._mutated()
        return QueueEntry(track_id, position)

    def reorder(self, from_position: int, to_position: int) -> None:
        """Move one entry, keeping the relative order of the others.

        Raises:
            OutOfRange: If either position does not exist
        """
        self._check_position(from_position)
        self._check_position(to_position)
        if from_position == to_position:
            return
        track_id = self._track_ids.pop(from_position)
        self._track_ids.insert(to_position, track_id)
        self._mutated()

    def clear(self) -> None:
        self._track_ids = []
        self._mutated()

    def reshuffle(self) -> None:
        """Force a new shuffle permutation."""
        self._mutated()

    def replace_library(self, library: LibraryIndex) -> list[QueueEntry]:
        """Swap in a new index and prune entries it no longer contains.

        Returns:
            The removed entries with their positions before pruning
        """
        self._library = library
        removed = [
            QueueEntry(track_id, position)
            for position, track_id in enumerate(self._track_ids)
            if track_id not in library
        ]
        if removed:
            self._track_ids = [t for t in self._track_ids if t in library]
            self._mutated()
            logger.info(f"Pruned {len(removed)} queue entries missing from library")
        return removed

    def shuffle_order(self) -> list[int]:
        """Memoized permutation of queue positions."""
        if self._shuffle_order is None:
            order = list(range(len(self._track_ids)))
            random.Random(f"{self._seed}:{self._revision}").shuffle(order)
            self._shuffle_order = order
        return list(self._shuffle_order)

    def first_position(self, mode: PlaybackMode) -> Optional[int]:
        """Where playback of the whole queue starts."""
        if not self._track_ids:
            return None
        return self.shuffle_order()[0] if mode.shuffled else 0

    def next_position(
        self, mode: PlaybackMode, current: Optional[int]
    ) -> Optional[int]:
        """Position to play after ``current``; None ends playback."""
        return self._step(mode, current, 1)

    def previous_position(
        self, mode: PlaybackMode, current: Optional[int]
    ) -> Optional[int]:
        """Position to play before ``current``; None if there is none."""
        return self._step(mode, current, -1)

    def next(self, mode: PlaybackMode, current: Optional[int]) -> Optional[str]:
        position = self.next_position(mode, current)
        return None if position is None else self._track_ids[position]

    def previous(self, mode: PlaybackMode, current: Optional[int]) -> Optional[str]:
        position = self.previous_position(mode, current)
        return None if position is None else self._track_ids[position]

    def _step(
        self, mode: PlaybackMode, current: Optional[int], delta: int
    ) -> Optional[int]:
        size = len(self._track_ids)
        if size == 0:
            return None
        if current is not None and not 0 <= current < size:
            current = None

        if current is None:
            return self.first_position(mode) if delta > 0 else None

        if mode.repeat is RepeatMode.TRACK:
            return current

        order = self.shuffle_order() if mode.shuffled else list(range(size))
        index = order.index(current) + delta
        if 0 <= index < size:
            return order[index]
        if mode.repeat is RepeatMode.QUEUE:
            return order[index % size]
        return None
