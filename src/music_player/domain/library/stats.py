"""
Per-track listening statistics: rating, play count and timestamps.

LibraryStats is immutable like LibraryIndex; every update returns a new
value, so snapshots can carry it across threads. It is persisted next to
the library cache but survives re-scans, since it is keyed by track id.
"""

import json
import os
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Iterator, NamedTuple, Optional

from loguru import logger

from .index import LibraryIndex

STATS_VERSION = 1
STATS_FILENAME = "stats.json"

MIN_RATING = 0
MAX_RATING = 5

SORT_FIELDS = ("score", "title", "date", "rating", "last_played")


class TrackStats(NamedTuple):
    """Listening history for one track. Timestamps are epoch seconds."""

    rating: Optional[int] = None
    play_count: int = 0
    last_played: Optional[float] = None
    first_seen: Optional[float] = None


EMPTY_STATS = TrackStats()


class LibraryStats:
    """Read-only mapping from track id to TrackStats."""

    def __init__(self, entries: Optional[dict[str, TrackStats]] = None):
        self._entries = MappingProxyType(dict(entries or {}))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LibraryStats):
            return NotImplemented
        return dict(self._entries) == dict(other._entries)

    def get(self, track_id: str) -> TrackStats:
        return self._entries.get(track_id, EMPTY_STATS)

    def _with(self, track_id: str, stats: TrackStats) -> "LibraryStats":
        entries = dict(self._entries)
        entries[track_id] = stats
        return LibraryStats(entries)

    def with_rating(self, track_id: str, rating: int) -> "LibraryStats":
        """Set the 0-5 rating of ``track_id``.

        Raises:
            ValueError: If ``rating`` is outside 0-5
        """
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValueError(f"Rating must be {MIN_RATING}-{MAX_RATING}, got {rating}")
        return self._with(track_id, self.get(track_id)._replace(rating=rating))

    def with_play(self, track_id: str, when: float) -> "LibraryStats":
        """Count one completed play of ``track_id`` at ``when``."""
        current = self.get(track_id)
        return self._with(
            track_id, current._replace(play_count=current.play_count + 1, last_played=when)
        )

    def with_first_seen(self, track_ids: Iterable[str], when: float) -> "LibraryStats":
        """Stamp ``when`` as first-seen time on tracks that have none yet."""
        new_ids = [
            track_id for track_id in track_ids if self.get(track_id).first_seen is None
        ]
        if not new_ids:
            return self
        entries = dict(self._entries)
        for track_id in new_ids:
            entries[track_id] = self.get(track_id)._replace(first_seen=when)
        return LibraryStats(entries)


def _sort_value(
    field: str, track_id: str, library: LibraryIndex, stats: LibraryStats
) -> Optional[object]:
    if field == "title":
        record = library.lookup(track_id)
        return record.title.casefold() if record else None
    track_stats = stats.get(track_id)
    if field == "date":
        return track_stats.first_seen
    if field == "rating":
        return track_stats.rating
    if field == "last_played":
        return track_stats.last_played
    raise ValueError(f"Unknown sort field: {field}")


def sort_track_ids(
    track_ids: list[str],
    field: str,
    direction: str,
    library: LibraryIndex,
    stats: LibraryStats,
) -> list[str]:
    """Order ``track_ids`` for display.

    ``"score"`` keeps the incoming order (search rank, or browse order for
    the library) and reverses it for ``"asc"``. Other fields sort by their
    value; tracks without a value go last in either direction, and ties keep
    the incoming order.
    """
    if field == "score":
        return list(track_ids) if direction == "desc" else list(reversed(track_ids))

    present: list[tuple[object, str]] = []
    missing: list[str] = []
    for track_id in track_ids:
        value = _sort_value(field, track_id, library, stats)
        if value is None:
            missing.append(track_id)
        else:
            present.append((value, track_id))

    present.sort(key=lambda item: item[0], reverse=direction == "desc")
    return [track_id for _, track_id in present] + missing


def save_stats(stats: LibraryStats, path: Path) -> bool:
    """Write ``stats`` to ``path`` atomically.

    Returns:
        True on success, False if the file could not be written
    """
    payload = {
        "version": STATS_VERSION,
        "tracks": {track_id: stats.get(track_id)._asdict() for track_id in sorted(stats)},
    }
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=1)
        os.replace(tmp_path, path)
    except OSError as e:
        logger.error(f"Failed to write track stats {path}: {e}")
        return False

    logger.debug(f"Track stats saved: {len(stats)} tracks -> {path}")
    return True


def load_stats(path: Path) -> LibraryStats:
    """Read saved stats; a missing or unusable file gives empty stats."""
    if not path.exists():
        return LibraryStats()

    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable track stats {path}: {e}")
        return LibraryStats()

    if not isinstance(payload, dict) or payload.get("version") != STATS_VERSION:
        logger.warning(f"Ignoring track stats with unknown format: {path}")
        return LibraryStats()

    try:
        entries = {
            str(track_id): TrackStats(**fields)
            for track_id, fields in payload.get("tracks", {}).items()
        }
    except (AttributeError, TypeError) as e:
        logger.warning(f"Ignoring malformed track stats {path}: {e}")
        return LibraryStats()

    logger.info(f"Loaded stats for {len(entries)} tracks")
    return LibraryStats(entries)
