"""
Library index: every known MetadataRecord plus fuzzy search over them.

An index is built once per scan and never mutated afterwards, so it can be
shared between threads without locking.
"""

from types import MappingProxyType
from typing import Iterable, Iterator, Mapping, Optional

from rapidfuzz import fuzz, process, utils

from .models import MetadataRecord

DEFAULT_SCORE_CUTOFF = 60.0


def _title_key(record: MetadataRecord) -> tuple[str, str]:
    return (record.title.casefold(), record.id)


class SearchResults:
    """Ranked, finite and restartable sequence of track ids.

    Scoring happens on first iteration; every later iteration replays the
    same ranking.
    """

    def __init__(
        self,
        index: "LibraryIndex",
        query: str,
        score_cutoff: float = DEFAULT_SCORE_CUTOFF,
        limit: Optional[int] = None,
    ):
        self.query = query
        self._index = index
        self._score_cutoff = score_cutoff
        self._limit = limit
        self._ranked: Optional[list[tuple[str, float]]] = None

    def _rank(self) -> list[tuple[str, float]]:
        if self._ranked is None:
            self._ranked = self._index._score(self.query, self._score_cutoff, self._limit)
        return self._ranked

    def __iter__(self) -> Iterator[str]:
        for track_id, _ in self._rank():
            yield track_id

    def __len__(self) -> int:
        return len(self._rank())

    def scored(self) -> list[tuple[str, float]]:
        """(track_id, score) pairs in rank order."""
        return list(self._rank())


class LibraryIndex:
    """Read-only mapping from track id to MetadataRecord with fuzzy lookup."""

    def __init__(self, records: Iterable[MetadataRecord] = ()):
        by_id: dict[str, MetadataRecord] = {}
        for record in records:
            by_id[record.id] = record
        self._records = MappingProxyType(by_id)
        self._search_text = {
            track_id: record.search_text() for track_id, record in by_id.items()
        }

    @property
    def records(self) -> Mapping[str, MetadataRecord]:
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._records

    def __iter__(self) -> Iterator[MetadataRecord]:
        return iter(self._records.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LibraryIndex):
            return NotImplemented
        return dict(self._records) == dict(other._records)

    def lookup(self, track_id: str) -> Optional[MetadataRecord]:
        """Return the record for ``track_id`` or None."""
        return self._records.get(track_id)

    def with_records(self, records: Iterable[MetadataRecord]) -> "LibraryIndex":
        """A new index holding these records as well; same ids are replaced."""
        return LibraryIndex([*self._records.values(), *records])

    def records_sorted(self) -> list[MetadataRecord]:
        """Records ordered for browsing: artist, album, track number, title."""
        return sorted(
            self._records.values(),
            key=lambda r: (
                (r.artist or "").casefold(),
                (r.album or "").casefold(),
                r.track_no or 0,
                r.title.casefold(),
                r.id,
            ),
        )

    def search(
        self,
        query: str,
        score_cutoff: float = DEFAULT_SCORE_CUTOFF,
        limit: Optional[int] = None,
    ) -> SearchResults:
        """Fuzzy search over title, artist and album.

        Args:
            query: Free text; an empty query matches every track
            score_cutoff: Minimum rapidfuzz score (0-100) to keep a match
            limit: Maximum number of results (None for all)

        Returns:
            SearchResults yielding track ids by descending score, ties
            broken by ascending title
        """
        return SearchResults(self, query, score_cutoff=score_cutoff, limit=limit)

    def _score(
        self, query: str, score_cutoff: float, limit: Optional[int]
    ) -> list[tuple[str, float]]:
        if not query.strip():
            ranked = [
                (record.id, 100.0)
                for record in sorted(self._records.values(), key=_title_key)
            ]
            return ranked[:limit] if limit is not None else ranked

        matches = process.extract(
            query,
            self._search_text,
            scorer=fuzz.WRatio,
            processor=utils.default_process,
            limit=None,
            score_cutoff=score_cutoff,
        )
        # Choices are a dict, so each match is (text, score, track_id)
        ranked = sorted(
            ((track_id, float(score)) for _, score, track_id in matches),
            key=lambda item: (-item[1], *_title_key(self._records[item[0]])),
        )
        return ranked[:limit] if limit is not None else ranked
