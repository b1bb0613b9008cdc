"""
Music library domain models.

Contains data structures for representing scanned tracks.
"""

import hashlib
import os
from typing import NamedTuple, Optional


def track_id_for_path(path: str) -> str:
    """Derive a stable track id from a file path.

    The id is the first 16 hex characters of the SHA-1 of the absolute path,
    so it is identical across runs for the same file.
    """
    absolute = os.path.abspath(os.path.expanduser(path))
    return hashlib.sha1(absolute.encode("utf-8")).hexdigest()[:16]


class MetadataRecord(NamedTuple):
    """Normalized, immutable descriptor of one audio file.

    Records are replaced wholesale on re-scan, never edited.
    """

    id: str
    path: str
    title: str
    artist: Optional[str] = None
    album: Optional[str] = None
    track_no: Optional[int] = None
    duration: Optional[float] = None  # in seconds

    @classmethod
    def for_path(cls, path: str, **fields) -> "MetadataRecord":
        """Build a record whose id is derived from ``path``."""
        absolute = os.path.abspath(os.path.expanduser(path))
        return cls(id=track_id_for_path(absolute), path=absolute, **fields)

    def search_text(self) -> str:
        """Text matched by fuzzy search (title, artist, album)."""
        return " ".join(part for part in (self.title, self.artist, self.album) if part)
