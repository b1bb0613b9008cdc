"""Library domain - scanning, tag reading, indexing and search.

This domain handles:
- Metadata extraction from audio files (mutagen)
- Library scanning with collected, non-fatal errors
- The read-only LibraryIndex with fuzzy search (rapidfuzz)
- The persisted library cache
- Per-track ratings, play counts and display sort orders
"""

from .cache import load_library, save_library
from .index import LibraryIndex, SearchResults
from .metadata import display_name, extract_metadata, format_time
from .models import MetadataRecord, track_id_for_path
from .scanner import ScanResult, scan, start_background_scan
from .stats import (
    LibraryStats,
    TrackStats,
    load_stats,
    save_stats,
    sort_track_ids,
)

__all__ = [
    "MetadataRecord",
    "track_id_for_path",
    "LibraryIndex",
    "SearchResults",
    "extract_metadata",
    "display_name",
    "format_time",
    "ScanResult",
    "scan",
    "start_background_scan",
    "load_library",
    "save_library",
    "LibraryStats",
    "TrackStats",
    "load_stats",
    "save_stats",
    "sort_track_ids",
]
