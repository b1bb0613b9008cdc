"""
Music metadata extraction and track display utilities.

Reads tags from audio files using Mutagen and normalizes them into
MetadataRecord values.
"""

from pathlib import Path
from typing import Any, Optional

from loguru import logger
from mutagen import File as MutagenFile
from mutagen import MutagenError

from .models import MetadataRecord

TITLE_TAGS = ["TIT2", "\xa9nam", "TITLE", "title"]
ARTIST_TAGS = ["TPE1", "\xa9ART", "ARTIST", "artist"]
ALBUM_TAGS = ["TALB", "\xa9alb", "ALBUM", "album"]
TRACK_NUMBER_TAGS = ["TRCK", "trkn", "TRACKNUMBER", "tracknumber"]


def get_tag_value(audio_file: Any, tag_names: list[str]) -> Optional[str]:
    """Get tag value, trying multiple possible tag names."""
    for tag_name in tag_names:
        try:
            value = audio_file.get(tag_name)
        except (KeyError, ValueError):
            # Some formats (like Vorbis) raise ValueError for non-existent keys
            continue
        if not value:
            continue
        if isinstance(value, list):
            value = value[0]
        # MP4 track numbers are (number, total) tuples
        if isinstance(value, tuple):
            value = value[0]
        return str(value)
    return None


def parse_track_number(value: Optional[str]) -> Optional[int]:
    """Parse a track number tag such as ``"3"`` or ``"3/12"``."""
    if not value:
        return None
    head = str(value).split("/")[0].strip()
    try:
        number = int(head)
    except ValueError:
        return None
    return number if number > 0 else None


def extract_metadata_from_filename(local_path: str) -> dict[str, Any]:
    """Extract basic info from filename as fallback."""
    title = Path(local_path).stem
    artist = None

    # Try to parse "Artist - Title" format
    if " - " in title:
        artist, title = (part.strip() for part in title.split(" - ", 1))

    return {"title": title, "artist": artist or None}


def extract_metadata(local_path: str) -> MetadataRecord:
    """Extract a MetadataRecord from an audio file using mutagen.

    Files mutagen cannot parse fall back to filename-derived metadata.

    Raises:
        OSError: If the file itself cannot be read
    """
    # Surface unreadable files to the scanner before mutagen hides the cause
    with open(local_path, "rb"):
        pass

    try:
        audio_file = MutagenFile(local_path)
    except MutagenError as e:
        logger.warning(f"Could not read tags from {local_path}: {e}")
        audio_file = None

    if audio_file is None:
        fallback = extract_metadata_from_filename(local_path)
        return MetadataRecord.for_path(
            local_path, title=fallback["title"], artist=fallback["artist"]
        )

    title = get_tag_value(audio_file, TITLE_TAGS)
    artist = get_tag_value(audio_file, ARTIST_TAGS)
    album = get_tag_value(audio_file, ALBUM_TAGS)
    track_no = parse_track_number(get_tag_value(audio_file, TRACK_NUMBER_TAGS))

    duration = None
    if getattr(audio_file, "info", None) is not None:
        length = getattr(audio_file.info, "length", None)
        if length:
            duration = float(length)

    if not title:
        fallback = extract_metadata_from_filename(local_path)
        title = fallback["title"]
        artist = artist or fallback["artist"]

    return MetadataRecord.for_path(
        local_path,
        title=title,
        artist=artist,
        album=album,
        track_no=track_no,
        duration=duration,
    )


def display_name(record: MetadataRecord) -> str:
    """Get a display-friendly name for the track."""
    if record.artist and record.title:
        return f"{record.artist} - {record.title}"
    elif record.title:
        return record.title
    return Path(record.path).stem


def format_time(seconds: Optional[float]) -> str:
    """Format time in seconds to MM:SS format."""
    if seconds is None or seconds < 0:
        return "--:--"

    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes:02d}:{secs:02d}"
