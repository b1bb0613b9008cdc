"""
Persisted library cache.

Stores the last successful scan as JSON so startup does not wait for a
full re-scan.
"""

import json
import os
from pathlib import Path
from typing import Optional

from loguru import logger

from .index import LibraryIndex
from .models import MetadataRecord

CACHE_VERSION = 1
CACHE_FILENAME = "library.json"


def save_library(index: LibraryIndex, path: Path) -> bool:
    """Write the index to ``path`` atomically.

    Returns:
        True on success, False if the file could not be written
    """
    payload = {
        "version": CACHE_VERSION,
        "records": [record._asdict() for record in index.records_sorted()],
    }
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=1)
        os.replace(tmp_path, path)
    except OSError as e:
        logger.error(f"Failed to write library cache {path}: {e}")
        return False

    logger.info(f"Library cache saved: {len(index)} tracks -> {path}")
    return True


def load_library(path: Path) -> Optional[LibraryIndex]:
    """Read a cached index.

    Returns:
        The cached LibraryIndex, or None if the cache is missing, corrupt or
        written by another format version
    """
    if not path.exists():
        return None

    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Ignoring unreadable library cache {path}: {e}")
        return None

    if not isinstance(payload, dict) or payload.get("version") != CACHE_VERSION:
        logger.warning(f"Ignoring library cache with unknown format: {path}")
        return None

    try:
        records = [MetadataRecord(**item) for item in payload.get("records", [])]
    except TypeError as e:
        logger.warning(f"Ignoring malformed library cache {path}: {e}")
        return None

    logger.info(f"Loaded {len(records)} tracks from library cache")
    return LibraryIndex(records)
