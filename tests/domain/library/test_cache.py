"""Tests for the persisted library cache."""

import json

from music_player.domain.library.cache import CACHE_VERSION, load_library, save_library
from music_player.domain.library.index import LibraryIndex


def test_saved_cache_loads_back(tmp_path, library):
    path = tmp_path / "cache" / "library.json"
    assert save_library(library, path) is True
    assert load_library(path) == library


def test_missing_cache(tmp_path):
    assert load_library(tmp_path / "library.json") is None


def test_corrupt_cache_is_ignored(tmp_path):
    path = tmp_path / "library.json"
    path.write_text("[[[")
    assert load_library(path) is None


def test_other_version_is_ignored(tmp_path):
    path = tmp_path / "library.json"
    path.write_text(json.dumps({"version": CACHE_VERSION + 1, "records": []}))
    assert load_library(path) is None


def test_malformed_record_is_ignored(tmp_path):
    path = tmp_path / "library.json"
    path.write_text(json.dumps({"version": CACHE_VERSION, "records": [{"title": "no id"}]}))
    assert load_library(path) is None


def test_empty_index(tmp_path):
    path = tmp_path / "library.json"
    save_library(LibraryIndex(), path)
    assert len(load_library(path)) == 0
