"""Shared fixtures: sample records and an in-memory pipeline backend."""

from typing import Optional

import pytest

from music_player.domain.library.index import LibraryIndex
from music_player.domain.library.models import MetadataRecord
from music_player.domain.playback.commands import PipelineEvent
from music_player.domain.playback.orchestrator import PlaybackOrchestrator, PlaybackPolicy
from music_player.domain.playback.pipeline import BackendListener


class FakePipelineBackend:
    """PipelineBackend that records calls and emits events on demand."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.listener: Optional[BackendListener] = None
        self.last_token = 0

    def set_listener(self, listener: BackendListener) -> None:
        self.listener = listener

    def start(self) -> None:
        self.calls.append(("start",))

    def load(self, path: str, token: int, start: float = 0.0) -> None:
        self.last_token = token
        self.calls.append(("load", path, start))

    def play(self) -> None:
        self.calls.append(("play",))

    def pause(self) -> None:
        self.calls.append(("pause",))

    def stop(self) -> None:
        self.calls.append(("stop",))

    def seek(self, position: float) -> None:
        self.calls.append(("seek", position))

    def set_volume(self, level: int) -> None:
        self.calls.append(("set_volume", level))

    def shutdown(self, timeout: float) -> None:
        self.calls.append(("shutdown", timeout))

    def emit(self, event: PipelineEvent, token: Optional[int] = None) -> None:
        """Deliver ``event`` as if the engine produced it for ``token``."""
        self.listener(self.last_token if token is None else token, event)

    def loaded_paths(self) -> list[str]:
        return [call[1] for call in self.calls if call[0] == "load"]

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture
def records() -> list[MetadataRecord]:
    """Three tracks with known durations."""
    return [
        MetadataRecord.for_path(
            "/music/alpha.mp3", title="Alpha", artist="Band X", album="First", track_no=1, duration=200.0
        ),
        MetadataRecord.for_path(
            "/music/beta.mp3", title="Beta", artist="Band Y", album="Second", track_no=2, duration=180.0
        ),
        MetadataRecord.for_path(
            "/music/gamma.mp3", title="Gamma", artist="Band Z", album="Third", track_no=3, duration=240.0
        ),
    ]


@pytest.fixture
def library(records: list[MetadataRecord]) -> LibraryIndex:
    return LibraryIndex(records)


@pytest.fixture
def backend() -> FakePipelineBackend:
    return FakePipelineBackend()


@pytest.fixture
def orchestrator(backend: FakePipelineBackend, library: LibraryIndex) -> PlaybackOrchestrator:
    """Orchestrator with repeat off, shuffle off and a fixed shuffle seed."""
    return PlaybackOrchestrator(backend, library, policy=PlaybackPolicy(), seed=7)
