"""
Pipeline adapter: the only bridge between the orchestrator and the audio
pipeline.

Orchestrator commands are forwarded to a PipelineBackend without waiting for
results; backend notifications are stamped with the generation of the load
they belong to and pushed onto the shared event channel.
"""

import queue
import threading
from dataclasses import replace
from typing import Callable, Optional, Protocol

from loguru import logger

from .commands import DecodeError, PipelineEvent, StateChanged

BackendListener = Callable[[int, PipelineEvent], None]


class PipelineBackend(Protocol):
    """Audio engine contract consumed by PipelineAdapter.

    Every method must return without waiting for the engine. Notifications
    are delivered through the listener as ``(token, event)`` where ``token``
    is the value passed to the ``load`` that produced the event.
    """

    def set_listener(self, listener: BackendListener) -> None: ...

    def start(self) -> None: ...

    def load(self, path: str, token: int, start: float = 0.0) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def stop(self) -> None: ...

    def seek(self, position: float) -> None: ...

    def set_volume(self, level: int) -> None: ...

    def shutdown(self, timeout: float) -> None: ...


class PipelineAdapter:
    """Generation-tagging wrapper around a PipelineBackend.

    At most one load is in flight: a second ``load`` before the first one
    resolves stops the pipeline and supersedes the earlier generation.
    """

    def __init__(self, backend: PipelineBackend, channel: queue.Queue):
        self._backend = backend
        self._channel = channel
        self._lock = threading.Lock()
        self._generation = 0
        self._in_flight: Optional[int] = None
        self._track_ids: dict[int, str] = {}
        backend.set_listener(self._on_backend_event)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def in_flight(self) -> Optional[int]:
        return self._in_flight

    def start(self) -> None:
        self._backend.start()

    def load(self, path: str, track_id: str, start: float = 0.0) -> int:
        """Begin loading ``path``; completion arrives later as an event.

        Returns:
            The generation tag of this load
        """
        with self._lock:
            if self._in_flight is not None:
                logger.info(f"Superseding in-flight load generation={self._in_flight}")
                self._backend.stop()
            self._generation += 1
            generation = self._generation
            self._in_flight = generation
            # Only the current generation needs its track id
            self._track_ids = {generation: track_id}

        logger.debug(f"Load generation={generation} track={track_id} path={path}")
        self._backend.load(path, generation, start)
        return generation

    def play(self) -> None:
        self._backend.play()

    def pause(self) -> None:
        self._backend.pause()

    def stop(self) -> None:
        with self._lock:
            self._in_flight = None
        self._backend.stop()

    def seek(self, position: float) -> None:
        self._backend.seek(position)

    def set_volume(self, level: int) -> None:
        self._backend.set_volume(level)

    def shutdown(self, timeout: float) -> None:
        self._backend.shutdown(timeout)

    def _on_backend_event(self, token: int, event: PipelineEvent) -> None:
        with self._lock:
            resolves_load = isinstance(event, DecodeError) or (
                isinstance(event, StateChanged) and event.state != "buffering"
            )
            if resolves_load and token == self._in_flight:
                self._in_flight = None
            track_id = self._track_ids.get(token)

        if isinstance(event, DecodeError) and event.track_id is None:
            event = replace(event, track_id=track_id)

        self._channel.put(replace(event, generation=token))
