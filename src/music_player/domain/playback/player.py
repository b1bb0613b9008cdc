"""
MPV pipeline backend using JSON IPC.

One persistent Unix socket carries both directions: a writer thread drains
queued commands so callers never block, and a reader thread turns mpv events
into PipelineEvent notifications.
"""

import itertools
import json
import os
import queue
import socket
import subprocess
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from music_player.core.exceptions import PipelineError

from .commands import DecodeError, EndOfTrack, PipelineEvent, PositionChanged, StateChanged
from .pipeline import BackendListener

# Seconds between throttled time-pos notifications
POSITION_INTERVAL = 0.5

SOCKET_TIMEOUT = 5.0

# observe_property ids
OBSERVE_TIME_POS = 1
OBSERVE_PAUSE = 2
OBSERVE_CACHE = 3


def check_mpv_available() -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            ["mpv", "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


class MpvBackend:
    """PipelineBackend backed by an ``mpv --idle`` subprocess."""

    def __init__(
        self,
        socket_path: Optional[str] = None,
        volume: int = 50,
        position_interval: float = POSITION_INTERVAL,
    ):
        if socket_path is None:
            socket_path = str(Path(tempfile.gettempdir()) / f"mpv-socket-{os.getpid()}")
        self.socket_path = socket_path
        self.volume = volume
        self.position_interval = position_interval

        self._listener: Optional[BackendListener] = None
        self._process: Optional[subprocess.Popen] = None
        self._sock: Optional[socket.socket] = None
        self._outbox: queue.Queue = queue.Queue()
        self._writer: Optional[threading.Thread] = None
        self._reader: Optional[threading.Thread] = None
        self._closing = threading.Event()
        self._request_ids = itertools.count(1)

        # Event bookkeeping, touched only by the reader thread after start()
        self._pending_token = 0
        self._current_token = 0
        self._current_entry: Optional[int] = None
        self._entry_tokens: dict[int, int] = {}
        self._load_requests: dict[int, int] = {}
        self._seek_requests: set[int] = set()
        self._seek_target: Optional[float] = None
        self._start_offsets: dict[int, float] = {}
        self._loaded = False
        self._paused = False
        self._last_time_pos: Optional[float] = None
        self._last_emitted_pos: Optional[float] = None
        self._state_lock = threading.Lock()

    def set_listener(self, listener: BackendListener) -> None:
        self._listener = listener

    def start(self) -> None:
        """Start mpv and connect to its IPC socket.

        Raises:
            PipelineError: If mpv cannot be started or its socket never appears
        """
        logger.info(f"Starting MPV player with socket: {self.socket_path}")

        if os.path.exists(self.socket_path):
            logger.debug(f"Removing existing socket: {self.socket_path}")
            os.unlink(self.socket_path)

        cmd = [
            "mpv",
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={self.socket_path}",
            f"--volume={self.volume}",
            "--keep-open=no",
            "--load-scripts=no",
        ]

        try:
            self._process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            raise PipelineError(f"Failed to start MPV: {e}") from e

        start_time = time.time()
        while not os.path.exists(self.socket_path):
            if time.time() - start_time > SOCKET_TIMEOUT:
                self._process.kill()
                raise PipelineError(f"MPV socket creation timeout after {SOCKET_TIMEOUT}s")
            time.sleep(0.1)

        try:
            self._sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            self._sock.connect(self.socket_path)
        except OSError as e:
            self._process.kill()
            raise PipelineError(f"MPV socket connection failed: {e}") from e

        self._closing.clear()
        self._writer = threading.Thread(target=self._write_loop, daemon=True, name="MpvWriter")
        self._reader = threading.Thread(target=self._read_loop, daemon=True, name="MpvReader")
        self._writer.start()
        self._reader.start()

        self._send(["observe_property", OBSERVE_TIME_POS, "time-pos"])
        self._send(["observe_property", OBSERVE_PAUSE, "pause"])
        self._send(["observe_property", OBSERVE_CACHE, "paused-for-cache"])
        logger.info("MPV started successfully")

    def _send(self, command: list[Any], request_id: Optional[int] = None) -> int:
        if request_id is None:
            request_id = next(self._request_ids)
        self._outbox.put({"command": command, "request_id": request_id})
        return request_id

    def load(self, path: str, token: int, start: float = 0.0) -> None:
        with self._state_lock:
            self._pending_token = token
            if start > 0:
                self._start_offsets[token] = start
        self._send(["set_property", "pause", False])
        # Registered before sending so the reply can never beat the mapping
        request_id = next(self._request_ids)
        with self._state_lock:
            self._load_requests[request_id] = token
        self._send(["loadfile", path, "replace"], request_id)

    def play(self) -> None:
        self._send(["set_property", "pause", False])

    def pause(self) -> None:
        self._send(["set_property", "pause", True])

    def stop(self) -> None:
        self._send(["stop"])

    def seek(self, position: float) -> None:
        request_id = next(self._request_ids)
        with self._state_lock:
            self._seek_target = position
            self._seek_requests.add(request_id)
        self._send(["seek", position, "absolute"], request_id)

    def set_volume(self, level: int) -> None:
        self._send(["set_property", "volume", max(0, min(100, level))])

    def shutdown(self, timeout: float) -> None:
        """Quit mpv and wait up to ``timeout`` seconds for it to exit."""
        self._closing.set()
        self._outbox.put({"command": ["quit"]})
        self._outbox.put(None)

        deadline = time.time() + timeout
        if self._writer is not None:
            self._writer.join(timeout=max(0.0, deadline - time.time()))

        if self._process is not None:
            try:
                self._process.wait(timeout=max(0.1, deadline - time.time()))
            except subprocess.TimeoutExpired:
                logger.warning("MPV did not exit in time, killing it")
                self._process.kill()

        if self._sock is not None:
            try:
                self._sock.close()
            except OSError:
                pass

        if self._reader is not None:
            self._reader.join(timeout=max(0.0, deadline - time.time()))

        if os.path.exists(self.socket_path):
            try:
                os.unlink(self.socket_path)
            except OSError:
                pass

    def _write_loop(self) -> None:
        while True:
            message = self._outbox.get()
            if message is None:
                return
            try:
                self._sock.sendall((json.dumps(message) + "\n").encode("utf-8"))
            except OSError as e:
                if not self._closing.is_set():
                    logger.error(f"Failed to send MPV command {message['command']}: {e}")
                return

    def _read_loop(self) -> None:
        buffer = b""
        try:
            while True:
                chunk = self._sock.recv(4096)
                if not chunk:
                    break
                buffer += chunk
                while b"\n" in buffer:
                    line, buffer = buffer.split(b"\n", 1)
                    if not line.strip():
                        continue
                    try:
                        message = json.loads(line.decode("utf-8"))
                    except json.JSONDecodeError:
                        logger.warning(f"Unparseable MPV message: {line!r}")
                        continue
                    self._handle_message(message)
        except OSError as e:
            if not self._closing.is_set():
                logger.error(f"MPV socket read failed: {e}")

        if not self._closing.is_set():
            logger.error("MPV connection closed unexpectedly")
            if self._loaded:
                self._emit(self._current_token, DecodeError(None, "audio pipeline exited"))

    def _emit(self, token: int, event: PipelineEvent) -> None:
        if self._listener is None:
            logger.debug(f"Dropping MPV event with no listener: {event}")
            return
        self._listener(token, event)

    def _handle_message(self, message: dict[str, Any]) -> None:
        """Translate one mpv IPC message into PipelineEvents."""
        if "event" not in message:
            self._handle_reply(message)
            return

        event = message["event"]
        if event == "start-file":
            entry_id = message.get("playlist_entry_id")
            with self._state_lock:
                # loadfile replies name their playlist entry; older mpv
                # builds omit it, leaving only the most recent load
                token = self._entry_tokens.get(entry_id)
                self._current_token = token if token is not None else self._pending_token
                self._seek_target = None
            self._current_entry = entry_id
            if entry_id is not None:
                self._entry_tokens[entry_id] = self._current_token
            self._loaded = False
            self._last_time_pos = None
            self._last_emitted_pos = None

        elif event == "file-loaded":
            self._loaded = True
            token = self._current_token
            with self._state_lock:
                start = self._start_offsets.pop(token, 0.0)
            if start > 0:
                self.seek(start)
            self._emit(token, StateChanged("paused" if self._paused else "playing"))

        elif event == "end-file":
            entry_id = message.get("playlist_entry_id")
            token = self._entry_tokens.pop(entry_id, self._current_token)
            if token == self._current_token:
                self._loaded = False
            reason = message.get("reason")
            if reason == "eof":
                self._emit(token, EndOfTrack())
            elif reason == "error":
                detail = message.get("file_error") or "playback error"
                self._emit(token, DecodeError(None, str(detail)))
            else:
                logger.debug(f"Ignoring end-file reason={reason} token={token}")

        elif event == "playback-restart":
            with self._state_lock:
                target, self._seek_target = self._seek_target, None
            position = target if target is not None else self._last_time_pos
            if self._loaded and position is not None:
                self._last_time_pos = position
                self._last_emitted_pos = position
                self._emit(self._current_token, PositionChanged(position, confirmed=True))

        elif event == "property-change":
            self._handle_property(message.get("name"), message.get("data"))

    def _handle_property(self, name: Optional[str], data: Any) -> None:
        if name == "pause":
            self._paused = bool(data)
            if self._loaded:
                self._emit(
                    self._current_token, StateChanged("paused" if self._paused else "playing")
                )
        elif name == "paused-for-cache":
            if self._loaded:
                state = "buffering" if data else ("paused" if self._paused else "playing")
                self._emit(self._current_token, StateChanged(state))
        elif name == "time-pos":
            if data is None or not self._loaded:
                return
            self._last_time_pos = float(data)
            if (
                self._last_emitted_pos is None
                or abs(self._last_time_pos - self._last_emitted_pos) >= self.position_interval
            ):
                self._last_emitted_pos = self._last_time_pos
                self._emit(self._current_token, PositionChanged(self._last_time_pos))

    def _handle_reply(self, message: dict[str, Any]) -> None:
        request_id = message.get("request_id")
        error = message.get("error")
        with self._state_lock:
            token = self._load_requests.pop(request_id, None)
            was_seek = request_id in self._seek_requests
            self._seek_requests.discard(request_id)
        if request_id is None:
            return

        if error == "success":
            data = message.get("data")
            entry_id = data.get("playlist_entry_id") if isinstance(data, dict) else None
            if token is not None and entry_id is not None:
                self._entry_tokens[entry_id] = token
                if entry_id == self._current_entry:
                    self._current_token = token
            return

        if token is not None:
            self._emit(token, DecodeError(None, f"loadfile failed: {error}"))
        elif was_seek:
            # No playback-restart follows a rejected seek
            logger.warning(f"MPV rejected seek: {error}")
            with self._state_lock:
                self._seek_target = None
            if self._loaded and self._last_time_pos is not None:
                self._emit(
                    self._current_token, PositionChanged(self._last_time_pos, confirmed=True)
                )
        else:
            logger.debug(f"MPV request {request_id} failed: {error}")
