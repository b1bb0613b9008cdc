"""Unix socket transport for the media-control surface."""

import json
import socket
import threading
from collections import deque
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from loguru import logger

from music_player.core.config import get_runtime_dir
from music_player.core.exceptions import ProtocolFault

if TYPE_CHECKING:
    from .adapter import ProtocolAdapter

SOCKET_FILENAME = "control.sock"

# Pending change notifications kept for polling clients
MAX_PENDING_CHANGES = 100


def get_socket_path() -> Path:
    """
    Get the path to the control socket.

    Returns:
        Path to Unix socket
    """
    socket_dir = get_runtime_dir()
    socket_dir.mkdir(parents=True, exist_ok=True)
    return socket_dir / SOCKET_FILENAME


class SocketProtocolBackend:
    """Unix socket server exposing a ProtocolAdapter.

    Runs in a background thread and handles one JSON request per connection.
    Requests are either ``{"method": name, "args": [...]}`` or
    ``{"get": name}`` where name is a property, ``"*"`` for all of them, or
    ``"changes"`` to collect queued change notifications.
    """

    def __init__(self, socket_path: Optional[Path] = None):
        self.socket_path = Path(socket_path) if socket_path else get_socket_path()
        self.server_socket: Optional[socket.socket] = None
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._adapter: Optional["ProtocolAdapter"] = None
        self._changes: deque[dict[str, Any]] = deque(maxlen=MAX_PENDING_CHANGES)
        self._changes_lock = threading.Lock()

    def start(self, adapter: "ProtocolAdapter") -> None:
        """Start the server in a background thread."""
        if self.running:
            return
        self._adapter = adapter

        # Remove stale socket if it exists
        if self.socket_path.exists():
            try:
                self.socket_path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove stale socket {self.socket_path}: {e}")

        self.running = True
        self.thread = threading.Thread(
            target=self._run_server, daemon=True, name="ProtocolServerThread"
        )
        self.thread.start()
        logger.info(f"Control socket listening on {self.socket_path}")

    def stop(self) -> None:
        """Stop the server and cleanup."""
        self.running = False

        # Close server socket to unblock accept()
        if self.server_socket:
            try:
                self.server_socket.close()
            except OSError:
                pass

        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=2.0)

        if self.socket_path.exists():
            try:
                self.socket_path.unlink()
            except OSError:
                pass

    def properties_changed(self, changed: dict[str, Any]) -> None:
        with self._changes_lock:
            self._changes.append(changed)
        logger.debug(f"PropertiesChanged: {sorted(changed)}")

    def pending_changes(self) -> list[dict[str, Any]]:
        """Get and clear queued change notifications."""
        with self._changes_lock:
            changes = list(self._changes)
            self._changes.clear()
        return changes

    def _run_server(self) -> None:
        threading.current_thread().silent_logging = True
        try:
            self.server_socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            self.server_socket.bind(str(self.socket_path))
            self.server_socket.listen(5)
            self.server_socket.settimeout(1.0)  # Poll every second

            while self.running:
                try:
                    client_socket, _ = self.server_socket.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    if self.running:
                        logger.error(f"Error accepting connection: {e}")
                    continue

                # One misbehaving client must not end the accept loop
                try:
                    self._handle_client(client_socket)
                except Exception:
                    logger.exception("Unhandled error serving control client")
        except OSError:
            logger.exception("Control socket server error")
        finally:
            if self.server_socket:
                self.server_socket.close()

    def _handle_client(self, client_socket: socket.socket) -> None:
        try:
            data = b""
            while True:
                chunk = client_socket.recv(4096)
                if not chunk:
                    break
                data += chunk
                if b"\n" in data:
                    break

            if not data:
                return

            try:
                payload = json.loads(data.decode("utf-8").strip())
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                response = {"success": False, "message": f"Invalid JSON: {e}", "data": None}
            else:
                response = self.handle_request(payload)

            client_socket.sendall((json.dumps(response) + "\n").encode("utf-8"))
        except OSError as e:
            logger.warning(f"Control client connection failed: {e}")
        finally:
            client_socket.close()

    def handle_request(self, payload: Any) -> dict[str, Any]:
        """Process one decoded request and build the reply."""
        if self._adapter is None:
            return {"success": False, "message": "Server not started", "data": None}
        if not isinstance(payload, dict):
            return {"success": False, "message": "Request must be a JSON object", "data": None}

        try:
            if "get" in payload:
                name = payload["get"]
                if not isinstance(name, str):
                    raise ProtocolFault("get must be a property name")
                if name == "*":
                    data = self._adapter.properties()
                elif name == "changes":
                    data = self.pending_changes()
                else:
                    data = self._adapter.get_property(name)
                return {"success": True, "message": "ok", "data": data}

            method = payload.get("method", "")
            if not isinstance(method, str):
                raise ProtocolFault("method must be a string")
            args = payload.get("args", [])
            if not isinstance(args, list):
                raise ProtocolFault("args must be a list")
            message = self._adapter.call(method, args)
            return {"success": True, "message": message, "data": None}
        except ProtocolFault as e:
            logger.warning(f"Protocol request failed: {e}")
            return {"success": False, "message": str(e), "data": None}
