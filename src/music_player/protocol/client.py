"""Client for talking to a running player over its control socket."""

import json
import socket
from pathlib import Path
from typing import Any, Optional, Tuple

from .server import get_socket_path


def send_request(
    payload: dict[str, Any], socket_path: Optional[Path] = None
) -> Tuple[bool, str, Any]:
    """
    Send one request to the running player.

    Args:
        payload: ``{"method": ..., "args": [...]}`` or ``{"get": ...}``
        socket_path: Override the default control socket

    Returns:
        (success, message, data) tuple
    """
    socket_path = socket_path or get_socket_path()

    if not socket_path.exists():
        return False, "Music Player is not running", None

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(5.0)
            sock.connect(str(socket_path))
            sock.sendall((json.dumps(payload) + "\n").encode("utf-8"))

            response_data = b""
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                response_data += chunk
                if b"\n" in response_data:
                    break

        if not response_data:
            return False, "No response from Music Player", None

        response = json.loads(response_data.decode("utf-8").strip())
        return (
            response.get("success", False),
            response.get("message", "No message"),
            response.get("data"),
        )

    except socket.timeout:
        return False, "Music Player not responding (timeout)", None
    except (ConnectionRefusedError, FileNotFoundError):
        return False, "Music Player not running", None
    except json.JSONDecodeError as e:
        return False, f"Invalid response from Music Player: {e}", None
    except OSError as e:
        return False, f"Failed to send request: {e}", None


def send_command(method: str, args: Optional[list[Any]] = None) -> Tuple[bool, str]:
    """Invoke a protocol method such as ``PlayPause`` or ``OpenUri``."""
    success, message, _ = send_request({"method": method, "args": args or []})
    return success, message


def get_properties() -> Tuple[bool, str, Any]:
    """Fetch the full property map."""
    return send_request({"get": "*"})
