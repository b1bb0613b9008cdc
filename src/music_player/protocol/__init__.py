"""Media-control protocol bridge and its Unix socket transport."""

from .adapter import ProtocolAdapter, ProtocolBackend, playback_status
from .client import get_properties, send_command, send_request
from .server import SocketProtocolBackend, get_socket_path

__all__ = [
    "ProtocolAdapter",
    "ProtocolBackend",
    "playback_status",
    "SocketProtocolBackend",
    "get_socket_path",
    "send_request",
    "send_command",
    "get_properties",
]
