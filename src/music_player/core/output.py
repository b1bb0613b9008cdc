"""
Unified output system using Loguru.
Routes user-facing messages to the log file and the terminal UI (or stdout).
"""

import sys
import threading
from pathlib import Path

from loguru import logger

# Set while the blessed UI owns the terminal
_ui_mode_active = False
_ui_mode_lock = threading.Lock()

# Messages waiting to be shown on the UI notice line
_pending_messages: list[tuple[str, str]] = []
_pending_messages_lock = threading.Lock()


def setup_loguru(
    log_file: Path,
    level: str = "INFO",
    max_file_size_mb: int = 10,
    backup_count: int = 5,
    console_output: bool = False,
) -> None:
    """
    Configure loguru for file logging (the UI handles console display).

    Args:
        log_file: Path to log file
        level: Minimum level for file logging (DEBUG, INFO, WARNING, ERROR)
        max_file_size_mb: Rotate the file once it reaches this size
        backup_count: Number of rotated files to keep
        console_output: Also log to stderr (headless runs)
    """
    logger.remove()

    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        rotation=f"{max_file_size_mb} MB",
        retention=backup_count,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {thread.name} | {name}:{line} | {message}",
        enqueue=False,
    )

    if console_output:
        logger.add(sys.stderr, level=level)

    logger.info(f"Loguru initialized: {log_file} (level={level})")


def set_ui_mode() -> None:
    """Enable UI mode - log() queues messages for the notice line instead of printing."""
    global _ui_mode_active
    with _ui_mode_lock:
        _ui_mode_active = True
    logger.debug("UI mode enabled - log() will queue notices")


def clear_ui_mode() -> None:
    """Disable UI mode - restores stdout printing."""
    global _ui_mode_active
    with _ui_mode_lock:
        _ui_mode_active = False
    logger.debug("UI mode disabled - log() will print to stdout")


def drain_pending_messages() -> list[tuple[str, str]]:
    """
    Get and clear all pending UI messages.

    Returns:
        List of (message, level) tuples
    """
    global _pending_messages
    with _pending_messages_lock:
        messages = _pending_messages[:]
        _pending_messages = []
        return messages


def log(message: str, level: str = "info") -> None:
    """
    Unified logging: writes to file AND shows the message to the user.

    Threads with a truthy ``silent_logging`` attribute only write to the file.

    Args:
        message: User-facing message
        level: Log level (debug, info, warning, error)
    """
    log_func = getattr(logger, level)
    log_func(message)

    if getattr(threading.current_thread(), "silent_logging", False):
        return

    with _ui_mode_lock:
        ui_active = _ui_mode_active

    if ui_active:
        with _pending_messages_lock:
            _pending_messages.append((message, level))
    else:
        print(message)
