"""Blessed UI helper functions."""

from .scrolling import calculate_scroll_offset, clamp_selection, move_selection
from .terminal import paint, write_at

__all__ = [
    "write_at",
    "paint",
    "calculate_scroll_offset",
    "move_selection",
    "clamp_selection",
]
