"""UI layer for Music Player.

Contains:
- blessed: full-screen terminal UI
"""

__all__ = []
