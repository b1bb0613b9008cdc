"""Blessed-based terminal UI."""

from .app import run_interactive_ui

__all__ = ["run_interactive_ui"]
