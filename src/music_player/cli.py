"""
Music Player CLI - entry point.

Without a subcommand the interactive player starts; a file path in place of
a subcommand starts it with that file playing. Subcommands either work
on the library directly (scan, search, session) or talk to a running player
over its control socket (ctl, status).
"""

import argparse
import json
import sys
from typing import Any, Optional

from rich.table import Table

from music_player.core import config as config_module
from music_player.core.console import get_console, safe_print
from music_player.domain import library
from music_player.domain.playback import clear_session


SUBCOMMANDS = ("scan", "search", "ctl", "status", "session", "play")


def route_file_argument(argv: list[str]) -> list[str]:
    """Treat a leading non-command argument as a file to play.

    ``music-player song.mp3`` becomes ``music-player play song.mp3``.
    """
    for i, arg in enumerate(argv):
        if arg.startswith("-"):
            continue
        if arg in SUBCOMMANDS:
            return argv
        return [*argv[:i], "play", *argv[i:]]
    return argv


def _parse_ctl_arg(value: str) -> Any:
    """Interpret numbers, booleans and quoted strings; anything else is a string."""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def run_scan(cfg: config_module.Config) -> int:
    from .main import scan_library

    result = scan_library(cfg)
    safe_print(f"Scanned {len(result.index)} tracks", "green")

    if result.errors:
        table = Table(title=f"{len(result.errors)} scan errors")
        table.add_column("Path", style="cyan", overflow="fold")
        table.add_column("Reason", style="red")
        for error in result.errors:
            table.add_row(error.path, error.reason)
        get_console().print(table)
        return 1
    return 0


def run_search(cfg: config_module.Config, query: str, limit: int) -> int:
    from .main import get_cache_path, scan_library

    index = library.load_library(get_cache_path()) if cfg.library.use_cache else None
    if index is None:
        index = scan_library(cfg).index

    results = index.search(query, score_cutoff=cfg.search.score_cutoff, limit=limit)
    if not len(results):
        safe_print(f"No matches for {query!r}", "yellow")
        return 1

    table = Table(title=f"Results for {query!r}")
    table.add_column("Score", justify="right")
    table.add_column("Id", style="dim")
    table.add_column("Track", style="cyan")
    table.add_column("Album")
    table.add_column("Length", justify="right")
    for track_id, score in results.scored():
        record = index.lookup(track_id)
        table.add_row(
            f"{score:.0f}",
            track_id,
            library.display_name(record),
            record.album or "",
            library.format_time(record.duration),
        )
    get_console().print(table)
    return 0


def send_ctl_command(method: str, args: list[str]) -> int:
    """
    Invoke a protocol method on the running player.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    from .protocol import send_command

    success, message = send_command(method, [_parse_ctl_arg(a) for a in args])
    if success:
        print(message)
        return 0
    print(message, file=sys.stderr)
    return 1


def show_status() -> int:
    from .protocol import get_properties

    success, message, properties = get_properties()
    if not success:
        print(message, file=sys.stderr)
        return 1

    table = Table(title="Player status", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value")
    metadata = properties.pop("Metadata", {})
    for name, value in properties.items():
        table.add_row(name, str(value))
    for name, value in metadata.items():
        table.add_row(name, str(value))
    get_console().print(table)
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the music-player command."""
    parser = argparse.ArgumentParser(
        description="Music Player - terminal audio player",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without the terminal UI (control via the socket)",
    )

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    play_parser = subparsers.add_parser("play", help="Start the player with a file playing")
    play_parser.add_argument("file", help="Audio file to play")
    play_parser.add_argument(
        "--headless",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Run without the terminal UI",
    )

    subparsers.add_parser("scan", help="Scan the library and refresh the cache")

    search_parser = subparsers.add_parser("search", help="Fuzzy search the library")
    search_parser.add_argument("query", nargs="+", help="Search text")
    search_parser.add_argument("--limit", type=int, default=20, help="Maximum results")

    ctl_parser = subparsers.add_parser(
        "ctl", help="Call a media-control method on the running player"
    )
    ctl_parser.add_argument("method", help="e.g. PlayPause, Next, Seek, OpenUri")
    ctl_parser.add_argument("args", nargs="*", help="Method arguments (JSON values)")

    subparsers.add_parser("status", help="Show the running player's properties")

    session_parser = subparsers.add_parser("session", help="Manage the saved session")
    session_parser.add_argument("action", choices=["clear"])

    args = parser.parse_args(route_file_argument(sys.argv[1:] if argv is None else argv))

    if args.subcommand == "ctl":
        sys.exit(send_ctl_command(args.method, args.args))

    if args.subcommand == "status":
        sys.exit(show_status())

    cfg = config_module.load_config()

    if args.subcommand == "scan":
        sys.exit(run_scan(cfg))

    if args.subcommand == "search":
        sys.exit(run_search(cfg, " ".join(args.query), args.limit))

    if args.subcommand == "session":
        from .main import get_session_path

        removed = clear_session(get_session_path())
        safe_print("Session cleared" if removed else "No saved session", "green")
        sys.exit(0)

    from .main import run_player

    file = args.file if args.subcommand == "play" else None
    sys.exit(run_player(cfg, headless=args.headless, file=file))


if __name__ == "__main__":
    main()
