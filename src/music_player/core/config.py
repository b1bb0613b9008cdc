"""
Configuration management for Music Player
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

from music_player.core.exceptions import ConfigError

REPEAT_CHOICES = ("off", "track", "queue")


@dataclass
class MusicConfig:
    """Configuration for music library settings."""

    library_paths: List[str] = field(
        default_factory=lambda: [str(Path.home() / "Music")]
    )
    supported_formats: List[str] = field(
        default_factory=lambda: [".mp3", ".m4a", ".ogg", ".opus", ".wav", ".flac"]
    )
    scan_recursive: bool = True


@dataclass
class PlayerConfig:
    """Configuration for playback settings."""

    mpv_socket_path: Optional[str] = None
    volume: int = 50
    repeat: str = "queue"  # off, track, queue
    shuffle: bool = False
    auto_skip_on_decode_error: bool = True
    max_fault_retries: int = 1
    shutdown_timeout: float = 2.0
    restore_session: bool = True

    def validate(self) -> None:
        """Validate player configuration values.

        Raises:
            ConfigError: If configuration values are invalid
        """
        if not 0 <= self.volume <= 100:
            raise ConfigError(f"volume must be within 0-100, got {self.volume}")
        if self.repeat not in REPEAT_CHOICES:
            raise ConfigError(
                f"Invalid repeat mode: {self.repeat!r}. Valid modes are: {REPEAT_CHOICES}"
            )
        if self.max_fault_retries < 0:
            raise ConfigError("max_fault_retries must not be negative")
        if self.shutdown_timeout <= 0:
            raise ConfigError("shutdown_timeout must be positive")


@dataclass
class SearchConfig:
    """Configuration for fuzzy search."""

    score_cutoff: float = 60.0
    limit: Optional[int] = None


@dataclass
class LibraryConfig:
    """Configuration for the persisted library cache."""

    use_cache: bool = True
    rescan_on_start: bool = True


@dataclass
class UIConfig:
    """Configuration for user interface."""

    refresh_rate: int = 10  # Redraws per second
    use_colors: bool = True


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/music-player/music-player.log)
    )
    max_file_size_mb: int = 10  # Maximum log file size before rotation
    backup_count: int = 5  # Number of backup files to keep
    console_output: bool = False  # Also output to stderr (headless debugging)


@dataclass
class IPCConfig:
    """Configuration for the media-control socket."""

    enabled: bool = True
    socket_path: Optional[str] = None


@dataclass
class Config:
    """Main configuration object."""

    music: MusicConfig = field(default_factory=MusicConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    library: LibraryConfig = field(default_factory=LibraryConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    ipc: IPCConfig = field(default_factory=IPCConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "music-player"
    return Path.home() / ".config" / "music-player"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            if config_path.exists():
                return config_path
            return None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/music-player (or ~/.config/music-player)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "music-player"
    return Path.home() / ".local" / "share" / "music-player"


def get_runtime_dir() -> Path:
    """Get the runtime directory used for sockets."""
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        return Path(runtime_dir) / "music-player"
    return get_data_dir()


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Music Player Configuration

[music]
# Paths to scan for music files
library_paths = ["~/Music"]

# Supported audio file formats
supported_formats = [".mp3", ".m4a", ".ogg", ".opus", ".wav", ".flac"]

# Recursively scan subdirectories
scan_recursive = true

[player]
# Path for mpv socket (auto-detected if not specified)
# mpv_socket_path = "/tmp/mpv-socket"

# Default volume (0-100)
volume = 50

# Repeat mode: off, track or queue
repeat = "queue"

# Start in shuffle mode
shuffle = false

# Skip to the next queued track when a file cannot be decoded
auto_skip_on_decode_error = true

# Automatic recoveries per track before a pipeline fault becomes persistent
max_fault_retries = 1

# Seconds to wait for the audio pipeline on exit
shutdown_timeout = 2.0

# Restore queue, track and position from the previous run
restore_session = true

[search]
# Minimum fuzzy score (0-100) for search results
score_cutoff = 60.0

[library]
# Load the cached library at startup instead of waiting for a full scan
use_cache = true

# Rescan in the background after loading the cache
rescan_on_start = true

[ui]
# Redraws per second
refresh_rate = 10

# Use colors in terminal output
use_colors = true

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/music-player/music-player.log)
# log_file = "/path/to/custom/music-player.log"

# Maximum log file size in MB before rotation
max_file_size_mb = 10

# Number of backup log files to keep
backup_count = 5

# Also output logs to stderr (useful for headless debugging)
console_output = false

[ipc]
# Enable the media-control socket for external clients
enabled = true

# Custom socket path (default: $XDG_RUNTIME_DIR/music-player/control.sock)
# socket_path = "/tmp/music-player.sock"
""".strip()


def _parse_music(data: dict, default: MusicConfig) -> MusicConfig:
    return MusicConfig(
        library_paths=[
            str(Path(p).expanduser())
            for p in data.get("library_paths", default.library_paths)
        ],
        supported_formats=[
            ext.lower() for ext in data.get("supported_formats", default.supported_formats)
        ],
        scan_recursive=data.get("scan_recursive", default.scan_recursive),
    )


def _parse_player(data: dict, default: PlayerConfig) -> PlayerConfig:
    player = PlayerConfig(
        mpv_socket_path=data.get("mpv_socket_path"),
        volume=data.get("volume", default.volume),
        repeat=data.get("repeat", default.repeat),
        shuffle=data.get("shuffle", default.shuffle),
        auto_skip_on_decode_error=data.get(
            "auto_skip_on_decode_error", default.auto_skip_on_decode_error
        ),
        max_fault_retries=data.get("max_fault_retries", default.max_fault_retries),
        shutdown_timeout=data.get("shutdown_timeout", default.shutdown_timeout),
        restore_session=data.get("restore_session", default.restore_session),
    )
    player.validate()
    return player


def _parse_logging(data: dict, default: LoggingConfig) -> LoggingConfig:
    log_file = data.get("log_file")
    if log_file:
        log_file = str(Path(log_file).expanduser())
    return LoggingConfig(
        level=data.get("level", default.level).upper(),
        log_file=log_file,
        max_file_size_mb=data.get("max_file_size_mb", default.max_file_size_mb),
        backup_count=data.get("backup_count", default.backup_count),
        console_output=data.get("console_output", default.console_output),
    )


def parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML data.

    Sections that fail validation are logged and replaced by their defaults.

    Args:
        toml_data: Parsed TOML document

    Returns:
        Populated Config
    """
    config = Config()

    if "music" in toml_data:
        config.music = _parse_music(toml_data["music"], config.music)

    if "player" in toml_data:
        try:
            config.player = _parse_player(toml_data["player"], config.player)
        except ConfigError as e:
            logger.warning(f"Invalid player configuration: {e}. Using defaults.")
            config.player = PlayerConfig()

    if "search" in toml_data:
        search_data = toml_data["search"]
        config.search = SearchConfig(
            score_cutoff=float(search_data.get("score_cutoff", config.search.score_cutoff)),
            limit=search_data.get("limit", config.search.limit),
        )

    if "library" in toml_data:
        library_data = toml_data["library"]
        config.library = LibraryConfig(
            use_cache=library_data.get("use_cache", config.library.use_cache),
            rescan_on_start=library_data.get(
                "rescan_on_start", config.library.rescan_on_start
            ),
        )

    if "ui" in toml_data:
        ui_data = toml_data["ui"]
        config.ui = UIConfig(
            refresh_rate=max(1, ui_data.get("refresh_rate", config.ui.refresh_rate)),
            use_colors=ui_data.get("use_colors", config.ui.use_colors),
        )

    if "logging" in toml_data:
        config.logging = _parse_logging(toml_data["logging"], config.logging)

    if "ipc" in toml_data:
        ipc_data = toml_data["ipc"]
        socket_path = ipc_data.get("socket_path")
        config.ipc = IPCConfig(
            enabled=ipc_data.get("enabled", config.ipc.enabled),
            socket_path=str(Path(socket_path).expanduser()) if socket_path else None,
        )

    return config


def apply_env_overrides(config: Config) -> Config:
    """Apply MUSIC_PLAYER_* environment variable overrides in place."""
    library_paths = os.environ.get("MUSIC_PLAYER_LIBRARY_PATHS")
    if library_paths:
        config.music.library_paths = [
            str(Path(p).expanduser()) for p in library_paths.split(os.pathsep) if p
        ]

    volume = os.environ.get("MUSIC_PLAYER_VOLUME")
    if volume:
        try:
            config.player.volume = max(0, min(100, int(volume)))
        except ValueError:
            logger.warning(f"Ignoring invalid MUSIC_PLAYER_VOLUME={volume!r}")

    log_level = os.environ.get("MUSIC_PLAYER_LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()

    return config


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - MUSIC_PLAYER_LIBRARY_PATHS
    - MUSIC_PLAYER_VOLUME
    - MUSIC_PLAYER_LOG_LEVEL
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(create_default_config())
            logger.info(f"Created default configuration at: {config_path}")
        except OSError as e:
            logger.warning(f"Could not write default configuration: {e}")
        return apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.error(f"Error loading configuration from {config_path}: {e}")
        return apply_env_overrides(Config())

    return apply_env_overrides(parse_config(toml_data))


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
    get_runtime_dir().mkdir(parents=True, exist_ok=True)
