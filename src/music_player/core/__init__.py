"""Core infrastructure layer - no playback logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging (Loguru)
- Console management (Rich)
- Exception hierarchy
"""

from .config import (
    Config,
    load_config,
    parse_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    get_runtime_dir,
    create_default_config,
    ensure_directories,
)
from .console import get_console, safe_print
from .exceptions import (
    MusicPlayerError,
    ConfigError,
    ScanError,
    QueueError,
    UnknownTrack,
    OutOfRange,
    PipelineError,
    ProtocolFault,
)

__all__ = [
    # Config
    "Config",
    "load_config",
    "parse_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "get_runtime_dir",
    "create_default_config",
    "ensure_directories",
    # Console
    "get_console",
    "safe_print",
    # Exceptions
    "MusicPlayerError",
    "ConfigError",
    "ScanError",
    "QueueError",
    "UnknownTrack",
    "OutOfRange",
    "PipelineError",
    "ProtocolFault",
]
