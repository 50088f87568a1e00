"""
Configuration management for Scrolls.

Uses XDG base directories:
- Config: ~/.config/scrolls/config.toml
- Data: ~/scrolls-of-skelos/ (the archive itself)
"""

from pathlib import Path
from typing import Any
import os

# XDG defaults
DEFAULT_CONFIG_HOME = Path.home() / ".config"
DEFAULT_DATA_HOME = Path.home() / "scrolls-of-skelos"

COLLECTION_FILENAME = "scrolls.json"
SCREENSHOTS_DIRNAME = "screenshots"
LOG_FILENAME = "scrolls.log"


def get_config_dir() -> Path:
    """Get the config directory (XDG_CONFIG_HOME/scrolls)."""
    base = Path(os.environ.get("XDG_CONFIG_HOME", DEFAULT_CONFIG_HOME))
    return base / "scrolls"


def get_config_path() -> Path:
    """Get the path to config.toml."""
    return get_config_dir() / "config.toml"


def get_scrolls_home(config: dict[str, Any] | None = None) -> Path:
    """
    Get the archive directory.

    SCROLLS_HOME wins, then the [scrolls] home key, then ~/scrolls-of-skelos.
    """
    if env_home := os.environ.get("SCROLLS_HOME"):
        return Path(env_home).expanduser()
    if config and (home := config.get("scrolls", {}).get("home")):
        return Path(home).expanduser()
    return DEFAULT_DATA_HOME


def get_collection_path(home: Path) -> Path:
    """Get the path to scrolls.json."""
    return home / COLLECTION_FILENAME


def get_screenshots_dir(home: Path) -> Path:
    """Get the directory holding captured images."""
    return home / SCREENSHOTS_DIRNAME


def get_log_path(home: Path) -> Path:
    """Get the path to scrolls.log."""
    return home / LOG_FILENAME


def ensure_dirs(home: Path) -> None:
    """Ensure the archive and its screenshots directory exist."""
    home.mkdir(parents=True, exist_ok=True)
    get_screenshots_dir(home).mkdir(parents=True, exist_ok=True)


def load_config() -> dict[str, Any]:
    """
    Load configuration from config.toml.

    Returns default config if file doesn't exist. Sections missing from
    the file fall back to their defaults.
    """
    config_path = get_config_path()
    config = get_default_config()

    if not config_path.exists():
        return config

    # Lazy import tomli only when needed
    import tomli

    with open(config_path, "rb") as f:
        loaded = tomli.load(f)

    for section, values in loaded.items():
        if isinstance(values, dict):
            config.setdefault(section, {}).update(values)
        else:
            config[section] = values
    return config


def get_default_config() -> dict[str, Any]:
    """Return default configuration."""
    return {
        "scrolls": {},
        "capture": {
            "tools": [],  # empty means the platform's built-in preference order
        },
        "display": {
            "title_width": 30,
            "tags_width": 24,
        },
        "logging": {
            "level": "INFO",
        },
    }
