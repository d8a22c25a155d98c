"""Per-OS locations for the configuration file and downloaded sounds.

Layout follows each platform's convention for an application identified as
``com.relax-player.relax-player``:

- Linux: ``$XDG_CONFIG_HOME/relax-player`` and ``$XDG_DATA_HOME/relax-player``
- macOS: ``~/Library/Application Support/com.relax-player.relax-player``
- Windows: ``%APPDATA%\\relax-player\\relax-player\\{config,data}``
"""

import os
import sys
from pathlib import Path

QUALIFIER = "com"
ORGANIZATION = "relax-player"
APPLICATION = "relax-player"
CONFIG_FILENAME = "config.json"
LOG_FILENAME = "relax-player.log"


def _home() -> Path:
    return Path.home()


def _xdg_dir(env_var: str, fallback: Path) -> Path:
    value = os.environ.get(env_var, "").strip()
    if value and Path(value).is_absolute():
        return Path(value)
    return fallback


def _windows_root() -> Path:
    appdata = os.environ.get("APPDATA", "").strip()
    base = Path(appdata) if appdata else _home() / "AppData" / "Roaming"
    return base / ORGANIZATION / APPLICATION


def _macos_root() -> Path:
    bundle_id = f"{QUALIFIER}.{ORGANIZATION}.{APPLICATION}"
    return _home() / "Library" / "Application Support" / bundle_id


def config_dir() -> Path:
    """Directory holding ``config.json``."""
    if sys.platform == "win32":
        return _windows_root() / "config"
    if sys.platform == "darwin":
        return _macos_root()
    return _xdg_dir("XDG_CONFIG_HOME", _home() / ".config") / APPLICATION


def data_dir() -> Path:
    """Directory holding the extracted ``sounds/`` folder and the log file."""
    if sys.platform == "win32":
        return _windows_root() / "data"
    if sys.platform == "darwin":
        return _macos_root()
    return _xdg_dir("XDG_DATA_HOME", _home() / ".local" / "share") / APPLICATION


def default_config_path() -> Path:
    return config_dir() / CONFIG_FILENAME


def default_sounds_dir() -> Path:
    return data_dir() / "sounds"


def default_log_path() -> Path:
    return data_dir() / LOG_FILENAME
