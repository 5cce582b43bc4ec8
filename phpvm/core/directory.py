"""
Directory layout for phpvm.

All phpvm data lives under a single base directory:

    Base (%LOCALAPPDATA%\\phpvm on Windows, ~/.local/share/phpvm elsewhere):
        - config.json    : User configuration
        - state.json     : Installed versions, active pointer, last-known-good
        - versions/      : One directory per installed build (php-8.2.0-nts)
        - cache/         : Downloaded archives, named by URL fingerprint
        - current/       : Fixed directory placed on PATH (launcher lives here)
        - logs/          : phpvm.log and its rotated backups
        - lock/          : Lock files used by the CLI to serialize commands

The PHPVM_HOME environment variable overrides the base directory.
"""

import os
from pathlib import Path
from typing import Dict, Optional

from phpvm.core.exceptions import ConfigError

HOME_ENV_VAR = "PHPVM_HOME"


def get_base_directory() -> Path:
    """
    Get the platform-specific phpvm base directory.

    Returns:
        Path: The base directory path.
            - PHPVM_HOME if set
            - Windows: %LOCALAPPDATA%\\phpvm
            - Linux/macOS: $XDG_DATA_HOME/phpvm or ~/.local/share/phpvm

    Raises:
        ConfigError: If LOCALAPPDATA is missing on Windows

    Example:
        >>> get_base_directory()
        PosixPath('/home/user/.local/share/phpvm')
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()

    if os.name == "nt":
        local_app_data = os.environ.get("LOCALAPPDATA")
        if not local_app_data:
            raise ConfigError(
                "LOCALAPPDATA environment variable is not set. "
                "Cannot determine phpvm base directory."
            )
        return Path(local_app_data) / "phpvm"

    xdg_data = os.environ.get("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data) / "phpvm"
    return Path.home() / ".local" / "share" / "phpvm"


def get_config_path(base_dir: Optional[Path] = None) -> Path:
    return (base_dir or get_base_directory()) / "config.json"


def get_state_path(base_dir: Optional[Path] = None) -> Path:
    return (base_dir or get_base_directory()) / "state.json"


def get_log_path(base_dir: Optional[Path] = None) -> Path:
    return (base_dir or get_base_directory()) / "logs" / "phpvm.log"


def get_current_dir(base_dir: Optional[Path] = None) -> Path:
    """Directory registered on PATH; holds the stable launcher."""
    return (base_dir or get_base_directory()) / "current"


def get_lock_dir(base_dir: Optional[Path] = None) -> Path:
    return (base_dir or get_base_directory()) / "lock"


def ensure_base_structure(base_dir: Optional[Path] = None) -> Dict[str, Path]:
    """
    Create the base directory and its fixed subdirectories.

    Idempotent. The versions/ and cache/ directories are created by the
    components that own them, since their location is configurable.

    Args:
        base_dir: Base directory (default: get_base_directory())

    Returns:
        Mapping of role name to created path
    """
    base = base_dir or get_base_directory()
    paths = {
        "base": base,
        "current": get_current_dir(base),
        "logs": get_log_path(base).parent,
        "lock": get_lock_dir(base),
    }
    for path in paths.values():
        path.mkdir(parents=True, exist_ok=True)
    return paths
