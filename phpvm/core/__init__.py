"""
Core functionality for phpvm.

This package contains the foundational modules that other components depend on.
"""

from .directory import (
    get_base_directory,
    get_config_path,
    get_state_path,
    get_log_path,
    get_current_dir,
    get_lock_dir,
    ensure_base_structure,
)

from .locking import (
    LockManager,
    LockTimeout,
)

from .platform import (
    PlatformInfo,
    detect_platform,
    is_supported_platform,
    clear_platform_cache,
)

from .version import (
    PhpVersion,
    Variant,
    InstallKey,
    split_key,
)

from .exceptions import (
    PhpvmError,
    VersionParseError,
    DownloadError,
    NetworkError,
    ChecksumMismatchError,
    CacheIOError,
    InstallError,
    AlreadyInstalledError,
    NotInstalledError,
    ActiveVersionInUseError,
    ExtractionIncompleteError,
    StateError,
    ConfigError,
    ActivationError,
    ProviderError,
)

__all__ = [
    "get_base_directory",
    "get_config_path",
    "get_state_path",
    "get_log_path",
    "get_current_dir",
    "get_lock_dir",
    "ensure_base_structure",
    "LockManager",
    "LockTimeout",
    "PlatformInfo",
    "detect_platform",
    "is_supported_platform",
    "clear_platform_cache",
    "PhpVersion",
    "Variant",
    "InstallKey",
    "split_key",
    "PhpvmError",
    "VersionParseError",
    "DownloadError",
    "NetworkError",
    "ChecksumMismatchError",
    "CacheIOError",
    "InstallError",
    "AlreadyInstalledError",
    "NotInstalledError",
    "ActiveVersionInUseError",
    "ExtractionIncompleteError",
    "StateError",
    "ConfigError",
    "ActivationError",
    "ProviderError",
]
