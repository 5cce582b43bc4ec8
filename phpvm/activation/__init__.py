"""
Activation switching for phpvm.

Use get_platform_ops() to obtain the PlatformOps implementation for the
running platform.
"""

from pathlib import Path
from typing import Optional

from phpvm.activation.base import PlatformOps
from phpvm.activation.posix import PosixPlatformOps
from phpvm.activation.windows import (
    EnvironmentStore,
    RegistryEnvironment,
    WindowsPlatformOps,
)
from phpvm.core.directory import get_base_directory
from phpvm.core.exceptions import ActivationError
from phpvm.core.platform import PlatformInfo, detect_platform, is_supported_platform


def get_platform_ops(
    platform_info: Optional[PlatformInfo] = None,
    base_dir: Optional[Path] = None,
    env_store: Optional[EnvironmentStore] = None,
) -> PlatformOps:
    """
    Select the PlatformOps implementation for a platform.

    Args:
        platform_info: Target platform (default: detect_platform())
        base_dir: phpvm base directory (default: get_base_directory())
        env_store: Environment store for Windows (default: registry)

    Returns:
        WindowsPlatformOps on Windows, PosixPlatformOps elsewhere

    Raises:
        ActivationError: If phpvm cannot activate builds on the platform
    """
    info = platform_info or detect_platform()
    if not is_supported_platform(info):
        raise ActivationError(f"Unsupported platform: {info.platform_string()}")
    base = base_dir or get_base_directory()
    if info.is_windows:
        return WindowsPlatformOps(base, env_store=env_store)
    return PosixPlatformOps(base)


__all__ = [
    "PlatformOps",
    "PosixPlatformOps",
    "WindowsPlatformOps",
    "EnvironmentStore",
    "RegistryEnvironment",
    "get_platform_ops",
]
