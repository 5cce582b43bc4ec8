"""
Platform detection for phpvm.

Selects the activation strategy (symlink on POSIX, copied executable plus
PATH registry entry on Windows) and is reported by ``phpvm info``.

Usage:
    from phpvm.core.platform import detect_platform

    platform_info = detect_platform()
    print(platform_info.platform_string())  # 'linux-x64'
"""

import functools
import platform
from dataclasses import dataclass
from typing import Optional


@dataclass
class PlatformInfo:
    """
    Platform information.

    Attributes:
        os: Operating system ('windows', 'linux', 'macos')
        arch: CPU architecture ('x64', 'arm64', 'x86', 'arm')
        os_version: OS version string (e.g., '10.0.19041', '14.1')
    """

    os: str
    arch: str
    os_version: str

    def platform_string(self) -> str:
        """
        Get canonical platform string.

        Example:
            >>> PlatformInfo('linux', 'x64', '6.5.0').platform_string()
            'linux-x64'
        """
        return f"{self.os}-{self.arch}"

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    def __str__(self) -> str:
        return f"{self.platform_string()} v{self.os_version}"


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    Cached: detection runs once per process.
    """
    return PlatformInfo(
        os=_detect_os(), arch=_detect_architecture(), os_version=_detect_os_version()
    )


def _detect_os() -> str:
    """
    Detect operating system.

    Raises:
        RuntimeError: If OS is not supported
    """
    system = platform.system().lower()

    if system == "windows":
        return "windows"
    elif system == "linux":
        return "linux"
    elif system == "darwin":
        return "macos"
    else:
        raise RuntimeError(f"Unsupported operating system: {system}")


def _detect_architecture() -> str:
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    elif machine.startswith("arm"):
        return "arm"
    else:
        return machine


def _detect_os_version() -> str:
    system = platform.system().lower()

    if system == "darwin":
        version = platform.mac_ver()[0]
        return version if version else "unknown"
    elif system == "linux":
        return platform.release()
    else:
        return platform.version()


def is_supported_platform(info: Optional[PlatformInfo] = None) -> bool:
    """Check whether phpvm can activate builds on this platform."""
    if info is None:
        info = detect_platform()
    return info.os in ("windows", "linux", "macos")


def clear_platform_cache():
    """Force the next detect_platform() call to re-detect."""
    detect_platform.cache_clear()


__all__ = [
    "PlatformInfo",
    "detect_platform",
    "is_supported_platform",
    "clear_platform_cache",
]
