"""
Installation and discovery of PHP builds.
"""

from .installer import Installer
from .manager import CachedFile, PhpManager, VersionStatus
from .provider import (
    VersionInfo,
    VersionProvider,
    WindowsReleaseProvider,
    build_toolset,
    eol_date,
)

__all__ = [
    "Installer",
    "PhpManager",
    "CachedFile",
    "VersionStatus",
    "VersionInfo",
    "VersionProvider",
    "WindowsReleaseProvider",
    "build_toolset",
    "eol_date",
]
