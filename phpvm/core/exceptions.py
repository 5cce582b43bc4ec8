"""
Centralized exception hierarchy for phpvm.

This module defines all custom exceptions used across the codebase so that
callers can handle failures by category (download, install, state, ...)
without depending on the module that raised them.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class PhpvmError(Exception):
    """Base exception for all phpvm errors."""

    pass


class VersionParseError(PhpvmError, ValueError):
    """Raised when a version, variant or install key string is malformed."""

    pass


# ============================================================================
# Download / Cache Exceptions
# ============================================================================


class DownloadError(PhpvmError):
    """Base exception for download and cache errors."""

    pass


class NetworkError(DownloadError):
    """Connection failure, timeout, or non-2xx HTTP response."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to download {url}: {reason}")


class ChecksumMismatchError(DownloadError):
    """Downloaded or cached content does not match the expected SHA-256."""

    def __init__(self, path, expected: str, actual: str):
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Checksum mismatch for {path}: expected {expected}, got {actual}"
        )


class CacheIOError(DownloadError):
    """Disk read/write failure inside the download cache."""

    pass


# ============================================================================
# Installation Exceptions
# ============================================================================


class InstallError(PhpvmError):
    """Base exception for install/remove errors."""

    pass


class AlreadyInstalledError(InstallError):
    """Raised when a complete install of the same version+variant exists."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"PHP {key} is already installed")


class NotInstalledError(InstallError):
    """Raised when an operation targets a version that is not installed."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Version {key} is not installed")


class ActiveVersionInUseError(InstallError):
    """Raised when attempting to remove the currently active version."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"Cannot remove active version {key}. Switch to another version first."
        )


class ExtractionIncompleteError(InstallError):
    """Extraction failed or produced no usable PHP executable."""

    pass


# ============================================================================
# State / Config / Platform Exceptions
# ============================================================================


class StateError(PhpvmError):
    """Raised when the state file cannot be read or written."""

    pass


class ConfigError(PhpvmError):
    """Raised when the configuration file is invalid."""

    pass


class ActivationError(PhpvmError):
    """Raised when switching the active version or updating PATH fails."""

    pass


class ProviderError(PhpvmError):
    """Raised when the version discovery provider cannot answer a request."""

    pass
