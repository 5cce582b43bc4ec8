"""
PHP release discovery.

The installer consumes VersionProvider only through
``resolve_download_url(version, variant)`` and ``list_available()``.
WindowsReleaseProvider implements both against windows.php.net:

- download URLs are synthesized from the version's build toolset;
- available versions are scraped from the releases index, falling back to a
  built-in list when the page cannot be fetched;
- end-of-life dates come from a static table.

Archive naming on windows.php.net::

    TS:  php-8.3.0-Win32-vs16-x64.zip
    NTS: php-8.3.0-nts-Win32-vs16-x64.zip

Releases older than 7.4 live under ``releases/archives/``.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import requests

from phpvm.core.config import DEFAULT_PROVIDER_URL
from phpvm.core.exceptions import ProviderError, VersionParseError
from phpvm.core.version import PhpVersion, Variant

logger = logging.getLogger(__name__)

# Security support end dates per major.minor
EOL_DATES: Dict[Tuple[int, int], str] = {
    (8, 5): "2029-12-31",
    (8, 4): "2028-12-31",
    (8, 3): "2027-12-31",
    (8, 2): "2026-12-31",
    (8, 1): "2025-12-31",
    (8, 0): "2023-11-26",
    (7, 4): "2022-11-28",
    (7, 3): "2021-12-06",
    (7, 2): "2020-11-30",
    (7, 1): "2019-12-01",
    (7, 0): "2019-01-10",
    (5, 6): "2018-12-31",
}

# (version, release date) used when the releases index is unreachable
FALLBACK_VERSIONS: List[Tuple[str, Optional[str]]] = [
    ("8.4.0", "2024-11-21"),
    ("8.3.0", "2023-11-23"),
    ("8.2.14", "2024-01-18"),
    ("8.2.13", "2023-12-21"),
    ("8.2.12", "2023-11-16"),
    ("8.1.27", "2023-11-16"),
    ("8.1.26", "2023-10-19"),
    ("8.1.25", "2023-09-14"),
    ("8.0.30", "2023-03-16"),
    ("8.0.29", "2023-02-16"),
    ("7.4.33", "2022-11-03"),
]

_RELEASE_PATTERN = re.compile(
    r"php-(\d+)\.(\d+)\.(\d+)(-RC\d+)?(?:-nts)?-Win32-(vs\d+|vc\d+|VC\d+)-x64\.zip"
)

# x64 Windows builds start with this series
FIRST_X64_RELEASE = (5, 5)

# Other toolsets a build of the same version may have been published with
_TOOLSET_FALLBACKS = {"vs17": "vs16", "vs16": "vc15", "VC15": "VC14"}


@dataclass
class VersionInfo:
    """A PHP release known to a provider."""

    version: str
    release_date: Optional[str] = None
    eol_date: Optional[str] = None
    download_url: Optional[str] = None
    checksum: Optional[str] = None


class VersionProvider(ABC):
    """Source of download URLs and release metadata."""

    @abstractmethod
    def resolve_download_url(self, version: PhpVersion, variant: Variant) -> str:
        """
        Return the archive URL for a version and build variant.

        Args:
            version: PHP version
            variant: Build variant; changes the archive file name

        Returns:
            Download URL
        """
        pass

    @abstractmethod
    def list_available(self) -> List[VersionInfo]:
        """Return known releases, newest first."""
        pass


def build_toolset(major: int, minor: int) -> str:
    """
    Visual Studio toolset tag used in Windows build names.

    Example:
        >>> build_toolset(8, 4)
        'vs17'
        >>> build_toolset(7, 3)
        'VC15'
    """
    if (major, minor) >= (8, 4):
        return "vs17"
    if major == 8:
        return "vs16"
    if major == 7:
        if minor >= 4:
            return "vc15"
        if minor >= 2:
            return "VC15"
        return "VC14"
    return "VC11"


def archive_filename(version: str, variant: Variant, toolset: str) -> str:
    if variant is Variant.NTS:
        return f"php-{version}-nts-Win32-{toolset}-x64.zip"
    return f"php-{version}-Win32-{toolset}-x64.zip"


def eol_date(major: int, minor: int) -> Optional[str]:
    return EOL_DATES.get((major, minor))


class WindowsReleaseProvider(VersionProvider):
    """
    Provider for the official windows.php.net builds.

    Attributes:
        base_url: Releases index URL (ends with '/')
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        base_url: str = DEFAULT_PROVIDER_URL,
        timeout: int = 30,
    ):
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", "phpvm/0.1.0")
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout

    @property
    def archives_url(self) -> str:
        return self.base_url + "archives/"

    def base_url_for(self, major: int, minor: int) -> str:
        if (major, minor) < (7, 4):
            return self.archives_url
        return self.base_url

    def resolve_download_url(self, version: PhpVersion, variant: Variant) -> str:
        if (version.major, version.minor) < FIRST_X64_RELEASE:
            raise ProviderError(
                f"No x64 Windows builds are published for PHP {version}"
            )
        toolset = build_toolset(version.major, version.minor)
        url = self.base_url_for(version.major, version.minor) + archive_filename(
            version.render(), variant, toolset
        )
        logger.debug(f"Resolved {version}-{variant} to {url}")
        return url

    def candidate_urls(self, version: PhpVersion) -> List[Tuple[str, Variant]]:
        """
        Every URL this provider could have used for a version.

        Includes the primary toolset and the older toolset the same release
        may also be published with. Used to map cache entries back to a
        version.

        Returns:
            (url, variant) pairs
        """
        primary = build_toolset(version.major, version.minor)
        candidates = []
        for variant in (Variant.TS, Variant.NTS):
            candidates.append((self.resolve_download_url(version, variant), variant))

            fallback = _TOOLSET_FALLBACKS.get(primary)
            if fallback:
                base = self.archives_url if fallback == "VC14" else self.base_url
                candidates.append(
                    (base + archive_filename(version.render(), variant, fallback), variant)
                )
        return candidates

    def eol_date(self, major: int, minor: int) -> Optional[str]:
        return eol_date(major, minor)

    def list_available(self) -> List[VersionInfo]:
        try:
            versions = self._fetch_release_index()
        except requests.RequestException as e:
            logger.warning(f"Failed to fetch PHP releases from {self.base_url}: {e}")
            versions = []

        if not versions:
            logger.info("Using built-in release list")
            versions = self._fallback_versions()

        return versions

    def _fetch_release_index(self) -> List[VersionInfo]:
        logger.info(f"Fetching PHP versions from: {self.base_url}")
        response = self.session.get(self.base_url, timeout=self.timeout)
        response.raise_for_status()
        return self.parse_release_index(response.text)

    def parse_release_index(self, html: str) -> List[VersionInfo]:
        """
        Extract releases from the releases index HTML.

        Release candidates are skipped. When a version is published with
        several toolsets, vs17 is preferred.
        """
        found: Dict[str, Tuple[PhpVersion, str]] = {}

        for match in _RELEASE_PATTERN.finditer(html):
            major, minor, patch, rc, toolset = match.groups()
            if rc:
                continue
            try:
                version = PhpVersion.parse(f"{major}.{minor}.{patch}")
            except VersionParseError:
                continue

            key = version.render()
            if key not in found or toolset == "vs17":
                found[key] = (version, toolset)

        releases = []
        for key, (version, toolset) in found.items():
            releases.append(
                VersionInfo(
                    version=key,
                    eol_date=eol_date(version.major, version.minor),
                    download_url=self.base_url
                    + archive_filename(key, Variant.TS, toolset),
                )
            )

        releases.sort(key=lambda info: PhpVersion.parse(info.version), reverse=True)
        logger.info(f"Found {len(releases)} PHP versions")
        return releases

    def _fallback_versions(self) -> List[VersionInfo]:
        releases = []
        for text, released in FALLBACK_VERSIONS:
            version = PhpVersion.parse(text)
            releases.append(
                VersionInfo(
                    version=text,
                    release_date=released,
                    eol_date=eol_date(version.major, version.minor),
                )
            )
        return releases
