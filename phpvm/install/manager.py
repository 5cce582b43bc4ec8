"""
High-level PHP version management.

PhpManager composes the configuration, download cache, state store,
platform operations, release provider and installer into the operations the
command line exposes. Arguments are the strings a user types ('8.2.0',
'8.2.0-nts'); parsing happens here.

Example:
    >>> base = get_base_directory()
    >>> manager = PhpManager(Config.load(base), base)
    >>> manager.install("8.2.0", Variant.NTS)
    >>> manager.switch("8.2.0-nts")
    >>> manager.get_active()
    '8.2.0-nts'
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Dict, List, Optional

from phpvm.activation import PlatformOps, get_platform_ops
from phpvm.core.config import Config
from phpvm.core.directory import get_config_path, get_state_path
from phpvm.core.download import CacheEntry, ContentCache, ProgressChannel
from phpvm.core.exceptions import ActivationError, NotInstalledError, ProviderError
from phpvm.core.state import InstallMetadata, StateStore
from phpvm.core.version import InstallKey, PhpVersion, Variant, split_key
from phpvm.install.installer import Installer
from phpvm.install.provider import (
    VersionInfo,
    VersionProvider,
    WindowsReleaseProvider,
    eol_date,
)

logger = logging.getLogger(__name__)


@dataclass
class CachedFile:
    """A cache entry with the install key it was downloaded for, if known."""

    key: str
    path: Path
    size: int
    modified: datetime
    version: Optional[str] = None


@dataclass
class VersionStatus:
    """Support status of a PHP version."""

    version: str
    eol_date: Optional[str]
    is_eol: bool
    installed_variants: List[str]
    active: bool


class PhpManager:
    """
    Facade over the version lifecycle components.

    Attributes:
        config: Loaded configuration
        base_dir: phpvm base directory
        cache: Download cache
        state_store: Persistent state
        platform_ops: Platform activation operations
        provider: Release provider
        installer: Install/remove state machine
    """

    def __init__(
        self,
        config: Config,
        base_dir: Path,
        cache: Optional[ContentCache] = None,
        state_store: Optional[StateStore] = None,
        platform_ops: Optional[PlatformOps] = None,
        provider: Optional[VersionProvider] = None,
    ):
        self.config = config
        self.base_dir = Path(base_dir)
        if self.config.path is None:
            self.config.path = get_config_path(self.base_dir)
        self.cache = cache or ContentCache(config.download_cache)
        self.state_store = state_store or StateStore(get_state_path(self.base_dir))
        self.platform_ops = platform_ops or get_platform_ops(base_dir=self.base_dir)
        self.provider = provider or self._default_provider(config)
        self.installer = Installer(
            config, self.cache, self.state_store, self.platform_ops, self.provider
        )
        logger.debug(f"PHP manager initialized (base: {self.base_dir})")

    @staticmethod
    def _default_provider(config: Config) -> WindowsReleaseProvider:
        if config.providers:
            return WindowsReleaseProvider(base_url=config.providers[0].url)
        return WindowsReleaseProvider()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def install(
        self,
        version_text: str,
        variant: Variant,
        source_url: Optional[str] = None,
        expected_checksum: Optional[str] = None,
        progress: Optional[ProgressChannel] = None,
    ) -> Path:
        """
        Install one build of a version.

        Raises:
            VersionParseError: If version_text is malformed
            InstallError: See Installer.install
            DownloadError: See ContentCache.fetch
        """
        try:
            version = PhpVersion.parse(version_text)
        except Exception:
            if progress is not None:
                progress.close()
            raise

        logger.info(f"Starting installation of PHP {version}-{variant}")
        try:
            path = self.installer.install(
                version,
                variant,
                source_url=source_url,
                expected_checksum=expected_checksum,
                progress=progress,
            )
        except Exception as e:
            logger.error(f"Failed to install PHP {version}-{variant}: {e}")
            raise
        return path

    def remove(self, key_text: str) -> None:
        """
        Remove an installed build.

        Args:
            key_text: '8.2.0-nts', or a bare '8.2.0' (tries ts, nts, then legacy)
        """
        version, variant = split_key(key_text)
        target = InstallKey(version, variant) if variant is not None else version
        self.installer.remove(target)

    def resolve_installed_key(self, key_text: str) -> str:
        """
        Map user input to an installed key.

        An exact key must be installed. A bare version picks the first
        installed variant of it.

        Raises:
            NotInstalledError: If nothing matches
        """
        version, variant = split_key(key_text)
        installed = self.list_installed()

        if variant is not None:
            key = str(InstallKey(version, variant))
            if key in installed:
                return key
            raise NotInstalledError(key)

        for key in installed:
            candidate_version, _ = split_key(key)
            if candidate_version.render() == version.render():
                return key
        raise NotInstalledError(key_text)

    def switch(self, key_text: str) -> str:
        """
        Make an installed build the active one.

        Returns:
            The activated install key

        Raises:
            NotInstalledError: If no matching build is installed
            ActivationError: If the launcher or PATH cannot be updated
        """
        key = self.resolve_installed_key(key_text)
        version_dir = self.config.install_dir / f"php-{key}"

        if not version_dir.is_dir():
            raise ActivationError(f"Version directory does not exist: {version_dir}")
        if not self.platform_ops.is_complete(version_dir):
            raise ActivationError(
                f"PHP executable not found: {self.platform_ops.executable_path(version_dir)}"
            )

        logger.info(f"Switching to PHP {key}")
        self.platform_ops.activate(version_dir)
        self.platform_ops.add_to_path()
        self.state_store.set_active(key)

        # Config keeps the bare version
        version, _ = split_key(key)
        self.config.active_version = version.render()
        self.config.save()

        logger.info(f"Successfully switched to PHP {key}")
        return key

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_installed(self) -> List[str]:
        return self.installer.list_installed()

    def get_active(self) -> Optional[str]:
        """
        Active install key, reconciled against what is installed.

        If the recorded active key is no longer installed, the last-known-good
        key takes its place when it is installed; otherwise the active pointer
        is cleared. The reconciled state is saved.
        """
        state = self.state_store.load()
        active = state.active_version
        if active is None:
            return None

        installed = self.list_installed()
        if active in installed:
            return active

        fallback = state.last_known_good
        if fallback is not None and fallback in installed and fallback != active:
            logger.warning(
                f"Active version {active} is not installed, falling back to {fallback}"
            )
            state.active_version = fallback
            state.last_known_good = None
        else:
            logger.warning(f"Active version {active} is not installed, clearing it")
            state.active_version = None
        self.state_store.save(state)
        return state.active_version

    def get_metadata(self, key_text: str) -> Optional[InstallMetadata]:
        return self.state_store.get_metadata(key_text)

    def list_available(self, limit: Optional[int] = None) -> List[VersionInfo]:
        versions = self.provider.list_available()
        versions.sort(key=lambda info: PhpVersion.parse(info.version), reverse=True)
        if limit is not None:
            versions = versions[:limit]
        return versions

    def get_version_info(self, version_text: str) -> VersionInfo:
        """
        Release information for a version, known to the provider or not.

        Missing EOL date and download URL are filled in from the version
        number.
        """
        version = PhpVersion.parse(version_text)
        info = next(
            (v for v in self.provider.list_available() if v.version == version.render()),
            None,
        )
        if info is None:
            info = VersionInfo(version=version.render())

        if info.eol_date is None:
            info.eol_date = eol_date(version.major, version.minor)
        if info.download_url is None:
            try:
                info.download_url = self.provider.resolve_download_url(version, Variant.TS)
            except ProviderError as e:
                logger.debug(f"No download URL for {version}: {e}")
        return info

    def version_status(self, version_text: str, today: Optional[date] = None) -> VersionStatus:
        version = PhpVersion.parse(version_text)
        eol = eol_date(version.major, version.minor)
        today = today or date.today()
        is_eol = eol is not None and date.fromisoformat(eol) < today

        variants = []
        for key in self.list_installed():
            key_version, key_variant = split_key(key)
            if key_version.render() == version.render() and key_variant is not None:
                variants.append(key_variant.value)

        active = self.get_active()
        return VersionStatus(
            version=version.render(),
            eol_date=eol,
            is_eol=is_eol,
            installed_variants=variants,
            active=active is not None
            and split_key(active)[0].render() == version.render(),
        )

    # ------------------------------------------------------------------
    # PATH
    # ------------------------------------------------------------------

    def is_path_configured(self) -> bool:
        return self.platform_ops.is_active()

    def ensure_path_set(self) -> bool:
        """Register the current directory on PATH. Returns True if changed."""
        return self.platform_ops.add_to_path()

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _cache_key_index(self, versions: List[str]) -> Dict[str, str]:
        """Map cache keys back to install keys for the given versions."""
        index: Dict[str, str] = {}
        candidate_urls = getattr(self.provider, "candidate_urls", None)

        for text in versions:
            try:
                version = PhpVersion.parse(text)
            except ValueError:
                continue

            try:
                if candidate_urls is not None:
                    pairs = candidate_urls(version)
                else:
                    pairs = [
                        (self.provider.resolve_download_url(version, variant), variant)
                        for variant in (Variant.TS, Variant.NTS)
                    ]
            except ProviderError:
                continue
            for url, variant in pairs:
                index[self.cache.cache_path(url).name] = f"{version}-{variant}"

        return index

    def list_cached_files(self) -> List[CachedFile]:
        """
        Cached archives, each mapped to the install key it belongs to when the
        source URL can be reconstructed.
        """
        entries: List[CacheEntry] = self.cache.list_entries()
        if not entries:
            return []

        state = self.state_store.load()
        sources = {
            self.cache.cache_path(meta.source).name: key
            for key, meta in state.install_metadata.items()
            if meta.source
        }

        known = [info.version for info in self.provider.list_available()]
        known += [split_key(key)[0].render() for key in state.installed_versions]
        index = self._cache_key_index(known)
        index.update(sources)

        return [
            CachedFile(
                key=entry.key,
                path=entry.path,
                size=entry.size,
                modified=entry.modified,
                version=index.get(entry.key),
            )
            for entry in entries
        ]

    def remove_cached_file(self, key: str) -> None:
        self.cache.remove_entry(key)

    def clear_cache(self) -> int:
        return self.cache.clear()
