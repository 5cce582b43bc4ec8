"""
Install and remove PHP builds.

An install of ``(version, variant)`` moves through
NotInstalled -> Downloading -> Extracting -> Verifying -> Installed. Only the
final state is ever persisted: any failure after the install directory was
created deletes that directory again before the error reaches the caller, so
the versions directory and state.json look exactly as they did before the
call.

Layout::

    <install_dir>/
        php-8.2.0-nts/      # variant-qualified, produced by install()
        php-8.2.0-ts/
        php-7.4.33/         # legacy unqualified, accepted by remove() only

Example:
    >>> installer = Installer(config, cache, store, platform_ops, provider)
    >>> installer.install(PhpVersion.parse("8.2.0"), Variant.NTS)
    PosixPath('/home/user/.local/share/phpvm/versions/php-8.2.0-nts')
"""

import logging
import uuid
from pathlib import Path
from typing import List, Optional, Union

from phpvm.activation.base import PlatformOps
from phpvm.core.config import Config
from phpvm.core.download import ContentCache, ProgressChannel
from phpvm.core.exceptions import (
    ActiveVersionInUseError,
    AlreadyInstalledError,
    ExtractionIncompleteError,
    InstallError,
    NotInstalledError,
    VersionParseError,
)
from phpvm.core.filesystem import (
    ArchiveExtractionError,
    FilesystemError,
    compute_directory_checksum,
    extract_archive,
    safe_rmtree,
)
from phpvm.core.state import InstallMetadata, StateStore
from phpvm.core.version import InstallKey, PhpVersion, Variant, split_key
from phpvm.install.provider import VersionProvider

logger = logging.getLogger(__name__)


class Installer:
    """
    Drives the install/remove state machine.

    Attributes:
        install_dir: Parent directory of all installed builds
        cache: Download cache
        state_store: Persistent state
        platform_ops: Supplies the executable marker location
        provider: Resolves download URLs when no override is given
    """

    def __init__(
        self,
        config: Config,
        cache: ContentCache,
        state_store: StateStore,
        platform_ops: PlatformOps,
        provider: VersionProvider,
    ):
        self.install_dir = Path(config.install_dir)
        self.cache = cache
        self.state_store = state_store
        self.platform_ops = platform_ops
        self.provider = provider

    def install_path(self, key: InstallKey) -> Path:
        return self.install_dir / key.directory_name()

    def is_complete(self, path: Path) -> bool:
        """An install directory is complete only if its executable marker exists."""
        return self.platform_ops.is_complete(path)

    def install(
        self,
        version: PhpVersion,
        variant: Variant,
        source_url: Optional[str] = None,
        expected_checksum: Optional[str] = None,
        progress: Optional[ProgressChannel] = None,
    ) -> Path:
        """
        Download, extract, verify and register one build.

        Args:
            version: PHP version
            variant: Build variant (required)
            source_url: Explicit archive URL; otherwise asked from the provider
            expected_checksum: SHA-256 of the archive, if known
            progress: Receives download progress events; always closed

        Returns:
            Install directory

        Raises:
            AlreadyInstalledError: A complete install of this key exists
            InstallError: A partial install exists and cannot be removed
            DownloadError: Download failed (NetworkError, ChecksumMismatchError, CacheIOError)
            ExtractionIncompleteError: Extraction failed or produced no executable
        """
        if not isinstance(variant, Variant):
            raise TypeError(f"variant must be a Variant, got {variant!r}")

        key = InstallKey(version, variant)
        install_path = self.install_path(key)

        try:
            self._prepare_target(key, install_path)

            url = source_url or self.provider.resolve_download_url(version, variant)
            logger.info(f"Installing PHP {key} from {url}")
        except Exception:
            if progress is not None:
                progress.close()
            raise

        # Downloading. fetch() closes the channel.
        archive_path = self.cache.fetch(url, expected_checksum, progress)
        logger.info(f"Archive ready: {archive_path}")

        # Extracting
        try:
            extract_archive(archive_path, install_path)
            self._normalize_root(install_path)
        except (ArchiveExtractionError, OSError) as e:
            logger.error(f"Extraction failed: {e}")
            self._cleanup(install_path)
            raise ExtractionIncompleteError(
                f"Failed to extract {archive_path} to {install_path}: {e}"
            ) from e

        # Verifying
        executable = self.platform_ops.executable_path(install_path)
        if not executable.is_file():
            logger.error(f"PHP executable not found after extraction: {executable}")
            self._cleanup(install_path)
            raise ExtractionIncompleteError(
                f"Installation incomplete: PHP executable not found at {executable}"
            )

        try:
            checksum = compute_directory_checksum(install_path)
            metadata = InstallMetadata.now(str(key), install_path, checksum, url)
            self.state_store.add_version(str(key), metadata)
        except Exception:
            self._cleanup(install_path)
            raise

        logger.info(f"Successfully installed PHP {key}")
        return install_path

    def _prepare_target(self, key: InstallKey, install_path: Path) -> None:
        if not install_path.exists():
            return

        if self.is_complete(install_path):
            raise AlreadyInstalledError(str(key))

        logger.warning(f"Found incomplete installation at {install_path}, removing it")
        try:
            safe_rmtree(install_path, require_prefix=self.install_dir)
        except (FilesystemError, ValueError) as e:
            raise InstallError(
                f"Found incomplete installation for {key}. "
                f"Please manually remove {install_path} and try again ({e})"
            ) from e

    def _normalize_root(self, install_path: Path) -> None:
        """
        Hoist the contents of a single wrapper directory into install_path.

        Some archives unpack into ``php-8.2.0/...`` instead of directly.
        """
        if self.is_complete(install_path):
            return

        items = list(install_path.iterdir())
        if len(items) != 1 or not items[0].is_dir():
            return

        wrapper = items[0].rename(install_path / f".unwrap-{uuid.uuid4().hex}")
        for child in wrapper.iterdir():
            child.rename(install_path / child.name)
        wrapper.rmdir()
        logger.debug(f"Hoisted archive root {items[0].name} into {install_path}")

    def _cleanup(self, install_path: Path) -> None:
        if not install_path.exists():
            return
        logger.info(f"Cleaning up partial installation at: {install_path}")
        try:
            safe_rmtree(install_path, require_prefix=self.install_dir)
        except (FilesystemError, ValueError) as e:
            logger.error(f"Failed to clean up {install_path}: {e}")

    def resolve_install_dir(self, target: Union[InstallKey, PhpVersion]) -> tuple:
        """
        Find the directory and state key for a remove/lookup target.

        A bare PhpVersion is looked up as ``-ts``, then ``-nts``, then the
        legacy unqualified directory.

        Returns:
            (directory, key string)
        """
        if isinstance(target, InstallKey):
            return self.install_path(target), str(target)

        for variant in (Variant.TS, Variant.NTS):
            key = InstallKey(target, variant)
            path = self.install_path(key)
            if path.exists():
                return path, str(key)

        return self.install_dir / target.directory_name(), target.render()

    def remove(self, target: Union[InstallKey, PhpVersion]) -> None:
        """
        Delete an installed build and its state record.

        Raises:
            NotInstalledError: No directory exists for the target
            ActiveVersionInUseError: The target is the active build
            InstallError: The directory could not be deleted
        """
        install_path, key = self.resolve_install_dir(target)

        if not install_path.exists():
            raise NotInstalledError(key)

        state = self.state_store.load()
        if state.active_version == key:
            raise ActiveVersionInUseError(key)

        logger.info(f"Removing PHP {key}")
        try:
            safe_rmtree(install_path, require_prefix=self.install_dir)
        except (FilesystemError, ValueError) as e:
            raise InstallError(f"Failed to remove installation directory: {e}") from e

        self.state_store.remove_version(key)
        logger.info(f"Successfully removed PHP {key}")

    def list_installed(self) -> List[str]:
        """
        Installed keys: union of state and complete ``php-*`` directories.

        Read-only: directories without an executable marker are skipped, never
        removed. install() replaces them when that key is installed again.
        Keys are ordered by version number, then by variant.
        """
        state = self.state_store.load()
        installed = []

        if self.install_dir.exists():
            for path in sorted(self.install_dir.iterdir()):
                if not (path.is_dir() and path.name.startswith("php-")):
                    continue
                key = path.name[len("php-"):]
                if self.is_complete(path):
                    installed.append(key)
                    logger.debug(f"Found installed version on disk: {key}")
                else:
                    logger.debug(f"Skipping incomplete installation directory: {path.name}")

        for key in state.installed_versions:
            if key in installed:
                continue
            if self.is_complete(self.install_dir / f"php-{key}"):
                installed.append(key)
            else:
                logger.warning(f"Version {key} in state but not found on disk")

        installed.sort(key=_version_order)
        return installed


def _version_order(key: str) -> tuple:
    """Sort key placing '10.0.0-nts' after '8.2.0-ts'; unparsable names sort last."""
    try:
        version, _ = split_key(key)
    except VersionParseError:
        return (1, (), key)
    return (0, version.numeric(), key)
