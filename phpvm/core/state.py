"""
Persistent state for phpvm.

Tracks the installed builds, the active build and a single last-known-good
fallback. State is persisted to ``state.json`` in the phpvm base directory::

    {
      "installedVersions": ["8.2.0-nts", "8.3.0-nts"],
      "activeVersion": "8.3.0-nts",
      "lastKnownGood": "8.2.0-nts",
      "installMetadata": {
        "8.2.0-nts": {
          "version": "8.2.0-nts",
          "installPath": "/home/user/.local/share/phpvm/versions/php-8.2.0-nts",
          "installedAt": "1700000000",
          "checksum": "9f86d081...",
          "source": "https://windows.php.net/downloads/releases/..."
        }
      }
    }

The document is rewritten whole on every save. There is no locking here: two
processes doing read-modify-write concurrently can lose an update (the last
save wins). Callers needing safety serialize access with
``phpvm.core.locking.LockManager``.

Example:
    >>> store = StateStore(get_state_path())
    >>> store.add_version("8.2.0-nts", metadata)
    >>> store.set_active("8.2.0-nts")
    >>> store.load().active_version
    '8.2.0-nts'
"""

import json
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from phpvm.core.exceptions import StateError
from phpvm.core.filesystem import atomic_write

logger = logging.getLogger(__name__)


@dataclass
class InstallMetadata:
    """
    Record of one completed install. Created once, never mutated.

    Attributes:
        version: Install key ('8.2.0-nts')
        install_path: Directory holding the build
        installed_at: Unix timestamp (seconds) as a string
        checksum: SHA-256 over the installed tree, if computed
        source: URL the archive was downloaded from
    """

    version: str
    install_path: str
    installed_at: str
    checksum: Optional[str] = None
    source: str = ""

    @classmethod
    def now(
        cls, version: str, install_path: Path, checksum: Optional[str], source: str
    ) -> "InstallMetadata":
        return cls(
            version=version,
            install_path=str(install_path),
            installed_at=str(int(time.time())),
            checksum=checksum,
            source=source,
        )

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "installPath": self.install_path,
            "installedAt": self.installed_at,
            "checksum": self.checksum,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "InstallMetadata":
        return cls(
            version=data["version"],
            install_path=data["installPath"],
            installed_at=str(data.get("installedAt", "")),
            checksum=data.get("checksum"),
            source=data.get("source", ""),
        )


@dataclass
class PhpState:
    """
    In-memory state document.

    The transition methods here are pure; persistence lives in StateStore.

    Attributes:
        installed_versions: Install keys, in install order, without duplicates
        active_version: Key of the active build
        last_known_good: Key that was active before the current one
        install_metadata: Per-key install records
    """

    installed_versions: List[str] = field(default_factory=list)
    active_version: Optional[str] = None
    last_known_good: Optional[str] = None
    install_metadata: Dict[str, InstallMetadata] = field(default_factory=dict)

    def add_version(self, key: str, metadata: InstallMetadata) -> None:
        """Register a key. The key is listed once; its record is always replaced."""
        if not self.is_installed(key):
            self.installed_versions.append(key)
        self.install_metadata[key] = metadata

    def remove_version(self, key: str) -> None:
        """
        Forget a key.

        If the key was active, the last-known-good key (possibly None) becomes
        active.
        """
        if self.is_installed(key):
            self.installed_versions.remove(key)
        self.install_metadata.pop(key, None)

        if self.active_version == key:
            self.active_version = self.last_known_good

    def set_active(self, key: str) -> None:
        """Make ``key`` active, demoting the previous active key to last-known-good."""
        if self.active_version is not None:
            self.last_known_good = self.active_version
        self.active_version = key

    def get_metadata(self, key: str) -> Optional[InstallMetadata]:
        return self.install_metadata.get(key)

    def is_installed(self, key: str) -> bool:
        return key in self.installed_versions

    def to_dict(self) -> dict:
        return {
            "installedVersions": list(self.installed_versions),
            "activeVersion": self.active_version,
            "lastKnownGood": self.last_known_good,
            "installMetadata": {
                key: meta.to_dict() for key, meta in self.install_metadata.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PhpState":
        """
        Build state from a parsed state document.

        Raises:
            StateError: If the document does not have the expected shape
        """
        if not isinstance(data, dict):
            raise StateError("State document must be a JSON object")

        try:
            installed = data.get("installedVersions") or []
            if not isinstance(installed, list):
                raise StateError("'installedVersions' must be a list")

            metadata_data = data.get("installMetadata") or {}
            if not isinstance(metadata_data, dict):
                raise StateError("'installMetadata' must be an object")

            deduped: List[str] = []
            for key in installed:
                if key not in deduped:
                    deduped.append(str(key))

            return cls(
                installed_versions=deduped,
                active_version=data.get("activeVersion"),
                last_known_good=data.get("lastKnownGood"),
                install_metadata={
                    key: InstallMetadata.from_dict(meta)
                    for key, meta in metadata_data.items()
                },
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise StateError(f"Malformed state document: {e}") from e


class StateStore:
    """
    Loads and saves PhpState as a single JSON document.

    Attributes:
        state_file: Path to state.json
    """

    def __init__(self, state_file: Path):
        self.state_file = Path(state_file)

    def load(self) -> PhpState:
        """
        Load state from disk.

        A missing file is not an error: an empty state is returned.

        Raises:
            StateError: If the file exists but cannot be read or parsed
        """
        if not self.state_file.exists():
            logger.debug(f"State file not found, using empty state: {self.state_file}")
            return PhpState()

        try:
            with open(self.state_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StateError(f"Invalid state file {self.state_file}: {e}") from e
        except OSError as e:
            raise StateError(f"Failed to read state file {self.state_file}: {e}") from e

        state = PhpState.from_dict(data)
        logger.debug(
            f"Loaded state from {self.state_file}: "
            f"{len(state.installed_versions)} installed, active={state.active_version}"
        )
        return state

    def save(self, state: PhpState) -> None:
        """
        Write the whole state document atomically.

        Raises:
            StateError: If the file cannot be written
        """
        content = json.dumps(state.to_dict(), indent=2)
        try:
            atomic_write(self.state_file, content)
        except OSError as e:
            raise StateError(f"Failed to write state file {self.state_file}: {e}") from e
        logger.debug(f"Saved state to {self.state_file}")

    # Read-modify-write helpers. Each one is a load() followed by a save().

    def add_version(self, key: str, metadata: InstallMetadata) -> None:
        state = self.load()
        state.add_version(key, metadata)
        self.save(state)
        logger.info(f"Recorded installed version: {key}")

    def remove_version(self, key: str) -> None:
        state = self.load()
        state.remove_version(key)
        self.save(state)
        logger.info(f"Removed version from state: {key}")

    def set_active(self, key: str) -> None:
        state = self.load()
        state.set_active(key)
        self.save(state)
        logger.info(f"Active version set to {key}")

    def get_metadata(self, key: str) -> Optional[InstallMetadata]:
        return self.load().get_metadata(key)
