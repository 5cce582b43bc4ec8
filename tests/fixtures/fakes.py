"""In-memory stand-ins for external systems.

- FakeEnvironmentStore replaces the Windows registry.
- StaticProvider replaces windows.php.net with predictable URLs.
"""

from typing import List, Optional

import pytest

from phpvm.activation.posix import PosixPlatformOps
from phpvm.activation.windows import EnvironmentStore
from phpvm.core.version import PhpVersion, Variant
from phpvm.install.provider import VersionInfo, VersionProvider

MIRROR_URL = "https://mirror.test/php/"


class FakeEnvironmentStore(EnvironmentStore):
    """User Path held in memory; counts broadcasts."""

    def __init__(self, path: str = ""):
        self.path = path
        self.writes: List[str] = []
        self.broadcasts = 0

    def get_user_path(self) -> str:
        return self.path

    def set_user_path(self, value: str) -> None:
        self.path = value
        self.writes.append(value)

    def broadcast_change(self) -> None:
        self.broadcasts += 1


class StaticProvider(VersionProvider):
    """
    Provider with fixed releases and predictable URLs.

    URLs look like ``https://mirror.test/php/php-8.2.0-nts.zip``.
    """

    def __init__(self, versions: Optional[List[str]] = None, base_url: str = MIRROR_URL):
        self.base_url = base_url
        self.versions = versions if versions is not None else ["8.3.0", "8.2.0", "7.4.33"]
        self.resolved: List[str] = []

    def resolve_download_url(self, version: PhpVersion, variant: Variant) -> str:
        url = f"{self.base_url}php-{version.render()}-{variant.value}.zip"
        self.resolved.append(url)
        return url

    def list_available(self) -> List[VersionInfo]:
        return [VersionInfo(version=v) for v in self.versions]


@pytest.fixture
def fake_env_store() -> FakeEnvironmentStore:
    return FakeEnvironmentStore()


@pytest.fixture
def static_provider() -> StaticProvider:
    return StaticProvider()


@pytest.fixture
def posix_ops(phpvm_home, isolated_home) -> PosixPlatformOps:
    """POSIX activation writing to an isolated ~/.bashrc."""
    return PosixPlatformOps(phpvm_home, home=isolated_home, shell="/bin/bash")
