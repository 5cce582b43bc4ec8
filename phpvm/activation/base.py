"""
Platform capability interface for activation.

Everything operating-system specific about an installed PHP build lives
behind PlatformOps: where the executable marker sits inside an install,
how the fixed launcher in ``<base>/current`` is rewritten, and how that
directory is registered on the user's PATH. The installer and manager only
talk to this interface, so tests substitute fakes or run the Windows
implementation against an in-memory environment store.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from phpvm.core.directory import get_current_dir

logger = logging.getLogger(__name__)


class PlatformOps(ABC):
    """
    Activation and PATH capabilities of one platform.

    Attributes:
        base_dir: phpvm base directory
        current_dir: Fixed directory registered on PATH
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self.current_dir = get_current_dir(self.base_dir)

    @abstractmethod
    def executable_path(self, install_dir: Path) -> Path:
        """
        Path of the PHP executable inside an install directory.

        Its presence is the executable marker: the only proof that an install
        directory holds a complete build.
        """
        pass

    @abstractmethod
    def launcher_path(self) -> Path:
        """Stable invocation target inside current_dir."""
        pass

    @abstractmethod
    def activate(self, install_dir: Path) -> Path:
        """
        Make the build in ``install_dir`` reachable through the launcher.

        Args:
            install_dir: Complete install directory

        Returns:
            Launcher path

        Raises:
            ActivationError: If the executable is missing or files cannot be written
        """
        pass

    @abstractmethod
    def is_active(self, directory: Optional[Path] = None) -> bool:
        """
        Check whether ``directory`` (default: current_dir) is registered on PATH.
        """
        pass

    @abstractmethod
    def add_to_path(self, directory: Optional[Path] = None) -> bool:
        """
        Register ``directory`` (default: current_dir) on the user's PATH.

        Idempotent. Stale phpvm entries are pruned before the new one is added.

        Returns:
            True if the PATH configuration was changed
        """
        pass

    @abstractmethod
    def remove_from_path(self, directory: Optional[Path] = None) -> bool:
        """
        Remove ``directory`` (default: current_dir) from the user's PATH.

        Returns:
            True if the PATH configuration was changed
        """
        pass

    def is_complete(self, install_dir: Path) -> bool:
        return self.executable_path(Path(install_dir)).is_file()

    @staticmethod
    def _is_stale_entry(entry: str) -> bool:
        """PATH entries left by an earlier phpvm base directory."""
        lowered = entry.lower()
        return "phpvm" in lowered and "current" in lowered
