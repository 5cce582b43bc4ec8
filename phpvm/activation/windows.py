"""
Activation on Windows.

IDE integrations look for a real ``php.exe`` in a fixed directory, so
activation copies the executable and its top-level DLLs into
``<base>\\current`` rather than linking. A ``php.bat`` dispatcher is written
next to it for older command-line setups.

PATH registration edits the per-user ``Path`` value under
``HKEY_CURRENT_USER\\Environment`` and then broadcasts WM_SETTINGCHANGE so
running shells pick up the change. Registry access goes through an
EnvironmentStore so the PATH logic can be exercised off Windows.
"""

import ctypes
import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from phpvm.activation.base import PlatformOps
from phpvm.core.exceptions import ActivationError

logger = logging.getLogger(__name__)

ENVIRONMENT_KEY = "Environment"
PATH_VALUE = "Path"

HWND_BROADCAST = 0xFFFF
WM_SETTINGCHANGE = 0x001A
SMTO_ABORTIFHUNG = 0x0002
BROADCAST_TIMEOUT_MS = 1000


class EnvironmentStore(ABC):
    """Per-user environment variable storage."""

    @abstractmethod
    def get_user_path(self) -> str:
        """Return the raw per-user Path value ('' if unset)."""
        pass

    @abstractmethod
    def set_user_path(self, value: str) -> None:
        pass

    def broadcast_change(self) -> None:
        """Notify running processes that the environment changed."""
        pass


class RegistryEnvironment(EnvironmentStore):
    """EnvironmentStore backed by HKEY_CURRENT_USER\\Environment."""

    def get_user_path(self) -> str:
        import winreg

        try:
            with winreg.OpenKey(
                winreg.HKEY_CURRENT_USER, ENVIRONMENT_KEY, 0, winreg.KEY_READ
            ) as key:
                value, _ = winreg.QueryValueEx(key, PATH_VALUE)
                return value or ""
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise ActivationError(f"Failed to read user Path from registry: {e}") from e

    def set_user_path(self, value: str) -> None:
        import winreg

        try:
            with winreg.OpenKey(
                winreg.HKEY_CURRENT_USER,
                ENVIRONMENT_KEY,
                0,
                winreg.KEY_READ | winreg.KEY_WRITE,
            ) as key:
                try:
                    _, value_type = winreg.QueryValueEx(key, PATH_VALUE)
                except FileNotFoundError:
                    value_type = winreg.REG_EXPAND_SZ
                winreg.SetValueEx(key, PATH_VALUE, 0, value_type, value)
        except OSError as e:
            raise ActivationError(f"Failed to set Path in registry: {e}") from e

    def broadcast_change(self) -> None:
        # Best effort: a missed notification only delays pickup until next login
        try:
            result = ctypes.c_ulong()
            ctypes.windll.user32.SendMessageTimeoutW(
                HWND_BROADCAST,
                WM_SETTINGCHANGE,
                0,
                ENVIRONMENT_KEY,
                SMTO_ABORTIFHUNG,
                BROADCAST_TIMEOUT_MS,
                ctypes.byref(result),
            )
        except (AttributeError, OSError) as e:
            logger.warning(f"Failed to broadcast environment change: {e}")


def split_path(value: str) -> List[str]:
    return [entry for entry in value.split(";") if entry.strip()]


def _same_entry(entry: str, directory: str) -> bool:
    return entry.strip().rstrip("\\/").lower() == directory.rstrip("\\/").lower()


class WindowsPlatformOps(PlatformOps):
    """
    Copy-based activation with registry PATH registration.

    Attributes:
        env_store: Where the per-user Path value is read and written
    """

    def __init__(self, base_dir: Path, env_store: Optional[EnvironmentStore] = None):
        super().__init__(base_dir)
        self.env_store = env_store or RegistryEnvironment()

    def executable_path(self, install_dir: Path) -> Path:
        return Path(install_dir) / "php.exe"

    def launcher_path(self) -> Path:
        return self.current_dir / "php.bat"

    def activate(self, install_dir: Path) -> Path:
        install_dir = Path(install_dir)
        executable = self.executable_path(install_dir)
        if not executable.is_file():
            raise ActivationError(f"PHP executable not found: {executable}")

        launcher = self.launcher_path()
        try:
            self.current_dir.mkdir(parents=True, exist_ok=True)
            self._remove_stale_binaries()
            shutil.copy2(executable, self.current_dir / "php.exe")
        except OSError as e:
            raise ActivationError(
                f"Failed to copy php.exe to {self.current_dir}: {e}"
            ) from e
        logger.info(f"Copied php.exe to {self.current_dir}")

        copied = 0
        for dll in sorted(install_dir.iterdir()):
            if not (dll.is_file() and dll.suffix.lower() == ".dll"):
                continue
            try:
                shutil.copy2(dll, self.current_dir / dll.name)
                copied += 1
            except OSError as e:
                logger.warning(f"Failed to copy {dll.name} to current directory: {e}")
        logger.debug(f"Copied {copied} DLL(s) to {self.current_dir}")

        try:
            launcher.write_text(f'@echo off\r\n"{executable}" %*\r\n', encoding="utf-8")
        except OSError as e:
            raise ActivationError(f"Failed to write {launcher}: {e}") from e

        return launcher

    def _remove_stale_binaries(self) -> None:
        """Remove php.exe and DLLs left by the previously active build."""
        for entry in self.current_dir.iterdir():
            if not entry.is_file():
                continue
            if entry.name.lower() == "php.exe" or entry.suffix.lower() == ".dll":
                entry.unlink()

    def is_active(self, directory: Optional[Path] = None) -> bool:
        target = str(directory or self.current_dir)
        return any(
            _same_entry(entry, target)
            for entry in split_path(self.env_store.get_user_path())
        )

    def add_to_path(self, directory: Optional[Path] = None) -> bool:
        target = str(directory or self.current_dir)
        entries = split_path(self.env_store.get_user_path())

        if any(_same_entry(entry, target) for entry in entries):
            logger.debug(f"{target} already on user Path")
            return False

        kept = [entry for entry in entries if not self._is_stale_entry(entry)]
        if len(kept) != len(entries):
            logger.info(f"Pruned {len(entries) - len(kept)} stale phpvm Path entries")

        self.env_store.set_user_path(";".join([target] + kept))
        self.env_store.broadcast_change()
        logger.info(f"Added {target} to user Path")
        return True

    def remove_from_path(self, directory: Optional[Path] = None) -> bool:
        target = str(directory or self.current_dir)
        entries = split_path(self.env_store.get_user_path())
        kept = [entry for entry in entries if not _same_entry(entry, target)]
        if len(kept) == len(entries):
            return False

        self.env_store.set_user_path(";".join(kept))
        self.env_store.broadcast_change()
        logger.info(f"Removed {target} from user Path")
        return True
