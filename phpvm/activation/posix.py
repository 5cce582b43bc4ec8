"""
Activation on Linux and macOS.

``<base>/current/php`` is a symlink to the active build's ``bin/php``. PATH
registration is one line in the user's shell rc file::

    export PATH="/home/user/.local/share/phpvm/current:$PATH"

The rc file is ``~/.zshrc`` when $SHELL mentions zsh, ``~/.bashrc`` otherwise.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from phpvm.activation.base import PlatformOps
from phpvm.core.exceptions import ActivationError

logger = logging.getLogger(__name__)


def path_export_line(directory: Path) -> str:
    return f'export PATH="{directory}:$PATH"'


class PosixPlatformOps(PlatformOps):
    """
    Symlink-based activation.

    Attributes:
        home: Home directory holding the shell rc file
        shell: Login shell path used to pick the rc file
    """

    def __init__(
        self,
        base_dir: Path,
        home: Optional[Path] = None,
        shell: Optional[str] = None,
    ):
        super().__init__(base_dir)
        self.home = Path(home) if home is not None else Path.home()
        self.shell = shell if shell is not None else os.environ.get("SHELL", "/bin/bash")

    def executable_path(self, install_dir: Path) -> Path:
        return Path(install_dir) / "bin" / "php"

    def launcher_path(self) -> Path:
        return self.current_dir / "php"

    @property
    def rc_file(self) -> Path:
        if "zsh" in self.shell:
            return self.home / ".zshrc"
        return self.home / ".bashrc"

    def activate(self, install_dir: Path) -> Path:
        executable = self.executable_path(install_dir)
        if not executable.is_file():
            raise ActivationError(f"PHP executable not found: {executable}")

        launcher = self.launcher_path()
        try:
            self.current_dir.mkdir(parents=True, exist_ok=True)
            if launcher.is_symlink() or launcher.exists():
                launcher.unlink()
            os.symlink(executable, launcher)
            # Symlink creation does not carry the execute bit
            os.chmod(launcher, 0o755)
        except OSError as e:
            raise ActivationError(f"Failed to update launcher {launcher}: {e}") from e

        logger.info(f"Linked {launcher} -> {executable}")
        return launcher

    def _read_rc(self) -> str:
        try:
            return self.rc_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except OSError as e:
            raise ActivationError(f"Failed to read {self.rc_file}: {e}") from e

    def _write_rc(self, content: str) -> None:
        try:
            self.rc_file.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ActivationError(f"Failed to write {self.rc_file}: {e}") from e

    def is_active(self, directory: Optional[Path] = None) -> bool:
        line = path_export_line(directory or self.current_dir)
        return line in self._read_rc().splitlines()

    def add_to_path(self, directory: Optional[Path] = None) -> bool:
        line = path_export_line(directory or self.current_dir)
        lines = self._read_rc().splitlines()

        if line in lines:
            logger.debug(f"{self.rc_file} already exports {line}")
            return False

        kept = [
            existing
            for existing in lines
            if not (existing.startswith("export PATH=") and self._is_stale_entry(existing))
        ]
        if len(kept) != len(lines):
            logger.info(f"Pruned {len(lines) - len(kept)} stale phpvm PATH line(s)")

        kept.append(line)
        self._write_rc("\n".join(kept) + "\n")
        logger.info(f"Added {line!r} to {self.rc_file}")
        return True

    def remove_from_path(self, directory: Optional[Path] = None) -> bool:
        line = path_export_line(directory or self.current_dir)
        lines = self._read_rc().splitlines()
        if line not in lines:
            return False

        kept = [existing for existing in lines if existing != line]
        self._write_rc("\n".join(kept) + "\n" if kept else "")
        logger.info(f"Removed phpvm PATH line from {self.rc_file}")
        return True
