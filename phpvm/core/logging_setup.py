"""
Logging setup for phpvm.

Library modules only call ``logging.getLogger(__name__)``. Handlers are owned
by a LoggingSession which the entry point constructs explicitly and closes
on exit:

- a console handler whose level and format follow --verbose/--quiet;
- a rotating file handler at ``<base>/logs/phpvm.log`` that records DEBUG
  and above regardless of console verbosity.

Example:
    >>> with LoggingSession(get_log_path(), verbose=True):
    ...     manager.install("8.2.0", Variant.NTS)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5

FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def console_format(verbose: bool = False, quiet: bool = False) -> tuple:
    """
    Console level and format for the given verbosity flags.

    Returns:
        (level, format string)
    """
    if verbose:
        return logging.DEBUG, "%(levelname)s [%(name)s] %(message)s"
    if quiet:
        return logging.ERROR, "%(levelname)s: %(message)s"
    return logging.INFO, "%(message)s"


class LoggingSession:
    """
    Owns the handlers attached to the root logger for one process run.

    Attributes:
        log_file: Rotating log file path, or None for console only
    """

    def __init__(
        self,
        log_file: Optional[Path] = None,
        verbose: bool = False,
        quiet: bool = False,
        stream=None,
        max_bytes: int = LOG_MAX_BYTES,
        backup_count: int = LOG_BACKUP_COUNT,
    ):
        self.log_file = Path(log_file) if log_file is not None else None
        self._handlers: List[logging.Handler] = []
        self._root = logging.getLogger()
        self._previous_level = self._root.level

        level, fmt = console_format(verbose, quiet)
        console = logging.StreamHandler(stream or sys.stderr)
        console.setLevel(level)
        console.setFormatter(logging.Formatter(fmt))
        self._attach(console)

        if self.log_file is not None:
            try:
                self.log_file.parent.mkdir(parents=True, exist_ok=True)
                file_handler = RotatingFileHandler(
                    self.log_file,
                    maxBytes=max_bytes,
                    backupCount=backup_count,
                    encoding="utf-8",
                )
            except OSError as e:
                # Console logging still works without a writable log dir
                logging.getLogger(__name__).warning(
                    f"Cannot open log file {self.log_file}: {e}"
                )
            else:
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
                self._attach(file_handler)

        self._root.setLevel(logging.DEBUG)

    def _attach(self, handler: logging.Handler) -> None:
        self._root.addHandler(handler)
        self._handlers.append(handler)

    @property
    def handlers(self) -> List[logging.Handler]:
        return list(self._handlers)

    def flush(self) -> None:
        for handler in self._handlers:
            handler.flush()

    def close(self) -> None:
        """Flush and detach every handler this session added. Idempotent."""
        for handler in self._handlers:
            handler.flush()
            self._root.removeHandler(handler)
            handler.close()
        self._handlers.clear()
        self._root.setLevel(self._previous_level)

    def __enter__(self) -> "LoggingSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
