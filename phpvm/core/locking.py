"""
Cross-process locking for phpvm commands.

The state store and download cache do no locking of their own. The CLI wraps
each mutating command in ``LockManager.state_lock`` so that two ``phpvm``
processes on the same machine do not interleave read-modify-write cycles on
``state.json``.

Usage:
    from phpvm.core.locking import LockManager

    lock_manager = LockManager(get_lock_dir())
    with lock_manager.state_lock(timeout=30):
        manager.install("8.2.0", Variant.NTS)
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout as LockTimeout

from phpvm.core.directory import get_lock_dir

logger = logging.getLogger(__name__)

STATE_LOCK_NAME = "state.lock"


class LockManager:
    """
    File-based locks under the phpvm lock directory.

    Attributes:
        lock_dir: Directory where lock files are stored
    """

    def __init__(self, lock_dir: Optional[Path] = None):
        """
        Initialize lock manager.

        Args:
            lock_dir: Directory for lock files (default: <base>/lock)
        """
        self.lock_dir = Path(lock_dir) if lock_dir is not None else get_lock_dir()
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    @property
    def state_lock_path(self) -> Path:
        return self.lock_dir / STATE_LOCK_NAME

    @contextmanager
    def state_lock(self, timeout: float = 30):
        """
        Hold the state lock for the duration of the block.

        Args:
            timeout: Maximum wait time in seconds

        Raises:
            LockTimeout: If another phpvm process holds the lock past timeout

        Example:
            >>> with LockManager(tmp).state_lock(timeout=5):
            ...     store.set_active("8.3.0-nts")
        """
        lock_path = self.state_lock_path
        lock = FileLock(lock_path, timeout=timeout)

        try:
            with lock:
                logger.debug(f"Acquired state lock: {lock_path}")
                yield
                logger.debug(f"Released state lock: {lock_path}")
        except LockTimeout as e:
            logger.error(
                f"Could not acquire state lock after {timeout}s. "
                "Another phpvm process may be running."
            )
            raise LockTimeout(
                f"Could not acquire state lock after {timeout}s. "
                "Another phpvm process may be running."
            ) from e


__all__ = ["LockManager", "LockTimeout"]
