"""
Shared utilities for CLI commands.

Provides common functionality used across multiple CLI commands to
eliminate duplication and ensure consistent behavior.
"""

import logging
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Optional, TypeVar

from phpvm.core.config import Config
from phpvm.core.directory import ensure_base_structure, get_base_directory, get_lock_dir
from phpvm.core.download import ProgressChannel, format_progress
from phpvm.core.locking import LockManager
from phpvm.install.manager import PhpManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

STATE_LOCK_TIMEOUT = 30


# ============================================================================
# Manager Construction
# ============================================================================


def resolve_base_dir(args) -> Path:
    """Base directory from --home, else the platform default."""
    home = getattr(args, "home", None)
    if home:
        return Path(home).expanduser()
    return get_base_directory()


def create_manager(args) -> PhpManager:
    """
    Build a PhpManager for the base directory selected by the arguments.

    Creates the base directory layout and default config on first use.
    """
    base_dir = resolve_base_dir(args)
    ensure_base_structure(base_dir)
    config = Config.load(base_dir)
    return PhpManager(config, base_dir)


@contextmanager
def state_lock(args, timeout: float = STATE_LOCK_TIMEOUT):
    """Serialize a mutating command against other phpvm processes."""
    lock_manager = LockManager(get_lock_dir(resolve_base_dir(args)))
    with lock_manager.state_lock(timeout=timeout):
        yield


# ============================================================================
# Progress
# ============================================================================


def render_progress(channel: ProgressChannel, stream=None) -> int:
    """
    Print progress events until the channel closes.

    On a terminal the line is rewritten in place; otherwise only the final
    event is printed.

    Returns:
        Number of events received
    """
    stream = stream or sys.stdout
    interactive = hasattr(stream, "isatty") and stream.isatty()
    count = 0
    last = None

    for event in channel.events():
        count += 1
        last = event
        if interactive:
            stream.write(f"\r  {format_progress(event)}\033[K")
            stream.flush()

    if last is not None:
        if interactive:
            stream.write("\n")
        else:
            stream.write(f"  {format_progress(last)}\n")
        stream.flush()
    return count


def run_with_progress(
    task: Callable[[], T], channel: ProgressChannel, stream=None
) -> T:
    """
    Run ``task`` on a worker thread while rendering its progress here.

    The worker closes the channel when the task finishes, so rendering always
    ends. An exception raised by the task is re-raised in the caller.
    """
    outcome = {}

    def worker():
        try:
            outcome["value"] = task()
        except Exception as e:
            outcome["error"] = e
        finally:
            channel.close()

    thread = threading.Thread(target=worker, name="phpvm-worker", daemon=True)
    thread.start()
    render_progress(channel, stream)
    thread.join()

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("value")


# ============================================================================
# User Interface / Output Formatting
# ============================================================================


def format_size(num_bytes: int) -> str:
    """
    Human-readable byte count.

    Example:
        >>> format_size(31457280)
        '30.0 MB'
    """
    if num_bytes < 1024:
        return f"{num_bytes} B"
    size = num_bytes / 1024
    for unit in ("KB", "MB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def print_warning(message: str):
    """Print warning message to stderr."""
    print(f"WARNING: {message}", file=sys.stderr)


def safe_print(message: str, file=None):
    """
    Print message with safe encoding handling for Windows console.

    Falls back to ASCII-safe characters if Unicode symbols can't be encoded.

    Args:
        message: Message to print
        file: Output file (default: stdout)
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        safe_message = (
            message.replace("⚠️", "WARNING:")
            .replace("✓", "[OK]")
            .replace("✅", "[OK]")
            .replace("❌", "[ERROR]")
            .replace("→", "->")
        )
        print(safe_message, file=file)
