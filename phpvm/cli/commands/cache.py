"""
Cache command implementation.

Lists, removes and clears downloaded archives.
"""

import logging

from phpvm.cli.utils import create_manager, format_size, safe_print, state_lock

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the cache command.

    Args:
        args: Parsed command-line arguments with cache_command
            ('list', 'remove' with hash, or 'clear')

    Returns:
        Exit code (0 for success)
    """
    manager = create_manager(args)

    if args.cache_command == "list":
        return _list(manager)

    with state_lock(args):
        if args.cache_command == "remove":
            manager.remove_cached_file(args.hash)
            safe_print(f"✅ Removed cached file {args.hash}")
        else:
            removed = manager.clear_cache()
            safe_print(f"✅ Removed {removed} cached file(s)")
    return 0


def _list(manager) -> int:
    files = manager.list_cached_files()
    if not files:
        safe_print("Cache is empty")
        return 0

    total = 0
    for cached in files:
        total += cached.size
        version = cached.version or "unknown"
        modified = cached.modified.strftime("%Y-%m-%d %H:%M")
        safe_print(f"  {cached.key}  {format_size(cached.size):>10}  {modified}  {version}")
    safe_print(f"{len(files)} file(s), {format_size(total)}")
    return 0
