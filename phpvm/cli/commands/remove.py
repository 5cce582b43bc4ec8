"""
Remove command implementation.
"""

import logging

from phpvm.cli.utils import create_manager, safe_print, state_lock

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the remove command.

    Args:
        args: Parsed command-line arguments with key ('8.3.0-nts' or '8.3.0')

    Returns:
        Exit code (0 for success)
    """
    manager = create_manager(args)
    with state_lock(args):
        manager.remove(args.key)

    safe_print(f"✅ Removed PHP {args.key}")
    return 0
