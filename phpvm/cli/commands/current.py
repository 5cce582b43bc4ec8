"""
Current command implementation.
"""

import logging

from phpvm.cli.utils import create_manager, safe_print, state_lock

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the current command.

    Returns:
        Exit code (0 when a build is active, 1 otherwise)
    """
    manager = create_manager(args)
    with state_lock(args):
        active = manager.get_active()

    if active is None:
        safe_print("No active PHP version")
        return 1

    safe_print(active)
    metadata = manager.get_metadata(active)
    if metadata is not None and args.verbose:
        safe_print(f"  Path: {metadata.install_path}")
    return 0
