"""
List command implementation.

Lists installed builds and marks the active one.
"""

import logging

from phpvm.cli.utils import create_manager, safe_print, state_lock

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    manager = create_manager(args)
    # get_active() may rewrite a stale active pointer
    with state_lock(args):
        installed = manager.list_installed()
        active = manager.get_active()

    if not installed:
        safe_print("No PHP versions installed")
        safe_print("Use 'phpvm install VERSION --variant nts' to install one")
        return 0

    for key in installed:
        marker = "*" if key == active else " "
        safe_print(f"{marker} {key}")
    return 0
