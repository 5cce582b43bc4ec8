"""
Use command implementation.

Switches the active PHP build.
"""

import logging

from phpvm.cli.utils import create_manager, safe_print, state_lock

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the use command.

    Args:
        args: Parsed command-line arguments with key ('8.3.0-nts' or '8.3.0')

    Returns:
        Exit code (0 for success)
    """
    manager = create_manager(args)
    with state_lock(args):
        key = manager.switch(args.key)

    safe_print(f"✅ Now using PHP {key}")
    safe_print(f"Launcher: {manager.platform_ops.launcher_path()}")
    safe_print("Open a new terminal if 'php' does not resolve to the new version")
    return 0
