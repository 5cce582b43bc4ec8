"""
Path command implementation.

Inspects or repairs registration of the phpvm current directory on PATH.
"""

import logging

from phpvm.cli.utils import create_manager, safe_print, state_lock

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the path command.

    Args:
        args: Parsed command-line arguments with path_command ('status' or 'set')

    Returns:
        Exit code (0 for success, 1 when status reports PATH not configured)
    """
    manager = create_manager(args)
    current_dir = manager.platform_ops.current_dir

    if args.path_command == "status":
        if manager.is_path_configured():
            safe_print(f"✓ {current_dir} is on PATH")
            return 0
        safe_print(f"⚠️ {current_dir} is not on PATH")
        safe_print("Run 'phpvm path set' to add it")
        return 1

    with state_lock(args):
        changed = manager.ensure_path_set()
    if changed:
        safe_print(f"✅ Added {current_dir} to PATH")
        safe_print("Open a new terminal for the change to take effect")
    else:
        safe_print(f"✓ {current_dir} is already on PATH")
    return 0
