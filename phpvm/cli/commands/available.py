"""
Available command implementation.

Lists PHP releases that can be installed.
"""

import logging

from phpvm.cli.utils import create_manager, safe_print
from phpvm.core.version import split_key

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the available command.

    Args:
        args: Parsed command-line arguments with limit

    Returns:
        Exit code (0 for success)
    """
    manager = create_manager(args)
    versions = manager.list_available(limit=args.limit)
    installed = {split_key(key)[0].render() for key in manager.list_installed()}

    if not versions:
        safe_print("No versions available")
        return 0

    for info in versions:
        notes = []
        if info.eol_date:
            notes.append(f"EOL {info.eol_date}")
        if info.version in installed:
            notes.append("installed")
        suffix = f"  ({', '.join(notes)})" if notes else ""
        safe_print(f"  {info.version}{suffix}")
    return 0
