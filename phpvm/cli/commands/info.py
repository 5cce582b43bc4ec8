"""
Info command implementation.

Shows release details of a version and what is installed of it.
"""

import logging
from datetime import datetime

from phpvm.cli.utils import create_manager, print_warning, safe_print, state_lock

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the info command.

    Args:
        args: Parsed command-line arguments with version

    Returns:
        Exit code (0 for success)
    """
    manager = create_manager(args)
    info = manager.get_version_info(args.version)
    with state_lock(args):
        status = manager.version_status(args.version)
        active = manager.get_active() if status.active else None

    safe_print(f"PHP {info.version}")
    if info.release_date:
        safe_print(f"  Released:   {info.release_date}")
    if status.eol_date:
        label = "ended" if status.is_eol else "until"
        safe_print(f"  Support:    {label} {status.eol_date}")
    else:
        safe_print("  Support:    unknown")
    if status.is_eol:
        print_warning(f"PHP {status.version} no longer receives security fixes")
    if info.download_url:
        safe_print(f"  Download:   {info.download_url}")

    if not status.installed_variants:
        safe_print("  Installed:  no")
        return 0

    safe_print(f"  Installed:  {', '.join(status.installed_variants)}")
    for variant in status.installed_variants:
        key = f"{status.version}-{variant}"
        metadata = manager.get_metadata(key)
        if metadata is None:
            continue
        installed_at = metadata.installed_at
        if installed_at.isdigit():
            installed_at = datetime.fromtimestamp(int(installed_at)).isoformat(" ", "seconds")
        safe_print(f"    {key}: {metadata.install_path} (installed {installed_at})")
    if status.active:
        safe_print(f"  Active:     {active}")
    return 0
