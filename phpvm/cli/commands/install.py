"""
Install command implementation.

Downloads and installs one build of a PHP version. The download runs on a
worker thread while progress is rendered on the main thread.
"""

import logging

from phpvm.cli.utils import create_manager, run_with_progress, safe_print, state_lock
from phpvm.core.download import ProgressChannel
from phpvm.core.version import Variant

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments with:
            - version: PHP version to install
            - variant: 'ts' or 'nts'
            - url: Optional archive URL override
            - checksum: Optional expected SHA-256 of the archive

    Returns:
        Exit code (0 for success)
    """
    variant = Variant.parse(args.variant)
    manager = create_manager(args)
    channel = ProgressChannel()

    safe_print(f"Installing PHP {args.version} ({variant.value.upper()})...")

    with state_lock(args):
        install_path = run_with_progress(
            lambda: manager.install(
                args.version,
                variant,
                source_url=args.url,
                expected_checksum=args.checksum,
                progress=channel,
            ),
            channel,
        )

    safe_print(f"✅ Installed PHP {args.version}-{variant} to {install_path}")
    safe_print(f"Run 'phpvm use {args.version}-{variant}' to activate it")
    return 0
