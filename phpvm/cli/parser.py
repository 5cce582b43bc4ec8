"""
phpvm CLI argument parser.

This module implements the command-line interface for phpvm using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from phpvm import __version__
from phpvm.core.directory import get_log_path
from phpvm.core.exceptions import PhpvmError
from phpvm.core.locking import LockTimeout
from phpvm.core.logging_setup import LoggingSession
from phpvm.cli.utils import print_error, resolve_base_dir

logger = logging.getLogger(__name__)


class CLI:
    """phpvm command-line interface."""

    command_map = {
        "install": "phpvm.cli.commands.install",
        "remove": "phpvm.cli.commands.remove",
        "use": "phpvm.cli.commands.use",
        "list": "phpvm.cli.commands.list_installed",
        "available": "phpvm.cli.commands.available",
        "current": "phpvm.cli.commands.current",
        "info": "phpvm.cli.commands.info",
        "path": "phpvm.cli.commands.path",
        "cache": "phpvm.cli.commands.cache",
    }

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="phpvm",
            description="phpvm - PHP version manager",
            epilog='Use "phpvm COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"phpvm {__version__}"
        )
        verbosity = parser.add_mutually_exclusive_group()
        verbosity.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        verbosity.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--home",
            type=Path,
            metavar="PATH",
            help="phpvm base directory (default: $PHPVM_HOME or the platform data dir)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_install_command(subparsers)
        self._add_remove_command(subparsers)
        self._add_use_command(subparsers)
        self._add_list_command(subparsers)
        self._add_available_command(subparsers)
        self._add_current_command(subparsers)
        self._add_info_command(subparsers)
        self._add_path_command(subparsers)
        self._add_cache_command(subparsers)

        return parser

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Download and install a PHP build",
            description="Download, verify and install one build of a PHP version",
        )
        parser.add_argument("version", metavar="VERSION", help="PHP version (e.g., 8.3.0)")
        parser.add_argument(
            "--variant",
            required=True,
            choices=["ts", "nts"],
            help="Build variant: thread-safe (ts) or non-thread-safe (nts)",
        )
        parser.add_argument(
            "--url",
            metavar="URL",
            help="Download the archive from URL instead of the release server",
        )
        parser.add_argument(
            "--checksum",
            metavar="SHA256",
            help="Expected SHA-256 of the archive",
        )

    def _add_remove_command(self, subparsers):
        """Add 'remove' subcommand."""
        parser = subparsers.add_parser(
            "remove",
            help="Remove an installed PHP build",
            description="Remove an installed build (e.g., 8.3.0-nts, or 8.3.0 for any variant)",
        )
        parser.add_argument("key", metavar="VERSION", help="Installed version or version-variant")

    def _add_use_command(self, subparsers):
        """Add 'use' subcommand."""
        parser = subparsers.add_parser(
            "use",
            help="Switch the active PHP build",
            description="Make an installed build the one on PATH",
        )
        parser.add_argument("key", metavar="VERSION", help="Installed version or version-variant")

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        subparsers.add_parser(
            "list",
            help="List installed PHP builds",
            description="List installed builds; the active one is marked with '*'",
        )

    def _add_available_command(self, subparsers):
        """Add 'available' subcommand."""
        parser = subparsers.add_parser(
            "available",
            help="List PHP versions available for download",
            description="List PHP releases published on the release server",
        )
        parser.add_argument(
            "--limit",
            type=int,
            default=20,
            metavar="N",
            help="Show at most N versions (default: 20)",
        )

    def _add_current_command(self, subparsers):
        """Add 'current' subcommand."""
        subparsers.add_parser(
            "current",
            help="Show the active PHP build",
            description="Show the active PHP build",
        )

    def _add_info_command(self, subparsers):
        """Add 'info' subcommand."""
        parser = subparsers.add_parser(
            "info",
            help="Show release and install details for a version",
            description="Show end-of-life date, download URL and installed variants",
        )
        parser.add_argument("version", metavar="VERSION", help="PHP version (e.g., 8.3.0)")

    def _add_path_command(self, subparsers):
        """Add 'path' subcommand with sub-commands."""
        parser = subparsers.add_parser(
            "path",
            help="Inspect or repair PATH registration",
            description="Inspect or repair registration of the current directory on PATH",
        )
        path_subparsers = parser.add_subparsers(
            dest="path_command", metavar="ACTION", required=True
        )
        path_subparsers.add_parser("status", help="Show whether PATH is configured")
        path_subparsers.add_parser("set", help="Add the current directory to PATH")

    def _add_cache_command(self, subparsers):
        """Add 'cache' subcommand with sub-commands."""
        parser = subparsers.add_parser(
            "cache",
            help="Manage downloaded archives",
            description="List, remove or clear cached downloads",
        )
        cache_subparsers = parser.add_subparsers(
            dest="cache_command", metavar="ACTION", required=True
        )
        cache_subparsers.add_parser("list", help="List cached archives")
        remove = cache_subparsers.add_parser("remove", help="Remove one cached archive")
        remove.add_argument("hash", metavar="HASH", help="Cache key shown by 'cache list'")
        cache_subparsers.add_parser("clear", help="Remove all cached archives")

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        # Check if command specified
        if not parsed_args.command:
            self.parser.print_help()
            return 1

        with self._create_logging_session(parsed_args):
            try:
                return self._dispatch_command(parsed_args)
            except KeyboardInterrupt:
                logger.info("Operation cancelled by user")
                return 130  # Standard exit code for SIGINT
            except LockTimeout as e:
                print_error(str(e))
                return 1
            except PhpvmError as e:
                logger.debug("Command failed", exc_info=True)
                print_error(str(e))
                return 1
            except Exception as e:
                logger.error(f"Error: {e}")
                if parsed_args.verbose:
                    import traceback

                    traceback.print_exc()
                return 1

    def _create_logging_session(self, args) -> LoggingSession:
        """
        Configure logging based on verbose/quiet flags.

        The log file lives under the base directory; if that cannot be
        determined, logging goes to the console only.
        """
        try:
            log_file = get_log_path(resolve_base_dir(args))
        except PhpvmError:
            log_file = None
        return LoggingSession(log_file, verbose=args.verbose, quiet=args.quiet)

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        module_name = self.command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)

        if not hasattr(module, "run"):
            logger.error(f"Command module {module_name} has no run() function")
            return 1

        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
