"""Main CLI interface for the artwork toolkit."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from ..config.constants import VERBOSE_LOGGING_THRESHOLD
from ..core import ConfigManager, RefreshOptions, with_config_overrides
from .commands import RefreshCommands, UtilityCommands


class ArtworkToolkitCLI:
    """Command line front-end for refreshing catalog artwork."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_manager = ConfigManager(config_path)
        self.refresh_commands = RefreshCommands(self.config_manager)
        self.utility_commands = UtilityCommands(self.config_manager)

    @staticmethod
    def setup_logging(verbosity: int) -> None:
        """Setup logging based on verbosity level."""
        level_map = {
            0: logging.WARNING,
            1: logging.INFO,
            2: logging.DEBUG,
        }

        level = level_map.get(verbosity, logging.DEBUG)

        log_format = (
            "%(levelname)s: %(name)s: %(message)s"
            if verbosity >= VERBOSE_LOGGING_THRESHOLD
            else "%(levelname)s: %(message)s"
        )

        logging.basicConfig(level=level, format=log_format, handlers=[logging.StreamHandler(sys.stderr)])

        # httpx logs every request at INFO
        if verbosity < VERBOSE_LOGGING_THRESHOLD:
            logging.getLogger("httpx").setLevel(logging.WARNING)
            logging.getLogger("httpcore").setLevel(logging.WARNING)

    def build_parser(self) -> argparse.ArgumentParser:
        """Build the argument parser."""
        parser = argparse.ArgumentParser(
            prog="artwork-toolkit",
            description="Keep catalog artwork in sync with local files and image providers",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Pick up new local images and fill missing slots
  artwork-toolkit refresh /path/to/movies

  # Replace all posters and backdrops
  artwork-toolkit refresh /path/to/movies --full --replace Primary Backdrop

  # Only reconcile with local files
  artwork-toolkit refresh /path/to/movies --no-remote --dry-run

  # Clean up backup files
  artwork-toolkit utils cleanup /path/to/movies --force
            """,
        )

        parser.add_argument(
            "-v",
            "--verbose",
            action="count",
            default=0,
            help="Increase verbosity (-v for info, -vv for debug)",
        )

        parser.add_argument("--config", type=Path, help="Path to configuration file")

        subparsers = parser.add_subparsers(dest="command", required=True, help="Available commands")

        refresh_parser = subparsers.add_parser("refresh", help="Refresh images of media entries")
        self.refresh_commands.add_arguments(refresh_parser)

        utils_parser = subparsers.add_parser("utils", help="Utility commands")
        self.utility_commands.add_subcommands(utils_parser)

        return parser

    @staticmethod
    def create_refresh_options(args: argparse.Namespace) -> RefreshOptions:
        """Create refresh options from CLI arguments."""
        return RefreshOptions(
            create_backups=False if getattr(args, "no_backups", False) else None,
            workers=getattr(args, "workers", None),
        )

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parser = self.build_parser()
        parsed_args = parser.parse_args(args)

        self.setup_logging(parsed_args.verbose)

        if getattr(parsed_args, "config", None):
            self.config_manager = ConfigManager(parsed_args.config)
            self.refresh_commands.config_manager = self.config_manager
            self.utility_commands.config_manager = self.config_manager

        refresh_options = self.create_refresh_options(parsed_args)

        try:
            with with_config_overrides(self.config_manager) as config_mgr:
                config_mgr.apply_refresh_options(refresh_options)

                if parsed_args.command == "refresh":
                    return self.refresh_commands.handle_command(parsed_args)
                if parsed_args.command == "utils":
                    return self.utility_commands.handle_command(parsed_args)
                parser.error(f"Unknown command: {parsed_args.command}")

        except KeyboardInterrupt:
            logging.getLogger(__name__).info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except Exception:
            logging.getLogger(__name__).exception("Unexpected error")
            return 1

        return 0


def main() -> int:
    """Entry point for the CLI."""
    cli = ArtworkToolkitCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
