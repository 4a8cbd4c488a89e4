"""Utility CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import argparse

    from ...core import ConfigManager

LOG = logging.getLogger(__name__)


class UtilityCommands:
    """Utility command handlers."""

    def __init__(self, config_manager: ConfigManager) -> None:
        """Initialize utility commands handler."""
        self.config_manager = config_manager

    def add_subcommands(self, parser: argparse.ArgumentParser) -> None:
        """Add utility subcommands to parser."""
        subparsers = parser.add_subparsers(dest="util_command", help="Utility commands")

        # Cleanup command
        cleanup_parser = subparsers.add_parser("cleanup", help="Clean up image backup files")
        cleanup_parser.add_argument("path", type=Path, help="Path to directory")
        cleanup_parser.add_argument("--force", "-f", action="store_true", help="Force removal of all backup files")
        cleanup_parser.add_argument("--dry-run", "-n", action="store_true", help="Show what would be deleted")

        # Info command
        subparsers.add_parser("info", help="Show configuration info")

    def handle_command(self, args: argparse.Namespace) -> int:
        """Handle utility command execution."""
        if not hasattr(args, "util_command") or args.util_command is None:
            LOG.error("No utility command specified")
            return 1

        if args.util_command == "cleanup":
            return self._handle_cleanup(args)
        if args.util_command == "info":
            return self._handle_info(args)
        LOG.error("Unknown utility command: %s", args.util_command)
        return 1

    def _handle_cleanup(self, args: argparse.Namespace) -> int:
        """Remove ``.bak`` files left behind by interrupted refreshes."""
        if not args.force and not args.dry_run:
            LOG.info("Note: backups are removed automatically after a successful refresh.")
            LOG.info("Use --force to remove all .bak files in the directory, or --dry-run to list them.")
            return 0

        try:
            backup_files = sorted(args.path.rglob("*.bak"))
        except OSError:
            LOG.exception("Backup cleanup failed")
            return 1

        if args.dry_run:
            LOG.info("Would remove %d backup files", len(backup_files))
            for backup_file in backup_files:
                LOG.info("  %s", backup_file)
            return 0

        cleaned_count = 0
        for backup_file in backup_files:
            try:
                backup_file.unlink()
                cleaned_count += 1
                LOG.debug("Removed backup: %s", backup_file)
            except OSError as e:
                LOG.warning("Failed to remove backup %s: %s", backup_file, e)

        LOG.info("Removed %d backup files", cleaned_count)
        return 0

    def _handle_info(self, _args: argparse.Namespace) -> int:
        """Print the effective configuration."""
        config = self.config_manager.config
        config_path = self.config_manager.config_path or Path.cwd() / "config.yaml"

        print(f"Config file:      {config_path} ({'✓ Found' if config_path.exists() else '✗ Missing, using defaults'})")
        print(f"Category:         {config.library.category}")
        print(f"Media extensions: {', '.join(config.library.extensions)}")
        print(f"Image extensions: {', '.join(config.local.extensions)}")
        print(f"Save with media:  {config.library.save_images_with_media}")
        print(f"Metadata path:    {config.library.metadata_path}")
        print(f"Remote providers: {', '.join(config.list_remote_providers()) or 'none'}")

        policy = self.config_manager.capacity_policy()
        print(f"\nImage limits for {policy.category}:")
        for image_type in policy.enabled_types():
            min_width = policy.min_width(image_type)
            floor = f", min width {min_width}" if min_width else ""
            print(f"  {image_type.value:<12} {policy.limit(image_type)}{floor}")
        return 0
