"""Image refresh CLI commands."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ...catalog import apply_catalog, load_catalog, save_catalog
from ...config.constants import ERROR_MESSAGE_TRUNCATE_LENGTH
from ...core.base import ArtworkError, ImageType
from ...core.file_manager import BackupStrategy, ImageStore
from ...core.filesystem import DirectoryService
from ...core.library import LibraryRefreshConfig, discover_entries, entry_id_for, refresh_library
from ...core.models import CatalogEntry, RefreshDirective, RefreshMode
from ...core.providers import LocalImageProvider
from ...core.refresher import ImageRefresher
from ...providers import HttpImageFetcher, build_async_client, build_providers
from ..failure_table import print_failure_table

if TYPE_CHECKING:
    import argparse

    from ...core import ConfigManager
    from ...core.base import RefreshResult

LOG = logging.getLogger(__name__)

CATALOG_FILE_NAME = "artwork-catalog.json"


class RefreshCommands:
    """Image refresh command handlers."""

    def __init__(self, config_manager: ConfigManager) -> None:
        """Initialize refresh commands handler."""
        self.config_manager = config_manager

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add refresh arguments to parser."""
        parser.add_argument("path", type=Path, help="Media file or directory to refresh")
        parser.add_argument(
            "--catalog", type=Path, help=f"Catalog file (default: {CATALOG_FILE_NAME} in the library directory)"
        )
        parser.add_argument("--full", action="store_true", help="Full refresh: allow replacing existing images")
        parser.add_argument("--replace-all", action="store_true", help="With --full, replace images of every type")
        parser.add_argument(
            "--replace", nargs="+", metavar="TYPE", default=[], help="With --full, replace images of these types"
        )
        parser.add_argument("--workers", "-w", type=int, help="Number of entries refreshed concurrently")
        parser.add_argument("--no-remote", action="store_true", help="Do not query remote providers")
        parser.add_argument(
            "--no-backups", action="store_true", help="Do not back up images before replacing or deleting them"
        )
        parser.add_argument(
            "--dry-run",
            "-n",
            action="store_true",
            help="Only reconcile recorded images with local files; download and write nothing",
        )

    @staticmethod
    def create_directive(args: argparse.Namespace) -> RefreshDirective:
        """Build the refresh directive from CLI arguments; unknown type names raise ValueError."""
        replace_types = frozenset(ImageType.parse(name) for name in args.replace)
        if (args.replace_all or replace_types) and not args.full:
            LOG.warning("--replace-all and --replace only take effect with --full")
        return RefreshDirective(
            mode=RefreshMode.FULL if args.full else RefreshMode.INCREMENTAL,
            replace_all=args.replace_all,
            replace_types=replace_types,
        )

    def handle_command(self, args: argparse.Namespace) -> int:
        """Handle refresh command execution."""
        if not args.path.exists():
            LOG.error("Path does not exist: %s", args.path)
            return 1

        try:
            directive = self.create_directive(args)
        except ValueError as e:
            LOG.error("%s", e)
            return 1

        entries = self._discover(args.path)
        if not entries:
            LOG.warning("No media files found in %s", args.path)
            return 0

        catalog_path = args.catalog or self._default_catalog_path(args.path)
        try:
            records = load_catalog(catalog_path)
        except ArtworkError as e:
            LOG.error("%s", e)
            return 1
        matched = apply_catalog(entries, records)
        LOG.info("Restored recorded images for %d of %d entries", matched, len(entries))

        results = asyncio.run(self._refresh(entries, directive, args))

        changed = [result for result in results if result.updated]
        if changed and not args.dry_run:
            try:
                save_catalog(catalog_path, entries, records)
            except ArtworkError as e:
                LOG.error("%s", e)
                return 1
        elif changed:
            LOG.info("Dry run: %d entries would change, catalog not written", len(changed))

        names = {entry.id: entry.name for entry in entries}
        self._log_errors(results, names)
        print_failure_table(results, names)
        return 1 if any(result.failed for result in results) else 0

    def _discover(self, path: Path) -> list[CatalogEntry]:
        library = self.config_manager.config.library
        if path.is_file():
            siblings = discover_entries(path.parent, library.extensions, recursive=False, category=library.category)
            matching = [entry for entry in siblings if entry.path == str(path)]
            return matching or [
                CatalogEntry(id=entry_id_for(path), name=path.stem, category=library.category, path=str(path))
            ]
        return discover_entries(path, library.extensions, category=library.category)

    @staticmethod
    def _default_catalog_path(path: Path) -> Path:
        return (path if path.is_dir() else path.parent) / CATALOG_FILE_NAME

    def _create_store(self) -> ImageStore:
        library = self.config_manager.config.library
        create_backups = self.config_manager.get_value("global_.create_backups", default=True)
        strategy = BackupStrategy.NEVER
        if create_backups:
            strategy = BackupStrategy(self.config_manager.get_value("global_.cleanup_backups", default="on_success"))
        return ImageStore(
            library.metadata_path,
            save_with_media=library.save_images_with_media,
            backup_strategy=strategy,
        )

    async def _refresh(
        self, entries: list[CatalogEntry], directive: RefreshDirective, args: argparse.Namespace
    ) -> list[RefreshResult]:
        config = self.config_manager.config
        workers = args.workers or self.config_manager.get_value("global_.default_workers")
        directory_service = DirectoryService()

        async with build_async_client(config.http) as client:
            providers = build_providers(config, None if args.no_remote else client)
            if args.dry_run:
                providers = [provider for provider in providers if isinstance(provider, LocalImageProvider)]
            LOG.info("Using providers: %s", ", ".join(provider.name for provider in providers))

            refresher = ImageRefresher(self._create_store(), HttpImageFetcher(client), directory_service)
            return await refresh_library(
                refresher,
                entries,
                providers,
                lambda entry: self.config_manager.capacity_policy(entry.category),
                LibraryRefreshConfig(directive=directive, max_workers=workers),
                directory_service,
            )

    @staticmethod
    def _log_errors(results: list[RefreshResult], names: dict[str, str]) -> None:
        for result in results:
            for error in result.errors:
                name = names.get(result.entry_id, result.entry_id)
                LOG.warning("%s: %s", name, error[:ERROR_MESSAGE_TRUNCATE_LENGTH])
