"""Library-wide refresh: discover entries and run their passes on a bounded pool."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tqdm import tqdm

from ..config.constants import DEFAULT_WORKERS
from .base import RefreshResult, RefreshStatus
from .file_manager import ImageStore
from .models import CatalogEntry, RefreshDirective

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from pathlib import Path

    from .filesystem import DirectoryListing
    from .models import CapacityPolicy
    from .providers import ImageProvider
    from .refresher import ImageRefresher

LOG = logging.getLogger(__name__)


@dataclass
class LibraryRefreshConfig:
    """Configuration for library refresh operations."""

    directive: RefreshDirective = field(default_factory=RefreshDirective)
    max_workers: int | None = None
    show_progress: bool = True


def entry_id_for(path: Path) -> str:
    """Stable entry id derived from the media path."""
    return hashlib.sha1(str(path.resolve()).encode("utf-8")).hexdigest()[:16]  # noqa: S324


def discover_entries(
    directory: Path,
    extensions: Sequence[str],
    *,
    recursive: bool = True,
    category: str = "Movie",
) -> list[CatalogEntry]:
    """Create one entry per media file found under a directory."""
    pattern = "**/*" if recursive else "*"
    wanted = {ext.lower() for ext in extensions}
    LOG.info("Scanning directory: %s (recursive: %s)", directory, recursive)

    media_files = [f for f in sorted(directory.glob(pattern)) if f.is_file() and f.suffix.lower() in wanted]
    per_folder = Counter(f.parent for f in media_files)
    entries = [
        CatalogEntry(
            id=entry_id_for(f),
            name=f.stem,
            category=category,
            path=str(f),
            is_in_mixed_folder=per_folder[f.parent] > 1,
        )
        for f in media_files
    ]
    LOG.info("Found %d media files", len(entries))
    return entries


async def refresh_library(
    refresher: ImageRefresher,
    entries: Sequence[CatalogEntry],
    providers: Sequence[ImageProvider],
    policy_for: Callable[[CatalogEntry], CapacityPolicy],
    config: LibraryRefreshConfig | None = None,
    directory_service: DirectoryListing | None = None,
) -> list[RefreshResult]:
    """
    Run one image pass per entry, at most ``max_workers`` at a time.

    Args:
        refresher: Refresher shared by all passes
        entries: Entries to refresh; each is owned by its pass while it runs
        providers: Providers offered to every entry
        policy_for: Capacity policy lookup per entry
        config: Directive, worker count and progress settings
        directory_service: Listing shared by all passes

    Returns:
        One result per entry, in the order of ``entries``

    """
    if config is None:
        config = LibraryRefreshConfig()

    max_workers = max(1, config.max_workers or DEFAULT_WORKERS)
    semaphore = asyncio.Semaphore(max_workers)
    progress_bar = tqdm(
        total=len(entries),
        desc="Refreshing images",
        unit="entry",
        bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}]",
        disable=not config.show_progress,
    )

    LOG.info("Refreshing images of %d entries with %d workers", len(entries), max_workers)

    async def refresh_one(entry: CatalogEntry) -> RefreshResult:
        async with semaphore:
            try:
                result = await refresher.run_pass(
                    entry, policy_for(entry), providers, config.directive, directory_service
                )
            except Exception as e:
                LOG.exception("Error refreshing images for %s", entry.name or entry.id)
                result = RefreshResult(entry_id=entry.id, failed=True, errors=[str(e)])
            _update_progress_description(progress_bar, result, entry)
            progress_bar.update(1)
            return result

    results: list[RefreshResult] = []
    try:
        results = list(await asyncio.gather(*(refresh_one(entry) for entry in entries)))
    finally:
        progress_bar.close()
        _cleanup_and_log_summary(refresher, results)

    return results


def _update_progress_description(progress_bar: tqdm, result: RefreshResult, entry: CatalogEntry) -> None:
    """Update progress bar description based on result status."""
    if result.status is RefreshStatus.UPDATED:
        progress_bar.set_description(f"✓ Updated {entry.name}")
    elif result.status is RefreshStatus.UNCHANGED:
        progress_bar.set_description(f"⏭ Unchanged {entry.name}")
    else:
        progress_bar.set_description(f"✗ Error {entry.name}")


def _cleanup_and_log_summary(refresher: ImageRefresher, results: list[RefreshResult]) -> None:
    """Clean up session backups and log the refresh summary."""
    if isinstance(refresher.storage, ImageStore):
        refresher.storage.cleanup_session_backups()

    counts = Counter(result.status for result in results)
    LOG.info(
        "Refresh complete: %d updated, %d unchanged, %d failed",
        counts[RefreshStatus.UPDATED],
        counts[RefreshStatus.UNCHANGED],
        counts[RefreshStatus.FAILED],
    )
