"""Drop references to files that are gone, then merge what local providers find."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from .dispatch import collect_local_candidates
from .filesystem import DirectoryService
from .merger import merge_images

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .base import RefreshResult
    from .filesystem import DirectoryListing
    from .models import CatalogEntry
    from .providers import LocalImageProvider

LOG = logging.getLogger(__name__)


def remove_missing_images(entry: CatalogEntry, directory_service: DirectoryListing | None = None) -> bool:
    """Remove local references whose file is absent from its directory listing.

    Without a listing the filesystem is read directly.
    """
    local_images = [image for image in entry.all_images() if image.is_local_file]
    if not local_images:
        return False
    if directory_service is None:
        directory_service = DirectoryService()

    present: set[str] = set()
    for directory in dict.fromkeys(str(Path(image.path).parent) for image in local_images):
        present.update(path.casefold() for path in directory_service.list_files(directory))

    missing = [image for image in local_images if image.path.casefold() not in present]
    if not missing:
        return False

    for image in missing:
        LOG.info("Removing missing %s image %s from %s", image.slot_type.value, image.path, entry.name or entry.id)
    entry.remove_images(missing)
    return True


def validate_images(
    entry: CatalogEntry,
    local_providers: Sequence[LocalImageProvider],
    directory_service: DirectoryListing | None = None,
    result: RefreshResult | None = None,
) -> bool:
    """
    Validate recorded references against the filesystem and merge local images.

    Args:
        entry: Entry whose references are validated in place
        local_providers: Providers scanning the entry's folder
        directory_service: Listing used both for validation and scanning; a fresh
            filesystem listing when omitted
        result: Optional pass result collecting provider failures

    Returns:
        True if any reference was removed, added, replaced or reset

    """
    changed = remove_missing_images(entry, directory_service)

    # A photo is its own image; folder art must not be attached to it.
    if not local_providers or entry.is_photo:
        return changed

    if directory_service is None:
        directory_service = DirectoryService()

    candidates = collect_local_candidates(entry, local_providers, directory_service, result)
    if merge_images(entry, candidates):
        changed = True
    return changed
