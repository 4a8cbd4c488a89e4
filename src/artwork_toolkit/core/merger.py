"""Fold freshly discovered local images into an entry's references."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from .base import ImageType
from .models import ImageReference, same_path

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import CatalogEntry, LocalImageCandidate

LOG = logging.getLogger(__name__)


def merge_images(entry: CatalogEntry, candidates: Iterable[LocalImageCandidate]) -> bool:
    """
    Merge local candidates into the entry.

    Singular types take the first candidate of the type, replacing whatever
    was held unless it is the same file. Repeatable types keep what they hold
    and append files they do not hold yet. A file that is already held is
    only touched when its modification time moved, in which case its stored
    dimensions are dropped so they get measured again.

    Returns:
        True if any reference was added, replaced or reset

    """
    by_type: dict[ImageType, list[LocalImageCandidate]] = defaultdict(list)
    for candidate in candidates:
        by_type[candidate.slot_type].append(candidate)

    changed = False
    for image_type in ImageType:
        found = by_type.get(image_type)
        if not found:
            continue
        if image_type.is_repeatable:
            changed = _merge_repeatable(entry, image_type, found) or changed
        else:
            changed = _merge_singular(entry, image_type, found[0]) or changed
    return changed


def _merge_singular(entry: CatalogEntry, image_type: ImageType, candidate: LocalImageCandidate) -> bool:
    current = entry.get_image(image_type)
    if current is None or not same_path(current.path, candidate.source_path):
        entry.set_image(_reference_from(candidate))
        LOG.debug("Set %s image of %s to %s", image_type.value, entry.name or entry.id, candidate.source_path)
        return True
    return _refresh_timestamp(current, candidate)


def _merge_repeatable(entry: CatalogEntry, image_type: ImageType, found: list[LocalImageCandidate]) -> bool:
    changed = False
    held = entry.get_images(image_type)
    for candidate in found:
        existing = next((image for image in held if same_path(image.path, candidate.source_path)), None)
        if existing is None:
            held.append(entry.set_image(_reference_from(candidate)))
            changed = True
        elif existing.is_local_file:
            changed = _refresh_timestamp(existing, candidate) or changed

    return changed


def _refresh_timestamp(current: ImageReference, candidate: LocalImageCandidate) -> bool:
    """Same file as before: record a new modification time and drop stale dimensions."""
    new_modified = candidate.file_metadata.last_modified
    if current.last_modified == new_modified:
        return False
    current.last_modified = new_modified
    current.reset_size()
    LOG.debug("Image %s changed on disk, size will be measured again", current.path)
    return True


def _reference_from(candidate: LocalImageCandidate) -> ImageReference:
    return ImageReference(
        slot_type=candidate.slot_type,
        path=candidate.source_path,
        last_modified=candidate.file_metadata.last_modified,
    )
