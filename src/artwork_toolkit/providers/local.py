"""Local provider that picks up conventionally named images beside the media."""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING

from ..core.base import ImageType
from ..core.models import FileMetadata, LocalImageCandidate
from ..core.providers import LocalImageProvider

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..core.filesystem import DirectoryListing
    from ..core.models import CatalogEntry

# Base names (without extension) recognised in an entry's folder.
FOLDER_IMAGE_NAMES: dict[str, ImageType] = {
    "poster": ImageType.PRIMARY,
    "folder": ImageType.PRIMARY,
    "cover": ImageType.PRIMARY,
    "default": ImageType.PRIMARY,
    "movie": ImageType.PRIMARY,
    "clearart": ImageType.ART,
    "art": ImageType.ART,
    "banner": ImageType.BANNER,
    "logo": ImageType.LOGO,
    "clearlogo": ImageType.LOGO,
    "landscape": ImageType.THUMB,
    "thumb": ImageType.THUMB,
    "disc": ImageType.DISC,
    "cdart": ImageType.DISC,
    "discart": ImageType.DISC,
    "box": ImageType.BOX,
    "boxrear": ImageType.BOX_REAR,
    "menu": ImageType.MENU,
}

_BACKDROP_PATTERN = re.compile(r"^(?:fanart|backdrop|background)(?:[-_ ]?(\d+))?$")
_STEM_SUFFIXES: dict[str, ImageType] = {
    "poster": ImageType.PRIMARY,
    "fanart": ImageType.BACKDROP,
    "backdrop": ImageType.BACKDROP,
    "logo": ImageType.LOGO,
    "clearlogo": ImageType.LOGO,
    "landscape": ImageType.THUMB,
    "thumb": ImageType.THUMB,
    "banner": ImageType.BANNER,
    "clearart": ImageType.ART,
    "disc": ImageType.DISC,
    "box": ImageType.BOX,
    "boxrear": ImageType.BOX_REAR,
    "menu": ImageType.MENU,
}


def classify_image_name(name: str, media_stem: str | None = None) -> tuple[ImageType, int] | None:
    """
    Map an image base name to its type and an ordering key.

    Args:
        name: File name without extension
        media_stem: Stem of the media file, for ``<stem>-poster`` style names

    Returns:
        (type, order) or None when the name is not a known image name

    """
    lowered = name.lower()
    if media_stem:
        prefix = media_stem.lower() + "-"
        if lowered.startswith(prefix):
            suffix = lowered[len(prefix) :]
            if suffix in _STEM_SUFFIXES:
                return _STEM_SUFFIXES[suffix], 0
            match = _BACKDROP_PATTERN.match(suffix)
            return (ImageType.BACKDROP, int(match.group(1) or 0)) if match else None

    if lowered in FOLDER_IMAGE_NAMES:
        return FOLDER_IMAGE_NAMES[lowered], 0

    match = _BACKDROP_PATTERN.match(lowered)
    if match:
        return ImageType.BACKDROP, int(match.group(1) or 0)
    return None


class FolderImageProvider(LocalImageProvider):
    """Finds posters, fanart and friends in the folder containing an entry."""

    def __init__(self, extensions: Sequence[str], name: str = "Folder") -> None:
        super().__init__(name)
        self.extensions = {ext.lower() for ext in extensions}

    def supported_types(self, entry: CatalogEntry) -> list[ImageType]:
        if entry.is_stub:
            return []
        return sorted(set(FOLDER_IMAGE_NAMES.values()) | {ImageType.BACKDROP}, key=list(ImageType).index)

    def scan(self, entry: CatalogEntry, directory_service: DirectoryListing) -> list[LocalImageCandidate]:
        folder = entry.containing_folder
        if folder is None:
            return []

        media_stem = Path(str(entry.path)).stem if folder != Path(str(entry.path)) else None
        # Media sharing its folder only claims images named after it.
        required_prefix = f"{media_stem.lower()}-" if media_stem and entry.is_in_mixed_folder else None
        found: list[tuple[ImageType, int, str]] = []
        for file_path in directory_service.list_files(folder):
            path = Path(file_path)
            if path.suffix.lower() not in self.extensions:
                continue
            if required_prefix and not path.stem.lower().startswith(required_prefix):
                continue
            classified = classify_image_name(path.stem, media_stem)
            if classified is None:
                continue
            found.append((classified[0], classified[1], file_path))

        candidates = []
        # Primary files in FOLDER_IMAGE_NAMES order, backdrops by number.
        priority = {name: position for position, name in enumerate(FOLDER_IMAGE_NAMES)}
        found.sort(key=lambda item: (item[1], priority.get(Path(item[2]).stem.lower(), -1), item[2].lower()))
        for image_type, _order, file_path in found:
            metadata = directory_service.get_file_metadata(file_path) or FileMetadata(path=file_path)
            candidates.append(LocalImageCandidate(slot_type=image_type, source_path=file_path, file_metadata=metadata))

        self.logger.debug("Found %d local images for %s", len(candidates), entry.name or entry.id)
        return candidates
