"""Dynamic provider reading artwork hints from Kodi-style .nfo files."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import TYPE_CHECKING

from ..core.base import ImageType, ProviderError
from ..core.models import DynamicImageResult, LocationKind, is_local_path
from ..core.providers import DynamicImageProvider

if TYPE_CHECKING:
    from ..core.models import CatalogEntry

THUMB_ASPECTS: dict[str, ImageType] = {
    "poster": ImageType.PRIMARY,
    "keyart": ImageType.PRIMARY,
    "landscape": ImageType.THUMB,
    "thumb": ImageType.THUMB,
    "banner": ImageType.BANNER,
    "clearlogo": ImageType.LOGO,
    "logo": ImageType.LOGO,
    "clearart": ImageType.ART,
    "discart": ImageType.DISC,
}

# Aspect-less <thumb> elements are treated as posters.
_DEFAULT_ASPECT_TYPE = ImageType.PRIMARY


def find_nfo_file(entry: CatalogEntry) -> Path | None:
    """Locate ``<stem>.nfo`` beside the media, falling back to ``movie.nfo`` in its folder."""
    folder = entry.containing_folder
    if folder is None:
        return None
    media_path = Path(str(entry.path))
    candidates = [folder / "movie.nfo"]
    if media_path != folder:
        candidates.insert(0, media_path.with_suffix(".nfo"))
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def read_artwork(nfo_path: Path) -> dict[ImageType, list[str]]:
    """Collect artwork locations per type in document order."""
    try:
        root = ET.parse(nfo_path).getroot()  # noqa: S314
    except (OSError, ET.ParseError) as e:
        msg = f"Cannot read {nfo_path}: {e}"
        raise ProviderError(msg, cause=e) from e

    artwork: dict[ImageType, list[str]] = {}
    for thumb in root.findall("thumb"):
        location = (thumb.text or "").strip()
        if not location:
            continue
        aspect = (thumb.get("aspect") or "").lower()
        image_type = THUMB_ASPECTS.get(aspect, _DEFAULT_ASPECT_TYPE) if aspect else _DEFAULT_ASPECT_TYPE
        artwork.setdefault(image_type, []).append(location)

    for thumb in root.findall("fanart/thumb"):
        location = (thumb.text or "").strip()
        if location:
            artwork.setdefault(ImageType.BACKDROP, []).append(location)
    return artwork


class NfoImageProvider(DynamicImageProvider):
    """Offers the first image the entry's .nfo file lists for each type."""

    def __init__(self, name: str = "Nfo") -> None:
        super().__init__(name)

    def supported_types(self, entry: CatalogEntry) -> list[ImageType]:
        nfo_path = find_nfo_file(entry)
        if nfo_path is None:
            return []
        return list(read_artwork(nfo_path))

    async def generate(self, entry: CatalogEntry, image_type: ImageType) -> DynamicImageResult:
        nfo_path = find_nfo_file(entry)
        if nfo_path is None:
            return DynamicImageResult.unavailable()

        locations = read_artwork(nfo_path).get(image_type)
        if not locations:
            return DynamicImageResult.unavailable()

        location = locations[0]
        if not is_local_path(location):
            return DynamicImageResult(available=True, location=location, location_kind=LocationKind.NETWORK)

        path = Path(location)
        if not path.is_absolute():
            path = nfo_path.parent / path
        image_format = path.suffix.lstrip(".").lower() or None
        self.logger.debug("%s image for %s from %s", image_type.value, entry.name or entry.id, path)
        return DynamicImageResult(
            available=True, format=image_format, location=str(path), location_kind=LocationKind.LOCAL_FILE
        )
