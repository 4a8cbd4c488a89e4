"""Image slot model: catalog entries, references, candidates and policies."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .base import ImageType

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from datetime import datetime

# (type, index, path, last_modified, width, height)
ReferenceKey = tuple[str, int, str, Any, int, int]


def is_local_path(path: str | None) -> bool:
    """Whether a stored path points at the local filesystem rather than a url."""
    return bool(path) and "://" not in str(path)


def same_path(left: str, right: str) -> bool:
    """Compare stored image paths the way the catalog does (case-insensitive)."""
    return left.casefold() == right.casefold()


@dataclass
class ImageReference:
    """One stored image of an entry."""

    slot_type: ImageType
    path: str
    index: int = 0
    last_modified: datetime | None = None
    width: int = 0
    height: int = 0

    @property
    def is_local_file(self) -> bool:
        return is_local_path(self.path)

    def reset_size(self) -> None:
        """Forget measured dimensions so they get measured again."""
        self.width = 0
        self.height = 0

    def key(self) -> ReferenceKey:
        return (self.slot_type.value, self.index, self.path, self.last_modified, self.width, self.height)


@dataclass(frozen=True)
class FileMetadata:
    """Filesystem facts about one file."""

    path: str
    last_modified: datetime | None = None
    length: int = 0
    is_directory: bool = False


@dataclass(frozen=True)
class LocalImageCandidate:
    """An image found next to an entry by a local provider."""

    slot_type: ImageType
    source_path: str
    file_metadata: FileMetadata


@dataclass(frozen=True)
class RemoteImageCandidate:
    """An image offered by a remote provider; lower rank means preferred."""

    slot_type: ImageType
    url: str
    width: int = 0
    height: int = 0
    provider_rank: int = 0
    provider_name: str = ""
    language: str | None = None


class LocationKind(Enum):
    """Where a dynamic result lives."""

    NETWORK = "network"
    LOCAL_FILE = "local-file"


@dataclass(frozen=True)
class DynamicImageResult:
    """Single generated image for one slot type."""

    available: bool = False
    format: str | None = None
    location: str | None = None
    location_kind: LocationKind = LocationKind.LOCAL_FILE
    data: bytes | None = None

    @classmethod
    def unavailable(cls) -> DynamicImageResult:
        return cls(available=False)


@dataclass(frozen=True)
class FetchedImage:
    """Raw bytes of a downloaded image."""

    data: bytes
    mime_type: str | None = None

    @property
    def length(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ImageOption:
    """Capacity and quality floor for one type."""

    limit: int = 1
    min_width: int = 0


@dataclass
class CapacityPolicy:
    """Per-category image limits."""

    category: str = "Movie"
    options: dict[ImageType, ImageOption] = field(default_factory=dict)

    def get_option(self, image_type: ImageType) -> ImageOption:
        return self.options.get(image_type, ImageOption())

    def limit(self, image_type: ImageType) -> int:
        """Target reference count; singular types never exceed one."""
        limit = max(self.get_option(image_type).limit, 0)
        return limit if image_type.is_repeatable else min(limit, 1)

    def min_width(self, image_type: ImageType) -> int:
        return self.get_option(image_type).min_width

    def is_enabled(self, image_type: ImageType) -> bool:
        return self.limit(image_type) > 0

    def enabled_types(self) -> list[ImageType]:
        return [t for t in ImageType if self.is_enabled(t)]


class RefreshMode(Enum):
    """How much of the existing image state a pass may discard."""

    INCREMENTAL = "incremental"
    FULL = "full"


@dataclass(frozen=True)
class RefreshDirective:
    """Controls whether existing references may be replaced."""

    mode: RefreshMode = RefreshMode.INCREMENTAL
    replace_all: bool = False
    replace_types: frozenset[ImageType] = frozenset()

    def is_replacing(self, image_type: ImageType) -> bool:
        return self.mode is RefreshMode.FULL and (self.replace_all or image_type in self.replace_types)


@dataclass(frozen=True)
class RemoteImageQuery:
    """What a remote provider is asked for."""

    provider_name: str
    image_types: tuple[ImageType, ...]
    min_widths: dict[ImageType, int] = field(default_factory=dict)
    limits: dict[ImageType, int] = field(default_factory=dict)
    include_all_languages: bool = True


@dataclass
class CatalogEntry:
    """A catalog item and its image references, ordered per type."""

    id: str
    name: str = ""
    category: str = "Movie"
    path: str | None = None
    provider_ids: dict[str, str] = field(default_factory=dict)
    # Shares its folder with other media, so its images carry the media name.
    is_in_mixed_folder: bool = False
    _images: dict[ImageType, list[ImageReference]] = field(default_factory=dict, repr=False)

    @property
    def is_stub(self) -> bool:
        """Entries without a concrete backing location never download images."""
        return not is_local_path(self.path)

    @property
    def is_photo(self) -> bool:
        return self.category.lower() == "photo"

    @property
    def containing_folder(self) -> Path | None:
        if not is_local_path(self.path):
            return None
        path = Path(str(self.path))
        return path if path.is_dir() else path.parent

    def allows_multiple(self, image_type: ImageType) -> bool:
        return image_type.is_repeatable

    def get_images(self, image_type: ImageType) -> list[ImageReference]:
        return list(self._images.get(image_type, []))

    def get_image(self, image_type: ImageType, index: int = 0) -> ImageReference | None:
        images = self._images.get(image_type, [])
        return images[index] if 0 <= index < len(images) else None

    def has_image(self, image_type: ImageType) -> bool:
        return bool(self._images.get(image_type))

    def image_count(self, image_type: ImageType) -> int:
        return len(self._images.get(image_type, []))

    def all_images(self) -> Iterator[ImageReference]:
        for image_type in ImageType:
            yield from self._images.get(image_type, [])

    def set_image(self, image: ImageReference, index: int | None = None) -> ImageReference:
        """Store a reference: replaces the singular slot, otherwise replaces at index or appends."""
        images = self._images.setdefault(image.slot_type, [])
        if not self.allows_multiple(image.slot_type):
            images[:] = [image]
        elif index is None or index >= len(images):
            images.append(image)
        else:
            images[index] = image
        self._reindex(image.slot_type)
        return image

    def replace_images(self, image_type: ImageType, images: Iterable[ImageReference]) -> None:
        self._images[image_type] = list(images)
        self._reindex(image_type)

    def remove_images(self, images: Iterable[ImageReference]) -> int:
        """Drop the given references (by identity); returns how many were removed."""
        doomed = {id(image) for image in images}
        removed = 0
        for image_type in list(self._images):
            kept = [image for image in self._images[image_type] if id(image) not in doomed]
            removed += len(self._images[image_type]) - len(kept)
            self._images[image_type] = kept
            self._reindex(image_type)
        return removed

    def snapshot(self) -> list[ReferenceKey]:
        return [image.key() for image in self.all_images()]

    def _reindex(self, image_type: ImageType) -> None:
        images = self._images.get(image_type, [])
        if not images:
            self._images.pop(image_type, None)
            return
        for position, image in enumerate(images):
            image.index = position
