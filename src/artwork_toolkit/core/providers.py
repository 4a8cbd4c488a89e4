"""Image provider kinds and the collaborator contracts the refresher calls."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .base import ImageType
    from .filesystem import DirectoryListing
    from .models import (
        CatalogEntry,
        DynamicImageResult,
        FetchedImage,
        ImageReference,
        LocalImageCandidate,
        RemoteImageCandidate,
        RemoteImageQuery,
    )


class ImageProvider(ABC):
    """Abstract base class for image providers.

    Every provider is exactly one of the three kinds below; the refresher
    dispatches on the kind, never on the concrete class.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    @abstractmethod
    def supported_types(self, entry: CatalogEntry) -> list[ImageType]:
        """Image types this provider can supply for the entry."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class LocalImageProvider(ImageProvider):
    """Finds images stored next to an entry."""

    @abstractmethod
    def scan(self, entry: CatalogEntry, directory_service: DirectoryListing) -> list[LocalImageCandidate]:
        """List image files belonging to the entry."""


class DynamicImageProvider(ImageProvider):
    """Produces one image per supported type on demand."""

    @abstractmethod
    async def generate(self, entry: CatalogEntry, image_type: ImageType) -> DynamicImageResult:
        """Produce the image for one type, or an unavailable result."""


class RemoteImageProvider(ImageProvider):
    """Offers ranked candidates and fetches them by url."""

    @abstractmethod
    async def query_candidates(self, entry: CatalogEntry, query: RemoteImageQuery) -> list[RemoteImageCandidate]:
        """Return candidates, most preferred first."""

    @abstractmethod
    async def fetch(self, url: str) -> FetchedImage:
        """Download one candidate; raises DownloadError on failure."""


@runtime_checkable
class ImageStorage(Protocol):
    """Persists image bytes for an entry and answers questions about stored files."""

    def save(
        self,
        entry: CatalogEntry,
        data: bytes,
        mime_type: str | None,
        image_type: ImageType,
        index: int | None = None,
    ) -> ImageReference:
        """Write the image and return the reference with its final path and index."""
        ...

    def file_length(self, path: str) -> int:
        """Size in bytes of a stored image."""
        ...

    def delete(self, path: str) -> None:
        """Remove a stored image that is no longer referenced."""
        ...


@runtime_checkable
class ImageFetcher(Protocol):
    """Downloads images that are not tied to a remote provider."""

    async def fetch(self, url: str) -> FetchedImage:
        """Download an image; raises DownloadError on failure."""
        ...
