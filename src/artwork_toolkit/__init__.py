"""Artwork toolkit: keeps the image slots of media catalog entries in sync."""

__version__ = "0.1.0"

from .core import (
    CapacityPolicy,
    CatalogEntry,
    ImageRefresher,
    ImageReference,
    ImageType,
    RefreshDirective,
    RefreshMode,
    RefreshResult,
)

__all__ = [
    "CapacityPolicy",
    "CatalogEntry",
    "ImageReference",
    "ImageRefresher",
    "ImageType",
    "RefreshDirective",
    "RefreshMode",
    "RefreshResult",
    "__version__",
]
