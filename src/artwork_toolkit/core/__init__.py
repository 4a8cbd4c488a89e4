"""Core abstractions and the image refresh engine."""

from .base import (
    REPEATABLE_TYPES,
    ArtworkError,
    ConfigError,
    DownloadError,
    ImageType,
    ProviderError,
    RefreshResult,
    RefreshStatus,
    SaveError,
)
from .config import ConfigManager, RefreshOptions, with_config_overrides
from .dispatch import ProviderSet, partition_providers
from .file_manager import BackupStrategy, ImageStore
from .filesystem import DirectoryListing, DirectoryService
from .library import LibraryRefreshConfig, discover_entries, refresh_library
from .merger import merge_images
from .models import (
    CapacityPolicy,
    CatalogEntry,
    DynamicImageResult,
    FetchedImage,
    FileMetadata,
    ImageOption,
    ImageReference,
    LocalImageCandidate,
    LocationKind,
    RefreshDirective,
    RefreshMode,
    RemoteImageCandidate,
    RemoteImageQuery,
)
from .providers import (
    DynamicImageProvider,
    ImageFetcher,
    ImageProvider,
    ImageStorage,
    LocalImageProvider,
    RemoteImageProvider,
)
from .refresher import ImageRefresher
from .validator import remove_missing_images, validate_images

__all__ = [
    "REPEATABLE_TYPES",
    "ArtworkError",
    "BackupStrategy",
    "CapacityPolicy",
    "CatalogEntry",
    "ConfigError",
    "ConfigManager",
    "DirectoryListing",
    "DirectoryService",
    "DownloadError",
    "DynamicImageProvider",
    "DynamicImageResult",
    "FetchedImage",
    "FileMetadata",
    "ImageFetcher",
    "ImageOption",
    "ImageProvider",
    "ImageReference",
    "ImageRefresher",
    "ImageStorage",
    "ImageStore",
    "ImageType",
    "LibraryRefreshConfig",
    "LocalImageCandidate",
    "LocalImageProvider",
    "LocationKind",
    "ProviderError",
    "ProviderSet",
    "RefreshDirective",
    "RefreshMode",
    "RefreshOptions",
    "RefreshResult",
    "RefreshStatus",
    "RemoteImageCandidate",
    "RemoteImageProvider",
    "RemoteImageQuery",
    "SaveError",
    "discover_entries",
    "merge_images",
    "partition_providers",
    "refresh_library",
    "remove_missing_images",
    "validate_images",
    "with_config_overrides",
]
