"""Provider capability dispatch with per-provider failure isolation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TypeVar

from .providers import DynamicImageProvider, ImageProvider, LocalImageProvider, RemoteImageProvider

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .base import ImageType, RefreshResult
    from .filesystem import DirectoryListing
    from .models import CatalogEntry, LocalImageCandidate

LOG = logging.getLogger(__name__)

P = TypeVar("P", bound=ImageProvider)


@dataclass
class ProviderSet:
    """Providers split by capability, each list in the order supplied."""

    local: list[LocalImageProvider] = field(default_factory=list)
    dynamic: list[DynamicImageProvider] = field(default_factory=list)
    remote: list[RemoteImageProvider] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.local) + len(self.dynamic) + len(self.remote)


def partition_providers(providers: Iterable[ImageProvider]) -> ProviderSet:
    """Split providers by kind; anything outside the three kinds is a programming error."""
    provider_set = ProviderSet()
    for provider in providers:
        if isinstance(provider, LocalImageProvider):
            provider_set.local.append(provider)
        elif isinstance(provider, DynamicImageProvider):
            provider_set.dynamic.append(provider)
        elif isinstance(provider, RemoteImageProvider):
            provider_set.remote.append(provider)
        else:
            msg = f"Unsupported image provider {provider!r}: expected a local, dynamic or remote provider"
            raise TypeError(msg)
    return provider_set


def report_provider_failure(provider: ImageProvider, error: Exception, result: RefreshResult | None) -> None:
    """Log a failed provider call and record it on the pass result."""
    LOG.error("Error in %s: %s", provider.name, error, exc_info=LOG.isEnabledFor(logging.DEBUG))
    if result is not None:
        result.add_error(f"{provider.name}: {error}")


def supported_types_for(
    provider: ImageProvider,
    entry: CatalogEntry,
    requested: Sequence[ImageType],
    result: RefreshResult | None = None,
) -> list[ImageType]:
    """Requested types the provider supports for the entry, in requested order."""
    try:
        supported = set(provider.supported_types(entry))
    except Exception as e:
        report_provider_failure(provider, e, result)
        return []
    return [image_type for image_type in requested if image_type in supported]


def applicable_providers(
    providers: Iterable[P],
    entry: CatalogEntry,
    requested: Sequence[ImageType],
    result: RefreshResult | None = None,
) -> list[tuple[P, list[ImageType]]]:
    """Pair each provider with the requested types it can supply, dropping the rest."""
    applicable = []
    for provider in providers:
        image_types = supported_types_for(provider, entry, requested, result)
        if image_types:
            applicable.append((provider, image_types))
        else:
            LOG.debug("Skipping %s for %s: no requested image types", provider.name, entry.name or entry.id)
    return applicable


def collect_local_candidates(
    entry: CatalogEntry,
    providers: Iterable[LocalImageProvider],
    directory_service: DirectoryListing,
    result: RefreshResult | None = None,
) -> list[LocalImageCandidate]:
    """Scan every local provider once, concatenating candidates in provider order."""
    candidates: list[LocalImageCandidate] = []
    for provider in providers:
        try:
            found = provider.scan(entry, directory_service)
        except Exception as e:
            report_provider_failure(provider, e, result)
            continue
        LOG.debug("%s found %d images for %s", provider.name, len(found), entry.name or entry.id)
        candidates.extend(found)
    return candidates
