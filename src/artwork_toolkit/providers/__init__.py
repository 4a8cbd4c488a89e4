"""Concrete image providers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .http_client import HttpImageFetcher, build_async_client
from .local import FolderImageProvider
from .nfo import NfoImageProvider
from .remote import HttpRemoteImageProvider

if TYPE_CHECKING:
    import httpx

    from ..config.settings import ArtworkToolkitConfig
    from ..core.providers import ImageProvider

__all__ = [
    "FolderImageProvider",
    "HttpImageFetcher",
    "HttpRemoteImageProvider",
    "NfoImageProvider",
    "build_async_client",
    "build_providers",
]


def build_providers(
    config: ArtworkToolkitConfig,
    client: httpx.AsyncClient | None = None,
) -> list[ImageProvider]:
    """Create the configured providers; remote ones only when a client is given."""
    providers: list[ImageProvider] = [
        FolderImageProvider(config.local.extensions),
        NfoImageProvider(),
    ]
    if client is not None:
        providers.extend(
            HttpRemoteImageProvider(provider_config, client)
            for provider_config in config.remote_providers
            if provider_config.enabled
        )
    return providers
