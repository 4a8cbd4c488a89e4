"""Remote provider backed by a JSON image index reachable over HTTP."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from ..config.constants import HTTP_NOT_FOUND_CODES
from ..core.base import ImageType, ProviderError
from ..core.models import RemoteImageCandidate
from ..core.providers import RemoteImageProvider
from .http_client import HttpImageFetcher

if TYPE_CHECKING:
    from ..config.settings import RemoteProviderConfig
    from ..core.models import CatalogEntry, FetchedImage, RemoteImageQuery


class HttpRemoteImageProvider(RemoteImageProvider):
    """
    Queries ``endpoint`` for an entry's images.

    The endpoint is a template filled with ``{provider_id}`` (the entry's id
    under ``id_key``) and ``{id_key}``. It must answer with a JSON list, or an
    object holding an ``images`` list, of
    ``{"type", "url", "width", "height", "language"}`` records, best first.
    """

    def __init__(self, config: RemoteProviderConfig, client: httpx.AsyncClient) -> None:
        super().__init__(config.name)
        self.config = config
        self.client = client
        self.fetcher = HttpImageFetcher(client)
        self.image_types = self._parse_image_types(config.image_types)

    def _parse_image_types(self, names: list[str]) -> list[ImageType]:
        image_types = []
        for name in names:
            try:
                image_types.append(ImageType.parse(name))
            except ValueError as e:
                self.logger.warning("%s: %s", self.name, e)
        return image_types

    def provider_id(self, entry: CatalogEntry) -> str | None:
        return entry.provider_ids.get(self.config.id_key)

    def supported_types(self, entry: CatalogEntry) -> list[ImageType]:
        if not self.provider_id(entry):
            return []
        return list(self.image_types)

    def endpoint_url(self, entry: CatalogEntry) -> str:
        return self.config.endpoint.format(provider_id=self.provider_id(entry), id_key=self.config.id_key)

    async def query_candidates(self, entry: CatalogEntry, query: RemoteImageQuery) -> list[RemoteImageCandidate]:
        url = self.endpoint_url(entry)
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            msg = f"Image index request failed: {e}"
            raise ProviderError(msg, entry_id=entry.id, cause=e) from e

        if response.status_code in HTTP_NOT_FOUND_CODES:
            self.logger.debug("%s has no images for %s (%d)", self.name, entry.name or entry.id, response.status_code)
            return []
        if not response.is_success:
            msg = f"Image index returned {response.status_code} for {url}"
            raise ProviderError(msg, entry_id=entry.id)

        try:
            payload = response.json()
        except ValueError as e:
            msg = f"Image index returned invalid JSON: {e}"
            raise ProviderError(msg, entry_id=entry.id, cause=e) from e

        records = payload.get("images", []) if isinstance(payload, dict) else payload
        if not isinstance(records, list):
            msg = "Image index returned an unexpected document"
            raise ProviderError(msg, entry_id=entry.id)

        wanted = set(query.image_types)
        candidates = [
            candidate
            for candidate in (self._candidate_from(record) for record in records)
            if candidate is not None and candidate.slot_type in wanted
        ]
        self.logger.debug("%s offered %d images for %s", self.name, len(candidates), entry.name or entry.id)
        return candidates

    def _candidate_from(self, record: Any) -> RemoteImageCandidate | None:
        if not isinstance(record, dict) or not record.get("url") or not record.get("type"):
            return None
        try:
            image_type = ImageType.parse(str(record["type"]))
        except ValueError:
            return None
        return RemoteImageCandidate(
            slot_type=image_type,
            url=str(record["url"]),
            width=int(record.get("width") or 0),
            height=int(record.get("height") or 0),
            provider_name=self.name,
            language=record.get("language"),
        )

    async def fetch(self, url: str) -> FetchedImage:
        return await self.fetcher.fetch(url)
