"""httpx client setup and the shared image downloader."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from ..core.base import DownloadError
from ..core.models import FetchedImage

if TYPE_CHECKING:
    from ..config.settings import HttpConfig

LOG = logging.getLogger(__name__)


def build_async_client(
    http_config: HttpConfig,
    *,
    extra_headers: dict[str, str] | None = None,
) -> httpx.AsyncClient:
    """Create an ``httpx.AsyncClient`` with the configured timeout and user agent."""
    headers: dict[str, str] = {
        "User-Agent": http_config.user_agent,
        "Accept": "image/*,application/json;q=0.9,*/*;q=0.5",
    }
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        timeout=httpx.Timeout(http_config.timeout_seconds),
        follow_redirects=True,
        headers=headers,
    )


class HttpImageFetcher:
    """Downloads image urls with a shared async client."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self.client = client

    async def fetch(self, url: str) -> FetchedImage:
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            msg = f"Request for {url} failed: {e}"
            raise DownloadError(msg, url=url, cause=e) from e

        if not response.is_success:
            LOG.debug("%s returned %d", url, response.status_code)
            msg = f"{url} returned {response.status_code}"
            raise DownloadError(msg, url=url, status_code=response.status_code)

        content_type = response.headers.get("content-type")
        mime_type = content_type.split(";", 1)[0].strip() if content_type else None
        return FetchedImage(data=response.content, mime_type=mime_type)
