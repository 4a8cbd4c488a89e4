"""Refresh orchestration: one pass per catalog entry."""

from __future__ import annotations

import logging
import mimetypes
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from .base import DownloadError, ImageType, RefreshResult, SaveError
from .dispatch import applicable_providers, partition_providers, report_provider_failure
from .filesystem import DirectoryService
from .models import (
    CatalogEntry,
    DynamicImageResult,
    ImageReference,
    LocationKind,
    RefreshDirective,
    RemoteImageCandidate,
    RemoteImageQuery,
    same_path,
)
from .validator import validate_images

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from .filesystem import DirectoryListing
    from .models import CapacityPolicy
    from .providers import (
        DynamicImageProvider,
        ImageFetcher,
        ImageProvider,
        ImageStorage,
        RemoteImageProvider,
    )

LOG = logging.getLogger(__name__)


def is_stub_entry(entry: CatalogEntry) -> bool:
    """Entries without backing content get urls recorded instead of downloaded files."""
    return entry.is_stub


def matches_stored_length(storage: ImageStorage, images: Iterable[ImageReference], length: int) -> bool:
    """Whether a stored local image already has exactly this many bytes.

    Same length is taken to mean the download is the image already on disk.
    """
    for image in images:
        if not image.is_local_file:
            continue
        try:
            if storage.file_length(image.path) == length:
                return True
        except OSError as e:
            LOG.error("Error examining image %s: %s", image.path, e)
    return False


def rank_candidates(candidates: Iterable[RemoteImageCandidate], provider_name: str) -> list[RemoteImageCandidate]:
    """Stamp provider order onto candidates; earlier means preferred."""
    return [
        RemoteImageCandidate(
            slot_type=candidate.slot_type,
            url=candidate.url,
            width=candidate.width,
            height=candidate.height,
            provider_rank=rank,
            provider_name=candidate.provider_name or provider_name,
            language=candidate.language,
        )
        for rank, candidate in enumerate(candidates)
    ]


def select_candidates(
    candidates: Iterable[RemoteImageCandidate], image_type: ImageType, min_width: int
) -> list[RemoteImageCandidate]:
    """Candidates of one type wide enough for the policy; unknown width (0) passes."""
    return [
        candidate
        for candidate in candidates
        if candidate.slot_type is image_type and (candidate.width == 0 or candidate.width >= min_width)
    ]


def _mime_type_for(location: str | None, image_format: str | None) -> str | None:
    if image_format:
        return mimetypes.types_map.get(f".{image_format.lower().lstrip('.')}")
    if location:
        return mimetypes.guess_type(location)[0]
    return None


@dataclass
class _PassState:
    """Mutable bookkeeping of one entry pass."""

    entry: CatalogEntry
    policy: CapacityPolicy
    directive: RefreshDirective
    result: RefreshResult
    acquired: set[ImageType] = field(default_factory=set)
    # Old references of types being replaced, and the lists that will supersede them.
    previous: dict[ImageType, list[ImageReference]] = field(default_factory=dict)
    staged: dict[ImageType, list[ImageReference]] = field(default_factory=dict)

    @property
    def label(self) -> str:
        return self.entry.name or self.entry.id

    def is_replacing(self, image_type: ImageType) -> bool:
        return self.directive.is_replacing(image_type)

    def held(self, image_type: ImageType) -> list[ImageReference]:
        if image_type in self.staged:
            return self.staged[image_type]
        return self.entry.get_images(image_type)

    def wants(self, image_type: ImageType) -> bool:
        """Whether another image of this type would be accepted right now."""
        if not self.policy.is_enabled(image_type):
            return False
        if not image_type.is_repeatable and self.is_replacing(image_type):
            return image_type not in self.acquired
        return len(self.held(image_type)) < self.policy.limit(image_type)

    def already_has(self, image_type: ImageType, path: str) -> bool:
        """Whether accepting this path would only duplicate a held reference.

        A singular type being replaced may take its current path again.
        """
        if not image_type.is_repeatable and self.is_replacing(image_type):
            return False
        return any(same_path(image.path, path) for image in self.held(image_type))


class ImageRefresher:
    """Reconciles an entry's image references with local, dynamic and remote providers."""

    def __init__(
        self,
        storage: ImageStorage,
        fetcher: ImageFetcher | None = None,
        directory_service: DirectoryListing | None = None,
    ) -> None:
        """
        Initialize the refresher.

        Args:
            storage: Store that persists downloaded bytes and assigns final paths
            fetcher: Downloader for dynamic results that point at the network
            directory_service: Default listing used when a pass does not supply one

        """
        self.storage = storage
        self.fetcher = fetcher
        self.directory_service = directory_service
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    async def run_pass(
        self,
        entry: CatalogEntry,
        policy: CapacityPolicy,
        providers: Sequence[ImageProvider],
        directive: RefreshDirective | None = None,
        directory_service: DirectoryListing | None = None,
    ) -> RefreshResult:
        """Validate local state, merge local images, then refresh from dynamic and remote providers."""
        start_time = time.time()
        directive = directive or RefreshDirective()
        result = RefreshResult(entry_id=entry.id)
        before = entry.snapshot()

        provider_set = partition_providers(providers)
        listing = directory_service or self.directory_service or DirectoryService()
        validated = validate_images(entry, provider_set.local, listing, result)

        await self._refresh(entry, policy, provider_set.dynamic, provider_set.remote, directive, result)

        result.updated = validated or entry.snapshot() != before
        result.processing_time = time.time() - start_time
        self.logger.info(
            "Image pass for %s: %s (%.2fs)", entry.name or entry.id, result.status.value, result.processing_time
        )
        return result

    async def refresh_images(
        self,
        entry: CatalogEntry,
        policy: CapacityPolicy,
        providers: Sequence[ImageProvider],
        directive: RefreshDirective | None = None,
    ) -> RefreshResult:
        """Refresh from dynamic and remote providers only; local providers are ignored here."""
        directive = directive or RefreshDirective()
        result = RefreshResult(entry_id=entry.id)
        before = entry.snapshot()

        provider_set = partition_providers(providers)
        await self._refresh(entry, policy, provider_set.dynamic, provider_set.remote, directive, result)

        result.updated = entry.snapshot() != before
        return result

    async def _refresh(
        self,
        entry: CatalogEntry,
        policy: CapacityPolicy,
        dynamic_providers: Sequence[DynamicImageProvider],
        remote_providers: Sequence[RemoteImageProvider],
        directive: RefreshDirective,
        result: RefreshResult,
    ) -> None:
        state = _PassState(entry=entry, policy=policy, directive=directive, result=result)
        requested = policy.enabled_types()
        for image_type in requested:
            if state.is_replacing(image_type):
                state.previous[image_type] = entry.get_images(image_type)
                state.staged[image_type] = []

        # Dynamic before remote. Staged replacements are applied even on cancellation.
        try:
            for provider, image_types in applicable_providers(dynamic_providers, entry, requested, result):
                await self._refresh_from_dynamic(state, provider, image_types)

            for provider, image_types in applicable_providers(remote_providers, entry, requested, result):
                await self._refresh_from_remote(state, provider, image_types)
        finally:
            self._apply_staged(state)

    async def _refresh_from_dynamic(
        self, state: _PassState, provider: DynamicImageProvider, image_types: list[ImageType]
    ) -> None:
        for image_type in image_types:
            if not state.wants(image_type):
                continue

            self.logger.debug("Running %s for %s (%s)", provider.name, state.label, image_type.value)
            try:
                response = await provider.generate(state.entry, image_type)
            except Exception as e:
                report_provider_failure(provider, e, state.result)
                return

            if not response.available:
                continue

            needs_download = (
                response.data is None
                and response.location_kind is LocationKind.NETWORK
                and not is_stub_entry(state.entry)
            )
            try:
                if needs_download:
                    await self._accept_network_dynamic(state, image_type, response)
                else:
                    self._accept_dynamic(state, image_type, response)
            except DownloadError as e:
                self.logger.warning("%s: could not read %s image: %s", provider.name, image_type.value, e)
            except SaveError as e:
                self._report_save_failure(state, image_type, e)

    def _accept_dynamic(self, state: _PassState, image_type: ImageType, response: DynamicImageResult) -> None:
        """Take a dynamic result that needs no network access."""
        mime_type = _mime_type_for(response.location, response.format)
        if response.data is not None:
            self._accept_bytes(state, image_type, response.data, mime_type)
            return
        if not response.location:
            self.logger.debug("Dynamic %s result for %s has no image data", image_type.value, state.label)
            return
        if response.location_kind is LocationKind.NETWORK:
            # Stub entries keep the url itself.
            self._accept_url(state, image_type, response.location)
            return
        try:
            data = Path(response.location).read_bytes()
        except OSError as e:
            msg = f"Cannot read {response.location}: {e}"
            raise DownloadError(msg, url=response.location, entry_id=state.entry.id, cause=e) from e
        self._accept_bytes(state, image_type, data, mime_type)

    async def _accept_network_dynamic(
        self, state: _PassState, image_type: ImageType, response: DynamicImageResult
    ) -> None:
        url = str(response.location)
        if self.fetcher is None:
            msg = "No fetcher configured for network images"
            raise DownloadError(msg, url=url, entry_id=state.entry.id)
        fetched = await self.fetcher.fetch(url)
        self._accept_bytes(state, image_type, fetched.data, fetched.mime_type or _mime_type_for(url, response.format))

    async def _refresh_from_remote(
        self, state: _PassState, provider: RemoteImageProvider, image_types: list[ImageType]
    ) -> None:
        wanted = [image_type for image_type in image_types if state.wants(image_type)]
        if not wanted:
            self.logger.debug("Skipping %s for %s: images already present", provider.name, state.label)
            return

        query = RemoteImageQuery(
            provider_name=provider.name,
            image_types=tuple(wanted),
            min_widths={t: state.policy.min_width(t) for t in wanted},
            limits={t: state.policy.limit(t) for t in wanted},
        )
        self.logger.debug("Running %s for %s", provider.name, state.label)
        try:
            candidates = rank_candidates(await provider.query_candidates(state.entry, query), provider.name)
        except Exception as e:
            report_provider_failure(provider, e, state.result)
            return

        for image_type in wanted:
            eligible = select_candidates(candidates, image_type, state.policy.min_width(image_type))
            await self._download_candidates(state, provider, image_type, eligible)

    async def _download_candidates(
        self,
        state: _PassState,
        provider: RemoteImageProvider,
        image_type: ImageType,
        candidates: list[RemoteImageCandidate],
    ) -> None:
        for candidate in candidates:
            if not state.wants(image_type):
                break
            if state.already_has(image_type, candidate.url):
                continue

            if is_stub_entry(state.entry):
                self._accept_url(state, image_type, candidate.url)
                continue

            try:
                fetched = await provider.fetch(candidate.url)
            except DownloadError as e:
                self.logger.debug("%s returned %s, trying next candidate", candidate.url, e.status_code or e)
                continue
            except Exception as e:
                self.logger.warning("Failed to download %s from %s: %s", candidate.url, provider.name, e)
                continue

            try:
                self._accept_bytes(state, image_type, fetched.data, fetched.mime_type)
            except SaveError as e:
                self._report_save_failure(state, image_type, e)
                break

    def _accept_url(self, state: _PassState, image_type: ImageType, url: str) -> None:
        """Record a url as the reference without fetching anything."""
        if state.already_has(image_type, url):
            return
        self._place(state, ImageReference(slot_type=image_type, path=url))

    def _accept_bytes(self, state: _PassState, image_type: ImageType, data: bytes, mime_type: str | None) -> bool:
        """Save downloaded bytes unless the same image is already stored; returns whether it was taken.

        A type being replaced always takes the download.
        """
        if state.is_replacing(image_type):
            index = len(state.staged[image_type])
        else:
            index = None
            if matches_stored_length(self.storage, state.entry.get_images(image_type), len(data)):
                self.logger.debug("Skipping %s image for %s, already downloaded", image_type.value, state.label)
                return False

        try:
            image = self.storage.save(state.entry, data, mime_type, image_type, index)
        except OSError as e:
            msg = f"Saving {image_type.value} image failed: {e}"
            raise SaveError(msg, entry_id=state.entry.id, cause=e) from e

        self._place(state, image)
        return True

    def _place(self, state: _PassState, image: ImageReference) -> None:
        image_type = image.slot_type
        if image_type in state.staged:
            state.staged[image_type].append(image)
        else:
            state.entry.set_image(image)
        state.acquired.add(image_type)
        self.logger.info("Set %s image for %s: %s", image_type.value, state.label, image.path)

    def _apply_staged(self, state: _PassState) -> None:
        """Swap in replacement lists; types that acquired nothing keep their old images."""
        for image_type, images in state.staged.items():
            if not images:
                continue
            previous = state.previous.get(image_type, [])
            state.entry.replace_images(image_type, images)
            for image in previous:
                if image.is_local_file and not any(same_path(image.path, new.path) for new in images):
                    try:
                        self.storage.delete(image.path)
                    except (OSError, SaveError) as e:
                        self.logger.warning("Failed to delete replaced image %s: %s", image.path, e)

    def _report_save_failure(self, state: _PassState, image_type: ImageType, error: SaveError) -> None:
        self.logger.error("Failed to save %s image for %s: %s", image_type.value, state.label, error)
        state.result.add_error(str(error))
