"""Tests for the refresh orchestrator."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from fakes import (
    MOVIE_DIR,
    FakeDynamicProvider,
    FakeFetcher,
    FakeListing,
    FakeRemoteProvider,
    FakeStorage,
    make_entry,
    reference,
    remote_candidates,
)

from artwork_toolkit.core.base import ImageType, RefreshStatus, SaveError
from artwork_toolkit.core.file_manager import BackupStrategy, ImageStore
from artwork_toolkit.core.filesystem import DirectoryService
from artwork_toolkit.core.models import (
    CapacityPolicy,
    CatalogEntry,
    DynamicImageResult,
    ImageOption,
    LocationKind,
    RefreshDirective,
    RefreshMode,
    RemoteImageCandidate,
)
from artwork_toolkit.core.refresher import ImageRefresher, matches_stored_length, select_candidates
from artwork_toolkit.providers import FolderImageProvider

FULL_REPLACE_ALL = RefreshDirective(mode=RefreshMode.FULL, replace_all=True)


def make_policy(**limits: int) -> CapacityPolicy:
    return CapacityPolicy(options={ImageType.parse(name): ImageOption(limit=limit) for name, limit in limits.items()})


def run_pass(refresher, entry, policy, providers, directive=None, listing=None):
    if listing is None:
        listing = FakeListing(dict.fromkeys(refresher.storage.files))
    return asyncio.run(refresher.run_pass(entry, policy, providers, directive, listing))


class CancellingRemoteProvider(FakeRemoteProvider):
    """Cancels the pass when asked for a particular url."""

    def __init__(self, cancel_url: str, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self.cancel_url = cancel_url

    async def fetch(self, url: str):
        if url == self.cancel_url:
            raise asyncio.CancelledError
        return await super().fetch(url)


def test_full_replace_all_with_single_dynamic_image_replaces_every_backdrop() -> None:
    """A dynamic image supersedes all existing backdrops when replacing everything."""
    old = [reference(ImageType.BACKDROP, f"backdrop{i}.jpg") for i in range(3)]
    storage = FakeStorage({image.path: b"old" for image in old})
    entry = make_entry()
    entry.replace_images(ImageType.BACKDROP, old)
    dynamic = FakeDynamicProvider({ImageType.BACKDROP: DynamicImageResult(available=True, data=b"new backdrop")})

    result = run_pass(ImageRefresher(storage), entry, make_policy(Backdrop=3), [dynamic], FULL_REPLACE_ALL)

    assert result.updated
    backdrops = entry.get_images(ImageType.BACKDROP)
    assert len(backdrops) == 1
    assert storage.files[backdrops[0].path] == b"new backdrop"
    assert sorted(storage.deleted) == sorted(image.path for image in old)


def test_remote_candidates_fill_up_to_limit_in_rank_order() -> None:
    candidates = remote_candidates(ImageType.BACKDROP, 4)
    images = {candidate.url: b"x" * (10 + i) for i, candidate in enumerate(candidates)}
    remote = FakeRemoteProvider(candidates, images)
    storage = FakeStorage()
    entry = make_entry()

    result = run_pass(ImageRefresher(storage), entry, make_policy(Backdrop=2), [remote])

    assert result.updated
    assert len(entry.get_images(ImageType.BACKDROP)) == 2
    assert remote.fetched == [candidates[0].url, candidates[1].url]
    assert [data for _, _, data in storage.saved] == [b"x" * 10, b"x" * 11]


def test_incremental_with_full_repeatable_type_and_no_providers_is_unchanged() -> None:
    backdrops = [reference(ImageType.BACKDROP, "backdrop.jpg"), reference(ImageType.BACKDROP, "backdrop1.jpg")]
    entry = make_entry()
    entry.replace_images(ImageType.BACKDROP, backdrops)
    listing = FakeListing({image.path: None for image in backdrops})

    result = run_pass(ImageRefresher(FakeStorage()), entry, make_policy(Backdrop=2), [], listing=listing)

    assert not result.updated
    assert result.status is RefreshStatus.UNCHANGED
    assert entry.image_count(ImageType.BACKDROP) == 2


def test_download_with_stored_length_is_not_saved() -> None:
    existing = reference(ImageType.BACKDROP, "backdrop.jpg")
    storage = FakeStorage({existing.path: b"12345"})
    entry = make_entry()
    entry.set_image(existing)
    candidates = remote_candidates(ImageType.BACKDROP, 1)
    remote = FakeRemoteProvider(candidates, {candidates[0].url: b"abcde"})

    result = run_pass(ImageRefresher(storage), entry, make_policy(Backdrop=2), [remote])

    assert remote.fetched == [candidates[0].url]
    assert storage.saved == []
    assert not result.updated
    assert entry.get_images(ImageType.BACKDROP) == [existing]


@pytest.mark.parametrize(
    ("image_type", "name"), [(ImageType.PRIMARY, "poster.jpg"), (ImageType.BACKDROP, "backdrop.jpg")]
)
def test_replaced_type_saves_download_even_with_stored_length(image_type: ImageType, name: str) -> None:
    """A full refresh replacing the type downloads again instead of comparing sizes."""
    existing = reference(image_type, name)
    storage = FakeStorage({existing.path: b"Content"})
    entry = make_entry()
    entry.set_image(existing)
    candidates = remote_candidates(image_type, 1)
    remote = FakeRemoteProvider(candidates, {candidates[0].url: b"Content"})

    result = run_pass(ImageRefresher(storage), entry, make_policy(Backdrop=2), [remote], FULL_REPLACE_ALL)

    assert result.updated
    assert [data for _, _, data in storage.saved] == [b"Content"]
    expected = f"{MOVIE_DIR}/saved-{image_type.value.lower()}-1.jpg"
    assert [image.path for image in entry.get_images(image_type)] == [expected]
    assert storage.deleted == [existing.path]


def test_replaced_singular_type_deletes_previous_file() -> None:
    poster = reference(ImageType.PRIMARY, "movie-poster.jpg")
    storage = FakeStorage({poster.path: b"old poster"})
    entry = make_entry()
    entry.set_image(poster)
    candidates = remote_candidates(ImageType.PRIMARY, 1)
    remote = FakeRemoteProvider(candidates, {candidates[0].url: b"new poster"})
    directive = RefreshDirective(mode=RefreshMode.FULL, replace_types=frozenset({ImageType.PRIMARY}))

    result = run_pass(ImageRefresher(storage), entry, make_policy(), [remote], directive)

    assert result.updated
    assert storage.deleted == [poster.path]
    assert storage.files[entry.get_image(ImageType.PRIMARY).path] == b"new poster"


def test_second_identical_pass_reports_no_change() -> None:
    primary = remote_candidates(ImageType.PRIMARY, 1)
    backdrops = remote_candidates(ImageType.BACKDROP, 3)
    images = {candidate.url: b"p" * (5 + i) for i, candidate in enumerate(primary + backdrops)}
    remote = FakeRemoteProvider(primary + backdrops, images)
    refresher = ImageRefresher(FakeStorage())
    entry = make_entry()
    policy = make_policy(Primary=1, Backdrop=2)

    first = run_pass(refresher, entry, policy, [remote])
    second = run_pass(refresher, entry, policy, [remote])

    assert first.updated
    assert not second.updated
    assert len(remote.queries) == 1


def test_dynamic_result_wins_over_remote_for_same_type() -> None:
    dynamic = FakeDynamicProvider({ImageType.PRIMARY: DynamicImageResult(available=True, data=b"generated")})
    candidates = remote_candidates(ImageType.PRIMARY, 1)
    remote = FakeRemoteProvider(candidates, {candidates[0].url: b"remote"})
    storage = FakeStorage()
    entry = make_entry()

    run_pass(ImageRefresher(storage), entry, make_policy(), [remote, dynamic])

    assert storage.files[entry.get_image(ImageType.PRIMARY).path] == b"generated"
    assert remote.queries == []


def test_failing_provider_does_not_stop_others() -> None:
    broken = FakeRemoteProvider(
        remote_candidates(ImageType.PRIMARY, 1), name="Broken", query_error=RuntimeError("boom")
    )
    candidates = remote_candidates(ImageType.PRIMARY, 1)
    working = FakeRemoteProvider(candidates, {candidates[0].url: b"poster"}, name="Working")
    entry = make_entry()

    result = run_pass(ImageRefresher(FakeStorage()), entry, make_policy(), [broken, working])

    assert result.status is RefreshStatus.UPDATED
    assert result.errors == ["Broken: boom"]
    assert entry.has_image(ImageType.PRIMARY)


def test_failing_dynamic_provider_is_reported() -> None:
    dynamic = FakeDynamicProvider(
        {ImageType.PRIMARY: DynamicImageResult.unavailable()}, name="Extractor", error=ValueError("bad frame")
    )

    result = run_pass(ImageRefresher(FakeStorage()), make_entry(), make_policy(), [dynamic])

    assert result.errors == ["Extractor: bad frame"]
    assert not result.updated


def test_download_failure_moves_to_next_candidate() -> None:
    candidates = remote_candidates(ImageType.PRIMARY, 2)
    remote = FakeRemoteProvider(candidates, {candidates[1].url: b"second"})
    storage = FakeStorage()
    entry = make_entry()

    result = run_pass(ImageRefresher(storage), entry, make_policy(), [remote])

    assert remote.fetched == [candidates[0].url, candidates[1].url]
    assert storage.files[entry.get_image(ImageType.PRIMARY).path] == b"second"
    assert result.errors == []


def test_save_failure_abandons_type_but_continues_with_others() -> None:
    backdrops = remote_candidates(ImageType.BACKDROP, 3)
    primary = remote_candidates(ImageType.PRIMARY, 1)
    images = {candidate.url: b"data" for candidate in backdrops + primary}
    remote = FakeRemoteProvider(backdrops + primary, images)
    storage = FakeStorage()
    storage.fail_with = SaveError("disk full")
    entry = make_entry()

    result = run_pass(ImageRefresher(storage), entry, make_policy(Backdrop=3), [remote])

    assert remote.fetched == [primary[0].url, backdrops[0].url]
    assert result.errors == ["disk full", "disk full"]
    assert list(entry.all_images()) == []


def test_store_oserror_is_treated_as_save_failure() -> None:
    candidates = remote_candidates(ImageType.PRIMARY, 2)
    remote = FakeRemoteProvider(candidates, {candidate.url: b"data" for candidate in candidates})
    storage = FakeStorage()
    storage.fail_with = PermissionError("read-only")

    result = run_pass(ImageRefresher(storage), make_entry(), make_policy(), [remote])

    assert remote.fetched == [candidates[0].url]
    assert len(result.errors) == 1
    assert "read-only" in result.errors[0]


def test_stub_entry_records_urls_without_fetching() -> None:
    candidates = remote_candidates(ImageType.PRIMARY, 1) + remote_candidates(ImageType.BACKDROP, 2)
    remote = FakeRemoteProvider(candidates, {candidate.url: b"data" for candidate in candidates})
    storage = FakeStorage()
    entry = make_entry(path=None)

    result = run_pass(ImageRefresher(storage), entry, make_policy(Backdrop=2), [remote])

    assert result.updated
    assert remote.fetched == []
    assert storage.saved == []
    assert entry.get_image(ImageType.PRIMARY).path == candidates[0].url
    assert [image.path for image in entry.get_images(ImageType.BACKDROP)] == [c.url for c in candidates[1:]]


def test_stub_entry_full_replace_is_idempotent() -> None:
    candidates = remote_candidates(ImageType.PRIMARY, 1) + remote_candidates(ImageType.BACKDROP, 2)
    remote = FakeRemoteProvider(candidates)
    refresher = ImageRefresher(FakeStorage())
    entry = make_entry(path="https://stream.example/movie")
    policy = make_policy(Backdrop=2)

    first = run_pass(refresher, entry, policy, [remote], FULL_REPLACE_ALL)
    second = run_pass(refresher, entry, policy, [remote], FULL_REPLACE_ALL)

    assert first.updated
    assert not second.updated
    assert entry.image_count(ImageType.BACKDROP) == 2


def test_full_refresh_without_candidates_keeps_existing_images() -> None:
    poster = reference(ImageType.PRIMARY, "poster.jpg")
    backdrop = reference(ImageType.BACKDROP, "backdrop.jpg")
    storage = FakeStorage({poster.path: b"p", backdrop.path: b"b"})
    entry = make_entry()
    entry.set_image(poster)
    entry.set_image(backdrop)
    remote = FakeRemoteProvider([], types=[ImageType.PRIMARY, ImageType.BACKDROP])

    result = run_pass(ImageRefresher(storage), entry, make_policy(Backdrop=2), [remote], FULL_REPLACE_ALL)

    assert not result.updated
    assert storage.deleted == []
    assert entry.get_image(ImageType.PRIMARY) is poster
    assert entry.get_images(ImageType.BACKDROP) == [backdrop]


def test_min_width_filters_candidates_but_unknown_width_passes() -> None:
    candidates = [
        RemoteImageCandidate(slot_type=ImageType.BACKDROP, url="https://img.example/small.jpg", width=500),
        RemoteImageCandidate(slot_type=ImageType.BACKDROP, url="https://img.example/large.jpg", width=2000),
        RemoteImageCandidate(slot_type=ImageType.BACKDROP, url="https://img.example/unknown.jpg"),
    ]
    remote = FakeRemoteProvider(candidates, {c.url: c.url.encode() for c in candidates})
    policy = CapacityPolicy(options={ImageType.BACKDROP: ImageOption(limit=3, min_width=1000)})

    run_pass(ImageRefresher(FakeStorage()), make_entry(), policy, [remote])

    assert remote.fetched == ["https://img.example/large.jpg", "https://img.example/unknown.jpg"]
    query = remote.queries[0]
    assert query.min_widths[ImageType.BACKDROP] == 1000
    assert query.limits[ImageType.BACKDROP] == 3


def test_disabled_type_is_never_requested() -> None:
    candidates = remote_candidates(ImageType.PRIMARY, 1)
    remote = FakeRemoteProvider(candidates, {candidates[0].url: b"poster"})

    result = run_pass(ImageRefresher(FakeStorage()), make_entry(), make_policy(Primary=0), [remote])

    assert not result.updated
    assert remote.queries == []


def test_cancellation_keeps_images_saved_so_far() -> None:
    old = [reference(ImageType.BACKDROP, "backdrop.jpg"), reference(ImageType.BACKDROP, "backdrop1.jpg")]
    storage = FakeStorage({image.path: b"old" for image in old})
    entry = make_entry()
    entry.replace_images(ImageType.BACKDROP, old)
    candidates = remote_candidates(ImageType.BACKDROP, 2)
    remote = CancellingRemoteProvider(
        candidates[1].url, candidates=candidates, images={candidates[0].url: b"fresh backdrop"}
    )

    with pytest.raises(asyncio.CancelledError):
        run_pass(ImageRefresher(storage), entry, make_policy(Backdrop=2), [remote], FULL_REPLACE_ALL)

    backdrops = entry.get_images(ImageType.BACKDROP)
    assert len(backdrops) == 1
    assert storage.files[backdrops[0].path] == b"fresh backdrop"


def test_network_dynamic_result_is_downloaded_with_fetcher() -> None:
    url = "https://art.example/poster.png"
    dynamic = FakeDynamicProvider(
        {ImageType.PRIMARY: DynamicImageResult(available=True, location=url, location_kind=LocationKind.NETWORK)}
    )
    fetcher = FakeFetcher({url: b"png bytes"})
    storage = FakeStorage()
    entry = make_entry()

    result = run_pass(ImageRefresher(storage, fetcher), entry, make_policy(), [dynamic])

    assert result.updated
    assert fetcher.fetched == [url]
    assert storage.files[entry.get_image(ImageType.PRIMARY).path] == b"png bytes"


def test_network_dynamic_result_without_fetcher_is_skipped() -> None:
    url = "https://art.example/poster.png"
    dynamic = FakeDynamicProvider(
        {ImageType.PRIMARY: DynamicImageResult(available=True, location=url, location_kind=LocationKind.NETWORK)}
    )
    entry = make_entry()

    result = run_pass(ImageRefresher(FakeStorage()), entry, make_policy(), [dynamic])

    assert not result.updated
    assert not entry.has_image(ImageType.PRIMARY)


def test_network_dynamic_result_for_stub_entry_records_url() -> None:
    url = "https://art.example/poster.png"
    dynamic = FakeDynamicProvider(
        {ImageType.PRIMARY: DynamicImageResult(available=True, location=url, location_kind=LocationKind.NETWORK)}
    )
    fetcher = FakeFetcher({url: b"png bytes"})
    entry = make_entry(path=None)

    run_pass(ImageRefresher(FakeStorage(), fetcher), entry, make_policy(), [dynamic])

    assert fetcher.fetched == []
    assert entry.get_image(ImageType.PRIMARY).path == url


def test_local_file_dynamic_result_is_read_and_saved(tmp_path: Path) -> None:
    image_file = tmp_path / "extracted.jpg"
    image_file.write_bytes(b"frame")
    dynamic = FakeDynamicProvider(
        {ImageType.THUMB: DynamicImageResult(available=True, format="jpg", location=str(image_file))}
    )
    storage = FakeStorage()
    entry = make_entry()

    result = run_pass(ImageRefresher(storage), entry, make_policy(), [dynamic])

    assert result.updated
    assert storage.files[entry.get_image(ImageType.THUMB).path] == b"frame"


def test_missing_recorded_file_is_removed_during_pass() -> None:
    poster = reference(ImageType.PRIMARY, "poster.jpg")
    entry = make_entry()
    entry.set_image(poster)

    result = run_pass(ImageRefresher(FakeStorage()), entry, make_policy(), [], listing=FakeListing())

    assert result.updated
    assert not entry.has_image(ImageType.PRIMARY)


def test_refresh_images_ignores_local_providers() -> None:
    candidates = remote_candidates(ImageType.PRIMARY, 1)
    remote = FakeRemoteProvider(candidates, {candidates[0].url: b"poster"})
    entry = make_entry()

    result = asyncio.run(ImageRefresher(FakeStorage()).refresh_images(entry, make_policy(), [remote]))

    assert result.updated
    assert entry.get_image(ImageType.PRIMARY).path.startswith(MOVIE_DIR)


def test_select_candidates_keeps_provider_order() -> None:
    candidates = remote_candidates(ImageType.BACKDROP, 3, width=1920) + remote_candidates(ImageType.PRIMARY, 1)

    selected = select_candidates(candidates, ImageType.BACKDROP, 1280)

    assert [c.url for c in selected] == [c.url for c in candidates[:3]]


def test_matches_stored_length_logs_unreadable_files(caplog: pytest.LogCaptureFixture) -> None:
    missing = reference(ImageType.PRIMARY, "gone.jpg")

    assert not matches_stored_length(FakeStorage(), [missing], 10)
    assert "gone.jpg" in caplog.text


def test_full_replace_is_kept_by_the_next_incremental_pass(tmp_path: Path) -> None:
    movie_dir = tmp_path / "Movie (2020)"
    movie_dir.mkdir()
    (movie_dir / "movie.mkv").write_bytes(b"video")
    (movie_dir / "movie-poster.jpg").write_bytes(b"old poster")
    entry = CatalogEntry(id="m", name="Movie", path=str(movie_dir / "movie.mkv"))
    refresher = ImageRefresher(ImageStore(tmp_path / "metadata", backup_strategy=BackupStrategy.NEVER))
    folder = FolderImageProvider([".jpg"])
    candidates = remote_candidates(ImageType.PRIMARY, 1)
    remote = FakeRemoteProvider(candidates, {candidates[0].url: b"new poster"})

    full = asyncio.run(refresher.run_pass(entry, make_policy(), [folder, remote], FULL_REPLACE_ALL, DirectoryService()))
    assert full.updated
    assert entry.get_image(ImageType.PRIMARY).path == str(movie_dir / "poster.jpg")
    assert not (movie_dir / "movie-poster.jpg").exists()

    incremental = asyncio.run(refresher.run_pass(entry, make_policy(), [folder], None, DirectoryService()))

    assert not incremental.updated
    assert entry.get_image(ImageType.PRIMARY).path == str(movie_dir / "poster.jpg")
    assert (movie_dir / "poster.jpg").read_bytes() == b"new poster"


def test_full_replace_of_backdrops_on_disk_is_idempotent(tmp_path: Path) -> None:
    movie_dir = tmp_path / "Movie (2020)"
    movie_dir.mkdir()
    (movie_dir / "movie.mkv").write_bytes(b"video")
    (movie_dir / "fanart.jpg").write_bytes(b"old fanart")
    (movie_dir / "backdrop1.jpg").write_bytes(b"old backdrop")
    entry = CatalogEntry(id="m", name="Movie", path=str(movie_dir / "movie.mkv"))
    refresher = ImageRefresher(ImageStore(tmp_path / "metadata", backup_strategy=BackupStrategy.NEVER))
    folder = FolderImageProvider([".jpg"])
    candidates = remote_candidates(ImageType.BACKDROP, 1)
    remote = FakeRemoteProvider(candidates, {candidates[0].url: b"new backdrop"})
    policy = make_policy(Backdrop=2)

    asyncio.run(refresher.run_pass(entry, policy, [folder, remote], FULL_REPLACE_ALL, DirectoryService()))
    incremental = asyncio.run(refresher.run_pass(entry, policy, [folder], None, DirectoryService()))

    assert not incremental.updated
    assert [Path(image.path).name for image in entry.get_images(ImageType.BACKDROP)] == ["backdrop.jpg"]
    assert sorted(path.name for path in movie_dir.glob("*.jpg")) == ["backdrop.jpg"]
