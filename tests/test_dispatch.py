"""Tests for provider capability dispatch."""

from __future__ import annotations

import pytest
from fakes import FakeDynamicProvider, FakeLocalProvider, FakeRemoteProvider, make_entry

from artwork_toolkit.core.base import ImageType, RefreshResult
from artwork_toolkit.core.dispatch import applicable_providers, partition_providers
from artwork_toolkit.core.models import DynamicImageResult
from artwork_toolkit.core.providers import ImageProvider


class OddProvider(ImageProvider):
    def supported_types(self, entry):
        return [ImageType.PRIMARY]


class BrokenTypesProvider(FakeRemoteProvider):
    def supported_types(self, entry):
        raise RuntimeError("no types")


def test_partition_keeps_order_within_kind() -> None:
    local = FakeLocalProvider()
    dynamic = FakeDynamicProvider({})
    remote_a = FakeRemoteProvider([], name="A")
    remote_b = FakeRemoteProvider([], name="B")

    provider_set = partition_providers([remote_a, local, remote_b, dynamic])

    assert provider_set.local == [local]
    assert provider_set.dynamic == [dynamic]
    assert provider_set.remote == [remote_a, remote_b]
    assert len(provider_set) == 4


def test_partition_rejects_unknown_kind() -> None:
    with pytest.raises(TypeError, match="Unsupported image provider"):
        partition_providers([OddProvider("odd")])


def test_applicable_providers_intersects_requested_types() -> None:
    dynamic = FakeDynamicProvider(
        {ImageType.BACKDROP: DynamicImageResult.unavailable(), ImageType.PRIMARY: DynamicImageResult.unavailable()}
    )
    unrelated = FakeDynamicProvider({ImageType.DISC: DynamicImageResult.unavailable()}, name="Disc")

    applicable = applicable_providers([dynamic, unrelated], make_entry(), [ImageType.PRIMARY, ImageType.BACKDROP])

    assert applicable == [(dynamic, [ImageType.PRIMARY, ImageType.BACKDROP])]


def test_supported_types_failure_is_isolated() -> None:
    result = RefreshResult(entry_id="entry-1")
    broken = BrokenTypesProvider([], name="Broken")
    working = FakeRemoteProvider([], name="Working", types=[ImageType.PRIMARY])

    applicable = applicable_providers([broken, working], make_entry(), [ImageType.PRIMARY], result)

    assert applicable == [(working, [ImageType.PRIMARY])]
    assert result.errors == ["Broken: no types"]
