"""Tests for the hierarchical listing projector."""

import io
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from datasetmanager.services.listing import DirectoryEntry, FileEntry, ListingProjector
from datasetmanager.storage.base import ObjectInfo


async def _put(store, key, data=b"x"):
    await store.put(key, io.BytesIO(data), len(data), "application/octet-stream")


@pytest.fixture
def projector(local_store):
    return ListingProjector(local_store)


@pytest.mark.asyncio
async def test_groups_keys_into_directories(projector, local_store):
    await _put(local_store, "a/x")
    await _put(local_store, "a/y")
    await _put(local_store, "b", b"bee")

    entries = await projector.list_entries("")

    assert len(entries) == 2
    directories = [e for e in entries if isinstance(e, DirectoryEntry)]
    files = [e for e in entries if isinstance(e, FileEntry)]
    assert [d.name for d in directories] == ["a/"]
    assert [(f.name, f.size) for f in files] == [("b", 3)]
    assert files[0].last_modified is not None
    assert directories[0].is_dir and not files[0].is_dir


@pytest.mark.asyncio
async def test_slash_prefix_is_root(projector, local_store):
    await _put(local_store, "a/x")
    await _put(local_store, "b")

    assert set(await projector.list_entries("/")) == set(await projector.list_entries(""))


@pytest.mark.asyncio
async def test_nested_prefix(projector, local_store):
    await _put(local_store, "ds/video.mp4", b"AB")
    await _put(local_store, "ds/clips/1.mp4")
    await _put(local_store, "ds/clips/deep/2.mp4")
    await _put(local_store, "other/z")

    entries = await projector.list_entries("ds/")

    assert {e.name for e in entries} == {"video.mp4", "clips/"}
    video = next(e for e in entries if e.name == "video.mp4")
    assert video.size == 2


@pytest.mark.asyncio
async def test_empty_prefix_returns_empty_list(projector):
    assert await projector.list_entries("nothing/") == []


@pytest.mark.asyncio
async def test_listing_is_repeatable(projector, local_store):
    for key in ("a/1", "a/2", "b/1", "c"):
        await _put(local_store, key)

    first = await projector.list_entries("")
    second = await projector.list_entries("")

    assert set(first) == set(second)


@pytest.mark.asyncio
async def test_directories_deduplicated_from_recursive_style_results():
    """Directory names appear once even if the store returns several deeper keys."""
    store = MagicMock()
    modified = datetime(2024, 1, 1, tzinfo=timezone.utc)
    store.list_prefix = AsyncMock(return_value=[
        ObjectInfo(key="p/a/1"),
        ObjectInfo(key="p/a/2/3"),
        ObjectInfo(key="p/f.txt", size=5, last_modified=modified),
        ObjectInfo(key="p/a/", is_prefix=True),
        ObjectInfo(key="p/"),
    ])

    entries = await ListingProjector(store).list_entries("p/")

    assert entries == [
        DirectoryEntry(name="a/"),
        FileEntry(name="f.txt", size=5, last_modified=modified),
    ]
    store.list_prefix.assert_awaited_once_with("p/", recursive=False)
