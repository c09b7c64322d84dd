"""Tests for blob stores and URL resolution."""

from unittest.mock import AsyncMock

import pytest

from src.store.blobs import (
    BlobNotFoundError,
    BlobUrlResolver,
    DownloadUrlCache,
    FilesystemBlobStore,
    MemoryBlobStore,
    is_storage_path,
)


class TestIsStoragePath:
    """Tests for is_storage_path."""

    @pytest.mark.parametrize("value", [None, "", "   ", "http://x/y.jpg", "https://x/y.jpg"])
    def test_not_storage_paths(self, value):
        assert is_storage_path(value) is False

    def test_storage_path(self):
        assert is_storage_path("dishes/r1/c1/d1/B_0.jpg") is True


class TestMemoryBlobStore:
    """Tests for MemoryBlobStore."""

    @pytest.mark.asyncio
    async def test_upload_and_url(self):
        store = MemoryBlobStore("http://cdn.test/")
        await store.upload("a/b.jpg", b"data", "image/jpeg")

        assert await store.exists("a/b.jpg")
        assert await store.download_url("a/b.jpg") == "http://cdn.test/a/b.jpg"

    @pytest.mark.asyncio
    async def test_missing_blob(self):
        store = MemoryBlobStore()

        with pytest.raises(BlobNotFoundError):
            await store.download_url("nope.jpg")
        with pytest.raises(BlobNotFoundError):
            await store.delete("nope.jpg")


class TestFilesystemBlobStore:
    """Tests for FilesystemBlobStore."""

    @pytest.fixture
    def store(self, tmp_path):
        return FilesystemBlobStore(tmp_path, "http://localhost:8000/blobs")

    @pytest.mark.asyncio
    async def test_round_trip(self, store, tmp_path):
        await store.upload("restaurants/r1/logo_X.png", b"png", "image/png")

        assert (tmp_path / "restaurants/r1/logo_X.png").read_bytes() == b"png"
        assert await store.download_url("restaurants/r1/logo_X.png") == (
            "http://localhost:8000/blobs/restaurants/r1/logo_X.png"
        )

        await store.delete("restaurants/r1/logo_X.png")
        assert not await store.exists("restaurants/r1/logo_X.png")

    @pytest.mark.asyncio
    async def test_delete_missing_raises_not_found(self, store):
        with pytest.raises(BlobNotFoundError):
            await store.delete("missing.jpg")

    @pytest.mark.asyncio
    async def test_path_escape_rejected(self, store):
        with pytest.raises(ValueError):
            await store.upload("../outside.jpg", b"x", "image/jpeg")


class TestBlobUrlResolver:
    """Tests for BlobUrlResolver and DownloadUrlCache."""

    @pytest.mark.asyncio
    async def test_urls_pass_through(self):
        resolver = BlobUrlResolver(MemoryBlobStore(), DownloadUrlCache())

        assert await resolver.resolve("https://cdn.example.com/x.jpg") == "https://cdn.example.com/x.jpg"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [None, "", "  "])
    async def test_blank_gives_none(self, value):
        resolver = BlobUrlResolver(MemoryBlobStore(), DownloadUrlCache())

        assert await resolver.resolve(value) is None

    @pytest.mark.asyncio
    async def test_resolves_once_then_caches(self):
        store = MemoryBlobStore()
        await store.upload("a.jpg", b"x", "image/jpeg")
        store.download_url = AsyncMock(return_value="memory://blobs/a.jpg")
        cache = DownloadUrlCache()
        resolver = BlobUrlResolver(store, cache)

        first = await resolver.resolve("a.jpg")
        second = await resolver.resolve("a.jpg")

        assert first == second == "memory://blobs/a.jpg"
        store.download_url.assert_awaited_once_with("a.jpg")
        assert "a.jpg" in cache
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_missing_blob_not_cached(self):
        cache = DownloadUrlCache()
        resolver = BlobUrlResolver(MemoryBlobStore(), cache)

        assert await resolver.resolve("missing.jpg") is None
        assert "missing.jpg" not in cache

    def test_cache_is_append_only(self):
        cache = DownloadUrlCache()
        cache.put("a.jpg", "url-1")
        cache.put("a.jpg", "url-2")

        assert cache.get("a.jpg") == "url-1"
