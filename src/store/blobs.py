"""Blob storage for menu images and the download URL cache."""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

from src.metrics import record_cache_access

logger = structlog.get_logger()


class BlobNotFoundError(FileNotFoundError):
    """Raised when no blob exists at a storage path."""

    def __init__(self, path: str):
        super().__init__(f"Blob not found: {path}")
        self.path = path


def is_storage_path(value: str | None) -> bool:
    """Check that a value is a storage path rather than a URL or blank."""
    if not value or not value.strip():
        return False
    return not value.startswith(("http://", "https://"))


class BlobStore(ABC):
    """Async blob store addressed by storage path."""

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Store bytes at a path, replacing any existing blob."""

    @abstractmethod
    async def download_url(self, path: str) -> str:
        """Resolve a public URL. Raises BlobNotFoundError."""

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete a blob. Raises BlobNotFoundError."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether a blob exists."""


class MemoryBlobStore(BlobStore):
    """Blobs kept in a dict; used for development and tests."""

    def __init__(self, base_url: str = "memory://blobs"):
        self.base_url = base_url.rstrip("/")
        self.blobs: dict[str, tuple[bytes, str]] = {}
        self.upload_calls = 0

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        self.upload_calls += 1
        self.blobs[path] = (bytes(data), content_type)

    async def download_url(self, path: str) -> str:
        if path not in self.blobs:
            raise BlobNotFoundError(path)
        return f"{self.base_url}/{path}"

    async def delete(self, path: str) -> None:
        if self.blobs.pop(path, None) is None:
            raise BlobNotFoundError(path)

    async def exists(self, path: str) -> bool:
        return path in self.blobs


class FilesystemBlobStore(BlobStore):
    """Blobs stored as files under a root directory and served from base_url.

    Content type is implied by the file extension of the storage path.
    """

    def __init__(self, root: str | Path, base_url: str):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")

    def _file(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root not in target.parents:
            raise ValueError(f"Storage path escapes blob root: {path}")
        return target

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        target = self._file(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.debug("blob_written", path=path, size=len(data), content_type=content_type)

    async def download_url(self, path: str) -> str:
        if not await self.exists(path):
            raise BlobNotFoundError(path)
        return f"{self.base_url}/{path}"

    async def delete(self, path: str) -> None:
        target = self._file(path)
        try:
            await asyncio.to_thread(target.unlink)
        except FileNotFoundError as e:
            raise BlobNotFoundError(path) from e

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._file(path).is_file)


class DownloadUrlCache:
    """Append-only path -> URL cache.

    Entries are never invalidated. Both backends derive the URL from the
    path alone, so a cached entry stays valid while the path is live.
    """

    def __init__(self):
        self._urls: dict[str, str] = {}

    def get(self, path: str) -> str | None:
        return self._urls.get(path)

    def put(self, path: str, url: str) -> None:
        self._urls.setdefault(path, url)

    def __contains__(self, path: str) -> bool:
        return path in self._urls

    def __len__(self) -> int:
        return len(self._urls)


_default_cache = DownloadUrlCache()


def default_url_cache() -> DownloadUrlCache:
    """Process-wide cache shared by resolvers that are not given one."""
    return _default_cache


class BlobUrlResolver:
    """Resolve storage paths to download URLs through a cache."""

    def __init__(self, store: BlobStore, cache: DownloadUrlCache | None = None):
        self.store = store
        self.cache = cache if cache is not None else default_url_cache()

    async def resolve(self, path_or_url: str | None) -> str | None:
        """Return a URL for a storage path; URLs pass through, blanks give None.

        Missing blobs resolve to None and are not cached.
        """
        if not path_or_url or not path_or_url.strip():
            return None
        if not is_storage_path(path_or_url):
            return path_or_url

        cached = self.cache.get(path_or_url)
        record_cache_access("blob_url", cached is not None)
        if cached is not None:
            return cached

        try:
            url = await self.store.download_url(path_or_url)
        except BlobNotFoundError:
            logger.warning("blob_url_not_found", path=path_or_url)
            return None

        self.cache.put(path_or_url, url)
        return url
