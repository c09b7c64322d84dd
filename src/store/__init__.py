"""Document and blob storage backends."""

from src.config import get_settings
from src.store.blobs import (
    BlobNotFoundError,
    BlobStore,
    BlobUrlResolver,
    DownloadUrlCache,
    FilesystemBlobStore,
    MemoryBlobStore,
    is_storage_path,
)
from src.store.documents import (
    SERVER_TIMESTAMP,
    ArrayUnion,
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    WriteBatch,
)
from src.store.memory import MemoryDocumentStore


def create_document_store() -> DocumentStore:
    """Build the configured document store backend."""
    settings = get_settings()
    if settings.document_backend == "redis":
        from src.store.redis_store import RedisDocumentStore

        return RedisDocumentStore()
    return MemoryDocumentStore()


def create_blob_store() -> BlobStore:
    """Build the configured blob store backend."""
    settings = get_settings()
    if settings.blob_backend == "filesystem":
        return FilesystemBlobStore(settings.blob_root, settings.blob_base_url)
    return MemoryBlobStore(settings.blob_base_url)


__all__ = [
    "SERVER_TIMESTAMP",
    "ArrayUnion",
    "BlobNotFoundError",
    "BlobStore",
    "BlobUrlResolver",
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentStoreError",
    "DownloadUrlCache",
    "FilesystemBlobStore",
    "MemoryBlobStore",
    "MemoryDocumentStore",
    "WriteBatch",
    "create_blob_store",
    "create_document_store",
    "is_storage_path",
]
