"""Redis-backed document store.

Each document is a JSON string at ``{prefix}doc:{path}``. Each collection is a
sorted set at ``{prefix}col:{collection}`` whose members are document ids,
scored by first insertion so listing keeps insertion order. Batches run as
optimistic WATCH/MULTI/EXEC transactions and are retried when a watched key
changes underneath them.
"""

import json
import time
from datetime import datetime
from typing import Any

import redis.asyncio as redis
import structlog
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.config import get_settings
from src.store import paths
from src.store.documents import DocumentStore, WriteOp, apply_write, utcnow

logger = structlog.get_logger()

_DATE_KEY = "$date"


def _default(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_DATE_KEY: value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _object_hook(obj: dict[str, Any]) -> Any:
    if len(obj) == 1 and _DATE_KEY in obj:
        return datetime.fromisoformat(obj[_DATE_KEY])
    return obj


def encode_document(data: dict[str, Any]) -> str:
    """Serialize a document, keeping timestamps as tagged ISO strings."""
    return json.dumps(data, default=_default, ensure_ascii=False)


def decode_document(raw: str | bytes) -> dict[str, Any]:
    return json.loads(raw, object_hook=_object_hook)


class RedisDocumentStore(DocumentStore):
    """Document store on top of redis.asyncio."""

    def __init__(self, client: redis.Redis | None = None, prefix: str | None = None):
        settings = get_settings()
        self.client = client
        self._url = settings.redis_url
        self._prefix = prefix if prefix is not None else settings.redis_key_prefix

    async def connect(self) -> None:
        """Connect to Redis."""
        if self.client is None:
            self.client = redis.from_url(self._url, decode_responses=True)
            logger.info("document_store_connected", backend="redis")

    async def close(self) -> None:
        """Close Redis connection."""
        if self.client:
            await self.client.close()
            self.client = None

    def _doc_key(self, path: str) -> str:
        return f"{self._prefix}doc:{path}"

    def _col_key(self, collection: str) -> str:
        return f"{self._prefix}col:{collection}"

    async def get(self, path: str) -> dict[str, Any] | None:
        if self.client is None:
            await self.connect()

        raw = await self.client.get(self._doc_key(path))
        if raw is None:
            return None
        _, doc_id = paths.split(path)
        return {"id": doc_id, **decode_document(raw)}

    async def list_collection(self, collection: str) -> list[dict[str, Any]]:
        if self.client is None:
            await self.connect()

        doc_ids = await self.client.zrange(self._col_key(collection), 0, -1)
        if not doc_ids:
            return []

        keys = [self._doc_key(paths.child(collection, doc_id)) for doc_id in doc_ids]
        values = await self.client.mget(keys)

        documents = []
        for doc_id, raw in zip(doc_ids, values):
            # Index entry without a document: a delete raced the listing
            if raw is None:
                continue
            documents.append({"id": doc_id, **decode_document(raw)})
        return documents

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
        retry=retry_if_exception_type((WatchError, RedisConnectionError, RedisTimeoutError)),
        reraise=True,
    )
    async def _commit(self, ops: list[WriteOp]) -> None:
        if self.client is None:
            await self.connect()

        touched = list(dict.fromkeys(op.path for op in ops))
        keys = [self._doc_key(path) for path in touched]

        async with self.client.pipeline(transaction=True) as pipe:
            await pipe.watch(*keys)

            staged: dict[str, dict[str, Any] | None] = {}
            for path in touched:
                raw = await pipe.get(self._doc_key(path))
                staged[path] = decode_document(raw) if raw is not None else None

            now = utcnow()
            for op in ops:
                staged[op.path] = apply_write(staged[op.path], op, now)

            score = time.time_ns()
            pipe.multi()
            for path, data in staged.items():
                collection, doc_id = paths.split(path)
                if data is None:
                    pipe.delete(self._doc_key(path))
                    pipe.zrem(self._col_key(collection), doc_id)
                else:
                    pipe.set(self._doc_key(path), encode_document(data))
                    pipe.zadd(self._col_key(collection), {doc_id: score}, nx=True)
            await pipe.execute()

        logger.debug("redis_batch_committed", doc_count=len(touched))
