"""Document store contract shared by the memory and Redis backends.

A store holds JSON-like documents addressed by slash-separated paths. All
writes go through :class:`WriteBatch`, which commits its operations as one
atomic unit. Single writes (``set``/``update``/``delete``) are one-operation
batches.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

import structlog

from src.store import paths

logger = structlog.get_logger()


class DocumentNotFoundError(KeyError):
    """Raised when an update targets a document that does not exist."""

    def __init__(self, path: str):
        super().__init__(path)
        self.path = path

    def __str__(self) -> str:
        return f"Document not found: {self.path}"


class DocumentStoreError(RuntimeError):
    """Raised when the backend rejects or fails a commit."""


class _ServerTimestamp:
    """Write sentinel resolved to the commit time."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class ArrayUnion:
    """Write sentinel appending values that are not already in the array."""

    values: tuple[Any, ...]

    def __init__(self, *values: Any):
        object.__setattr__(self, "values", tuple(values))


@dataclass
class WriteOp:
    """A single queued write."""

    kind: Literal["set", "update", "delete"]
    path: str
    data: dict[str, Any] = field(default_factory=dict)
    merge: bool = False


def _resolve(current: Any, value: Any, now: datetime, merge: bool) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, ArrayUnion):
        existing = list(current) if isinstance(current, list) else []
        for item in value.values:
            if item not in existing:
                existing.append(item)
        return existing
    if isinstance(value, dict):
        base = copy.deepcopy(current) if merge and isinstance(current, dict) else {}
        for key, nested in value.items():
            base[key] = _resolve(base.get(key), nested, now, merge)
        return base
    if isinstance(value, list):
        return [_resolve(None, item, now, False) for item in value]
    return copy.deepcopy(value)


def apply_write(
    current: dict[str, Any] | None,
    op: WriteOp,
    now: datetime,
) -> dict[str, Any] | None:
    """Compute a document's next state after one write.

    Returns None when the document is deleted. ``set`` without merge replaces
    the document; ``set`` with merge and ``update`` merge maps recursively.
    """
    if op.kind == "delete":
        return None

    if op.kind == "update":
        if current is None:
            raise DocumentNotFoundError(op.path)
        return _resolve(current, op.data, now, merge=True)

    if op.merge and current is not None:
        return _resolve(current, op.data, now, merge=True)
    return _resolve(None, op.data, now, merge=False)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WriteBatch:
    """Collects writes and commits them atomically."""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._ops: list[WriteOp] = []
        self._committed = False

    @property
    def ops(self) -> list[WriteOp]:
        return list(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def set(self, path: str, data: dict[str, Any], merge: bool = False) -> "WriteBatch":
        self._ops.append(WriteOp("set", path, dict(data), merge))
        return self

    def update(self, path: str, data: dict[str, Any]) -> "WriteBatch":
        self._ops.append(WriteOp("update", path, dict(data)))
        return self

    def delete(self, path: str) -> "WriteBatch":
        self._ops.append(WriteOp("delete", path))
        return self

    async def commit(self) -> None:
        """Apply every queued write or none of them."""
        if self._committed:
            raise DocumentStoreError("Batch already committed")
        self._committed = True
        if not self._ops:
            return
        await self._store._commit(self._ops)
        logger.debug("batch_committed", op_count=len(self._ops))


class DocumentStore(ABC):
    """Async document store with atomic batches."""

    @abstractmethod
    async def get(self, path: str) -> dict[str, Any] | None:
        """Get a document by path, with its ``id`` field set, or None."""

    @abstractmethod
    async def list_collection(self, collection: str) -> list[dict[str, Any]]:
        """List every document in a collection, in insertion order."""

    @abstractmethod
    async def _commit(self, ops: list[WriteOp]) -> None:
        """Apply operations atomically."""

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def new_id(self) -> str:
        return uuid4().hex

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        """Create a document with a generated id and return the id."""
        doc_id = self.new_id()
        await self.set(paths.child(collection, doc_id), data)
        return doc_id

    async def set(self, path: str, data: dict[str, Any], merge: bool = False) -> None:
        await self.batch().set(path, data, merge=merge).commit()

    async def update(self, path: str, data: dict[str, Any]) -> None:
        await self.batch().update(path, data).commit()

    async def delete(self, path: str) -> None:
        await self.batch().delete(path).commit()

    async def close(self) -> None:
        """Release backend resources."""
