"""In-process document store for development and tests."""

import copy
from typing import Any

import structlog

from src.store import paths
from src.store.documents import (
    DocumentStore,
    DocumentStoreError,
    WriteOp,
    apply_write,
    utcnow,
)

logger = structlog.get_logger()


class MemoryDocumentStore(DocumentStore):
    """Dict-backed store. Commits are atomic because they never suspend.

    ``fail_paths`` makes any commit touching one of those paths raise
    :class:`DocumentStoreError` without applying anything.
    """

    def __init__(self, fail_paths: set[str] | None = None):
        self._docs: dict[str, dict[str, Any]] = {}
        self.fail_paths: set[str] = set(fail_paths or ())
        self.commit_count = 0

    async def get(self, path: str) -> dict[str, Any] | None:
        data = self._docs.get(path)
        if data is None:
            return None
        _, doc_id = paths.split(path)
        return {"id": doc_id, **copy.deepcopy(data)}

    async def list_collection(self, collection: str) -> list[dict[str, Any]]:
        documents = []
        for path, data in self._docs.items():
            parent, doc_id = paths.split(path)
            if parent == collection:
                documents.append({"id": doc_id, **copy.deepcopy(data)})
        return documents

    async def _commit(self, ops: list[WriteOp]) -> None:
        blocked = [op.path for op in ops if op.path in self.fail_paths]
        if blocked:
            logger.warning("memory_store_commit_rejected", paths=blocked)
            raise DocumentStoreError(f"Commit rejected for {blocked[0]}")

        now = utcnow()
        staged: dict[str, dict[str, Any] | None] = {}
        for op in ops:
            current = staged[op.path] if op.path in staged else self._docs.get(op.path)
            staged[op.path] = apply_write(current, op, now)

        for path, data in staged.items():
            if data is None:
                self._docs.pop(path, None)
            else:
                self._docs[path] = data
        self.commit_count += 1

    def all_paths(self) -> list[str]:
        """All stored document paths."""
        return list(self._docs)
