"""In-process document store.

Used for tests and the ``memory`` backend. Capability toggles let callers
reproduce a hosted backend's limits: missing composite indexes
(``ordering_indexes``) and no transactional reads (``transactions=False``).
``fail_next`` injects one-shot failures.
"""

import copy
import logging
import threading
import uuid
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from studwerk.storage.base import (
    DocumentNotFoundError,
    DocumentStore,
    Operation,
    OrderingUnsupportedError,
    Query,
    Snapshot,
    StoreUnavailableError,
    WriteOp,
    sort_snapshots,
)

logger = logging.getLogger(__name__)

# (collection, sorted equality-filter fields, order_by field)
OrderingIndex = tuple[str, tuple[str, ...], str]


class MemoryDocumentStore(DocumentStore):
    """Dict-backed store guarded by one re-entrant lock.

    Usage::

        store = MemoryDocumentStore(ordering_indexes=set())
        store.fail_next("update", "jobs")
        store.update("jobs", job_id, {...})  # raises StoreUnavailableError
    """

    def __init__(
        self,
        transactions: bool = True,
        ordering_indexes: Iterable[OrderingIndex] | None = None,
    ) -> None:
        self._transactions = transactions
        self._indexes = None if ordering_indexes is None else set(ordering_indexes)
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self._faults: list[tuple[Operation, str | None, Exception]] = []

    @property
    def supports_transactions(self) -> bool:
        return self._transactions

    def new_id(self) -> str:
        return uuid.uuid4().hex

    def fail_next(
        self,
        operation: Operation,
        collection: str | None = None,
        error: Exception | None = None,
    ) -> None:
        """Make the next matching operation raise ``error`` (StoreUnavailableError by default)."""
        if error is None:
            error = StoreUnavailableError(f"injected failure on {operation}")
        with self._lock:
            self._faults.append((operation, collection, error))

    def get(self, collection: str, doc_id: str) -> Snapshot | None:
        with self._lock:
            self._maybe_fail("get", {collection})
            return self._read(collection, doc_id)

    def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = self.new_id()
        with self._lock:
            self._maybe_fail("add", {collection})
            self._data.setdefault(collection, {})[doc_id] = copy.deepcopy(data)
        return doc_id

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            self._maybe_fail("update", {collection})
            docs = self._data.get(collection, {})
            if doc_id not in docs:
                raise DocumentNotFoundError(collection, doc_id)
            docs[doc_id].update(copy.deepcopy(fields))

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self._maybe_fail("delete", {collection})
            self._data.get(collection, {}).pop(doc_id, None)

    def query(self, collection: str, query: Query) -> list[Snapshot]:
        with self._lock:
            self._maybe_fail("query", {collection})
            return self._run_query(collection, query)

    @contextmanager
    def _begin(self) -> Iterator[None]:
        with self._lock:
            yield

    def _tx_get(self, collection: str, doc_id: str) -> Snapshot | None:
        with self._lock:
            return self._read(collection, doc_id)

    def _tx_query(self, collection: str, query: Query) -> list[Snapshot]:
        with self._lock:
            return self._run_query(collection, query)

    def _apply(self, ops: list[WriteOp]) -> None:
        with self._lock:
            self._maybe_fail("commit", {op.collection for op in ops})
            staged = copy.deepcopy(self._data)
            for op in ops:
                docs = staged.setdefault(op.collection, {})
                if op.kind == "set":
                    docs[op.doc_id] = copy.deepcopy(op.data)
                elif op.kind == "update":
                    if op.doc_id not in docs:
                        raise DocumentNotFoundError(op.collection, op.doc_id)
                    docs[op.doc_id].update(copy.deepcopy(op.data))
                else:
                    docs.pop(op.doc_id, None)
            self._data = staged
            logger.debug("Committed %d staged write(s)", len(ops))

    def _read(self, collection: str, doc_id: str) -> Snapshot | None:
        data = self._data.get(collection, {}).get(doc_id)
        if data is None:
            return None
        return Snapshot(doc_id, copy.deepcopy(data))

    def _run_query(self, collection: str, query: Query) -> list[Snapshot]:
        if query.order_by is not None and query.filters and self._indexes is not None:
            shape = (collection, tuple(sorted(query.filters)), query.order_by)
            if shape not in self._indexes:
                msg = f"No index for {collection} filtered on {shape[1]} ordered by {query.order_by}"
                raise OrderingUnsupportedError(msg)
        matches = [
            Snapshot(doc_id, copy.deepcopy(data))
            for doc_id, data in self._data.get(collection, {}).items()
            if all(data.get(k) == v for k, v in query.filters.items())
        ]
        return sort_snapshots(matches, query)

    def _maybe_fail(self, operation: Operation, collections: set[str]) -> None:
        for i, (op, coll, error) in enumerate(self._faults):
            if op == operation and (coll is None or coll in collections):
                del self._faults[i]
                raise error
