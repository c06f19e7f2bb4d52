"""Document store interface consumed by the marketplace stores.

A store is addressed by collection name + document id and supports equality
queries with optional ordering and limit. Writes can be grouped in a
WriteBatch (atomic on commit) and, where the backend allows it, a
Transaction that also reads under isolation.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Literal

from studwerk.core.errors import TransientStoreError

logger = logging.getLogger(__name__)

Operation = Literal["get", "add", "update", "delete", "query", "commit"]


class StoreError(Exception):
    """Base class for backend failures."""


class StoreUnavailableError(StoreError, TransientStoreError):
    """The backend could not be reached. Safe to retry."""


class DocumentNotFoundError(StoreError):
    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"No document '{doc_id}' in '{collection}'")


class OrderingUnsupportedError(StoreError):
    """The backend cannot serve this filter + order_by combination (e.g. missing index)."""


class TransactionsUnsupportedError(StoreError):
    """The backend has no transactional reads."""


@dataclass(frozen=True)
class Query:
    """Equality filters plus optional ordering and limit."""

    filters: dict[str, Any] = field(default_factory=dict)
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None

    def unordered(self) -> "Query":
        """Same filters with ordering and limit dropped."""
        return Query(filters=dict(self.filters))


@dataclass(frozen=True)
class Snapshot:
    """A document as read from the store."""

    id: str
    data: dict[str, Any]


@dataclass(frozen=True)
class WriteOp:
    kind: Literal["set", "update", "delete"]
    collection: str
    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)


class WriteBatch:
    """Staged writes applied all-or-nothing by ``commit``."""

    def __init__(self, store: "DocumentStore") -> None:
        self._store = store
        self._ops: list[WriteOp] = []
        self._committed = False

    @property
    def ops(self) -> list[WriteOp]:
        return list(self._ops)

    def __len__(self) -> int:
        return len(self._ops)

    def add(self, collection: str, data: dict[str, Any]) -> str:
        """Stage a create with a generated id and return that id."""
        doc_id = self._store.new_id()
        self._ops.append(WriteOp("set", collection, doc_id, dict(data)))
        return doc_id

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        self._ops.append(WriteOp("update", collection, doc_id, dict(fields)))

    def delete(self, collection: str, doc_id: str) -> None:
        self._ops.append(WriteOp("delete", collection, doc_id))

    def commit(self) -> None:
        if self._committed:
            msg = "WriteBatch already committed"
            raise RuntimeError(msg)
        self._committed = True
        if self._ops:
            self._store._apply(self._ops)


class Transaction(WriteBatch):
    """A WriteBatch whose reads see a consistent view until commit.

    Reads must come before writes; staged writes are not visible to reads
    in the same transaction.
    """

    def get(self, collection: str, doc_id: str) -> Snapshot | None:
        return self._store._tx_get(collection, doc_id)

    def query(self, collection: str, query: Query) -> list[Snapshot]:
        return self._store._tx_query(collection, query)


class DocumentStore(ABC):
    """Base class that every document store backend must implement."""

    @property
    @abstractmethod
    def supports_transactions(self) -> bool:
        """True if ``transaction()`` is available."""

    @abstractmethod
    def new_id(self) -> str:
        """Generate a fresh document id."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Snapshot | None:
        """Return the document or None if it does not exist."""

    @abstractmethod
    def add(self, collection: str, data: dict[str, Any]) -> str:
        """Create a document with a generated id and return the id."""

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        """Merge ``fields`` into an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist.
        """

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document. Deleting a missing document is a no-op."""

    @abstractmethod
    def query(self, collection: str, query: Query) -> list[Snapshot]:
        """Run an equality query.

        Raises:
            OrderingUnsupportedError: If the backend cannot order this query.
        """

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Run a block atomically; the block's staged writes commit on clean exit.

        Any exception inside the block discards every staged write.
        """
        if not self.supports_transactions:
            msg = f"{type(self).__name__} does not support transactions"
            raise TransactionsUnsupportedError(msg)
        with self._begin():
            tx = Transaction(self)
            yield tx
            tx.commit()

    def close(self) -> None:  # noqa: B027
        """Release backend resources."""

    @abstractmethod
    def _apply(self, ops: list[WriteOp]) -> None:
        """Apply staged writes atomically."""

    def _begin(self) -> Any:
        msg = f"{type(self).__name__} does not support transactions"
        raise TransactionsUnsupportedError(msg)

    def _tx_get(self, collection: str, doc_id: str) -> Snapshot | None:
        return self.get(collection, doc_id)

    def _tx_query(self, collection: str, query: Query) -> list[Snapshot]:
        return self.query(collection, query)


@contextmanager
def transaction_if_supported(store: DocumentStore) -> Iterator[Transaction | None]:
    """Yield a transaction when the backend has them, otherwise None.

    Callers pass the yielded value as ``tx``; None means read and write
    straight through the store.
    """
    if store.supports_transactions:
        with store.transaction() as tx:
            yield tx
    else:
        yield None


def query_with_fallback(
    reader: "DocumentStore | Transaction",
    collection: str,
    query: Query,
) -> list[Snapshot]:
    """Ask the backend for an ordered result; sort locally if it cannot order.

    The returned list always follows ``query.order_by`` / ``query.limit``,
    whatever the backend's index coverage.
    """
    try:
        return reader.query(collection, query)
    except OrderingUnsupportedError as e:
        logger.warning(
            "Ordered query on '%s' unsupported (%s), sorting client-side", collection, e,
        )
    return sort_snapshots(reader.query(collection, query.unordered()), query)


def sort_snapshots(snapshots: list[Snapshot], query: Query) -> list[Snapshot]:
    """Order and limit snapshots the way ``query`` asks, in memory."""
    result = list(snapshots)
    if query.order_by is not None:
        key = query.order_by
        result.sort(key=lambda s: (s.data.get(key) is not None, s.data.get(key) or ""),
                    reverse=query.descending)
    if query.limit is not None:
        result = result[: query.limit]
    return result
