"""SQLite document store: one JSON document per row, keyed by (collection, id)."""

import contextlib
import json
import logging
import re
import sqlite3
import threading
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from studwerk.storage.base import (
    DocumentNotFoundError,
    DocumentStore,
    Query,
    Snapshot,
    StoreUnavailableError,
    WriteOp,
)

logger = logging.getLogger(__name__)

_DOCUMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS documents (
    collection  TEXT NOT NULL,
    id          TEXT NOT NULL,
    data        TEXT NOT NULL,
    PRIMARY KEY (collection, id)
);
"""

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _json_path(field: str) -> str:
    if not _FIELD_RE.match(field):
        msg = f"Invalid field name for query: {field!r}"
        raise ValueError(msg)
    return f"$.{field}"


class SqliteDocumentStore(DocumentStore):
    """Document store on a local SQLite file.

    Transactions take the write lock up front (``BEGIN IMMEDIATE``) so a
    read-check-write sequence cannot interleave with another writer, in this
    process or another one.
    """

    def __init__(self, path: str | Path) -> None:
        path = Path(path)
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        self._path = path
        self._conn = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(_DOCUMENTS_TABLE)
        self._lock = threading.RLock()
        self._in_tx = False

    @property
    def supports_transactions(self) -> bool:
        return True

    def new_id(self) -> str:
        return uuid.uuid4().hex

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def get(self, collection: str, doc_id: str) -> Snapshot | None:
        with self._lock:
            return self._read(collection, doc_id)

    def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = self.new_id()
        self._apply([WriteOp("set", collection, doc_id, data)])
        return doc_id

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        self._apply([WriteOp("update", collection, doc_id, fields)])

    def delete(self, collection: str, doc_id: str) -> None:
        self._apply([WriteOp("delete", collection, doc_id)])

    def query(self, collection: str, query: Query) -> list[Snapshot]:
        with self._lock:
            return self._run_query(collection, query)

    @contextmanager
    def _begin(self) -> Iterator[None]:
        with self._lock:
            self._execute("BEGIN IMMEDIATE")
            self._in_tx = True
            try:
                yield
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._commit()
            finally:
                self._in_tx = False

    def _apply(self, ops: list[WriteOp]) -> None:
        with self._lock:
            if self._in_tx:
                self._write_all(ops)
                return
            self._execute("BEGIN IMMEDIATE")
            try:
                self._write_all(ops)
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            self._commit()
        logger.debug("Committed %d write(s) to %s", len(ops), self._path)

    def _commit(self) -> None:
        try:
            self._execute("COMMIT")
        except StoreUnavailableError:
            # a failed COMMIT can leave the transaction open on the connection
            with contextlib.suppress(sqlite3.Error):
                self._conn.execute("ROLLBACK")
            raise

    def _write_all(self, ops: list[WriteOp]) -> None:
        for op in ops:
            if op.kind == "set":
                self._conn.execute(
                    "INSERT OR REPLACE INTO documents (collection, id, data) VALUES (?, ?, ?)",
                    (op.collection, op.doc_id, json.dumps(op.data)),
                )
            elif op.kind == "update":
                current = self._read(op.collection, op.doc_id)
                if current is None:
                    raise DocumentNotFoundError(op.collection, op.doc_id)
                merged = {**current.data, **op.data}
                self._conn.execute(
                    "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
                    (json.dumps(merged), op.collection, op.doc_id),
                )
            else:
                self._conn.execute(
                    "DELETE FROM documents WHERE collection = ? AND id = ?",
                    (op.collection, op.doc_id),
                )

    def _read(self, collection: str, doc_id: str) -> Snapshot | None:
        row = self._conn.execute(
            "SELECT id, data FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        ).fetchone()
        if row is None:
            return None
        return Snapshot(row["id"], json.loads(row["data"]))

    def _run_query(self, collection: str, query: Query) -> list[Snapshot]:
        sql = "SELECT id, data FROM documents WHERE collection = ?"
        params: list[Any] = [collection]
        for field_name, value in query.filters.items():
            sql += " AND json_extract(data, ?) = ?"
            params.extend([_json_path(field_name), value])
        if query.order_by is not None:
            direction = "DESC" if query.descending else "ASC"
            sql += f" ORDER BY json_extract(data, ?) {direction}"
            params.append(_json_path(query.order_by))
        if query.limit is not None:
            sql += " LIMIT ?"
            params.append(query.limit)
        rows = self._conn.execute(sql, params).fetchall()
        return [Snapshot(row["id"], json.loads(row["data"])) for row in rows]

    def _execute(self, sql: str) -> None:
        try:
            self._conn.execute(sql)
        except sqlite3.OperationalError as e:
            msg = f"SQLite store unavailable ({self._path}): {e}"
            raise StoreUnavailableError(msg) from e
