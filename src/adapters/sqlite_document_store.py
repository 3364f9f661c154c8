"""SQLite document store adapter.

Implements the core DocumentStorePort by keeping each document as a JSON
object in a single SQLite table keyed by (collection, id).
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import closing, contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from core.errors import DocumentNotFoundError, StoreError
from core.models import Document, DocumentRef, FieldFilter, WriteResult

LOGGER = logging.getLogger(__name__)

_MISSING = object()


def _equal(left: Any, right: Any) -> bool:
    # Booleans never compare equal to numbers, so read=1 is not read=True.
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


# Comparison semantics follow Firestore: a document without the field never
# matches, not even for "!=".
_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": _equal,
    "!=": lambda left, right: not _equal(left, right),
}


class SQLiteDocumentStore:
    """Thin SQLite wrapper that satisfies the DocumentStorePort contract."""

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and is always closed."""

        with closing(self._connect()) as conn, conn:
            yield conn

    def init_db(self) -> None:
        """Create the documents table if it does not exist.

        Fields:
        - collection: collection name, e.g. users or messages
        - id: document id, unique within the collection
        - data: JSON-encoded document body
        - updated_at: timestamp of the last write for debugging
        """

        with self._transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TIMESTAMP NOT NULL,
                    PRIMARY KEY (collection, id)
                )
                """
            )

    def get(self, collection: str, doc_id: str) -> Document:
        """Return one document or raise DocumentNotFoundError."""

        ref = DocumentRef(collection, doc_id)
        try:
            with self._transaction() as conn:
                row = conn.execute(
                    "SELECT id, data FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"get {collection}/{doc_id} failed: {exc}") from exc
        if row is None:
            raise DocumentNotFoundError(ref)
        return Document(ref=ref, data=json.loads(row["data"]))

    def list_documents(self, collection: str) -> list[Document]:
        """Return every document in a collection in insertion order."""

        try:
            with self._transaction() as conn:
                rows = conn.execute(
                    "SELECT id, data FROM documents WHERE collection = ? ORDER BY rowid",
                    (collection,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"list {collection} failed: {exc}") from exc
        return [
            Document(ref=DocumentRef(collection, row["id"]), data=json.loads(row["data"]))
            for row in rows
        ]

    def query(self, collection: str, predicate: FieldFilter) -> list[Document]:
        """Return documents whose field satisfies the predicate."""

        compare = _OPERATORS.get(predicate.op)
        if compare is None:
            raise StoreError(f"Unsupported query operator: {predicate.op}")

        matches = []
        for document in self.list_documents(collection):
            value = document.data.get(predicate.field, _MISSING)
            if value is _MISSING:
                continue
            if compare(value, predicate.value):
                matches.append(document)
        return matches

    def set(self, ref: DocumentRef, data: dict[str, Any]) -> None:
        """Create or replace a whole document."""

        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO documents (collection, id, data, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(collection, id) DO UPDATE SET
                        data = excluded.data,
                        updated_at = excluded.updated_at
                    """,
                    (ref.collection, ref.id, json.dumps(data), _now()),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"set {ref.collection}/{ref.id} failed: {exc}") from exc

    def update(self, ref: DocumentRef, field: str, value: Any) -> None:
        """Set one top-level field on an existing document."""

        try:
            with self._transaction() as conn:
                self._update_in(conn, ref, field, value)
        except sqlite3.Error as exc:
            raise StoreError(f"update {ref.collection}/{ref.id} failed: {exc}") from exc

    def update_if_missing(self, ref: DocumentRef, field: str, value: Any) -> bool:
        """Set a field only if the stored document still lacks it.

        The read and the write share one IMMEDIATE transaction, so a value
        written by another process since the caller's snapshot is never
        overwritten. Returns True when the field was written.
        """

        try:
            with self._transaction() as conn:
                conn.execute("BEGIN IMMEDIATE")
                row = conn.execute(
                    "SELECT data FROM documents WHERE collection = ? AND id = ?",
                    (ref.collection, ref.id),
                ).fetchone()
                if row is None:
                    raise DocumentNotFoundError(ref)
                data = json.loads(row["data"])
                if field in data:
                    return False
                data[field] = value
                conn.execute(
                    "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND id = ?",
                    (json.dumps(data), _now(), ref.collection, ref.id),
                )
                return True
        except sqlite3.Error as exc:
            raise StoreError(f"update {ref.collection}/{ref.id} failed: {exc}") from exc

    def bulk_writer(self) -> "SQLiteBulkWriter":
        return SQLiteBulkWriter(self)

    def list_collections(self) -> list[str]:
        try:
            with self._transaction() as conn:
                rows = conn.execute(
                    "SELECT DISTINCT collection FROM documents ORDER BY collection"
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"list collections failed: {exc}") from exc
        return [row["collection"] for row in rows]

    def _update_in(self, conn: sqlite3.Connection, ref: DocumentRef, field: str, value: Any) -> None:
        row = conn.execute(
            "SELECT data FROM documents WHERE collection = ? AND id = ?",
            (ref.collection, ref.id),
        ).fetchone()
        if row is None:
            raise DocumentNotFoundError(ref)
        data = json.loads(row["data"])
        data[field] = value
        conn.execute(
            "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND id = ?",
            (json.dumps(data), _now(), ref.collection, ref.id),
        )


class SQLiteBulkWriter:
    """Queue of field updates applied in one connection on flush.

    Each update commits on its own so a failing item does not roll back the
    rest of the batch.
    """

    def __init__(self, store: SQLiteDocumentStore) -> None:
        self._store = store
        self._queue: list[tuple[DocumentRef, str, Any]] = []

    def update(self, ref: DocumentRef, field: str, value: Any) -> None:
        self._queue.append((ref, field, value))

    def flush(self) -> list[WriteResult]:
        queue, self._queue = self._queue, []
        if not queue:
            return []

        results: list[WriteResult] = []
        with closing(self._store._connect()) as conn:
            for ref, field, value in queue:
                try:
                    with conn:
                        self._store._update_in(conn, ref, field, value)
                except (sqlite3.Error, StoreError) as exc:
                    LOGGER.debug("Bulk update failed for %s/%s: %s", ref.collection, ref.id, exc)
                    results.append(WriteResult(ref=ref, error=exc))
                    continue
                results.append(WriteResult(ref=ref))
        return results


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()
