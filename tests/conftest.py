from __future__ import annotations

import copy
from typing import Any, Callable, Optional

import pytest

from core.errors import DocumentNotFoundError, StoreError
from core.models import Document, DocumentRef, FieldFilter, WriteResult

_MISSING = object()


class FakeBulkWriter:
    def __init__(self, store: "FakeDocumentStore") -> None:
        self._store = store
        self.queued: list[tuple[DocumentRef, str, Any]] = []

    def update(self, ref: DocumentRef, field: str, value: Any) -> None:
        if ref.id in self._store.fail_enqueue_for:
            raise StoreError(f"enqueue rejected for {ref.id}")
        self.queued.append((ref, field, value))

    def flush(self) -> list[WriteResult]:
        if self._store.fail_flush:
            raise StoreError("flush failed")
        results = []
        for ref, field, value in self.queued:
            if ref.id in self._store.fail_writes_for:
                results.append(WriteResult(ref=ref, error=StoreError(f"write failed for {ref.id}")))
                continue
            self._store.collections[ref.collection][ref.id][field] = value
            self._store.bulk_writes.append((ref, field, value))
            results.append(WriteResult(ref=ref))
        self.queued = []
        return results


class FakeDocumentStore:
    """In-memory store with Firestore-like != semantics and failure switches."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.updates: list[tuple[DocumentRef, str, Any]] = []
        self.bulk_writes: list[tuple[DocumentRef, str, Any]] = []
        self.fail_get: Optional[Exception] = None
        self.fail_query: Optional[Exception] = None
        self.fail_list: Optional[Exception] = None
        self.fail_writes_for: set[str] = set()
        self.fail_enqueue_for: set[str] = set()
        self.fail_flush = False
        self.before_list: Optional[Callable[[], None]] = None
        self.before_query: Optional[Callable[[], None]] = None

    def add(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self.collections.setdefault(collection, {})[doc_id] = dict(data)

    def data(self, collection: str, doc_id: str) -> dict[str, Any]:
        return self.collections[collection][doc_id]

    def snapshot(self) -> dict[str, dict[str, dict[str, Any]]]:
        return copy.deepcopy(self.collections)

    def get(self, collection: str, doc_id: str) -> Document:
        if self.fail_get is not None:
            raise self.fail_get
        ref = DocumentRef(collection, doc_id)
        try:
            data = self.collections[collection][doc_id]
        except KeyError:
            raise DocumentNotFoundError(ref) from None
        return Document(ref=ref, data=dict(data))

    def list_documents(self, collection: str) -> list[Document]:
        if self.before_list is not None:
            self.before_list()
        if self.fail_list is not None:
            raise self.fail_list
        return [
            Document(ref=DocumentRef(collection, doc_id), data=dict(data))
            for doc_id, data in self.collections.get(collection, {}).items()
        ]

    def query(self, collection: str, predicate: FieldFilter) -> list[Document]:
        if self.before_query is not None:
            self.before_query()
        if self.fail_query is not None:
            raise self.fail_query
        assert predicate.op == "!="
        matches = []
        for document in self.list_documents(collection):
            value = document.data.get(predicate.field, _MISSING)
            if value is _MISSING or value is predicate.value:
                continue
            matches.append(document)
        return matches

    def update(self, ref: DocumentRef, field: str, value: Any) -> None:
        if ref.id in self.fail_writes_for:
            raise StoreError(f"write failed for {ref.id}")
        self.collections[ref.collection][ref.id][field] = value
        self.updates.append((ref, field, value))

    def update_if_missing(self, ref: DocumentRef, field: str, value: Any) -> bool:
        if ref.id in self.fail_writes_for:
            raise StoreError(f"write failed for {ref.id}")
        data = self.collections[ref.collection][ref.id]
        if field in data:
            return False
        data[field] = value
        self.updates.append((ref, field, value))
        return True

    def bulk_writer(self) -> FakeBulkWriter:
        return FakeBulkWriter(self)

    def list_collections(self) -> list[str]:
        return sorted(self.collections)


@pytest.fixture
def store() -> FakeDocumentStore:
    return FakeDocumentStore()
