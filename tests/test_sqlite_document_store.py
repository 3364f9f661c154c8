from __future__ import annotations

import asyncio
import sqlite3

import pytest

from adapters.sqlite_document_store import SQLiteDocumentStore
from core.config import CollectionsConfig, MessageFieldsConfig
from core.delivery import MessageDeliveryCoordinator
from core.errors import DocumentNotFoundError, StoreError
from core.models import DocumentRef, FieldFilter
from core.reconciler import ReadStateReconciler


@pytest.fixture
def sqlite_store(tmp_path) -> SQLiteDocumentStore:
    store = SQLiteDocumentStore(str(tmp_path / "documents.db"))
    store.init_db()
    return store


def test_get_returns_document_or_raises_not_found(sqlite_store) -> None:
    sqlite_store.set(DocumentRef("users", "u1"), {"suffixType": "cat"})

    document = sqlite_store.get("users", "u1")

    assert document.id == "u1"
    assert document.data == {"suffixType": "cat"}
    with pytest.raises(DocumentNotFoundError):
        sqlite_store.get("users", "missing")


def test_not_equal_query_skips_documents_without_the_field(sqlite_store) -> None:
    sqlite_store.set(DocumentRef("messages", "unread"), {"message": "a", "read": False})
    sqlite_store.set(DocumentRef("messages", "read"), {"message": "b", "read": True})
    sqlite_store.set(DocumentRef("messages", "legacy"), {"message": "c"})
    sqlite_store.set(DocumentRef("messages", "numeric"), {"message": "d", "read": 1})

    documents = sqlite_store.query("messages", FieldFilter("read", "!=", True))

    assert [document.id for document in documents] == ["unread", "numeric"]


def test_unsupported_operator_raises(sqlite_store) -> None:
    with pytest.raises(StoreError):
        sqlite_store.query("messages", FieldFilter("read", "<", 1))


def test_update_sets_single_field(sqlite_store) -> None:
    ref = DocumentRef("messages", "m1")
    sqlite_store.set(ref, {"message": "hello"})

    sqlite_store.update(ref, "read", False)

    assert sqlite_store.get("messages", "m1").data == {"message": "hello", "read": False}
    with pytest.raises(DocumentNotFoundError):
        sqlite_store.update(DocumentRef("messages", "nope"), "read", False)


def test_bulk_writer_reports_per_item_outcome(sqlite_store) -> None:
    sqlite_store.set(DocumentRef("messages", "m1"), {"message": "a", "read": False})
    writer = sqlite_store.bulk_writer()
    writer.update(DocumentRef("messages", "m1"), "read", True)
    writer.update(DocumentRef("messages", "gone"), "read", True)

    results = writer.flush()

    assert [(result.ref.id, result.ok) for result in results] == [("m1", True), ("gone", False)]
    assert sqlite_store.get("messages", "m1").data["read"] is True
    assert writer.flush() == []


def test_list_collections(sqlite_store) -> None:
    sqlite_store.set(DocumentRef("users", "u1"), {})
    sqlite_store.set(DocumentRef("messages", "m1"), {})

    assert sqlite_store.list_collections() == ["messages", "users"]


def test_delivery_end_to_end(sqlite_store) -> None:
    sqlite_store.set(DocumentRef("users", "u1"), {"suffixType": "cat"})
    sqlite_store.set(DocumentRef("messages", "m1"), {"message": "hello", "read": False})
    sqlite_store.set(DocumentRef("messages", "m2"), {"message": "world", "read": True})
    sqlite_store.set(DocumentRef("messages", "m3"), {"message": "legacy"})
    coordinator = MessageDeliveryCoordinator(sqlite_store)

    async def run():
        first = await coordinator.get_chat_messages("u1")
        await coordinator.close()
        second = await coordinator.get_chat_messages("u1")
        return first, second

    first, second = asyncio.run(run())

    assert first.messages == ["hellonyan", "legacynyan"]
    assert second.messages == []
    assert sqlite_store.get("messages", "m1").data["read"] is True
    assert sqlite_store.get("messages", "m2").data == {"message": "world", "read": True}
    assert sqlite_store.get("messages", "m3").data["read"] is True


def test_update_if_missing_never_overwrites(sqlite_store) -> None:
    ref = DocumentRef("messages", "m1")
    sqlite_store.set(ref, {"message": "legacy"})

    assert sqlite_store.update_if_missing(ref, "read", False) is True
    sqlite_store.update(ref, "read", True)
    assert sqlite_store.update_if_missing(ref, "read", False) is False

    assert sqlite_store.get("messages", "m1").data == {"message": "legacy", "read": True}
    with pytest.raises(DocumentNotFoundError):
        sqlite_store.update_if_missing(DocumentRef("messages", "nope"), "read", False)


def test_reconcile_with_stale_snapshot_keeps_read_flag(sqlite_store) -> None:
    ref = DocumentRef("messages", "legacy")
    sqlite_store.set(ref, {"message": "old"})
    stale = sqlite_store.list_documents("messages")
    sqlite_store.update(ref, "read", True)
    sqlite_store.list_documents = lambda collection: stale

    backfilled = ReadStateReconciler(sqlite_store, CollectionsConfig(), MessageFieldsConfig()).reconcile()

    assert backfilled == 0
    assert sqlite_store.get("messages", "legacy").data["read"] is True


class RecordingStore(SQLiteDocumentStore):
    def __init__(self, db_path: str) -> None:
        super().__init__(db_path)
        self.opened: list[sqlite3.Connection] = []

    def _connect(self) -> sqlite3.Connection:
        conn = super()._connect()
        self.opened.append(conn)
        return conn


def test_every_connection_is_closed(tmp_path) -> None:
    store = RecordingStore(str(tmp_path / "documents.db"))
    store.init_db()
    ref = DocumentRef("messages", "m1")
    store.set(ref, {"message": "hello"})
    store.get("messages", "m1")
    store.update_if_missing(ref, "read", False)
    store.update(ref, "read", False)
    store.query("messages", FieldFilter("read", "!=", True))
    store.list_collections()
    writer = store.bulk_writer()
    writer.update(ref, "read", True)
    writer.flush()
    with pytest.raises(DocumentNotFoundError):
        store.get("messages", "missing")

    assert len(store.opened) >= 9
    for conn in store.opened:
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")
