"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for document store adapters so that the
core can be reused with different backends.
"""

from __future__ import annotations

from typing import Any, Protocol

from core.models import Document, DocumentRef, FieldFilter, WriteResult


class BulkWriterPort(Protocol):
    """Batch of field updates flushed together, best-effort per item."""

    def update(self, ref: DocumentRef, field: str, value: Any) -> None:
        ...

    def flush(self) -> list[WriteResult]:
        ...


class DocumentStorePort(Protocol):
    """Document store operations required by the core pipeline."""

    def get(self, collection: str, doc_id: str) -> Document:
        """Return the document or raise ``DocumentNotFoundError``."""
        ...

    def query(self, collection: str, predicate: FieldFilter) -> list[Document]:
        ...

    def list_documents(self, collection: str) -> list[Document]:
        ...

    def update(self, ref: DocumentRef, field: str, value: Any) -> None:
        ...

    def update_if_missing(self, ref: DocumentRef, field: str, value: Any) -> bool:
        """Set ``field`` only if the stored document lacks it; True when written."""
        ...

    def bulk_writer(self) -> BulkWriterPort:
        ...

    def list_collections(self) -> list[str]:
        ...
