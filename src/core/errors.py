"""Error taxonomy shared by the core and adapters.

Store adapters raise ``StoreError`` subclasses. The core turns them into
``DeliveryError`` subclasses whose ``code`` the transport maps to a status.
"""

from __future__ import annotations

from core.models import DocumentRef

NOT_FOUND = "NOT_FOUND"
INTERNAL = "INTERNAL"
INVALID_ARGUMENT = "INVALID_ARGUMENT"


class StoreError(Exception):
    """Raised by a document store when an operation fails."""


class DocumentNotFoundError(StoreError):
    """Raised by ``get`` when no document exists for the reference."""

    def __init__(self, ref: DocumentRef) -> None:
        super().__init__(f"Document not found: {ref.collection}/{ref.id}")
        self.ref = ref


class DeliveryError(Exception):
    """Failure surfaced to the RPC caller."""

    code = INTERNAL

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class NotFoundError(DeliveryError):
    code = NOT_FOUND


class InternalError(DeliveryError):
    code = INTERNAL


class InvalidArgumentError(DeliveryError):
    code = INVALID_ARGUMENT
