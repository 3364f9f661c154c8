"""Read-state backfill for message documents (core domain)."""

from __future__ import annotations

import logging

from core.config import CollectionsConfig, MessageFieldsConfig
from core.errors import InternalError
from core.models import ReadState, read_state_of
from core.ports import DocumentStorePort

LOGGER = logging.getLogger(__name__)


class ReadStateReconciler:
    """Assign ``unread`` to message documents that predate the read flag."""

    def __init__(
        self,
        store: DocumentStorePort,
        collections: CollectionsConfig,
        fields: MessageFieldsConfig,
    ) -> None:
        self._store = store
        self._collections = collections
        self._fields = fields

    def reconcile(self) -> int:
        """Backfill missing read flags and return how many were written.

        Documents already carrying a read state are left alone, so repeated
        runs are no-ops. A failed write is logged and the scan moves on.
        """

        try:
            documents = self._store.list_documents(self._collections.messages)
        except Exception as exc:
            LOGGER.exception("Failed to scan %s for read state", self._collections.messages)
            raise InternalError(f"Failed to scan messages: {exc}") from exc

        backfilled = 0
        for document in documents:
            if read_state_of(document.data, self._fields.read) is not ReadState.UNSET:
                continue
            # The snapshot may be stale; the store re-checks the field before writing.
            try:
                written = self._store.update_if_missing(document.ref, self._fields.read, False)
            except Exception:
                LOGGER.exception("Failed to backfill read state for document %s", document.id)
                continue
            if written:
                backfilled += 1

        if backfilled:
            LOGGER.info("Backfilled read state on %s messages", backfilled)
        return backfilled
