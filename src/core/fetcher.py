"""Unread message selection (core domain)."""

from __future__ import annotations

import logging

from core.config import CollectionsConfig, MessageFieldsConfig
from core.errors import InternalError
from core.models import Document, FieldFilter
from core.ports import DocumentStorePort

LOGGER = logging.getLogger(__name__)


class UnreadMessageFetcher:
    """Select messages whose read flag is not ``True``."""

    def __init__(
        self,
        store: DocumentStorePort,
        collections: CollectionsConfig,
        fields: MessageFieldsConfig,
    ) -> None:
        self._store = store
        self._collections = collections
        self._fields = fields

    def fetch(self) -> list[Document]:
        """Return the unread snapshot, possibly empty.

        The predicate is a plain ``!=`` so documents lacking the read field do
        not match; they only become visible once reconciliation has run.
        """

        LOGGER.info("Fetching unread messages")
        predicate = FieldFilter(field=self._fields.read, op="!=", value=True)
        try:
            return list(self._store.query(self._collections.messages, predicate))
        except Exception as exc:
            LOGGER.exception("Failed to query unread messages")
            raise InternalError(f"Failed to fetch messages: {exc}") from exc
