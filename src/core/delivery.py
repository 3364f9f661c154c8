"""Core message delivery pipeline.

This module is transport-agnostic. It only relies on the document store port,
enabling different RPC frontends or stores without changes here.

One call runs these steps strictly in order:
1) Backfill missing read flags
2) Resolve the caller's suffix (NotFound/Internal abort the call)
3) Fetch unread messages (Internal aborts the call)
4) Decorate texts, skipping malformed documents
5) Schedule bulk acknowledgment of what was included
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.acknowledger import BulkAcknowledger
from core.config import CollectionsConfig, DeliveryConfig, MessageFieldsConfig
from core.errors import InternalError, InvalidArgumentError
from core.fetcher import UnreadMessageFetcher
from core.models import ChatResponse, DocumentRef, SuffixCode
from core.ports import DocumentStorePort
from core.reconciler import ReadStateReconciler
from core.suffixes import UserSuffixResolver

LOGGER = logging.getLogger(__name__)


class MessageDeliveryCoordinator:
    """Orchestrates reconciliation, suffix lookup, fetch, and acknowledgment."""

    def __init__(
        self,
        store: Optional[DocumentStorePort],
        collections: Optional[CollectionsConfig] = None,
        fields: Optional[MessageFieldsConfig] = None,
        delivery: Optional[DeliveryConfig] = None,
        suffixes: Optional[dict[SuffixCode, str]] = None,
    ) -> None:
        self._store = store
        self._collections = collections or CollectionsConfig()
        self._fields = fields or MessageFieldsConfig()
        self._delivery = delivery or DeliveryConfig()
        self._reconciler = ReadStateReconciler(store, self._collections, self._fields)
        self._resolver = UserSuffixResolver(store, self._collections, self._fields, suffixes)
        self._fetcher = UnreadMessageFetcher(store, self._collections, self._fields)
        self._acknowledger = BulkAcknowledger(store, self._fields)

    async def get_chat_messages(self, user_id: str) -> ChatResponse:
        """Return unread messages decorated for ``user_id`` and mark them read."""

        if self._store is None:
            raise InternalError("Document store client is not initialized")
        if not user_id:
            raise InvalidArgumentError("user_id must be a non-empty string")

        # Store calls block, so each step runs in a worker thread. Cancelling the
        # call (e.g. on deadline) stops the pipeline at the next step boundary.
        if self._delivery.log_collections:
            await asyncio.to_thread(self._log_collections)

        if self._delivery.reconcile_on_request:
            await asyncio.to_thread(self._reconciler.reconcile)

        suffix = await asyncio.to_thread(self._resolver.resolve, user_id)

        documents = await asyncio.to_thread(self._fetcher.fetch)
        if not documents:
            LOGGER.info("No new messages found")
            return ChatResponse(messages=[])

        messages: list[str] = []
        delivered: list[DocumentRef] = []
        for document in documents:
            text = document.data.get(self._fields.text)
            if not isinstance(text, str):
                LOGGER.warning("Invalid message format in document %s", document.id)
                continue
            messages.append(text + suffix)
            delivered.append(document.ref)

        self._acknowledger.acknowledge(delivered)

        LOGGER.info("Delivered %s messages to user %s", len(messages), user_id)
        return ChatResponse(messages=messages)

    async def close(self) -> None:
        """Wait for outstanding acknowledgment flushes."""

        await self._acknowledger.drain()

    def _log_collections(self) -> None:
        try:
            names = self._store.list_collections()
        except Exception:
            LOGGER.exception("Error listing collections")
            return
        for name in names:
            LOGGER.debug("Collection: %s", name)
