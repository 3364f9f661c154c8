"""Best-effort bulk acknowledgment of delivered messages (core domain).

Acknowledgment runs on a background task so the response never waits for,
or depends on, the read-state writes. Failures are only visible in logs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from core.config import MessageFieldsConfig
from core.models import DocumentRef
from core.ports import BulkWriterPort, DocumentStorePort

LOGGER = logging.getLogger(__name__)


class BulkAcknowledger:
    """Batch ``read := True`` updates and flush them off the response path."""

    def __init__(self, store: DocumentStorePort, fields: MessageFieldsConfig) -> None:
        self._store = store
        self._fields = fields
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def acknowledge(self, refs: Iterable[DocumentRef]) -> Optional[asyncio.Task]:
        """Enqueue read updates for ``refs`` and schedule the flush.

        Must be called from a running event loop. Returns the flush task, or
        None when there was nothing to acknowledge.
        """

        refs = list(refs)
        if not refs:
            return None

        try:
            writer = self._store.bulk_writer()
        except Exception:
            LOGGER.exception("Failed to open bulk writer for %s messages", len(refs))
            return None

        queued = 0
        for ref in refs:
            try:
                writer.update(ref, self._fields.read, True)
            except Exception:
                LOGGER.exception("Error queueing read update for document %s", ref.id)
                continue
            queued += 1

        if not queued:
            return None

        task = asyncio.get_running_loop().create_task(self._flush(writer, queued))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled flush to finish."""

        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _flush(self, writer: BulkWriterPort, queued: int) -> None:
        try:
            results = await asyncio.to_thread(writer.flush)
        except Exception:
            LOGGER.exception("Bulk acknowledgment flush failed for %s messages", queued)
            return

        failed = 0
        for result in results:
            if result.ok:
                continue
            failed += 1
            LOGGER.warning("Failed to mark document %s as read: %s", result.ref.id, result.error)
        LOGGER.info("Acknowledged %s of %s messages", len(results) - failed, queued)
