"""Document store factory for chatrelay.

The store is built once at startup and injected into the delivery core, so
there is no module-level client shared behind the scenes.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

import settings
from adapters.sqlite_document_store import SQLiteDocumentStore


def build_store() -> SQLiteDocumentStore:
    """Create the SQLite document store from settings and environment.

    CHATRELAY_DB_PATH from the environment (or .env via python-dotenv)
    overrides the path in config.json.
    """

    load_dotenv()

    db_path = os.getenv("CHATRELAY_DB_PATH") or settings.DB_PATH
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    logging.getLogger(__name__).info("Initializing document store at %s", db_path)

    store = SQLiteDocumentStore(db_path, timeout=settings.DB_TIMEOUT)
    store.init_db()
    return store
