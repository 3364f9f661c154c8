"""Static configuration for chatrelay.

All user-editable settings (store, server, delivery, suffixes, logging) live
in a single JSON file for quick edits without touching Python.
"""

import json
import os

from core.config import CollectionsConfig, DeliveryConfig, MessageFieldsConfig
from core.suffixes import build_suffix_table

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Settings are loaded from config.json; CHATRELAY_CONFIG points elsewhere.
CONFIG_PATH = os.getenv("CHATRELAY_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _resolve_path(path: str) -> str:
    if os.path.isabs(path):
        return path
    return os.path.join(PROJECT_ROOT, path)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# SQLite document store location and busy timeout (seconds).
_store = _CONFIG.get("store", {})
DB_PATH = _resolve_path(_store.get("path", "data/chatrelay.db"))
DB_TIMEOUT = float(_store.get("timeout_seconds", 5.0))

# gRPC listener.
_server = _CONFIG.get("server", {})
SERVER_HOST = _server.get("host", "0.0.0.0")
SERVER_PORT = int(_server.get("port", 8080))
SHUTDOWN_GRACE_SECONDS = float(_server.get("shutdown_grace_seconds", 5.0))

# Collection and field names match the document layout in the store.
_collections = _CONFIG.get("collections", {})
COLLECTIONS = CollectionsConfig(
    users=_collections.get("users", "users"),
    messages=_collections.get("messages", "messages"),
)
_fields = _CONFIG.get("fields", {})
FIELDS = MessageFieldsConfig(
    text=_fields.get("text", "message"),
    read=_fields.get("read", "read"),
    suffix=_fields.get("suffix", "suffixType"),
)

# Delivery switches:
# - reconcile_on_request: backfill missing read flags before every fetch
# - log_collections: log every collection name per request (debugging aid)
_delivery = _CONFIG.get("delivery", {})
DELIVERY = DeliveryConfig(
    reconcile_on_request=bool(_delivery.get("reconcile_on_request", True)),
    log_collections=bool(_delivery.get("log_collections", False)),
)

# Decorative strings per suffix code; unspecified codes keep their defaults.
SUFFIXES = build_suffix_table(_CONFIG.get("suffixes", {}))

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
