"""Application entry point for the chatrelay service."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.grpc_service import serve
from core.delivery import MessageDeliveryCoordinator
from core.models import DocumentRef
from core.reconciler import ReadStateReconciler
from store_client import build_store

NAME = "CHATRELAY"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", False):
        return

    load_dotenv()
    level_name = str(os.getenv("CHATRELAY_LOG_LEVEL") or config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/chatrelay.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


def _server_address() -> tuple[str, int]:
    load_dotenv()
    host = os.getenv("CHATRELAY_HOST") or settings.SERVER_HOST
    port = int(os.getenv("CHATRELAY_PORT") or settings.SERVER_PORT)
    return host, port


def _serve() -> None:
    _print_banner()
    _configure_logging()
    logger = logging.getLogger(__name__)

    logger.info("Starting chatrelay")
    store = build_store()
    coordinator = MessageDeliveryCoordinator(
        store,
        collections=settings.COLLECTIONS,
        fields=settings.FIELDS,
        delivery=settings.DELIVERY,
        suffixes=settings.SUFFIXES,
    )
    host, port = _server_address()
    try:
        asyncio.run(
            serve(coordinator, host=host, port=port, grace_period=settings.SHUTDOWN_GRACE_SECONDS)
        )
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


def _reconcile() -> None:
    _configure_logging()
    store = build_store()
    reconciler = ReadStateReconciler(store, settings.COLLECTIONS, settings.FIELDS)
    backfilled = reconciler.reconcile()
    print(f"Backfilled read state on {backfilled} messages.")


def _collections() -> None:
    _configure_logging()
    store = build_store()
    names = store.list_collections()
    if not names:
        print("No collections found.")
        return
    for name in names:
        print(name)


def _load(collection: str, path: str) -> None:
    # Fixture files map document ids to document bodies.
    _configure_logging()
    with open(path, "r", encoding="utf-8") as handle:
        documents = json.load(handle)
    if not isinstance(documents, dict):
        raise SystemExit(f"{path} must contain a JSON object of id -> document")

    store = build_store()
    for doc_id, data in documents.items():
        if not isinstance(data, dict):
            raise SystemExit(f"Document {doc_id} in {path} is not a JSON object")
        store.set(DocumentRef(collection, str(doc_id)), data)
    print(f"Loaded {len(documents)} documents into {collection}.")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="chatrelay")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="Start the gRPC server")
    subparsers.add_parser("reconcile", help="Backfill missing read flags once and exit")
    subparsers.add_parser("collections", help="List collections in the document store")
    load_parser = subparsers.add_parser("load", help="Load documents from a JSON file")
    load_parser.add_argument("collection")
    load_parser.add_argument("path")

    args = parser.parse_args(argv)
    if args.command == "reconcile":
        _reconcile()
        return
    if args.command == "collections":
        _collections()
        return
    if args.command == "load":
        _load(args.collection, args.path)
        return
    _serve()


if __name__ == "__main__":
    main()
