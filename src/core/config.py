"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CollectionsConfig:
    """Names of the collections the core reads and writes."""

    users: str = "users"
    messages: str = "messages"


@dataclass(frozen=True)
class MessageFieldsConfig:
    """Field names inside message and user documents."""

    text: str = "message"
    read: str = "read"
    suffix: str = "suffixType"


@dataclass(frozen=True)
class DeliveryConfig:
    """Switches for one delivery cycle."""

    reconcile_on_request: bool = True
    log_collections: bool = False
