"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any store- or transport-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ReadState(str, Enum):
    """Tri-valued read status of a message document."""

    UNSET = "unset"
    UNREAD = "unread"
    READ = "read"


class SuffixCode(str, Enum):
    """Decoration preference stored on a user profile."""

    CAT = "cat"
    DOG = "dog"
    CHARACTER = "character"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DocumentRef:
    """Address of a single document inside a collection."""

    collection: str
    id: str


@dataclass(frozen=True)
class Document:
    """Snapshot of a document as returned by the store."""

    ref: DocumentRef
    data: dict[str, Any]

    @property
    def id(self) -> str:
        return self.ref.id


@dataclass(frozen=True)
class FieldFilter:
    """Single-field query predicate, e.g. ``read != True``."""

    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class WriteResult:
    """Outcome of one write inside a flushed batch."""

    ref: DocumentRef
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ChatResponse:
    """Decorated messages returned for one GetChatMessages call."""

    messages: list[str] = field(default_factory=list)


def read_state_of(data: dict[str, Any], read_field: str) -> ReadState:
    """Map the stored boolean read flag onto a ReadState."""

    if read_field not in data:
        return ReadState.UNSET
    return ReadState.READ if data[read_field] is True else ReadState.UNREAD
