"""User suffix resolution (core domain)."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from core.config import CollectionsConfig, MessageFieldsConfig
from core.errors import DocumentNotFoundError, InternalError, InvalidArgumentError, NotFoundError
from core.models import SuffixCode
from core.ports import DocumentStorePort

LOGGER = logging.getLogger(__name__)

DEFAULT_SUFFIXES: dict[SuffixCode, str] = {
    SuffixCode.CAT: "nyan",
    SuffixCode.DOG: "woof",
    SuffixCode.CHARACTER: "yo",
    SuffixCode.UNKNOWN: "",
}


def parse_suffix_code(raw: object) -> SuffixCode:
    """Normalize a stored preference, falling back to UNKNOWN."""

    if not isinstance(raw, str):
        return SuffixCode.UNKNOWN
    try:
        return SuffixCode(raw.strip().lower())
    except ValueError:
        return SuffixCode.UNKNOWN


def build_suffix_table(overrides: Optional[Mapping[str, str]] = None) -> dict[SuffixCode, str]:
    """Merge configured suffix strings over the defaults.

    Unknown codes in ``overrides`` are rejected so a typo in config.json does
    not silently disable a decoration. UNKNOWN always maps to the empty suffix.
    """

    table = dict(DEFAULT_SUFFIXES)
    for code, suffix in (overrides or {}).items():
        parsed = parse_suffix_code(code)
        if parsed is SuffixCode.UNKNOWN:
            raise ValueError(f"Unsupported suffix code: {code}")
        table[parsed] = str(suffix)
    table[SuffixCode.UNKNOWN] = ""
    return table


class UserSuffixResolver:
    """Map a user id to the decoration appended to each delivered message."""

    def __init__(
        self,
        store: DocumentStorePort,
        collections: CollectionsConfig,
        fields: MessageFieldsConfig,
        suffixes: Optional[Mapping[SuffixCode, str]] = None,
    ) -> None:
        self._store = store
        self._collections = collections
        self._fields = fields
        self._suffixes = dict(suffixes) if suffixes is not None else dict(DEFAULT_SUFFIXES)

    def resolve(self, user_id: str) -> str:
        if not user_id:
            raise InvalidArgumentError("user_id must be a non-empty string")

        LOGGER.info("Fetching user data for user %s", user_id)
        try:
            profile = self._store.get(self._collections.users, user_id)
        except DocumentNotFoundError as exc:
            LOGGER.info("User %s not found", user_id)
            raise NotFoundError(f"User not found: {user_id}") from exc
        except Exception as exc:
            LOGGER.exception("Error fetching user document for %s", user_id)
            raise InternalError(f"Error fetching user document: {exc}") from exc

        code = parse_suffix_code(profile.data.get(self._fields.suffix))
        if code is SuffixCode.UNKNOWN:
            LOGGER.info("No usable suffix preference for user %s, defaulting to empty", user_id)
        return self._suffixes.get(code, "")
